from conftest import ok, register


def make_product(api, name="Green Onions", **extra):
    payload = {"name": name, "a_price": 10, "b_price": 9, "carry_forward_box": 10, **extra}
    return ok(api.post("/products/", json=payload))


def order_boxes(api, store_id, product_id, quantity):
    return ok(api.post("/orders/", json={
        "store_id": store_id,
        "items": [{"product_id": product_id, "quantity": quantity, "pricing_type": "box"}],
    }))


def short_week(api):
    """
    Two stores order 4 and 6 cases of a product that only has 5 left
    once 5 cases are trashed.
    """
    first = register(api, "first@example.com")
    second = register(api, "second@example.com")
    product = make_product(api)
    orders = [
        order_boxes(api, first["id"], product["id"], 4),
        order_boxes(api, second["id"], product["id"], 6),
    ]
    ok(api.post(f"/products/{product['id']}/trash", json={"quantity": 5, "reason": "Wilted"}))
    work_order = ok(api.post("/work-orders/create", json={"order_ids": [o["id"] for o in orders]}))
    return first, second, product, work_order


def test_create_allocates_shortage_pro_rata(api):
    """
    GIVEN 5 cases for 10 ordered
    THEN the smaller order is served first at its floor share
    """
    first, second, product, work_order = short_week(api)

    assert work_order["status"] == "confirmed"
    assert work_order["has_shortage"] is True
    assert work_order["total_orders"] == 2
    assert work_order["total_shortage_quantity"] == 5

    line = work_order["products"][0]
    assert line["total_ordered"] == 10
    assert line["current_stock"] == 5
    assert line["status"] == "partial"

    allocated = {
        s["store_id"]: (s["items"][0]["allocated"], s["items"][0]["shortage"])
        for s in work_order["store_allocations"]
    }
    assert allocated[first["id"]] == (2, 2)
    assert allocated[second["id"]] == (3, 3)


def test_week_and_shortage_views(api):
    first, second, product, work_order = short_week(api)

    week = ok(api.get("/work-orders/week"))
    assert week["id"] == work_order["id"]

    shortages = ok(api.get("/work-orders/shortages"))
    assert shortages["has_shortage"] is True
    assert shortages["short_products"][0]["shortage"] == 5
    assert {s["store_id"] for s in shortages["affected_stores"]} == {first["id"], second["id"]}
    assert shortages["summary"]["shortage_percentage"] == 100


def test_empty_week_has_no_work_order(api):
    response = api.get("/work-orders/week", params={"week_offset": 3})
    assert response.status_code == 200
    assert response.json()["data"] is None

    shortages = ok(api.get("/work-orders/shortages", params={"week_offset": 3}))
    assert shortages["has_shortage"] is False


def test_picking_moves_work_order_in_progress(api):
    first, second, product, work_order = short_week(api)

    picked = ok(api.post(f"/work-orders/{work_order['id']}/picking", json={
        "store_id": first["id"], "product_id": product["id"], "picked": True,
    }))
    assert picked["status"] == "in_progress"
    store = next(s for s in picked["store_allocations"] if s["store_id"] == first["id"])
    assert store["picking_status"] == "completed"

    done = ok(api.post(f"/work-orders/{work_order['id']}/picking", json={
        "store_id": second["id"], "product_id": product["id"], "picked": True,
    }))
    assert done["status"] == "completed"

    missing = api.post(f"/work-orders/{work_order['id']}/picking", json={
        "store_id": 999, "product_id": product["id"], "picked": True,
    })
    assert missing.status_code == 404
    assert missing.json()["message"] == "Store allocation not found"


def test_resolve_shortage_with_found_stock(api):
    """
    GIVEN a 5 case shortage
    THEN finding 5 more cases clears it
    """
    first, second, product, work_order = short_week(api)

    result = ok(api.post(f"/work-orders/{work_order['id']}/resolve-shortage", json={
        "product_id": product["id"], "additional_quantity": 5, "notes": "Found in cooler",
    }))
    assert result["status"] == "full"
    assert result["shortage"] == 0
    assert result["has_shortage"] is False

    unknown = api.post(f"/work-orders/{work_order['id']}/resolve-shortage", json={
        "product_id": 999, "additional_quantity": 1,
    })
    assert unknown.status_code == 404


def test_rebuilding_the_week_merges_orders(api):
    store = register(api, "merge@example.com")
    product = make_product(api)
    first = order_boxes(api, store["id"], product["id"], 2)
    created = ok(api.post("/work-orders/create", json={"order_ids": [first["id"]]}))

    second = order_boxes(api, store["id"], product["id"], 3)
    merged = ok(api.post("/work-orders/create", json={"order_ids": [second["id"]]}))
    assert merged["id"] == created["id"]
    assert merged["confirmed_order_ids"] == [first["id"], second["id"]]
    assert merged["products"][0]["total_ordered"] == 5
    assert merged["has_shortage"] is False


def test_cancelled_work_order_is_frozen(api):
    store = register(api, "cancel@example.com")
    product = make_product(api)
    order = order_boxes(api, store["id"], product["id"], 1)
    work_order = ok(api.post("/work-orders/create", json={"order_ids": [order["id"]]}))

    cancelled = ok(api.put(f"/work-orders/{work_order['id']}/status", json={"status": "cancelled"}))
    assert cancelled["status"] == "cancelled"

    response = api.put(f"/work-orders/{work_order['id']}/status", json={"status": "confirmed"})
    assert response.status_code == 400


def test_status_update_keeps_allocations(api):
    """
    GIVEN a confirmed work order
    THEN completing it stamps completed_at and still returns its store lines
    """
    first, second, product, work_order = short_week(api)

    completed = ok(api.put(f"/work-orders/{work_order['id']}/status",
                           json={"status": "completed", "notes": "Loaded on truck 2"}))
    assert completed["status"] == "completed"
    assert completed["completed_at"]
    assert completed["notes"] == "Loaded on truck 2"
    assert {s["store_id"] for s in completed["store_allocations"]} == {first["id"], second["id"]}
    assert all(s["items"][0]["product_id"] == product["id"] for s in completed["store_allocations"])
    assert completed["products"][0]["total_ordered"] == 10
