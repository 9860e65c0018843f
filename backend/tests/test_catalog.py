from conftest import ok, register


def make_product(api, **extra):
    payload = {"name": "Red Peppers", "a_price": 30, "b_price": 0, "price": 2.25, **extra}
    return ok(api.post("/products/", json=payload))


def test_short_codes_are_sequential_and_unique(api):
    first = make_product(api)
    second = make_product(api, name="Yellow Peppers")
    assert (first["short_code"], second["short_code"]) == ("101", "102")

    duplicate = api.post("/products/", json={"name": "Orange Peppers", "short_code": "101"})
    assert duplicate.status_code == 400

    found = ok(api.get("/products/by-code/102"))
    assert found["id"] == second["id"]
    assert api.get("/products/by-code/999").status_code == 404


def test_trash_and_manual_add_move_stock(api):
    product = make_product(api, carry_forward_box=20)

    trashed = ok(api.post(f"/products/{product['id']}/trash", json={"quantity": 3, "reason": "Bruised"}))
    assert trashed["stock"]["trash_box"] == 3
    assert trashed["stock"]["total_remaining"] == 17

    added = ok(api.post(f"/products/{product['id']}/manual-add", json={"quantity": 4}))
    assert added["manually_add_box"] == 4
    assert added["stock"]["total_remaining"] == 21

    # A second manual add replaces the first
    replaced = ok(api.post(f"/products/{product['id']}/manual-add", json={"quantity": 1}))
    assert replaced["stock"]["total_remaining"] == 18


def test_pallet_info_from_case_dimensions(api):
    """
    GIVEN 12x10x10 cases and 100 cases on hand
    THEN 64 fit a pallet and the stock needs one full pallet plus 36 cases
    """
    product = make_product(api, case_length=12, case_width=10, case_height=10, carry_forward_box=100)
    assert product["total_cases_per_pallet"] == 64

    info = ok(api.get(f"/products/{product['id']}/pallet-info"))
    assert info["current_stock"] == 100
    assert info["inventory"]["full_pallets"] == 1
    assert info["inventory"]["partial_pallet_cases"] == 36
    assert info["display"] == "~2 pallets (1 full + 36 cases) (estimate)"


def test_pallet_info_without_dimensions(api):
    product = make_product(api, carry_forward_box=5)
    info = ok(api.get(f"/products/{product['id']}/pallet-info"))
    assert info["inventory"] is None
    assert info["display"] == "Dimensions required for pallet calculation"


def test_store_price_falls_back_to_a_price(api):
    product = make_product(api)

    b_price = ok(api.get(f"/products/{product['id']}/price", params={"price_category": "b_price"}))
    assert b_price["price"] == 30.0

    unit = ok(api.get(f"/products/{product['id']}/price", params={"pricing_type": "unit"}))
    assert unit["price"] == 2.25


def test_product_with_orders_cannot_be_deleted(api):
    store = register(api, "keep@example.com")
    product = make_product(api, carry_forward_box=5)
    ok(api.post("/orders/", json={
        "store_id": store["id"],
        "items": [{"product_id": product["id"], "quantity": 1, "pricing_type": "box"}],
    }))

    response = api.delete(f"/products/{product['id']}")
    assert response.status_code == 400


def test_store_approval_flow(api):
    """
    GIVEN a pending store
    THEN it can be approved once, and a rejected store cannot log in
    """
    pending = register(api, "pending@example.com")
    listed = ok(api.get("/stores/pending"))
    assert [s["id"] for s in listed] == [pending["id"]]

    approved = ok(api.post(f"/stores/{pending['id']}/approve"))
    assert approved["approval_status"] == "approved"
    assert api.post(f"/stores/{pending['id']}/approve").status_code == 400

    other = register(api, "nope@example.com")
    assert api.post(f"/stores/{other['id']}/reject", json={"reason": ""}).status_code == 422
    rejected = ok(api.post(f"/stores/{other['id']}/reject", json={"reason": "Outside delivery area"}))
    assert rejected["approval_status"] == "rejected"

    login = api.post("/auth/login", json={"email": "nope@example.com", "password": "secret123"})
    assert login.status_code == 403
    assert login.json()["message"] == "Your registration was rejected"


def test_admin_registration_is_approved(api):
    admin = register(api, "boss@example.com", role="admin")
    assert admin["approval_status"] == "approved"


def test_store_update_and_delete(api):
    store = register(api, "edit@example.com")
    updated = ok(api.put(f"/stores/{store['id']}", json={"price_category": "b_price", "shipping_cost": 7.5}))
    assert updated["price_category"] == "b_price"
    assert updated["shipping_cost"] == 7.5

    assert api.put(f"/stores/{store['id']}", json={"price_category": "z_price"}).status_code == 422

    ok(api.delete(f"/stores/{store['id']}"))
    assert api.get(f"/stores/{store['id']}").status_code == 404


def test_generate_short_codes_fills_blanks(api):
    first = make_product(api)
    second = make_product(api, name="Yellow Peppers")
    ok(api.put(f"/products/{first['id']}", json={"short_code": ""}))

    assigned = ok(api.post("/products/generate-short-codes"))
    assert assigned == [{"id": first["id"], "name": "Red Peppers", "short_code": "103"}]
    assert ok(api.get(f"/products/{second['id']}"))["short_code"] == "102"
    assert ok(api.post("/products/generate-short-codes")) == []


def test_rebuild_history_replays_live_orders(api):
    """
    GIVEN one order of 3 cases
    THEN a rebuild counts it, and a window ending before it counts nothing
    """
    store = register(api, "replay@example.com")
    product = make_product(api, carry_forward_box=20)
    ok(api.post("/orders/", json={
        "store_id": store["id"],
        "items": [{"product_id": product["id"], "quantity": 3, "pricing_type": "box"}],
    }))

    summary = ok(api.post(f"/products/{product['id']}/rebuild-history", json={}))
    assert summary["order_lines"] == 1
    assert summary["total_sell"] == 3
    assert ok(api.get(f"/products/{product['id']}"))["stock"]["total_remaining"] == 17

    window = ok(api.post(f"/products/{product['id']}/rebuild-history",
                         json={"date_from": "2025-01-01T00:00:00", "date_to": "2025-01-02T00:00:00"}))
    assert window["order_lines"] == 0
    assert window["total_sell"] == 0

    assert api.post("/products/999/rebuild-history", json={}).status_code == 404
