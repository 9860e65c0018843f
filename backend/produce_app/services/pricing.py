"""Store-specific product pricing."""

from decimal import Decimal

from produce_app.services.money import to_decimal

PRICE_CATEGORIES = ("a_price", "b_price", "c_price", "restaurant_price")

# Older accounts stored these names; they price like category A
LEGACY_CATEGORY_MAP = {
    "price": "a_price",
    "pricePerBox": "a_price",
    "price_per_box": "a_price",
    "aPrice": "a_price",
    "bPrice": "b_price",
    "cPrice": "c_price",
    "restaurantPrice": "restaurant_price",
}


def normalize_price_category(price_category: str) -> str:
    category = LEGACY_CATEGORY_MAP.get(price_category, price_category)
    return category if category in PRICE_CATEGORIES else "a_price"


def get_product_price_for_store(product, price_category: str = "a_price",
                                pricing_type: str = "box") -> Decimal:
    if pricing_type == "unit":
        return to_decimal(product.price)

    category_price = to_decimal(getattr(product, normalize_price_category(price_category), None))
    if category_price > 0:
        return category_price

    a_price = to_decimal(product.a_price)
    if a_price > 0:
        return a_price
    return to_decimal(product.price_per_box)
