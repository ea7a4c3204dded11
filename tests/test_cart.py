import re

import pytest

from cart import (
    add_to_cart,
    checkout,
    generate_order_number,
    get_cart,
    list_orders,
    remove_from_cart,
    update_quantity,
)


@pytest.fixture
def products(db):
    db["mobile"].insert_one({"_id": "apple-iphone-15", "name": "Apple iPhone 15", "price": 999.5, "image": "i.jpg"})
    db["audio"].insert_one({"_id": "sony-wh-1000xm5", "name": "Sony WH-1000XM5", "price": 349})
    return db


def test_add_merges_lines(db):
    add_to_cart(db, "s1", "apple-iphone-15")
    add_to_cart(db, "s1", "apple-iphone-15", 2)
    add_to_cart(db, "s1", "sony-wh-1000xm5")
    assert get_cart(db, "s1") == [
        {"product_id": "apple-iphone-15", "quantity": 3},
        {"product_id": "sony-wh-1000xm5", "quantity": 1},
    ]
    assert get_cart(db, "other") == []


def test_update_and_remove(db):
    add_to_cart(db, "s1", "apple-iphone-15", 2)
    add_to_cart(db, "s1", "sony-wh-1000xm5")
    assert update_quantity(db, "s1", "apple-iphone-15", 0)[0]["quantity"] == 1
    assert remove_from_cart(db, "s1", "apple-iphone-15") == [{"product_id": "sony-wh-1000xm5", "quantity": 1}]


def test_order_number_format():
    assert re.fullmatch(r"\d{8}-[A-Z]{4}\d{4}", generate_order_number())


def test_checkout_snapshots_prices(products, shopper):
    lines = [
        {"product_id": "apple-iphone-15", "quantity": 1},
        {"product_id": "sony-wh-1000xm5", "quantity": 2},
        {"product_id": "apple-iphone-15", "quantity": 1},
    ]
    order = checkout(products, lines, "Kari Nordmann", "+47 123 45 678", user=shopper)

    assert order["total"] == 2697.0
    assert order["status"] == "placed"
    assert order["user_id"] == str(shopper["_id"])
    assert [(i["product_id"], i["quantity"], i["category"]) for i in order["items"]] == [
        ("apple-iphone-15", 2, "mobile"),
        ("sony-wh-1000xm5", 2, "audio"),
    ]

    # later price changes do not touch the order
    products["mobile"].update_one({"_id": "apple-iphone-15"}, {"$set": {"price": 1}})
    stored = products["order"].find_one({"order_number": order["order_number"]})
    assert stored["items"][0]["price"] == 999.5


def test_anonymous_checkout(products):
    order = checkout(products, [{"product_id": "sony-wh-1000xm5", "quantity": 1}], "Guest", "12345678")
    assert order["user_id"] is None


def test_checkout_errors(products):
    with pytest.raises(ValueError):
        checkout(products, [], "Guest", "12345678")
    with pytest.raises(LookupError):
        checkout(products, [{"product_id": "gone", "quantity": 1}], "Guest", "12345678")
    assert products["order"].count_documents({}) == 0


def test_list_orders_newest_first(db, shopper):
    user_id = str(shopper["_id"])
    db["order"].insert_many([
        {"order_number": "1", "user_id": user_id, "date": "2024-01-01T00:00:00+00:00"},
        {"order_number": "2", "user_id": user_id, "date": "2024-02-01T00:00:00+00:00"},
        {"order_number": "3", "user_id": None, "date": "2024-03-01T00:00:00+00:00"},
    ])
    assert [o["order_number"] for o in list_orders(db, user_id)] == ["2", "1"]
