import pytest

from reviews import add_reply, backfill_ratings, list_reviews, mark_helpful, submit_review


@pytest.fixture
def product(db):
    db["mobile"].insert_one({"_id": "apple-iphone-15", "name": "Apple iPhone 15", "price": 999})
    return "apple-iphone-15"


def test_one_review_per_user(db, product, shopper):
    first = submit_review(db, product, shopper, 4, "  Great phone  ")
    assert first["text"] == "Great phone"
    assert first["user_name"] == "Kari"

    second = submit_review(db, product, shopper, 2, "Battery got worse")
    assert second["_id"] == first["_id"]
    assert db["review"].count_documents({"product_id": product}) == 1

    stored = db["mobile"].find_one({"_id": product})
    assert stored["rating"] == 2
    assert stored["review_count"] == 1


def test_rating_is_mean_of_reviews(db, product, shopper, admin):
    submit_review(db, product, shopper, 3, "Okay")
    submit_review(db, product, admin, 4, "Good")
    stored = db["mobile"].find_one({"_id": product})
    assert stored["rating"] == 3.5
    assert stored["review_count"] == 2


def test_list_reviews_newest_first(db, product):
    db["review"].insert_many([
        {"_id": "old", "product_id": product, "date": "2024-01-01T00:00:00+00:00"},
        {"_id": "new", "product_id": product, "date": "2024-06-01T00:00:00+00:00"},
        {"_id": "elsewhere", "product_id": "other", "date": "2025-01-01T00:00:00+00:00"},
    ])
    assert [r["_id"] for r in list_reviews(db, product)] == ["new", "old"]


def test_edit_keeps_helpful_count(db, product, shopper, admin):
    review = submit_review(db, product, shopper, 5, "Love it")
    mark_helpful(db, product, review["_id"], admin)
    submit_review(db, product, shopper, 4, "Still good")
    assert db["review"].find_one({"_id": review["_id"]})["helpful"] == 1


def test_helpful_once_per_user(db, product, shopper, admin):
    review = submit_review(db, product, shopper, 5, "Love it")
    assert mark_helpful(db, product, review["_id"], admin) == 1
    assert mark_helpful(db, product, review["_id"], admin) == 1
    assert review["_id"] in db["user"].find_one({"_id": admin["_id"]})["helpful_reviews"]


def test_helpful_on_own_review(db, product, shopper):
    review = submit_review(db, product, shopper, 5, "Love it")
    with pytest.raises(ValueError):
        mark_helpful(db, product, review["_id"], shopper)


def test_helpful_on_missing_review(db, product, admin):
    assert mark_helpful(db, product, "missing", admin) is None


def test_replies_carry_admin_flag(db, product, shopper, admin):
    review = submit_review(db, product, shopper, 3, "Okay")
    reply = add_reply(db, product, review["_id"], admin, "Thanks for the feedback")
    assert reply["is_admin"] is True
    assert reply["user_name"] == "Store Admin"

    own = add_reply(db, product, review["_id"], shopper, "You're welcome")
    assert own["is_admin"] is False

    stored = db["review"].find_one({"_id": review["_id"]})
    assert [r["text"] for r in stored["replies"]] == ["Thanks for the feedback", "You're welcome"]


def test_reply_to_missing_review(db, product, admin):
    assert add_reply(db, product, "missing", admin, "Hello") is None


def test_backfill_ratings(db, product):
    db["tv"].insert_one({"_id": "rated", "rating": 4.5, "review_count": 2})
    assert backfill_ratings(db) == 1
    assert db["mobile"].find_one({"_id": product})["rating"] == 0
    assert db["tv"].find_one({"_id": "rated"})["rating"] == 4.5


def test_helpful_already_marked_does_not_count(db, product, shopper, admin):
    review = submit_review(db, product, shopper, 5, "Love it")
    db["user"].update_one({"_id": admin["_id"]}, {"$set": {"helpful_reviews": [review["_id"]]}})
    assert mark_helpful(db, product, review["_id"], admin) == 0
    assert db["review"].find_one({"_id": review["_id"]})["helpful"] == 0
