"""
Product reviews, replies, helpful marks and the rating aggregate.

A user has at most one review per product: submitting again edits the
existing review. The aggregate on the product document is recomputed from
all reviews after every write.
"""
import logging
import uuid
from datetime import datetime, timezone
from typing import Any, Dict, List, Optional, Tuple

from pymongo import ReturnDocument

from catalog import CATEGORIES, find_product

logger = logging.getLogger(__name__)


def _now_iso() -> str:
    return datetime.now(timezone.utc).isoformat()


def _display_name(user: Dict[str, Any]) -> str:
    return user.get("display_name") or user.get("nickname") or "Anonymous"


def list_reviews(db, product_id: str) -> List[Dict[str, Any]]:
    return list(db["review"].find({"product_id": product_id}).sort("date", -1))


def update_product_rating(db, product_id: str) -> Tuple[float, int]:
    """Recompute mean rating and count, and store them on the product."""
    ratings = [r.get("rating", 0) for r in db["review"].find({"product_id": product_id})]
    count = len(ratings)
    average = sum(ratings) / count if count else 0.0

    found = find_product(db, product_id)
    if found:
        db[found[0]].update_one({"_id": product_id}, {"$set": {"rating": average, "review_count": count}})
    else:
        logger.info("Product %s not found in any collection, rating not stored", product_id)
    return average, count


def submit_review(db, product_id: str, user: Dict[str, Any], rating: int, text: str) -> Dict[str, Any]:
    user_id = str(user["_id"])
    fields = {
        "user_name": _display_name(user),
        "user_avatar": user.get("avatar") or "",
        "rating": rating,
        "text": text.strip(),
        "date": _now_iso(),
    }

    existing = db["review"].find_one({"product_id": product_id, "user_id": user_id})
    if existing:
        db["review"].update_one({"_id": existing["_id"]}, {"$set": fields})
        review = {**existing, **fields}
    else:
        review = {
            "_id": uuid.uuid4().hex,
            "product_id": product_id,
            "user_id": user_id,
            "helpful": 0,
            "replies": [],
            **fields,
        }
        db["review"].insert_one(review)

    update_product_rating(db, product_id)
    return review


def add_reply(db, product_id: str, review_id: str, user: Dict[str, Any], text: str) -> Optional[Dict[str, Any]]:
    reply = {
        "id": uuid.uuid4().hex,
        "user_id": str(user["_id"]),
        "user_name": _display_name(user),
        "text": text.strip(),
        "date": _now_iso(),
        "is_admin": bool(user.get("is_admin")),
    }
    result = db["review"].update_one(
        {"_id": review_id, "product_id": product_id},
        {"$push": {"replies": reply}},
    )
    if result.matched_count == 0:
        return None
    return reply


def mark_helpful(db, product_id: str, review_id: str, user: Dict[str, Any]) -> Optional[int]:
    """Count one helpful mark per user per review.

    Returns the review's helpful count, None if the review does not exist.
    Raises ValueError when the user tries to mark their own review.
    """
    review = db["review"].find_one({"_id": review_id, "product_id": product_id})
    if not review:
        return None
    if review.get("user_id") == str(user["_id"]):
        raise ValueError("You cannot mark your own review as helpful")

    # the filter makes claiming the mark and checking for it a single write
    claimed = db["user"].update_one(
        {"_id": user["_id"], "helpful_reviews": {"$ne": review_id}},
        {"$addToSet": {"helpful_reviews": review_id}},
    )
    if claimed.modified_count != 1:
        return review.get("helpful", 0)

    updated = db["review"].find_one_and_update(
        {"_id": review_id},
        {"$inc": {"helpful": 1}},
        return_document=ReturnDocument.AFTER,
    )
    return updated.get("helpful", 0)


def backfill_ratings(db) -> int:
    """Give every product lacking a rating an empty aggregate."""
    updated = 0
    for category in CATEGORIES:
        result = db[category].update_many(
            {"rating": {"$exists": False}},
            {"$set": {"rating": 0, "review_count": 0}},
        )
        updated += result.modified_count
        logger.info("Backfilled rating on %d products in %s", result.modified_count, category)
    return updated
