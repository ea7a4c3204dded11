"""
Interaction counters and the popular products snapshot.
"""
import logging
import os
from datetime import datetime, timezone
from typing import Any, Dict, List, Optional

from catalog import CATEGORIES, find_product

logger = logging.getLogger(__name__)

CLICK_WEIGHT = 1
FAVORITE_WEIGHT = 3
CART_WEIGHT = 5

POPULAR_PRODUCTS_LIMIT = int(os.getenv("POPULAR_PRODUCTS_LIMIT", 100))


def popularity_score(click_count: int = 0, favorite_count: int = 0, cart_count: int = 0) -> int:
    return click_count * CLICK_WEIGHT + favorite_count * FAVORITE_WEIGHT + cart_count * CART_WEIGHT


def track_interaction(db, product_id: str, click: bool = False, favorite: bool = False, cart: bool = False,
                      category: Optional[str] = None) -> Optional[str]:
    """Atomically bump the product's counters and its stats entry.

    Returns the product's category, or None when the product does not exist
    or there is nothing to record.
    """
    if not (click or favorite or cart):
        return None

    found = find_product(db, product_id, [category] if category else None)
    if not found:
        return None
    category = found[0]

    inc = {}
    if click:
        inc["click_count"] = 1
    if favorite:
        inc["favorite_count"] = 1
    if cart:
        inc["cart_count"] = 1
    score = popularity_score(int(click), int(favorite), int(cart))
    now = datetime.now(timezone.utc)

    db[category].update_one({"_id": product_id}, {"$inc": {**inc, "popularity_score": score}})
    db["product_stats"].update_one(
        {"_id": product_id},
        {"$inc": inc, "$set": {"category": category, "last_updated": now}},
        upsert=True,
    )
    return category


def recompute_popular_products(db, limit: int = POPULAR_PRODUCTS_LIMIT) -> int:
    """Rebuild the popular products snapshot from a full scan of product_stats.

    Stats whose product no longer exists are skipped. The snapshot is
    replaced wholesale; returns the number of entries written.
    """
    scored = []
    for stats in db["product_stats"].find({}):
        score = popularity_score(
            stats.get("click_count", 0),
            stats.get("favorite_count", 0),
            stats.get("cart_count", 0),
        )
        scored.append((score, stats))
    scored.sort(key=lambda s: s[0], reverse=True)

    now = datetime.now(timezone.utc)
    snapshot: List[Dict[str, Any]] = []
    for score, stats in scored:
        if len(snapshot) >= limit:
            break
        hint = stats.get("category")
        found = find_product(db, stats["_id"], [hint] if hint in CATEGORIES else None)
        if not found and hint:
            found = find_product(db, stats["_id"])
        if not found:
            logger.info("Product %s has tracking data but no longer exists", stats["_id"])
            continue
        snapshot.append({
            "_id": stats["_id"],
            "score": score,
            "category": found[0],
            "rank": len(snapshot) + 1,
            "last_updated": now,
        })

    db["popular_product"].delete_many({})
    if snapshot:
        db["popular_product"].insert_many(snapshot)
    logger.info("Updated %d popular products", len(snapshot))
    return len(snapshot)


def get_popular_products(db, limit: int = 10) -> List[Dict[str, Any]]:
    """Snapshot entries in rank order joined with the current product documents."""
    items = []
    for entry in db["popular_product"].find({}).sort("rank", 1).limit(limit):
        product = db[entry["category"]].find_one({"_id": entry["_id"]})
        if not product:
            continue
        items.append({**product, "category": entry["category"], "score": entry["score"], "rank": entry["rank"]})
    return items
