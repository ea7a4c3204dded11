"""
User profile data: nicknames, profile fields and favorites.
"""
import logging
from typing import Any, Dict, List, Optional

from catalog import find_product
from popularity import track_interaction

logger = logging.getLogger(__name__)


def nickname_available(db, nickname: str, user_id: Optional[str] = None) -> bool:
    entry = db["nickname"].find_one({"_id": nickname.lower()})
    return entry is None or (user_id is not None and entry.get("user_id") == user_id)


def reserve_nickname(db, nickname: str, user_id: str) -> bool:
    """Claim `nickname` for the user. False if someone else holds it."""
    if not nickname_available(db, nickname, user_id):
        return False
    db["nickname"].update_one({"_id": nickname.lower()}, {"$set": {"user_id": user_id}}, upsert=True)
    return True


def release_nickname(db, nickname: str, user_id: str) -> None:
    db["nickname"].delete_one({"_id": nickname.lower(), "user_id": user_id})


def update_profile(db, user: Dict[str, Any], nickname: Optional[str] = None,
                   display_name: Optional[str] = None, avatar: Optional[str] = None) -> Dict[str, Any]:
    """Apply profile changes. Raises ValueError if the new nickname is taken."""
    user_id = str(user["_id"])
    updates: Dict[str, Any] = {}

    old_nickname = user.get("nickname")
    if nickname is not None and nickname != old_nickname:
        if not reserve_nickname(db, nickname, user_id):
            raise ValueError("This nickname is already taken")
        if old_nickname and old_nickname.lower() != nickname.lower():
            release_nickname(db, old_nickname, user_id)
        updates["nickname"] = nickname

    if display_name is not None:
        updates["display_name"] = display_name
    if avatar is not None:
        updates["avatar"] = avatar

    if updates:
        db["user"].update_one({"_id": user["_id"]}, {"$set": updates})
        # keep the author card on existing reviews in sync
        review_fields = {}
        if "display_name" in updates or "nickname" in updates:
            review_fields["user_name"] = updates.get("display_name") or user.get("display_name") \
                or updates.get("nickname") or old_nickname or "Anonymous"
        if "avatar" in updates:
            review_fields["user_avatar"] = avatar
        if review_fields:
            db["review"].update_many({"user_id": user_id}, {"$set": review_fields})
    return {**user, **updates}


def toggle_favorite(db, user: Dict[str, Any], product_id: str) -> Optional[bool]:
    """Add or remove a favorite. Returns the new state, None for an unknown product."""
    current = db["user"].find_one({"_id": user["_id"]}) or user
    if product_id in current.get("favorites", []):
        db["user"].update_one({"_id": user["_id"]}, {"$pull": {"favorites": product_id}})
        return False

    if not find_product(db, product_id):
        return None
    db["user"].update_one({"_id": user["_id"]}, {"$addToSet": {"favorites": product_id}})
    track_interaction(db, product_id, favorite=True)
    return True


def list_favorites(db, user: Dict[str, Any]) -> List[Dict[str, Any]]:
    current = db["user"].find_one({"_id": user["_id"]}) or user
    products = []
    for product_id in current.get("favorites", []):
        found = find_product(db, product_id)
        if found:
            products.append({**found[1], "category": found[0]})
        else:
            logger.debug("Favorite %s no longer exists", product_id)
    return products
