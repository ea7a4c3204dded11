"""
Session carts, checkout and order history.

A cart is a list of (product_id, quantity) lines per client session. Prices
are only read at checkout, when the lines are snapshotted into an order.
"""
import logging
import secrets
import string
from datetime import datetime, timezone
from typing import Any, Dict, Iterable, List, Optional

from catalog import find_product

logger = logging.getLogger(__name__)


def _lines(cart: Optional[dict]) -> List[Dict[str, Any]]:
    return list(cart.get("items", [])) if cart else []


def get_cart(db, session_id: str) -> List[Dict[str, Any]]:
    return _lines(db["cart"].find_one({"session_id": session_id}))


def _save(db, session_id: str, items: List[Dict[str, Any]]) -> List[Dict[str, Any]]:
    db["cart"].update_one(
        {"session_id": session_id},
        {"$set": {"items": items, "updated_at": datetime.now(timezone.utc)}},
        upsert=True,
    )
    return items


def add_to_cart(db, session_id: str, product_id: str, quantity: int = 1) -> List[Dict[str, Any]]:
    items = get_cart(db, session_id)
    for line in items:
        if line["product_id"] == product_id:
            line["quantity"] = line.get("quantity", 1) + max(1, quantity)
            break
    else:
        items.append({"product_id": product_id, "quantity": max(1, quantity)})
    return _save(db, session_id, items)


def update_quantity(db, session_id: str, product_id: str, quantity: int) -> List[Dict[str, Any]]:
    items = get_cart(db, session_id)
    for line in items:
        if line["product_id"] == product_id:
            line["quantity"] = max(1, quantity)
    return _save(db, session_id, items)


def remove_from_cart(db, session_id: str, product_id: str) -> List[Dict[str, Any]]:
    items = [line for line in get_cart(db, session_id) if line["product_id"] != product_id]
    return _save(db, session_id, items)


def clear_cart(db, session_id: str) -> None:
    db["cart"].delete_one({"session_id": session_id})


def random_part() -> str:
    """Four uppercase letters followed by four digits."""
    letters = "".join(secrets.choice(string.ascii_uppercase) for _ in range(4))
    digits = "".join(secrets.choice(string.digits) for _ in range(4))
    return letters + digits


def generate_order_number(now: Optional[datetime] = None) -> str:
    now = now or datetime.now(timezone.utc)
    return f"{now:%Y%m%d}-{random_part()}"


def _merge(lines: Iterable[Dict[str, Any]]) -> Dict[str, int]:
    merged: Dict[str, int] = {}
    for line in lines:
        merged[line["product_id"]] = merged.get(line["product_id"], 0) + max(1, int(line.get("quantity", 1)))
    return merged


def checkout(db, lines: Iterable[Dict[str, Any]], name: str, phone: str, email: Optional[str] = None,
             address: Optional[str] = None, user: Optional[Dict[str, Any]] = None) -> Dict[str, Any]:
    """Snapshot cart lines into an immutable order.

    Raises ValueError for an empty cart and LookupError naming the first
    product that no longer exists.
    """
    merged = _merge(lines)
    if not merged:
        raise ValueError("Cart is empty")

    items = []
    for product_id, quantity in merged.items():
        found = find_product(db, product_id)
        if not found:
            raise LookupError(product_id)
        category, product = found
        items.append({
            "product_id": product_id,
            "name": product.get("name") or "",
            "price": float(product.get("price") or 0),
            "quantity": quantity,
            "image": product.get("image") or "",
            "category": category,
        })

    total = round(sum(i["price"] * i["quantity"] for i in items), 2)
    order = {
        "order_number": generate_order_number(),
        "user_id": str(user["_id"]) if user else None,
        "items": items,
        "name": name,
        "phone": phone,
        "email": email,
        "address": address,
        "total": total,
        "status": "placed",
        "date": datetime.now(timezone.utc).isoformat(),
    }
    order["_id"] = db["order"].insert_one(order).inserted_id
    logger.info("Order %s placed with %d items", order["order_number"], len(items))
    return order


def list_orders(db, user_id: str) -> List[Dict[str, Any]]:
    return list(db["order"].find({"user_id": user_id}).sort("date", -1))
