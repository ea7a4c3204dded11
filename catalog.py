"""
Catalog helpers: category collections, product ids and display names.
"""
import re
from typing import Any, Dict, List, Optional, Tuple

CATEGORIES: List[str] = ["mobile", "laptops", "gaming", "tv", "audio"]

# Attributes concatenated into the product id, per category
ID_FIELDS: Dict[str, List[str]] = {
    "mobile": ["brand", "model", "memory", "color"],
    "laptops": ["brand", "model", "processor", "ram", "storage_type", "color"],
    "gaming": ["brand", "model", "device_type", "color"],
    "tv": ["brand", "diagonal", "model", "model_number"],
    "audio": ["brand", "model", "subtype", "color"],
}

_NON_ALNUM = re.compile(r"[^a-z0-9]+")


def is_category(name: str) -> bool:
    return name in CATEGORIES


def slugify(value: str) -> str:
    return _NON_ALNUM.sub("-", str(value).lower()).strip("-")


def generate_product_id(category: str, product: Dict[str, Any]) -> str:
    """Build the immutable product id from the category's identifying attributes.

    Missing or empty attributes are skipped. Returns "" when nothing usable is set.
    """
    parts = [str(product[f]) for f in ID_FIELDS[category] if product.get(f)]
    return slugify(" ".join(parts))


def find_product(db, product_id: str, categories: Optional[List[str]] = None) -> Optional[Tuple[str, dict]]:
    """Locate a product by id across category collections.

    Returns (category, document) for the first collection holding the id.
    """
    for category in categories or CATEGORIES:
        doc = db[category].find_one({"_id": product_id})
        if doc:
            return category, doc
    return None


def _join(*parts) -> str:
    return " ".join(str(p) for p in parts if p)


def format_product_name(category: str, product: Dict[str, Any]) -> str:
    """Compose the display name used when an admin leaves the name blank."""
    brand = product.get("brand") or ""
    model = product.get("model") or ""

    if category == "mobile":
        if not brand or not model:
            return ""
        return _join(brand, model, product.get("memory"), product.get("color"))

    if category == "laptops":
        if not brand or not model:
            return ""
        processor = product.get("processor") or ""
        if brand == "Apple":
            return _join(brand, model, processor.replace("Apple ", ""))
        short_cpu = " ".join(processor.split()[:2])
        return _join(brand, model, short_cpu, product.get("ram"), product.get("storage_type"))

    if category == "tv":
        if not brand:
            return ""
        size = product.get("diagonal") or product.get("screen_size") or ""
        return _join(
            brand,
            f'{size}"' if size else "",
            product.get("resolution"),
            product.get("refresh_rate"),
            product.get("display_type"),
            model,
            product.get("model_number"),
        )

    if category == "gaming":
        if not brand or not model:
            return ""
        connectivity = product.get("connectivity")
        return _join(brand, model, product.get("device_type"), "" if connectivity == "Wired" else connectivity)

    if category == "audio":
        color = product.get("color")
        return _join(brand, model, product.get("connectivity"), product.get("subtype"), color.lower() if color else "")

    return _join(brand, model)
