"""
Search keyword generation.

Keywords are computed when a product is written and stored on the document
as `search_keywords`; search only ever matches against that stored list.
"""
import logging
import re
from datetime import datetime, timezone
from typing import Any, Dict, Iterable, List, Optional

from catalog import CATEGORIES

logger = logging.getLogger(__name__)

_STRIP_MODEL = re.compile(r"[\s-]+")


def _dedupe(items: Iterable[str]) -> List[str]:
    return list(dict.fromkeys(i for i in items if i))


def generate_search_keywords(name: str, model_number: Optional[str] = None) -> List[str]:
    """Tokens for a product name plus its model number.

    Every word longer than 2 characters, every contiguous word run starting
    at each position, the model number as typed and the model number with
    whitespace and hyphens removed. Duplicates are dropped, first occurrence
    wins.
    """
    words = (name or "").lower().split()
    keywords: List[str] = [w for w in words if len(w) > 2]

    for i in range(len(words)):
        for j in range(i, len(words)):
            keywords.append(" ".join(words[i:j + 1]))

    if model_number and model_number.strip():
        number = model_number.strip().lower()
        keywords.append(number)
        keywords.append(_STRIP_MODEL.sub("", number))

    return _dedupe(keywords)


def _category_keywords(category: str, product: Dict[str, Any]) -> List[str]:
    brand = (product.get("brand") or "").lower()
    kw: List[str] = []

    if category == "mobile":
        kw += ["mobile", "phone", "smartphone", f"{brand} phone"]

    elif category == "laptops":
        kw += ["laptop", "notebook", f"{brand} laptop"]

    elif category == "gaming":
        device_type = (product.get("device_type") or "").lower()
        if device_type:
            kw += [device_type, f"{brand} {device_type}", f"gaming {device_type}", f"{brand} gaming"]

    elif category == "tv":
        diagonal = str(product.get("diagonal") or "").lower()
        resolution = (product.get("resolution") or "").lower()
        display_type = (product.get("display_type") or "").lower()
        if diagonal:
            kw += [f"{diagonal} inch", f'{diagonal}"', f'{brand} {diagonal}"']
        if resolution:
            kw += [resolution, f"{resolution} tv", f"{brand} {resolution}"]
        if display_type:
            kw += [display_type, f"{display_type} tv", f"{brand} {display_type}"]
        kw += ["tv", "television", f"{brand} tv"]

    elif category == "audio":
        kw += ["audio", "sound"]
        subtype = (product.get("subtype") or "").lower()
        connectivity = (product.get("connectivity") or "").lower()
        if subtype:
            kw += [subtype, f"{brand} {subtype}"]
        if connectivity:
            kw.append(connectivity)
            if subtype:
                kw.append(f"{connectivity} {subtype}")
            if "bluetooth" in connectivity:
                kw += ["bluetooth", "wireless"]

    return [k.strip() for k in kw]


def build_product_keywords(product: Dict[str, Any], category: str) -> List[str]:
    """Full keyword set stored on a product document."""
    brand = (product.get("brand") or "").lower()
    model = (product.get("model") or "").lower()
    color = (product.get("color") or "").lower()

    keywords = generate_search_keywords(product.get("name") or "", product.get("model_number"))
    keywords += [brand, model, color]
    if brand and model:
        keywords.append(f"{brand} {model}")
    keywords += _category_keywords(category, product)
    return _dedupe(keywords)


def reindex_search_keywords(db, categories: Optional[List[str]] = None) -> Dict[str, int]:
    """Regenerate keywords for every product, writing only the ones that changed.

    Returns the number of updated documents per collection.
    """
    updated: Dict[str, int] = {}
    for category in categories or CATEGORIES:
        count = 0
        for doc in db[category].find({}):
            keywords = build_product_keywords(doc, category)
            if sorted(doc.get("search_keywords") or []) != sorted(keywords):
                db[category].update_one(
                    {"_id": doc["_id"]},
                    {"$set": {"search_keywords": keywords, "updated_at": datetime.now(timezone.utc)}},
                )
                count += 1
        logger.info("Updated search keywords for %d products in %s", count, category)
        updated[category] = count
    return updated
