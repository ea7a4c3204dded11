"""
Scatter-gather product search.

Every category collection is scanned in full and filtered in Python; there
is no server side index. Cost is linear in catalog size.
"""
import logging
import re
from typing import Any, Dict, List

from catalog import CATEGORIES

logger = logging.getLogger(__name__)

_WS = re.compile(r"\s+")

SEARCH_FIELDS = ("name", "brand", "model", "device_type")


def query_variants(query: str) -> List[str]:
    clean = (query or "").lower().strip()
    if not clean:
        return []
    variants = [clean, _WS.sub("", clean)] + clean.split()
    return list(dict.fromkeys(variants))


def _matches(doc: Dict[str, Any], variants: List[str]) -> bool:
    keywords = doc.get("search_keywords")
    if isinstance(keywords, list):
        stored = {k.lower() for k in keywords if isinstance(k, str)}
        if any(v in stored for v in variants):
            return True

    fields = [str(doc.get(f) or "").lower() for f in SEARCH_FIELDS]
    fields.append(f"{fields[1]} {fields[2]}")
    return any(v in field for v in variants for field in fields)


def _summary(doc: Dict[str, Any], category: str) -> Dict[str, Any]:
    return {
        "id": str(doc["_id"]),
        "name": doc.get("name") or "Unnamed Product",
        "brand": doc.get("brand") or "",
        "price": doc.get("price") or 0,
        "image": doc.get("image") or "",
        "category": category,
        "device_type": doc.get("device_type") or "",
        "subtype": doc.get("subtype") or "",
        "description": doc.get("description") or "",
    }


def search_products(db, query: str, limit: int = 10) -> List[Dict[str, Any]]:
    """Search all category collections for `query`.

    Results from the gaming collection come first, then products whose brand
    equals the query; otherwise collection order is kept.
    """
    variants = query_variants(query)
    if not variants:
        return []
    clean = variants[0]

    results: List[Dict[str, Any]] = []
    for category in CATEGORIES:
        for doc in db[category].find({}):
            if _matches(doc, variants):
                results.append(_summary(doc, category))

    results.sort(key=lambda r: (r["category"] != "gaming", r["brand"].lower() != clean))
    logger.debug("Search %r matched %d products", clean, len(results))
    return results[:limit]
