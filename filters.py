"""
Facet filters for category listings.
"""
import math
from typing import Any, Dict, Iterable, List, Optional

EXCLUDED_FIELDS = {
    "_id",
    "id",
    "name",
    "description",
    "image",
    "images",
    "created_at",
    "updated_at",
    "search_keywords",
    "click_count",
    "favorite_count",
    "cart_count",
    "popularity_score",
    "rating",
    "review_count",
    "category",
    "quantity",
    "price",
}

FILTER_NAMES = {
    "brand": "Brand",
    "memory": "Memory",
    "screen_size": "Screen Size",
    "camera": "Camera",
    "color": "Color",
    "resolution": "Resolution",
}


def filter_name(key: str) -> str:
    return FILTER_NAMES.get(key) or key.replace("_", " ").capitalize()


def value_sort_key(value):
    # numbers before strings, each in natural order
    if isinstance(value, (int, float)):
        return (0, value, "")
    return (1, 0, str(value))


def extract_filters(products: Iterable[Dict[str, Any]]) -> List[Dict[str, Any]]:
    """Checkbox facets with value counts, plus a price range rounded to hundreds."""
    counts: Dict[str, Dict[Any, int]] = {}
    low, high = math.inf, 0.0

    for product in products:
        price = product.get("price")
        if isinstance(price, (int, float)) and not isinstance(price, bool):
            low = min(low, price)
            high = max(high, price)

        for key, value in product.items():
            if key in EXCLUDED_FIELDS or isinstance(value, bool):
                continue
            if isinstance(value, (str, int, float)) and value != "":
                counts.setdefault(key, {})
                counts[key][value] = counts[key].get(value, 0) + 1

    filters: List[Dict[str, Any]] = [
        {
            "name": filter_name(key),
            "key": key,
            "type": "checkbox",
            "values": [{"value": v, "count": c} for v, c in sorted(values.items(), key=lambda i: value_sort_key(i[0]))],
        }
        for key, values in counts.items()
    ]

    if low != math.inf and high > 0 and high >= low:
        filters.insert(0, {
            "name": "Price",
            "key": "price",
            "type": "range",
            "values": [],
            "min": math.floor(low / 100) * 100,
            "max": math.ceil(high / 100) * 100,
        })
    return filters


def apply_filters(products: Iterable[Dict[str, Any]], active: Dict[str, List[Any]],
                  min_price: Optional[float] = None, max_price: Optional[float] = None) -> List[Dict[str, Any]]:
    """Keep products matching every active facet; an empty facet matches everything.

    Values are compared as strings since query parameters arrive as text.
    """
    wanted = {k: {str(v) for v in vs} for k, vs in active.items() if vs}
    result = []
    for product in products:
        if min_price is not None or max_price is not None:
            price = product.get("price")
            if not isinstance(price, (int, float)):
                continue
            if min_price is not None and price < min_price:
                continue
            if max_price is not None and price > max_price:
                continue
        if all(str(product.get(k)) in vs for k, vs in wanted.items()):
            result.append(product)
    return result


def active_facets(products: Iterable[Dict[str, Any]], params: Iterable) -> Dict[str, List[str]]:
    """Collect facet selections from query parameters.

    Only keys some product actually carries, and which are not bookkeeping
    fields, count as facets; anything else is ignored.
    """
    known = {k for p in products for k in p} - EXCLUDED_FIELDS
    active: Dict[str, List[str]] = {}
    for key, value in params:
        if key in known:
            active.setdefault(key, []).append(value)
    return active


def sort_products(products: List[Dict[str, Any]], sort: str) -> List[Dict[str, Any]]:
    """Sort by one attribute, "-key" for descending. Products lacking it go last.

    Numbers rank before strings so mixed attribute bags still compare.
    """
    key = sort.lstrip("-")
    present = [p for p in products if p.get(key) is not None]
    missing = [p for p in products if p.get(key) is None]
    present.sort(key=lambda p: value_sort_key(p[key]), reverse=sort.startswith("-"))
    return present + missing
