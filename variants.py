"""
Color variant lookup for the product detail view.
"""
from typing import Any, Dict, FrozenSet, List, Tuple

from catalog import slugify

SUFFIX_MARKERS = frozenset({"pro", "max", "plus", "mini", "ultra"})


def _tokens(value: Any) -> List[str]:
    return [t for t in slugify(value or "").split("-") if t]


def model_signature(doc: Dict[str, Any]) -> Tuple[str, FrozenSet[str]]:
    """Lowercase model plus the suffix markers that distinguish sibling models.

    For iPhones the markers are also read from the product id, because
    older documents carry "iPhone 15" as model with "pro"/"max" only in the id.
    Color words are ignored so that e.g. a "Pro Blue" finish is not read as a suffix.
    """
    model = (doc.get("model") or "").lower().strip()
    markers = set(_tokens(model)) & SUFFIX_MARKERS

    brand = (doc.get("brand") or "").lower()
    if brand == "apple" and "iphone" in model.replace(" ", ""):
        color_tokens = set(_tokens(doc.get("color")))
        id_tokens = set(_tokens(str(doc.get("_id", "")))) - color_tokens
        markers |= id_tokens & SUFFIX_MARKERS

    return model, frozenset(markers)


def _variant(doc: Dict[str, Any]) -> Dict[str, Any]:
    return {"id": str(doc["_id"]), "color": doc.get("color") or "", "image": doc.get("image") or ""}


def find_color_variants(db, category: str, product: Dict[str, Any]) -> List[Dict[str, Any]]:
    """Sibling documents that differ from `product` only by color.

    Same collection, same brand (case-insensitive), model and memory, same
    model signature. One entry per color, the given product first.
    """
    if not product.get("color") or not product.get("model"):
        return [_variant(product)]

    brand = (product.get("brand") or "").lower()
    memory = product.get("memory")
    signature = model_signature(product)

    query: Dict[str, Any] = {"model": product["model"]}
    if memory:
        query["memory"] = memory

    siblings = []
    seen = {(product.get("color") or "").lower()}
    for doc in db[category].find(query):
        if doc["_id"] == product["_id"]:
            continue
        if (doc.get("brand") or "").lower() != brand:
            continue
        color = (doc.get("color") or "").lower()
        if not color or color in seen:
            continue
        if model_signature(doc) != signature:
            continue
        seen.add(color)
        siblings.append(_variant(doc))

    siblings.sort(key=lambda v: v["color"].lower())
    return [_variant(product)] + siblings
