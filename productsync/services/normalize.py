# productsync/services/normalize.py
"""
Single boundary between the two product shapes Shopify hands us and the
canonical dict the rest of the app diffs and writes.

  - REST (webhook payloads, /products/{id}.json): snake_case, plain lists.
  - GraphQL (resource picker, Admin GraphQL): camelCase, gid:// ids,
    connections as {edges: [{node}]} or {nodes: [...]}.

Canonical keys are the REST names, so a canonical product can be sent back
as an update payload and normalizing it a second time changes nothing.
"""
from typing import Any, Iterable, List, Optional

from ..errors import NormalizationError

WEIGHT_UNITS = {
    "pounds": "lb",
    "kilograms": "kg",
    "grams": "g",
    "ounces": "oz",
}

REQUIRED_FIELDS = ("status", "variants", "options")


def parse_id(value: Any) -> Optional[int]:
    """`gid://shopify/Product/123`, `"123"` and `123` all become 123."""
    if value is None or value == "":
        return None
    if isinstance(value, bool):
        raise NormalizationError(f"invalid id {value!r}")
    if isinstance(value, int):
        return value
    if isinstance(value, float) and value.is_integer():
        return int(value)
    tail = str(value).rsplit("/", 1)[-1]
    try:
        return int(tail)
    except ValueError:
        raise NormalizationError(f"invalid id {value!r}") from None


def _pick(obj: dict, *names: str, default: Any = None) -> Any:
    for name in names:
        val = obj.get(name)
        if val is not None:
            return val
    return default


def _nodes(value: Any) -> List[dict]:
    if value is None:
        return []
    if isinstance(value, dict):
        if "edges" in value:
            return [e.get("node") or {} for e in (value.get("edges") or [])]
        return list(value.get("nodes") or [])
    return list(value)


def _lower(value: Any) -> Optional[str]:
    return value.lower() if isinstance(value, str) else value


def _float(value: Any) -> Optional[float]:
    if value is None or value == "":
        return None
    if isinstance(value, dict):  # MoneyV2
        value = value.get("amount")
    try:
        return float(value)
    except (TypeError, ValueError):
        raise NormalizationError(f"invalid amount {value!r}") from None


def weight_unit(value: Optional[str]) -> Optional[str]:
    if not value:
        return value
    unit = value.lower()
    return WEIGHT_UNITS.get(unit, unit)


def split_tags(tags: Any) -> List[str]:
    if not tags:
        return []
    if isinstance(tags, str):
        tags = tags.split(",")
    return [t.strip() for t in tags if t and t.strip()]


def join_tags(tags: Iterable[str]) -> str:
    return ", ".join(tags)


def strip_marker(tags: str, markers: Iterable[str]) -> str:
    drop = {m.lower() for m in markers if m}
    return join_tags(t for t in split_tags(tags) if t.lower() not in drop)


def add_marker(tags: str, marker: str) -> str:
    current = split_tags(tags)
    if marker.lower() not in (t.lower() for t in current):
        current.append(marker)
    return join_tags(current)


def _option(raw: dict) -> dict:
    values = raw.get("values")
    if values is None:
        values = [v.get("name") for v in (raw.get("optionValues") or [])]
    return {
        "id": parse_id(raw.get("id")),
        "name": raw.get("name"),
        "position": raw.get("position"),
        "values": list(values),
    }


def _variant(raw: dict) -> dict:
    inventory_item = raw.get("inventoryItem") or {}
    measurement = (inventory_item.get("measurement") or {}).get("weight") or {}
    selected = [o.get("value") for o in (raw.get("selectedOptions") or [])]
    selected += [None] * (3 - len(selected))

    fulfillment = raw.get("fulfillment_service")
    if fulfillment is None:
        service = raw.get("fulfillmentService")
        fulfillment = service.get("type") if isinstance(service, dict) else service

    product_ref = raw.get("product")
    return {
        "id": parse_id(raw.get("id")),
        "product_id": parse_id(_pick(raw, "product_id", "productId",
                                     default=product_ref.get("id") if isinstance(product_ref, dict) else None)),
        "barcode": raw.get("barcode"),
        "price": _float(raw.get("price")),
        "compare_at_price": _float(_pick(raw, "compare_at_price", "compareAtPrice")),
        "sku": raw.get("sku"),
        "position": raw.get("position"),
        "option1": _pick(raw, "option1", default=selected[0]),
        "option2": _pick(raw, "option2", default=selected[1]),
        "option3": _pick(raw, "option3", default=selected[2]),
        "inventory_item_id": parse_id(_pick(raw, "inventory_item_id", default=inventory_item.get("id"))),
        "inventory_management": _lower(_pick(raw, "inventory_management", "inventoryManagement")),
        "inventory_policy": _lower(_pick(raw, "inventory_policy", "inventoryPolicy")),
        "inventory_quantity": _pick(raw, "inventory_quantity", "inventoryQuantity"),
        "weight": _pick(raw, "weight", default=measurement.get("value")),
        "weight_unit": weight_unit(_pick(raw, "weight_unit", "weightUnit", default=measurement.get("unit"))),
        "requires_shipping": _pick(raw, "requires_shipping", "requiresShipping",
                                   default=inventory_item.get("requiresShipping")),
        "taxable": raw.get("taxable"),
        "fulfillment_service": _lower(fulfillment),
        "title": raw.get("title"),
    }


def _image(raw: dict) -> dict:
    return {
        "id": parse_id(raw.get("id")),
        "src": _pick(raw, "src", "url", "originalSrc"),
        "alt": _pick(raw, "alt", "altText"),
        "position": raw.get("position"),
    }


def normalize(product: Any) -> dict:
    if not isinstance(product, dict):
        raise NormalizationError(f"expected a product mapping, got {type(product).__name__}")
    for name in REQUIRED_FIELDS:
        if product.get(name) is None:
            raise NormalizationError(f"product {product.get('id')!r} is missing '{name}'")

    normalized = {
        "body_html": _pick(product, "body_html", "descriptionHtml", "bodyHtml"),
        "handle": product.get("handle"),
        "id": parse_id(product.get("id")),
        "product_type": _pick(product, "product_type", "productType", default=""),
        "published_scope": _pick(product, "published_scope", "publishedScope", default="web"),
        "status": str(product["status"]).lower(),
        "template_suffix": _pick(product, "template_suffix", "templateSuffix", default=""),
        "title": product.get("title"),
        "vendor": product.get("vendor"),
        "tags": join_tags(split_tags(product.get("tags"))),
        "options": [_option(o) for o in _nodes(product["options"])],
        "variants": [_variant(v) for v in _nodes(product["variants"])],
    }

    images = _nodes(product.get("images"))
    if images:
        normalized["images"] = [_image(i) for i in images]
    return normalized
