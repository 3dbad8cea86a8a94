"""Product-format discovery for dataLayer entries.

Shops push product data in three shapes:

- FLAT: a flat item array under ``ecommerce.items``
- ACTION_KEYED: arrays nested under an action, ``ecommerce.<action>.products``,
  plus the ``ecommerce.impressions`` list
- FREEFORM: anything else, found by a bounded recursive search for an
  array of objects that carry an identifier and a price

Discovery returns one tagged result with the items already normalized to
``ProductRecord``.
"""

import logging
from typing import Any, Dict, List, Optional, Sequence, Tuple

from ..models.funnel import DiscoveredProducts, ProductFormat, ProductRecord

logger = logging.getLogger(__name__)

IDENTIFIER_KEYS = {"id", "item_id", "product_id", "sku", "name", "item_name", "product_name", "title"}
PRICE_KEYS = {"price", "item_price", "product_price"}
PRODUCT_CONTAINER_KEYS = {"products", "items", "product", "cart_data", "cart_items", "order_items"}
ACTION_KEYS = ("detail", "add", "checkout", "purchase", "click", "remove")

FIELD_ALIASES: Dict[str, Tuple[str, ...]] = {
    "id": ("id", "item_id", "product_id", "sku"),
    "name": ("name", "item_name", "product_name", "title"),
    "price": ("price", "item_price", "product_price"),
    "brand": ("brand", "item_brand", "product_brand"),
    "category": ("category", "item_category", "product_category"),
    "variant": ("variant", "item_variant", "product_variant"),
    "quantity": ("quantity", "item_quantity", "qty"),
}


def is_product_like(value: Any) -> bool:
    """True for a mapping with an identifier key and a price key (case-insensitive)."""
    if not isinstance(value, dict):
        return False
    keys = {str(key).lower() for key in value}
    return bool(keys & IDENTIFIER_KEYS) and bool(keys & PRICE_KEYS)


def find_product_array(value: Any, max_depth: int, path: str = "") -> Optional[Tuple[List[dict], str]]:
    """Depth-limited search for a product list (or single product) under a known key.

    Returns:
        ``(products, dotted_path)`` for the first hit in key order, or None
    """
    if max_depth <= 0 or not isinstance(value, dict):
        return None

    for key, child in value.items():
        child_path = f"{path}.{key}" if path else str(key)

        if str(key).lower() in PRODUCT_CONTAINER_KEYS:
            if isinstance(child, list) and child and is_product_like(child[0]):
                return child, child_path
            if is_product_like(child):
                return [child], child_path

        if isinstance(child, dict):
            found = find_product_array(child, max_depth - 1, child_path)
            if found:
                return found

    return None


def _stringify(value: Any) -> str:
    if isinstance(value, bool):
        return "true" if value else "false"
    if isinstance(value, float) and value.is_integer():
        return str(int(value))
    return str(value)


def normalize_product(product: Any) -> Optional[ProductRecord]:
    """Map a vendor-specific product object onto ProductRecord.

    For each field the first alias with a non-empty value wins; values are
    kept as strings so prices compare exactly as they were pushed.
    """
    if not isinstance(product, dict):
        return None

    fields = {}
    for field, aliases in FIELD_ALIASES.items():
        for alias in aliases:
            value = product.get(alias)
            if value is not None and value != "":
                fields[field] = _stringify(value)
                break
    return ProductRecord(**fields)


def _event_name(entry: Dict[str, Any]) -> Optional[str]:
    event = entry.get("event")
    return event if isinstance(event, str) and event else None


def _discovered(
    fmt: ProductFormat,
    path: str,
    products: Sequence[Any],
    event: Optional[str],
    action: Optional[str] = None
) -> DiscoveredProducts:
    items = [record for record in (normalize_product(p) for p in products) if record is not None]
    return DiscoveredProducts(format=fmt, path=path, event=event, action=action, items=items)


def discover_products(entry: Any, search_depth: int = 4) -> Optional[DiscoveredProducts]:
    """Discover product data in one dataLayer entry.

    Args:
        entry: dataLayer entry
        search_depth: Recursion limit for the freeform search

    Returns:
        DiscoveredProducts, or None when the entry carries no product data
    """
    if not isinstance(entry, dict):
        return None
    event = _event_name(entry)
    ecommerce = entry.get("ecommerce")

    if isinstance(ecommerce, dict):
        items = ecommerce.get("items")
        if isinstance(items, list) and items:
            return _discovered(ProductFormat.FLAT, "ecommerce.items", items, event)

        for action in ACTION_KEYS:
            block = ecommerce.get(action)
            if isinstance(block, dict):
                products = block.get("products")
                if isinstance(products, list) and products:
                    return _discovered(
                        ProductFormat.ACTION_KEYED, f"ecommerce.{action}.products", products, event, action
                    )

        impressions = ecommerce.get("impressions")
        if isinstance(impressions, list) and impressions and is_product_like(impressions[0]):
            return _discovered(
                ProductFormat.ACTION_KEYED, "ecommerce.impressions", impressions, event, "impressions"
            )

    found = find_product_array(entry, search_depth)
    if found:
        products, path = found
        logger.debug(f"Freeform product data at {path}")
        return _discovered(ProductFormat.FREEFORM, path, products, event)

    return None
