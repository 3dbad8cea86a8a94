"""E-commerce funnel product-data analysis."""

from .analyzer import CONSISTENCY_FIELDS, FunnelConsistencyAnalyzer
from .formats import discover_products, find_product_array, is_product_like, normalize_product

__all__ = [
    "CONSISTENCY_FIELDS",
    "FunnelConsistencyAnalyzer",
    "discover_products",
    "find_product_array",
    "is_product_like",
    "normalize_product",
]
