"""Models for e-commerce funnel analysis."""

from enum import Enum
from typing import List, Optional

from pydantic import BaseModel, Field


PRODUCT_FIELDS = ("id", "name", "price", "brand", "category", "variant", "quantity")


class ProductFormat(str, Enum):
    """Shape of product data found in a dataLayer entry."""
    FLAT = "flat"                  # ecommerce.items (GA4 style)
    ACTION_KEYED = "action_keyed"  # ecommerce.<action>.products / ecommerce.impressions
    FREEFORM = "freeform"          # found by bounded recursive search


class ProductRecord(BaseModel):
    """Product normalized from any supported schema; every value is a string."""

    id: Optional[str] = None
    name: Optional[str] = None
    price: Optional[str] = None
    brand: Optional[str] = None
    category: Optional[str] = None
    variant: Optional[str] = None
    quantity: Optional[str] = None

    def get(self, field: str) -> Optional[str]:
        return getattr(self, field, None)


class DiscoveredProducts(BaseModel):
    """Product-format discovery result for one dataLayer entry."""

    format: ProductFormat
    path: str = Field(description="Dotted path the products were found at")
    event: Optional[str] = Field(default=None, description="Event name of the entry")
    action: Optional[str] = Field(default=None, description="Action key for action-keyed data")
    items: List[ProductRecord] = Field(default_factory=list)


class ObservedProduct(BaseModel):
    product: ProductRecord
    event: Optional[str] = None
    action: Optional[str] = None
    format: ProductFormat


class StepProducts(BaseModel):
    """Products and events observed in one funnel step."""

    step: str
    stage: Optional[str] = None
    events: List[str] = Field(default_factory=list)
    products: List[ObservedProduct] = Field(default_factory=list)
    format: Optional[ProductFormat] = None
    format_path: Optional[str] = None


class MissingEvents(BaseModel):
    step: str
    expected: List[str]


class StepValue(BaseModel):
    step: str
    value: str


class InconsistentProperty(BaseModel):
    prop: str
    values: List[StepValue]


class StepProduct(BaseModel):
    step: str
    product: ProductRecord


class ConsistencyReport(BaseModel):
    """Funnel product-data consistency report."""

    format: Optional[ProductFormat] = None
    format_path: Optional[str] = None
    focus_product: Optional[ProductRecord] = None
    step_products: List[StepProducts] = Field(default_factory=list)
    missing_events: List[MissingEvents] = Field(default_factory=list)
    steps_with_product: List[StepProduct] = Field(default_factory=list)
    consistent_props: List[str] = Field(default_factory=list)
    inconsistent_props: List[InconsistentProperty] = Field(default_factory=list)

    @property
    def is_consistent(self) -> bool:
        return not self.inconsistent_props
