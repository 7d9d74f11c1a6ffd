"""
Inventory-related data models.
Includes User, Product and Sale records plus the derived InventoryStats and
RestockSuggestion views computed by the session.
"""

import uuid
from datetime import datetime, timezone

from pydantic import BaseModel, ConfigDict, Field

from .enums import RestockPriority


def utc_now() -> datetime:
    return datetime.now(timezone.utc)


class User(BaseModel):
    """A logged-in shop user. ``code`` scopes every store query."""

    id: str
    code: str
    name: str
    email: str
    business_name: str


class Product(BaseModel):
    """Product record as cached by a session."""

    id: str
    name: str
    sku: str
    price: float
    current_stock: int = Field(ge=0)
    category: str
    reorder_level: int = Field(default=0, ge=0)
    last_sold: datetime | None = None
    image: str | None = None

    @property
    def is_out_of_stock(self) -> bool:
        return self.current_stock == 0

    @property
    def needs_restock(self) -> bool:
        return self.current_stock <= self.reorder_level


class Sale(BaseModel):
    """
    A single sale line. ``total_amount`` is unit price times quantity at the
    moment of sale and is never recomputed. Sales are append-only.
    """

    model_config = ConfigDict(frozen=True)

    id: str = Field(default_factory=lambda: f"sale_{uuid.uuid4().hex[:12]}")
    user_code: str
    product_id: str
    quantity: int = Field(gt=0)
    total_amount: float
    timestamp: datetime = Field(default_factory=utc_now)


class CartItem(BaseModel):
    product: Product
    quantity: int


class InventoryStats(BaseModel):
    total_items: int
    low_stock: int
    out_of_stock: int
    categories: dict[str, int] = Field(default_factory=dict)


class RestockSuggestion(BaseModel):
    product_id: str
    product_name: str
    current_stock: int
    suggested_quantity: int
    priority: RestockPriority
    reason: str
