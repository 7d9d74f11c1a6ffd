"""
Module: connectors.inventory_store

Product and sales persistence behind a small async interface. The hosted
backend is Supabase (tables ``products`` and ``sales`` keyed by ``user_code``);
an in-memory store with a demo pharmacy catalogue serves development and tests.
"""

import asyncio
import logging
from abc import ABC, abstractmethod
from datetime import datetime, timezone
from typing import Any

from pydantic import ValidationError

from config.config import StoreSettings
from models.inventory import Product, Sale

logger = logging.getLogger(__name__)


class StoreError(Exception):
    """Raised when a store read or write fails."""


def product_from_row(row: dict[str, Any]) -> Product:
    return Product(
        id=str(row["id"]),
        name=row["name"],
        sku=row.get("sku", ""),
        price=float(row["price"]),
        current_stock=int(row["current_stock"]),
        category=row.get("category", ""),
        reorder_level=int(row.get("reorder_level") or 0),
        last_sold=row.get("last_sold"),
        image=row.get("image"),
    )


def sale_from_row(row: dict[str, Any]) -> Sale:
    return Sale(
        id=str(row["id"]),
        user_code=row["user_code"],
        product_id=str(row["product_id"]),
        quantity=int(row["quantity"]),
        total_amount=float(row["total_amount"]),
        timestamp=row["timestamp"],
    )


# Product field name -> column name, for the fields a caller may update
PRODUCT_COLUMNS = {
    "name": "name",
    "sku": "sku",
    "price": "price",
    "current_stock": "current_stock",
    "category": "category",
    "reorder_level": "reorder_level",
    "last_sold": "last_sold",
    "image": "image",
}


def product_update_row(fields: dict[str, Any]) -> dict[str, Any]:
    row = {}
    for key, value in fields.items():
        if key not in PRODUCT_COLUMNS:
            continue
        row[PRODUCT_COLUMNS[key]] = value.isoformat() if isinstance(value, datetime) else value
    return row


class InventoryStore(ABC):
    """Abstract interface for product and sale persistence."""

    @abstractmethod
    async def list_products(self, user_code: str) -> list[Product]:
        """Products owned by a user."""
        ...

    @abstractmethod
    async def list_sales(self, user_code: str) -> list[Sale]:
        """Sales recorded by a user, oldest first."""
        ...

    @abstractmethod
    async def insert_sale(self, sale: Sale) -> Sale:
        """Persist a sale and return it as stored, carrying the store's id."""
        ...

    @abstractmethod
    async def update_product(self, product_id: str, fields: dict[str, Any]) -> None:
        """Apply a partial update to one product."""
        ...


class InMemoryInventoryStore(InventoryStore):
    """
    Ephemeral store for development and testing.
    Seeded with a small demo catalogue unless ``products`` is given.
    """

    def __init__(self, products: dict[str, list[Product]] | None = None, sales: list[Sale] | None = None):
        source = DEMO_PRODUCTS if products is None else products
        self._products: dict[str, list[Product]] = {
            code: [p.model_copy() for p in items] for code, items in source.items()
        }
        self._sales: list[Sale] = list(sales or [])

    async def list_products(self, user_code: str) -> list[Product]:
        return [p.model_copy() for p in self._products.get(user_code, [])]

    async def list_sales(self, user_code: str) -> list[Sale]:
        return sorted((s for s in self._sales if s.user_code == user_code), key=lambda s: s.timestamp)

    async def insert_sale(self, sale: Sale) -> Sale:
        self._sales.append(sale)
        return sale

    async def update_product(self, product_id: str, fields: dict[str, Any]) -> None:
        for items in self._products.values():
            for i, product in enumerate(items):
                if product.id == product_id:
                    try:
                        items[i] = Product.model_validate({**product.model_dump(), **fields})
                    except ValidationError as e:
                        raise StoreError(f"Invalid update for product {product_id}: {e}") from e
                    return
        raise StoreError(f"Product {product_id} not found")


class SupabaseInventoryStore(InventoryStore):
    """
    Store backed by Supabase tables. The ``supabase`` client is synchronous,
    so each query runs in a worker thread.
    """

    def __init__(self, client: Any):
        self.client = client

    @classmethod
    def from_settings(cls, settings: StoreSettings) -> "SupabaseInventoryStore":
        from supabase import create_client

        return cls(create_client(settings.supabase_url, settings.supabase_key))

    async def _execute(self, description: str, query: Any) -> list[dict[str, Any]]:
        try:
            response = await asyncio.to_thread(query.execute)
        except Exception as e:
            logger.error(f"Supabase {description} failed: {e}")
            raise StoreError(f"{description} failed: {e}") from e
        return response.data or []

    async def list_products(self, user_code: str) -> list[Product]:
        rows = await self._execute(
            "product query", self.client.table("products").select("*").eq("user_code", user_code)
        )
        try:
            return [product_from_row(r) for r in rows]
        except (KeyError, ValueError, ValidationError) as e:
            raise StoreError(f"Malformed product row: {e}") from e

    async def list_sales(self, user_code: str) -> list[Sale]:
        rows = await self._execute(
            "sales query",
            self.client.table("sales").select("*").eq("user_code", user_code).order("timestamp"),
        )
        try:
            return [sale_from_row(r) for r in rows]
        except (KeyError, ValueError, ValidationError) as e:
            raise StoreError(f"Malformed sale row: {e}") from e

    async def insert_sale(self, sale: Sale) -> Sale:
        # The table assigns ids; the inserted row is returned with it
        row = {
            "user_code": sale.user_code,
            "product_id": sale.product_id,
            "quantity": sale.quantity,
            "total_amount": sale.total_amount,
            "timestamp": sale.timestamp.isoformat(),
        }
        inserted = await self._execute("sale insert", self.client.table("sales").insert(row))
        if not inserted or inserted[0].get("id") is None:
            logger.warning(f"Sale insert returned no id; keeping local id {sale.id}")
            return sale
        return sale.model_copy(update={"id": str(inserted[0]["id"])})

    async def update_product(self, product_id: str, fields: dict[str, Any]) -> None:
        row = product_update_row(fields)
        if not row:
            return
        await self._execute("product update", self.client.table("products").update(row).eq("id", product_id))


def create_inventory_store(settings: StoreSettings) -> InventoryStore:
    """
    Returns a SupabaseInventoryStore when credentials are configured,
    InMemoryInventoryStore otherwise.
    """
    if settings.is_configured:
        try:
            store = SupabaseInventoryStore.from_settings(settings)
            logger.info("Using Supabase-backed inventory store")
            return store
        except Exception:
            logger.exception("Failed to create Supabase client, falling back to in-memory store")
    else:
        logger.warning("Supabase credentials not configured. Using in-memory demo data.")
    return InMemoryInventoryStore(sales=demo_sales())


def _demo(pid: str, name: str, sku: str, price: float, stock: int, category: str, reorder: int) -> Product:
    return Product(
        id=pid, name=name, sku=sku, price=price, current_stock=stock, category=category, reorder_level=reorder
    )


DEMO_PRODUCTS: dict[str, list[Product]] = {
    "user_001": [
        _demo("prod_001", "Paracetamol 500mg", "PAR-500", 24.0, 120, "OTC", 30),
        _demo("prod_002", "Amoxicillin 250mg", "AMX-250", 85.5, 8, "Prescription", 20),
        _demo("prod_003", "Adhesive Bandages", "BND-100", 35.0, 0, "First Aid", 15),
        _demo("prod_004", "Baby Diaper Rash Cream", "BBY-020", 62.0, 14, "Baby Care", 10),
    ],
    "user_002": [
        _demo("prod_101", "Ibuprofen 200mg", "IBU-200", 30.0, 60, "OTC", 25),
        _demo("prod_102", "Cetirizine 10mg", "CET-010", 18.75, 5, "OTC", 20),
    ],
}


def demo_sales(user_code: str = "user_001") -> list[Sale]:
    """A short, deterministic sales history for the demo catalogue."""
    base = datetime(2024, 1, 15, 10, 30, tzinfo=timezone.utc)
    catalogue = {p.id: p for p in DEMO_PRODUCTS.get(user_code, [])}
    history = []
    for i, (pid, qty) in enumerate([("prod_001", 2), ("prod_002", 1), ("prod_001", 3), ("prod_004", 1)]):
        if pid not in catalogue:
            continue
        history.append(
            Sale(
                id=f"sale_demo_{i}",
                user_code=user_code,
                product_id=pid,
                quantity=qty,
                total_amount=catalogue[pid].price * qty,
                timestamp=base.replace(hour=10 + i),
            )
        )
    return history
