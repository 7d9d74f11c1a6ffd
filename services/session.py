"""
Per-user application state.

An :class:`AppSession` is created when a user logs in and closed when they log
out. It caches the user's products and sales, keeps the open sale (cart), and
derives stock statistics and restock suggestions from the cache on every read.
Request handlers receive the session explicitly; there is no global state.
"""

import asyncio
import logging
import random
import secrets
from collections import Counter
from typing import Any

from pydantic import ValidationError

from config.config import AnalyticsConfig
from connectors.inventory_store import InventoryStore, StoreError
from connectors.user_directory import UserDirectory
from models.analytics import AnalysisReport
from models.enums import RestockPriority
from models.inventory import CartItem, InventoryStats, Product, RestockSuggestion, Sale, User, utc_now
from services.analytics import AnalyticsEngine
from services.webhooks import WebhookDispatcher

logger = logging.getLogger(__name__)

MIN_RESTOCK_QUANTITY = 50


class SessionError(Exception):
    """Base class for rejected session operations."""


class UnknownProductError(SessionError, LookupError):
    pass


class InvalidOperationError(SessionError, ValueError):
    pass


def restock_suggestion(product: Product) -> RestockSuggestion:
    if product.current_stock == 0:
        priority = RestockPriority.HIGH
    elif product.current_stock <= product.reorder_level / 2:
        priority = RestockPriority.MEDIUM
    else:
        priority = RestockPriority.LOW
    return RestockSuggestion(
        product_id=product.id,
        product_name=product.name,
        current_stock=product.current_stock,
        suggested_quantity=max(MIN_RESTOCK_QUANTITY, product.reorder_level * 2),
        priority=priority,
        # TODO: confirm the wording for low-stock reasons with the product owner
        reason="Out of stock" if product.current_stock == 0 else "Low stock",
    )


class AppSession:
    """State container for one logged-in user."""

    def __init__(
        self,
        user: User,
        store: InventoryStore,
        dispatcher: WebhookDispatcher,
        analytics_config: AnalyticsConfig | None = None,
        rng: random.Random | None = None,
    ):
        self.user = user
        self.store = store
        self.dispatcher = dispatcher
        self.analytics_config = analytics_config or AnalyticsConfig()
        self.rng = rng
        self.products: list[Product] = []
        self.sales: list[Sale] = []
        self.cart: list[CartItem] = []
        self._sale_lock = asyncio.Lock()

    @property
    def user_code(self) -> str:
        return self.user.code

    def find_product(self, product_id: str) -> Product | None:
        return next((p for p in self.products if p.id == product_id), None)

    def _replace_product(self, product: Product) -> None:
        self.products = [product if p.id == product.id else p for p in self.products]

    async def load(self) -> bool:
        """
        Refresh the product and sale caches from the store.
        On failure the previous cache is kept and False is returned.
        """
        try:
            products = await self.store.list_products(self.user_code)
            sales = await self.store.list_sales(self.user_code)
        except StoreError as e:
            logger.error(f"Error loading data for {self.user_code}: {e}")
            return False

        self.products = products
        self.sales = sales
        logger.info(f"Loaded {len(products)} products and {len(sales)} sales for {self.user_code}")

        low_stock = [p for p in products if p.needs_restock]
        if low_stock:
            await self.dispatcher.send_low_stock_alert(low_stock, self.user_code)
        return True

    async def record_sale(self, product_id: str, quantity: int) -> Sale:
        """
        Sell ``quantity`` units of a product: add it to the open sale, persist the
        sale and the stock decrement, and notify the sales webhook. The local
        cache is updated even when persistence fails.

        Stock check, cache decrement and store writes run under a per-session
        lock, so concurrent sales see each other's decrements and reach the
        store in order.
        """
        async with self._sale_lock:
            product = self.find_product(product_id)
            if product is None:
                raise UnknownProductError(f"Unknown product {product_id}")
            if quantity <= 0:
                raise InvalidOperationError("Quantity must be positive")
            if quantity > product.current_stock:
                raise InvalidOperationError(
                    f"Only {product.current_stock} units of {product.name} in stock, cannot sell {quantity}"
                )

            existing = next((item for item in self.cart if item.product.id == product_id), None)
            if existing:
                existing.quantity += quantity
            else:
                self.cart.append(CartItem(product=product, quantity=quantity))

            now = utc_now()
            sale = Sale(
                user_code=self.user_code,
                product_id=product_id,
                quantity=quantity,
                total_amount=product.price * quantity,
                timestamp=now,
            )
            remaining = product.current_stock - quantity
            self._replace_product(product.model_copy(update={"current_stock": remaining, "last_sold": now}))
            self.sales.append(sale)

            try:
                stored = await self.store.insert_sale(sale)
                await self.store.update_product(product_id, {"current_stock": remaining, "last_sold": now})
            except StoreError as e:
                logger.error(f"Error saving sale {sale.id}: {e}")
                return sale

            if stored.id != sale.id:
                self.sales = [stored if s is sale else s for s in self.sales]
                sale = stored

        await self.dispatcher.send_sale(sale, self.user_code)
        return sale

    async def update_product(self, product_id: str, **updates: Any) -> Product:
        """Apply a partial update; persistence failures are logged and the cache still changes."""
        product = self.find_product(product_id)
        if product is None:
            raise UnknownProductError(f"Unknown product {product_id}")
        fields = {k: v for k, v in updates.items() if v is not None and k in Product.model_fields and k != "id"}
        try:
            updated = Product.model_validate({**product.model_dump(), **fields})
        except ValidationError as e:
            raise InvalidOperationError(f"Invalid update for {product_id}: {e}") from e

        try:
            await self.store.update_product(product_id, fields)
        except StoreError as e:
            logger.error(f"Error updating product {product_id}: {e}")

        self._replace_product(updated)
        return updated

    def current_sale(self) -> tuple[list[CartItem], float]:
        total = sum(item.product.price * item.quantity for item in self.cart)
        return list(self.cart), total

    def clear_current_sale(self) -> None:
        self.cart = []

    @property
    def inventory_stats(self) -> InventoryStats:
        return InventoryStats(
            total_items=sum(p.current_stock for p in self.products),
            low_stock=sum(1 for p in self.products if 0 < p.current_stock <= p.reorder_level),
            out_of_stock=sum(1 for p in self.products if p.current_stock == 0),
            categories=dict(Counter(p.category for p in self.products)),
        )

    @property
    def restock_suggestions(self) -> list[RestockSuggestion]:
        return [restock_suggestion(p) for p in self.products if p.needs_restock]

    async def run_analysis(self) -> AnalysisReport:
        engine = AnalyticsEngine(self.user_code, self.dispatcher, self.analytics_config, self.rng)
        return await engine.run_full_analysis(list(self.products), list(self.sales))

    def close(self) -> None:
        self.products = []
        self.sales = []
        self.cart = []


class SessionManager:
    """Creates sessions on login and discards them on logout."""

    def __init__(
        self,
        store: InventoryStore,
        dispatcher: WebhookDispatcher,
        directory: UserDirectory | None = None,
        analytics_config: AnalyticsConfig | None = None,
    ):
        self.store = store
        self.dispatcher = dispatcher
        self.directory = directory or UserDirectory()
        self.analytics_config = analytics_config
        self._sessions: dict[str, AppSession] = {}

    async def login(self, email: str, password: str) -> tuple[str, AppSession] | None:
        user = self.directory.authenticate(email, password)
        if user is None:
            return None
        session = AppSession(user, self.store, self.dispatcher, self.analytics_config)
        await session.load()
        token = secrets.token_urlsafe(24)
        self._sessions[token] = session
        logger.info(f"Session opened for {user.code}")
        return token, session

    def get(self, token: str) -> AppSession | None:
        return self._sessions.get(token)

    def logout(self, token: str) -> bool:
        session = self._sessions.pop(token, None)
        if session is None:
            return False
        session.close()
        logger.info(f"Session closed for {session.user_code}")
        return True
