"""
HTTP API for the inventory point-of-sale backend.

Clients log in to obtain a session token and send it back in the
``X-Session-Token`` header. Every handler works on the caller's AppSession.

Run with: uvicorn api.app:app --reload
"""

from typing import Any

from fastapi import Depends, FastAPI, Header, HTTPException, Request, status
from pydantic import BaseModel

from config.config import AppSettings
from connectors.inventory_store import InventoryStore, create_inventory_store
from models.analytics import AnalysisReport
from models.inventory import InventoryStats, Product, RestockSuggestion, Sale
from services.session import AppSession, InvalidOperationError, SessionManager, UnknownProductError
from services.webhook_catalog import integration_status
from services.webhooks import WebhookDispatcher
from utils import get_logger

logger = get_logger("inventory-api")


class LoginRequest(BaseModel):
    email: str
    password: str


class LoginResponse(BaseModel):
    token: str
    user_code: str
    name: str
    business_name: str


class SaleRequest(BaseModel):
    product_id: str
    quantity: int = 1


class ProductUpdate(BaseModel):
    name: str | None = None
    price: float | None = None
    current_stock: int | None = None
    category: str | None = None
    reorder_level: int | None = None


class CartLine(BaseModel):
    product_id: str
    name: str
    quantity: int
    unit_price: float


class CartView(BaseModel):
    items: list[CartLine]
    total: float


def create_app(
    settings: AppSettings | None = None,
    store: InventoryStore | None = None,
    dispatcher: WebhookDispatcher | None = None,
) -> FastAPI:
    settings = settings or AppSettings.from_env()
    store = store or create_inventory_store(settings.store)
    dispatcher = dispatcher or WebhookDispatcher(settings.webhooks)

    app = FastAPI(
        title="Inventory POS API",
        description="Inventory, sales and heuristic analytics with webhook delivery",
        version="1.0.0",
    )
    app.state.settings = settings
    app.state.dispatcher = dispatcher
    app.state.sessions = SessionManager(store, dispatcher, analytics_config=settings.analytics)

    @app.on_event("shutdown")
    async def shutdown_event():
        await dispatcher.aclose()

    def get_session(request: Request, x_session_token: str | None = Header(default=None)) -> AppSession:
        session = request.app.state.sessions.get(x_session_token) if x_session_token else None
        if session is None:
            raise HTTPException(status_code=status.HTTP_401_UNAUTHORIZED, detail="Not logged in")
        return session

    @app.post("/auth/login", response_model=LoginResponse)
    async def login(body: LoginRequest, request: Request):
        result = await request.app.state.sessions.login(body.email, body.password)
        if result is None:
            logger.warning(f"Failed login attempt for {body.email}")
            raise HTTPException(status_code=status.HTTP_401_UNAUTHORIZED, detail="Invalid credentials")
        token, session = result
        logger.info(f"User {session.user.code} logged in")
        return LoginResponse(
            token=token,
            user_code=session.user.code,
            name=session.user.name,
            business_name=session.user.business_name,
        )

    @app.post("/auth/logout", status_code=status.HTTP_204_NO_CONTENT)
    async def logout(request: Request, x_session_token: str | None = Header(default=None)):
        if not x_session_token or not request.app.state.sessions.logout(x_session_token):
            raise HTTPException(status_code=status.HTTP_401_UNAUTHORIZED, detail="Not logged in")

    @app.get("/products", response_model=list[Product])
    async def list_products(session: AppSession = Depends(get_session)):
        return session.products

    @app.patch("/products/{product_id}", response_model=Product)
    async def update_product(product_id: str, body: ProductUpdate, session: AppSession = Depends(get_session)):
        try:
            return await session.update_product(product_id, **body.model_dump(exclude_none=True))
        except UnknownProductError as e:
            raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail=str(e))
        except InvalidOperationError as e:
            raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail=str(e))

    @app.get("/sales", response_model=list[Sale])
    async def list_sales(session: AppSession = Depends(get_session)):
        return session.sales

    @app.post("/sales", response_model=Sale, status_code=status.HTTP_201_CREATED)
    async def record_sale(body: SaleRequest, session: AppSession = Depends(get_session)):
        try:
            return await session.record_sale(body.product_id, body.quantity)
        except UnknownProductError as e:
            raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail=str(e))
        except InvalidOperationError as e:
            raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail=str(e))

    @app.get("/cart", response_model=CartView)
    async def get_cart(session: AppSession = Depends(get_session)):
        items, total = session.current_sale()
        return CartView(
            items=[
                CartLine(
                    product_id=i.product.id,
                    name=i.product.name,
                    quantity=i.quantity,
                    unit_price=i.product.price,
                )
                for i in items
            ],
            total=total,
        )

    @app.delete("/cart", status_code=status.HTTP_204_NO_CONTENT)
    async def clear_cart(session: AppSession = Depends(get_session)):
        session.clear_current_sale()

    @app.get("/inventory/stats", response_model=InventoryStats)
    async def inventory_stats(session: AppSession = Depends(get_session)):
        return session.inventory_stats

    @app.get("/inventory/restock-suggestions", response_model=list[RestockSuggestion])
    async def restock_suggestions(session: AppSession = Depends(get_session)):
        return session.restock_suggestions

    @app.post("/analysis/run", response_model=AnalysisReport)
    async def run_analysis(session: AppSession = Depends(get_session)):
        return await session.run_analysis()

    @app.get("/integrations/status")
    async def integrations_status(request: Request) -> dict[str, Any]:
        return integration_status(request.app.state.settings.webhooks)

    return app


app = create_app()
