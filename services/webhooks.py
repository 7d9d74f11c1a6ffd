"""
Webhook dispatcher for the automation platform.

Each report or store event is wrapped in a :class:`WebhookEnvelope` and POSTed
to one of the configured endpoints. Delivery is best effort: one attempt, no
retry, and every failure degrades to a log line plus a ``False`` return.
"""

import asyncio
import logging
from collections.abc import Iterable
from typing import Any

import httpx

from config.config import WebhookSettings
from models.analytics import (
    AIPrediction,
    CustomerBehavior,
    DemandForecast,
    InventoryAnomaly,
    PriceOptimization,
)
from models.enums import EndpointKey, WebhookType
from models.inventory import Product, Sale
from models.webhooks import BatchResult, WebhookEnvelope

logger = logging.getLogger(__name__)

# Envelope type -> endpoint key. Types not listed go to the default endpoint.
ROUTING_TABLE: dict[WebhookType, EndpointKey] = {
    WebhookType.SALE: EndpointKey.ALERTS,
    WebhookType.LOW_STOCK_ALERT: EndpointKey.ALERTS,
    WebhookType.AI_PREDICTION: EndpointKey.AI,
    WebhookType.DEMAND_FORECAST: EndpointKey.AI,
    WebhookType.PRICE_OPTIMIZATION: EndpointKey.AI,
    WebhookType.CUSTOMER_BEHAVIOR: EndpointKey.ANALYTICS,
}


def resolve_endpoint_key(webhook_type: WebhookType) -> EndpointKey:
    return ROUTING_TABLE.get(webhook_type, EndpointKey.DEFAULT)


# --- Payload builders --- #


def sale_payload(sale: Sale) -> dict[str, Any]:
    return {
        "id": sale.id,
        "user_code": sale.user_code,
        "product_id": sale.product_id,
        "quantity": sale.quantity,
        "total_amount": sale.total_amount,
        "timestamp": sale.timestamp.isoformat(),
    }


def restock_payload(product: Product) -> dict[str, Any]:
    return {
        "product_id": product.id,
        "product_name": product.name,
        "current_stock": product.current_stock,
        "reorder_level": product.reorder_level,
    }


def low_stock_payload(products: list[Product]) -> dict[str, Any]:
    return {
        "products": [
            {
                "id": p.id,
                "name": p.name,
                "current_stock": p.current_stock,
                "reorder_level": p.reorder_level,
            }
            for p in products
        ],
        "count": len(products),
        "total_affected_products": len(products),
        "urgency_level": low_stock_urgency(products),
    }


def low_stock_urgency(products: list[Product]) -> str:
    """``critical`` when anything is already out of stock, otherwise ``high``."""
    return "critical" if any(p.current_stock == 0 for p in products) else "high"


def demand_forecast_payload(forecast: DemandForecast) -> dict[str, Any]:
    return {
        "product_id": forecast.product_id,
        "product_name": forecast.product_name,
        "current_stock": forecast.current_stock,
        "predicted_demand": forecast.predicted_demand,
        "forecast_period": forecast.period.value,
        "seasonal_factors": dict(forecast.seasonal_factors),
        "trend_direction": forecast.trend.value,
        "recommended_action": forecast.action.value,
        "data_points": forecast.data_points,
    }


def ai_prediction_payload(prediction: AIPrediction) -> dict[str, Any]:
    return {
        "prediction_type": prediction.type.value,
        "product_id": prediction.product_id,
        "predicted_value": prediction.value,
        "confidence_score": prediction.confidence,
        "time_horizon": prediction.time_horizon,
        "factors": list(prediction.factors),
        "accuracy": prediction.accuracy,
    }


def price_optimization_payload(optimization: PriceOptimization) -> dict[str, Any]:
    return {
        "product_id": optimization.product_id,
        "current_price": optimization.current_price,
        "suggested_price": optimization.suggested_price,
        "change_percentage": optimization.change_percentage,
        "expected_impact": optimization.expected_impact.model_dump(),
        "competitor_prices": list(optimization.competitor_prices),
        "elasticity": optimization.elasticity,
        "strategy": optimization.strategy.value,
        "market_conditions": optimization.market_conditions,
    }


def customer_behavior_payload(behavior: CustomerBehavior) -> dict[str, Any]:
    return behavior.model_dump(mode="json")


def inventory_anomaly_payload(anomaly: InventoryAnomaly) -> dict[str, Any]:
    return {
        "anomaly_type": anomaly.type.value,
        "products": list(anomaly.products),
        "severity": anomaly.severity,
        "detection_method": anomaly.method,
        "recommended_actions": list(anomaly.actions),
        "possible_causes": list(anomaly.causes),
        "impact": anomaly.impact.model_dump(),
        "confidence": anomaly.confidence,
    }


def anomaly_priority(anomaly: InventoryAnomaly) -> str:
    return "high" if anomaly.severity >= 5 else "medium"


class WebhookDispatcher:
    """
    Posts envelopes to the endpoint selected by their type.

    The dispatcher keeps no per-call state. A shared ``httpx.AsyncClient`` may
    be injected (tests pass one built on ``httpx.MockTransport``); otherwise a
    short-lived client is opened per request. An injected client stays owned by
    the caller; ``aclose`` only closes it when ``owns_client`` is set.
    """

    def __init__(
        self,
        settings: WebhookSettings | None = None,
        client: httpx.AsyncClient | None = None,
        owns_client: bool = False,
    ):
        self.settings = settings or WebhookSettings()
        self._client = client
        self._owns_client = owns_client

    def resolve_url(self, webhook_type: WebhookType) -> str | None:
        return self.settings.endpoint(resolve_endpoint_key(webhook_type).value)

    def _headers(self, envelope: WebhookEnvelope) -> dict[str, str]:
        return {
            "Content-Type": "application/json",
            "X-Source": self.settings.source,
            "X-User-Code": envelope.user_code,
        }

    async def _post(self, url: str, body: dict[str, Any], headers: dict[str, str]) -> httpx.Response:
        if self._client is not None:
            return await self._client.post(url, json=body, headers=headers)
        async with httpx.AsyncClient() as client:
            return await client.post(url, json=body, headers=headers)

    async def send(self, envelope: WebhookEnvelope, url_override: str | None = None) -> bool:
        """Deliver one envelope. Returns True only on a 2xx response."""
        url = url_override or self.resolve_url(envelope.type)
        if not url:
            logger.warning(
                f"No webhook endpoint configured for '{envelope.type.value}' "
                f"({resolve_endpoint_key(envelope.type).value}); skipping delivery."
            )
            return False

        try:
            response = await self._post(url, envelope.to_payload(), self._headers(envelope))
        except (httpx.HTTPError, httpx.InvalidURL) as e:
            logger.error(f"Error sending '{envelope.type.value}' webhook: {type(e).__name__}: {e}")
            return False

        if not response.is_success:
            logger.error(f"Webhook '{envelope.type.value}' rejected with status {response.status_code}")
            return False

        logger.info(f"Sent '{envelope.type.value}' webhook for {envelope.user_code}")
        return True

    async def send_batch(self, envelopes: Iterable[WebhookEnvelope]) -> BatchResult:
        """Send all envelopes concurrently; a failure never cancels the others."""
        pending = list(envelopes)
        results = await asyncio.gather(*(self.send(e) for e in pending), return_exceptions=True)
        successful = sum(1 for r in results if r is True)
        for r in results:
            if isinstance(r, Exception):
                logger.error(f"Unexpected error in batch webhook send: {r}")
        logger.info(f"Batch webhook send: {successful}/{len(pending)} delivered")
        return BatchResult(total=len(pending), successful=successful, failed=len(pending) - successful)

    async def aclose(self) -> None:
        if self._client is not None and self._owns_client:
            await self._client.aclose()

    # --- Typed helpers --- #

    async def send_sale(self, sale: Sale, user_code: str) -> bool:
        return await self.send(
            WebhookEnvelope(type=WebhookType.SALE, data=sale_payload(sale), user_code=user_code)
        )

    async def send_restock_alert(self, product: Product, user_code: str) -> bool:
        return await self.send(
            WebhookEnvelope(type=WebhookType.RESTOCK, data=restock_payload(product), user_code=user_code)
        )

    async def send_low_stock_alert(self, products: list[Product], user_code: str) -> bool:
        return await self.send(
            WebhookEnvelope(
                type=WebhookType.LOW_STOCK_ALERT,
                data=low_stock_payload(products),
                user_code=user_code,
                priority=low_stock_urgency(products),
            )
        )

    async def send_demand_forecast(self, forecast: DemandForecast, user_code: str) -> bool:
        return await self.send(
            WebhookEnvelope(
                type=WebhookType.DEMAND_FORECAST,
                data=demand_forecast_payload(forecast),
                user_code=user_code,
            )
        )

    async def send_ai_prediction(self, prediction: AIPrediction, user_code: str) -> bool:
        return await self.send(
            WebhookEnvelope(
                type=WebhookType.AI_PREDICTION,
                data=ai_prediction_payload(prediction),
                user_code=user_code,
                metadata={"prediction_type": prediction.type.value},
            )
        )

    async def send_price_optimization(self, optimization: PriceOptimization, user_code: str) -> bool:
        return await self.send(
            WebhookEnvelope(
                type=WebhookType.PRICE_OPTIMIZATION,
                data=price_optimization_payload(optimization),
                user_code=user_code,
            )
        )

    async def send_customer_behavior(self, behavior: CustomerBehavior, user_code: str) -> bool:
        return await self.send(
            WebhookEnvelope(
                type=WebhookType.CUSTOMER_BEHAVIOR,
                data=customer_behavior_payload(behavior),
                user_code=user_code,
            )
        )

    async def send_inventory_anomaly(self, anomaly: InventoryAnomaly, user_code: str) -> bool:
        return await self.send(
            WebhookEnvelope(
                type=WebhookType.INVENTORY_ANOMALY,
                data=inventory_anomaly_payload(anomaly),
                user_code=user_code,
                priority=anomaly_priority(anomaly),
            )
        )
