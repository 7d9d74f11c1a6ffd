"""
Catalogue of the webhook kinds the automation platform is set up to receive.

Each entry names the endpoint it is delivered to, the fields a receiving
scenario relies on, and an example payload for wiring up a new scenario.
"""

import copy
import logging
from dataclasses import dataclass, field
from typing import Any

from config.config import WebhookSettings
from models.enums import EndpointKey

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class WebhookSpec:
    kind: str
    description: str
    endpoint: EndpointKey
    required_fields: tuple[str, ...]
    example_data: dict[str, Any] = field(default_factory=dict)
    use_cases: tuple[str, ...] = ()


WEBHOOK_CATALOG: dict[str, WebhookSpec] = {
    "sales": WebhookSpec(
        kind="sales",
        description="Triggered when a sale is made in the system",
        endpoint=EndpointKey.ALERTS,
        required_fields=("product_id", "quantity", "total_amount", "timestamp"),
        example_data={
            "type": "sale",
            "product_id": "prod_001",
            "quantity": 2,
            "total_amount": 48.00,
            "timestamp": "2024-01-15T10:30:00Z",
            "user_code": "user_001",
        },
        use_cases=("Track sales in Google Sheets", "Send to accounting software"),
    ),
    "low_stock_alert": WebhookSpec(
        kind="low_stock_alert",
        description="Triggered when products fall below reorder level",
        endpoint=EndpointKey.ALERTS,
        required_fields=("products", "urgency_level", "total_affected_products"),
        example_data={
            "type": "low_stock_alert",
            "products": [
                {"id": "prod_123", "name": "Amoxicillin 250mg", "current_stock": 8, "reorder_level": 20}
            ],
            "urgency_level": "high",
            "total_affected_products": 1,
            "user_code": "user_001",
        },
        use_cases=("Email suppliers automatically", "Send SMS alerts to managers"),
    ),
    "ai_prediction": WebhookSpec(
        kind="ai_prediction",
        description="AI-generated predictions for demand, pricing, and restocking",
        endpoint=EndpointKey.AI,
        required_fields=("prediction_type", "product_id", "predicted_value", "confidence_score"),
        example_data={
            "type": "ai_prediction",
            "prediction_type": "demand",
            "product_id": "product_123",
            "predicted_value": 150,
            "confidence_score": 0.85,
            "time_horizon": "7_days",
            "factors": ["historical_sales", "seasonal_trends"],
            "user_code": "user_001",
        },
        use_cases=("Automated reordering based on predictions", "Dynamic pricing adjustments"),
    ),
    "demand_forecast": WebhookSpec(
        kind="demand_forecast",
        description="Detailed demand forecasting with seasonal factors",
        endpoint=EndpointKey.AI,
        required_fields=("product_id", "predicted_demand", "forecast_period", "trend_direction"),
        example_data={
            "type": "demand_forecast",
            "product_id": "product_123",
            "product_name": "Amoxicillin 250mg",
            "current_stock": 15,
            "predicted_demand": 45,
            "forecast_period": "monthly",
            "seasonal_factors": {"winter": 1.2, "spring": 1.0},
            "trend_direction": "increasing",
            "recommended_action": "reorder_immediately",
            "user_code": "user_001",
        },
        use_cases=("Seasonal inventory planning", "Budget forecasting"),
    ),
}


def get_webhook_spec(kind: str) -> WebhookSpec | None:
    return WEBHOOK_CATALOG.get(kind)


def validate_webhook_data(kind: str, data: dict[str, Any]) -> bool:
    """Presence check: every field the catalogue lists for ``kind`` must be in an envelope's ``data``."""
    spec = get_webhook_spec(kind)
    if spec is None:
        return False
    missing = [name for name in spec.required_fields if name not in data]
    for name in missing:
        logger.warning(f"Missing required field for '{kind}' webhook: {name}")
    return not missing


def generate_example_data(kind: str) -> dict[str, Any] | None:
    spec = get_webhook_spec(kind)
    return copy.deepcopy(spec.example_data) if spec else None


def get_webhook_url(kind: str, settings: WebhookSettings) -> str | None:
    spec = get_webhook_spec(kind)
    if spec is None:
        return None
    return settings.endpoint(spec.endpoint.value)


def is_integration_configured(settings: WebhookSettings) -> bool:
    """True when at least one endpoint is set."""
    return any(settings.endpoint(key.value) for key in EndpointKey)


def integration_status(settings: WebhookSettings) -> dict[str, bool]:
    status = {f"{key.value}_webhook": settings.endpoint(key.value) is not None for key in EndpointKey}
    status["overall_configured"] = is_integration_configured(settings)
    return status
