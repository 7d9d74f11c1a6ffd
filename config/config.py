"""
Configuration classes for the inventory point-of-sale backend.
Defines webhook endpoints, store credentials and analytics thresholds in a
type-safe, extensible way. Values are read from the process environment
(a project-level `.env` is loaded by `utils.env.load_project_dotenv`).
"""

import os
from dataclasses import dataclass, field


def _env(name: str, default: str = "") -> str:
    return os.getenv(name, default).strip()


@dataclass
class WebhookSettings:
    """Outbound webhook endpoints. An empty string means "not configured"."""

    default_url: str = ""
    ai_url: str = ""
    analytics_url: str = ""
    alerts_url: str = ""
    source: str = "inventory-pos"

    @classmethod
    def from_env(cls) -> "WebhookSettings":
        return cls(
            default_url=_env("MAKE_WEBHOOK_URL"),
            ai_url=_env("MAKE_AI_WEBHOOK_URL"),
            analytics_url=_env("MAKE_ANALYTICS_WEBHOOK_URL"),
            alerts_url=_env("MAKE_ALERTS_WEBHOOK_URL"),
            source=_env("WEBHOOK_SOURCE", "inventory-pos") or "inventory-pos",
        )

    def endpoint(self, key: str) -> str | None:
        """Return the URL configured for an endpoint key, or None when unset."""
        url = {
            "default": self.default_url,
            "ai": self.ai_url,
            "analytics": self.analytics_url,
            "alerts": self.alerts_url,
        }.get(key, "")
        return url or None


@dataclass
class StoreSettings:
    supabase_url: str = ""
    supabase_key: str = ""

    @classmethod
    def from_env(cls) -> "StoreSettings":
        return cls(
            supabase_url=_env("SUPABASE_URL"),
            supabase_key=_env("SUPABASE_ANON_KEY"),
        )

    @property
    def is_configured(self) -> bool:
        return bool(self.supabase_url and self.supabase_key)


@dataclass
class AnalyticsConfig:
    # Demand forecast (monthly projection)
    forecast_window: int = 30
    forecast_days: int = 30
    increasing_threshold: float = 2.0
    decreasing_threshold: float = 1.0
    reorder_cover_days: int = 15
    seasonal_factors: dict[str, float] = field(
        default_factory=lambda: {"winter": 1.2, "spring": 1.0, "summer": 0.8, "fall": 1.1}
    )

    # Short-horizon demand prediction (weekly projection)
    prediction_window: int = 14
    prediction_days: int = 7
    confidence_base: float = 0.5
    confidence_sample_divisor: int = 28
    max_confidence: float = 0.95

    # Price suggestion
    velocity_days: int = 30
    high_velocity: float = 2.0
    low_velocity: float = 0.5
    price_increase: float = 1.05
    price_decrease: float = 0.95

    # Customer behavior
    top_products_limit: int = 10
    cross_sell_pairs: int = 5
    correlation_floor: float = 0.3
    correlation_span: float = 0.4

    # Anomalies
    spike_recent_window: int = 7
    spike_history_window: int = 30
    spike_multiplier: float = 2.0
    max_spike_severity: float = 10.0
    stockout_lost_units: int = 10
    pattern_window: int = 14
    pattern_change_threshold: float = 0.5


@dataclass
class AppSettings:
    webhooks: WebhookSettings = field(default_factory=WebhookSettings)
    store: StoreSettings = field(default_factory=StoreSettings)
    analytics: AnalyticsConfig = field(default_factory=AnalyticsConfig)

    @classmethod
    def from_env(cls) -> "AppSettings":
        return cls(
            webhooks=WebhookSettings.from_env(),
            store=StoreSettings.from_env(),
            analytics=AnalyticsConfig(),
        )


# Example usage:
# settings = AppSettings.from_env()
# settings.webhooks.endpoint("ai")  # -> "https://hook.make.com/..." or None
