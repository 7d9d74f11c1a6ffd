"""
Centralized Enum definitions for the project.
"""

from enum import Enum


class PredictionType(str, Enum):
    """Kinds of AI prediction produced per product"""

    DEMAND = "demand"
    RESTOCK = "restock"
    PRICE = "price"


class DemandTrend(str, Enum):
    INCREASING = "increasing"
    DECREASING = "decreasing"
    STABLE = "stable"


class ForecastPeriod(str, Enum):
    WEEKLY = "weekly"
    MONTHLY = "monthly"
    QUARTERLY = "quarterly"


class RecommendedAction(str, Enum):
    REORDER_IMMEDIATELY = "reorder_immediately"
    MONITOR = "monitor"


class PricingStrategy(str, Enum):
    PREMIUM = "premium_pricing"
    COMPETITIVE = "competitive_pricing"


class AnomalyType(str, Enum):
    """Types of inventory anomaly"""

    UNUSUAL_SALES_SPIKE = "unusual_sales_spike"
    UNEXPECTED_STOCKOUT = "unexpected_stockout"
    SUPPLIER_DELAY = "supplier_delay"  # Reserved; no detector emits it yet
    DEMAND_PATTERN_CHANGE = "demand_pattern_change"


class RestockPriority(str, Enum):
    HIGH = "high"
    MEDIUM = "medium"
    LOW = "low"


class WebhookType(str, Enum):
    """Envelope ``type`` values understood by the automation platform"""

    SALE = "sale"
    RESTOCK = "restock"
    LOW_STOCK_ALERT = "low_stock_alert"
    AI_PREDICTION = "ai_prediction"
    DEMAND_FORECAST = "demand_forecast"
    PRICE_OPTIMIZATION = "price_optimization"
    CUSTOMER_BEHAVIOR = "customer_behavior"
    INVENTORY_ANOMALY = "inventory_anomaly"


class EndpointKey(str, Enum):
    """Configured webhook endpoints"""

    DEFAULT = "default"
    AI = "ai"
    ANALYTICS = "analytics"
    ALERTS = "alerts"
