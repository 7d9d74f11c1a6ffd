"""
Report models produced by the analytics engine.
Every report is built fresh per analysis run, handed to the webhook
dispatcher and then discarded.
"""

from pydantic import BaseModel, Field

from .enums import (
    AnomalyType,
    DemandTrend,
    ForecastPeriod,
    PredictionType,
    PricingStrategy,
    RecommendedAction,
)


class DemandForecast(BaseModel):
    product_id: str
    product_name: str
    current_stock: int
    predicted_demand: int
    period: ForecastPeriod = ForecastPeriod.MONTHLY
    seasonal_factors: dict[str, float] = Field(default_factory=dict)
    trend: DemandTrend
    action: RecommendedAction
    data_points: int


class AIPrediction(BaseModel):
    """Tagged prediction; ``type`` selects the meaning of ``value``."""

    type: PredictionType
    product_id: str
    value: float
    confidence: float = Field(ge=0.0, le=1.0)
    time_horizon: str
    factors: list[str] = Field(default_factory=list)
    accuracy: float | None = None


class ExpectedImpact(BaseModel):
    sales_volume: float
    revenue: float
    profit: float


class PriceOptimization(BaseModel):
    product_id: str
    current_price: float
    suggested_price: float
    change_percentage: float
    expected_impact: ExpectedImpact
    competitor_prices: list[float]
    elasticity: float
    strategy: PricingStrategy
    market_conditions: str


class TopProduct(BaseModel):
    product_id: str
    name: str
    sales_count: int
    revenue: float


class PurchasePatterns(BaseModel):
    peak_hours: list[str]
    seasonal_trends: dict[str, float]
    average_transaction_value: float
    frequent_buyers: int


class CustomerSegment(BaseModel):
    name: str
    size: int
    characteristics: list[str]


class CrossSellPair(BaseModel):
    product_1: str
    product_2: str
    correlation: float


class ChurnRisk(BaseModel):
    high_risk: int
    medium_risk: int
    low_risk: int


class CustomerBehavior(BaseModel):
    period: str
    top_products: list[TopProduct]
    patterns: PurchasePatterns
    seasonal_trends: dict[str, dict[str, float]]
    segments: list[CustomerSegment]
    cross_selling: list[CrossSellPair]
    churn_risk: ChurnRisk
    data_quality: float


class AnomalyImpact(BaseModel):
    financial: float
    operational: str


class InventoryAnomaly(BaseModel):
    type: AnomalyType
    products: list[str]
    severity: float
    method: str
    actions: list[str]
    causes: list[str]
    impact: AnomalyImpact
    confidence: float


class AnalysisReport(BaseModel):
    """Everything produced by one full analysis run."""

    demand_forecasts: list[DemandForecast] = Field(default_factory=list)
    predictions: list[AIPrediction] = Field(default_factory=list)
    price_optimizations: list[PriceOptimization] = Field(default_factory=list)
    customer_behavior: CustomerBehavior | None = None
    anomalies: list[InventoryAnomaly] = Field(default_factory=list)
