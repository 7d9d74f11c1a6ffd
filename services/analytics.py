"""
Heuristic analytics over a user's product and sales snapshots.

The engine turns ``(products, sales)`` into demand forecasts, per-product
predictions, price suggestions, a customer-behavior summary and inventory
anomalies. The computations are plain averages and fixed-threshold rules;
each report is handed to the webhook dispatcher as soon as it is built.
Sales lists are expected oldest-first, so "most recent" means the list tail.
"""

import logging
import math
import random
from collections.abc import Awaitable

import numpy as np
import pandas as pd

from config.config import AnalyticsConfig
from models.analytics import (
    AIPrediction,
    AnalysisReport,
    AnomalyImpact,
    ChurnRisk,
    CrossSellPair,
    CustomerBehavior,
    CustomerSegment,
    DemandForecast,
    ExpectedImpact,
    InventoryAnomaly,
    PriceOptimization,
    PurchasePatterns,
    TopProduct,
)
from models.enums import (
    AnomalyType,
    DemandTrend,
    ForecastPeriod,
    PredictionType,
    PricingStrategy,
    RecommendedAction,
)
from models.inventory import Product, Sale
from services.webhooks import WebhookDispatcher

logger = logging.getLogger(__name__)

PEAK_HOURS = ["10:00-12:00", "14:00-16:00"]
MONTHLY_TRENDS = {"jan": 1.1, "feb": 1.0, "mar": 1.2}
WEEKLY_TRENDS = {"mon": 0.8, "tue": 1.0, "wed": 1.1, "thu": 1.2, "fri": 1.3, "sat": 0.9, "sun": 0.7}
SEGMENTS = [
    ("Regular Customers", 60, ["frequent_purchases", "brand_loyal"]),
    ("Occasional Buyers", 30, ["price_sensitive", "seasonal"]),
    ("New Customers", 10, ["exploring", "comparison_shopping"]),
]
COMPETITOR_PRICE_FACTORS = (0.95, 1.02, 0.98)


def round_half_up(value: float, ndigits: int = 0) -> float:
    """Round halves away from zero for positive values (``round`` uses banker's rounding)."""
    factor = 10**ndigits
    return math.floor(value * factor + 0.5) / factor


def mean_quantity(sales: list[Sale], default: float) -> float:
    """Average sale quantity, or ``default`` when there are no sales."""
    if not sales:
        return default
    return float(np.mean([s.quantity for s in sales]))


def windowed_mean(sales: list[Sale], window: int, default: float) -> float:
    """Quantity sum over a fixed-size window divided by the window size; zero falls back to ``default``."""
    value = sum(s.quantity for s in sales) / window
    return value or default


def sales_for(product: Product, sales: list[Sale]) -> list[Sale]:
    return [s for s in sales if s.product_id == product.id]


class AnalyticsEngine:
    """
    Computes analysis reports for one user and dispatches each of them.

    ``rng`` feeds the cross-sell correlation values; pass a seeded
    ``random.Random`` for reproducible runs.
    """

    def __init__(
        self,
        user_code: str,
        dispatcher: WebhookDispatcher,
        config: AnalyticsConfig | None = None,
        rng: random.Random | None = None,
    ):
        self.user_code = user_code
        self.dispatcher = dispatcher
        self.config = config or AnalyticsConfig()
        self.rng = rng or random.Random()

    # --- Per-product computations --- #

    def sales_velocity(self, sales: list[Sale]) -> float:
        return len(sales) / self.config.velocity_days

    def price_multiplier(self, velocity: float) -> float:
        if velocity > self.config.high_velocity:
            return self.config.price_increase
        if velocity < self.config.low_velocity:
            return self.config.price_decrease
        return 1.0

    def forecast_demand(self, product: Product, sales: list[Sale]) -> DemandForecast:
        cfg = self.config
        avg = mean_quantity(sales[-cfg.forecast_window :], default=1.0)

        if avg > cfg.increasing_threshold:
            trend = DemandTrend.INCREASING
        elif avg < cfg.decreasing_threshold:
            trend = DemandTrend.DECREASING
        else:
            trend = DemandTrend.STABLE

        if product.current_stock < avg * cfg.reorder_cover_days:
            action = RecommendedAction.REORDER_IMMEDIATELY
        else:
            action = RecommendedAction.MONITOR

        return DemandForecast(
            product_id=product.id,
            product_name=product.name,
            current_stock=product.current_stock,
            predicted_demand=int(round_half_up(avg * cfg.forecast_days)),
            period=ForecastPeriod.MONTHLY,
            seasonal_factors=dict(cfg.seasonal_factors),
            trend=trend,
            action=action,
            data_points=len(sales),
        )

    def predict_demand(self, product: Product, sales: list[Sale]) -> AIPrediction:
        cfg = self.config
        recent = sales[-cfg.prediction_window :]
        avg = mean_quantity(recent, default=1.0)
        confidence = min(cfg.max_confidence, cfg.confidence_base + len(recent) / cfg.confidence_sample_divisor)
        return AIPrediction(
            type=PredictionType.DEMAND,
            product_id=product.id,
            value=round_half_up(avg * cfg.prediction_days),
            confidence=confidence,
            time_horizon=f"{cfg.prediction_days}_days",
            factors=["historical_sales", "seasonal_trends", "current_stock"],
            accuracy=0.85,
        )

    def predict_restock_timing(self, product: Product, sales: list[Sale]) -> AIPrediction:
        avg_daily_sales = mean_quantity(sales, default=1.0)
        days_until_restock = math.floor(product.current_stock / avg_daily_sales)
        return AIPrediction(
            type=PredictionType.RESTOCK,
            product_id=product.id,
            value=max(1, days_until_restock),
            confidence=0.8,
            time_horizon="days",
            factors=["current_stock", "sales_velocity", "lead_time"],
            accuracy=0.78,
        )

    def predict_optimal_price(self, product: Product, sales: list[Sale]) -> AIPrediction:
        multiplier = self.price_multiplier(self.sales_velocity(sales))
        return AIPrediction(
            type=PredictionType.PRICE,
            product_id=product.id,
            value=round_half_up(product.price * multiplier, 2),
            confidence=0.7,
            time_horizon=f"{self.config.velocity_days}_days",
            factors=["demand_elasticity", "competitor_pricing", "inventory_levels"],
            accuracy=0.72,
        )

    def calculate_price_optimization(self, product: Product, sales: list[Sale]) -> PriceOptimization:
        cfg = self.config
        velocity = self.sales_velocity(sales)
        current_price = product.price
        suggested_price = current_price * self.price_multiplier(velocity)

        # Illustrative per-regime deltas, in percent
        if velocity > cfg.high_velocity:
            impact = ExpectedImpact(sales_volume=-5, revenue=3, profit=5)
        elif velocity < cfg.low_velocity:
            impact = ExpectedImpact(sales_volume=15, revenue=8, profit=12)
        else:
            impact = ExpectedImpact(sales_volume=0, revenue=0, profit=0)

        change = (suggested_price - current_price) / current_price * 100 if current_price else 0.0
        return PriceOptimization(
            product_id=product.id,
            current_price=current_price,
            suggested_price=round_half_up(suggested_price, 2),
            change_percentage=change,
            expected_impact=impact,
            competitor_prices=[current_price * f for f in COMPETITOR_PRICE_FACTORS],
            elasticity=-1.2,
            strategy=PricingStrategy.PREMIUM if velocity > cfg.high_velocity else PricingStrategy.COMPETITIVE,
            market_conditions="stable",
        )

    # --- Whole-catalogue computations --- #

    def analyze_customer_behavior(self, products: list[Product], sales: list[Sale]) -> CustomerBehavior:
        cfg = self.config
        frame = pd.DataFrame(
            [{"product_id": s.product_id, "total_amount": s.total_amount} for s in sales],
            columns=["product_id", "total_amount"],
        )
        grouped = frame.groupby("product_id")["total_amount"]
        revenue = grouped.sum().to_dict()
        counts = grouped.size().to_dict()

        # sorted() is stable, so ties keep catalogue order
        ranked = sorted(products, key=lambda p: revenue.get(p.id, 0.0), reverse=True)
        top_products = [
            TopProduct(
                product_id=p.id,
                name=p.name,
                sales_count=int(counts.get(p.id, 0)),
                revenue=float(revenue.get(p.id, 0.0)),
            )
            for p in ranked[: cfg.top_products_limit]
        ]

        average_transaction = float(frame["total_amount"].mean()) if len(frame) else 0.0

        cross_selling = [
            CrossSellPair(
                product_1=tp.product_id,
                product_2=top_products[(i + 1) % len(top_products)].product_id,
                correlation=cfg.correlation_floor + self.rng.random() * cfg.correlation_span,
            )
            for i, tp in enumerate(top_products[: cfg.cross_sell_pairs])
        ]

        return CustomerBehavior(
            period="last_30_days",
            top_products=top_products,
            patterns=PurchasePatterns(
                peak_hours=list(PEAK_HOURS),
                seasonal_trends=dict(cfg.seasonal_factors),
                average_transaction_value=average_transaction,
                frequent_buyers=math.floor(len(sales) * 0.3),
            ),
            seasonal_trends={"monthly": dict(MONTHLY_TRENDS), "weekly": dict(WEEKLY_TRENDS)},
            segments=[CustomerSegment(name=n, size=s, characteristics=list(c)) for n, s, c in SEGMENTS],
            cross_selling=cross_selling,
            churn_risk=ChurnRisk(high_risk=15, medium_risk=25, low_risk=60),
            data_quality=0.85,
        )

    def detect_sales_spikes(self, products: list[Product], sales: list[Sale]) -> list[InventoryAnomaly]:
        cfg = self.config
        prior_window = cfg.spike_history_window - cfg.spike_recent_window
        anomalies = []
        for product in products:
            product_sales = sales_for(product, sales)
            recent_avg = windowed_mean(product_sales[-cfg.spike_recent_window :], cfg.spike_recent_window, 0.0)
            prior_avg = windowed_mean(
                product_sales[-cfg.spike_history_window : -cfg.spike_recent_window], prior_window, 1.0
            )
            if recent_avg > prior_avg * cfg.spike_multiplier:
                logger.debug(f"Sales spike for {product.id}: recent={recent_avg:.2f} prior={prior_avg:.2f}")
                anomalies.append(
                    InventoryAnomaly(
                        type=AnomalyType.UNUSUAL_SALES_SPIKE,
                        products=[product.id],
                        severity=min(cfg.max_spike_severity, recent_avg / prior_avg),
                        method="statistical_analysis",
                        actions=["investigate_cause", "increase_stock", "monitor_trend"],
                        causes=["seasonal_demand", "marketing_campaign", "competitor_stockout"],
                        impact=AnomalyImpact(
                            financial=recent_avg * product.price * cfg.spike_recent_window,
                            operational="potential_stockout_risk",
                        ),
                        confidence=0.8,
                    )
                )
        return anomalies

    def detect_unexpected_stockouts(self, products: list[Product]) -> list[InventoryAnomaly]:
        out_of_stock = [p for p in products if p.current_stock == 0]
        if not out_of_stock:
            return []
        return [
            InventoryAnomaly(
                type=AnomalyType.UNEXPECTED_STOCKOUT,
                products=[p.id for p in out_of_stock],
                severity=len(out_of_stock),
                method="inventory_monitoring",
                actions=["emergency_reorder", "find_alternatives", "notify_customers"],
                causes=["supplier_delay", "demand_spike", "forecasting_error"],
                impact=AnomalyImpact(
                    # Assumes a fixed number of lost units per product
                    financial=sum(p.price * self.config.stockout_lost_units for p in out_of_stock),
                    operational="customer_dissatisfaction",
                ),
                confidence=0.95,
            )
        ]

    def detect_demand_pattern_changes(self, sales: list[Sale]) -> list[InventoryAnomaly]:
        window = self.config.pattern_window
        recent = sales[-window:]
        if not recent:
            return []
        older = sales[-2 * window : -window]
        recent_avg = windowed_mean(recent, window, 0.0)
        older_avg = windowed_mean(older, window, 1.0)

        change = abs(recent_avg - older_avg) / older_avg
        if change <= self.config.pattern_change_threshold:
            return []
        return [
            InventoryAnomaly(
                type=AnomalyType.DEMAND_PATTERN_CHANGE,
                products=list(dict.fromkeys(s.product_id for s in recent)),
                severity=change,
                method="trend_analysis",
                actions=["update_forecasts", "adjust_inventory", "investigate_market"],
                causes=["market_shift", "seasonal_change", "external_factors"],
                impact=AnomalyImpact(
                    financial=abs(recent_avg - older_avg) * 100,
                    operational="forecasting_accuracy_impact",
                ),
                confidence=0.7,
            )
        ]

    # --- Batch runs with dispatch --- #

    async def _dispatch(self, delivery: Awaitable[bool], label: str) -> bool:
        try:
            delivered = await delivery
        except Exception as e:
            logger.error(f"Dispatch of {label} failed: {type(e).__name__}: {e}")
            return False
        if not delivered:
            logger.warning(f"{label} was not delivered")
        return delivered

    async def generate_demand_forecasts(self, products: list[Product], sales: list[Sale]) -> list[DemandForecast]:
        forecasts = []
        for product in products:
            forecast = self.forecast_demand(product, sales_for(product, sales))
            forecasts.append(forecast)
            await self._dispatch(
                self.dispatcher.send_demand_forecast(forecast, self.user_code),
                f"demand forecast for {product.id}",
            )
        return forecasts

    async def generate_ai_predictions(self, products: list[Product], sales: list[Sale]) -> list[AIPrediction]:
        predictions = []
        for product in products:
            product_sales = sales_for(product, sales)
            batch = [
                self.predict_demand(product, product_sales),
                self.predict_restock_timing(product, product_sales),
                self.predict_optimal_price(product, product_sales),
            ]
            predictions.extend(batch)
            for prediction in batch:
                await self._dispatch(
                    self.dispatcher.send_ai_prediction(prediction, self.user_code),
                    f"{prediction.type.value} prediction for {product.id}",
                )
        return predictions

    async def generate_price_optimizations(
        self, products: list[Product], sales: list[Sale]
    ) -> list[PriceOptimization]:
        optimizations = []
        for product in products:
            optimization = self.calculate_price_optimization(product, sales_for(product, sales))
            optimizations.append(optimization)
            await self._dispatch(
                self.dispatcher.send_price_optimization(optimization, self.user_code),
                f"price optimization for {product.id}",
            )
        return optimizations

    async def run_customer_behavior_analysis(self, products: list[Product], sales: list[Sale]) -> CustomerBehavior:
        behavior = self.analyze_customer_behavior(products, sales)
        await self._dispatch(
            self.dispatcher.send_customer_behavior(behavior, self.user_code),
            "customer behavior summary",
        )
        return behavior

    async def detect_inventory_anomalies(self, products: list[Product], sales: list[Sale]) -> list[InventoryAnomaly]:
        anomalies = [
            *self.detect_sales_spikes(products, sales),
            *self.detect_unexpected_stockouts(products),
            *self.detect_demand_pattern_changes(sales),
        ]
        for anomaly in anomalies:
            await self._dispatch(
                self.dispatcher.send_inventory_anomaly(anomaly, self.user_code),
                f"{anomaly.type.value} anomaly",
            )
        return anomalies

    async def run_full_analysis(self, products: list[Product], sales: list[Sale]) -> AnalysisReport:
        logger.info(f"Running analysis for {self.user_code}: {len(products)} products, {len(sales)} sales")
        report = AnalysisReport(
            demand_forecasts=await self.generate_demand_forecasts(products, sales),
            predictions=await self.generate_ai_predictions(products, sales),
            price_optimizations=await self.generate_price_optimizations(products, sales),
            customer_behavior=await self.run_customer_behavior_analysis(products, sales),
            anomalies=await self.detect_inventory_anomalies(products, sales),
        )
        logger.info(
            f"Analysis complete for {self.user_code}: {len(report.predictions)} predictions, "
            f"{len(report.anomalies)} anomalies"
        )
        return report
