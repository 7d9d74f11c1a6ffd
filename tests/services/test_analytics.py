"""
Tests for the per-report computations of AnalyticsEngine (no dispatch).
"""

import random
from unittest.mock import AsyncMock

import pytest

from config.config import AnalyticsConfig
from models.enums import (
    AnomalyType,
    DemandTrend,
    PredictionType,
    PricingStrategy,
    RecommendedAction,
)
from services.analytics import AnalyticsEngine, round_half_up
from tests.mocks import make_product, make_sales


@pytest.fixture
def engine() -> AnalyticsEngine:
    return AnalyticsEngine("user_001", dispatcher=AsyncMock(), rng=random.Random(42))


# --- round_half_up --- #


@pytest.mark.parametrize(
    "value, ndigits, expected",
    [(2.5, 0, 3.0), (3.5, 0, 4.0), (17.5, 0, 18.0), (31.499, 2, 31.5), (28.5, 2, 28.5), (0.0, 0, 0.0)],
)
def test_round_half_up(value, ndigits, expected):
    assert round_half_up(value, ndigits) == pytest.approx(expected)


# --- forecast_demand --- #


def test_forecast_out_of_stock_scenario(engine):
    """Stock 0, five sales of quantity 2: monthly demand 60, stable, reorder now."""
    product = make_product(current_stock=0, reorder_level=20, price=30.0)
    sales = make_sales("P1", [2, 2, 2, 2, 2])

    forecast = engine.forecast_demand(product, sales)

    assert forecast.predicted_demand == 60
    assert forecast.trend == DemandTrend.STABLE
    assert forecast.action == RecommendedAction.REORDER_IMMEDIATELY
    assert forecast.data_points == 5
    assert forecast.period.value == "monthly"


def test_forecast_empty_history_uses_unit_average(engine):
    product = make_product(current_stock=100)
    forecast = engine.forecast_demand(product, [])
    assert forecast.predicted_demand == 30
    assert forecast.trend == DemandTrend.STABLE
    # 100 >= 1 * 15
    assert forecast.action == RecommendedAction.MONITOR
    assert forecast.data_points == 0


def test_forecast_uses_only_last_30_sales(engine):
    product = make_product(current_stock=1000)
    # 10 old large sales followed by 30 sales of 1
    sales = make_sales("P1", [9] * 10 + [1] * 30)
    forecast = engine.forecast_demand(product, sales)
    assert forecast.predicted_demand == 30
    assert forecast.data_points == 40


@pytest.mark.parametrize(
    "quantities, expected_trend",
    [([3, 3], DemandTrend.INCREASING), ([2, 3], DemandTrend.INCREASING), ([1, 1], DemandTrend.STABLE)],
)
def test_forecast_trend_bands(engine, quantities, expected_trend):
    forecast = engine.forecast_demand(make_product(), make_sales("P1", quantities))
    assert forecast.trend == expected_trend


def test_forecast_decreasing_trend_needs_average_below_one(engine):
    # Quantities are positive integers, so an average below 1 cannot come from sales;
    # a custom threshold exercises the branch.
    engine.config = AnalyticsConfig(decreasing_threshold=1.5)
    forecast = engine.forecast_demand(make_product(), make_sales("P1", [1, 1]))
    assert forecast.trend == DemandTrend.DECREASING


def test_forecast_seasonal_factors_are_fixed(engine):
    forecast = engine.forecast_demand(make_product(), make_sales("P1", [4, 1, 7]))
    assert forecast.seasonal_factors == {"winter": 1.2, "spring": 1.0, "summer": 0.8, "fall": 1.1}


def test_forecast_is_deterministic(engine):
    product = make_product(current_stock=12)
    sales = make_sales("P1", [1, 4, 2, 5, 3])
    assert engine.forecast_demand(product, sales) == engine.forecast_demand(product, sales)


# --- predict_demand --- #


def test_predict_demand_weekly_projection(engine):
    prediction = engine.predict_demand(make_product(), make_sales("P1", [2, 4]))
    assert prediction.type == PredictionType.DEMAND
    assert prediction.value == 21  # avg 3 * 7
    assert prediction.confidence == pytest.approx(0.5 + 2 / 28)
    assert prediction.time_horizon == "7_days"


def test_predict_demand_confidence_saturates(engine):
    prediction = engine.predict_demand(make_product(), make_sales("P1", [1] * 40))
    # Only the last 14 count: 0.5 + 14/28 = 1.0, capped at 0.95
    assert prediction.confidence == pytest.approx(0.95)


def test_predict_demand_empty_history(engine):
    prediction = engine.predict_demand(make_product(), [])
    assert prediction.value == 7
    assert prediction.confidence == pytest.approx(0.5)


# --- predict_restock_timing --- #


def test_restock_timing_empty_history(engine):
    prediction = engine.predict_restock_timing(make_product(current_stock=10), [])
    assert prediction.type == PredictionType.RESTOCK
    assert prediction.value == 10


def test_restock_timing_floors_division(engine):
    prediction = engine.predict_restock_timing(make_product(current_stock=10), make_sales("P1", [3, 3]))
    assert prediction.value == 3


@pytest.mark.parametrize("stock", [0, 1, 2, 5])
@pytest.mark.parametrize("quantities", [[], [1], [50, 60], [7] * 20])
def test_restock_timing_never_below_one(engine, stock, quantities):
    prediction = engine.predict_restock_timing(make_product(current_stock=stock), make_sales("P1", quantities))
    assert prediction.value >= 1


# --- price suggestions --- #


@pytest.mark.parametrize(
    "sale_count, expected_price",
    [(0, 28.5), (14, 28.5), (15, 30.0), (60, 30.0), (61, 31.5)],
)
def test_predict_optimal_price_regimes(engine, sale_count, expected_price):
    prediction = engine.predict_optimal_price(make_product(price=30.0), make_sales("P1", [1] * sale_count))
    assert prediction.type == PredictionType.PRICE
    assert prediction.value == pytest.approx(expected_price)


def test_price_optimization_low_velocity(engine):
    optimization = engine.calculate_price_optimization(make_product(price=30.0), make_sales("P1", [1] * 3))
    assert optimization.suggested_price == pytest.approx(28.5)
    assert optimization.change_percentage == pytest.approx(-5.0)
    assert optimization.expected_impact.sales_volume == 15
    assert optimization.expected_impact.revenue == 8
    assert optimization.expected_impact.profit == 12
    assert optimization.strategy == PricingStrategy.COMPETITIVE
    assert optimization.competitor_prices == pytest.approx([28.5, 30.6, 29.4])


def test_price_optimization_high_velocity(engine):
    optimization = engine.calculate_price_optimization(make_product(price=20.0), make_sales("P1", [1] * 70))
    assert optimization.suggested_price == pytest.approx(21.0)
    assert optimization.change_percentage == pytest.approx(5.0)
    assert optimization.expected_impact.sales_volume == -5
    assert optimization.strategy == PricingStrategy.PREMIUM


def test_price_optimization_steady_velocity(engine):
    optimization = engine.calculate_price_optimization(make_product(price=20.0), make_sales("P1", [1] * 30))
    assert optimization.suggested_price == pytest.approx(20.0)
    assert optimization.change_percentage == 0
    assert optimization.expected_impact.profit == 0


def test_price_optimization_free_product(engine):
    optimization = engine.calculate_price_optimization(make_product(price=0.0), [])
    assert optimization.change_percentage == 0.0


# --- customer behavior --- #


def test_customer_behavior_ranks_by_revenue(engine):
    products = [make_product(id="A", name="A"), make_product(id="B", name="B"), make_product(id="C", name="C")]
    sales = make_sales("A", [1], unit_price=5.0) + make_sales("B", [2, 2], unit_price=10.0)

    behavior = engine.analyze_customer_behavior(products, sales)

    assert [p.product_id for p in behavior.top_products] == ["B", "A", "C"]
    assert behavior.top_products[0].revenue == pytest.approx(40.0)
    assert behavior.top_products[0].sales_count == 2
    assert behavior.top_products[2].sales_count == 0
    assert behavior.patterns.average_transaction_value == pytest.approx(45.0 / 3)
    assert behavior.patterns.frequent_buyers == 0


def test_customer_behavior_keeps_top_ten(engine):
    products = [make_product(id=f"P{i}", name=f"P{i}") for i in range(12)]
    sales = [s for i in range(12) for s in make_sales(f"P{i}", [i + 1])]
    behavior = engine.analyze_customer_behavior(products, sales)
    assert len(behavior.top_products) == 10
    assert behavior.top_products[0].product_id == "P11"


def test_customer_behavior_no_sales(engine):
    behavior = engine.analyze_customer_behavior([make_product()], [])
    assert behavior.patterns.average_transaction_value == 0.0
    assert behavior.top_products[0].revenue == 0.0


def test_cross_selling_pairs_wrap_and_stay_in_range(engine):
    products = [make_product(id=f"P{i}", name=f"P{i}") for i in range(3)]
    sales = [s for i in range(3) for s in make_sales(f"P{i}", [3 - i])]
    behavior = engine.analyze_customer_behavior(products, sales)

    pairs = [(c.product_1, c.product_2) for c in behavior.cross_selling]
    assert pairs == [("P0", "P1"), ("P1", "P2"), ("P2", "P0")]
    for pair in behavior.cross_selling:
        assert 0.3 <= pair.correlation < 0.7


def test_cross_selling_is_reproducible_with_seeded_rng():
    products = [make_product(id=f"P{i}", name=f"P{i}") for i in range(6)]
    sales = [s for i in range(6) for s in make_sales(f"P{i}", [i + 1])]
    first = AnalyticsEngine("u", AsyncMock(), rng=random.Random(7)).analyze_customer_behavior(products, sales)
    second = AnalyticsEngine("u", AsyncMock(), rng=random.Random(7)).analyze_customer_behavior(products, sales)
    assert len(first.cross_selling) == 5
    assert first.cross_selling == second.cross_selling


# --- anomalies --- #


def test_sales_spike_detected(engine):
    product = make_product(price=10.0)
    sales = make_sales("P1", [1] * 23 + [5] * 7)

    anomalies = engine.detect_sales_spikes([product], sales)

    assert len(anomalies) == 1
    anomaly = anomalies[0]
    assert anomaly.type == AnomalyType.UNUSUAL_SALES_SPIKE
    assert anomaly.products == ["P1"]
    assert anomaly.severity == pytest.approx(5.0)
    assert anomaly.impact.financial == pytest.approx(5 * 10.0 * 7)


def test_sales_spike_severity_capped(engine):
    sales = make_sales("P1", [1] * 23 + [50] * 7)
    anomalies = engine.detect_sales_spikes([make_product()], sales)
    assert anomalies[0].severity == 10


def test_no_spike_for_steady_sales(engine):
    assert engine.detect_sales_spikes([make_product()], make_sales("P1", [2] * 30)) == []


def test_spike_with_short_history_uses_prior_guard(engine):
    # No prior window: prior mean falls back to 1; recent mean = 21 / 7 = 3
    anomalies = engine.detect_sales_spikes([make_product()], make_sales("P1", [7, 7, 7]))
    assert len(anomalies) == 1
    assert anomalies[0].severity == pytest.approx(3.0)


def test_spike_only_counts_own_product(engine):
    products = [make_product(id="A"), make_product(id="B")]
    sales = make_sales("A", [20] * 7) + make_sales("B", [1])
    anomalies = engine.detect_sales_spikes(products, sales)
    assert [a.products for a in anomalies] == [["A"]]


def test_no_stockouts(engine):
    assert engine.detect_unexpected_stockouts([make_product(current_stock=3)]) == []


def test_stockouts_aggregate_into_one_anomaly(engine):
    products = [
        make_product(id="A", current_stock=0, price=12.0),
        make_product(id="B", current_stock=5),
        make_product(id="C", current_stock=0, price=3.0),
    ]
    anomalies = engine.detect_unexpected_stockouts(products)
    assert len(anomalies) == 1
    anomaly = anomalies[0]
    assert anomaly.type == AnomalyType.UNEXPECTED_STOCKOUT
    assert anomaly.products == ["A", "C"]
    assert anomaly.severity == 2
    assert anomaly.impact.financial == pytest.approx(150.0)


def test_demand_pattern_change_detected(engine):
    sales = make_sales("A", [1] * 14) + make_sales("B", [3] * 7) + make_sales("C", [3] * 7)
    anomalies = engine.detect_demand_pattern_changes(sales)
    assert len(anomalies) == 1
    anomaly = anomalies[0]
    assert anomaly.type == AnomalyType.DEMAND_PATTERN_CHANGE
    assert anomaly.products == ["B", "C"]
    assert anomaly.severity == pytest.approx(2.0)


def test_demand_pattern_stable(engine):
    assert engine.detect_demand_pattern_changes(make_sales("A", [2] * 28)) == []


def test_demand_pattern_no_sales(engine):
    assert engine.detect_demand_pattern_changes([]) == []
