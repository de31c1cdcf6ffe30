"""
Unit tests for the negotiation engine.

WHAT: Counter-offer branches, fairness bounds, optimal price
WHY: Suggestions must follow the market rules exactly
HOW: Pure functions against a hand-built market record, plus DB-backed wrappers
"""

from datetime import datetime
from unittest.mock import MagicMock

import pytest

from mandi.core.negotiation_manager import NegotiationManager
from mandi.models.market import (
    MarketInsights,
    PriceDiscoveryRecord,
    PricePredictions,
    PriceRange,
)
from mandi.services.negotiation_engine import (
    NegotiationEngine,
    fairness_from_market,
    optimal_from_market,
    suggest_from_market,
)
from mandi.services.price_discovery import PriceDiscoveryService


pytestmark = pytest.mark.unit


def market(average=50.0, low=40.0, high=60.0, trend="stable", confidence=0.5):
    return PriceDiscoveryRecord(
        category="vegetables",
        location="Pune, Maharashtra",
        average_price=average,
        price_range=PriceRange(min=low, max=high),
        market_trend=trend,
        confidence=confidence,
        sample_size=5,
        ai_insights=MarketInsights(
            seasonal_factor=1.0,
            seasonal_reason="No strong seasonal pattern",
            demand_level="medium",
            supply_status="normal",
            volatility="medium",
        ),
        predictions=PricePredictions(next_week=average, next_month=average),
        last_updated=datetime.utcnow(),
    )


def suggest(offer_price, offer_quantity=10.0, message_count=1, listed_price=50.0, available=100.0, **kwargs):
    return suggest_from_market(
        market(**kwargs),
        listed_price=listed_price,
        available_quantity=available,
        unit="kg",
        message_count=message_count,
        offer_price=offer_price,
        offer_quantity=offer_quantity,
    )


class TestCounterOffer:

    def test_below_market_minimum(self):
        # max(40, 50 * 0.85)
        suggestion = suggest(30.0)
        assert suggestion.suggested_price == 42.5
        assert "below market minimum" in suggestion.reasoning
        assert "₹42.50" in suggestion.reasoning

    def test_below_minimum_never_goes_under_market_floor(self):
        suggestion = suggest(10.0, low=45.0)
        assert suggestion.suggested_price == 45.0

    def test_above_market_maximum(self):
        # min(60, 50 * 1.1)
        suggestion = suggest(70.0)
        assert suggestion.suggested_price == 55.0
        assert "exceeds market maximum" in suggestion.reasoning

    def test_above_maximum_capped_by_market_ceiling(self):
        suggestion = suggest(90.0, high=52.0)
        assert suggestion.suggested_price == 52.0

    def test_within_range_discounts_per_message(self):
        # 50 * (1 - 3 * 0.02)
        suggestion = suggest(45.0, message_count=3)
        assert suggestion.suggested_price == 47.0
        assert "3 rounds" in suggestion.reasoning

    def test_within_range_discount_is_capped(self):
        suggestion = suggest(45.0, message_count=20)
        assert suggestion.suggested_price == 42.5

    def test_quantity_clamped_to_stock(self):
        suggestion = suggest(45.0, offer_quantity=150.0, available=80.0)
        assert suggestion.suggested_quantity == 80.0
        assert "Maximum available quantity is 80 kg" in suggestion.reasoning

    def test_quantity_within_stock_unchanged(self):
        assert suggest(45.0, offer_quantity=25.0).suggested_quantity == 25.0

    @pytest.mark.parametrize("market_confidence,expected", [
        (0.5, 0.6), (0.3, 0.44), (0.95, 0.95),
    ])
    def test_confidence_derived_from_market(self, market_confidence, expected):
        assert suggest(45.0, confidence=market_confidence).confidence == pytest.approx(expected)


class TestFairness:

    def test_perfect_conditions_clamp_to_one(self):
        result = fairness_from_market(market(), current_price=50.0, buyer_messages=2, vendor_messages=2)
        assert result.fairness_score == 1.0
        assert "within fair market range" in result.analysis
        assert result.recommendations == []

    def test_overpriced_one_sided_rising(self):
        # 0.5 + 0 (deviation 100%) + 0 (all buyer) + 0.7 * 0.3
        result = fairness_from_market(market(trend="rising"), current_price=100.0,
                                      buyer_messages=4, vendor_messages=0)
        assert result.fairness_score == pytest.approx(0.71)
        assert "above market average" in result.analysis
        assert any("reducing the price" in r for r in result.recommendations)
        assert any("balanced participation" in r for r in result.recommendations)
        assert any("upward" in r for r in result.recommendations)

    def test_underpriced_falling(self):
        result = fairness_from_market(market(trend="falling"), current_price=40.0,
                                      buyer_messages=1, vendor_messages=1)
        assert "below market average" in result.analysis
        assert any("good time for buyers" in r for r in result.recommendations)

    def test_no_messages_counts_as_balanced(self):
        result = fairness_from_market(market(trend="rising"), current_price=100.0,
                                      buyer_messages=0, vendor_messages=0)
        # 0.5 + 0 + 0.3 * 1 + 0.3 * 0.7
        assert result.fairness_score == pytest.approx(1.0)
        assert not any("balanced participation" in r for r in result.recommendations)

    def test_zero_market_average_does_not_divide(self):
        result = fairness_from_market(market(average=0.0, low=0.0, high=0.0), current_price=10.0,
                                      buyer_messages=1, vendor_messages=0)
        assert 0.0 <= result.fairness_score <= 1.0

    @pytest.mark.parametrize("price", [0.0, 25.0, 50.0, 75.0, 500.0])
    @pytest.mark.parametrize("buyer,vendor", [(0, 0), (1, 0), (5, 5), (0, 9)])
    @pytest.mark.parametrize("trend", ["rising", "falling", "stable"])
    def test_score_always_in_unit_interval(self, price, buyer, vendor, trend):
        score = fairness_from_market(market(trend=trend), price, buyer, vendor).fairness_score
        assert 0.0 <= score <= 1.0


class TestOptimalPrice:

    def test_bulk_discount(self):
        result = optimal_from_market(market(), listed_price=50.0, available_quantity=100.0,
                                     unit="kg", quantity=60.0)
        assert result.optimal_price == 47.5
        assert (result.price_range.min, result.price_range.max) == (40.0, 60.0)

    def test_small_order_rising_market(self):
        result = optimal_from_market(market(trend="rising"), listed_price=50.0,
                                     available_quantity=100.0, unit="kg", quantity=10.0)
        assert result.optimal_price == 52.5
        assert "rising" in result.reasoning

    def test_range_bounded_by_listed_price_band(self):
        # Listed 45: band [36, 54] inside market [30, 80]
        result = optimal_from_market(market(low=30.0, high=80.0), listed_price=45.0,
                                     available_quantity=100.0, unit="kg", quantity=10.0)
        assert (result.price_range.min, result.price_range.max) == (36.0, 54.0)


class TestEngineWrappers:

    @pytest.fixture
    def engine(self):
        return NegotiationEngine(pricing=PriceDiscoveryService())

    @pytest.fixture
    def negotiation(self, buyer_id, product_id):
        return NegotiationManager().create_negotiation(buyer_id, product_id, 45.0, 10.0, "Can you do 45?")

    def test_suggestion_uses_live_market(self, engine, negotiation):
        # Single listing at 50: market range collapses to [50, 50]
        suggestion = engine.suggest_counter_offer(negotiation["id"], 45.0, 10.0)
        assert suggestion.suggested_price == 50.0

    def test_fairness_counts_party_messages(self, engine, negotiation, vendor_id):
        NegotiationManager().add_message(negotiation["id"], vendor_id, "48 is my best", 48.0, 10.0)
        result = engine.analyze_fairness(negotiation["id"])
        assert 0.0 <= result.fairness_score <= 1.0
        assert not any("balanced participation" in r for r in result.recommendations)

    def test_optimal_price_for_product(self, engine, product_id):
        result = engine.get_optimal_price(product_id, 10.0)
        assert result.optimal_price == 50.0

    def test_unknown_ids_return_none(self, engine):
        assert engine.suggest_counter_offer("missing", 10.0, 1.0) is None
        assert engine.analyze_fairness("missing") is None
        assert engine.get_optimal_price("missing", 1.0) is None

    def test_pricing_failure_returns_none(self, negotiation):
        pricing = MagicMock()
        pricing.get_price_discovery.side_effect = RuntimeError("cache exploded")
        engine = NegotiationEngine(pricing=pricing)

        assert engine.suggest_counter_offer(negotiation["id"], 45.0, 10.0) is None
        assert engine.analyze_fairness(negotiation["id"]) is None
