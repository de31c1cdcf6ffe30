"""
Unit tests for the price discovery service.

WHAT: Default fallback, cache TTL, trend, location matching, history
WHY: Reference prices drive every counter-offer suggestion
HOW: Seed listings through factories; fake clock for the cache
"""

from datetime import datetime, timedelta
from unittest.mock import patch

import pytest

from mandi.core.cache import TTLCache
from mandi.core.negotiation_manager import NegotiationManager
from mandi.services import market_rules as rules
from mandi.services.price_discovery import PriceDiscoveryService, parse_location


pytestmark = pytest.mark.unit


class FakeClock:
    def __init__(self):
        self.now = 0.0

    def __call__(self):
        return self.now


@pytest.fixture
def clock():
    return FakeClock()


@pytest.fixture
def service(clock):
    return PriceDiscoveryService(cache=TTLCache(1800, clock=clock))


def seed_series(make_product, vendor_id, prices, category="vegetables", city="Pune", state="Maharashtra"):
    """One listing per price, oldest first, one day apart."""
    start = datetime.utcnow() - timedelta(days=len(prices) + 1)
    return [
        make_product(vendor_id, category=category, price=price, city=city, state=state,
                     updated_at=start + timedelta(days=i))
        for i, price in enumerate(prices)
    ]


class TestParseLocation:

    def test_city_and_state(self):
        assert parse_location("Pune, Maharashtra") == ("Pune", "Maharashtra")

    def test_city_only(self):
        assert parse_location("Pune") == ("Pune", None)

    def test_state_only(self):
        assert parse_location(", Kerala") == (None, "Kerala")

    def test_empty(self):
        assert parse_location(None) == (None, None)


class TestDefaultFallback:

    def test_no_listings_returns_category_defaults(self, service):
        record = service.get_price_discovery("spices", "Pune, Maharashtra")

        assert record.is_default
        assert record.average_price == 250
        assert (record.price_range.min, record.price_range.max) == (100, 500)
        assert record.market_trend == "stable"
        assert record.confidence == rules.DEFAULT_CONFIDENCE
        assert record.sample_size == 0

    def test_unknown_category_uses_others(self, service):
        record = service.get_price_discovery("furniture")
        assert record.average_price == rules.DEFAULT_PRICES["others"].avg
        assert record.location == "All locations"

    def test_query_failure_falls_back_to_defaults(self, service, make_product, vendor_id):
        make_product(vendor_id, price=10.0)
        with patch.object(service, "_listing_query", side_effect=RuntimeError("db down")):
            record = service.get_price_discovery("vegetables")
        assert record.is_default


class TestCache:

    def test_second_call_within_ttl_is_served_from_cache(self, service, make_product, vendor_id):
        make_product(vendor_id, price=40.0)

        with patch.object(service, "_calculate_price_discovery",
                          wraps=service._calculate_price_discovery) as calculate:
            first = service.get_price_discovery("vegetables", "Pune, Maharashtra")
            make_product(vendor_id, price=80.0)
            second = service.get_price_discovery("vegetables", "Pune, Maharashtra")

        assert calculate.call_count == 1
        assert second is first
        assert second.average_price == 40.0

    def test_recomputed_after_ttl(self, service, clock, make_product, vendor_id):
        make_product(vendor_id, price=40.0)

        with patch.object(service, "_calculate_price_discovery",
                          wraps=service._calculate_price_discovery) as calculate:
            service.get_price_discovery("vegetables")
            make_product(vendor_id, price=80.0)
            clock.now += 1800
            refreshed = service.get_price_discovery("vegetables")

        assert calculate.call_count == 2
        assert refreshed.average_price == 60.0

    def test_keys_are_per_location(self, service):
        assert service.cache_key("fruits") == "fruits-all"
        assert service.cache_key("fruits", "Pune, Maharashtra") == "fruits-Pune, Maharashtra"

    def test_clear_cache(self, service, make_product, vendor_id):
        make_product(vendor_id, price=40.0)
        service.get_price_discovery("vegetables")
        service.clear_cache()
        assert len(service.cache) == 0


class TestStatistics:

    def test_rising_trend_and_stats(self, service, make_product, vendor_id):
        seed_series(make_product, vendor_id, [40, 40, 40, 40, 50, 50, 50, 50])

        record = service.get_price_discovery("vegetables", "Pune, Maharashtra")

        assert not record.is_default
        assert record.sample_size == 8
        assert record.average_price == 45.0
        assert (record.price_range.min, record.price_range.max) == (40.0, 50.0)
        assert record.market_trend == "rising"
        assert record.ai_insights.volatility == "medium"
        assert record.ai_insights.demand_level == "low"
        assert record.ai_insights.supply_status == "abundant"
        # 0.5 + 8*0.02 + 0 completed + 8*0.001
        assert record.confidence == pytest.approx(0.668)

    def test_falling_trend(self, service, make_product, vendor_id):
        seed_series(make_product, vendor_id, [60, 60, 50, 50])
        assert service.get_price_discovery("vegetables").market_trend == "falling"

    def test_too_few_points_is_stable(self, service, make_product, vendor_id):
        seed_series(make_product, vendor_id, [40, 80, 120])
        assert service.get_price_discovery("vegetables").market_trend == "stable"

    def test_location_match_is_case_insensitive_substring(self, service, make_product, vendor_id):
        make_product(vendor_id, price=40.0, city="Pune", state="Maharashtra")
        make_product(vendor_id, price=90.0, city="Chennai", state="Tamil Nadu")

        record = service.get_price_discovery("vegetables", "pun, maharash")
        assert record.sample_size == 1
        assert record.average_price == 40.0

    def test_inactive_listings_ignored(self, service, make_product, vendor_id):
        make_product(vendor_id, price=40.0)
        make_product(vendor_id, price=400.0, is_active=False)
        assert service.get_price_discovery("vegetables").average_price == 40.0

    def test_negotiations_raise_demand(self, service, make_product, make_user, vendor_id):
        product_id = make_product(vendor_id, price=50.0)
        manager = NegotiationManager()
        for _ in range(2):
            manager.create_negotiation(make_user(), product_id, 45.0, 5.0, "Interested")

        record = service.get_price_discovery("vegetables")
        assert record.ai_insights.demand_level == "high"

    def test_market_trends_and_compare(self, service, make_product, vendor_id):
        make_product(vendor_id, price=40.0, city="Pune", state="Maharashtra")
        make_product(vendor_id, price=60.0, city="Nagpur", state="Maharashtra")

        trends = service.get_market_trends(["vegetables", "fruits"])
        assert [r.category for r in trends] == ["vegetables", "fruits"]
        assert trends[1].is_default

        compared = service.compare_locations("vegetables", ["Pune, Maharashtra", "Nagpur, Maharashtra"])
        assert [r.average_price for r in compared] == [40.0, 60.0]


class TestPriceHistory:

    def test_daily_points_with_day_over_day_trend(self, service, make_product, vendor_id):
        noon = datetime.utcnow().replace(hour=12, minute=0, second=0, microsecond=0)
        make_product(vendor_id, price=40.0, updated_at=noon - timedelta(days=3))
        make_product(vendor_id, price=50.0, updated_at=noon - timedelta(days=2))
        make_product(vendor_id, price=50.0, updated_at=noon - timedelta(days=2) + timedelta(hours=1))
        make_product(vendor_id, price=49.5, updated_at=noon - timedelta(days=1))

        history = service.get_price_history("vegetables", days=30)

        assert [p.volume for p in history] == [1, 2, 1]
        assert [p.trend for p in history] == ["stable", "rising", "stable"]
        assert history[0].date < history[1].date < history[2].date

    def test_window_excludes_old_updates(self, service, make_product, vendor_id):
        make_product(vendor_id, price=40.0, updated_at=datetime.utcnow() - timedelta(days=40))
        assert service.get_price_history("vegetables", days=30) == []
