"""
Price discovery service.

WHAT: Market statistics, trend, insights and predictions per category/location
WHY: Buyers and vendors need a reference price while they bargain
HOW: Aggregate active listings and recent negotiations, cache results with a TTL
"""

import statistics
from collections import OrderedDict
from datetime import datetime, timedelta
from typing import Callable, List, Optional, Tuple

from sqlalchemy.orm import Query, Session as DBSession

from ..core.cache import TTLCache
from ..core.config import settings
from ..core.database import get_db
from ..core.models import Negotiation, NegotiationStatus, Product
from ..models.market import (
    MarketInsights,
    PriceDiscoveryRecord,
    PriceHistoryPoint,
    PricePredictions,
    PriceRange,
)
from ..utils.logger import get_logger
from . import market_rules as rules

logger = get_logger(__name__)

LOOKBACK_DAYS = 30
ALL_LOCATIONS = "All locations"


def parse_location(location: Optional[str]) -> Tuple[Optional[str], Optional[str]]:
    """Split a "City, State" string into its trimmed parts."""
    if not location:
        return None, None

    parts = [part.strip() for part in location.split(",")]
    city = parts[0] or None
    state = parts[1] if len(parts) > 1 and parts[1] else None
    return city, state


class PriceDiscoveryService:
    """
    Compute and cache price discovery records.

    WHAT: Read-only analytics over listings and negotiations
    WHY: Shared by REST endpoints and the negotiation engine
    HOW: TTLCache keyed by "<category>-<location|all>"; misses query the database
    """

    def __init__(
        self,
        cache: Optional[TTLCache[PriceDiscoveryRecord]] = None,
        now: Callable[[], datetime] = datetime.utcnow,
    ):
        self.cache = cache if cache is not None else TTLCache(settings.PRICE_DISCOVERY_CACHE_TTL_SECONDS)
        self._now = now

    @staticmethod
    def cache_key(category: str, location: Optional[str] = None) -> str:
        return f"{category}-{location or 'all'}"

    def get_price_discovery(self, category: str, location: Optional[str] = None) -> PriceDiscoveryRecord:
        """
        Get price discovery for a category, optionally narrowed to "City, State".

        A cached record inside its TTL is returned unchanged.
        """
        key = self.cache_key(category, location)
        cached = self.cache.get(key)
        if cached is not None:
            logger.debug(f"Price discovery cache hit for {key}")
            return cached

        record = self._calculate_price_discovery(category, location)
        self.cache.set(key, record)
        logger.info(
            f"Computed price discovery for {key}: avg={record.average_price}, "
            f"trend={record.market_trend}, confidence={record.confidence}"
        )
        return record

    def clear_cache(self) -> None:
        self.cache.clear()
        logger.info("Price discovery cache cleared")

    def get_market_trends(self, categories: List[str], location: Optional[str] = None) -> List[PriceDiscoveryRecord]:
        return [self.get_price_discovery(category.strip(), location) for category in categories if category.strip()]

    def compare_locations(self, category: str, locations: List[str]) -> List[PriceDiscoveryRecord]:
        return [self.get_price_discovery(category, location.strip()) for location in locations if location.strip()]

    def _listing_query(self, db: DBSession, category: str, location: Optional[str]) -> Query:
        query = db.query(Product).filter(Product.category == category, Product.is_active.is_(True))

        city, state = parse_location(location)
        if city:
            query = query.filter(Product.city.icontains(city, autoescape=True))
        if state:
            query = query.filter(Product.state.icontains(state, autoescape=True))
        return query

    def _calculate_price_discovery(self, category: str, location: Optional[str]) -> PriceDiscoveryRecord:
        now = self._now()
        try:
            with get_db() as db:
                products = self._listing_query(db, category, location).all()

                if not products:
                    logger.info(f"No listings for {category} in {location or ALL_LOCATIONS}, using defaults")
                    return self._default_record(category, location)

                prices = [p.current_price for p in products]
                average_price = statistics.fmean(prices)

                cutoff = now - timedelta(days=LOOKBACK_DAYS)
                history = sorted(
                    (p for p in products if p.updated_at >= cutoff),
                    key=lambda p: p.updated_at
                )
                market_trend = self._calculate_trend([p.current_price for p in history])

                statuses = [
                    row.status for row in db.query(Negotiation.status).filter(
                        Negotiation.product_id.in_([p.id for p in products]),
                        Negotiation.created_at >= cutoff
                    )
                ]
                completed = sum(1 for s in statuses if s == NegotiationStatus.COMPLETED)

                cv = statistics.pstdev(prices) / average_price if average_price > 0 else 0.0
                volatility = rules.classify_volatility(cv)
                demand = rules.classify_demand(len(statuses) / len(products))
                supply = rules.classify_supply(statistics.fmean(p.quantity for p in products))
                season = rules.get_seasonal_factor(category, now.month)

                confidence = rules.compute_confidence(len(products), completed, len(history), volatility)
                next_week, next_month = rules.predict_prices(average_price, market_trend, season.factor)

                return PriceDiscoveryRecord(
                    category=category,
                    location=location or ALL_LOCATIONS,
                    average_price=round(average_price, 2),
                    price_range=PriceRange(min=round(min(prices), 2), max=round(max(prices), 2)),
                    market_trend=market_trend,
                    confidence=confidence,
                    sample_size=len(products),
                    ai_insights=MarketInsights(
                        seasonal_factor=season.factor,
                        seasonal_reason=season.reason,
                        demand_level=demand,
                        supply_status=supply,
                        volatility=volatility,
                        recommendations=rules.build_recommendations(
                            market_trend, season, demand, supply, volatility
                        ),
                    ),
                    predictions=PricePredictions(next_week=next_week, next_month=next_month),
                    last_updated=now,
                )
        except Exception as e:
            logger.error(f"Price discovery calculation failed for {category}/{location}: {e}", exc_info=True)
            return self._default_record(category, location)

    def _calculate_trend(self, chronological_prices: List[float]) -> rules.MarketTrend:
        """
        Compare the average of the most recent window with the window before it.

        Windows hold TREND_WINDOW_SIZE listings, capped at half the sample.
        """
        if len(chronological_prices) < rules.MIN_TREND_SAMPLES:
            return "stable"

        window = min(settings.TREND_WINDOW_SIZE, len(chronological_prices) // 2)
        recent = chronological_prices[-window:]
        prior = chronological_prices[-2 * window:-window]
        return rules.classify_window_trend(statistics.fmean(recent), statistics.fmean(prior))

    def _default_record(self, category: str, location: Optional[str]) -> PriceDiscoveryRecord:
        now = self._now()
        defaults = rules.get_default_price(category)
        season = rules.get_seasonal_factor(category, now.month)
        next_week, next_month = rules.predict_prices(defaults.avg, "stable", season.factor)

        return PriceDiscoveryRecord(
            category=category,
            location=location or ALL_LOCATIONS,
            average_price=defaults.avg,
            price_range=PriceRange(min=defaults.min, max=defaults.max),
            market_trend="stable",
            confidence=rules.DEFAULT_CONFIDENCE,
            sample_size=0,
            is_default=True,
            ai_insights=MarketInsights(
                seasonal_factor=season.factor,
                seasonal_reason=season.reason,
                demand_level="medium",
                supply_status="normal",
                volatility="medium",
                recommendations=["Limited market data - prices are based on typical category ranges"],
            ),
            predictions=PricePredictions(next_week=next_week, next_month=next_month),
            last_updated=now,
        )

    def get_price_history(
        self,
        category: str,
        location: Optional[str] = None,
        days: int = LOOKBACK_DAYS,
    ) -> List[PriceHistoryPoint]:
        """
        Daily average listing prices over the last `days` days, oldest first.

        Each point's trend compares it with the previous day that had data.
        """
        try:
            start = self._now() - timedelta(days=days)
            with get_db() as db:
                products = (
                    self._listing_query(db, category, location)
                    .filter(Product.updated_at >= start)
                    .order_by(Product.updated_at)
                    .all()
                )

            daily: "OrderedDict[object, List[float]]" = OrderedDict()
            for product in products:
                daily.setdefault(product.updated_at.date(), []).append(product.current_price)

            points: List[PriceHistoryPoint] = []
            previous_average = None
            for day, prices in sorted(daily.items()):
                average = statistics.fmean(prices)
                trend = "stable" if previous_average is None else rules.classify_day_trend(average, previous_average)
                points.append(PriceHistoryPoint(
                    date=day,
                    average_price=round(average, 2),
                    volume=len(prices),
                    trend=trend,
                ))
                previous_average = average

            return points
        except Exception as e:
            logger.error(f"Price history failed for {category}/{location}: {e}", exc_info=True)
            return []


# Singleton instance
price_discovery_service = PriceDiscoveryService()
