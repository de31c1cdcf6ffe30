"""
Market heuristics shared by price discovery and the negotiation engine.

WHAT: Named thresholds, seasonal/default price tables and pure classifiers
WHY: Keep every magic number in one place so the rules can be tested alone
HOW: Module-level constants, frozen dataclasses and small pure functions
"""

from dataclasses import dataclass
from typing import Dict, List, Literal, Tuple

MarketTrend = Literal["rising", "falling", "stable"]
DemandLevel = Literal["high", "medium", "low"]
SupplyStatus = Literal["abundant", "normal", "scarce"]
Volatility = Literal["high", "medium", "low"]

# Trend bands
WINDOW_TREND_THRESHOLD = 0.03  # recent vs prior listing window
DAY_TREND_THRESHOLD = 0.02  # day-over-day price history
MIN_TREND_SAMPLES = 4

# Demand = negotiations / listings
HIGH_DEMAND_RATIO = 0.7
MEDIUM_DEMAND_RATIO = 0.3

# Supply = average listed quantity
ABUNDANT_SUPPLY_QUANTITY = 100
NORMAL_SUPPLY_QUANTITY = 50

# Volatility = stddev / mean of listed prices
HIGH_VOLATILITY = 0.3
LOW_VOLATILITY = 0.1

# Confidence
BASE_CONFIDENCE = 0.5
DEFAULT_CONFIDENCE = 0.3
MIN_CONFIDENCE = 0.1
MAX_CONFIDENCE = 0.95
HIGH_VOLATILITY_PENALTY = 0.1
LOW_VOLATILITY_BONUS = 0.05

# Counter-offer suggestions
BELOW_MARKET_FLOOR_FACTOR = 0.85
ABOVE_MARKET_CEILING_FACTOR = 1.1
DISCOUNT_PER_MESSAGE = 0.02
MAX_NEGOTIATION_DISCOUNT = 0.15

# Optimal price
BULK_SHARE_OF_STOCK = 0.5
BULK_DISCOUNT = 0.05
TREND_PRICE_ADJUSTMENT = 0.05
OPTIMAL_RANGE_BAND = 0.2

# Predictions
SEASONAL_WEEKLY_WEIGHT = 0.1
WEEKS_PER_MONTH = 4

TREND_MULTIPLIERS: Dict[str, float] = {
    "rising": 1.05,
    "falling": 0.95,
    "stable": 1.0,
}

# How favourable a market direction is for a fair deal
TREND_FAIRNESS: Dict[str, float] = {
    "stable": 1.0,
    "rising": 0.7,
    "falling": 0.8,
}


@dataclass(frozen=True)
class SeasonalFactor:
    """Multiplier applied to baseline prices for a category in a given month."""
    factor: float
    reason: str


@dataclass(frozen=True)
class DefaultPrice:
    """Fallback price band (INR per unit) when a category has no listings."""
    min: float
    max: float
    avg: float


NEUTRAL_SEASON = SeasonalFactor(1.0, "No strong seasonal pattern")

SeasonalFactorTable = Dict[str, Dict[int, SeasonalFactor]]

SEASONAL_FACTORS: SeasonalFactorTable = {
    "vegetables": {
        12: SeasonalFactor(0.8, "Winter harvest brings plenty of fresh vegetables"),
        1: SeasonalFactor(0.75, "Peak winter harvest"),
        2: SeasonalFactor(0.85, "Late winter harvest still in markets"),
        4: SeasonalFactor(1.1, "Summer heat reduces leafy vegetable supply"),
        5: SeasonalFactor(1.2, "Peak summer shortage"),
        7: SeasonalFactor(1.25, "Monsoon disrupts transport and field work"),
        8: SeasonalFactor(1.3, "Heavy monsoon rains damage crops"),
    },
    "fruits": {
        4: SeasonalFactor(0.8, "Mango season begins"),
        5: SeasonalFactor(0.7, "Peak mango and summer fruit arrivals"),
        6: SeasonalFactor(0.75, "Summer fruit arrivals continue"),
        10: SeasonalFactor(1.2, "Festival season demand"),
        11: SeasonalFactor(1.25, "Festival and wedding season demand"),
    },
    "grains": {
        4: SeasonalFactor(0.9, "Rabi harvest arriving"),
        5: SeasonalFactor(0.85, "Rabi harvest at peak"),
        7: SeasonalFactor(1.1, "Lean period before kharif harvest"),
        8: SeasonalFactor(1.1, "Lean period before kharif harvest"),
        10: SeasonalFactor(0.85, "Kharif harvest arriving"),
        11: SeasonalFactor(0.8, "Kharif harvest at peak"),
    },
    "dairy": {
        4: SeasonalFactor(1.15, "Summer lean season for milk"),
        5: SeasonalFactor(1.2, "Peak summer lean season"),
        6: SeasonalFactor(1.15, "Summer lean season for milk"),
        11: SeasonalFactor(0.9, "Winter flush season"),
        12: SeasonalFactor(0.9, "Winter flush season"),
        1: SeasonalFactor(0.9, "Winter flush season"),
    },
    "fish": {
        6: SeasonalFactor(1.3, "Monsoon fishing ban"),
        7: SeasonalFactor(1.3, "Monsoon fishing ban"),
        9: SeasonalFactor(0.85, "Post-monsoon catch is plentiful"),
        10: SeasonalFactor(0.85, "Post-monsoon catch is plentiful"),
    },
    "spices": {
        2: SeasonalFactor(0.85, "Spice harvest season"),
        3: SeasonalFactor(0.85, "Spice harvest season"),
        10: SeasonalFactor(1.15, "Festival season demand"),
        11: SeasonalFactor(1.15, "Festival season demand"),
    },
    "pulses": {
        3: SeasonalFactor(0.9, "Pulse harvest arriving"),
        4: SeasonalFactor(0.9, "Pulse harvest arriving"),
        9: SeasonalFactor(1.1, "Stocks run low before new crop"),
    },
    "oils": {
        10: SeasonalFactor(1.1, "Festival cooking demand"),
        11: SeasonalFactor(1.1, "Festival cooking demand"),
    },
}

DEFAULT_PRICES: Dict[str, DefaultPrice] = {
    "vegetables": DefaultPrice(min=20, max=80, avg=45),
    "fruits": DefaultPrice(min=30, max=150, avg=75),
    "grains": DefaultPrice(min=25, max=60, avg=40),
    "spices": DefaultPrice(min=100, max=500, avg=250),
    "dairy": DefaultPrice(min=40, max=120, avg=70),
    "meat": DefaultPrice(min=200, max=600, avg=350),
    "fish": DefaultPrice(min=150, max=400, avg=250),
    "pulses": DefaultPrice(min=60, max=150, avg=90),
    "oils": DefaultPrice(min=80, max=200, avg=120),
    "others": DefaultPrice(min=50, max=200, avg=100),
}


def get_seasonal_factor(category: str, month: int) -> SeasonalFactor:
    """Look up the seasonal multiplier, neutral when the table has no entry."""
    return SEASONAL_FACTORS.get(category, {}).get(month, NEUTRAL_SEASON)


def get_default_price(category: str) -> DefaultPrice:
    return DEFAULT_PRICES.get(category, DEFAULT_PRICES["others"])


def classify_window_trend(recent_average: float, prior_average: float) -> MarketTrend:
    """Compare the recent listing window against the one before it."""
    if prior_average <= 0:
        return "stable"

    change = (recent_average - prior_average) / prior_average
    if change > WINDOW_TREND_THRESHOLD:
        return "rising"
    if change < -WINDOW_TREND_THRESHOLD:
        return "falling"
    return "stable"


def classify_day_trend(average: float, previous_average: float) -> MarketTrend:
    """Day-over-day movement used by price history."""
    if previous_average <= 0:
        return "stable"

    change = (average - previous_average) / previous_average
    if change > DAY_TREND_THRESHOLD:
        return "rising"
    if change < -DAY_TREND_THRESHOLD:
        return "falling"
    return "stable"


def classify_demand(ratio: float) -> DemandLevel:
    if ratio >= HIGH_DEMAND_RATIO:
        return "high"
    if ratio >= MEDIUM_DEMAND_RATIO:
        return "medium"
    return "low"


def classify_supply(average_quantity: float) -> SupplyStatus:
    if average_quantity >= ABUNDANT_SUPPLY_QUANTITY:
        return "abundant"
    if average_quantity >= NORMAL_SUPPLY_QUANTITY:
        return "normal"
    return "scarce"


def classify_volatility(coefficient_of_variation: float) -> Volatility:
    if coefficient_of_variation > HIGH_VOLATILITY:
        return "high"
    if coefficient_of_variation < LOW_VOLATILITY:
        return "low"
    return "medium"


def compute_confidence(
    listing_count: int,
    completed_negotiations: int,
    history_points: int,
    volatility: Volatility = "medium",
) -> float:
    """
    Weighted confidence in a price discovery result.

    More listings, recent completed deals and history raise confidence;
    a scattered price distribution lowers it. Always within [0.1, 0.95].
    """
    confidence = BASE_CONFIDENCE
    confidence += min(0.3, listing_count * 0.02)
    confidence += min(0.15, completed_negotiations * 0.01)
    confidence += min(0.05, history_points * 0.001)

    if volatility == "high":
        confidence -= HIGH_VOLATILITY_PENALTY
    elif volatility == "low":
        confidence += LOW_VOLATILITY_BONUS

    return round(min(MAX_CONFIDENCE, max(MIN_CONFIDENCE, confidence)), 3)


def trend_multiplier(trend: str) -> float:
    return TREND_MULTIPLIERS.get(trend, 1.0)


def predict_prices(current: float, trend: str, seasonal_factor: float) -> Tuple[float, float]:
    """
    Project next-week and next-month prices.

    Returns:
        (next_week, next_month) rounded to 2 decimals
    """
    multiplier = trend_multiplier(trend)
    next_week = current * multiplier * (1 + (seasonal_factor - 1) * SEASONAL_WEEKLY_WEIGHT)
    next_month = current * multiplier ** WEEKS_PER_MONTH * seasonal_factor
    return round(next_week, 2), round(next_month, 2)


def build_recommendations(
    trend: str,
    season: SeasonalFactor,
    demand: str,
    supply: str,
    volatility: str,
) -> List[str]:
    """Plain-language hints derived from the classifications."""
    recommendations: List[str] = []

    if trend == "rising":
        recommendations.append("Prices are rising - buyers should lock in deals early")
    elif trend == "falling":
        recommendations.append("Prices are falling - buyers can wait for better offers")
    else:
        recommendations.append("Prices are stable - negotiate around the market average")

    if season.factor > 1.0:
        recommendations.append(f"Seasonal premium expected: {season.reason}")
    elif season.factor < 1.0:
        recommendations.append(f"Seasonal discount expected: {season.reason}")

    if demand == "high":
        recommendations.append("High demand - vendors can hold firm on price")
    elif demand == "low":
        recommendations.append("Low demand - buyers have more bargaining power")

    if supply == "scarce":
        recommendations.append("Supply is scarce - secure quantity before price")
    elif supply == "abundant":
        recommendations.append("Supply is abundant - compare several vendors")

    if volatility == "high":
        recommendations.append("Prices vary widely between vendors - check several listings")

    return recommendations
