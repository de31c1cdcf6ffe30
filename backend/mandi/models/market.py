"""
Market analytics models.

WHAT: Result types for price discovery and the negotiation engine
WHY: Consistent typing between services, cache and API responses
HOW: Pydantic v2 models compatible with FastAPI schemas
"""

from datetime import date, datetime
from typing import List, Literal

from pydantic import BaseModel, Field


class PriceRange(BaseModel):
    min: float
    max: float


class MarketInsights(BaseModel):
    """Heuristic insight bundle attached to every price discovery record."""

    seasonal_factor: float
    seasonal_reason: str
    demand_level: Literal["high", "medium", "low"]
    supply_status: Literal["abundant", "normal", "scarce"]
    volatility: Literal["high", "medium", "low"]
    recommendations: List[str] = Field(default_factory=list)


class PricePredictions(BaseModel):
    next_week: float
    next_month: float


class PriceDiscoveryRecord(BaseModel):
    """Derived market statistics for one (category, location) pair."""

    category: str
    location: str
    average_price: float
    price_range: PriceRange
    market_trend: Literal["rising", "falling", "stable"]
    confidence: float = Field(ge=0.0, le=1.0)
    sample_size: int = 0
    is_default: bool = False
    ai_insights: MarketInsights
    predictions: PricePredictions
    last_updated: datetime


class PriceHistoryPoint(BaseModel):
    date: date
    average_price: float
    volume: int
    trend: Literal["rising", "falling", "stable"]


class CounterOfferSuggestion(BaseModel):
    suggested_price: float
    suggested_quantity: float
    reasoning: str
    confidence: float


class FairnessAnalysis(BaseModel):
    fairness_score: float = Field(ge=0.0, le=1.0)
    analysis: str
    recommendations: List[str] = Field(default_factory=list)


class OptimalPrice(BaseModel):
    optimal_price: float
    price_range: PriceRange
    reasoning: str
