"""
Negotiation engine for counter-offer suggestions and fairness analysis.

WHAT: Market-aware pricing advice for an ongoing negotiation
WHY: Help both parties converge on a fair price instead of guessing
HOW: Combine price discovery output with negotiation history using the
     thresholds in market_rules; every public method fails soft to None
"""

from typing import Optional

from ..core.database import get_db
from ..core.models import Negotiation, Product
from ..models.market import (
    CounterOfferSuggestion,
    FairnessAnalysis,
    OptimalPrice,
    PriceDiscoveryRecord,
    PriceRange,
)
from ..utils.logger import get_logger
from . import market_rules as rules
from .price_discovery import PriceDiscoveryService, price_discovery_service

logger = get_logger(__name__)


def suggest_from_market(
    market: PriceDiscoveryRecord,
    listed_price: float,
    available_quantity: float,
    unit: str,
    message_count: int,
    offer_price: float,
    offer_quantity: float,
) -> CounterOfferSuggestion:
    """
    Pick a counter-offer price for an offer against market data.

    Three branches:
    - below market minimum: max(market min, listed * 0.85)
    - above market maximum: min(market max, listed * 1.1)
    - within range: listed price discounted 2% per message, capped at 15%
    """
    market_min = market.price_range.min
    market_max = market.price_range.max

    if offer_price < market_min:
        suggested_price = max(market_min, listed_price * rules.BELOW_MARKET_FLOOR_FACTOR)
        reasoning = (
            f"Your offer is below market minimum (₹{market_min:.2f}). "
            f"Consider ₹{suggested_price:.2f} which is fair based on current market trends."
        )
    elif offer_price > market_max:
        suggested_price = min(market_max, listed_price * rules.ABOVE_MARKET_CEILING_FACTOR)
        reasoning = (
            f"Your offer exceeds market maximum (₹{market_max:.2f}). "
            f"A fair price would be around ₹{suggested_price:.2f}."
        )
    else:
        discount = min(rules.MAX_NEGOTIATION_DISCOUNT, message_count * rules.DISCOUNT_PER_MESSAGE)
        suggested_price = listed_price * (1 - discount)
        reasoning = (
            f"Based on {message_count} rounds of negotiation and current market trends, "
            f"₹{suggested_price:.2f} would be a fair compromise."
        )

    suggested_quantity = offer_quantity
    if offer_quantity > available_quantity:
        suggested_quantity = available_quantity
        reasoning += f" Note: Maximum available quantity is {available_quantity:g} {unit}."

    return CounterOfferSuggestion(
        suggested_price=round(suggested_price, 2),
        suggested_quantity=suggested_quantity,
        reasoning=reasoning,
        confidence=round(min(rules.MAX_CONFIDENCE, market.confidence * 0.8 + 0.2), 3),
    )


def fairness_from_market(
    market: PriceDiscoveryRecord,
    current_price: float,
    buyer_messages: int,
    vendor_messages: int,
) -> FairnessAnalysis:
    """
    Score how balanced and market-aligned the standing offer is.

    Starts at 0.5 and adds 40% price alignment, 30% message balance and
    30% trend favourability, then clamps to [0, 1].
    """
    market_average = market.average_price
    if market_average > 0:
        deviation = abs(current_price - market_average) / market_average
        price_fairness = max(0.0, 1 - deviation * 2)
    else:
        price_fairness = 0.0

    total_messages = buyer_messages + vendor_messages
    message_balance = 1 - abs(buyer_messages - vendor_messages) / max(total_messages, 1)
    trend_fairness = rules.TREND_FAIRNESS.get(market.market_trend, 1.0)

    score = 0.5 + price_fairness * 0.4 + message_balance * 0.3 + trend_fairness * 0.3

    analysis = f"Current offer of ₹{current_price:.2f} "
    recommendations = []

    if current_price < market_average * 0.9:
        analysis += "is below market average. "
        recommendations.append("Consider increasing the offer to match market rates")
    elif current_price > market_average * 1.1:
        analysis += "is above market average. "
        recommendations.append("Consider reducing the price to market levels")
    else:
        analysis += "is within fair market range. "

    if message_balance < 0.7:
        recommendations.append("Encourage more balanced participation from both parties")

    if market.market_trend == "rising":
        recommendations.append("Consider market is trending upward - prices may increase")
    elif market.market_trend == "falling":
        recommendations.append("Market is trending downward - good time for buyers")

    return FairnessAnalysis(
        fairness_score=round(min(1.0, max(0.0, score)), 3),
        analysis=analysis.strip(),
        recommendations=recommendations,
    )


def optimal_from_market(
    market: PriceDiscoveryRecord,
    listed_price: float,
    available_quantity: float,
    unit: str,
    quantity: float,
) -> OptimalPrice:
    """Market average adjusted for bulk quantity and trend direction."""
    optimal = market.average_price

    if quantity > available_quantity * rules.BULK_SHARE_OF_STOCK:
        optimal *= 1 - rules.BULK_DISCOUNT

    if market.market_trend == "rising":
        optimal *= 1 + rules.TREND_PRICE_ADJUSTMENT
    elif market.market_trend == "falling":
        optimal *= 1 - rules.TREND_PRICE_ADJUSTMENT

    price_range = PriceRange(
        min=round(max(market.price_range.min, listed_price * (1 - rules.OPTIMAL_RANGE_BAND)), 2),
        max=round(min(market.price_range.max, listed_price * (1 + rules.OPTIMAL_RANGE_BAND)), 2),
    )

    reasoning = (
        f"Optimal price calculated based on market average (₹{market.average_price:.2f}), "
        f"current trend ({market.market_trend}), "
        f"and quantity requested ({quantity:g} {unit})."
    )

    return OptimalPrice(optimal_price=round(optimal, 2), price_range=price_range, reasoning=reasoning)


class NegotiationEngine:
    """
    Database-facing wrapper around the pure pricing functions.

    WHAT: Load the negotiation/product, fetch market data, delegate
    WHY: Endpoints and the realtime layer only know identifiers
    HOW: Not found or any unexpected error is logged and returned as None
    """

    def __init__(self, pricing: Optional[PriceDiscoveryService] = None):
        self.pricing = pricing or price_discovery_service

    def _market_for(self, product: Product) -> PriceDiscoveryRecord:
        return self.pricing.get_price_discovery(product.category.value, product.location_label)

    def suggest_counter_offer(
        self,
        negotiation_id: str,
        offer_price: float,
        offer_quantity: float,
    ) -> Optional[CounterOfferSuggestion]:
        try:
            with get_db() as db:
                negotiation = db.get(Negotiation, negotiation_id)
                if not negotiation or not negotiation.product:
                    return None

                product = negotiation.product
                message_count = len(negotiation.messages)
                market = self._market_for(product)

                suggestion = suggest_from_market(
                    market,
                    listed_price=product.current_price,
                    available_quantity=product.quantity,
                    unit=product.unit.value,
                    message_count=message_count,
                    offer_price=offer_price,
                    offer_quantity=offer_quantity,
                )

            logger.info(
                f"Suggested ₹{suggestion.suggested_price} x {suggestion.suggested_quantity} "
                f"for negotiation {negotiation_id}"
            )
            return suggestion
        except Exception as e:
            logger.error(f"Counter-offer suggestion failed for {negotiation_id}: {e}", exc_info=True)
            return None

    def analyze_fairness(self, negotiation_id: str) -> Optional[FairnessAnalysis]:
        try:
            with get_db() as db:
                negotiation = db.get(Negotiation, negotiation_id)
                if not negotiation or not negotiation.product:
                    return None

                buyer_messages = sum(1 for m in negotiation.messages if m.sender_id == negotiation.buyer_id)
                vendor_messages = sum(1 for m in negotiation.messages if m.sender_id == negotiation.vendor_id)
                market = self._market_for(negotiation.product)

                return fairness_from_market(
                    market,
                    current_price=negotiation.current_offer_price,
                    buyer_messages=buyer_messages,
                    vendor_messages=vendor_messages,
                )
        except Exception as e:
            logger.error(f"Fairness analysis failed for {negotiation_id}: {e}", exc_info=True)
            return None

    def get_optimal_price(self, product_id: str, quantity: float) -> Optional[OptimalPrice]:
        try:
            with get_db() as db:
                product = db.get(Product, product_id)
                if not product:
                    return None

                market = self._market_for(product)
                return optimal_from_market(
                    market,
                    listed_price=product.current_price,
                    available_quantity=product.quantity,
                    unit=product.unit.value,
                    quantity=quantity,
                )
        except Exception as e:
            logger.error(f"Optimal price calculation failed for {product_id}: {e}", exc_info=True)
            return None


# Singleton instance
negotiation_engine = NegotiationEngine()
