"""
Price discovery endpoints.

WHAT: Market statistics, trends, history, location comparison, optimal price
WHY: Reference prices for buyers and vendors before and during negotiation
HOW: Read-only wrappers over PriceDiscoveryService and NegotiationEngine
"""

from typing import Optional

from fastapi import APIRouter, Query

from ....core.config import settings
from ....core.models import ProductCategory
from ....models.api_schemas import success_response
from ....services.negotiation_engine import negotiation_engine
from ....services.price_discovery import price_discovery_service
from ....utils.exceptions import ProductNotFoundException, ValidationException
from ....utils.logger import get_logger

logger = get_logger(__name__)

router = APIRouter()


def _location(city: Optional[str], state: Optional[str]) -> Optional[str]:
    """Build the "City, State" key; a lone state still narrows by state."""
    if not city and not state:
        return None
    return f"{city or ''}, {state or ''}".rstrip(", ").strip()


def _category(value: str) -> str:
    try:
        return ProductCategory(value.strip().lower()).value
    except ValueError:
        raise ValidationException(
            f"Unknown category: {value}",
            [{"field": "category", "value": value}]
        )


@router.get("/price-discovery")
async def get_price_discovery(
    category: str = Query(..., min_length=1),
    city: Optional[str] = None,
    state: Optional[str] = None,
):
    record = price_discovery_service.get_price_discovery(_category(category), _location(city, state))
    return success_response(record.model_dump(mode="json"))


@router.get("/price-discovery/trends")
async def get_market_trends(
    categories: str = Query(..., min_length=1, description="Comma separated categories"),
    city: Optional[str] = None,
    state: Optional[str] = None,
):
    names = [_category(c) for c in categories.split(",") if c.strip()]
    records = price_discovery_service.get_market_trends(names, _location(city, state))
    return success_response([r.model_dump(mode="json") for r in records])


@router.get("/price-discovery/history")
async def get_price_history(
    category: str = Query(..., min_length=1),
    city: Optional[str] = None,
    state: Optional[str] = None,
    days: int = Query(default=settings.PRICE_HISTORY_DEFAULT_DAYS, ge=1, le=365),
):
    points = price_discovery_service.get_price_history(_category(category), _location(city, state), days)
    return success_response([p.model_dump(mode="json") for p in points])


@router.get("/price-discovery/compare")
async def compare_locations(
    category: str = Query(..., min_length=1),
    locations: str = Query(..., min_length=1, description='";"-separated "City, State" values'),
):
    records = price_discovery_service.compare_locations(_category(category), locations.split(";"))
    return success_response([r.model_dump(mode="json") for r in records])


@router.get("/price-discovery/optimal-price")
async def get_optimal_price(
    product_id: str = Query(..., min_length=1),
    quantity: float = Query(..., gt=0),
):
    result = negotiation_engine.get_optimal_price(product_id, quantity)
    if result is None:
        raise ProductNotFoundException(product_id)
    return success_response(result.model_dump())
