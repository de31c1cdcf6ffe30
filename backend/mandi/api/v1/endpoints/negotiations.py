"""
Negotiation endpoints.

WHAT: REST surface of the negotiation state machine and engine
WHY: Clients without a socket (and the socket fallback) need the same operations
HOW: Thin FastAPI handlers; domain exceptions are rendered by the error handler
"""

from typing import Optional

from fastapi import APIRouter, Depends, Query, status

from ....core.config import settings
from ....core.models import NegotiationStatus
from ....core.negotiation_manager import negotiation_manager
from ....core.security import get_current_user_id
from ....models.api_schemas import (
    CreateNegotiationRequest,
    SendMessageRequest,
    SuggestionRequest,
    TransitionRequest,
    success_response,
)
from ....services.negotiation_engine import negotiation_engine
from ....utils.exceptions import AnalysisUnavailableException
from ....utils.logger import get_logger

logger = get_logger(__name__)

router = APIRouter()


@router.post("/negotiations", status_code=status.HTTP_201_CREATED)
async def create_negotiation(
    request: CreateNegotiationRequest,
    user_id: str = Depends(get_current_user_id),
):
    """Open a negotiation as the buyer with an initial offer."""
    negotiation = negotiation_manager.create_negotiation(
        buyer_id=user_id,
        product_id=request.product_id,
        offer_price=request.offer_price,
        offer_quantity=request.offer_quantity,
        message=request.message,
    )
    return success_response(negotiation)


@router.get("/negotiations")
async def list_negotiations(
    status_filter: Optional[NegotiationStatus] = Query(default=None, alias="status"),
    page: int = Query(default=1, ge=1),
    limit: int = Query(default=settings.NEGOTIATIONS_PAGE_SIZE, ge=1, le=100),
    user_id: str = Depends(get_current_user_id),
):
    return success_response(
        negotiation_manager.list_negotiations(user_id, status=status_filter, page=page, limit=limit)
    )


@router.get("/negotiations/{negotiation_id}")
async def get_negotiation(negotiation_id: str, user_id: str = Depends(get_current_user_id)):
    return success_response(negotiation_manager.get_negotiation(negotiation_id, user_id))


@router.post("/negotiations/{negotiation_id}/messages")
async def add_message(
    negotiation_id: str,
    request: SendMessageRequest,
    user_id: str = Depends(get_current_user_id),
):
    """
    Append a message, optionally carrying an offer.

    With a full offer and auto-suggest enabled, a counter-offer suggestion is
    returned next to the stored message. It is not stored in the chat.
    """
    result = negotiation_manager.add_message(
        negotiation_id,
        user_id,
        request.message,
        offer_price=request.offer_price,
        offer_quantity=request.offer_quantity,
        expected_version=request.expected_version,
    )

    suggestion = None
    if (
        settings.AUTO_SUGGEST_COUNTER_OFFERS
        and request.offer_price is not None
        and request.offer_quantity is not None
    ):
        suggestion = negotiation_engine.suggest_counter_offer(
            negotiation_id, request.offer_price, request.offer_quantity
        )

    result["suggestion"] = suggestion.model_dump() if suggestion else None
    return success_response(result)


@router.post("/negotiations/{negotiation_id}/complete")
async def complete_negotiation(
    negotiation_id: str,
    request: Optional[TransitionRequest] = None,
    user_id: str = Depends(get_current_user_id),
):
    return success_response(
        negotiation_manager.complete_negotiation(negotiation_id, user_id, request.expected_version if request else None)
    )


@router.post("/negotiations/{negotiation_id}/cancel")
async def cancel_negotiation(
    negotiation_id: str,
    request: Optional[TransitionRequest] = None,
    user_id: str = Depends(get_current_user_id),
):
    return success_response(
        negotiation_manager.cancel_negotiation(negotiation_id, user_id, request.expected_version if request else None)
    )


@router.get("/negotiations/{negotiation_id}/fairness")
async def analyze_fairness(negotiation_id: str, user_id: str = Depends(get_current_user_id)):
    # Party check first so outsiders get a 404 instead of an analysis
    negotiation_manager.get_negotiation(negotiation_id, user_id)

    analysis = negotiation_engine.analyze_fairness(negotiation_id)
    if analysis is None:
        raise AnalysisUnavailableException(negotiation_id, "Fairness analysis")
    return success_response(analysis.model_dump())


@router.post("/negotiations/{negotiation_id}/suggestion")
async def suggest_counter_offer(
    negotiation_id: str,
    request: SuggestionRequest,
    user_id: str = Depends(get_current_user_id),
):
    negotiation_manager.get_negotiation(negotiation_id, user_id)

    suggestion = negotiation_engine.suggest_counter_offer(
        negotiation_id, request.offer_price, request.offer_quantity
    )
    if suggestion is None:
        raise AnalysisUnavailableException(negotiation_id, "Counter-offer suggestion")
    return success_response(suggestion.model_dump())
