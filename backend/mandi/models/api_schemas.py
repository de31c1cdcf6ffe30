"""
Pydantic API schemas for marketplace endpoints.

WHAT: Request models for REST and realtime payloads, plus response envelopes
WHY: Type-safe validation before anything reaches the state machine
HOW: Pydantic v2 models with validators and constraints
"""

from typing import Any, Dict, Optional

from pydantic import BaseModel, Field, field_validator, model_validator

from ..core.models import ProductCategory, ProductUnit
from ..services.translation import SUPPORTED_LANGUAGES


def success_response(data: Any) -> Dict[str, Any]:
    """Wrap a payload in the success envelope."""
    return {"success": True, "data": data}


# ========== Negotiations ==========

class CreateNegotiationRequest(BaseModel):
    """Buyer opening a negotiation with an initial offer."""
    product_id: str = Field(..., min_length=1, max_length=36)
    offer_price: float = Field(..., ge=0, description="Offered price per unit")
    offer_quantity: float = Field(..., gt=0, description="Requested quantity")
    message: str = Field(..., min_length=1, max_length=1000)


class SendMessageRequest(BaseModel):
    """
    Chat message with an optional offer.

    Both offer fields must be present for the message to replace the
    current offer; one alone is stored as-is.
    """
    message: str = Field(..., min_length=1, max_length=1000)
    offer_price: Optional[float] = Field(default=None, ge=0)
    offer_quantity: Optional[float] = Field(default=None, gt=0)
    expected_version: Optional[int] = Field(default=None, ge=1)

    @field_validator("message")
    @classmethod
    def strip_message(cls, v: str) -> str:
        v = v.strip()
        if not v:
            raise ValueError("message cannot be blank")
        return v


class TransitionRequest(BaseModel):
    """Body for complete/cancel, all optional."""
    expected_version: Optional[int] = Field(default=None, ge=1)


class SuggestionRequest(BaseModel):
    offer_price: float = Field(..., ge=0)
    offer_quantity: float = Field(..., gt=0)


# ========== Products ==========

class ProductCreate(BaseModel):
    name: str = Field(..., min_length=1, max_length=200)
    description: str = Field(default="", max_length=2000)
    category: ProductCategory
    base_price: float = Field(..., ge=0)
    current_price: Optional[float] = Field(default=None, ge=0)
    unit: ProductUnit
    quantity: float = Field(..., ge=0)
    city: str = Field(..., min_length=1, max_length=100)
    state: str = Field(..., min_length=1, max_length=100)
    latitude: Optional[float] = Field(default=None, ge=-90, le=90)
    longitude: Optional[float] = Field(default=None, ge=-180, le=180)


class ProductUpdate(BaseModel):
    name: Optional[str] = Field(default=None, min_length=1, max_length=200)
    description: Optional[str] = Field(default=None, max_length=2000)
    category: Optional[ProductCategory] = None
    current_price: Optional[float] = Field(default=None, ge=0)
    unit: Optional[ProductUnit] = None
    quantity: Optional[float] = Field(default=None, ge=0)
    city: Optional[str] = Field(default=None, min_length=1, max_length=100)
    state: Optional[str] = Field(default=None, min_length=1, max_length=100)
    latitude: Optional[float] = Field(default=None, ge=-90, le=90)
    longitude: Optional[float] = Field(default=None, ge=-180, le=180)

    @field_validator(
        "name", "description", "category", "current_price", "unit", "quantity", "city", "state",
        mode="before",
    )
    @classmethod
    def reject_null(cls, v):
        # Omit a field to leave it unchanged; only coordinates can be cleared with null
        if v is None:
            raise ValueError("cannot be null")
        return v


# ========== Translation ==========

class TranslateRequest(BaseModel):
    text: str = Field(..., min_length=1, max_length=2000)
    from_language: str
    to_language: str

    @field_validator("from_language", "to_language")
    @classmethod
    def check_language(cls, v: str) -> str:
        if v not in SUPPORTED_LANGUAGES:
            raise ValueError(f"Unsupported language: {v}")
        return v


class DetectLanguageRequest(BaseModel):
    text: str = Field(..., min_length=1, max_length=2000)


# ========== Realtime payloads ==========

class RoomPayload(BaseModel):
    """Any realtime event that only targets a negotiation."""
    negotiation_id: str = Field(..., min_length=1)


class RealtimeMessagePayload(RoomPayload):
    message: str = Field(..., min_length=1, max_length=1000)
    offer_price: Optional[float] = Field(default=None, ge=0)
    offer_quantity: Optional[float] = Field(default=None, gt=0)


class TypingPayload(RoomPayload):
    is_typing: bool = True


class RealtimeFrame(BaseModel):
    """Envelope of every socket frame: {"event": name, "data": {...}}."""
    event: str = Field(..., min_length=1)
    data: Dict[str, Any] = Field(default_factory=dict)

    @model_validator(mode="before")
    @classmethod
    def accept_bare_room_id(cls, values):
        # {"event": "negotiation:join", "data": "<id>"} is shorthand for a room payload
        if isinstance(values, dict) and isinstance(values.get("data"), str):
            values = {**values, "data": {"negotiation_id": values["data"]}}
        return values
