"""
Negotiation manager - the negotiation state machine.

WHAT: Create, read, message, complete and cancel negotiations
WHY: Single place that enforces lifecycle and party rules for REST and realtime
HOW: Short SQLAlchemy transactions per operation; version_id_col turns racing
     writes into ConcurrentModificationException instead of last-write-wins
"""

from datetime import datetime
from typing import Dict, List, Optional

from sqlalchemy import func, or_
from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import Session as DBSession, selectinload
from sqlalchemy.orm.exc import StaleDataError

from .config import settings
from .database import get_db
from .models import (
    Negotiation, NegotiationMessage, NegotiationStatus, Product, User
)
from ..utils.exceptions import (
    ConcurrentModificationException,
    NegotiationAlreadyActiveException,
    NegotiationNotActiveException,
    NegotiationNotFoundException,
    ProductNotFoundException,
    SelfNegotiationException,
    UserNotFoundException,
    ValidationException,
)
from ..utils.logger import get_logger, negotiation_logger

logger = get_logger(__name__)


ACTIVE_PAIR_INDEX = "uq_active_negotiation_per_buyer"
# SQLite reports unique index violations by column list, not index name
ACTIVE_PAIR_COLUMNS = "negotiations.product_id, negotiations.buyer_id"


def _iso(value: Optional[datetime]) -> Optional[str]:
    return value.isoformat() if value else None


def _violates_active_pair_index(error: IntegrityError) -> bool:
    reason = str(error.orig)
    return ACTIVE_PAIR_INDEX in reason or ACTIVE_PAIR_COLUMNS in reason


def serialize_message(message: NegotiationMessage) -> dict:
    return {
        "id": message.id,
        "negotiation_id": message.negotiation_id,
        "sequence": message.sequence,
        "sender_id": message.sender_id,
        "message": message.message,
        "translated_message": message.translated_message,
        "offer_price": message.offer_price,
        "offer_quantity": message.offer_quantity,
        "timestamp": _iso(message.timestamp),
    }


def serialize_negotiation(negotiation: Negotiation, include_messages: bool = True) -> dict:
    """
    Render a negotiation as a plain dict.

    Must be called while the owning session is still open so lazy
    relationships can load.
    """
    data = {
        "id": negotiation.id,
        "product_id": negotiation.product_id,
        "product_name": negotiation.product.name if negotiation.product else None,
        "buyer_id": negotiation.buyer_id,
        "vendor_id": negotiation.vendor_id,
        "status": negotiation.status.value,
        "current_offer": {
            "price": negotiation.current_offer_price,
            "quantity": negotiation.current_offer_quantity,
            "proposed_by": negotiation.current_offer_proposed_by,
        },
        "final_price": negotiation.final_price,
        "final_quantity": negotiation.final_quantity,
        "version": negotiation.version,
        "message_count": len(negotiation.messages),
        "created_at": _iso(negotiation.created_at),
        "updated_at": _iso(negotiation.updated_at),
    }
    if include_messages:
        data["messages"] = [serialize_message(m) for m in negotiation.messages]
    return data


class NegotiationManager:
    """
    Enforce the negotiation lifecycle.

    States: active -> completed, active -> cancelled. Terminal states reject
    every mutation with NegotiationNotActiveException. Every read and write
    requires the caller to be the buyer or the vendor; outsiders get
    NegotiationNotFoundException so existence is not leaked.
    """

    def __init__(self, offer_update_policy: Optional[str] = None):
        self.offer_update_policy = offer_update_policy or settings.OFFER_UPDATE_POLICY

    # ------------------------------------------------------------------
    # Helpers
    # ------------------------------------------------------------------

    def _load_for_party(self, db: DBSession, negotiation_id: str, user_id: str) -> Negotiation:
        negotiation = db.get(
            Negotiation,
            negotiation_id,
            options=[selectinload(Negotiation.messages), selectinload(Negotiation.product)]
        )
        if not negotiation or not negotiation.is_party(user_id):
            raise NegotiationNotFoundException(negotiation_id)
        return negotiation

    def _load_active(
        self,
        db: DBSession,
        negotiation_id: str,
        user_id: str,
        expected_version: Optional[int] = None,
    ) -> Negotiation:
        negotiation = self._load_for_party(db, negotiation_id, user_id)
        if negotiation.status != NegotiationStatus.ACTIVE:
            raise NegotiationNotActiveException(negotiation_id, negotiation.status.value)
        if expected_version is not None and negotiation.version != expected_version:
            raise ConcurrentModificationException(negotiation_id)
        return negotiation

    def _should_replace_offer(self, negotiation: Negotiation, sender_id: str) -> bool:
        if self.offer_update_policy == "opposing_party":
            return sender_id != negotiation.current_offer_proposed_by
        return True

    # ------------------------------------------------------------------
    # Operations
    # ------------------------------------------------------------------

    def create_negotiation(
        self,
        buyer_id: str,
        product_id: str,
        offer_price: float,
        offer_quantity: float,
        message: str,
    ) -> dict:
        """
        Open a negotiation on a product.

        Seeds the thread with one message carrying the initial offer, which
        also becomes the current offer proposed by the buyer.

        Raises:
            ProductNotFoundException: product missing or delisted
            UserNotFoundException: buyer unknown
            SelfNegotiationException: buyer owns the product
            NegotiationAlreadyActiveException: an active thread already exists
        """
        if offer_price < 0 or offer_quantity <= 0:
            raise ValidationException(
                "Offer price must be non-negative and quantity positive",
                [
                    {"field": "offer_price", "value": str(offer_price)},
                    {"field": "offer_quantity", "value": str(offer_quantity)},
                ]
            )

        try:
            with get_db() as db:
                product = db.get(Product, product_id)
                if not product or not product.is_active:
                    raise ProductNotFoundException(product_id)

                if not db.get(User, buyer_id):
                    raise UserNotFoundException(buyer_id)

                if product.vendor_id == buyer_id:
                    raise SelfNegotiationException(product_id)

                existing = db.query(Negotiation.id).filter(
                    Negotiation.product_id == product_id,
                    Negotiation.buyer_id == buyer_id,
                    Negotiation.status == NegotiationStatus.ACTIVE
                ).first()
                if existing:
                    raise NegotiationAlreadyActiveException(product_id, buyer_id)

                negotiation = Negotiation(
                    product_id=product_id,
                    buyer_id=buyer_id,
                    vendor_id=product.vendor_id,
                    status=NegotiationStatus.ACTIVE,
                    current_offer_price=offer_price,
                    current_offer_quantity=offer_quantity,
                    current_offer_proposed_by=buyer_id,
                )
                negotiation.messages.append(NegotiationMessage(
                    sequence=0,
                    sender_id=buyer_id,
                    message=message,
                    offer_price=offer_price,
                    offer_quantity=offer_quantity,
                ))
                db.add(negotiation)
                db.flush()

                result = serialize_negotiation(negotiation)
        except IntegrityError as e:
            if not _violates_active_pair_index(e):
                raise
            # Lost the race against a concurrent create for the same pair
            raise NegotiationAlreadyActiveException(product_id, buyer_id)

        logger.info(
            f"Negotiation {result['id']} opened by {buyer_id} on product {product_id} "
            f"at ₹{offer_price} x {offer_quantity}"
        )
        return result

    def get_negotiation(self, negotiation_id: str, user_id: str) -> dict:
        with get_db() as db:
            negotiation = self._load_for_party(db, negotiation_id, user_id)
            return serialize_negotiation(negotiation)

    def list_negotiations(
        self,
        user_id: str,
        status: Optional[NegotiationStatus] = None,
        page: int = 1,
        limit: Optional[int] = None,
    ) -> dict:
        """
        List negotiations where the user is buyer or vendor, newest update first.

        Returns:
            Dict with negotiations (without message bodies) and pagination
        """
        limit = limit or settings.NEGOTIATIONS_PAGE_SIZE
        page = max(page, 1)

        with get_db() as db:
            query = db.query(Negotiation).filter(
                or_(Negotiation.buyer_id == user_id, Negotiation.vendor_id == user_id)
            )
            if status is not None:
                query = query.filter(Negotiation.status == status)

            total = query.with_entities(func.count(Negotiation.id)).scalar() or 0
            negotiations = (
                query.options(selectinload(Negotiation.messages), selectinload(Negotiation.product))
                .order_by(Negotiation.updated_at.desc())
                .offset((page - 1) * limit)
                .limit(limit)
                .all()
            )

            items: List[Dict] = [serialize_negotiation(n, include_messages=False) for n in negotiations]

        return {
            "negotiations": items,
            "pagination": {
                "page": page,
                "limit": limit,
                "total": total,
                "pages": (total + limit - 1) // limit,
            },
        }

    def add_message(
        self,
        negotiation_id: str,
        sender_id: str,
        message: str,
        offer_price: Optional[float] = None,
        offer_quantity: Optional[float] = None,
        translated_message: Optional[str] = None,
        expected_version: Optional[int] = None,
    ) -> dict:
        """
        Append a message, replacing the current offer when it carries a full offer.

        A message with only one of price/quantity is stored but leaves the
        current offer untouched.

        Returns:
            Dict with the stored message, the updated negotiation (without
            message bodies) and whether the current offer changed
        """
        try:
            with get_db() as db:
                negotiation = self._load_active(db, negotiation_id, sender_id, expected_version)

                stored = NegotiationMessage(
                    sequence=len(negotiation.messages),
                    sender_id=sender_id,
                    message=message,
                    translated_message=translated_message,
                    offer_price=offer_price,
                    offer_quantity=offer_quantity,
                )
                negotiation.messages.append(stored)

                offer_updated = stored.has_offer and self._should_replace_offer(negotiation, sender_id)
                if offer_updated:
                    negotiation.current_offer_price = offer_price
                    negotiation.current_offer_quantity = offer_quantity
                    negotiation.current_offer_proposed_by = sender_id

                # Touch the row so the version moves on every append
                negotiation.updated_at = datetime.utcnow()
                db.flush()

                result = {
                    "message": serialize_message(stored),
                    "negotiation": serialize_negotiation(negotiation, include_messages=False),
                    "offer_updated": offer_updated,
                }
        except StaleDataError:
            negotiation_logger(logger, negotiation_id, sender_id).warning("Message lost a concurrent write")
            raise ConcurrentModificationException(negotiation_id)

        negotiation_logger(logger, negotiation_id, sender_id).debug(
            f"Message {result['message']['sequence']} stored"
            + (" (offer updated)" if offer_updated else "")
        )
        return result

    def complete_negotiation(
        self,
        negotiation_id: str,
        user_id: str,
        expected_version: Optional[int] = None,
    ) -> dict:
        """Accept the current offer, freezing it as the final price and quantity."""
        try:
            with get_db() as db:
                negotiation = self._load_active(db, negotiation_id, user_id, expected_version)
                negotiation.status = NegotiationStatus.COMPLETED
                negotiation.final_price = negotiation.current_offer_price
                negotiation.final_quantity = negotiation.current_offer_quantity
                db.flush()
                result = serialize_negotiation(negotiation, include_messages=False)
        except StaleDataError:
            raise ConcurrentModificationException(negotiation_id)

        negotiation_logger(logger, negotiation_id, user_id).info(
            f"Completed at ₹{result['final_price']} x {result['final_quantity']}"
        )
        return result

    def cancel_negotiation(
        self,
        negotiation_id: str,
        user_id: str,
        expected_version: Optional[int] = None,
    ) -> dict:
        try:
            with get_db() as db:
                negotiation = self._load_active(db, negotiation_id, user_id, expected_version)
                negotiation.status = NegotiationStatus.CANCELLED
                db.flush()
                result = serialize_negotiation(negotiation, include_messages=False)
        except StaleDataError:
            raise ConcurrentModificationException(negotiation_id)

        negotiation_logger(logger, negotiation_id, user_id).info("Cancelled")
        return result

    def resolve_participants(self, negotiation_id: str, sender_id: str) -> dict:
        """
        Validate an active negotiation for a sender and resolve the receiving party.

        Returns:
            Dict with receiver_id, sender_language and receiver_language
        """
        with get_db() as db:
            negotiation = self._load_active(db, negotiation_id, sender_id)
            receiver_id = negotiation.counterparty_of(sender_id)

            sender = db.get(User, sender_id)
            receiver = db.get(User, receiver_id)
            if not sender:
                raise UserNotFoundException(sender_id)
            if not receiver:
                raise UserNotFoundException(receiver_id)

            return {
                "receiver_id": receiver_id,
                "sender_language": sender.preferred_language,
                "receiver_language": receiver.preferred_language,
            }


# Global manager instance
negotiation_manager = NegotiationManager()
