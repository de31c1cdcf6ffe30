"""
Schema and constraint tests.

WHAT: Test CHECK constraints, unique indexes and cascades on the marketplace tables
WHY: Ensure data integrity at database level, beneath the service checks
HOW: Insert invalid rows directly and verify IntegrityError is raised
"""

import pytest
from sqlalchemy.exc import IntegrityError

from mandi.core.database import get_db
from mandi.core.models import (
    Negotiation,
    NegotiationMessage,
    NegotiationStatus,
    Product,
    ProductCategory,
    ProductUnit,
    User,
    UserRole,
)


pytestmark = pytest.mark.unit


@pytest.fixture
def db_session():
    """Session that is rolled back instead of committed."""
    with get_db() as db:
        yield db
        db.rollback()


def listing(vendor_id, **overrides):
    fields = dict(
        vendor_id=vendor_id,
        name="Onions",
        category=ProductCategory.VEGETABLES,
        base_price=30.0,
        current_price=30.0,
        unit=ProductUnit.KG,
        quantity=50.0,
        city="Nashik",
        state="Maharashtra",
    )
    fields.update(overrides)
    return Product(**fields)


class TestCheckConstraints:

    @pytest.mark.parametrize("field", ["base_price", "current_price", "quantity"])
    def test_product_numbers_non_negative(self, db_session, vendor_id, field):
        db_session.add(listing(vendor_id, **{field: -1.0}))
        with pytest.raises(IntegrityError):
            db_session.flush()

    def test_message_offer_price_non_negative(self, db_session, buyer_id, vendor_id, product_id):
        negotiation = Negotiation(
            product_id=product_id, buyer_id=buyer_id, vendor_id=vendor_id,
            current_offer_price=10.0, current_offer_quantity=1.0,
            current_offer_proposed_by=buyer_id,
        )
        db_session.add(negotiation)
        db_session.flush()

        db_session.add(NegotiationMessage(
            negotiation_id=negotiation.id, sequence=0, sender_id=buyer_id,
            message="Free?", offer_price=-5.0,
        ))
        with pytest.raises(IntegrityError):
            db_session.flush()


class TestUniqueConstraints:

    def test_email_unique(self, db_session):
        db_session.add(User(name="A", email="same@example.com", role=UserRole.BUYER))
        db_session.add(User(name="B", email="same@example.com", role=UserRole.VENDOR))
        with pytest.raises(IntegrityError):
            db_session.flush()

    def test_message_sequence_unique_per_negotiation(self, db_session, buyer_id, vendor_id, product_id):
        negotiation = Negotiation(
            product_id=product_id, buyer_id=buyer_id, vendor_id=vendor_id,
            current_offer_price=10.0, current_offer_quantity=1.0,
            current_offer_proposed_by=buyer_id,
        )
        db_session.add(negotiation)
        db_session.flush()

        for text in ("first", "second"):
            db_session.add(NegotiationMessage(
                negotiation_id=negotiation.id, sequence=0, sender_id=buyer_id, message=text,
            ))
        with pytest.raises(IntegrityError):
            db_session.flush()

    def test_closed_negotiations_do_not_block_new_ones(self, db_session, buyer_id, vendor_id, product_id):
        for status in (NegotiationStatus.COMPLETED, NegotiationStatus.CANCELLED, NegotiationStatus.ACTIVE):
            db_session.add(Negotiation(
                product_id=product_id, buyer_id=buyer_id, vendor_id=vendor_id, status=status,
                current_offer_price=10.0, current_offer_quantity=1.0,
                current_offer_proposed_by=buyer_id,
            ))
        db_session.flush()

        assert db_session.query(Negotiation).count() == 3


class TestModelDefaults:

    def test_new_negotiation_defaults(self, db_session, buyer_id, vendor_id, product_id):
        negotiation = Negotiation(
            product_id=product_id, buyer_id=buyer_id, vendor_id=vendor_id,
            current_offer_price=10.0, current_offer_quantity=1.0,
            current_offer_proposed_by=buyer_id,
        )
        db_session.add(negotiation)
        db_session.flush()

        assert negotiation.status == NegotiationStatus.ACTIVE
        assert negotiation.version == 1
        assert negotiation.is_party(vendor_id)
        assert negotiation.counterparty_of(buyer_id) == vendor_id

    def test_messages_cascade_with_negotiation(self, db_session, buyer_id, vendor_id, product_id):
        negotiation = Negotiation(
            product_id=product_id, buyer_id=buyer_id, vendor_id=vendor_id,
            current_offer_price=10.0, current_offer_quantity=1.0,
            current_offer_proposed_by=buyer_id,
        )
        negotiation.messages.append(NegotiationMessage(sequence=0, sender_id=buyer_id, message="Hi"))
        db_session.add(negotiation)
        db_session.flush()

        db_session.delete(negotiation)
        db_session.flush()

        assert db_session.query(NegotiationMessage).count() == 0

    def test_location_label(self, vendor_id):
        assert listing(vendor_id).location_label == "Nashik, Maharashtra"
