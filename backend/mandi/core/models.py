"""
ORM models for marketplace persistence.

WHAT: SQLAlchemy models for users, product listings, negotiations and messages
WHY: Persist listings and bargaining threads between buyers and vendors
HOW: Declarative models with constraints, relationships, indexes and a version column
"""

from datetime import datetime
from uuid import uuid4
from sqlalchemy import (
    Column, Integer, String, Float, Boolean, DateTime, Text,
    ForeignKey, CheckConstraint, Index, Enum as SQLEnum, text
)
from sqlalchemy.orm import relationship
import enum

from .database import Base


def _enum_values(enum_cls):
    return [member.value for member in enum_cls]


class UserRole(str, enum.Enum):
    """Marketplace roles."""
    BUYER = "buyer"
    VENDOR = "vendor"


class ProductCategory(str, enum.Enum):
    """Closed set of listing categories."""
    VEGETABLES = "vegetables"
    FRUITS = "fruits"
    GRAINS = "grains"
    SPICES = "spices"
    DAIRY = "dairy"
    MEAT = "meat"
    FISH = "fish"
    PULSES = "pulses"
    OILS = "oils"
    OTHERS = "others"


class ProductUnit(str, enum.Enum):
    """Closed set of selling units."""
    KG = "kg"
    GRAM = "gram"
    LITER = "liter"
    PIECE = "piece"
    DOZEN = "dozen"
    QUINTAL = "quintal"


class NegotiationStatus(str, enum.Enum):
    """Negotiation lifecycle. Only ACTIVE accepts mutations."""
    ACTIVE = "active"
    COMPLETED = "completed"
    CANCELLED = "cancelled"


class User(Base):
    """
    User table - buyers and vendors.

    WHAT: Marketplace participant with role and language preference
    WHY: Negotiations reference both parties; translation needs preferred_language
    HOW: Primary key on a generated UUID string
    """
    __tablename__ = "users"

    id = Column(String(36), primary_key=True, default=lambda: str(uuid4()))
    name = Column(String(100), nullable=False)
    email = Column(String(200), unique=True, nullable=False)
    phone = Column(String(20), nullable=True)
    role = Column(SQLEnum(UserRole, values_callable=_enum_values), nullable=False)
    preferred_language = Column(String(8), nullable=False, default="hi")
    city = Column(String(100), nullable=False, default="")
    state = Column(String(100), nullable=False, default="")
    created_at = Column(DateTime, nullable=False, default=datetime.utcnow)

    products = relationship("Product", back_populates="vendor")

    def __repr__(self):
        return f"<User(id={self.id}, name={self.name}, role={self.role})>"


class Product(Base):
    """
    Product table - vendor listings.

    WHAT: A priced, located quantity of one product offered by a vendor
    WHY: Negotiations target a product; price discovery aggregates listings
    HOW: FK to vendor, soft delete via is_active, CHECK constraints on price/quantity
    """
    __tablename__ = "products"

    id = Column(String(36), primary_key=True, default=lambda: str(uuid4()))
    vendor_id = Column(String(36), ForeignKey("users.id"), nullable=False)
    name = Column(String(200), nullable=False)
    description = Column(Text, nullable=False, default="")
    category = Column(SQLEnum(ProductCategory, values_callable=_enum_values), nullable=False)
    base_price = Column(Float, nullable=False)
    current_price = Column(Float, nullable=False)
    unit = Column(SQLEnum(ProductUnit, values_callable=_enum_values), nullable=False)
    quantity = Column(Float, nullable=False)
    city = Column(String(100), nullable=False)
    state = Column(String(100), nullable=False)
    latitude = Column(Float, nullable=True)
    longitude = Column(Float, nullable=True)
    is_active = Column(Boolean, nullable=False, default=True)
    created_at = Column(DateTime, nullable=False, default=datetime.utcnow)
    updated_at = Column(DateTime, nullable=False, default=datetime.utcnow, onupdate=datetime.utcnow)

    __table_args__ = (
        CheckConstraint("base_price >= 0", name="check_base_price_non_negative"),
        CheckConstraint("current_price >= 0", name="check_current_price_non_negative"),
        CheckConstraint("quantity >= 0", name="check_product_quantity_non_negative"),
        Index("idx_product_category_city", "category", "city"),
        Index("idx_product_vendor_active", "vendor_id", "is_active"),
    )

    vendor = relationship("User", back_populates="products")

    @property
    def location_label(self) -> str:
        return f"{self.city}, {self.state}"

    def __repr__(self):
        return f"<Product(id={self.id}, name={self.name}, price={self.current_price})>"


class Negotiation(Base):
    """
    Negotiation table - one bargaining thread between a buyer and a vendor.

    WHAT: Status, standing offer and final terms of a negotiation
    WHY: Single source of truth for the negotiation state machine
    HOW: FKs to product/buyer/vendor, partial unique index for one active thread
         per (product, buyer), version_id_col for optimistic concurrency
    """
    __tablename__ = "negotiations"

    id = Column(String(36), primary_key=True, default=lambda: str(uuid4()))
    product_id = Column(String(36), ForeignKey("products.id"), nullable=False)
    buyer_id = Column(String(36), ForeignKey("users.id"), nullable=False)
    vendor_id = Column(String(36), ForeignKey("users.id"), nullable=False)
    status = Column(
        SQLEnum(NegotiationStatus, values_callable=_enum_values),
        nullable=False,
        default=NegotiationStatus.ACTIVE
    )
    current_offer_price = Column(Float, nullable=False)
    current_offer_quantity = Column(Float, nullable=False)
    current_offer_proposed_by = Column(String(36), ForeignKey("users.id"), nullable=False)
    final_price = Column(Float, nullable=True)
    final_quantity = Column(Float, nullable=True)
    version = Column(Integer, nullable=False)
    created_at = Column(DateTime, nullable=False, default=datetime.utcnow)
    updated_at = Column(DateTime, nullable=False, default=datetime.utcnow, onupdate=datetime.utcnow)

    __table_args__ = (
        CheckConstraint("current_offer_price >= 0", name="check_current_offer_price_non_negative"),
        CheckConstraint("current_offer_quantity >= 0", name="check_current_offer_quantity_non_negative"),
        Index("idx_negotiation_parties", "product_id", "buyer_id", "vendor_id"),
        Index("idx_negotiation_status_updated", "status", "updated_at"),
        Index(
            "uq_active_negotiation_per_buyer",
            "product_id", "buyer_id",
            unique=True,
            sqlite_where=text("status = 'active'"),
            postgresql_where=text("status = 'active'"),
        ),
    )

    __mapper_args__ = {"version_id_col": version}

    product = relationship("Product")
    buyer = relationship("User", foreign_keys=[buyer_id])
    vendor = relationship("User", foreign_keys=[vendor_id])
    messages = relationship(
        "NegotiationMessage",
        back_populates="negotiation",
        order_by="NegotiationMessage.sequence",
        cascade="all, delete-orphan"
    )

    def is_party(self, user_id: str) -> bool:
        return user_id in (self.buyer_id, self.vendor_id)

    def counterparty_of(self, user_id: str) -> str:
        return self.vendor_id if user_id == self.buyer_id else self.buyer_id

    def __repr__(self):
        return f"<Negotiation(id={self.id}, product={self.product_id}, status={self.status})>"


class NegotiationMessage(Base):
    """
    NegotiationMessage table - append-only chat log of a negotiation.

    WHAT: Text, optional translation and optional offer from one party
    WHY: Conversation history drives suggestions and fairness analysis
    HOW: FK to Negotiation with a per-thread sequence number
    """
    __tablename__ = "negotiation_messages"

    id = Column(String(36), primary_key=True, default=lambda: str(uuid4()))
    negotiation_id = Column(String(36), ForeignKey("negotiations.id", ondelete="CASCADE"), nullable=False)
    sequence = Column(Integer, nullable=False)
    sender_id = Column(String(36), ForeignKey("users.id"), nullable=False)
    message = Column(Text, nullable=False)
    translated_message = Column(Text, nullable=True)
    offer_price = Column(Float, nullable=True)
    offer_quantity = Column(Float, nullable=True)
    timestamp = Column(DateTime, nullable=False, default=datetime.utcnow)

    __table_args__ = (
        CheckConstraint("offer_price IS NULL OR offer_price >= 0", name="check_message_offer_price"),
        CheckConstraint("offer_quantity IS NULL OR offer_quantity >= 0", name="check_message_offer_quantity"),
        Index("idx_message_negotiation_sequence", "negotiation_id", "sequence", unique=True),
    )

    negotiation = relationship("Negotiation", back_populates="messages")

    @property
    def has_offer(self) -> bool:
        return self.offer_price is not None and self.offer_quantity is not None

    def __repr__(self):
        return f"<NegotiationMessage(id={self.id}, sender={self.sender_id}, seq={self.sequence})>"
