"""
Pytest configuration and shared fixtures for backend tests.

WHAT: Test environment, markers, fresh database and data factories
WHY: Every test starts from empty tables and cold caches
HOW: Point settings at a throwaway SQLite file before the app is imported,
     then drop/recreate tables around each test
"""

import os
import tempfile
from datetime import datetime
from uuid import uuid4

# Must run before any mandi import so Settings picks these up
_TEST_DIR = tempfile.mkdtemp(prefix="mandi-tests-")
os.environ["DATABASE_URL"] = f"sqlite:///{_TEST_DIR}/test.db"
os.environ["LOG_FILE"] = os.path.join(_TEST_DIR, "logs", "app.log")
os.environ["JWT_SECRET"] = "test-secret"
os.environ["TRANSLATION_DELAY_SECONDS"] = "0"
os.environ["OFFER_UPDATE_POLICY"] = "any_party"
os.environ["AUTO_SUGGEST_COUNTER_OFFERS"] = "true"

import pytest

from mandi.core.database import get_db, reset_db
from mandi.core.models import Product, ProductCategory, ProductUnit, User, UserRole
from mandi.core.security import create_access_token
from mandi.services.price_discovery import price_discovery_service
from mandi.services.realtime_hub import negotiation_hub
from mandi.services.translation import translation_service


def pytest_configure(config):
    """Register custom markers."""
    config.addinivalue_line(
        "markers", "unit: Unit tests (isolated component tests)"
    )
    config.addinivalue_line(
        "markers", "integration: Integration tests (multiple components)"
    )


@pytest.fixture(autouse=True)
def fresh_db():
    """
    Recreate all tables and reset process-wide caches.

    WHAT: Empty database, empty price cache, empty translation memo, no rooms
    WHY: Singletons would otherwise leak state between tests
    HOW: reset_db before each test
    """
    reset_db()
    price_discovery_service.clear_cache()
    translation_service.clear_cache()
    negotiation_hub.rooms.clear()
    yield


@pytest.fixture
def make_user():
    """Factory creating a user row and returning its id."""
    def _make(role: str = "buyer", name: str = None, language: str = "hi",
              city: str = "Pune", state: str = "Maharashtra") -> str:
        with get_db() as db:
            user = User(
                name=name or f"{role.title()} {uuid4().hex[:6]}",
                email=f"{uuid4().hex}@example.com",
                role=UserRole(role),
                preferred_language=language,
                city=city,
                state=state,
            )
            db.add(user)
            db.flush()
            return user.id
    return _make


@pytest.fixture
def make_product():
    """Factory creating a listing and returning its id."""
    def _make(vendor_id: str, name: str = "Tomatoes", category: str = "vegetables",
              price: float = 50.0, quantity: float = 100.0, unit: str = "kg",
              city: str = "Pune", state: str = "Maharashtra", description: str = "",
              updated_at: datetime = None, is_active: bool = True) -> str:
        with get_db() as db:
            product = Product(
                vendor_id=vendor_id,
                name=name,
                description=description,
                category=ProductCategory(category),
                base_price=price,
                current_price=price,
                unit=ProductUnit(unit),
                quantity=quantity,
                city=city,
                state=state,
                is_active=is_active,
            )
            if updated_at is not None:
                product.created_at = updated_at
                product.updated_at = updated_at
            db.add(product)
            db.flush()
            return product.id
    return _make


@pytest.fixture
def vendor_id(make_user):
    return make_user(role="vendor", name="Ramesh", language="hi")


@pytest.fixture
def buyer_id(make_user):
    return make_user(role="buyer", name="Anita", language="en")


@pytest.fixture
def product_id(make_product, vendor_id):
    return make_product(vendor_id)


@pytest.fixture
def auth_headers():
    """Build an Authorization header for a user id."""
    def _headers(user_id: str) -> dict:
        return {"Authorization": f"Bearer {create_access_token(user_id)}"}
    return _headers
