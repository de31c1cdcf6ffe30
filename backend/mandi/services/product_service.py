"""
Product listing service.

WHAT: Vendor-owned listing CRUD with filtered, paginated browsing
WHY: Listings are what buyers negotiate on and what price discovery aggregates
HOW: Sync SQLAlchemy transactions; delete is a soft delete via is_active
"""

from typing import Any, Dict, Optional

from sqlalchemy import func, or_

from ..core.database import get_db
from ..core.models import Product, ProductCategory, User, UserRole
from ..utils.exceptions import (
    PermissionDeniedException,
    ProductNotFoundException,
    UserNotFoundException,
    ValidationException,
)
from ..utils.logger import get_logger

logger = get_logger(__name__)

# Fields a vendor may change after listing
UPDATABLE_FIELDS = (
    "name", "description", "category", "current_price", "unit",
    "quantity", "city", "state", "latitude", "longitude",
)

SORTABLE_COLUMNS = {
    "created_at": Product.created_at,
    "updated_at": Product.updated_at,
    "current_price": Product.current_price,
    "quantity": Product.quantity,
    "name": Product.name,
}


def serialize_product(product: Product) -> dict:
    return {
        "id": product.id,
        "vendor_id": product.vendor_id,
        "name": product.name,
        "description": product.description,
        "category": product.category.value,
        "base_price": product.base_price,
        "current_price": product.current_price,
        "unit": product.unit.value,
        "quantity": product.quantity,
        "location": {
            "city": product.city,
            "state": product.state,
            "latitude": product.latitude,
            "longitude": product.longitude,
        },
        "is_active": product.is_active,
        "created_at": product.created_at.isoformat() if product.created_at else None,
        "updated_at": product.updated_at.isoformat() if product.updated_at else None,
    }


class ProductService:
    """Listing CRUD. Only vendors create; only the owning vendor modifies."""

    def create_product(self, vendor_id: str, data: Dict[str, Any]) -> dict:
        with get_db() as db:
            vendor = db.get(User, vendor_id)
            if not vendor:
                raise UserNotFoundException(vendor_id)
            if vendor.role != UserRole.VENDOR:
                raise PermissionDeniedException("Only vendors can list products")

            fields = dict(data)
            fields.setdefault("current_price", fields["base_price"])
            product = Product(vendor_id=vendor_id, **fields)
            db.add(product)
            db.flush()
            result = serialize_product(product)

        logger.info(f"Vendor {vendor_id} listed product {result['id']} ({result['name']})")
        return result

    def get_product(self, product_id: str) -> dict:
        with get_db() as db:
            product = db.get(Product, product_id)
            if not product or not product.is_active:
                raise ProductNotFoundException(product_id)
            return serialize_product(product)

    def list_products(
        self,
        category: Optional[ProductCategory] = None,
        city: Optional[str] = None,
        state: Optional[str] = None,
        min_price: Optional[float] = None,
        max_price: Optional[float] = None,
        vendor_id: Optional[str] = None,
        search: Optional[str] = None,
        sort_by: str = "created_at",
        sort_order: str = "desc",
        page: int = 1,
        limit: int = 20,
    ) -> dict:
        """
        Browse active listings, newest first unless a sort is given.

        search matches a case-insensitive substring of name or description.

        Raises:
            ValidationException: sort_by is not one of SORTABLE_COLUMNS
        """
        page = max(page, 1)
        sort_column = SORTABLE_COLUMNS.get(sort_by)
        if sort_column is None:
            raise ValidationException(
                f"Cannot sort products by {sort_by}",
                [{"field": "sort_by", "value": sort_by}]
            )
        ordering = sort_column.asc() if sort_order == "asc" else sort_column.desc()

        with get_db() as db:
            query = db.query(Product).filter(Product.is_active.is_(True))
            if category is not None:
                query = query.filter(Product.category == category)
            if city:
                query = query.filter(Product.city.icontains(city, autoescape=True))
            if state:
                query = query.filter(Product.state.icontains(state, autoescape=True))
            if min_price is not None:
                query = query.filter(Product.current_price >= min_price)
            if max_price is not None:
                query = query.filter(Product.current_price <= max_price)
            if vendor_id:
                query = query.filter(Product.vendor_id == vendor_id)
            if search:
                query = query.filter(or_(
                    Product.name.icontains(search, autoescape=True),
                    Product.description.icontains(search, autoescape=True),
                ))

            total = query.with_entities(func.count(Product.id)).scalar() or 0
            products = (
                query.order_by(ordering, Product.id)
                .offset((page - 1) * limit)
                .limit(limit)
                .all()
            )

            return {
                "products": [serialize_product(p) for p in products],
                "pagination": {
                    "page": page,
                    "limit": limit,
                    "total": total,
                    "pages": (total + limit - 1) // limit,
                },
            }

    def _load_owned(self, db, product_id: str, vendor_id: str) -> Product:
        product = db.get(Product, product_id)
        if not product or not product.is_active:
            raise ProductNotFoundException(product_id)
        if product.vendor_id != vendor_id:
            raise PermissionDeniedException("Only the listing vendor can modify this product")
        return product

    def update_product(self, product_id: str, vendor_id: str, changes: Dict[str, Any]) -> dict:
        with get_db() as db:
            product = self._load_owned(db, product_id, vendor_id)
            for field, value in changes.items():
                if field in UPDATABLE_FIELDS:
                    setattr(product, field, value)
            db.flush()
            result = serialize_product(product)

        logger.info(f"Product {product_id} updated by {vendor_id}: {sorted(changes)}")
        return result

    def delete_product(self, product_id: str, vendor_id: str) -> dict:
        with get_db() as db:
            product = self._load_owned(db, product_id, vendor_id)
            product.is_active = False
            db.flush()

        logger.info(f"Product {product_id} delisted by {vendor_id}")
        return {"id": product_id, "is_active": False}


# Singleton instance
product_service = ProductService()
