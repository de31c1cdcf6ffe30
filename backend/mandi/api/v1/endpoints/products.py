"""
Product listing endpoints.

WHAT: Create, browse, read, update and delist products
WHY: Vendors manage listings; buyers browse what they can negotiate on
HOW: FastAPI handlers over ProductService; ownership enforced in the service
"""

from typing import Literal, Optional

from fastapi import APIRouter, Depends, Query, status

from ....core.models import ProductCategory
from ....core.security import get_current_user_id
from ....models.api_schemas import ProductCreate, ProductUpdate, success_response
from ....services.product_service import product_service
from ....utils.logger import get_logger

logger = get_logger(__name__)

router = APIRouter()


@router.post("/products", status_code=status.HTTP_201_CREATED)
async def create_product(request: ProductCreate, user_id: str = Depends(get_current_user_id)):
    data = request.model_dump(exclude_none=True)
    return success_response(product_service.create_product(user_id, data))


@router.get("/products")
async def list_products(
    category: Optional[ProductCategory] = None,
    city: Optional[str] = None,
    state: Optional[str] = None,
    min_price: Optional[float] = Query(default=None, ge=0),
    max_price: Optional[float] = Query(default=None, ge=0),
    vendor_id: Optional[str] = None,
    search: Optional[str] = Query(default=None, max_length=100),
    sort_by: str = "created_at",
    sort_order: Literal["asc", "desc"] = "desc",
    page: int = Query(default=1, ge=1),
    limit: int = Query(default=20, ge=1, le=100),
):
    return success_response(product_service.list_products(
        category=category,
        city=city,
        state=state,
        min_price=min_price,
        max_price=max_price,
        vendor_id=vendor_id,
        search=search,
        sort_by=sort_by,
        sort_order=sort_order,
        page=page,
        limit=limit,
    ))


@router.get("/products/{product_id}")
async def get_product(product_id: str):
    return success_response(product_service.get_product(product_id))


@router.patch("/products/{product_id}")
async def update_product(
    product_id: str,
    request: ProductUpdate,
    user_id: str = Depends(get_current_user_id),
):
    changes = request.model_dump(exclude_unset=True)
    return success_response(product_service.update_product(product_id, user_id, changes))


@router.delete("/products/{product_id}")
async def delete_product(product_id: str, user_id: str = Depends(get_current_user_id)):
    return success_response(product_service.delete_product(product_id, user_id))
