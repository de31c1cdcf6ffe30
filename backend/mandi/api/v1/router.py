"""
API v1 router aggregation.

WHAT: Mount every v1 endpoint module under /api/v1
WHY: Single place to see the marketplace's public surface
HOW: Include each module's router with its OpenAPI tag
"""

from fastapi import APIRouter

from .endpoints import negotiations, price_discovery, products, realtime, status, translation

API_PREFIX = "/api/v1"

# (module, OpenAPI tag); realtime contributes the /ws socket route
ENDPOINT_ROUTERS = (
    (status, "status"),
    (negotiations, "negotiations"),
    (price_discovery, "price-discovery"),
    (products, "products"),
    (translation, "translation"),
    (realtime, "realtime"),
)

api_router = APIRouter()

for module, tag in ENDPOINT_ROUTERS:
    api_router.include_router(module.router, prefix=API_PREFIX, tags=[tag])
