"""
Status and health check endpoints.

WHAT: Database reachability plus in-process realtime and cache state
WHY: Tells ops whether negotiations can be written and how busy the hub is
HOW: Database ping, counts read from the hub and price cache singletons
"""

from fastapi import APIRouter

from ....core.config import settings
from ....core.database import ping_database
from ....services.price_discovery import price_discovery_service
from ....services.realtime_hub import negotiation_hub
from ....utils.logger import get_logger

logger = get_logger(__name__)

router = APIRouter()


@router.get("/health")
async def health_check():
    """
    Overall application health check.

    Returns:
        JSON with overall status ("degraded" when the database is down),
        database details, open negotiation rooms and cached price records
    """
    db_status = ping_database()
    if not db_status["available"]:
        logger.error(f"Health check database failed: {db_status['error']}")

    return {
        "status": "healthy" if db_status["available"] else "degraded",
        "app": settings.APP_NAME,
        "version": settings.APP_VERSION,
        "database": db_status,
        "realtime": {
            "rooms": len(negotiation_hub.rooms),
            "connections": len({c for members in negotiation_hub.rooms.values() for c in members}),
        },
        "price_cache_entries": len(price_discovery_service.cache),
    }
