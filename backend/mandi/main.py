"""
FastAPI application entry point.

WHAT: Marketplace API app: REST routers, negotiation socket, error envelopes
WHY: One process serves HTTP clients and live negotiation sockets
HOW: Lifespan prepares tables and warns about unsafe settings; on shutdown the
     realtime rooms and price cache are dropped before connections close
"""

from contextlib import asynccontextmanager

from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware

from .api.v1.router import api_router
from .core.config import settings
from .core.database import close_db, init_db
from .middleware.error_handler import register_exception_handlers
from .services.price_discovery import price_discovery_service
from .services.realtime_hub import negotiation_hub
from .utils.logger import get_logger, setup_logging

setup_logging()
logger = get_logger(__name__)

DEFAULT_JWT_SECRET = "change-me-in-production"


@asynccontextmanager
async def lifespan(app: FastAPI):
    """
    Application lifespan manager.

    WHAT: Startup and shutdown logic
    WHY: Tables must exist before the first negotiation; rooms hold sockets
    HOW: Async context manager for FastAPI lifespan
    """
    logger.info(f"Starting {settings.APP_NAME} v{settings.APP_VERSION}")
    init_db()
    if settings.JWT_SECRET == DEFAULT_JWT_SECRET:
        logger.warning("JWT_SECRET is the built-in default; set it before exposing the API")
    logger.info(
        f"Offer policy={settings.OFFER_UPDATE_POLICY}, "
        f"auto-suggest={settings.AUTO_SUGGEST_COUNTER_OFFERS}, "
        f"price cache TTL={settings.PRICE_DISCOVERY_CACHE_TTL_SECONDS}s"
    )

    yield

    logger.info(f"Shutting down with {len(negotiation_hub.rooms)} open negotiation rooms")
    negotiation_hub.rooms.clear()
    price_discovery_service.clear_cache()
    close_db()
    logger.info("Application shutdown complete")


app = FastAPI(
    title=settings.APP_NAME,
    version=settings.APP_VERSION,
    lifespan=lifespan
)

app.add_middleware(
    CORSMiddleware,
    allow_origins=settings.get_cors_origins_list(),
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)

register_exception_handlers(app)

app.include_router(api_router)


@app.get("/")
async def root():
    """App info and where the negotiation socket lives."""
    return {
        "app": settings.APP_NAME,
        "version": settings.APP_VERSION,
        "status": "running",
        "websocket": "/api/v1/ws",
    }


if __name__ == "__main__":
    import uvicorn
    uvicorn.run(
        "mandi.main:app",
        host="0.0.0.0",
        port=8000,
        reload=settings.DEBUG,
    )
