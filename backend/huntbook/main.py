"""
Urban Hunts Booking API - Main Application Entry Point

Booking and payment reconciliation service for community photo events:
- Concurrency-safe spot reservation with optimistic locking
- Idempotent PayPal webhook reconciliation with a replayable webhook log
- Redis caching of event listings with invalidation on every write
- Structured logging with request correlation and Prometheus metrics
"""

from contextlib import asynccontextmanager
from fastapi import Depends, FastAPI, status
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse
from sqlalchemy import text
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession

from huntbook.core.config import get_settings
from huntbook.core.logging import setup_logging, get_logger
from huntbook.core.metrics import metrics_endpoint
from huntbook.api.router import api_router
from huntbook.api.middleware import RequestLoggingMiddleware
from huntbook.db.session import engine, get_db
from huntbook.services.cache_service import get_redis, close_redis, get_cache_stats
from huntbook.services.strategy_factory import get_strategy

settings = get_settings()


@asynccontextmanager
async def lifespan(app: FastAPI):
    """Application lifecycle: startup and shutdown hooks."""
    setup_logging()
    logger = get_logger(__name__)

    logger.info(
        "application_starting",
        app=settings.APP_NAME,
        version=settings.APP_VERSION,
        environment=settings.ENVIRONMENT,
        booking_strategy=get_strategy().name,
        webhook_signature_enforced=settings.PAYPAL_ENFORCE_WEBHOOK_SIGNATURE,
    )
    if not settings.PAYPAL_ENFORCE_WEBHOOK_SIGNATURE:
        logger.warning("webhook_signature_not_enforced")

    redis_client = await get_redis()
    if redis_client:
        logger.info("redis_ready")
    else:
        logger.warning("redis_unavailable", message="Running without cache")

    yield

    await close_redis()
    await engine.dispose()
    logger.info("application_shutdown")


app = FastAPI(
    title=settings.APP_NAME,
    version=settings.APP_VERSION,
    description="Event booking and PayPal payment reconciliation API",
    lifespan=lifespan,
    docs_url="/docs",
    redoc_url="/redoc",
)

# CORS
app.add_middleware(
    CORSMiddleware,
    allow_origins=["*"],  # Restrict in production
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)

app.add_middleware(RequestLoggingMiddleware)

app.include_router(api_router)


@app.get("/health", tags=["Health"])
async def health_check(db: AsyncSession = Depends(get_db)):
    """Health check endpoint for Docker and load balancers. 503 when the database is unreachable."""
    try:
        await db.execute(text("SELECT 1"))
        database = "ok"
    except SQLAlchemyError as e:
        get_logger(__name__).error("health_database_unavailable", error=str(e))
        database = "unavailable"

    cache_stats = await get_cache_stats()
    body = {
        "status": "healthy" if database == "ok" else "degraded",
        "database": database,
        "version": settings.APP_VERSION,
        "environment": settings.ENVIRONMENT,
        "booking_strategy": get_strategy().name,
        "cache": cache_stats,
    }
    if database != "ok":
        return JSONResponse(status_code=status.HTTP_503_SERVICE_UNAVAILABLE, content=body)
    return body


@app.get("/metrics", tags=["Health"], include_in_schema=False)
async def metrics():
    return metrics_endpoint()


@app.get("/", tags=["Root"])
async def root():
    return {
        "message": f"Welcome to {settings.APP_NAME}",
        "version": settings.APP_VERSION,
        "docs": "/docs",
    }
