"""
Transit Booking API - Main Application Entry Point

Passenger seat reservations for scheduled bus trips:
- Lifecycle engine (create/update/cancel/delete) that never overbooks a trip,
  using a row lock on the trip inside each booking transaction
- Redis-cached availability for display pages
- Structured logging with request correlation
- Prometheus metrics for every engine outcome
"""

from contextlib import asynccontextmanager
from fastapi import FastAPI, Request, status
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse
from sqlalchemy.exc import OperationalError

from transit_booking.core.config import get_settings
from transit_booking.core.logging import setup_logging, get_logger
from transit_booking.core.metrics import metrics_endpoint
from transit_booking.api.router import api_router
from transit_booking.api.middleware import RequestLoggingMiddleware
from transit_booking.db.session import engine
from transit_booking.infrastructure.redis_client import get_redis, close_redis
from transit_booking.services.cache_service import get_cache_stats

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
    )

    redis_client = await get_redis()
    if redis_client:
        logger.info("redis_ready")
    else:
        logger.warning("redis_unavailable", message="Serving availability without cache")

    yield

    await close_redis()
    await engine.dispose()
    logger.info("application_shutdown")


app = FastAPI(
    title=settings.APP_NAME,
    version=settings.APP_VERSION,
    description="Seat reservations for scheduled passenger trips with overbooking protection",
    lifespan=lifespan,
    docs_url="/docs",
    redoc_url="/redoc",
)

app.add_middleware(
    CORSMiddleware,
    allow_origins=["*"],  # Restrict in production
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)

app.add_middleware(RequestLoggingMiddleware)

app.include_router(api_router)


@app.exception_handler(OperationalError)
async def database_unavailable_handler(request: Request, exc: OperationalError):
    """Lost or refused database connections: the booking was not recorded."""
    get_logger(__name__).error("database_unavailable", error=str(exc.orig))
    return JSONResponse(
        status_code=status.HTTP_503_SERVICE_UNAVAILABLE,
        content={"detail": {"error": "DatabaseUnavailable", "detail": "Database temporarily unavailable"}},
    )


@app.get("/health", tags=["Health"])
async def health_check():
    """Health check endpoint for Docker and load balancers."""
    cache_stats = await get_cache_stats()
    return {
        "status": "healthy",
        "version": settings.APP_VERSION,
        "environment": settings.ENVIRONMENT,
        "cache": cache_stats,
    }


@app.get("/metrics", tags=["Health"])
async def metrics():
    return metrics_endpoint()


@app.get("/", tags=["Root"])
async def root():
    return {
        "message": f"Welcome to {settings.APP_NAME}",
        "version": settings.APP_VERSION,
        "docs": "/docs",
    }
