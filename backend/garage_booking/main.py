"""
Garage Reservation API - Main Application Entry Point

- Capacity-safe reservations: a per-garage lease is held from the
  availability check until the reservation is stored
- Local (single process) or Redis (multi-instance) admission locks
- Structured logging with request correlation and Prometheus metrics
- PostgreSQL with an availability index, or an in-memory store for development
"""

from contextlib import asynccontextmanager
from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware

from garage_booking.api.middleware import RequestLoggingMiddleware
from garage_booking.api.router import api_router
from garage_booking.core.config import get_settings
from garage_booking.core.logging import get_logger, setup_logging
from garage_booking.core.metrics import metrics_endpoint
from garage_booking.db.session import dispose_engine
from garage_booking.infrastructure.redis_client import close_redis, get_redis, get_redis_status

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
        storage=settings.STORAGE_BACKEND,
        admission=settings.ADMISSION_STRATEGY,
    )

    if settings.REDIS_ENABLED:
        redis_client = await get_redis()
        if redis_client:
            logger.info("redis_ready")
        elif settings.ADMISSION_STRATEGY == "redis":
            logger.warning("redis_unavailable", message="Reservations will be rejected as busy until Redis recovers")

    yield

    await close_redis()
    await dispose_engine()
    logger.info("application_shutdown")


app = FastAPI(
    title=settings.APP_NAME,
    version=settings.APP_VERSION,
    description="Garage reservation API with capacity-safe admission and recommendations",
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


@app.get("/health", tags=["Health"])
async def health_check():
    """Health check endpoint for Docker and load balancers."""
    return {
        "status": "healthy",
        "version": settings.APP_VERSION,
        "environment": settings.ENVIRONMENT,
        "admission": settings.ADMISSION_STRATEGY,
        "redis": await get_redis_status(),
    }


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
