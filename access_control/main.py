import logging
from contextlib import asynccontextmanager
from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware
from redis.exceptions import RedisError
from access_control.api.v1.api import api_router
from access_control.core.config import settings
from access_control.core.logging_config import setup_logging
from access_control.core.redis import redis_client
from access_control.middleware.logging import LoggingMiddleware

logger = logging.getLogger(__name__)


@asynccontextmanager
async def lifespan(app: FastAPI):
    setup_logging()
    logger.info(f"Starting access control service ({settings.ENVIRONMENT})")

    if settings.PERMISSION_CACHE_ENABLED:
        try:
            await redis_client.connect()
        except (RedisError, OSError):
            # Decisions still resolve from the database; the cache retries lazily
            logger.warning("Permission cache unavailable at startup")

    yield

    await redis_client.disconnect()
    logger.info("Access control service stopped")


app_config = {
    "title": "Access Control Service",
    "description": "Role based authorization and module visibility resolution",
    "version": "1.0.0",
    "lifespan": lifespan,
}

app = FastAPI(**app_config)

# Add middleware
app.add_middleware(LoggingMiddleware)
app.add_middleware(
    CORSMiddleware,
    allow_origins=settings.ALLOWED_ORIGINS,
    allow_credentials=True,
    allow_methods=settings.ALLOWED_METHODS,
    allow_headers=settings.ALLOWED_HEADERS,
)

# Include routers
app.include_router(api_router, prefix="/api/v1")

@app.get("/")
async def root():
    return {
        "message": "Access control service",
        "status": "active",
        "version": "1.0.0",
        "docs": "/docs"
    }

@app.get("/health")
async def health_check():
    return {
        "status": "healthy",
        "components": {
            "permission_cache": "enabled" if settings.PERMISSION_CACHE_ENABLED else "disabled",
        }
    }
