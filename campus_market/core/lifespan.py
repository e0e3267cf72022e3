import logging
from contextlib import asynccontextmanager

from fastapi import FastAPI

from core.throttling import rate_limiter_manager

from .asyncio_threads import background
from .cache import cache
from .get_db import async_engine

logger = logging.getLogger("startup")


@asynccontextmanager
async def lifespan(app: FastAPI):
    logger.info("Waiting for application startup...")

    try:
        await cache.connect()
        if cache.enabled:
            logger.info("Upstash Redis connected.")
    except Exception:
        logger.exception("Upstash Redis connection failed")

    try:
        await rate_limiter_manager.connect()
        if rate_limiter_manager.ready:
            logger.info("Rate limiter connected.")
    except Exception:
        logger.exception("Rate limiter connection failed")

    logger.info("Application startup complete.")

    yield

    # notification and activity writes still in flight
    await background.drain(timeout=5.0)

    try:
        await rate_limiter_manager.close()
    except Exception:
        logger.exception("Failed to close rate limiter connection")

    await async_engine.dispose()
    logger.info("Application shutdown complete.")
