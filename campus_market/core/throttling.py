import logging

from redis.asyncio import from_url
from .settings import settings
from fastapi import Depends, Request, Response
from fastapi.responses import JSONResponse
from fastapi_limiter import FastAPILimiter
from fastapi_limiter.depends import RateLimiter

logger = logging.getLogger(__name__)


class RateLimitManager:
    def __init__(self):
        self.redis = None

    @property
    def ready(self) -> bool:
        return self.redis is not None

    async def connect(self):
        if not settings.RATE_LIMIT_REDIS_URL:
            logger.info("RATE_LIMIT_REDIS_URL not set; rate limiting disabled.")
            return
        try:
            redis = from_url(
                settings.RATE_LIMIT_REDIS_URL,
                encoding="utf-8",
                decode_responses=True,
            )
            await FastAPILimiter.init(redis)
            self.redis = redis
            logger.info("Rate limiter initialized successfully.")
        except Exception as e:
            logger.error(f"Rate limiter initialization failed: {e}")

    async def close(self):
        if self.redis is not None:
            await FastAPILimiter.close()
            self.redis = None

    @staticmethod
    async def limit_exceeded_handler(request: Request, exc):
        return JSONResponse(
            status_code=429,
            content={"detail": "Limit exceeded. Please try again later."},
        )

    async def user_or_ip(self, request: Request) -> str:
        user = getattr(request.state, "auth_user", None)
        user_id = getattr(user, "id", None)
        if user_id is not None:
            return f"user:{user_id}"

        if request.client and request.client.host:
            return f"ip:{request.client.host}"

        return "anonymous"


rate_limiter_manager = RateLimitManager()


class ThrottleDependency:
    """RateLimiter that is a no-op until the limiter backend has been initialised."""

    def __init__(self, times: int, seconds: int):
        self.limiter = RateLimiter(
            times=times, seconds=seconds, identifier=rate_limiter_manager.user_or_ip
        )

    async def __call__(self, request: Request, response: Response):
        if not rate_limiter_manager.ready:
            return
        await self.limiter(request, response)


rate_limit = Depends(ThrottleDependency(times=5, seconds=10))
message_rate_limit = Depends(ThrottleDependency(times=30, seconds=60))
