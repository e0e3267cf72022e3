import logging
import time
from collections import deque
from typing import Any, Awaitable, Callable, Deque, Optional

from fastapi import HTTPException

logger = logging.getLogger(__name__)


class CircuitOpenError(ConnectionError):
    pass


class CircuitBreaker:
    def __init__(
        self,
        name: str = "default",
        failure_threshold: int = 3,
        base_recovery_time: int = 10,
        max_recovery_time: int = 60,
        enable_retry_queue: bool = False,
        max_retries: int = 1,
    ):
        self.name = name
        self.failure_count = 0
        self.failure_threshold = failure_threshold
        self.base_recovery_time = base_recovery_time
        self.max_recovery_time = max_recovery_time
        self.last_failure_time = 0.0
        self.state = "CLOSED"
        self.max_retries = max_retries
        self.retry_queue: Optional[Deque[dict]] = (
            deque() if enable_retry_queue else None
        )

    @property
    def current_recovery_time(self):
        return min(
            self.base_recovery_time
            * (2 ** max(self.failure_count - self.failure_threshold, 0)),
            self.max_recovery_time,
        )

    def _open(self):
        self.state = "OPEN"
        self.last_failure_time = time.time()
        logger.warning(
            f"Circuit [{self.name}] opened after {self.failure_count} failures."
        )

    def _half_open(self):
        self.state = "HALF_OPEN"
        logger.info(f"Circuit [{self.name}] half-open: testing...")

    def _close(self):
        if self.state != "CLOSED":
            logger.info(f"Circuit [{self.name}] closed: stable again.")
        self.state = "CLOSED"
        self.failure_count = 0

    @staticmethod
    def _is_client_error(exc: Exception) -> bool:
        return isinstance(exc, HTTPException) and exc.status_code < 500

    async def call(self, func: Callable[..., Awaitable[Any]], *args, **kwargs) -> Any:
        now = time.time()

        if self.state == "OPEN":
            cooldown = self.current_recovery_time
            if now - self.last_failure_time < cooldown:
                raise CircuitOpenError(
                    f"CircuitBreaker [{self.name}]: still open, retry after "
                    f"{cooldown - (now - self.last_failure_time):.1f}s"
                )
            self._half_open()

        try:
            result = await func(*args, **kwargs)
        except Exception as e:
            # 4xx are not failures
            if self._is_client_error(e):
                raise
            self.failure_count += 1
            logger.error(
                f"CircuitBreaker [{self.name}] call failed ({self.failure_count}): {e}"
            )

            if self.state == "HALF_OPEN" or self.failure_count >= self.failure_threshold:
                self._open()

            if self.retry_queue is not None:
                self.retry_queue.append(
                    {
                        "func": func,
                        "args": args,
                        "kwargs": kwargs,
                        "retries": 0,
                    }
                )
                logger.info(
                    f"Queued failed operation ({len(self.retry_queue)} pending)."
                )
            raise

        self._close()
        if self.retry_queue:
            await self._flush_retry_queue()
        return result

    async def _flush_retry_queue(self):
        while self.retry_queue:
            item = self.retry_queue.popleft()
            retries = item["retries"]

            if retries >= self.max_retries:
                logger.warning(
                    f"Max retries reached ({self.max_retries}). Dropping task."
                )
                continue

            try:
                await item["func"](*item["args"], **item["kwargs"])
                logger.info("Retried queued operation successfully.")
            except Exception as e:
                logger.error(f"Retry failed: {e}")
                item["retries"] = retries + 1
                self.retry_queue.appendleft(item)
                break


breaker = CircuitBreaker(name="default")
cache_breaker = CircuitBreaker(
    name="cache",
    enable_retry_queue=True,
    max_retries=1,
)
email_breaker = CircuitBreaker(name="email", failure_threshold=5)
auth_breaker = CircuitBreaker(name="auth-provider", failure_threshold=5)
