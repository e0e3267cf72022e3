import logging
import uuid
from datetime import datetime, timedelta, timezone
from typing import Callable, Union

from core.asyncio_threads import spawn_background
from core.get_db import AsyncSessionLocal
from core.settings import settings
from repos.user_repo import UserRepo

logger = logging.getLogger(__name__)

UserId = Union[uuid.UUID, str]


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


def _as_uuid(user_id: UserId) -> uuid.UUID:
    return user_id if isinstance(user_id, uuid.UUID) else uuid.UUID(str(user_id))


class ActivityTracker:
    """Debounced last-active bookkeeping.

    Both operations open their own session so they can run outside the request
    that triggered them, and neither ever raises: activity is advisory.
    """

    def __init__(
        self,
        session_factory=None,
        repo_factory: Callable = UserRepo,
        clock: Callable[[], datetime] = _utcnow,
        debounce_seconds: int | None = None,
    ):
        self.session_factory = session_factory or AsyncSessionLocal
        self.repo_factory = repo_factory
        self.clock = clock
        self.debounce = timedelta(
            seconds=settings.ACTIVITY_DEBOUNCE_SECONDS
            if debounce_seconds is None
            else debounce_seconds
        )

    async def touch(self, user_id: UserId) -> bool:
        """Returns True when the timestamp was actually written."""
        try:
            now = self.clock()
            async with self.session_factory() as db:
                return await self.repo_factory(db).touch_last_active(
                    _as_uuid(user_id), now, now - self.debounce
                )
        except Exception as e:
            logger.warning(f"Activity touch failed for {user_id}: {e}")
            return False

    def touch_in_background(self, user_id: UserId):
        return spawn_background(self.touch(user_id), name=f"activity-touch:{user_id}")

    async def is_active(
        self, user_id: UserId, threshold_minutes: int | None = None
    ) -> bool:
        minutes = (
            settings.ACTIVITY_THRESHOLD_MINUTES
            if threshold_minutes is None
            else threshold_minutes
        )
        try:
            async with self.session_factory() as db:
                last_active = await self.repo_factory(db).get_last_active(
                    _as_uuid(user_id)
                )
        except Exception as e:
            logger.warning(f"Activity lookup failed for {user_id}: {e}")
            return False

        return is_recent(last_active, self.clock(), minutes)


def is_recent(last_active: datetime | None, now: datetime, minutes: int) -> bool:
    if last_active is None:
        return False
    if last_active.tzinfo is None:
        last_active = last_active.replace(tzinfo=timezone.utc)
    return now - last_active < timedelta(minutes=minutes)


activity_tracker = ActivityTracker()
