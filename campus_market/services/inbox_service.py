import logging
import uuid
from typing import List

from fastapi import HTTPException

from core.breaker import breaker
from core.mapper import ORMMapper
from models.models import User
from repos.notification_repo import NotificationRepo
from schemas.schema import MarkReadOut, NotificationOut, UnreadCountOut

logger = logging.getLogger(__name__)


class NotificationInboxService:
    """The caller's in-app notifications. Every query is scoped to the caller."""

    def __init__(self, db):
        self.repo: NotificationRepo = NotificationRepo(db)
        self.mapper: ORMMapper = ORMMapper()

    async def list(
        self, current_user: User, unread_only: bool = False, limit: int = 50
    ) -> List[NotificationOut]:
        async def handler():
            rows = await self.repo.list_for_user(
                current_user.id, unread_only=unread_only, limit=limit
            )
            return self.mapper.many(rows, NotificationOut)

        return await breaker.call(handler)

    async def unread_count(self, current_user: User) -> UnreadCountOut:
        async def handler():
            return UnreadCountOut(count=await self.repo.unread_count(current_user.id))

        return await breaker.call(handler)

    async def mark_read(
        self, current_user: User, notification_id: uuid.UUID
    ) -> MarkReadOut:
        async def handler():
            found = await self.repo.mark_read(notification_id, current_user.id)
            if not found:
                raise HTTPException(status_code=404, detail="Notification not found")
            return MarkReadOut(updated=1)

        return await breaker.call(handler)

    async def mark_all_read(self, current_user: User) -> MarkReadOut:
        async def handler():
            updated = await self.repo.mark_all_read(current_user.id)
            logger.info(f"Marked {updated} notifications read for {current_user.id}")
            return MarkReadOut(updated=updated)

        return await breaker.call(handler)
