from datetime import date
from typing import List
from uuid import UUID

from sqlalchemy import func, select, update
from sqlalchemy.dialects.postgresql import insert
from sqlalchemy.exc import SQLAlchemyError

from models.enums import NotificationType
from models.models import EmailDailyCount, Notification


class NotificationRepo:
    def __init__(self, db):
        self.db = db

    async def create(
        self,
        *,
        user_id: UUID,
        type: NotificationType,
        title: str,
        message: str,
        link: str | None = None,
        listing_id: UUID | None = None,
    ) -> Notification:
        notification = Notification(
            user_id=user_id,
            type=type,
            title=title,
            message=message,
            link=link,
            listing_id=listing_id,
            read=False,
        )
        self.db.add(notification)
        try:
            await self.db.commit()
            return notification
        except SQLAlchemyError:
            await self.db.rollback()
            raise

    async def daily_email_count(self, day: date) -> int:
        result = await self.db.execute(
            select(EmailDailyCount.count).where(EmailDailyCount.day == day)
        )
        return int(result.scalar_one_or_none() or 0)

    async def increment_daily_email_count(self, day: date) -> int:
        """Atomic upsert-increment; returns the count after this increment."""
        stmt = (
            insert(EmailDailyCount)
            .values(day=day, count=1)
            .on_conflict_do_update(
                index_elements=[EmailDailyCount.day],
                set_={"count": EmailDailyCount.count + 1},
            )
            .returning(EmailDailyCount.count)
        )
        try:
            result = await self.db.execute(stmt)
            count = result.scalar_one()
            await self.db.commit()
            return int(count)
        except SQLAlchemyError:
            await self.db.rollback()
            raise

    async def list_for_user(
        self, user_id: UUID, unread_only: bool = False, limit: int = 50
    ) -> List[Notification]:
        stmt = select(Notification).where(Notification.user_id == user_id)
        if unread_only:
            stmt = stmt.where(Notification.read.is_(False))
        stmt = stmt.order_by(Notification.created_at.desc(), Notification.id).limit(limit)
        result = await self.db.execute(stmt)
        return list(result.scalars().all())

    async def unread_count(self, user_id: UUID) -> int:
        result = await self.db.execute(
            select(func.count(Notification.id)).where(
                Notification.user_id == user_id, Notification.read.is_(False)
            )
        )
        return int(result.scalar_one() or 0)

    async def mark_read(self, notification_id: UUID, user_id: UUID) -> bool:
        """Returns False when the notification is missing or belongs to someone else."""
        stmt = (
            update(Notification)
            .where(Notification.id == notification_id, Notification.user_id == user_id)
            .values(read=True)
            .returning(Notification.id)
            .execution_options(synchronize_session=False)
        )
        try:
            result = await self.db.execute(stmt)
            found = result.scalar_one_or_none() is not None
            await self.db.commit()
            return found
        except SQLAlchemyError:
            await self.db.rollback()
            raise

    async def mark_all_read(self, user_id: UUID) -> int:
        stmt = (
            update(Notification)
            .where(Notification.user_id == user_id, Notification.read.is_(False))
            .values(read=True)
            .returning(Notification.id)
            .execution_options(synchronize_session=False)
        )
        try:
            result = await self.db.execute(stmt)
            updated = len(result.scalars().all())
            await self.db.commit()
            return updated
        except SQLAlchemyError:
            await self.db.rollback()
            raise
