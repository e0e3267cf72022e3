import uuid
from datetime import datetime
from typing import Optional

from sqlalchemy import func, or_, select, update
from sqlalchemy.exc import SQLAlchemyError

from models.models import User


class UserRepo:
    def __init__(self, db):
        self.db = db

    async def by_id(self, user_id: uuid.UUID) -> Optional[User]:
        stmt = select(User).where(User.id == user_id)
        result = await self.db.execute(stmt)
        return result.scalar_one_or_none()

    async def get_by_email(self, email: str) -> User | None:
        email_payload = email.strip().lower()
        result = await self.db.execute(select(User).where(User.email == email_payload))
        return result.scalar_one_or_none()

    async def get_by_username(self, username: str) -> User | None:
        result = await self.db.execute(
            select(User).where(func.lower(User.username) == username.strip().lower())
        )
        return result.scalars().first()

    async def create(self, user: User) -> User:
        self.db.add(user)
        return await self._commit_and_refresh(user)

    async def save(self, user: User) -> User:
        self.db.add(user)
        return await self._commit_and_refresh(user)

    async def _commit_and_refresh(self, user: User) -> User:
        try:
            await self.db.commit()
            await self.db.refresh(user)
            return user
        except SQLAlchemyError:
            await self.db.rollback()
            raise

    async def touch_last_active(
        self, user_id: uuid.UUID, now: datetime, stale_before: datetime
    ) -> bool:
        """Conditional write; returns False when a recent touch makes it a no-op."""
        stmt = (
            update(User)
            .where(
                User.id == user_id,
                or_(User.last_active.is_(None), User.last_active < stale_before),
            )
            .values(last_active=now)
            .execution_options(synchronize_session=False)
        )
        try:
            result = await self.db.execute(stmt)
            await self.db.commit()
        except SQLAlchemyError:
            await self.db.rollback()
            raise
        return bool(result.rowcount)

    async def get_last_active(self, user_id: uuid.UUID) -> Optional[datetime]:
        result = await self.db.execute(
            select(User.last_active).where(User.id == user_id)
        )
        return result.scalar_one_or_none()
