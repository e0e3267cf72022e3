from datetime import datetime
from typing import List, Optional
from uuid import UUID

from sqlalchemy import and_, or_, select, update

from models.models import Message


class MessageRepo:
    def __init__(self, db):
        self.db = db

    async def create(
        self,
        *,
        conversation_id: UUID,
        listing_id: UUID,
        sender_id: UUID,
        receiver_id: UUID,
        body: str,
        created_at: datetime,
    ) -> Message:
        msg = Message(
            conversation_id=conversation_id,
            listing_id=listing_id,
            sender_id=sender_id,
            receiver_id=receiver_id,
            body=body,
            read=False,
            edited=False,
            deleted=False,
            created_at=created_at,
        )
        self.db.add(msg)
        await self.db.flush()
        return msg

    async def get_message_by_id(self, message_id: UUID) -> Message | None:
        result = await self.db.execute(select(Message).where(Message.id == message_id))
        return result.scalar_one_or_none()

    async def list_thread(
        self, listing_id: UUID, user_id: UUID, other_user_id: UUID
    ) -> List[Message]:
        stmt = (
            select(Message)
            .where(
                Message.listing_id == listing_id,
                Message.deleted.is_(False),
                or_(
                    and_(
                        Message.sender_id == user_id,
                        Message.receiver_id == other_user_id,
                    ),
                    and_(
                        Message.sender_id == other_user_id,
                        Message.receiver_id == user_id,
                    ),
                ),
            )
            .order_by(Message.created_at, Message.id)
        )
        result = await self.db.execute(stmt)
        return list(result.scalars().all())

    async def mark_read(self, message_id: UUID, receiver_id: UUID, seen_at: datetime) -> bool:
        """Flips read only for an unread, undeleted message addressed to receiver."""
        stmt = (
            update(Message)
            .where(
                Message.id == message_id,
                Message.receiver_id == receiver_id,
                Message.read.is_(False),
                Message.deleted.is_(False),
            )
            .values(read=True, seen_at=seen_at)
            .returning(Message.id)
            .execution_options(synchronize_session=False)
        )
        result = await self.db.execute(stmt)
        return result.scalar_one_or_none() is not None

    async def mark_thread_read(
        self,
        listing_id: UUID,
        receiver_id: UUID,
        sender_id: UUID,
        seen_at: datetime,
    ) -> List[UUID]:
        stmt = (
            update(Message)
            .where(
                Message.listing_id == listing_id,
                Message.receiver_id == receiver_id,
                Message.sender_id == sender_id,
                Message.read.is_(False),
                Message.deleted.is_(False),
            )
            .values(read=True, seen_at=seen_at)
            .returning(Message.id)
            .execution_options(synchronize_session=False)
        )
        result = await self.db.execute(stmt)
        return list(result.scalars().all())

    async def edit_body(
        self,
        message_id: UUID,
        sender_id: UUID,
        body: str,
        edited_at: datetime,
        not_before: datetime,
    ) -> Optional[Message]:
        stmt = (
            update(Message)
            .where(
                Message.id == message_id,
                Message.sender_id == sender_id,
                Message.deleted.is_(False),
                Message.created_at >= not_before,
            )
            .values(body=body, edited=True, edited_at=edited_at)
            .returning(Message)
            .execution_options(synchronize_session="fetch")
        )
        result = await self.db.execute(stmt)
        return result.scalar_one_or_none()

    async def soft_delete(self, message_id: UUID, sender_id: UUID) -> Optional[bool]:
        """Returns the message's read flag when this call deleted it, else None."""
        stmt = (
            update(Message)
            .where(
                Message.id == message_id,
                Message.sender_id == sender_id,
                Message.deleted.is_(False),
            )
            .values(deleted=True)
            .returning(Message.read)
            .execution_options(synchronize_session=False)
        )
        result = await self.db.execute(stmt)
        row = result.first()
        return None if row is None else bool(row[0])
