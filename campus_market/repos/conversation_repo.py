from datetime import datetime
from typing import List
from uuid import UUID

from sqlalchemy import case, func, or_, select, update
from sqlalchemy.exc import IntegrityError, SQLAlchemyError
from sqlalchemy.orm import selectinload

from models.models import Conversation


def unread_column(slot: int):
    if slot == 1:
        return Conversation.participant_1_unread_count
    if slot == 2:
        return Conversation.participant_2_unread_count
    raise ValueError(f"Invalid participant slot: {slot}")


class ConversationRepo:
    def __init__(self, db):
        self.db = db

    def _triple(self, listing_id: UUID, participant_1_id: UUID, participant_2_id: UUID):
        return select(Conversation).where(
            Conversation.listing_id == listing_id,
            Conversation.participant_1_id == participant_1_id,
            Conversation.participant_2_id == participant_2_id,
        )

    async def get_by_participants(
        self, listing_id: UUID, participant_1_id: UUID, participant_2_id: UUID
    ) -> Conversation | None:
        result = await self.db.execute(
            self._triple(listing_id, participant_1_id, participant_2_id)
        )
        return result.scalar_one_or_none()

    async def get_or_create(
        self, listing_id: UUID, participant_1_id: UUID, participant_2_id: UUID
    ) -> Conversation:
        """Participants must already be in canonical order.

        The insert runs in a SAVEPOINT, so losing the unique race only undoes
        the insert; the caller's transaction and loaded objects stay intact.
        Nothing is committed here.
        """
        convo = await self.get_by_participants(
            listing_id, participant_1_id, participant_2_id
        )
        if convo:
            return convo

        convo = Conversation(
            listing_id=listing_id,
            participant_1_id=participant_1_id,
            participant_2_id=participant_2_id,
            participant_1_unread_count=0,
            participant_2_unread_count=0,
        )
        try:
            async with self.db.begin_nested():
                self.db.add(convo)
                await self.db.flush()
            return convo
        except IntegrityError:
            # lost the insert race; the winner's row is now visible
            result = await self.db.execute(
                self._triple(listing_id, participant_1_id, participant_2_id)
            )
            return result.scalars().one()

    async def get_conversation_by_id(self, conversation_id: UUID) -> Conversation | None:
        result = await self.db.execute(
            select(Conversation).where(Conversation.id == conversation_id)
        )
        return result.scalar_one_or_none()

    async def adjust_unread(self, conversation_id: UUID, slot: int, delta: int) -> int | None:
        col = unread_column(slot)
        stmt = (
            update(Conversation)
            .where(Conversation.id == conversation_id)
            .values({col.key: func.greatest(col + delta, 0)})
            .returning(col)
            .execution_options(synchronize_session=False)
        )
        result = await self.db.execute(stmt)
        return result.scalar_one_or_none()

    async def record_last_message(
        self, conversation_id: UUID, message_id: UUID, sent_at: datetime
    ) -> None:
        stmt = (
            update(Conversation)
            .where(Conversation.id == conversation_id)
            .values(last_message_id=message_id, last_message_at=sent_at)
            .execution_options(synchronize_session=False)
        )
        await self.db.execute(stmt)

    async def mark_email_notified(self, conversation_id: UUID, at: datetime) -> None:
        stmt = (
            update(Conversation)
            .where(Conversation.id == conversation_id)
            .values(email_notified_at=at)
            .execution_options(synchronize_session=False)
        )
        try:
            await self.db.execute(stmt)
            await self.db.commit()
        except SQLAlchemyError:
            await self.db.rollback()
            raise

    async def list_for_user(self, user_id: UUID) -> List[Conversation]:
        stmt = (
            select(Conversation)
            .options(
                selectinload(Conversation.listing),
                selectinload(Conversation.participant_1),
                selectinload(Conversation.participant_2),
                selectinload(Conversation.last_message),
            )
            .where(
                or_(
                    Conversation.participant_1_id == user_id,
                    Conversation.participant_2_id == user_id,
                )
            )
            .order_by(
                func.coalesce(
                    Conversation.last_message_at, Conversation.created_at
                ).desc()
            )
        )
        result = await self.db.execute(stmt)
        return list(result.scalars().all())

    async def total_unread(self, user_id: UUID) -> int:
        own_count = case(
            (Conversation.participant_1_id == user_id, Conversation.participant_1_unread_count),
            else_=Conversation.participant_2_unread_count,
        )
        stmt = select(func.coalesce(func.sum(own_count), 0)).where(
            or_(
                Conversation.participant_1_id == user_id,
                Conversation.participant_2_id == user_id,
            )
        )
        result = await self.db.execute(stmt)
        return int(result.scalar_one() or 0)
