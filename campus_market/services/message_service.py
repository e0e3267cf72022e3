import logging
import uuid
from datetime import datetime, timedelta, timezone
from typing import Callable

from core.breaker import CircuitBreaker
from core.mapper import ORMMapper
from core.results import ServiceResult
from core.settings import settings
from fire_and_forget.messages import AsyncioMessage, message_notifier
from models.models import User
from repos.conversation_repo import ConversationRepo
from repos.listing_repo import ListingRepo
from repos.message_repo import MessageRepo
from repos.user_repo import UserRepo
from schemas.schema import MarkReadOut, MessageOut, SentMessageOut
from services.conversation_service import (
    ConversationResolver,
    canonical_participants,
    participant_slot,
)
from services.notification_service import MessageNotificationData

logger = logging.getLogger(__name__)


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


def _aware(value: datetime) -> datetime:
    return value if value.tzinfo else value.replace(tzinfo=timezone.utc)


class MessageService:
    """Send, read, edit and soft-delete messages.

    Every public method returns a ``ServiceResult``; store failures are logged,
    rolled back and reported as a generic error instead of raised.
    """

    def __init__(
        self,
        db,
        notifier: AsyncioMessage | None = None,
        clock: Callable[[], datetime] = _utcnow,
    ):
        self.db = db
        self.breaker: CircuitBreaker = CircuitBreaker(name="messages")
        self.messages: MessageRepo = MessageRepo(db)
        self.convos: ConversationRepo = ConversationRepo(db)
        self.listings: ListingRepo = ListingRepo(db)
        self.users: UserRepo = UserRepo(db)
        self.resolver: ConversationResolver = ConversationResolver(db, self.convos)
        self.mapper: ORMMapper = ORMMapper()
        self.notifier: AsyncioMessage = notifier or message_notifier
        self.clock = clock

    async def _run(self, handler, failure_message: str) -> ServiceResult:
        try:
            return await self.breaker.call(handler)
        except Exception as e:
            logger.error(f"{failure_message}: {e}", exc_info=True)
            try:
                await self.db.rollback()
            except Exception as rollback_error:
                logger.error(f"Rollback failed: {rollback_error}")
            return ServiceResult.failure(failure_message, 500)

    @staticmethod
    def _clean_body(body: str | None) -> str | None:
        text = (body or "").strip()
        if not text:
            return None
        return text

    async def send_message(
        self,
        current_user: User,
        listing_id: uuid.UUID,
        receiver_id: uuid.UUID,
        body: str,
        client_id: str | None = None,
    ) -> ServiceResult:
        text = self._clean_body(body)
        if text is None:
            return ServiceResult.failure("Message cannot be empty", 400)
        if len(text) > settings.MAX_MESSAGE_LENGTH:
            return ServiceResult.failure("Message is too long", 400)
        if receiver_id == current_user.id:
            return ServiceResult.failure("You cannot message yourself", 400)

        async def handler():
            listing = await self.listings.get_listing_id(listing_id)
            if not listing:
                return ServiceResult.failure("Listing not found", 404)
            if listing.user_id not in (current_user.id, receiver_id):
                return ServiceResult.failure(
                    "Messages about a listing must involve its seller", 400
                )
            receiver = await self.users.by_id(receiver_id)
            if not receiver:
                return ServiceResult.failure("Recipient not found", 404)

            sender_id = current_user.id
            sender_name = current_user.display_name or current_user.username
            listing_title = listing.title

            resolved = await self.resolver.get_or_create_conversation(
                sender_id, receiver_id, listing_id
            )
            if not resolved.ok:
                return ServiceResult.failure(resolved.error, 500)

            now = self.clock()
            msg = await self.messages.create(
                conversation_id=resolved.conversation_id,
                listing_id=listing_id,
                sender_id=sender_id,
                receiver_id=receiver_id,
                body=text,
                created_at=now,
            )
            participant_1, _ = canonical_participants(sender_id, receiver_id)
            receiver_slot = 1 if receiver_id == participant_1 else 2
            await self.convos.adjust_unread(resolved.conversation_id, receiver_slot, 1)
            await self.convos.record_last_message(resolved.conversation_id, msg.id, now)
            await self.db.commit()

            self.notifier.notify_in_background(
                MessageNotificationData(
                    message_id=msg.id,
                    conversation_id=resolved.conversation_id,
                    listing_id=listing_id,
                    listing_title=listing_title,
                    sender_id=sender_id,
                    sender_name=sender_name,
                    receiver_id=receiver_id,
                    body=text,
                )
            )
            logger.info(
                f"Message {msg.id} sent on conversation {resolved.conversation_id}"
            )
            return ServiceResult.success(
                SentMessageOut(
                    message=self.mapper.one(msg, MessageOut), client_id=client_id
                ),
                201,
            )

        return await self._run(handler, "Failed to send message")

    async def mark_message_read(
        self, current_user: User, message_id: uuid.UUID
    ) -> ServiceResult:
        async def handler():
            msg = await self.messages.get_message_by_id(message_id)
            if not msg:
                return ServiceResult.failure("Message not found", 404)
            if msg.receiver_id != current_user.id:
                return ServiceResult.failure(
                    "Only the recipient can mark a message as read", 403
                )
            if msg.read or msg.deleted:
                return ServiceResult.success(MarkReadOut(updated=0))

            flipped = await self.messages.mark_read(
                message_id, current_user.id, self.clock()
            )
            if flipped:
                convo = await self.convos.get_conversation_by_id(msg.conversation_id)
                await self.convos.adjust_unread(
                    convo.id, participant_slot(convo, current_user.id), -1
                )
            await self.db.commit()
            return ServiceResult.success(MarkReadOut(updated=1 if flipped else 0))

        return await self._run(handler, "Failed to mark message as read")

    async def mark_conversation_read(
        self,
        current_user: User,
        listing_id: uuid.UUID,
        other_user_id: uuid.UUID,
    ) -> ServiceResult:
        async def handler():
            participant_1, participant_2 = canonical_participants(
                current_user.id, other_user_id
            )
            convo = await self.convos.get_by_participants(
                listing_id, participant_1, participant_2
            )
            if not convo:
                return ServiceResult.success(MarkReadOut(updated=0))

            flipped = await self.messages.mark_thread_read(
                listing_id, current_user.id, other_user_id, self.clock()
            )
            if flipped:
                await self.convos.adjust_unread(
                    convo.id, participant_slot(convo, current_user.id), -len(flipped)
                )
            await self.db.commit()
            return ServiceResult.success(MarkReadOut(updated=len(flipped)))

        return await self._run(handler, "Failed to mark messages as read")

    async def edit_message(
        self, current_user: User, message_id: uuid.UUID, body: str
    ) -> ServiceResult:
        text = self._clean_body(body)
        if text is None:
            return ServiceResult.failure("Message cannot be empty", 400)
        if len(text) > settings.MAX_MESSAGE_LENGTH:
            return ServiceResult.failure("Message is too long", 400)

        async def handler():
            msg = await self.messages.get_message_by_id(message_id)
            if not msg:
                return ServiceResult.failure("Message not found", 404)
            if msg.sender_id != current_user.id:
                return ServiceResult.failure("You can only edit your own messages", 403)
            if msg.deleted:
                return ServiceResult.failure("Cannot edit a deleted message", 400)

            now = self.clock()
            window = timedelta(minutes=settings.MESSAGE_EDIT_WINDOW_MINUTES)
            not_before = now - window
            if _aware(msg.created_at) < not_before:
                return ServiceResult.failure(
                    f"Messages can only be edited within "
                    f"{settings.MESSAGE_EDIT_WINDOW_MINUTES} minutes of sending",
                    400,
                )

            updated = await self.messages.edit_body(
                message_id, current_user.id, text, now, not_before
            )
            if updated is None:
                await self.db.rollback()
                return ServiceResult.failure("Message can no longer be edited", 409)
            await self.db.commit()
            return ServiceResult.success(self.mapper.one(updated, MessageOut))

        return await self._run(handler, "Failed to edit message")

    async def delete_message(
        self, current_user: User, message_id: uuid.UUID
    ) -> ServiceResult:
        async def handler():
            msg = await self.messages.get_message_by_id(message_id)
            if not msg:
                return ServiceResult.failure("Message not found", 404)
            if msg.sender_id != current_user.id:
                return ServiceResult.failure(
                    "You can only delete your own messages", 403
                )
            if msg.deleted:
                return ServiceResult.success({"id": msg.id, "deleted": True})

            was_read = await self.messages.soft_delete(message_id, current_user.id)
            if was_read is False:
                convo = await self.convos.get_conversation_by_id(msg.conversation_id)
                await self.convos.adjust_unread(
                    convo.id, participant_slot(convo, msg.receiver_id), -1
                )
            await self.db.commit()
            return ServiceResult.success({"id": msg.id, "deleted": True})

        return await self._run(handler, "Failed to delete message")

    async def list_messages(
        self,
        current_user: User,
        listing_id: uuid.UUID,
        other_user_id: uuid.UUID,
    ) -> ServiceResult:
        async def handler():
            messages = await self.messages.list_thread(
                listing_id, current_user.id, other_user_id
            )
            return ServiceResult.success(self.mapper.many(messages, MessageOut))

        return await self._run(handler, "Failed to load messages")
