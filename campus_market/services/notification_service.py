import logging
import uuid
from dataclasses import dataclass
from datetime import datetime, timezone
from enum import Enum
from typing import Awaitable, Callable

from core.settings import settings
from email_notify.email_service import send_message_notification_email
from models.enums import NotificationType
from repos.conversation_repo import ConversationRepo
from repos.notification_repo import NotificationRepo
from repos.user_repo import UserRepo
from services.activity_service import ActivityTracker, activity_tracker

logger = logging.getLogger(__name__)


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


def _aware(value: datetime) -> datetime:
    return value if value.tzinfo else value.replace(tzinfo=timezone.utc)


@dataclass(frozen=True)
class MessageNotificationData:
    message_id: uuid.UUID
    conversation_id: uuid.UUID
    listing_id: uuid.UUID
    listing_title: str
    sender_id: uuid.UUID
    sender_name: str
    receiver_id: uuid.UUID
    body: str


class EmailDecision(str, Enum):
    SENT = "sent"
    RECIPIENT_ACTIVE = "recipient_active"
    NO_EMAIL = "no_email"
    ALREADY_NOTIFIED = "already_notified"
    DAILY_LIMIT = "daily_limit"
    SEND_FAILED = "send_failed"


def preview(body: str, length: int | None = None) -> str:
    limit = settings.MESSAGE_PREVIEW_LENGTH if length is None else length
    return body if len(body) <= limit else body[:limit] + "..."


def conversation_link(listing_id: uuid.UUID, absolute: bool = False) -> str:
    path = f"/messages?listing={listing_id}"
    if absolute:
        return f"{settings.FRONTEND_URL.rstrip('/')}{path}"
    return path


class MessageNotificationService:
    """In-app notification for every message, plus a throttled email.

    The email is skipped while the recipient is active, when the conversation
    was already emailed since their last visit, or once the daily cap is hit.
    """

    def __init__(
        self,
        db,
        tracker: ActivityTracker | None = None,
        send_email: Callable[..., Awaitable[bool]] = send_message_notification_email,
        clock: Callable[[], datetime] = _utcnow,
    ):
        self.db = db
        self.notifications: NotificationRepo = NotificationRepo(db)
        self.users: UserRepo = UserRepo(db)
        self.convos: ConversationRepo = ConversationRepo(db)
        self.tracker = tracker or activity_tracker
        self.send_email = send_email
        self.clock = clock

    async def handle(self, data: MessageNotificationData) -> EmailDecision | None:
        """Never raises; returns the email decision, or None if it could not be made."""
        try:
            await self.create_in_app(data)
        except Exception as e:
            logger.error(f"In-app notification failed for message {data.message_id}: {e}")

        try:
            return await self.maybe_email(data)
        except Exception as e:
            logger.error(f"Email notification failed for message {data.message_id}: {e}")
            return None

    async def create_in_app(self, data: MessageNotificationData):
        notification = await self.notifications.create(
            user_id=data.receiver_id,
            type=NotificationType.MESSAGE,
            title=f"New message from {data.sender_name}",
            message=preview(data.body),
            link=conversation_link(data.listing_id),
            listing_id=data.listing_id,
        )
        logger.info(f"In-app notification created for user {data.receiver_id}")
        return notification

    async def maybe_email(self, data: MessageNotificationData) -> EmailDecision:
        if await self.tracker.is_active(data.receiver_id):
            logger.info("Recipient is active, skipping email")
            return EmailDecision.RECIPIENT_ACTIVE

        recipient = await self.users.by_id(data.receiver_id)
        if recipient is None or not recipient.email:
            logger.info("Recipient has no email, skipping")
            return EmailDecision.NO_EMAIL

        convo = await self.convos.get_conversation_by_id(data.conversation_id)
        if convo is not None and convo.email_notified_at is not None:
            last_active = recipient.last_active
            # one email per conversation until the recipient comes back
            if last_active is None or _aware(convo.email_notified_at) > _aware(last_active):
                logger.info("Already emailed, recipient not active since, skipping")
                return EmailDecision.ALREADY_NOTIFIED

        today = self.clock().date()
        if await self.notifications.daily_email_count(today) >= settings.DAILY_EMAIL_LIMIT:
            logger.info("Daily email limit reached, skipping")
            return EmailDecision.DAILY_LIMIT

        count = await self.notifications.increment_daily_email_count(today)
        if count > settings.DAILY_EMAIL_LIMIT:
            logger.info("Daily email limit exceeded after increment, skipping")
            return EmailDecision.DAILY_LIMIT

        sent = await self.send_email(
            to=recipient.email,
            recipient_name=recipient.display_name or "there",
            sender_name=data.sender_name,
            listing_title=data.listing_title,
            message_preview=preview(data.body),
            conversation_link=conversation_link(data.listing_id, absolute=True),
        )
        if not sent:
            logger.error(f"Failed to send message email to {recipient.email}")
            return EmailDecision.SEND_FAILED

        await self.convos.mark_email_notified(data.conversation_id, self.clock())
        logger.info(f"Message email sent to {recipient.email}")
        return EmailDecision.SENT
