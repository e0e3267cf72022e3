import uuid

import pytest
from fastapi import HTTPException

from fakes import FakeTracker
from models.enums import NotificationType
from models.models import User
from repos.notification_repo import NotificationRepo
from services.inbox_service import NotificationInboxService
from services.notification_service import MessageNotificationData, MessageNotificationService


async def inbox(store, user_id, operation, *args, **kwargs):
    async with store() as db:
        user = await db.get(User, user_id)
        return await getattr(NotificationInboxService(db), operation)(user, *args, **kwargs)


@pytest.fixture
async def notified(store, stored):
    """Two notifications for the seller, one for the buyer."""
    async with store() as db:
        await MessageNotificationService(db, tracker=FakeTracker()).create_in_app(
            MessageNotificationData(
                message_id=uuid.uuid4(),
                conversation_id=uuid.uuid4(),
                listing_id=stored.listing_id,
                listing_title="Desk lamp",
                sender_id=stored.buyer_id,
                sender_name="Bea Buyer",
                receiver_id=stored.seller_id,
                body="Is it still available?",
            )
        )
        repo = NotificationRepo(db)
        welcome = await repo.create(
            user_id=stored.seller_id,
            type=NotificationType.SYSTEM,
            title="Welcome",
            message="Your listing is live",
        )
        other = await repo.create(
            user_id=stored.buyer_id,
            type=NotificationType.SYSTEM,
            title="Getting started",
            message="Start browsing",
        )
    return welcome.id, other.id


async def test_list_is_scoped_to_caller(store, stored, notified):
    items = await inbox(store, stored.seller_id, "list")

    assert len(items) == 2
    assert {n.title for n in items} == {"New message from Bea Buyer", "Welcome"}
    message = next(n for n in items if n.type == NotificationType.MESSAGE)
    assert message.link == f"/messages?listing={stored.listing_id}"
    assert message.read is False


async def test_unread_count_and_mark_read(store, stored, notified):
    seller_note, _ = notified

    assert (await inbox(store, stored.seller_id, "unread_count")).count == 2

    marked = await inbox(store, stored.seller_id, "mark_read", seller_note)

    assert marked.updated == 1
    assert (await inbox(store, stored.seller_id, "unread_count")).count == 1
    unread = await inbox(store, stored.seller_id, "list", unread_only=True)
    assert [n.type for n in unread] == [NotificationType.MESSAGE]


async def test_cannot_mark_someone_elses_notification(store, stored, notified):
    seller_note, _ = notified

    with pytest.raises(HTTPException) as exc:
        await inbox(store, stored.buyer_id, "mark_read", seller_note)

    assert exc.value.status_code == 404
    assert (await inbox(store, stored.seller_id, "unread_count")).count == 2


async def test_mark_all_read_leaves_other_users_alone(store, stored, notified):
    first = await inbox(store, stored.seller_id, "mark_all_read")
    second = await inbox(store, stored.seller_id, "mark_all_read")

    assert first.updated == 2
    assert second.updated == 0
    assert (await inbox(store, stored.seller_id, "unread_count")).count == 0
    assert (await inbox(store, stored.buyer_id, "unread_count")).count == 1
