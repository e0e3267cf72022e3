import uuid

import pytest

from core.settings import settings
from fakes import (
    Clock,
    FakeConversationRepo,
    FakeNotificationRepo,
    FakeSession,
    FakeTracker,
    FakeUserRepo,
    make_user,
)
from models.enums import NotificationType
from services.notification_service import (
    EmailDecision,
    MessageNotificationData,
    MessageNotificationService,
    conversation_link,
    preview,
)


class EmailSpy:
    def __init__(self, result: bool = True):
        self.result = result
        self.calls = []

    async def __call__(self, **kwargs) -> bool:
        self.calls.append(kwargs)
        return self.result


@pytest.fixture
async def setup():
    clock = Clock()
    receiver = make_user("seller@state.edu", display_name="Sam")
    convos = FakeConversationRepo()
    convo = await convos.get_or_create(uuid.uuid4(), *sorted([receiver.id, uuid.uuid4()], key=str))
    data = MessageNotificationData(
        message_id=uuid.uuid4(),
        conversation_id=convo.id,
        listing_id=convo.listing_id,
        listing_title="Desk lamp",
        sender_id=uuid.uuid4(),
        sender_name="Bea",
        receiver_id=receiver.id,
        body="Is this still available?",
    )
    email = EmailSpy()
    tracker = FakeTracker(active=False)
    svc = MessageNotificationService(
        FakeSession(), tracker=tracker, send_email=email, clock=clock
    )
    svc.notifications = FakeNotificationRepo()
    svc.users = FakeUserRepo(receiver)
    svc.convos = convos
    return svc, data, email, tracker, convo, receiver, clock


def test_preview_truncates_long_bodies():
    assert preview("short") == "short"
    long_body = "x" * 100
    assert preview(long_body) == "x" * 80 + "..."


def test_conversation_link():
    listing_id = uuid.uuid4()
    assert conversation_link(listing_id) == f"/messages?listing={listing_id}"
    assert conversation_link(listing_id, absolute=True).endswith(
        f"/messages?listing={listing_id}"
    )


async def test_in_app_notification_always_created(setup):
    svc, data, email, tracker, *_ = setup
    tracker.active = True

    decision = await svc.handle(data)

    assert decision == EmailDecision.RECIPIENT_ACTIVE
    assert email.calls == []
    created = svc.notifications.created[0]
    assert created["type"] == NotificationType.MESSAGE
    assert created["title"] == "New message from Bea"
    assert created["link"] == f"/messages?listing={data.listing_id}"


async def test_email_sent_to_inactive_recipient(setup):
    svc, data, email, _, convo, receiver, clock = setup

    decision = await svc.handle(data)

    assert decision == EmailDecision.SENT
    assert email.calls[0]["to"] == receiver.email
    assert email.calls[0]["message_preview"] == data.body
    assert convo.email_notified_at == clock.now


async def test_second_message_before_return_is_not_emailed(setup):
    svc, data, email, _, convo, receiver, clock = setup
    await svc.handle(data)
    clock.advance(minutes=10)

    decision = await svc.handle(data)

    assert decision == EmailDecision.ALREADY_NOTIFIED
    assert len(email.calls) == 1
    assert len(svc.notifications.created) == 2


async def test_emailed_again_after_recipient_returns(setup):
    svc, data, email, _, convo, receiver, clock = setup
    await svc.handle(data)
    clock.advance(minutes=10)
    receiver.last_active = clock.now
    clock.advance(minutes=10)

    decision = await svc.handle(data)

    assert decision == EmailDecision.SENT
    assert len(email.calls) == 2


async def test_daily_limit_checked_before_increment(setup):
    svc, data, email, *_ = setup
    svc.notifications.start_count = settings.DAILY_EMAIL_LIMIT

    decision = await svc.handle(data)

    assert decision == EmailDecision.DAILY_LIMIT
    assert email.calls == []
    assert svc.notifications.daily == {}


async def test_daily_limit_rechecked_after_increment(setup):
    svc, data, email, *_ = setup
    svc.notifications.start_count = settings.DAILY_EMAIL_LIMIT - 1
    # a concurrent sender took the last slot
    svc.notifications.bump_by = 2

    decision = await svc.handle(data)

    assert decision == EmailDecision.DAILY_LIMIT
    assert email.calls == []


async def test_recipient_without_email(setup):
    svc, data, email, _, _, receiver, _ = setup
    receiver.email = ""

    assert await svc.handle(data) == EmailDecision.NO_EMAIL


async def test_send_failure_leaves_conversation_unmarked(setup):
    svc, data, email, _, convo, *_ = setup
    email.result = False

    decision = await svc.handle(data)

    assert decision == EmailDecision.SEND_FAILED
    assert convo.email_notified_at is None


async def test_in_app_failure_does_not_block_email(setup):
    svc, data, email, *_ = setup
    svc.notifications.fail_create = True

    assert await svc.handle(data) == EmailDecision.SENT


async def test_handle_never_raises(setup):
    svc, data, *_ = setup
    svc.users.fail_reads = True

    assert await svc.handle(data) is None
