import uuid

from fakes import make_user
from schemas.schema import MarkReadOut, SentMessageOut


async def _send(svc, world, body="Is this still available?", sender=None, receiver=None):
    sender = sender or world.buyer
    receiver = receiver or world.seller
    return await svc.send_message(sender, world.listing.id, receiver.id, body)


def _only_conversation(world):
    assert len(world.convos.rows) == 1
    return next(iter(world.convos.rows.values()))


async def test_send_creates_conversation_and_counts_unread(message_service, world):
    for i in range(3):
        result = await _send(message_service, world, body=f"hello {i}")
        assert result.ok
        assert result.status_code == 201

    convo = _only_conversation(world)
    assert world.convos.unread_for(convo, world.seller.id) == 3
    assert world.convos.unread_for(convo, world.buyer.id) == 0
    assert convo.last_message_at == world.clock.now
    assert convo.last_message_id in world.messages.rows


async def test_reply_lands_in_same_conversation(message_service, world):
    await _send(message_service, world)
    await _send(message_service, world, sender=world.seller, receiver=world.buyer)

    convo = _only_conversation(world)
    assert world.convos.unread_for(convo, world.seller.id) == 1
    assert world.convos.unread_for(convo, world.buyer.id) == 1


async def test_send_returns_message_with_client_id(message_service, world):
    result = await message_service.send_message(
        world.buyer, world.listing.id, world.seller.id, "  hi there  ", client_id="tmp-1"
    )

    assert isinstance(result.data, SentMessageOut)
    assert result.data.client_id == "tmp-1"
    assert result.data.message.body == "hi there"
    assert result.data.message.read is False


async def test_send_schedules_notification_without_waiting(message_service, world):
    await _send(message_service, world, body="ping")

    assert len(world.notifier.sent) == 1
    data = world.notifier.sent[0]
    assert data.receiver_id == world.seller.id
    assert data.sender_name == "Bea Buyer"
    assert data.listing_title == world.listing.title


async def test_cannot_message_yourself(message_service, world):
    result = await _send(message_service, world, sender=world.buyer, receiver=world.buyer)

    assert not result.ok
    assert result.status_code == 400
    assert result.error == "You cannot message yourself"
    assert world.messages.rows == {}


async def test_blank_message_is_rejected(message_service, world):
    result = await _send(message_service, world, body="   ")

    assert result.status_code == 400
    assert result.error == "Message cannot be empty"
    assert world.convos.rows == {}


async def test_unknown_listing_and_recipient(message_service, world):
    missing_listing = await message_service.send_message(
        world.buyer, uuid.uuid4(), world.seller.id, "hi"
    )
    assert missing_listing.status_code == 404

    stranger = make_user("stranger@state.edu")
    not_seller = await _send(message_service, world, receiver=stranger)
    assert not_seller.status_code == 400


async def test_store_failure_rolls_back(message_service, world):
    world.messages.fail_create = True

    result = await _send(message_service, world)

    assert result.status_code == 500
    assert result.error == "Failed to send message"
    assert world.db.rollbacks == 1
    assert world.notifier.sent == []


async def test_mark_read_decrements_once(message_service, world):
    sent = await _send(message_service, world)
    message_id = sent.data.message.id
    convo = _only_conversation(world)

    first = await message_service.mark_message_read(world.seller, message_id)
    second = await message_service.mark_message_read(world.seller, message_id)

    assert first.data == MarkReadOut(updated=1)
    assert second.data == MarkReadOut(updated=0)
    assert world.convos.unread_for(convo, world.seller.id) == 0
    assert world.messages.rows[message_id].seen_at == world.clock.now


async def test_only_recipient_can_mark_read(message_service, world):
    sent = await _send(message_service, world)

    result = await message_service.mark_message_read(world.buyer, sent.data.message.id)

    assert result.status_code == 403
    assert world.messages.rows[sent.data.message.id].read is False


async def test_mark_conversation_read(message_service, world):
    for _ in range(4):
        await _send(message_service, world)
    convo = _only_conversation(world)

    result = await message_service.mark_conversation_read(
        world.seller, world.listing.id, world.buyer.id
    )

    assert result.data.updated == 4
    assert world.convos.unread_for(convo, world.seller.id) == 0


async def test_mark_conversation_read_without_conversation(message_service, world):
    result = await message_service.mark_conversation_read(
        world.seller, world.listing.id, world.buyer.id
    )

    assert result.ok
    assert result.data.updated == 0


async def test_edit_within_window(message_service, world):
    sent = await _send(message_service, world)
    world.clock.advance(seconds=90)

    result = await message_service.edit_message(
        world.buyer, sent.data.message.id, "Is this still for sale?"
    )

    assert result.ok
    assert result.data.body == "Is this still for sale?"
    assert result.data.edited is True
    assert result.data.edited_at == world.clock.now


async def test_edit_after_window_is_rejected(message_service, world):
    sent = await _send(message_service, world)
    world.clock.advance(minutes=2, seconds=1)

    result = await message_service.edit_message(world.buyer, sent.data.message.id, "late")

    assert result.status_code == 400
    assert world.messages.rows[sent.data.message.id].edited is False


async def test_only_sender_can_edit(message_service, world):
    sent = await _send(message_service, world)

    result = await message_service.edit_message(world.seller, sent.data.message.id, "x")

    assert result.status_code == 403


async def test_delete_unread_message_releases_unread(message_service, world):
    sent = await _send(message_service, world)
    convo = _only_conversation(world)

    first = await message_service.delete_message(world.buyer, sent.data.message.id)
    second = await message_service.delete_message(world.buyer, sent.data.message.id)

    assert first.data == {"id": sent.data.message.id, "deleted": True}
    assert second.ok
    assert world.convos.unread_for(convo, world.seller.id) == 0
    thread = await message_service.list_messages(
        world.seller, world.listing.id, world.buyer.id
    )
    assert thread.data == []


async def test_delete_read_message_keeps_counter(message_service, world):
    read_one = await _send(message_service, world, body="first")
    await message_service.mark_message_read(world.seller, read_one.data.message.id)
    await _send(message_service, world, body="second")
    convo = _only_conversation(world)

    await message_service.delete_message(world.buyer, read_one.data.message.id)

    assert world.convos.unread_for(convo, world.seller.id) == 1


async def test_cannot_edit_deleted_message(message_service, world):
    sent = await _send(message_service, world)
    await message_service.delete_message(world.buyer, sent.data.message.id)

    result = await message_service.edit_message(world.buyer, sent.data.message.id, "x")

    assert result.status_code == 400


async def test_list_messages_is_chronological(message_service, world):
    await _send(message_service, world, body="one")
    world.clock.advance(seconds=5)
    await _send(message_service, world, body="two", sender=world.seller, receiver=world.buyer)

    result = await message_service.list_messages(
        world.buyer, world.listing.id, world.seller.id
    )

    assert [m.body for m in result.data] == ["one", "two"]
