from sqlalchemy import func, select

from fakes import Clock, FakeNotifier
from models.models import Conversation, Message, User
from repos.conversation_repo import ConversationRepo
from services.conversation_service import canonical_participants
from services.message_service import MessageService


async def run(store, user_id, operation, *args, notifier=None):
    """One request: a fresh session, the caller loaded from it."""
    async with store() as db:
        user = await db.get(User, user_id)
        svc = MessageService(db, notifier=notifier or FakeNotifier(), clock=Clock())
        return await getattr(svc, operation)(user, *args)


async def unread(store, user_id) -> int:
    async with store() as db:
        return await ConversationRepo(db).total_unread(user_id)


async def conversation_count(store) -> int:
    async with store() as db:
        return (await db.execute(select(func.count(Conversation.id)))).scalar_one()


async def send(store, stored, body, sender="buyer"):
    sender_id, receiver_id = (
        (stored.buyer_id, stored.seller_id)
        if sender == "buyer"
        else (stored.seller_id, stored.buyer_id)
    )
    result = await run(
        store, sender_id, "send_message", stored.listing_id, receiver_id, body
    )
    assert result.status_code == 201, result.error
    return result.data.message


async def test_each_send_adds_one_unread(store, stored):
    for n in range(3):
        await send(store, stored, f"message {n}")
    await send(store, stored, "reply", sender="seller")

    assert await unread(store, stored.seller_id) == 3
    assert await unread(store, stored.buyer_id) == 1
    assert await conversation_count(store) == 1


async def test_marking_read_twice_decrements_once(store, stored):
    first = await send(store, stored, "first")
    await send(store, stored, "second")

    once = await run(store, stored.seller_id, "mark_message_read", first.id)
    twice = await run(store, stored.seller_id, "mark_message_read", first.id)

    assert once.data.updated == 1
    assert twice.data.updated == 0
    assert await unread(store, stored.seller_id) == 1


async def test_deleting_unread_message_releases_its_count(store, stored):
    first = await send(store, stored, "first")
    second = await send(store, stored, "second")
    await run(store, stored.seller_id, "mark_message_read", first.id)

    await run(store, stored.buyer_id, "delete_message", second.id)
    await run(store, stored.buyer_id, "delete_message", second.id)
    await run(store, stored.buyer_id, "delete_message", first.id)

    assert await unread(store, stored.seller_id) == 0
    async with store() as db:
        deleted = (
            await db.execute(select(Message.deleted).order_by(Message.body))
        ).scalars().all()
    assert deleted == [True, True]


async def test_mark_conversation_read_zeroes_the_counter(store, stored):
    for n in range(2):
        await send(store, stored, f"message {n}")

    result = await run(
        store,
        stored.seller_id,
        "mark_conversation_read",
        stored.listing_id,
        stored.buyer_id,
    )
    again = await run(
        store,
        stored.seller_id,
        "mark_conversation_read",
        stored.listing_id,
        stored.buyer_id,
    )

    assert result.data.updated == 2
    assert again.data.updated == 0
    assert await unread(store, stored.seller_id) == 0


async def test_unread_counter_never_goes_negative(store, stored):
    await send(store, stored, "hello")
    async with store() as db:
        convo_id = (await db.execute(select(Conversation.id))).scalar_one()
        repo = ConversationRepo(db)
        first = await repo.adjust_unread(convo_id, 1, -5)
        second = await repo.adjust_unread(convo_id, 2, -5)
        await db.commit()

    assert first == 0
    assert second == 0


async def test_send_reuses_conversation_created_by_concurrent_request(
    store, stored, monkeypatch
):
    participant_1, participant_2 = canonical_participants(
        stored.buyer_id, stored.seller_id
    )
    async with store() as other:
        winner = Conversation(
            listing_id=stored.listing_id,
            participant_1_id=participant_1,
            participant_2_id=participant_2,
            participant_1_unread_count=0,
            participant_2_unread_count=0,
        )
        other.add(winner)
        await other.commit()
        winner_id = winner.id

    notifier = FakeNotifier()
    async with store() as db:
        buyer = await db.get(User, stored.buyer_id)
        svc = MessageService(db, notifier=notifier, clock=Clock())

        async def looked_before_insert(*args):
            return None

        # the lookup ran before the other request committed its row
        monkeypatch.setattr(svc.convos, "get_by_participants", looked_before_insert)
        result = await svc.send_message(
            buyer, stored.listing_id, stored.seller_id, "Is it still available?"
        )

    assert result.status_code == 201, result.error
    assert result.data.message.conversation_id == winner_id
    assert notifier.sent[0].conversation_id == winner_id
    assert notifier.sent[0].listing_title == "Desk lamp"
    assert notifier.sent[0].sender_name == "Bea Buyer"
    assert await conversation_count(store) == 1
    assert await unread(store, stored.seller_id) == 1
