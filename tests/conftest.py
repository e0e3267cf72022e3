from types import SimpleNamespace

import pytest
from sqlalchemy import event
from sqlalchemy.ext.asyncio import async_sessionmaker, create_async_engine

from core.get_db import Base
from fakes import (
    Clock,
    FakeConversationRepo,
    FakeListingRepo,
    FakeMessageRepo,
    FakeNotifier,
    FakeSession,
    FakeUserRepo,
    make_listing,
    make_user,
)
from services.conversation_service import ConversationResolver
from services.message_service import MessageService


@pytest.fixture
def clock():
    return Clock()


@pytest.fixture
def world(clock):
    """A seller, a buyer and one listing, wired to in-memory repos."""
    seller = make_user("seller@state.edu", display_name="Sam Seller")
    buyer = make_user("buyer@state.edu", display_name="Bea Buyer")
    listing = make_listing(seller)
    return SimpleNamespace(
        db=FakeSession(),
        clock=clock,
        seller=seller,
        buyer=buyer,
        listing=listing,
        users=FakeUserRepo(seller, buyer),
        listings=FakeListingRepo(listing),
        convos=FakeConversationRepo(),
        messages=FakeMessageRepo(),
        notifier=FakeNotifier(),
    )


@pytest.fixture
def message_service(world):
    svc = MessageService(world.db, notifier=world.notifier, clock=world.clock)
    svc.messages = world.messages
    svc.convos = world.convos
    svc.listings = world.listings
    svc.users = world.users
    svc.resolver = ConversationResolver(world.db, world.convos)
    return svc


@pytest.fixture
async def store(tmp_path):
    """Session factory over a real SQLite file with the full schema."""
    engine = create_async_engine(f"sqlite+aiosqlite:///{tmp_path / 'market.db'}")

    @event.listens_for(engine.sync_engine, "connect")
    def _on_connect(dbapi_connection, connection_record):
        # let SQLAlchemy emit BEGIN so SAVEPOINT behaves
        dbapi_connection.isolation_level = None
        dbapi_connection.create_function("greatest", 2, max)

    @event.listens_for(engine.sync_engine, "begin")
    def _on_begin(conn):
        conn.exec_driver_sql("BEGIN")

    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)
    yield async_sessionmaker(engine, expire_on_commit=False, autoflush=False)
    await engine.dispose()


@pytest.fixture
async def stored(store):
    """The seller, buyer and listing of ``world``, committed to ``store``."""
    seller = make_user("seller@state.edu", display_name="Sam Seller")
    buyer = make_user("buyer@state.edu", display_name="Bea Buyer")
    listing = make_listing(seller)
    async with store() as db:
        db.add_all([seller, buyer, listing])
        await db.commit()
    return SimpleNamespace(
        seller_id=seller.id, buyer_id=buyer.id, listing_id=listing.id
    )
