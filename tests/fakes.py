import uuid
from datetime import datetime, timedelta, timezone

from core.auth_provider import AuthSession, AuthUser, SignUpResult
from core.errors import AuthProviderError
from models.enums import ListingCategory, ListingCondition
from models.models import Conversation, Listing, Message, User

T0 = datetime(2026, 3, 2, 12, 0, tzinfo=timezone.utc)


class Clock:
    def __init__(self, start: datetime = T0):
        self.now = start

    def __call__(self) -> datetime:
        return self.now

    def advance(self, **kwargs):
        self.now = self.now + timedelta(**kwargs)


class FakeSession:
    def __init__(self):
        self.added = []
        self.commits = 0
        self.rollbacks = 0

    def add(self, obj):
        self.added.append(obj)

    async def commit(self):
        self.commits += 1

    async def rollback(self):
        self.rollbacks += 1

    async def flush(self):
        pass

    async def refresh(self, obj):
        pass


class FakeSessionFactory:
    """Stands in for ``async_sessionmaker``: ``async with factory() as db``."""

    def __init__(self, session=None):
        self.session = session or FakeSession()
        self.opened = 0

    def __call__(self):
        return self

    async def __aenter__(self):
        self.opened += 1
        return self.session

    async def __aexit__(self, exc_type, exc, tb):
        return False


def make_user(email: str = "student@state.edu", **kwargs) -> User:
    return User(
        id=kwargs.pop("id", uuid.uuid4()),
        email=email,
        display_name=kwargs.pop("display_name", email.split("@")[0].title()),
        username=kwargs.pop("username", None),
        university_domain=email.split("@")[1],
        verified_seller=kwargs.pop("verified_seller", False),
        last_active=kwargs.pop("last_active", None),
        **kwargs,
    )


def make_listing(owner: User, title: str = "Desk lamp") -> Listing:
    return Listing(
        id=uuid.uuid4(),
        user_id=owner.id,
        title=title,
        category=ListingCategory.DORM_AND_DECOR.value,
        condition=ListingCondition.USED,
        price=1500,
        image_urls=[],
        owner=owner,
    )


class FakeUserRepo:
    def __init__(self, *users: User):
        self.users = {u.id: u for u in users}
        self.fail_create = False
        self.fail_reads = False
        self.created = []

    def add(self, user: User) -> User:
        self.users[user.id] = user
        return user

    async def by_id(self, user_id):
        if self.fail_reads:
            raise RuntimeError("store unavailable")
        return self.users.get(user_id)

    async def get_by_email(self, email):
        return next(
            (u for u in self.users.values() if u.email.lower() == email.lower()), None
        )

    async def get_by_username(self, username):
        return next(
            (
                u
                for u in self.users.values()
                if u.username and u.username.lower() == username.lower()
            ),
            None,
        )

    async def create(self, user: User) -> User:
        if self.fail_create:
            raise RuntimeError("insert failed")
        # server defaults
        if user.verified_seller is None:
            user.verified_seller = False
        self.created.append(user)
        return self.add(user)

    async def save(self, user: User) -> User:
        return self.add(user)

    async def get_last_active(self, user_id):
        if self.fail_reads:
            raise RuntimeError("store unavailable")
        user = self.users.get(user_id)
        return user.last_active if user else None

    async def touch_last_active(self, user_id, now, stale_before) -> bool:
        if self.fail_reads:
            raise RuntimeError("store unavailable")
        user = self.users.get(user_id)
        if user is None:
            return False
        if user.last_active is not None and user.last_active >= stale_before:
            return False
        user.last_active = now
        return True


class FakeListingRepo:
    def __init__(self, *listings: Listing):
        self.listings = {listing.id: listing for listing in listings}

    async def get_listing_id(self, listing_id):
        return self.listings.get(listing_id)

    async def exists(self, listing_id) -> bool:
        return listing_id in self.listings


class FakeConversationRepo:
    """In-memory conversations keyed by (listing, participant_1, participant_2)."""

    def __init__(self):
        self.rows = {}
        self.fail = False

    def _key(self, listing_id, p1, p2):
        return (listing_id, p1, p2)

    async def get_by_participants(self, listing_id, p1, p2):
        return self.rows.get(self._key(listing_id, p1, p2))

    async def get_or_create(self, listing_id, p1, p2):
        if self.fail:
            raise RuntimeError("store unavailable")
        assert str(p1) <= str(p2), "participants must arrive in canonical order"
        key = self._key(listing_id, p1, p2)
        if key not in self.rows:
            self.rows[key] = Conversation(
                id=uuid.uuid4(),
                listing_id=listing_id,
                participant_1_id=p1,
                participant_2_id=p2,
                participant_1_unread_count=0,
                participant_2_unread_count=0,
                last_message_id=None,
                last_message_at=None,
                email_notified_at=None,
            )
        return self.rows[key]

    async def get_conversation_by_id(self, conversation_id):
        return next((c for c in self.rows.values() if c.id == conversation_id), None)

    async def adjust_unread(self, conversation_id, slot, delta):
        convo = await self.get_conversation_by_id(conversation_id)
        column = f"participant_{slot}_unread_count"
        setattr(convo, column, max(getattr(convo, column) + delta, 0))
        return getattr(convo, column)

    async def record_last_message(self, conversation_id, message_id, at):
        convo = await self.get_conversation_by_id(conversation_id)
        convo.last_message_id = message_id
        convo.last_message_at = at

    async def mark_email_notified(self, conversation_id, at):
        convo = await self.get_conversation_by_id(conversation_id)
        convo.email_notified_at = at

    def unread_for(self, convo: Conversation, user_id) -> int:
        if convo.participant_1_id == user_id:
            return convo.participant_1_unread_count
        return convo.participant_2_unread_count


class FakeMessageRepo:
    def __init__(self):
        self.rows = {}
        self.fail_create = False

    async def create(self, **fields) -> Message:
        if self.fail_create:
            raise RuntimeError("insert failed")
        msg = Message(
            id=uuid.uuid4(),
            read=False,
            seen_at=None,
            edited=False,
            edited_at=None,
            deleted=False,
            **fields,
        )
        self.rows[msg.id] = msg
        return msg

    async def get_message_by_id(self, message_id):
        return self.rows.get(message_id)

    async def list_thread(self, listing_id, user_id, other_user_id):
        pair = {user_id, other_user_id}
        return sorted(
            (
                m
                for m in self.rows.values()
                if m.listing_id == listing_id
                and {m.sender_id, m.receiver_id} == pair
                and not m.deleted
            ),
            key=lambda m: m.created_at,
        )

    async def mark_read(self, message_id, receiver_id, seen_at) -> bool:
        msg = self.rows.get(message_id)
        if msg is None or msg.receiver_id != receiver_id or msg.read or msg.deleted:
            return False
        msg.read = True
        msg.seen_at = seen_at
        return True

    async def mark_thread_read(self, listing_id, receiver_id, sender_id, seen_at):
        flipped = []
        for msg in self.rows.values():
            if (
                msg.listing_id == listing_id
                and msg.receiver_id == receiver_id
                and msg.sender_id == sender_id
                and not msg.read
                and not msg.deleted
            ):
                msg.read = True
                msg.seen_at = seen_at
                flipped.append(msg.id)
        return flipped

    async def edit_body(self, message_id, sender_id, body, edited_at, not_before):
        msg = self.rows.get(message_id)
        if (
            msg is None
            or msg.sender_id != sender_id
            or msg.deleted
            or msg.created_at < not_before
        ):
            return None
        msg.body = body
        msg.edited = True
        msg.edited_at = edited_at
        return msg

    async def soft_delete(self, message_id, sender_id):
        msg = self.rows.get(message_id)
        if msg is None or msg.sender_id != sender_id or msg.deleted:
            return None
        msg.deleted = True
        return msg.read


class FakeNotificationRepo:
    def __init__(self, daily_count: int = 0):
        self.created = []
        self.daily = {}
        self.start_count = daily_count
        self.bump_by = 1
        self.fail_create = False

    async def create(self, **fields):
        if self.fail_create:
            raise RuntimeError("insert failed")
        self.created.append(fields)
        return fields

    async def daily_email_count(self, day) -> int:
        return self.daily.get(day, self.start_count)

    async def increment_daily_email_count(self, day) -> int:
        self.daily[day] = self.daily.get(day, self.start_count) + self.bump_by
        return self.daily[day]


class FakeNotifier:
    def __init__(self):
        self.sent = []

    def notify_in_background(self, data):
        self.sent.append(data)


class FakeTracker:
    def __init__(self, active: bool = False):
        self.active = active
        self.touched = []

    async def is_active(self, user_id, threshold_minutes=None) -> bool:
        return self.active

    def touch_in_background(self, user_id):
        self.touched.append(user_id)


class FakeAuthProvider:
    """Records calls; behaviour is driven by the attributes set per test."""

    def __init__(self):
        self.calls = []
        self.users_by_token = {}
        self.refreshed = {}
        self.sign_up_result = None
        self.sign_in_session = None
        self.exchange_session = None
        self.error = None
        self.refresh_error = None

    def _record(self, name, *args):
        self.calls.append((name, *args))
        if self.error is not None:
            raise self.error

    async def get_user(self, access_token):
        self.calls.append(("get_user", access_token))
        return self.users_by_token.get(access_token)

    async def refresh_session(self, refresh_token):
        self.calls.append(("refresh_session", refresh_token))
        if self.refresh_error is not None:
            raise self.refresh_error
        return self.refreshed.get(refresh_token)

    async def sign_up(self, email, password, metadata=None, redirect_to=None):
        self._record("sign_up", email)
        return self.sign_up_result

    async def sign_in_with_password(self, email, password):
        self._record("sign_in_with_password", email)
        if self.sign_in_session is None:
            raise AuthProviderError("Invalid login credentials", status_code=400)
        return self.sign_in_session

    async def exchange_code_for_session(self, auth_code, code_verifier):
        self._record("exchange_code_for_session", auth_code, code_verifier)
        return self.exchange_session

    async def verify_otp(self, token_hash, otp_type):
        self._record("verify_otp", token_hash, otp_type)
        return self.exchange_session

    async def sign_out(self, access_token):
        self._record("sign_out", access_token)

    async def send_password_reset(self, email, redirect_to=None):
        self._record("send_password_reset", email)

    async def update_password(self, access_token, password):
        self._record("update_password", access_token)

    def called(self, name) -> bool:
        return any(call[0] == name for call in self.calls)


def make_session(user: AuthUser, access_token="new-access", refresh_token="new-refresh"):
    return AuthSession(
        access_token=access_token,
        refresh_token=refresh_token,
        expires_at=int(T0.timestamp()) + 10**9,
        user=user,
    )


def make_signup(user_id=None, email="new@state.edu", with_session=False) -> SignUpResult:
    auth_user = AuthUser(id=str(user_id or uuid.uuid4()), email=email)
    return SignUpResult(
        user=auth_user, session=make_session(auth_user) if with_session else None
    )
