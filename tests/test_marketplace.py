import uuid
from decimal import Decimal

import pytest
from fastapi import HTTPException

from core.breaker import CircuitBreaker, CircuitOpenError
from core.cache import Cache
from core.validators import extract_domain, is_academic_email
from fakes import FakeListingRepo, FakeSession, make_listing, make_user
from schemas.schema import ContactIn, ListingFilterIn
from services import contact_service
from services.cart_service import CartService
from services.contact_service import ContactService
from services.listing_service import ListingService, dollars_to_cents


@pytest.mark.parametrize(
    "email, expected",
    [
        ("alex@mit.edu", True),
        ("Alex@CS.Stanford.EDU", True),
        ("alex@gmail.com", False),
        ("alex@edu.com", False),
        ("not-an-email", False),
        ("", False),
    ],
)
def test_academic_email(email, expected):
    assert is_academic_email(email) is expected


def test_custom_academic_suffixes():
    assert is_academic_email("kim@ox.ac.uk", suffixes=[".edu", ".ac.uk"]) is True
    assert extract_domain("kim@Ox.AC.uk") == "ox.ac.uk"
    assert extract_domain("a@b@c") is None


def test_dollars_to_cents_rounds_half_up():
    assert dollars_to_cents(Decimal("12.5")) == 1250
    assert dollars_to_cents(Decimal("0.005")) == 1
    assert dollars_to_cents(None) is None


async def test_campus_filter_requires_sign_in():
    svc = ListingService(FakeSession())

    with pytest.raises(HTTPException) as exc:
        await svc.browse(ListingFilterIn(campus_only=True), None)

    assert exc.value.status_code == 401


@pytest.fixture
def cart():
    seller = make_user("seller@state.edu")
    listing = make_listing(seller)
    svc = CartService(FakeSession())
    svc.listing_repo = FakeListingRepo(listing)
    return svc, seller, listing


async def test_cannot_cart_own_listing(cart):
    svc, seller, listing = cart

    with pytest.raises(HTTPException) as exc:
        await svc.add(seller, listing.id)

    assert exc.value.status_code == 400


async def test_cart_quantity_and_missing_listing(cart):
    svc, _, listing = cart
    buyer = make_user("buyer@state.edu")

    with pytest.raises(HTTPException) as exc:
        await svc.add(buyer, listing.id, quantity=0)
    assert exc.value.status_code == 400

    with pytest.raises(HTTPException) as exc:
        await svc.add(buyer, uuid.uuid4())
    assert exc.value.status_code == 404


async def test_unconfigured_cache_is_a_miss():
    cache = Cache(redis_url="", redis_token="")

    assert cache.enabled is False
    await cache.set("k", "v")
    assert await cache.get("k") is None


async def test_breaker_opens_after_failures():
    breaker = CircuitBreaker(name="test", failure_threshold=2, base_recovery_time=60)

    async def boom():
        raise ConnectionError("down")

    for _ in range(2):
        with pytest.raises(ConnectionError):
            await breaker.call(boom)

    assert breaker.state == "OPEN"
    with pytest.raises(CircuitOpenError):
        await breaker.call(boom)


async def test_breaker_ignores_client_errors():
    breaker = CircuitBreaker(name="test", failure_threshold=1)

    async def not_found():
        raise HTTPException(status_code=404, detail="nope")

    with pytest.raises(HTTPException):
        await breaker.call(not_found)

    assert breaker.state == "CLOSED"
    assert breaker.failure_count == 0


async def test_contact_send_failure_is_503(monkeypatch):
    async def fail(*args, **kwargs):
        return False

    monkeypatch.setattr(contact_service, "send_contact_email", fail)
    data = ContactIn(
        name="Bea", email="bea@state.edu", subject="Hi", message="Question"
    )

    with pytest.raises(HTTPException) as exc:
        await ContactService().submit(data)

    assert exc.value.status_code == 503


async def test_contact_success(monkeypatch):
    sent = []

    async def ok(*args):
        sent.append(args)
        return True

    monkeypatch.setattr(contact_service, "send_contact_email", ok)
    data = ContactIn(
        name=" Bea ", email="bea@state.edu", subject="Hi", message="Question"
    )

    assert (await ContactService().submit(data))["success"] is True
    assert sent == [("Bea", "bea@state.edu", "Hi", "Question")]
