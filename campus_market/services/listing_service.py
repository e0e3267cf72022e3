import logging
import uuid
from decimal import ROUND_HALF_UP, Decimal
from typing import Optional

from fastapi import HTTPException

from core.breaker import breaker
from core.cache import cache
from core.mapper import ORMMapper
from core.settings import settings
from fire_and_forget.listings import AsyncioListing, listing_cache_key
from models.models import User
from repos.listing_repo import ListingQuery, ListingRepo
from schemas.schema import (
    ListingCreateIn,
    ListingFilterIn,
    ListingOut,
    ListingPage,
    ListingUpdateIn,
)

logger = logging.getLogger(__name__)


def dollars_to_cents(amount: Optional[Decimal]) -> Optional[int]:
    if amount is None:
        return None
    return int((Decimal(amount) * 100).quantize(Decimal("1"), rounding=ROUND_HALF_UP))


class ListingService:
    def __init__(self, db):
        self.repo: ListingRepo = ListingRepo(db)
        self.mapper: ORMMapper = ORMMapper()
        self.fire_and_forget: AsyncioListing = AsyncioListing()

    async def create(self, current_user: User, data: ListingCreateIn) -> ListingOut:
        async def handler():
            payload = data.model_dump()
            payload["price"] = dollars_to_cents(data.price)
            payload["user_id"] = current_user.id
            listing = await self.repo.create(payload)
            logger.info(f"Listing {listing.id} created by {current_user.id}")
            return self.mapper.one(listing, ListingOut)

        return await breaker.call(handler)

    async def get(self, listing_id: uuid.UUID) -> ListingOut:
        cache_key = listing_cache_key(listing_id)
        cached = await cache.get_json(cache_key)
        if cached:
            return ListingOut.model_validate(cached)

        async def handler():
            listing = await self.repo.get_listing_id(listing_id)
            if not listing:
                raise HTTPException(status_code=404, detail="Listing not found")
            result = self.mapper.one(listing, ListingOut)
            await cache.set_json(
                cache_key, result.model_dump(mode="json"), ttl=settings.LISTING_CACHE_TTL
            )
            return result

        return await breaker.call(handler)

    async def _owned(self, current_user: User, listing_id: uuid.UUID):
        listing = await self.repo.get_listing_id(listing_id)
        if not listing:
            raise HTTPException(status_code=404, detail="Listing not found")
        if listing.user_id != current_user.id:
            raise HTTPException(
                status_code=403, detail="You can only modify your own listings"
            )
        return listing

    async def update(
        self, current_user: User, listing_id: uuid.UUID, data: ListingUpdateIn
    ) -> ListingOut:
        async def handler():
            listing = await self._owned(current_user, listing_id)
            changes = data.model_dump(exclude_unset=True)
            if "price" in changes:
                if changes["price"] is None:
                    raise HTTPException(status_code=400, detail="Price is required")
                changes["price"] = dollars_to_cents(changes["price"])
            for field, value in changes.items():
                setattr(listing, field, value)
            listing = await self.repo.save(listing)
            await self.fire_and_forget.listing_changed(listing_id)
            return self.mapper.one(listing, ListingOut)

        return await breaker.call(handler)

    async def delete(self, current_user: User, listing_id: uuid.UUID) -> dict:
        async def handler():
            await self._owned(current_user, listing_id)
            if not await self.repo.delete(listing_id, current_user.id):
                raise HTTPException(status_code=404, detail="Listing not found")
            await self.fire_and_forget.listing_changed(listing_id)
            logger.info(f"Listing {listing_id} deleted by {current_user.id}")
            return {"message": "Listing deleted"}

        return await breaker.call(handler)

    async def browse(
        self, filters: ListingFilterIn, current_user: Optional[User] = None
    ) -> ListingPage:
        if filters.campus_only and current_user is None:
            raise HTTPException(
                status_code=401, detail="Sign in to filter by your campus"
            )

        async def handler():
            query = ListingQuery(
                search=filters.search,
                category=filters.category,
                conditions=filters.conditions,
                min_price_cents=dollars_to_cents(filters.min_price),
                max_price_cents=dollars_to_cents(filters.max_price),
                brands=filters.brands,
                verified_sellers_only=filters.verified_sellers_only,
                university_domain=current_user.university_domain
                if filters.campus_only
                else None,
                sort=filters.sort,
                page=filters.page,
                per_page=filters.per_page,
            )
            items, total = await self.repo.search(query)
            return ListingPage(
                items=self.mapper.many(items, ListingOut),
                total=total,
                page=filters.page,
                per_page=filters.per_page,
            )

        return await breaker.call(handler)

    async def list_mine(self, current_user: User) -> list[ListingOut]:
        async def handler():
            listings = await self.repo.list_for_owner(current_user.id)
            return self.mapper.many(listings, ListingOut)

        return await breaker.call(handler)
