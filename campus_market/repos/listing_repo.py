import uuid
from dataclasses import dataclass, field
from typing import List, Optional, Tuple

from sqlalchemy import case, delete, func, or_, select
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import selectinload

from models.enums import CONDITION_RANK, ListingCondition, ListingSort
from models.models import Listing, User


@dataclass
class ListingQuery:
    search: Optional[str] = None
    category: Optional[str] = None
    conditions: List[ListingCondition] = field(default_factory=list)
    min_price_cents: Optional[int] = None
    max_price_cents: Optional[int] = None
    brands: List[str] = field(default_factory=list)
    verified_sellers_only: bool = False
    university_domain: Optional[str] = None
    sort: ListingSort = ListingSort.NEWEST
    page: int = 1
    per_page: int = 24


def _escape_like(value: str) -> str:
    return value.replace("\\", "\\\\").replace("%", "\\%").replace("_", "\\_")


class ListingRepo:
    def __init__(self, db):
        self.db = db

    async def get_listing_id(self, listing_id: uuid.UUID) -> Listing | None:
        stmt = (
            select(Listing)
            .options(selectinload(Listing.owner))
            .where(Listing.id == listing_id)
        )
        result = await self.db.execute(stmt)
        return result.scalar_one_or_none()

    async def _reload(self, listing_id: uuid.UUID) -> Listing:
        stmt = (
            select(Listing)
            .options(selectinload(Listing.owner))
            .where(Listing.id == listing_id)
            .execution_options(populate_existing=True)
        )
        result = await self.db.execute(stmt)
        return result.scalar_one()

    async def exists(self, listing_id: uuid.UUID) -> bool:
        result = await self.db.execute(
            select(Listing.id).where(Listing.id == listing_id)
        )
        return result.scalar_one_or_none() is not None

    async def create(self, data: dict) -> Listing:
        item = Listing(**data)
        self.db.add(item)
        try:
            await self.db.commit()
            return await self._reload(item.id)
        except SQLAlchemyError:
            await self.db.rollback()
            raise

    async def save(self, item: Listing) -> Listing:
        self.db.add(item)
        try:
            await self.db.commit()
            return await self._reload(item.id)
        except SQLAlchemyError:
            await self.db.rollback()
            raise

    async def delete(self, listing_id: uuid.UUID, owner_id: uuid.UUID) -> bool:
        stmt = delete(Listing).where(
            Listing.id == listing_id, Listing.user_id == owner_id
        )
        try:
            result = await self.db.execute(stmt)
            await self.db.commit()
            return bool(result.rowcount)
        except SQLAlchemyError:
            await self.db.rollback()
            raise

    async def list_for_owner(self, owner_id: uuid.UUID) -> List[Listing]:
        stmt = (
            select(Listing)
            .options(selectinload(Listing.owner))
            .where(Listing.user_id == owner_id)
            .order_by(Listing.created_at.desc())
        )
        result = await self.db.execute(stmt)
        return list(result.scalars().all())

    def _filtered(self, query: ListingQuery):
        stmt = select(Listing).join(User, Listing.user_id == User.id)

        if query.search and query.search.strip():
            pattern = f"%{_escape_like(query.search.strip())}%"
            stmt = stmt.where(
                or_(
                    Listing.title.ilike(pattern, escape="\\"),
                    Listing.description.ilike(pattern, escape="\\"),
                )
            )
        if query.category and query.category != "All":
            stmt = stmt.where(Listing.category == query.category)
        if query.conditions:
            stmt = stmt.where(Listing.condition.in_(query.conditions))
        if query.min_price_cents is not None:
            stmt = stmt.where(Listing.price >= query.min_price_cents)
        if query.max_price_cents is not None:
            stmt = stmt.where(Listing.price <= query.max_price_cents)
        if query.brands:
            stmt = stmt.where(
                func.lower(Listing.brand).in_([b.lower() for b in query.brands])
            )
        if query.verified_sellers_only:
            stmt = stmt.where(User.verified_seller.is_(True))
        if query.university_domain:
            stmt = stmt.where(User.university_domain == query.university_domain)
        return stmt

    def _ordered(self, stmt, sort: ListingSort):
        if sort == ListingSort.PRICE_LOW:
            return stmt.order_by(Listing.price.asc(), Listing.created_at.desc())
        if sort == ListingSort.PRICE_HIGH:
            return stmt.order_by(Listing.price.desc(), Listing.created_at.desc())
        if sort == ListingSort.CONDITION:
            rank = case(CONDITION_RANK, value=Listing.condition, else_=0)
            return stmt.order_by(rank.desc(), Listing.created_at.desc())
        return stmt.order_by(Listing.created_at.desc())

    async def search(self, query: ListingQuery) -> Tuple[List[Listing], int]:
        base = self._filtered(query)
        total = await self.db.execute(
            select(func.count()).select_from(base.subquery())
        )
        stmt = (
            self._ordered(base, query.sort)
            .options(selectinload(Listing.owner))
            .offset((query.page - 1) * query.per_page)
            .limit(query.per_page)
        )
        result = await self.db.execute(stmt)
        return list(result.scalars().all()), int(total.scalar_one())
