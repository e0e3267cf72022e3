import uuid
from decimal import Decimal
from typing import List, Optional

from fastapi import APIRouter, Depends, Query
from fastapi_utils.cbv import cbv
from sqlalchemy.ext.asyncio import AsyncSession

from core.get_current_user import get_current_user, get_optional_current_user
from core.get_db import get_db_async
from core.safe_handler import safe_handler
from core.throttling import rate_limit
from models.enums import ListingCondition, ListingSort
from models.models import User
from schemas.schema import (
    ListingCreateIn,
    ListingFilterIn,
    ListingOut,
    ListingPage,
    ListingUpdateIn,
)
from services.listing_service import ListingService

router = APIRouter(tags=["Listings"])


@cbv(router)
class ListingRoutes:
    @router.get("/listings", response_model=ListingPage)
    @safe_handler
    async def browse(
        self,
        search: Optional[str] = None,
        category: Optional[str] = None,
        conditions: List[ListingCondition] = Query(default=[]),
        min_price: Optional[Decimal] = Query(default=None, ge=0),
        max_price: Optional[Decimal] = Query(default=None, ge=0),
        brands: List[str] = Query(default=[]),
        verified_sellers_only: bool = False,
        campus_only: bool = False,
        sort: ListingSort = ListingSort.NEWEST,
        page: int = Query(default=1, ge=1),
        per_page: int = Query(default=24, ge=1, le=100),
        current_user: Optional[User] = Depends(get_optional_current_user),
        db: AsyncSession = Depends(get_db_async),
    ):
        filters = ListingFilterIn(
            search=search,
            category=category,
            conditions=conditions,
            min_price=min_price,
            max_price=max_price,
            brands=brands,
            verified_sellers_only=verified_sellers_only,
            campus_only=campus_only,
            sort=sort,
            page=page,
            per_page=per_page,
        )
        return await ListingService(db).browse(filters, current_user)

    @router.get("/listings/mine", response_model=List[ListingOut])
    @safe_handler
    async def mine(
        self,
        current_user: User = Depends(get_current_user),
        db: AsyncSession = Depends(get_db_async),
    ):
        return await ListingService(db).list_mine(current_user)

    @router.post(
        "/listings",
        dependencies=[rate_limit],
        response_model=ListingOut,
        status_code=201,
    )
    @safe_handler
    async def create(
        self,
        data: ListingCreateIn,
        current_user: User = Depends(get_current_user),
        db: AsyncSession = Depends(get_db_async),
    ):
        return await ListingService(db).create(current_user, data)

    @router.get("/listings/{listing_id}", response_model=ListingOut)
    @safe_handler
    async def get(
        self,
        listing_id: uuid.UUID,
        db: AsyncSession = Depends(get_db_async),
    ):
        return await ListingService(db).get(listing_id)

    @router.patch(
        "/listings/{listing_id}", dependencies=[rate_limit], response_model=ListingOut
    )
    @safe_handler
    async def update(
        self,
        listing_id: uuid.UUID,
        data: ListingUpdateIn,
        current_user: User = Depends(get_current_user),
        db: AsyncSession = Depends(get_db_async),
    ):
        return await ListingService(db).update(current_user, listing_id, data)

    @router.delete("/listings/{listing_id}", dependencies=[rate_limit])
    @safe_handler
    async def delete(
        self,
        listing_id: uuid.UUID,
        current_user: User = Depends(get_current_user),
        db: AsyncSession = Depends(get_db_async),
    ):
        return await ListingService(db).delete(current_user, listing_id)
