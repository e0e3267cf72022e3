import uuid

from fastapi import APIRouter, Depends
from fastapi_utils.cbv import cbv
from sqlalchemy.ext.asyncio import AsyncSession

from core.get_current_user import get_current_user
from core.get_db import get_db_async
from core.safe_handler import safe_handler
from core.throttling import rate_limit
from models.models import User
from schemas.schema import CartAddIn, CartOut, CartRowOut, CartUpdateIn
from services.cart_service import CartService

router = APIRouter(tags=["Cart"])


@cbv(router)
class CartRoutes:
    @router.get("/cart", response_model=CartOut)
    @safe_handler
    async def list(
        self,
        current_user: User = Depends(get_current_user),
        db: AsyncSession = Depends(get_db_async),
    ):
        return await CartService(db).list(current_user)

    @router.get("/cart/count")
    @safe_handler
    async def count(
        self,
        current_user: User = Depends(get_current_user),
        db: AsyncSession = Depends(get_db_async),
    ):
        return await CartService(db).count(current_user)

    @router.post(
        "/cart", dependencies=[rate_limit], response_model=CartRowOut, status_code=201
    )
    @safe_handler
    async def add(
        self,
        data: CartAddIn,
        current_user: User = Depends(get_current_user),
        db: AsyncSession = Depends(get_db_async),
    ):
        return await CartService(db).add(current_user, data.listing_id, data.quantity)

    @router.delete("/cart", dependencies=[rate_limit])
    @safe_handler
    async def clear(
        self,
        current_user: User = Depends(get_current_user),
        db: AsyncSession = Depends(get_db_async),
    ):
        return await CartService(db).clear(current_user)

    @router.patch(
        "/cart/{item_id}", dependencies=[rate_limit], response_model=CartRowOut
    )
    @safe_handler
    async def update(
        self,
        item_id: uuid.UUID,
        data: CartUpdateIn,
        current_user: User = Depends(get_current_user),
        db: AsyncSession = Depends(get_db_async),
    ):
        return await CartService(db).update_quantity(current_user, item_id, data.quantity)

    @router.delete("/cart/{item_id}", dependencies=[rate_limit])
    @safe_handler
    async def remove(
        self,
        item_id: uuid.UUID,
        current_user: User = Depends(get_current_user),
        db: AsyncSession = Depends(get_db_async),
    ):
        return await CartService(db).remove(current_user, item_id)
