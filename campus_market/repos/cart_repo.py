import uuid
from typing import List

from sqlalchemy import delete, func, select, update
from sqlalchemy.dialects.postgresql import insert
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import selectinload

from models.models import CartItem, Listing


class CartRepo:
    def __init__(self, db):
        self.db = db

    async def add_or_increment(
        self, user_id: uuid.UUID, listing_id: uuid.UUID, quantity: int
    ) -> CartItem:
        """Single-statement upsert so concurrent adds never lose an increment."""
        stmt = (
            insert(CartItem)
            .values(
                id=uuid.uuid4(),
                user_id=user_id,
                listing_id=listing_id,
                quantity=quantity,
            )
            .on_conflict_do_update(
                constraint="uq_cart_user_listing",
                set_={"quantity": CartItem.quantity + quantity},
            )
            .returning(CartItem.id)
        )
        try:
            result = await self.db.execute(stmt)
            item_id = result.scalar_one()
            await self.db.commit()
        except SQLAlchemyError:
            await self.db.rollback()
            raise
        return await self.get_for_user(item_id, user_id)

    async def get_for_user(self, item_id: uuid.UUID, user_id: uuid.UUID) -> CartItem | None:
        stmt = (
            select(CartItem)
            .options(selectinload(CartItem.listing).selectinload(Listing.owner))
            .where(CartItem.id == item_id, CartItem.user_id == user_id)
            .execution_options(populate_existing=True)
        )
        result = await self.db.execute(stmt)
        return result.scalar_one_or_none()

    async def list_for_user(self, user_id: uuid.UUID) -> List[CartItem]:
        stmt = (
            select(CartItem)
            .options(selectinload(CartItem.listing).selectinload(Listing.owner))
            .where(CartItem.user_id == user_id)
            .order_by(CartItem.created_at.desc())
        )
        result = await self.db.execute(stmt)
        return list(result.scalars().all())

    async def count_for_user(self, user_id: uuid.UUID) -> int:
        result = await self.db.execute(
            select(func.coalesce(func.sum(CartItem.quantity), 0)).where(
                CartItem.user_id == user_id
            )
        )
        return int(result.scalar_one() or 0)

    async def set_quantity(
        self, item_id: uuid.UUID, user_id: uuid.UUID, quantity: int
    ) -> bool:
        stmt = (
            update(CartItem)
            .where(CartItem.id == item_id, CartItem.user_id == user_id)
            .values(quantity=quantity)
            .execution_options(synchronize_session=False)
        )
        try:
            result = await self.db.execute(stmt)
            await self.db.commit()
            return bool(result.rowcount)
        except SQLAlchemyError:
            await self.db.rollback()
            raise

    async def remove(self, item_id: uuid.UUID, user_id: uuid.UUID) -> bool:
        try:
            result = await self.db.execute(
                delete(CartItem).where(
                    CartItem.id == item_id, CartItem.user_id == user_id
                )
            )
            await self.db.commit()
            return bool(result.rowcount)
        except SQLAlchemyError:
            await self.db.rollback()
            raise

    async def clear(self, user_id: uuid.UUID) -> int:
        try:
            result = await self.db.execute(
                delete(CartItem).where(CartItem.user_id == user_id)
            )
            await self.db.commit()
            return int(result.rowcount or 0)
        except SQLAlchemyError:
            await self.db.rollback()
            raise
