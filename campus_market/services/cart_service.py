import logging
import uuid

from fastapi import HTTPException

from core.breaker import breaker
from models.models import CartItem, User
from repos.cart_repo import CartRepo
from repos.listing_repo import ListingRepo
from schemas.schema import CartOut, CartRowOut

logger = logging.getLogger(__name__)


def to_cart_row(item: CartItem) -> CartRowOut:
    listing = item.listing
    seller = listing.owner
    return CartRowOut(
        id=item.id,
        listing_id=item.listing_id,
        title=listing.title,
        price=listing.price,
        qty=item.quantity,
        seller_id=listing.user_id,
        seller_name=seller.display_name if seller else None,
        seller_campus=(seller.university_name or seller.university_domain)
        if seller
        else None,
        image_url=(listing.image_urls or [None])[0],
    )


class CartService:
    def __init__(self, db):
        self.repo: CartRepo = CartRepo(db)
        self.listing_repo: ListingRepo = ListingRepo(db)

    async def add(
        self, current_user: User, listing_id: uuid.UUID, quantity: int = 1
    ) -> CartRowOut:
        if quantity < 1:
            raise HTTPException(status_code=400, detail="Quantity must be at least 1")

        async def handler():
            listing = await self.listing_repo.get_listing_id(listing_id)
            if not listing:
                raise HTTPException(status_code=404, detail="Listing not found")
            if listing.user_id == current_user.id:
                raise HTTPException(
                    status_code=400, detail="You cannot add your own listing to your cart"
                )
            item = await self.repo.add_or_increment(current_user.id, listing_id, quantity)
            return to_cart_row(item)

        return await breaker.call(handler)

    async def list(self, current_user: User) -> CartOut:
        async def handler():
            items = await self.repo.list_for_user(current_user.id)
            rows = [to_cart_row(item) for item in items]
            return CartOut(
                items=rows,
                count=sum(row.qty for row in rows),
                subtotal=sum(row.price * row.qty for row in rows),
            )

        return await breaker.call(handler)

    async def count(self, current_user: User) -> dict:
        async def handler():
            return {"count": await self.repo.count_for_user(current_user.id)}

        return await breaker.call(handler)

    async def update_quantity(
        self, current_user: User, item_id: uuid.UUID, quantity: int
    ) -> CartRowOut:
        if quantity < 1:
            raise HTTPException(status_code=400, detail="Quantity must be at least 1")

        async def handler():
            if not await self.repo.set_quantity(item_id, current_user.id, quantity):
                raise HTTPException(status_code=404, detail="Cart item not found")
            item = await self.repo.get_for_user(item_id, current_user.id)
            return to_cart_row(item)

        return await breaker.call(handler)

    async def remove(self, current_user: User, item_id: uuid.UUID) -> dict:
        async def handler():
            if not await self.repo.remove(item_id, current_user.id):
                raise HTTPException(status_code=404, detail="Cart item not found")
            return {"message": "Item removed"}

        return await breaker.call(handler)

    async def clear(self, current_user: User) -> dict:
        async def handler():
            removed = await self.repo.clear(current_user.id)
            logger.info(f"Cleared {removed} cart item(s) for {current_user.id}")
            return {"removed": removed}

        return await breaker.call(handler)
