import uuid

from core.cache import cache


def listing_cache_key(listing_id: uuid.UUID) -> str:
    return f"listing:{listing_id}"


class AsyncioListing:
    async def listing_changed(self, listing_id: uuid.UUID):
        await cache.delete_cache_keys_async(listing_cache_key(listing_id))
