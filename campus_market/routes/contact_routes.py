from fastapi import APIRouter
from fastapi_utils.cbv import cbv

from core.safe_handler import safe_handler
from core.throttling import rate_limit
from schemas.schema import ContactIn
from services.contact_service import ContactService

router = APIRouter(tags=["Contact"])


@cbv(router)
class ContactRoutes:
    @router.post("/contact", dependencies=[rate_limit])
    @safe_handler
    async def submit(self, data: ContactIn):
        return await ContactService().submit(data)
