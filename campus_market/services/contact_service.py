import logging

from fastapi import HTTPException

from email_notify.email_service import send_contact_email
from schemas.schema import ContactIn

logger = logging.getLogger(__name__)


class ContactService:
    async def submit(self, data: ContactIn) -> dict:
        sent = await send_contact_email(
            data.name.strip(), data.email, data.subject.strip(), data.message
        )
        if not sent:
            logger.error(f"Contact message from {data.email} could not be forwarded")
            raise HTTPException(
                status_code=503,
                detail="We could not send your message right now. Please try again later.",
            )
        logger.info(f"Contact message forwarded from {data.email}")
        return {"success": True, "message": "Contact form submitted successfully"}
