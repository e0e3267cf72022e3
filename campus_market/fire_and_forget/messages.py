import logging

from core.asyncio_threads import spawn_background
from core.get_db import AsyncSessionLocal
from services.notification_service import (
    MessageNotificationData,
    MessageNotificationService,
)

logger = logging.getLogger(__name__)


class AsyncioMessage:
    def __init__(self, session_factory=None):
        self.session_factory = session_factory or AsyncSessionLocal

    async def notify(self, data: MessageNotificationData):
        # the request session is closed by the time this runs
        async with self.session_factory() as db:
            return await MessageNotificationService(db).handle(data)

    def notify_in_background(self, data: MessageNotificationData):
        return spawn_background(
            self.notify(data), name=f"message-notify:{data.message_id}"
        )


message_notifier = AsyncioMessage()
