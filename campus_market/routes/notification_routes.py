import uuid
from typing import List

from fastapi import APIRouter, Depends, Query
from fastapi_utils.cbv import cbv
from sqlalchemy.ext.asyncio import AsyncSession

from core.get_current_user import get_current_user
from core.get_db import get_db_async
from core.safe_handler import safe_handler
from core.throttling import rate_limit
from models.models import User
from schemas.schema import MarkReadOut, NotificationOut, UnreadCountOut
from services.inbox_service import NotificationInboxService

router = APIRouter(tags=["Notifications"])


@cbv(router)
class NotificationRoutes:
    @router.get("/notifications", response_model=List[NotificationOut])
    @safe_handler
    async def list_notifications(
        self,
        unread_only: bool = False,
        limit: int = Query(default=50, ge=1, le=100),
        current_user: User = Depends(get_current_user),
        db: AsyncSession = Depends(get_db_async),
    ):
        return await NotificationInboxService(db).list(
            current_user, unread_only=unread_only, limit=limit
        )

    @router.get("/notifications/unread-count", response_model=UnreadCountOut)
    @safe_handler
    async def unread_count(
        self,
        current_user: User = Depends(get_current_user),
        db: AsyncSession = Depends(get_db_async),
    ):
        return await NotificationInboxService(db).unread_count(current_user)

    @router.post(
        "/notifications/read-all", dependencies=[rate_limit], response_model=MarkReadOut
    )
    @safe_handler
    async def mark_all_read(
        self,
        current_user: User = Depends(get_current_user),
        db: AsyncSession = Depends(get_db_async),
    ):
        return await NotificationInboxService(db).mark_all_read(current_user)

    @router.post(
        "/notifications/{notification_id}/read",
        dependencies=[rate_limit],
        response_model=MarkReadOut,
    )
    @safe_handler
    async def mark_read(
        self,
        notification_id: uuid.UUID,
        current_user: User = Depends(get_current_user),
        db: AsyncSession = Depends(get_db_async),
    ):
        return await NotificationInboxService(db).mark_read(current_user, notification_id)
