from typing import List

from fastapi import APIRouter, Depends
from fastapi_utils.cbv import cbv
from sqlalchemy.ext.asyncio import AsyncSession

from core.get_current_user import get_current_user
from core.get_db import get_db_async
from core.safe_handler import safe_handler
from core.throttling import rate_limit
from models.models import User
from schemas.schema import (
    ConversationCreateIn,
    ConversationRefOut,
    ConversationSummaryOut,
    UnreadCountOut,
)
from services.conversation_service import ConversationService

router = APIRouter(tags=["Conversations"])


@cbv(router)
class ConversationRoutes:
    @router.post(
        "/conversations", dependencies=[rate_limit], response_model=ConversationRefOut
    )
    @safe_handler
    async def start(
        self,
        data: ConversationCreateIn,
        current_user: User = Depends(get_current_user),
        db: AsyncSession = Depends(get_db_async),
    ):
        result = await ConversationService(db).start_conversation(
            current_user, data.listing_id, data.other_user_id
        )
        return result.unwrap()

    @router.get("/conversations", response_model=List[ConversationSummaryOut])
    @safe_handler
    async def list_conversations(
        self,
        current_user: User = Depends(get_current_user),
        db: AsyncSession = Depends(get_db_async),
    ):
        result = await ConversationService(db).list_conversations(current_user)
        return result.unwrap()

    @router.get("/conversations/unread-count", response_model=UnreadCountOut)
    @safe_handler
    async def unread_count(
        self,
        current_user: User = Depends(get_current_user),
        db: AsyncSession = Depends(get_db_async),
    ):
        result = await ConversationService(db).total_unread(current_user)
        return result.unwrap()
