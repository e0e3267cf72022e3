import uuid
from typing import List

from fastapi import APIRouter, Depends
from fastapi_utils.cbv import cbv
from sqlalchemy.ext.asyncio import AsyncSession

from core.get_current_user import get_current_user
from core.get_db import get_db_async
from core.safe_handler import safe_handler
from core.throttling import message_rate_limit, rate_limit
from models.models import User
from schemas.schema import (
    MarkConversationReadIn,
    MarkReadOut,
    MessageEditIn,
    MessageOut,
    MessageSendIn,
    SentMessageOut,
)
from services.message_service import MessageService

router = APIRouter(tags=["Messages"])


@cbv(router)
class MessageRoutes:
    @router.get("/messages", response_model=List[MessageOut])
    @safe_handler
    async def thread(
        self,
        listing_id: uuid.UUID,
        other_user_id: uuid.UUID,
        current_user: User = Depends(get_current_user),
        db: AsyncSession = Depends(get_db_async),
    ):
        result = await MessageService(db).list_messages(
            current_user, listing_id, other_user_id
        )
        return result.unwrap()

    @router.post(
        "/messages",
        dependencies=[message_rate_limit],
        response_model=SentMessageOut,
        status_code=201,
    )
    @safe_handler
    async def send(
        self,
        data: MessageSendIn,
        current_user: User = Depends(get_current_user),
        db: AsyncSession = Depends(get_db_async),
    ):
        result = await MessageService(db).send_message(
            current_user,
            data.listing_id,
            data.receiver_id,
            data.body,
            client_id=data.client_id,
        )
        return result.unwrap()

    @router.post(
        "/messages/read", dependencies=[message_rate_limit], response_model=MarkReadOut
    )
    @safe_handler
    async def mark_conversation_read(
        self,
        data: MarkConversationReadIn,
        current_user: User = Depends(get_current_user),
        db: AsyncSession = Depends(get_db_async),
    ):
        result = await MessageService(db).mark_conversation_read(
            current_user, data.listing_id, data.other_user_id
        )
        return result.unwrap()

    @router.post(
        "/messages/{message_id}/read",
        dependencies=[message_rate_limit],
        response_model=MarkReadOut,
    )
    @safe_handler
    async def mark_read(
        self,
        message_id: uuid.UUID,
        current_user: User = Depends(get_current_user),
        db: AsyncSession = Depends(get_db_async),
    ):
        result = await MessageService(db).mark_message_read(current_user, message_id)
        return result.unwrap()

    @router.patch(
        "/messages/{message_id}", dependencies=[rate_limit], response_model=MessageOut
    )
    @safe_handler
    async def edit(
        self,
        message_id: uuid.UUID,
        data: MessageEditIn,
        current_user: User = Depends(get_current_user),
        db: AsyncSession = Depends(get_db_async),
    ):
        result = await MessageService(db).edit_message(
            current_user, message_id, data.body
        )
        return result.unwrap()

    @router.delete("/messages/{message_id}", dependencies=[rate_limit])
    @safe_handler
    async def delete(
        self,
        message_id: uuid.UUID,
        current_user: User = Depends(get_current_user),
        db: AsyncSession = Depends(get_db_async),
    ):
        result = await MessageService(db).delete_message(current_user, message_id)
        return result.unwrap()
