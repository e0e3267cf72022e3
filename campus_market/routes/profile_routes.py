import uuid

from fastapi import APIRouter, Depends
from fastapi_utils.cbv import cbv
from sqlalchemy.ext.asyncio import AsyncSession

from core.auth_provider import AuthUser
from core.get_current_user import get_auth_user, get_current_user
from core.get_db import get_db_async
from core.safe_handler import safe_handler
from core.throttling import rate_limit
from models.models import User
from schemas.schema import (
    ProfileCompleteIn,
    ProfileUpdateIn,
    PublicProfileOut,
    UserOut,
)
from services.profile_service import UserProfileService

router = APIRouter(tags=["User Profile"])


@cbv(router)
class UserProfileRoutes:
    @router.get("/me", response_model=UserOut)
    @safe_handler
    async def me(
        self,
        current_user: User = Depends(get_current_user),
        db: AsyncSession = Depends(get_db_async),
    ):
        return await UserProfileService(db).get_me(current_user)

    @router.post(
        "/me", dependencies=[rate_limit], response_model=UserOut, status_code=201
    )
    @safe_handler
    async def complete(
        self,
        data: ProfileCompleteIn,
        auth_user: AuthUser = Depends(get_auth_user),
        db: AsyncSession = Depends(get_db_async),
    ):
        return await UserProfileService(db).complete(auth_user, data)

    @router.patch("/me", dependencies=[rate_limit], response_model=UserOut)
    @safe_handler
    async def update(
        self,
        data: ProfileUpdateIn,
        current_user: User = Depends(get_current_user),
        db: AsyncSession = Depends(get_db_async),
    ):
        return await UserProfileService(db).update(current_user, data)

    @router.get("/{user_id}", response_model=PublicProfileOut)
    @safe_handler
    async def public(
        self,
        user_id: uuid.UUID,
        db: AsyncSession = Depends(get_db_async),
    ):
        return await UserProfileService(db).get_public(user_id)
