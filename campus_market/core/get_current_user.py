from typing import Optional

from fastapi import Depends, HTTPException, Request
from sqlalchemy.ext.asyncio import AsyncSession

from models.models import User
from repos.user_repo import UserRepo

from .auth_provider import AuthProvider, AuthUser, get_auth_provider
from .get_db import get_db_async
from .settings import settings


def _bearer_token(request: Request) -> Optional[str]:
    header = request.headers.get("Authorization", "")
    if header.lower().startswith("bearer "):
        return header[7:].strip() or None
    return None


def request_access_token(request: Request) -> Optional[str]:
    return _bearer_token(request) or request.cookies.get(settings.ACCESS_COOKIE_NAME)


async def get_optional_auth_user(
    request: Request,
    provider: AuthProvider = Depends(get_auth_provider),
) -> Optional[AuthUser]:
    bearer = _bearer_token(request)
    # the session guard already resolved the cookie session for this request
    if getattr(request.state, "auth_resolved", False):
        user = getattr(request.state, "auth_user", None)
        if user is not None or bearer is None:
            return user

    token = bearer or request.cookies.get(settings.ACCESS_COOKIE_NAME)
    user = await provider.get_user(token) if token else None
    request.state.auth_user = user
    request.state.auth_resolved = True
    return user


async def get_auth_user(
    user: Optional[AuthUser] = Depends(get_optional_auth_user),
) -> AuthUser:
    if user is None:
        raise HTTPException(status_code=401, detail="Not authenticated")
    return user


async def get_current_user(
    auth_user: AuthUser = Depends(get_auth_user),
    db: AsyncSession = Depends(get_db_async),
) -> User:
    user = await UserRepo(db).by_id(auth_user.user_uuid)
    if not user:
        raise HTTPException(
            status_code=403,
            detail="Your profile is incomplete. Please finish setting up your profile.",
        )
    return user


async def get_optional_current_user(
    auth_user: Optional[AuthUser] = Depends(get_optional_auth_user),
    db: AsyncSession = Depends(get_db_async),
) -> Optional[User]:
    if auth_user is None:
        return None
    return await UserRepo(db).by_id(auth_user.user_uuid)
