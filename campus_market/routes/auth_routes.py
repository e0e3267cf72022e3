from typing import Optional

from fastapi import APIRouter, Depends, Query, Request
from fastapi_utils.cbv import cbv
from sqlalchemy.ext.asyncio import AsyncSession

from core.get_current_user import request_access_token
from core.get_db import get_db_async
from core.safe_handler import safe_handler
from core.throttling import rate_limit
from schemas.schema import (
    ForgotPasswordIn,
    LoginIn,
    ResetPasswordIn,
    SignUpIn,
    UsernameCheckIn,
)
from services.auth_service import AuthService

router = APIRouter(tags=["User Authentication"])
callback_router = APIRouter(tags=["User Authentication"])


@cbv(router)
class UserRoutes:
    @router.post("/signup", dependencies=[rate_limit], status_code=201)
    @safe_handler
    async def signup(
        self,
        data: SignUpIn,
        db: AsyncSession = Depends(get_db_async),
    ):
        return await AuthService(db).signup(data)

    @router.post("/login", dependencies=[rate_limit])
    @safe_handler
    async def login(
        self,
        data: LoginIn,
        db: AsyncSession = Depends(get_db_async),
    ):
        return await AuthService(db).login(data)

    @router.post("/logout", dependencies=[rate_limit])
    @safe_handler
    async def logout(
        self,
        request: Request,
        db: AsyncSession = Depends(get_db_async),
    ):
        return await AuthService(db).logout(request)

    @router.post("/check-username", dependencies=[rate_limit])
    @safe_handler
    async def check_username(
        self,
        data: UsernameCheckIn,
        db: AsyncSession = Depends(get_db_async),
    ):
        return await AuthService(db).check_username(data.username)

    @router.post("/forgot-password", dependencies=[rate_limit])
    @safe_handler
    async def forgot_password(
        self,
        data: ForgotPasswordIn,
        db: AsyncSession = Depends(get_db_async),
    ):
        return await AuthService(db).forgot_password(data.email)

    @router.post("/reset-password", dependencies=[rate_limit])
    @safe_handler
    async def reset_password(
        self,
        request: Request,
        data: ResetPasswordIn,
        db: AsyncSession = Depends(get_db_async),
    ):
        return await AuthService(db).reset_password(
            request_access_token(request), data.password
        )


@callback_router.get("/auth/callback")
@safe_handler
async def auth_callback(
    request: Request,
    code: Optional[str] = None,
    token_hash: Optional[str] = None,
    otp_type: Optional[str] = Query(default=None, alias="type"),
    next_path: Optional[str] = Query(default=None, alias="next"),
    db: AsyncSession = Depends(get_db_async),
):
    return await AuthService(db).callback(
        request,
        code=code,
        token_hash=token_hash,
        otp_type=otp_type,
        next_path=next_path,
    )
