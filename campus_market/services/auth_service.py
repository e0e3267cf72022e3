import logging
from typing import Optional
from urllib.parse import urlencode

import httpx
from fastapi import HTTPException, Request
from fastapi.responses import JSONResponse, RedirectResponse

from core.auth_provider import AuthProvider, AuthSession, auth_provider
from core.breaker import breaker
from core.errors import AuthProviderError
from core.mapper import ORMMapper
from core.session_guard import clear_session_cookies, set_session_cookies
from core.settings import settings
from core.validators import (
    ACADEMIC_EMAIL_ERROR,
    extract_domain,
    is_academic_email,
    normalize_username,
)
from models.models import User
from repos.user_repo import UserRepo
from schemas.schema import LoginIn, SignUpIn, UserOut

logger = logging.getLogger(__name__)

PROFILE_SETUP_FAILED = (
    "Your account was created but we could not finish setting up your profile. "
    "Sign in to complete your profile, or contact support if this keeps happening."
)
DEFAULT_AFTER_LOGIN = "/marketplace"


def safe_next_path(next_path: Optional[str], default: str = DEFAULT_AFTER_LOGIN) -> str:
    """Only same-site absolute paths are accepted as redirect targets."""
    if not next_path or not next_path.startswith("/") or next_path.startswith("//"):
        return default
    return next_path


def login_error_url(message: str) -> str:
    return f"{settings.LOGIN_PATH}?{urlencode({'error': message})}"


class AuthService:
    def __init__(self, db, provider: AuthProvider | None = None):
        self.db = db
        self.repo: UserRepo = UserRepo(db)
        self.provider: AuthProvider = provider or auth_provider
        self.mapper: ORMMapper = ORMMapper()

    async def signup(self, data: SignUpIn):
        if not is_academic_email(data.email):
            raise HTTPException(status_code=400, detail=ACADEMIC_EMAIL_ERROR)

        async def handler():
            username = normalize_username(data.username) or None
            if await self.repo.get_by_email(data.email):
                raise HTTPException(status_code=400, detail="Email already registered")
            if username and await self.repo.get_by_username(username):
                raise HTTPException(status_code=400, detail="Username already taken")

            try:
                result = await self.provider.sign_up(
                    data.email,
                    data.password,
                    metadata={"display_name": data.display_name, "username": username},
                    redirect_to=f"{settings.FRONTEND_URL.rstrip('/')}/auth/callback",
                )
            except AuthProviderError as e:
                raise HTTPException(status_code=e.status_code, detail=e.message)

            try:
                user = await self.repo.create(
                    User(
                        id=result.user.user_uuid,
                        email=data.email,
                        display_name=data.display_name,
                        username=username,
                        university_domain=extract_domain(data.email) or "unknown",
                        university_name=data.university_name,
                    )
                )
            except Exception as e:
                logger.error(f"Profile insert failed for new account {result.user.id}: {e}")
                return JSONResponse(
                    {
                        "account_created": True,
                        "profile_created": False,
                        "error": PROFILE_SETUP_FAILED,
                    },
                    status_code=202,
                )

            logger.info(f"New account {user.id} ({user.university_domain})")
            response = JSONResponse(
                {
                    "message": "Signup successful! Please check your email to verify your account.",
                    "account_created": True,
                    "profile_created": True,
                    "user": self.mapper.one(user, UserOut).model_dump(mode="json"),
                },
                status_code=201,
            )
            if result.session:
                set_session_cookies(response, result.session)
            return response

        return await breaker.call(handler)

    async def _resolve_login_email(self, identifier: str) -> Optional[str]:
        identifier = identifier.strip()
        if "@" in identifier:
            return identifier.lower()
        user = await self.repo.get_by_username(identifier)
        return user.email if user else None

    async def login(self, data: LoginIn):
        async def handler():
            email = await self._resolve_login_email(data.identifier)
            if not email:
                raise HTTPException(status_code=401, detail="Invalid username or password")
            try:
                session = await self.provider.sign_in_with_password(email, data.password)
            except AuthProviderError as e:
                logger.info(f"Sign in rejected for {email}: {e.message}")
                raise HTTPException(
                    status_code=401, detail="Invalid email/username or password"
                )

            user = await self.repo.by_id(session.user.user_uuid) if session.user else None
            response = JSONResponse(
                {
                    "message": "Login successful",
                    "user": self.mapper.one(user, UserOut).model_dump(mode="json")
                    if user
                    else None,
                    "profile_complete": user is not None,
                    "redirect": DEFAULT_AFTER_LOGIN,
                },
                status_code=200,
            )
            set_session_cookies(response, session)
            return response

        return await breaker.call(handler)

    async def logout(self, request: Request):
        access_token = request.cookies.get(settings.ACCESS_COOKIE_NAME)
        if access_token:
            try:
                await self.provider.sign_out(access_token)
            except (AuthProviderError, httpx.HTTPError, ConnectionError) as e:
                logger.warning(f"Provider sign-out failed: {e}")

        response = JSONResponse({"message": "Logged out successfully"})
        clear_session_cookies(response)
        return response

    async def check_username(self, username: Optional[str]) -> dict:
        candidate = normalize_username(username)
        if not candidate:
            raise HTTPException(status_code=400, detail="Username is required")

        async def handler():
            return {"available": await self.repo.get_by_username(candidate) is None}

        return await breaker.call(handler)

    async def forgot_password(self, email: str) -> dict:
        redirect_to = (
            f"{settings.FRONTEND_URL.rstrip('/')}/auth/callback?next=/reset-password"
        )
        try:
            await self.provider.send_password_reset(email, redirect_to=redirect_to)
        except AuthProviderError as e:
            # same answer whether or not the account exists
            logger.info(f"Password reset request for {email} rejected: {e.message}")
        return {
            "message": "If an account exists for that email, a reset link has been sent."
        }

    async def reset_password(self, access_token: Optional[str], password: str) -> dict:
        if not access_token:
            raise HTTPException(status_code=401, detail="Not authenticated")
        try:
            await self.provider.update_password(access_token, password)
        except AuthProviderError as e:
            raise HTTPException(status_code=e.status_code, detail=e.message)
        return {"message": "Password updated successfully"}

    async def callback(
        self,
        request: Request,
        code: Optional[str] = None,
        token_hash: Optional[str] = None,
        otp_type: Optional[str] = None,
        next_path: Optional[str] = None,
    ):
        target = safe_next_path(next_path)
        try:
            if code:
                verifier = request.cookies.get(settings.PKCE_VERIFIER_COOKIE_NAME)
                session: AuthSession = await self.provider.exchange_code_for_session(
                    code, verifier
                )
            elif token_hash and otp_type:
                session = await self.provider.verify_otp(token_hash, otp_type)
            else:
                logger.warning("Auth callback without code or token hash")
                return RedirectResponse(
                    login_error_url("Invalid or expired link"), status_code=303
                )
        except AuthProviderError as e:
            logger.warning(f"Auth callback rejected: {e.message}")
            return RedirectResponse(login_error_url(e.message), status_code=303)
        except (httpx.HTTPError, ConnectionError) as e:
            logger.error(f"Auth callback failed: {e}")
            return RedirectResponse(
                login_error_url("Authentication failed"), status_code=303
            )

        logger.info(f"Auth callback succeeded, redirecting to {target}")
        response = RedirectResponse(target, status_code=303)
        set_session_cookies(response, session)
        response.delete_cookie(settings.PKCE_VERIFIER_COOKIE_NAME, path="/")
        return response
