import logging
import time
from typing import Iterable, Optional, Tuple
from urllib.parse import urlencode

import httpx
import jwt
from fastapi import Request, Response
from fastapi.responses import RedirectResponse
from starlette.middleware.base import BaseHTTPMiddleware

from .auth_provider import AuthProvider, AuthSession
from .settings import settings

logger = logging.getLogger(__name__)

# auth routes set or clear the session cookies themselves
DEFAULT_SKIP_PATHS = {
    "/docs",
    "/redoc",
    "/openapi.json",
    "/health",
    "/api/auth",
    "/auth/callback",
}


def path_matches(path: str, prefixes: Iterable[str]) -> bool:
    for prefix in prefixes:
        if prefix == "/":
            return True
        if path == prefix or path.startswith(prefix + "/"):
            return True
    return False


def token_expires_within(token: str, seconds: int) -> bool:
    try:
        payload = jwt.decode(token, options={"verify_signature": False})
    except jwt.InvalidTokenError:
        return True
    exp = payload.get("exp")
    if exp is None:
        return False
    return exp - time.time() < seconds


def set_session_cookies(response: Response, session: AuthSession):
    response.set_cookie(
        key=settings.ACCESS_COOKIE_NAME,
        value=session.access_token,
        httponly=True,
        secure=settings.SECURE_COOKIES,
        samesite="lax",
        max_age=max(session.expires_in, 60),
        path="/",
    )
    response.set_cookie(
        key=settings.REFRESH_COOKIE_NAME,
        value=session.refresh_token,
        httponly=True,
        secure=settings.SECURE_COOKIES,
        samesite="lax",
        max_age=settings.REFRESH_COOKIE_MAX_AGE_DAYS * 86400,
        path="/",
    )


def clear_session_cookies(response: Response):
    for cookie in (settings.ACCESS_COOKIE_NAME, settings.REFRESH_COOKIE_NAME):
        response.delete_cookie(
            key=cookie,
            path="/",
            httponly=True,
            samesite="lax",
            secure=settings.SECURE_COOKIES,
        )


class SessionGuardMiddleware(BaseHTTPMiddleware):
    """Keeps the hosted-auth session fresh and gates protected page paths.

    Public paths are passed through without touching the session. Every other
    request gets its session refreshed when needed, the resolved user stored
    on ``request.state.auth_user`` and a debounced activity touch. Protected
    paths without a user are redirected to the login page.
    """

    def __init__(
        self,
        app,
        auth_provider: AuthProvider,
        activity_tracker=None,
        public_paths: Optional[Iterable[str]] = None,
        protected_paths: Optional[Iterable[str]] = None,
        login_path: str | None = None,
        skip_paths: Optional[set] = None,
        refresh_threshold_seconds: int | None = None,
    ):
        super().__init__(app)
        self.auth_provider = auth_provider
        self.activity_tracker = activity_tracker
        self.public_paths = list(
            settings.PUBLIC_PATHS if public_paths is None else public_paths
        )
        self.protected_paths = list(
            settings.PROTECTED_PATHS if protected_paths is None else protected_paths
        )
        self.login_path = login_path or settings.LOGIN_PATH
        self.skip_paths = DEFAULT_SKIP_PATHS if skip_paths is None else skip_paths
        self.refresh_threshold = (
            settings.SESSION_REFRESH_THRESHOLD_SECONDS
            if refresh_threshold_seconds is None
            else refresh_threshold_seconds
        )

    async def dispatch(self, request: Request, call_next):
        path = request.url.path
        if path_matches(path, self.skip_paths) or path_matches(
            path, self.public_paths
        ):
            return await call_next(request)

        access_token = request.cookies.get(settings.ACCESS_COOKIE_NAME)
        refresh_token = request.cookies.get(settings.REFRESH_COOKIE_NAME)
        new_session: AuthSession | None = None
        refresh_attempted = False
        refresh_rejected = False

        if refresh_token and (
            not access_token
            or token_expires_within(access_token, self.refresh_threshold)
        ):
            refresh_attempted = True
            new_session, refresh_rejected = await self._refresh(refresh_token)
            if new_session:
                access_token = new_session.access_token

        user = await self.auth_provider.get_user(access_token) if access_token else None

        if user is None and refresh_token and not refresh_attempted:
            new_session, refresh_rejected = await self._refresh(refresh_token)
            if new_session:
                user = new_session.user or await self.auth_provider.get_user(
                    new_session.access_token
                )

        request.state.auth_user = user
        request.state.auth_resolved = True

        if user is not None and self.activity_tracker is not None:
            self.activity_tracker.touch_in_background(user.id)

        if user is None and path_matches(path, self.protected_paths):
            target = f"{self.login_path}?{urlencode({'from': path})}"
            logger.info(f"Redirecting unauthenticated request for {path} to login")
            response = RedirectResponse(target, status_code=307)
            if refresh_rejected:
                clear_session_cookies(response)
            return response

        response = await call_next(request)
        if new_session is not None and user is not None:
            set_session_cookies(response, new_session)
        elif refresh_rejected and user is None:
            clear_session_cookies(response)
        return response

    async def _refresh(self, refresh_token: str) -> Tuple[Optional[AuthSession], bool]:
        """Returns the new session and whether the provider rejected the token.

        An unreachable provider is not a rejection; the cookies are kept.
        """
        try:
            session = await self.auth_provider.refresh_session(refresh_token)
        except (httpx.HTTPError, ConnectionError) as e:
            logger.warning(f"Session refresh unavailable, keeping cookies: {e}")
            return None, False
        return session, session is None
