import logging
import uuid
import time
from dataclasses import dataclass, field
from typing import Any, Optional

import httpx
from tenacity import (
    retry,
    retry_if_exception_type,
    stop_after_attempt,
    wait_exponential,
)

from .breaker import auth_breaker
from .errors import AuthProviderError
from .settings import settings

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class AuthUser:
    id: str
    email: Optional[str]
    user_metadata: dict = field(default_factory=dict)

    @property
    def user_uuid(self) -> uuid.UUID:
        return uuid.UUID(self.id)

    @classmethod
    def from_payload(cls, payload: dict) -> "AuthUser":
        return cls(
            id=str(payload["id"]),
            email=payload.get("email"),
            user_metadata=payload.get("user_metadata") or {},
        )


@dataclass(frozen=True)
class AuthSession:
    access_token: str
    refresh_token: str
    expires_at: int
    user: Optional[AuthUser] = None

    @property
    def expires_in(self) -> int:
        return max(int(self.expires_at - time.time()), 0)

    @classmethod
    def from_payload(cls, payload: dict) -> "AuthSession":
        expires_at = payload.get("expires_at")
        if expires_at is None:
            expires_at = int(time.time()) + int(payload.get("expires_in") or 3600)
        user = payload.get("user")
        return cls(
            access_token=payload["access_token"],
            refresh_token=payload["refresh_token"],
            expires_at=int(expires_at),
            user=AuthUser.from_payload(user) if user else None,
        )


@dataclass(frozen=True)
class SignUpResult:
    user: AuthUser
    session: Optional[AuthSession] = None


class AuthProvider:
    """Client for the hosted auth service (GoTrue REST API)."""

    def __init__(
        self,
        base_url: str | None = None,
        api_key: str | None = None,
        timeout: float = 10.0,
        transport: httpx.AsyncBaseTransport | None = None,
    ):
        self.base_url = f"{(base_url or settings.SUPABASE_URL or '').rstrip('/')}/auth/v1"
        self.api_key = api_key or settings.SUPABASE_ANON_KEY or ""
        self.timeout = timeout
        self.transport = transport

    def _headers(self, access_token: str | None = None) -> dict:
        headers = {"apikey": self.api_key, "Content-Type": "application/json"}
        headers["Authorization"] = f"Bearer {access_token or self.api_key}"
        return headers

    @staticmethod
    def _error_from(res: httpx.Response) -> AuthProviderError:
        try:
            body = res.json()
        except ValueError:
            body = {}
        message = (
            body.get("msg")
            or body.get("message")
            or body.get("error_description")
            or body.get("error")
            or f"Auth provider request failed ({res.status_code})"
        )
        status = res.status_code if res.status_code < 500 else 502
        return AuthProviderError(message, status_code=status, code=body.get("error_code"))

    @retry(
        retry=retry_if_exception_type(httpx.TransportError),
        stop=stop_after_attempt(2),
        wait=wait_exponential(multiplier=1, min=1, max=5),
        reraise=True,
    )
    async def _request(
        self,
        method: str,
        path: str,
        *,
        json: Any = None,
        params: dict | None = None,
        access_token: str | None = None,
    ) -> dict:
        async def handler():
            async with httpx.AsyncClient(
                timeout=self.timeout, transport=self.transport
            ) as client:
                res = await client.request(
                    method,
                    f"{self.base_url}{path}",
                    json=json,
                    params=params,
                    headers=self._headers(access_token),
                )
            if res.status_code >= 500:
                raise ConnectionError(f"Auth provider error ({res.status_code})")
            return res

        res = await auth_breaker.call(handler)
        if res.status_code >= 400:
            raise self._error_from(res)
        if not res.content:
            return {}
        return res.json()

    async def sign_up(
        self, email: str, password: str, metadata: dict | None = None,
        redirect_to: str | None = None,
    ) -> SignUpResult:
        params = {"redirect_to": redirect_to} if redirect_to else None
        payload = await self._request(
            "POST",
            "/signup",
            json={"email": email, "password": password, "data": metadata or {}},
            params=params,
        )
        # with email confirmation on, the user object comes back bare
        if "access_token" in payload:
            session = AuthSession.from_payload(payload)
            return SignUpResult(user=session.user, session=session)
        return SignUpResult(user=AuthUser.from_payload(payload.get("user") or payload))

    async def sign_in_with_password(self, email: str, password: str) -> AuthSession:
        payload = await self._request(
            "POST",
            "/token",
            params={"grant_type": "password"},
            json={"email": email, "password": password},
        )
        return AuthSession.from_payload(payload)

    async def get_user(self, access_token: str | None) -> Optional[AuthUser]:
        if not access_token:
            return None
        try:
            payload = await self._request("GET", "/user", access_token=access_token)
        except AuthProviderError as e:
            logger.debug(f"Access token rejected: {e.message}")
            return None
        except (httpx.HTTPError, ConnectionError) as e:
            logger.warning(f"Could not resolve user from auth provider: {e}")
            return None
        return AuthUser.from_payload(payload)

    async def refresh_session(self, refresh_token: str | None) -> Optional[AuthSession]:
        """None when the provider rejects the token.

        Network errors and an open breaker propagate, so callers can tell an
        outage apart from a revoked session.
        """
        if not refresh_token:
            return None
        try:
            payload = await self._request(
                "POST",
                "/token",
                params={"grant_type": "refresh_token"},
                json={"refresh_token": refresh_token},
            )
        except AuthProviderError as e:
            logger.info(f"Session refresh rejected: {e.message}")
            return None
        return AuthSession.from_payload(payload)

    async def exchange_code_for_session(
        self, auth_code: str, code_verifier: str | None
    ) -> AuthSession:
        payload = await self._request(
            "POST",
            "/token",
            params={"grant_type": "pkce"},
            json={"auth_code": auth_code, "code_verifier": code_verifier or ""},
        )
        return AuthSession.from_payload(payload)

    async def verify_otp(self, token_hash: str, otp_type: str) -> AuthSession:
        payload = await self._request(
            "POST", "/verify", json={"token_hash": token_hash, "type": otp_type}
        )
        return AuthSession.from_payload(payload)

    async def sign_out(self, access_token: str) -> None:
        await self._request("POST", "/logout", access_token=access_token)

    async def send_password_reset(self, email: str, redirect_to: str | None = None):
        params = {"redirect_to": redirect_to} if redirect_to else None
        await self._request("POST", "/recover", json={"email": email}, params=params)

    async def update_password(self, access_token: str, password: str) -> AuthUser:
        payload = await self._request(
            "PUT", "/user", json={"password": password}, access_token=access_token
        )
        return AuthUser.from_payload(payload)


auth_provider = AuthProvider()


def get_auth_provider() -> AuthProvider:
    return auth_provider
