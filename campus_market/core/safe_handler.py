import logging
from functools import wraps

from fastapi import HTTPException, Request
from .errors import AdminAuthorizationError, AuthProviderError
from .friendly_msg import get_friendly_message

logger = logging.getLogger(__name__)


def _request_context(request: Request) -> str:
    client_ip = request.client.host if request.client else "unknown"
    trace_id = request.headers.get("X-Request-ID", "none")
    return f"TraceID={trace_id} | Path: {request.url.path} | Client: {client_ip}"


def safe_handler(func):
    @wraps(func)
    async def wrapper(*args, **kwargs):
        request: Request | None = None
        for arg in list(args) + list(kwargs.values()):
            if isinstance(arg, Request):
                request = arg
                break

        try:
            return await func(*args, **kwargs)
        except HTTPException as e:
            if request:
                logger.warning(
                    f"[HTTPException] {_request_context(request)} | "
                    f"{e.status_code}: {e.detail}"
                )
            raise
        except AdminAuthorizationError as e:
            if request:
                logger.warning(
                    f"[AdminGate] {_request_context(request)} | {e.message}"
                )
            raise
        except AuthProviderError as e:
            logger.warning(f"[AuthProvider] in {func.__name__}: {e.message}")
            raise HTTPException(status_code=e.status_code, detail=e.message)
        except Exception as e:
            if request:
                logger.error(
                    f"[Unhandled Error] in {func.__name__} | {_request_context(request)} "
                    f"| Error: {e}",
                    exc_info=True,
                )
            else:
                logger.error(
                    f"[Unhandled Error] in {func.__name__}: {e}", exc_info=True
                )
            raise HTTPException(status_code=500, detail=get_friendly_message(e))

    return wrapper
