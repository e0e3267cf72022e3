import logging

import uvicorn
from fastapi import FastAPI
from fastapi.exceptions import RequestValidationError
from fastapi.middleware.cors import CORSMiddleware

from core.auth_provider import auth_provider
from core.catch_error_middleware import ErrorHandlerMiddleware
from core.errors import AdminAuthorizationError
from core.exception_handler import AdminAuthorizationHandler, ValidationErrorHandler
from core.lifespan import lifespan
from core.session_guard import SessionGuardMiddleware
from core.settings import settings
from core.throttling import rate_limiter_manager
from routes.admin_routes import router as admin_router
from routes.auth_routes import callback_router
from routes.auth_routes import router as auth_router
from routes.cart_routes import router as cart_router
from routes.contact_routes import router as contact_router
from routes.conversation_routes import router as conversation_router
from routes.listing_routes import router as listing_router
from routes.message_routes import router as message_router
from routes.notification_routes import router as notification_router
from routes.profile_routes import router as profile_router
from routes.report_routes import router as report_router
from services.activity_service import activity_tracker

logging.basicConfig(level=logging.INFO)
app = FastAPI(
    lifespan=lifespan,
    title=settings.PROJECT_NAME,
    exception_handlers={429: rate_limiter_manager.limit_exceeded_handler},
    version="1.0.0",
)

app.include_router(auth_router, prefix="/api/auth")
app.include_router(callback_router)
app.include_router(profile_router, prefix="/api/profile")
app.include_router(listing_router, prefix="/api")
app.include_router(cart_router, prefix="/api")
app.include_router(conversation_router, prefix="/api")
app.include_router(message_router, prefix="/api")
app.include_router(report_router, prefix="/api")
app.include_router(admin_router, prefix="/api/admin")
app.include_router(contact_router, prefix="/api")
app.include_router(notification_router, prefix="/api")


@app.get("/health", tags=["System"])
async def health_check():
    return {"status": "ok"}


app.add_exception_handler(RequestValidationError, ValidationErrorHandler())
app.add_exception_handler(AdminAuthorizationError, AdminAuthorizationHandler())

app.add_middleware(
    SessionGuardMiddleware,
    auth_provider=auth_provider,
    activity_tracker=activity_tracker,
)

app.add_middleware(ErrorHandlerMiddleware)

app.add_middleware(
    CORSMiddleware,
    allow_origins=settings.ALLOWED_HOSTS,
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)


if __name__ == "__main__":
    uvicorn.run(app, host="127.0.0.1", port=8001)
