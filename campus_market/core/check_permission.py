import logging
import uuid
from dataclasses import dataclass
from typing import Iterable, Optional

from fastapi import Depends

from repos.user_repo import UserRepo

from .auth_provider import AuthUser
from .errors import AdminAuthorizationError
from .get_current_user import get_optional_auth_user
from .settings import settings

logger = logging.getLogger(__name__)


def email_in_allow_list(email: Optional[str], allow_list: Iterable[str]) -> bool:
    allowed = {e.strip().lower() for e in allow_list if e and e.strip()}
    if not allowed:
        logger.warning("ADMIN_EMAILS is empty; nobody is treated as an admin")
        return False
    if not email:
        return False
    return email.strip().lower() in allowed


@dataclass(frozen=True)
class AdminIdentity:
    id: uuid.UUID
    email: str


class AdminPermission:
    def __init__(self, db=None, admin_emails: Iterable[str] | None = None):
        self.db = db
        self.admin_emails = list(
            settings.ADMIN_EMAILS if admin_emails is None else admin_emails
        )

    async def is_admin(self, user_id: uuid.UUID | None) -> bool:
        if user_id is None or self.db is None:
            return False
        try:
            user = await UserRepo(self.db).by_id(user_id)
        except Exception as e:
            logger.error(f"Admin lookup failed for {user_id}: {e}")
            return False
        return user is not None and email_in_allow_list(user.email, self.admin_emails)

    async def verify_admin(self, auth_user: Optional[AuthUser]) -> AdminIdentity:
        if auth_user is None:
            raise AdminAuthorizationError.not_logged_in()
        if not email_in_allow_list(auth_user.email, self.admin_emails):
            logger.warning(f"Non-admin {auth_user.id} attempted an admin operation")
            raise AdminAuthorizationError.admin_required()
        return AdminIdentity(id=auth_user.user_uuid, email=auth_user.email.lower())


async def require_admin(
    auth_user: Optional[AuthUser] = Depends(get_optional_auth_user),
) -> AdminIdentity:
    return await AdminPermission().verify_admin(auth_user)
