import logging
import uuid

from fastapi import HTTPException
from sqlalchemy.exc import IntegrityError

from core.auth_provider import AuthUser
from core.breaker import breaker
from core.mapper import ORMMapper
from core.validators import (
    ACADEMIC_EMAIL_ERROR,
    extract_domain,
    is_academic_email,
    normalize_username,
)
from models.models import User
from repos.listing_repo import ListingRepo
from repos.user_repo import UserRepo
from schemas.schema import (
    ListingOut,
    ProfileCompleteIn,
    ProfileUpdateIn,
    PublicProfileOut,
    PublicUserOut,
    UserOut,
)

logger = logging.getLogger(__name__)


class UserProfileService:
    def __init__(self, db):
        self.repo: UserRepo = UserRepo(db)
        self.listing_repo: ListingRepo = ListingRepo(db)
        self.mapper: ORMMapper = ORMMapper()

    async def _ensure_username_free(self, username: str, user_id: uuid.UUID | None):
        existing = await self.repo.get_by_username(username)
        if existing and existing.id != user_id:
            raise HTTPException(status_code=400, detail="Username already taken")

    async def get_me(self, current_user: User) -> UserOut:
        return self.mapper.one(current_user, UserOut)

    async def complete(self, auth_user: AuthUser, data: ProfileCompleteIn) -> UserOut:
        """Creates the profile row for an account whose signup did not finish."""

        async def handler():
            if await self.repo.by_id(auth_user.user_uuid):
                raise HTTPException(status_code=409, detail="Profile already exists")
            if not is_academic_email(auth_user.email):
                raise HTTPException(status_code=400, detail=ACADEMIC_EMAIL_ERROR)

            username = normalize_username(data.username) or None
            if username:
                await self._ensure_username_free(username, auth_user.user_uuid)

            try:
                user = await self.repo.create(
                    User(
                        id=auth_user.user_uuid,
                        email=auth_user.email,
                        display_name=data.display_name.strip(),
                        username=username,
                        university_domain=extract_domain(auth_user.email) or "unknown",
                        university_name=data.university_name,
                    )
                )
            except IntegrityError:
                raise HTTPException(
                    status_code=400, detail="Username or email already in use"
                )
            logger.info(f"Profile completed for {user.id}")
            return self.mapper.one(user, UserOut)

        return await breaker.call(handler)

    async def update(self, current_user: User, data: ProfileUpdateIn) -> UserOut:
        async def handler():
            changes = data.model_dump(exclude_unset=True)
            if "username" in changes:
                username = normalize_username(changes["username"]) or None
                if username:
                    await self._ensure_username_free(username, current_user.id)
                changes["username"] = username
            if changes.get("display_name"):
                changes["display_name"] = changes["display_name"].strip()

            for field, value in changes.items():
                setattr(current_user, field, value)
            try:
                user = await self.repo.save(current_user)
            except IntegrityError:
                raise HTTPException(status_code=400, detail="Username already taken")
            return self.mapper.one(user, UserOut)

        return await breaker.call(handler)

    async def get_public(self, user_id: uuid.UUID) -> PublicProfileOut:
        async def handler():
            user = await self.repo.by_id(user_id)
            if not user:
                raise HTTPException(status_code=404, detail="User not found")
            listings = await self.listing_repo.list_for_owner(user_id)
            return PublicProfileOut(
                user=self.mapper.one(user, PublicUserOut),
                listings=self.mapper.many(listings, ListingOut),
            )

        return await breaker.call(handler)
