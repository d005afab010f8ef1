"""
FastAPI-Users configuration: user manager, auth backend, schemas.
"""

import logging
from datetime import datetime
from typing import Literal, Optional

from fastapi import Depends, Request
from fastapi_users import BaseUserManager, FastAPIUsers, IntegerIDMixin, InvalidPasswordException, exceptions
from fastapi_users.authentication import AuthenticationBackend, BearerTransport, JWTStrategy
from fastapi_users.db import SQLAlchemyUserDatabase
from sqlalchemy.ext.asyncio import AsyncSession

from ...models.developer import ApprovalStatus, AvailabilityStatus, DeveloperLevel, DeveloperProfile
from ...models.user import USER_ROLE_CLIENT, USER_ROLE_DEVELOPER, User
from ...platform.config import settings
from ...platform.database import get_async_db

logger = logging.getLogger("clevrs.auth")


# ---- Schemas (extend FastAPI-Users base) ----
from fastapi_users import schemas


class UserRead(schemas.BaseUser[int]):
    full_name: Optional[str] = None
    role: str = USER_ROLE_CLIENT
    phone_e164: Optional[str] = None
    created_at: Optional[datetime] = None


class UserCreate(schemas.BaseUserCreate):
    full_name: Optional[str] = None
    role: Literal["client", "developer"] = USER_ROLE_CLIENT
    developer_level: Optional[Literal["FRESHER", "MID", "EXPERT"]] = None
    phone_e164: Optional[str] = None


class UserUpdate(schemas.BaseUserUpdate):
    full_name: Optional[str] = None
    phone_e164: Optional[str] = None


# ---- User Manager ----
class UserManager(IntegerIDMixin, BaseUserManager[User, int]):
    reset_password_token_secret = settings.SECRET_KEY
    verification_token_secret = settings.SECRET_KEY

    async def validate_password(self, password: str, user) -> None:
        if len(password) < 8:
            raise InvalidPasswordException(reason="Password should be at least 8 characters")
        local_part = (getattr(user, "email", "") or "").split("@")[0].lower()
        if len(local_part) >= 4 and local_part in password.lower():
            raise InvalidPasswordException(reason="Password should not contain your email address")

    async def create(self, user_create, safe: bool = False, request: Optional[Request] = None) -> User:
        await self.validate_password(user_create.password, user_create)

        existing_user = await self.user_db.get_by_email(user_create.email)
        if existing_user is not None:
            raise exceptions.UserAlreadyExists()

        user_dict = (
            user_create.create_update_dict()
            if safe
            else user_create.create_update_dict_superuser()
        )
        password = user_dict.pop("password")
        user_dict["hashed_password"] = self.password_helper.hash(password)
        developer_level = user_dict.pop("developer_level", None)

        # User and developer profile land in one commit
        session: AsyncSession = self.user_db.session
        created_user = User(**user_dict)
        try:
            session.add(created_user)
            await session.flush()
            if created_user.role == USER_ROLE_DEVELOPER:
                # Developers start unapproved; an admin moves them into rotation
                session.add(
                    DeveloperProfile(
                        user_id=created_user.id,
                        level=developer_level or DeveloperLevel.FRESHER,
                        admin_approval_status=ApprovalStatus.PENDING,
                        availability_status=AvailabilityStatus.AVAILABLE,
                        whatsapp_verified=False,
                    )
                )
            await session.commit()
        except Exception:
            await session.rollback()
            raise
        await session.refresh(created_user)

        await self.on_after_register(created_user, request)
        return created_user

    async def on_after_register(self, user: User, request: Optional[Request] = None) -> None:
        logger.info("User registered user_id=%s role=%s", user.id, user.role)


async def get_user_db(session: AsyncSession = Depends(get_async_db)):
    yield SQLAlchemyUserDatabase(session, User)


async def get_user_manager(user_db: SQLAlchemyUserDatabase = Depends(get_user_db)):
    yield UserManager(user_db)


# ---- Auth Backend ----
bearer_transport = BearerTransport(tokenUrl="/api/v1/auth/jwt/login")


def get_jwt_strategy() -> JWTStrategy:
    return JWTStrategy(
        secret=settings.SECRET_KEY,
        lifetime_seconds=settings.ACCESS_TOKEN_EXPIRE_MINUTES * 60,
    )


auth_backend = AuthenticationBackend(
    name="jwt",
    transport=bearer_transport,
    get_strategy=get_jwt_strategy,
)

fastapi_users = FastAPIUsers[User, int](get_user_manager, [auth_backend])

current_active_user = fastapi_users.current_user(active=True)
