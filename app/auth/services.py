import logging
import secrets
from datetime import timedelta
from typing import Optional

from sqlalchemy import select
from sqlalchemy.exc import IntegrityError
from sqlalchemy.ext.asyncio import AsyncSession

from app.auth.models import AuthProvider, User
from app.auth.oauth import ProviderProfile
from app.auth.password import RESET_ROUNDS, hash_password, verify_password
from app.auth.permissions import ADMINISTRATOR_ROLE_ID, DEFAULT_ROLE_NAME
from app.auth.schemas import UserRegister
from app.common.exceptions import (
    AuthenticationError,
    BadRequestError,
    ConflictError,
    PermissionDeniedError,
)
from app.common.side_effects import run_side_effect
from app.config import settings
from app.roles.models import Role
from app.utils.avatar import generate_default_avatar_url
from app.utils.datetime_utils import ensure_utc, utcnow
from app.utils.email import send_password_reset_email, send_welcome_email

logger = logging.getLogger(__name__)

RESET_TOKEN_TTL = timedelta(hours=1)


class AuthService:
    def __init__(self, db: AsyncSession):
        self.db = db

    async def get_local_user_by_email(self, email: str) -> Optional[User]:
        result = await self.db.execute(
            select(User).where(
                User.email == email.lower(),
                User.auth_provider == AuthProvider.LOCAL.value,
            )
        )
        return result.scalars().first()

    async def get_default_role(self) -> Role:
        """Return the "User" role, creating it on first use."""
        result = await self.db.execute(select(Role).where(Role.name == DEFAULT_ROLE_NAME))
        role = result.scalars().first()
        if role:
            return role

        role = Role(name=DEFAULT_ROLE_NAME, description="Default role for registered users", permission_codes=[])
        self.db.add(role)
        try:
            await self.db.commit()
        except IntegrityError:
            # Created concurrently by another request
            await self.db.rollback()
            result = await self.db.execute(select(Role).where(Role.name == DEFAULT_ROLE_NAME))
            return result.scalars().one()
        logger.info(f"Default role '{DEFAULT_ROLE_NAME}' created: id={role.id}")
        return role

    # ===========================
    # LOCAL ACCOUNTS
    # ===========================
    async def register(self, data: UserRegister) -> User:
        email = data.email.lower()
        if await self.get_local_user_by_email(email):
            raise ConflictError("User with this email already exists")

        if email in settings.get_admin_emails():
            role_id = ADMINISTRATOR_ROLE_ID
        else:
            role_id = (await self.get_default_role()).id

        user = User(
            email=email,
            first_name=data.first_name,
            last_name=data.last_name,
            display_name=data.display_name,
            birth_date=data.birth_date,
            gender=data.gender.value if data.gender else None,
            avatar=generate_default_avatar_url(data.first_name, data.last_name),
            auth_provider=AuthProvider.LOCAL.value,
            password_hash=hash_password(data.password),
            role_id=role_id,
            is_active=True,
        )
        self.db.add(user)
        await self.db.commit()
        await self.db.refresh(user)
        logger.info(f"Local user registered: id={user.id}, email={user.email}")

        await run_side_effect(
            "welcome email",
            lambda: send_welcome_email(user.email, user.public_name),
        )
        return user

    async def authenticate(self, email: str, password: str) -> User:
        user = await self.get_local_user_by_email(email)
        if not user or not verify_password(password, user.password_hash):
            logger.warning(f"Failed login attempt for {email}")
            raise AuthenticationError("Invalid credentials")
        if user.is_blocked or not user.is_active:
            raise PermissionDeniedError("Account is blocked")
        return user

    async def change_password(self, user: User, current_password: str, new_password: str) -> None:
        if user.auth_provider != AuthProvider.LOCAL.value:
            raise BadRequestError("Password can only be changed for local accounts")
        if not verify_password(current_password, user.password_hash):
            raise AuthenticationError("Invalid credentials")
        user.password_hash = hash_password(new_password)
        await self.db.commit()
        logger.info(f"Password changed: user_id={user.id}")

    # ===========================
    # PASSWORD RESET
    # ===========================
    async def forgot_password(self, email: str) -> None:
        """Issue a reset token. Callers get the same answer whether or not the account exists."""
        user = await self.get_local_user_by_email(email)
        if not user:
            logger.info(f"Password reset requested for unknown email {email}")
            return

        user.reset_token = secrets.token_hex(32)
        user.reset_token_expiry = utcnow() + RESET_TOKEN_TTL
        await self.db.commit()
        logger.info(f"Password reset token issued: user_id={user.id}")

        reset_link = f"{settings.FRONTEND_URL}/reset-password?token={user.reset_token}"
        await run_side_effect(
            "password reset email",
            lambda: send_password_reset_email(user.email, user.public_name, reset_link),
        )

    async def reset_password(self, token: str, new_password: str) -> User:
        result = await self.db.execute(select(User).where(User.reset_token == token))
        user = result.scalars().first()

        expiry = ensure_utc(user.reset_token_expiry) if user else None
        if (
            not user
            or user.auth_provider != AuthProvider.LOCAL.value
            or expiry is None
            or expiry < utcnow()
        ):
            raise BadRequestError("Invalid or expired reset token")

        user.password_hash = hash_password(new_password, rounds=RESET_ROUNDS)
        user.reset_token = None
        user.reset_token_expiry = None
        await self.db.commit()
        logger.info(f"Password reset completed: user_id={user.id}")
        return user

    # ===========================
    # OAUTH
    # ===========================
    async def process_oauth_user(self, profile: ProviderProfile, update_profile: bool = False) -> User:
        """
        Find the user behind a provider profile or create one.

        Existing users keep their stored profile unless update_profile is set.
        """
        result = await self.db.execute(
            select(User).where(
                User.email == profile.email,
                User.provider_id == profile.provider_id,
                User.auth_provider == profile.provider,
            )
        )
        user = result.scalars().first()

        if user:
            if update_profile:
                user.first_name = profile.first_name
                user.last_name = profile.last_name
                user.display_name = profile.display_name
                if profile.avatar:
                    user.avatar = profile.avatar
                await self.db.commit()
                logger.info(f"Profile refreshed from {profile.provider}: user_id={user.id}")
            return user

        user = User(
            email=profile.email,
            first_name=profile.first_name,
            last_name=profile.last_name,
            display_name=profile.display_name,
            avatar=profile.avatar,
            auth_provider=profile.provider,
            provider_id=profile.provider_id,
            role_id=ADMINISTRATOR_ROLE_ID if profile.email in settings.get_admin_emails() else None,
            is_active=True,
        )
        self.db.add(user)
        await self.db.commit()
        await self.db.refresh(user)
        logger.info(f"User created from {profile.provider}: id={user.id}, email={user.email}")
        return user
