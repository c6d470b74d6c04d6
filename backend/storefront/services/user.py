"""User account persistence."""

import logging
import secrets
import uuid
from datetime import UTC, datetime

from sqlalchemy import select
from sqlalchemy.exc import IntegrityError
from sqlalchemy.ext.asyncio import AsyncSession

from storefront.models.user import User
from storefront.services.auth import (
    EmailAlreadyRegisteredError,
    InvalidActivationTokenError,
    hash_password,
)

logger = logging.getLogger(__name__)


def normalize_email(email: str) -> str:
    return email.strip().lower()


def generate_activation_token() -> str:
    return secrets.token_urlsafe(32)


class UserService:
    """Lookups and writes against the users table."""

    def __init__(self, session: AsyncSession):
        self.session = session

    async def get_by_email(self, email: str) -> User | None:
        result = await self.session.execute(select(User).where(User.email == normalize_email(email)))
        return result.scalar_one_or_none()

    async def get_by_id(self, user_id: uuid.UUID | str) -> User | None:
        if isinstance(user_id, str):
            try:
                user_id = uuid.UUID(user_id)
            except ValueError:
                return None
        result = await self.session.execute(select(User).where(User.id == user_id))
        return result.scalar_one_or_none()

    async def get_by_activation_token(self, token: str) -> User | None:
        result = await self.session.execute(
            select(User).where(
                User.activation_token == token,
                User.email_verified_at.is_(None),
            )
        )
        return result.scalar_one_or_none()

    async def create(
        self,
        name: str,
        email: str,
        password: str,
        *,
        is_admin: bool = False,
        verified: bool = False,
    ) -> User:
        """Create an account. Unverified accounts get a fresh activation token."""
        email = normalize_email(email)
        if await self.get_by_email(email) is not None:
            raise EmailAlreadyRegisteredError("The email has already been taken")

        user = User(
            name=name.strip(),
            email=email,
            password_hash=hash_password(password),
            is_admin=is_admin,
            email_verified_at=datetime.now(UTC) if verified else None,
            activation_token=None if verified else generate_activation_token(),
        )
        self.session.add(user)
        try:
            await self.session.commit()
        except IntegrityError as e:
            # Lost a race with a concurrent registration of the same email
            await self.session.rollback()
            raise EmailAlreadyRegisteredError("The email has already been taken") from e
        await self.session.refresh(user)

        logger.info(f"Created user: {email}")
        return user

    async def activate(self, token: str) -> User:
        """Mark the account holding ``token`` as verified and consume the token."""
        user = await self.get_by_activation_token(token)
        if user is None:
            raise InvalidActivationTokenError("Invalid token")

        user.email_verified_at = datetime.now(UTC)
        user.activation_token = None
        await self.session.commit()

        logger.info(f"Activated user: {user.email}")
        return user
