"""Storefront user account model."""

from datetime import datetime

from sqlalchemy import Boolean, DateTime, String
from sqlalchemy.orm import Mapped, mapped_column

from storefront.models.base import BaseModel


class User(BaseModel):
    """A customer or administrator account.

    Emails are stored normalized (trimmed, lower-cased). Only an Argon2
    hash of the password is kept. Accounts start unverified with an
    activation token that is cleared once the email is confirmed.
    """

    __tablename__ = "users"

    name: Mapped[str] = mapped_column(String(255), nullable=False)
    email: Mapped[str] = mapped_column(String(255), nullable=False, unique=True, index=True)
    password_hash: Mapped[str] = mapped_column(String(255), nullable=False)
    is_admin: Mapped[bool] = mapped_column(Boolean, default=False, nullable=False)

    # Activation
    email_verified_at: Mapped[datetime | None] = mapped_column(
        DateTime(timezone=True), nullable=True
    )
    activation_token: Mapped[str | None] = mapped_column(
        String(64), nullable=True, unique=True, index=True
    )

    @property
    def is_verified(self) -> bool:
        return self.email_verified_at is not None

    def __repr__(self) -> str:
        return f"<User {self.email}>"
