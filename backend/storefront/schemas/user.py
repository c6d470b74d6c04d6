"""Pydantic schemas for registration, activation and user profiles."""

from datetime import datetime
from uuid import UUID

from pydantic import BaseModel, ConfigDict, EmailStr, Field, model_validator


class RegistrationRequest(BaseModel):
    """Request for account registration."""

    name: str = Field(..., min_length=1, max_length=255)
    email: EmailStr
    password: str = Field(
        ...,
        min_length=8,
        max_length=128,
        description="Password (minimum 8 characters)",
    )
    password_confirmation: str = Field(..., min_length=1, max_length=128)

    @model_validator(mode="after")
    def passwords_match(self) -> "RegistrationRequest":
        if self.password != self.password_confirmation:
            raise ValueError("password confirmation does not match")
        return self


class ActivationRequest(BaseModel):
    """Request for account activation."""

    token: str = Field(..., min_length=1, max_length=64)


class UserResponse(BaseModel):
    """Public view of a user account."""

    model_config = ConfigDict(from_attributes=True)

    id: UUID
    name: str
    email: str
    is_admin: bool
    email_verified_at: datetime | None
    created_at: datetime
    updated_at: datetime
