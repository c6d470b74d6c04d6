"""Pydantic schemas for authentication API."""

from pydantic import BaseModel, EmailStr, Field

from storefront.schemas.user import UserResponse


class LoginRequest(BaseModel):
    """Request for login (customer and admin endpoints)."""

    email: EmailStr
    password: str = Field(..., min_length=6, max_length=128)


class LoginResponse(BaseModel):
    """Response with the authenticated user and a token pair."""

    user: UserResponse
    access_token: str
    refresh_token: str
    token_type: str = "bearer"
    expires_in: int = Field(description="Access token expiry in seconds")


class AccessTokenResponse(BaseModel):
    """Response with a freshly minted access token."""

    access_token: str
    token_type: str = "bearer"
    expires_in: int = Field(description="Access token expiry in seconds")


class LogoutRequest(BaseModel):
    """Optional logout body."""

    refresh_token: str | None = Field(
        None,
        description="Refresh token to revoke together with the access token.",
    )


class MessageResponse(BaseModel):
    """Generic message response."""

    message: str
