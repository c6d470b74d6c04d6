# Storefront Pydantic Schemas
from storefront.schemas.auth import (
    AccessTokenResponse,
    LoginRequest,
    LoginResponse,
    LogoutRequest,
    MessageResponse,
)
from storefront.schemas.user import ActivationRequest, RegistrationRequest, UserResponse

__all__ = [
    "AccessTokenResponse",
    "ActivationRequest",
    "LoginRequest",
    "LoginResponse",
    "LogoutRequest",
    "MessageResponse",
    "RegistrationRequest",
    "UserResponse",
]
