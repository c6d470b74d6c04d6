"""Authentication API endpoints."""

import logging
import time
from collections import defaultdict

from fastapi import APIRouter, Depends, HTTPException, Request, status
from sqlalchemy.ext.asyncio import AsyncSession

from storefront.core import get_db, settings
from storefront.core.request_utils import get_bearer_token, get_client_ip
from storefront.models.user import User
from storefront.schemas.auth import (
    AccessTokenResponse,
    LoginRequest,
    LoginResponse,
    LogoutRequest,
    MessageResponse,
)
from storefront.schemas.user import UserResponse
from storefront.services.auth import (
    IdentityNotFoundError,
    IdentityStoreError,
    InvalidCredentialsError,
    RevocationStoreError,
    TokenError,
    TokenExpiredError,
    TokenSigningError,
)
from storefront.services.session import SessionAuthority, SessionTokens

logger = logging.getLogger(__name__)

# Failed login timestamps per client IP
_login_attempts: dict[str, list[float]] = defaultdict(list)

# Status returned by the refresh-token gate for a missing or unusable token
HTTP_402_REFRESH_REQUIRED = status.HTTP_402_PAYMENT_REQUIRED


def _check_login_rate_limit(client_ip: str) -> None:
    """Check if a client IP has exceeded the failed login limit."""
    now = time.monotonic()
    window = settings.login_rate_limit_window_seconds
    attempts = [t for t in _login_attempts[client_ip] if now - t < window]
    _login_attempts[client_ip] = attempts
    if len(attempts) >= settings.login_rate_limit_attempts:
        logger.warning("Login rate limit exceeded for %s", client_ip)
        raise HTTPException(
            status_code=status.HTTP_429_TOO_MANY_REQUESTS,
            detail="Too many login attempts. Please try again later.",
        )


def _record_login_attempt(client_ip: str) -> None:
    """Record a failed login attempt for rate limiting."""
    _login_attempts[client_ip].append(time.monotonic())


def _unauthorized(detail: str) -> HTTPException:
    return HTTPException(
        status_code=status.HTTP_401_UNAUTHORIZED,
        detail=detail,
        headers={"WWW-Authenticate": "Bearer"},
    )


def _store_unavailable() -> HTTPException:
    return HTTPException(
        status_code=status.HTTP_503_SERVICE_UNAVAILABLE,
        detail="Service temporarily unavailable",
    )


router = APIRouter(prefix="/auth", tags=["auth"])
admin_router = APIRouter(prefix="/admin/auth", tags=["auth"])


def get_session_authority(db: AsyncSession = Depends(get_db)) -> SessionAuthority:
    """Dependency to get the session authority."""
    return SessionAuthority(db)


async def get_current_user(
    request: Request,
    authority: SessionAuthority = Depends(get_session_authority),
) -> User:
    """Dependency to get the current authenticated user from the bearer access token."""
    token = get_bearer_token(request)
    if token is None:
        raise _unauthorized("Missing or invalid authorization header")

    try:
        user = await authority.authenticate(token)
    except TokenExpiredError as e:
        raise _unauthorized("Token has expired") from e
    except (TokenError, IdentityNotFoundError) as e:
        raise _unauthorized(str(e)) from e
    except (IdentityStoreError, RevocationStoreError) as e:
        raise _store_unavailable() from e

    request.state.access_token = token
    return user


async def get_current_admin(current_user: User = Depends(get_current_user)) -> User:
    """Dependency that additionally requires the administrator flag."""
    if not current_user.is_admin:
        raise HTTPException(
            status_code=status.HTTP_403_FORBIDDEN,
            detail="Administrator access required",
        )
    return current_user


def require_refresh_bearer(request: Request) -> str:
    """Gate for the refresh endpoint: a bearer token must be present."""
    token = get_bearer_token(request)
    if token is None:
        raise HTTPException(
            status_code=HTTP_402_REFRESH_REQUIRED,
            detail="Refresh token required",
        )
    return token


async def _login(
    credentials: LoginRequest,
    http_request: Request,
    authority: SessionAuthority,
    require_admin: bool,
) -> LoginResponse:
    client_ip = get_client_ip(http_request)
    _check_login_rate_limit(client_ip)

    try:
        tokens: SessionTokens = await authority.login(
            email=credentials.email,
            password=credentials.password,
            require_admin=require_admin,
        )
    except InvalidCredentialsError as e:
        _record_login_attempt(client_ip)
        raise HTTPException(
            status_code=status.HTTP_422_UNPROCESSABLE_CONTENT,
            detail="Invalid credentials",
        ) from e
    except IdentityStoreError as e:
        raise _store_unavailable() from e
    except TokenSigningError as e:
        raise HTTPException(
            status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
            detail="Could not issue tokens",
        ) from e

    return LoginResponse(
        user=UserResponse.model_validate(tokens.user),
        access_token=tokens.access_token,
        refresh_token=tokens.refresh_token,
        expires_in=tokens.expires_in,
    )


@router.post("/login", response_model=LoginResponse)
async def login(
    credentials: LoginRequest,
    http_request: Request,
    authority: SessionAuthority = Depends(get_session_authority),
) -> LoginResponse:
    """Authenticate a customer and get JWT tokens.

    Failed attempts are rate limited per client IP.
    """
    return await _login(credentials, http_request, authority, require_admin=False)


@admin_router.post("/login", response_model=LoginResponse, status_code=status.HTTP_201_CREATED)
async def admin_login(
    credentials: LoginRequest,
    http_request: Request,
    authority: SessionAuthority = Depends(get_session_authority),
) -> LoginResponse:
    """Authenticate an administrator and get JWT tokens.

    A valid non-admin account is rejected exactly like a wrong password.
    """
    return await _login(credentials, http_request, authority, require_admin=True)


@router.get("/refresh-token", response_model=AccessTokenResponse)
async def refresh_token(
    token: str = Depends(require_refresh_bearer),
    authority: SessionAuthority = Depends(get_session_authority),
) -> AccessTokenResponse:
    """Mint a new access token from the bearer refresh token.

    The refresh token is not rotated and stays valid until it expires or
    is revoked.
    """
    try:
        issued = await authority.refresh(token)
    except TokenExpiredError as e:
        raise HTTPException(
            status_code=HTTP_402_REFRESH_REQUIRED,
            detail="Refresh token has expired",
        ) from e
    except TokenError as e:
        raise HTTPException(status_code=HTTP_402_REFRESH_REQUIRED, detail=str(e)) from e
    except IdentityNotFoundError as e:
        raise HTTPException(
            status_code=status.HTTP_404_NOT_FOUND,
            detail="User not found",
        ) from e
    except (IdentityStoreError, RevocationStoreError) as e:
        raise _store_unavailable() from e
    except TokenSigningError as e:
        raise HTTPException(
            status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
            detail="Could not issue tokens",
        ) from e

    return AccessTokenResponse(access_token=issued.token, expires_in=issued.expires_in)


@router.post("/logout", response_model=MessageResponse)
async def logout(
    request: Request,
    body: LogoutRequest | None = None,
    current_user: User = Depends(get_current_user),
    authority: SessionAuthority = Depends(get_session_authority),
) -> MessageResponse:
    """Log out the current user.

    Revokes the bearer access token for the remainder of its lifetime and,
    when supplied, the refresh token in the body.
    """
    try:
        await authority.logout(
            request.state.access_token,
            refresh_token=body.refresh_token if body else None,
        )
    except TokenError as e:
        raise _unauthorized(str(e)) from e
    except RevocationStoreError as e:
        raise HTTPException(
            status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
            detail="Logout failed",
        ) from e

    logger.info(f"User logged out: {current_user.email}")
    return MessageResponse(message="Successfully logged out")
