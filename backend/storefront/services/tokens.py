"""Signed token encoding and access/refresh token issuance."""

import logging
import secrets
from collections.abc import Mapping
from dataclasses import dataclass, field
from datetime import UTC, datetime, timedelta
from enum import Enum
from functools import lru_cache
from typing import Any

import jwt
from jwt.exceptions import PyJWTError

from storefront.core import settings
from storefront.models.user import User
from storefront.services.auth import (
    MalformedTokenError,
    TokenExpiredError,
    TokenSigningError,
)

logger = logging.getLogger(__name__)

# Marker claim carried only by refresh tokens
REFRESH_CLAIM = "is_refresh_token"

_RESERVED_CLAIMS = frozenset({"exp", "iat", "jti"})
_REQUIRED_CLAIMS = ["sub", "exp", "iat", "jti"]


class TokenKind(str, Enum):
    """The two token variants. They share a payload and differ by REFRESH_CLAIM."""

    ACCESS = "access"
    REFRESH = "refresh"


@dataclass(frozen=True)
class TokenClaims:
    """Decoded, signature-checked token payload."""

    subject: str
    kind: TokenKind
    jti: str
    issued_at: datetime
    expires_at: datetime
    extra: dict[str, Any] = field(default_factory=dict)

    @property
    def is_expired(self) -> bool:
        return self.expires_at <= datetime.now(UTC)

    @classmethod
    def from_payload(cls, payload: Mapping[str, Any]) -> "TokenClaims":
        kind = TokenKind.REFRESH if payload.get(REFRESH_CLAIM) is True else TokenKind.ACCESS
        extra = {
            k: v
            for k, v in payload.items()
            if k not in _RESERVED_CLAIMS and k not in ("sub", REFRESH_CLAIM)
        }
        return cls(
            subject=str(payload["sub"]),
            kind=kind,
            jti=str(payload["jti"]),
            issued_at=datetime.fromtimestamp(payload["iat"], tz=UTC),
            expires_at=datetime.fromtimestamp(payload["exp"], tz=UTC),
            extra=extra,
        )


class TokenCodec:
    """Encodes and decodes HMAC-signed JWTs.

    The TTL is chosen per call. The codec keeps no per-request state, so
    one instance is shared across concurrent requests.
    """

    def __init__(self, secret_key: str, algorithm: str, default_ttl: timedelta):
        self._secret_key = secret_key
        self.algorithm = algorithm
        self.default_ttl = default_ttl

    def issue(self, claims: Mapping[str, Any], ttl: timedelta | None = None) -> str:
        """Sign ``claims`` into a token valid for ``ttl`` (default TTL if omitted).

        Adds ``iat``, ``exp`` and a random ``jti``. ``claims`` must carry ``sub``.
        """
        ttl = self.default_ttl if ttl is None else ttl
        if ttl <= timedelta(0):
            raise ValueError("Token TTL must be positive")
        if "sub" not in claims:
            raise ValueError("Token claims must include 'sub'")

        now = datetime.now(UTC)
        payload = {k: v for k, v in claims.items() if k not in _RESERVED_CLAIMS}
        payload["sub"] = str(payload["sub"])
        payload.update(
            {
                "iat": now,
                "exp": now + ttl,
                "jti": secrets.token_hex(16),
            }
        )
        try:
            token = jwt.encode(payload, self._secret_key, algorithm=self.algorithm)
        except (PyJWTError, NotImplementedError, TypeError) as e:
            logger.error(f"Unable to sign token with algorithm {self.algorithm}: {e}")
            raise TokenSigningError("Token signing failed") from e
        # PyJWT 2.x returns str; older type stubs may declare bytes
        return str(token)

    def decode(self, token: str, *, verify_exp: bool = True) -> TokenClaims:
        """Verify the signature (and expiry unless ``verify_exp`` is False) and return the claims."""
        try:
            payload = jwt.decode(
                token,
                self._secret_key,
                algorithms=[self.algorithm],
                options={"require": _REQUIRED_CLAIMS, "verify_exp": verify_exp},
            )
        except jwt.ExpiredSignatureError as e:
            raise TokenExpiredError("Token has expired") from e
        except PyJWTError as e:
            raise MalformedTokenError(f"Invalid token: {e}") from e
        return TokenClaims.from_payload(payload)


@dataclass(frozen=True)
class IssuedToken:
    token: str
    expires_in: int


@dataclass(frozen=True)
class TokenPair:
    access_token: str
    expires_in: int
    refresh_token: str


class TokenIssuer:
    """Issues access tokens and access/refresh pairs for a user."""

    def __init__(self, codec: TokenCodec, access_ttl: timedelta, refresh_ttl: timedelta):
        self.codec = codec
        self.access_ttl = access_ttl
        self.refresh_ttl = refresh_ttl

    def issue_access(self, user: User) -> IssuedToken:
        token = self.codec.issue({"sub": str(user.id)}, ttl=self.access_ttl)
        return IssuedToken(token=token, expires_in=int(self.access_ttl.total_seconds()))

    def issue_pair(self, user: User) -> TokenPair:
        access = self.issue_access(user)
        refresh_token = self.codec.issue(
            {"sub": str(user.id), REFRESH_CLAIM: True},
            ttl=self.refresh_ttl,
        )
        return TokenPair(
            access_token=access.token,
            expires_in=access.expires_in,
            refresh_token=refresh_token,
        )


@lru_cache
def get_token_codec() -> TokenCodec:
    """Process-wide codec built from settings."""
    return TokenCodec(
        secret_key=settings.jwt_secret_key,
        algorithm=settings.jwt_algorithm,
        default_ttl=settings.access_token_ttl,
    )


def get_token_issuer() -> TokenIssuer:
    return TokenIssuer(
        get_token_codec(),
        access_ttl=settings.access_token_ttl,
        refresh_ttl=settings.refresh_token_ttl,
    )
