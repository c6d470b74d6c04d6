"""Login, refresh and logout over self-contained JWT sessions.

A session is the pair of tokens returned by ``login``. Nothing about it is
kept server-side except revocation entries written by ``logout``, so every
request is validated from the token signature plus one denylist lookup.
"""

import logging
from dataclasses import dataclass

from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession

from storefront.models.user import User
from storefront.services.auth import (
    IdentityNotFoundError,
    IdentityStoreError,
    InvalidCredentialsError,
    NotAnAccessTokenError,
    NotARefreshTokenError,
    RevocationStoreError,
    TokenError,
    burn_password_check,
    verify_password,
)
from storefront.services.revocation import RevocationStore
from storefront.services.tokens import (
    IssuedToken,
    TokenClaims,
    TokenCodec,
    TokenIssuer,
    TokenKind,
    get_token_codec,
    get_token_issuer,
)
from storefront.services.user import UserService

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class SessionTokens:
    user: User
    access_token: str
    expires_in: int
    refresh_token: str


class CredentialVerifier:
    """Checks an email/password pair against stored accounts."""

    def __init__(self, users: UserService):
        self.users = users

    async def verify(self, email: str, password: str) -> User:
        """Return the matching user.

        Raises IdentityNotFoundError when no account has this email and
        InvalidCredentialsError when the password is wrong. Both paths run
        one Argon2 verification so they take the same time.
        """
        user = await self.users.get_by_email(email)

        if user is None:
            burn_password_check(password)
            raise IdentityNotFoundError("No account for this email")

        if not verify_password(password, user.password_hash):
            raise InvalidCredentialsError("Invalid credentials")

        return user


class SessionAuthority:
    """Public session operations: login, refresh, logout, authenticate."""

    def __init__(
        self,
        session: AsyncSession,
        codec: TokenCodec | None = None,
        issuer: TokenIssuer | None = None,
    ):
        self.users = UserService(session)
        self.revocations = RevocationStore(session)
        self.verifier = CredentialVerifier(self.users)
        self.codec = codec or get_token_codec()
        self.issuer = issuer or get_token_issuer()

    async def login(self, email: str, password: str, require_admin: bool = False) -> SessionTokens:
        """Authenticate and issue an access/refresh pair.

        Unknown email, wrong password and (on the admin path) a non-admin
        account all raise the same InvalidCredentialsError, so the response
        never reveals whether an account exists.
        """
        try:
            user = await self.verifier.verify(email, password)
        except IdentityNotFoundError as e:
            logger.info("Login rejected: unknown email")
            raise InvalidCredentialsError("Invalid credentials") from e
        except InvalidCredentialsError:
            logger.info("Login rejected: wrong password")
            raise
        except SQLAlchemyError as e:
            logger.exception("Account lookup failed during login")
            raise IdentityStoreError("Could not load account") from e

        if require_admin and not user.is_admin:
            logger.info("Admin login rejected: account is not an administrator")
            raise InvalidCredentialsError("Invalid credentials")

        pair = self.issuer.issue_pair(user)
        logger.info(f"User logged in: {user.email} (admin={require_admin})")
        return SessionTokens(
            user=user,
            access_token=pair.access_token,
            expires_in=pair.expires_in,
            refresh_token=pair.refresh_token,
        )

    async def decode(self, token: str, *, verify_exp: bool = True) -> TokenClaims:
        """Decode a token and reject it if it has been revoked."""
        claims = self.codec.decode(token, verify_exp=verify_exp)
        try:
            await self.revocations.ensure_not_revoked(claims)
        except SQLAlchemyError as e:
            logger.exception("Revocation lookup failed")
            raise RevocationStoreError("Could not check token revocation") from e
        return claims

    async def _load_user(self, claims: TokenClaims) -> User:
        try:
            user = await self.users.get_by_id(claims.subject)
        except SQLAlchemyError as e:
            logger.exception("Account lookup failed")
            raise IdentityStoreError("Could not load account") from e
        if user is None:
            raise IdentityNotFoundError("User not found")
        return user

    async def refresh(self, refresh_token: str) -> IssuedToken:
        """Mint a new access token. The refresh token itself stays valid."""
        claims = await self.decode(refresh_token)
        if claims.kind is not TokenKind.REFRESH:
            raise NotARefreshTokenError("Not a refresh token")

        user = await self._load_user(claims)
        return self.issuer.issue_access(user)

    async def authenticate(self, access_token: str) -> User:
        """Resolve the user behind a valid, unrevoked access token."""
        claims = await self.decode(access_token)
        if claims.kind is not TokenKind.ACCESS:
            raise NotAnAccessTokenError("Not an access token")

        return await self._load_user(claims)

    async def logout(self, access_token: str, refresh_token: str | None = None) -> None:
        """Revoke the access token and, if given, the matching refresh token.

        An expired token needs no denylist entry, so it logs out as a no-op
        success. A token that is already revoked is accepted as well.
        Raises MalformedTokenError for undecodable input, NotAnAccessTokenError
        when a refresh token is passed as the access token, and
        RevocationStoreError when the entry cannot be written.
        """
        claims = self.codec.decode(access_token, verify_exp=False)
        if claims.kind is not TokenKind.ACCESS:
            raise NotAnAccessTokenError("Not an access token")
        if not claims.is_expired:
            await self.revocations.revoke(claims)

        if refresh_token:
            await self._revoke_refresh_token(refresh_token, subject=claims.subject)

    async def _revoke_refresh_token(self, refresh_token: str, subject: str) -> None:
        try:
            claims = self.codec.decode(refresh_token, verify_exp=False)
        except TokenError as e:
            logger.info(f"Ignoring undecodable refresh token on logout: {e}")
            return
        if claims.kind is not TokenKind.REFRESH or claims.subject != subject:
            logger.info("Ignoring refresh token on logout: kind or subject mismatch")
            return
        if not claims.is_expired:
            await self.revocations.revoke(claims)

