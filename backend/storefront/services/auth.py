"""Authentication errors and password hashing."""

import secrets

from argon2 import PasswordHasher
from argon2.exceptions import InvalidHashError, VerificationError, VerifyMismatchError

# Argon2 password hasher with recommended parameters
# Memory: 64 MiB, Time: 3 iterations, Parallelism: 4
ph = PasswordHasher(
    time_cost=3,
    memory_cost=65536,
    parallelism=4,
    hash_len=32,
    salt_len=16,
)

# Compared against when the identity does not exist, so that a miss costs
# the same as a wrong password.
_DUMMY_HASH = ph.hash(secrets.token_urlsafe(16))


class AuthError(Exception):
    """Base authentication error."""

    pass


class IdentityNotFoundError(AuthError):
    """No account matches the given email or token subject."""

    pass


class InvalidCredentialsError(AuthError):
    """Invalid email or password."""

    pass


class EmailAlreadyRegisteredError(AuthError):
    """An account with this email already exists."""

    pass


class InvalidActivationTokenError(AuthError):
    """Activation token is unknown or already used."""

    pass


class TokenError(AuthError):
    """JWT token error."""

    pass


class TokenExpiredError(TokenError):
    """JWT token has expired."""

    pass


class MalformedTokenError(TokenError):
    """JWT token has a bad signature or structure."""

    pass


class RevokedTokenError(TokenError):
    """JWT token was revoked by logout."""

    pass


class WrongTokenKindError(TokenError):
    """An access token was presented where a refresh token is required, or vice versa."""

    pass


class NotARefreshTokenError(WrongTokenKindError):
    pass


class NotAnAccessTokenError(WrongTokenKindError):
    pass


class TokenSigningError(AuthError):
    """Token could not be signed. Indicates a key misconfiguration."""

    pass


class IdentityStoreError(AuthError):
    """The account store could not be read or written."""

    pass


class RevocationStoreError(AuthError):
    """The revocation store could not record or look up a token."""

    pass


def hash_password(password: str) -> str:
    """Hash a password using Argon2id."""
    return ph.hash(password)


def verify_password(password: str, password_hash: str) -> bool:
    """Verify a password against its hash using constant-time comparison."""
    try:
        ph.verify(password_hash, password)
        return True
    except VerifyMismatchError:
        return False
    except (InvalidHashError, VerificationError):
        # Corrupt or foreign hash format stored for this account
        return False


def burn_password_check(password: str) -> None:
    """Spend the same time as a real verification against a throwaway hash."""
    verify_password(password, _DUMMY_HASH)
