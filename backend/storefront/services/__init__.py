# Storefront Services
from storefront.services.registration import ActivationMailer, RegistrationService
from storefront.services.revocation import RevocationStore
from storefront.services.session import CredentialVerifier, SessionAuthority, SessionTokens
from storefront.services.tokens import (
    TokenClaims,
    TokenCodec,
    TokenIssuer,
    TokenKind,
    get_token_codec,
    get_token_issuer,
)
from storefront.services.user import UserService

__all__ = [
    "ActivationMailer",
    "CredentialVerifier",
    "RegistrationService",
    "RevocationStore",
    "SessionAuthority",
    "SessionTokens",
    "TokenClaims",
    "TokenCodec",
    "TokenIssuer",
    "TokenKind",
    "UserService",
    "get_token_codec",
    "get_token_issuer",
]
