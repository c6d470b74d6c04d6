"""Database-backed denylist of revoked tokens."""

import logging
import uuid
from datetime import UTC, datetime
from typing import Any

from sqlalchemy import delete, select
from sqlalchemy.engine import CursorResult
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession

from storefront.models.revoked_token import RevokedToken
from storefront.services.auth import RevocationStoreError, RevokedTokenError
from storefront.services.tokens import TokenClaims

logger = logging.getLogger(__name__)


def _subject_uuid(subject: str) -> uuid.UUID | None:
    try:
        return uuid.UUID(subject)
    except ValueError:
        return None


class RevocationStore:
    """Records revoked tokens by JTI.

    Revoking is idempotent: a second logout with the same token leaves the
    existing entry in place. Concurrent revocations of one JTI are resolved
    by the primary key, and the loser is treated as already revoked.
    """

    def __init__(self, session: AsyncSession):
        self.session = session

    async def is_revoked(self, jti: str) -> bool:
        """Check if a token JTI has been revoked."""
        result = await self.session.execute(select(RevokedToken.jti).where(RevokedToken.jti == jti))
        return result.scalar_one_or_none() is not None

    async def ensure_not_revoked(self, claims: TokenClaims) -> None:
        if await self.is_revoked(claims.jti):
            raise RevokedTokenError("Token has been revoked")

    async def revoke(self, claims: TokenClaims) -> None:
        """Persist a revocation entry that lives as long as the token itself."""
        try:
            if await self.is_revoked(claims.jti):
                return
            self.session.add(
                RevokedToken(
                    jti=claims.jti,
                    token_kind=claims.kind.value,
                    user_id=_subject_uuid(claims.subject),
                    expires_at=claims.expires_at,
                )
            )
            await self.session.commit()
        except SQLAlchemyError as e:
            await self.session.rollback()
            if await self._revoked_after_conflict(claims.jti):
                return
            logger.exception("Failed to record revoked token")
            raise RevocationStoreError("Could not revoke token") from e

    async def _revoked_after_conflict(self, jti: str) -> bool:
        try:
            return await self.is_revoked(jti)
        except SQLAlchemyError:
            return False

    async def purge_expired(self, now: datetime | None = None) -> int:
        """Remove entries whose token has expired naturally. Returns count removed."""
        now = now or datetime.now(UTC)
        result: CursorResult[Any] = await self.session.execute(  # type: ignore[assignment]
            delete(RevokedToken).where(RevokedToken.expires_at < now)
        )
        return result.rowcount
