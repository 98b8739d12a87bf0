"""
Token repository for auth tokens.
Persistence for refresh and password reset tokens, keyed by secret digest.
"""
import uuid
from typing import Optional
from datetime import datetime

from pydantic import BaseModel
from sqlmodel import select
from sqlmodel.ext.asyncio.session import AsyncSession
from sqlalchemy import delete
from sqlalchemy.exc import IntegrityError

from taskflow.models.token import AuthToken, AuthTokenKind
from taskflow.repositories.base import BaseRepository
from taskflow.core.clock import utcnow, as_utc
from taskflow.core.exceptions import ConflictError, ValidationError


class TokenFilter(BaseModel):
    """Predicates for bulk token deletion. Every provided field must match."""
    secret_digest: Optional[str] = None
    user_id: Optional[uuid.UUID] = None
    kind: Optional[str] = None

    def is_empty(self) -> bool:
        return self.secret_digest is None and self.user_id is None and self.kind is None


class TokenRepository(BaseRepository[AuthToken]):
    """Repository for AuthToken operations."""

    def __init__(self, session: AsyncSession):
        super().__init__(AuthToken, session)

    async def create_token(
        self,
        user_id: uuid.UUID,
        kind: str,
        secret_digest: str,
        expires_at: datetime,
        user_agent: Optional[str] = None,
        ip_address: Optional[str] = None,
        last_used_at: Optional[datetime] = None
    ) -> AuthToken:
        """
        Store a new token.

        Raises:
            ConflictError: another token already has this digest
        """
        if kind not in AuthTokenKind.ALL:
            raise ValidationError(f"Unknown token kind '{kind}'", field="kind")

        token = AuthToken(
            user_id=user_id,
            kind=kind,
            secret_digest=secret_digest,
            expires_at=expires_at,
            user_agent=user_agent,
            ip_address=ip_address,
            last_used_at=last_used_at
        )
        try:
            # Savepoint so a collision leaves the caller's transaction usable
            async with self.session.begin_nested():
                self.session.add(token)
        except IntegrityError:
            raise ConflictError("Auth token", field="digest")
        return token

    async def find_by_digest(self, secret_digest: str) -> Optional[AuthToken]:
        """Get a token by digest, whether or not it has expired."""
        query = select(AuthToken).where(AuthToken.secret_digest == secret_digest)
        result = await self.session.exec(query)
        return result.first()

    async def delete_by_id(self, token_id: uuid.UUID) -> int:
        """Delete a token. Deleting a token that is already gone returns 0."""
        return await self.delete(token_id)

    async def delete_by_filter(self, token_filter: TokenFilter) -> int:
        """Delete every token matching all predicates in the filter."""
        if token_filter.is_empty():
            raise ValidationError("At least one predicate is required", field="filter")

        query = delete(AuthToken)
        if token_filter.secret_digest is not None:
            query = query.where(AuthToken.secret_digest == token_filter.secret_digest)
        if token_filter.user_id is not None:
            query = query.where(AuthToken.user_id == token_filter.user_id)
        if token_filter.kind is not None:
            query = query.where(AuthToken.kind == token_filter.kind)

        result = await self.session.execute(
            query.execution_options(synchronize_session=False)
        )
        return result.rowcount

    async def delete_expired(self, now: Optional[datetime] = None) -> int:
        """Remove tokens past their expiry. Lookups already ignore them."""
        cutoff = as_utc(now) if now else utcnow()
        query = delete(AuthToken).where(AuthToken.expires_at <= cutoff)
        result = await self.session.execute(
            query.execution_options(synchronize_session=False)
        )
        return result.rowcount
