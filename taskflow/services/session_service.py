"""
Session service - refresh token rotation and password reset tokens.

Every stored token is single-use: consuming one deletes its row, so a
rotated-away or already-used secret simply no longer exists. Callers only
ever see success or None; why a token was rejected is logged here and
nowhere else.
"""
import asyncio
import functools
import logging
import uuid
from datetime import datetime, timedelta
from typing import Callable, Optional, Tuple

from sqlmodel.ext.asyncio.session import AsyncSession

from taskflow.config import Settings, settings as default_settings
from taskflow.core.access_tokens import AccessTokenSigner
from taskflow.core.clock import utcnow
from taskflow.core.exceptions import ConflictError, TokenIssueError
from taskflow.core.security import generate_secret, digest_secret
from taskflow.database import transaction
from taskflow.models.token import AuthToken, AuthTokenKind
from taskflow.repositories.token_repo import TokenRepository, TokenFilter
from taskflow.schemas.auth import TokenContext, TokenPair

logger = logging.getLogger(__name__)


def with_deadline(method):
    """Bound a storage operation by the caller's timeout or the configured default."""
    @functools.wraps(method)
    async def wrapper(self, *args, timeout: Optional[float] = None, **kwargs):
        limit = self.settings.STORAGE_TIMEOUT_SECONDS if timeout is None else timeout
        if limit is None:
            return await method(self, *args, **kwargs)
        # Cancellation inside transaction() rolls the work back
        return await asyncio.wait_for(method(self, *args, **kwargs), limit)
    return wrapper


def _as_uuid(value) -> uuid.UUID:
    return value if isinstance(value, uuid.UUID) else uuid.UUID(str(value))


class SessionService:
    """Issues, rotates and revokes refresh tokens and password reset tokens."""

    def __init__(
        self,
        session: AsyncSession,
        settings: Settings = default_settings,
        signer: Optional[AccessTokenSigner] = None,
        clock: Callable[[], datetime] = utcnow
    ):
        self.session = session
        self.settings = settings
        self.signer = signer or AccessTokenSigner.from_settings(settings)
        self.clock = clock
        self.token_repo = TokenRepository(session)

    @property
    def refresh_ttl(self) -> timedelta:
        return timedelta(days=self.settings.REFRESH_TOKEN_EXPIRE_DAYS)

    @property
    def reset_ttl(self) -> timedelta:
        return timedelta(minutes=self.settings.PASSWORD_RESET_TOKEN_EXPIRE_MINUTES)

    @with_deadline
    async def create_session(
        self,
        user_id: uuid.UUID,
        context: Optional[TokenContext] = None
    ) -> TokenPair:
        """Start a new session: store a refresh token and issue an access token."""
        user_id = _as_uuid(user_id)
        async with transaction(self.session):
            secret, token = await self._store_token(
                user_id, AuthTokenKind.REFRESH, self.refresh_ttl, context
            )
        logger.info(f"Session {token.id} created for user {user_id}")
        return self._token_pair(user_id, secret)

    @with_deadline
    async def rotate_session(
        self,
        refresh_token: str,
        context: Optional[TokenContext] = None
    ) -> Optional[TokenPair]:
        """
        Exchange a refresh token for a new token pair.

        The presented token is deleted and its successor created in the same
        transaction, so each refresh token has at most one successor and a
        second presentation of the same secret finds nothing.

        Returns:
            The new TokenPair, or None if the token is unknown, expired,
            already used or not a refresh token.
        """
        if not refresh_token:
            logger.info("Refresh rejected: empty token")
            return None

        async with transaction(self.session):
            stored = await self._claim(digest_secret(refresh_token), AuthTokenKind.REFRESH)
            if stored is None:
                return None
            secret, token = await self._store_token(
                stored.user_id, AuthTokenKind.REFRESH, self.refresh_ttl, context
            )

        logger.info(f"Session {stored.id} rotated to {token.id} for user {stored.user_id}")
        return self._token_pair(stored.user_id, secret)

    @with_deadline
    async def revoke_session(self, refresh_token: str) -> None:
        """Log out one session. Unknown or already revoked tokens are ignored."""
        if not refresh_token:
            return

        async with transaction(self.session):
            count = await self.token_repo.delete_by_filter(TokenFilter(
                secret_digest=digest_secret(refresh_token),
                kind=AuthTokenKind.REFRESH
            ))
        if count:
            logger.info("Session revoked")

    @with_deadline
    async def revoke_all_sessions(self, user_id: uuid.UUID) -> int:
        """Log out every session of a user. Returns how many were revoked."""
        user_id = _as_uuid(user_id)
        async with transaction(self.session):
            count = await self.token_repo.delete_by_filter(TokenFilter(
                user_id=user_id,
                kind=AuthTokenKind.REFRESH
            ))
        logger.info(f"Revoked {count} sessions for user {user_id}")
        return count

    @with_deadline
    async def create_password_reset_token(
        self,
        user_id: uuid.UUID,
        context: Optional[TokenContext] = None
    ) -> str:
        """Issue a single-use password reset secret. No access token is issued."""
        user_id = _as_uuid(user_id)
        async with transaction(self.session):
            if self.settings.REVOKE_PRIOR_RESET_TOKENS:
                await self.token_repo.delete_by_filter(TokenFilter(
                    user_id=user_id,
                    kind=AuthTokenKind.RESET_PASSWORD
                ))
            secret, token = await self._store_token(
                user_id, AuthTokenKind.RESET_PASSWORD, self.reset_ttl, context
            )
        logger.info(f"Password reset token {token.id} issued for user {user_id}")
        return secret

    @with_deadline
    async def consume_password_reset_token(self, token: str) -> Optional[uuid.UUID]:
        """
        Use up a password reset token.

        Returns:
            The owning user's id, or None if the token is unknown, expired
            or already used.
        """
        if not token:
            logger.info("Password reset rejected: empty token")
            return None

        async with transaction(self.session):
            stored = await self._claim(digest_secret(token), AuthTokenKind.RESET_PASSWORD)
        if stored is None:
            return None

        logger.info(f"Password reset token {stored.id} consumed for user {stored.user_id}")
        return stored.user_id

    @with_deadline
    async def session_owner(self, refresh_token: str) -> Optional[uuid.UUID]:
        """User id behind a live refresh token, without consuming it."""
        if not refresh_token:
            return None

        async with transaction(self.session):
            stored = await self.token_repo.find_by_digest(digest_secret(refresh_token))
        if stored is None or stored.kind != AuthTokenKind.REFRESH:
            return None
        if stored.is_expired(self.clock()):
            return None
        return stored.user_id

    async def _claim(self, secret_digest: str, kind: str) -> Optional[AuthToken]:
        """
        Look up a token and delete it if it may be consumed as `kind`.
        Must run inside a transaction.
        """
        stored = await self.token_repo.find_by_digest(secret_digest)
        if stored is None:
            logger.info(f"{kind} token rejected: unknown")
            return None

        if stored.kind != kind:
            logger.info(f"{kind} token rejected: token {stored.id} is {stored.kind}")
            return None

        if stored.is_expired(self.clock()):
            await self.token_repo.delete_by_id(stored.id)
            logger.info(f"{kind} token rejected: token {stored.id} expired")
            return None

        if not await self.token_repo.delete_by_id(stored.id):
            # A concurrent request consumed it between our read and delete
            logger.info(f"{kind} token rejected: token {stored.id} already consumed")
            return None

        return stored

    async def _store_token(
        self,
        user_id: uuid.UUID,
        kind: str,
        ttl: timedelta,
        context: Optional[TokenContext]
    ) -> Tuple[str, AuthToken]:
        """Generate a secret and persist its digest. Returns the raw secret and the row."""
        try:
            return await self._insert_token(user_id, kind, ttl, context)
        except ConflictError:
            logger.warning(f"Digest collision issuing {kind} token for user {user_id}, retrying")

        try:
            return await self._insert_token(user_id, kind, ttl, context)
        except ConflictError as e:
            logger.error(f"Second digest collision issuing {kind} token for user {user_id}")
            raise TokenIssueError(f"Could not issue a unique {kind} token") from e

    async def _insert_token(
        self,
        user_id: uuid.UUID,
        kind: str,
        ttl: timedelta,
        context: Optional[TokenContext]
    ) -> Tuple[str, AuthToken]:
        context = context or TokenContext()
        now = self.clock()
        secret = generate_secret()
        token = await self.token_repo.create_token(
            user_id=user_id,
            kind=kind,
            secret_digest=digest_secret(secret),
            expires_at=now + ttl,
            user_agent=context.user_agent,
            ip_address=context.ip_address,
            last_used_at=now if kind == AuthTokenKind.REFRESH else None
        )
        return secret, token

    def _token_pair(self, user_id: uuid.UUID, refresh_secret: str) -> TokenPair:
        return TokenPair(
            access_token=self.signer.issue(user_id),
            refresh_token=refresh_secret,
            expires_in=self.signer.ttl_seconds
        )
