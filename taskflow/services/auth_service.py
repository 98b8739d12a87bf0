"""
Authentication service - handles all auth operations.
"""
import logging
import uuid
from typing import Optional

from sqlmodel.ext.asyncio.session import AsyncSession

from taskflow.config import Settings, settings as default_settings
from taskflow.core.security import get_password_hash, verify_password
from taskflow.core.exceptions import (
    raise_already_exists,
    raise_unauthorized,
    raise_not_found
)
from taskflow.database import transaction
from taskflow.repositories.user_repo import UserRepository
from taskflow.models.user import User
from taskflow.schemas.auth import TokenContext, TokenPair
from taskflow.services.session_service import SessionService

logger = logging.getLogger(__name__)


def normalize_email(email: str) -> str:
    return email.strip().lower()


class AuthService:
    """Service for authentication operations."""

    def __init__(
        self,
        session: AsyncSession,
        settings: Settings = default_settings,
        sessions: Optional[SessionService] = None
    ):
        self.session = session
        self.settings = settings
        self.user_repo = UserRepository(session)
        self.sessions = sessions or SessionService(session, settings=settings)

    async def register(
        self,
        email: str,
        password: str,
        name: str,
        context: Optional[TokenContext] = None
    ) -> tuple[User, TokenPair]:
        """Register a new user and start their first session."""
        email = normalize_email(email)

        async with transaction(self.session):
            existing = await self.user_repo.get_by_email(email)
            if existing:
                raise_already_exists("User", "email", email)

            user = await self.user_repo.create_user(
                email=email,
                password_hash=get_password_hash(password),
                name=name
            )
            tokens = await self.sessions.create_session(user.id, context)

        logger.info(f"User {user.id} registered")
        return user, tokens

    async def login(
        self,
        email: str,
        password: str,
        context: Optional[TokenContext] = None
    ) -> tuple[User, TokenPair]:
        """Authenticate user and return tokens."""
        user = await self.user_repo.get_by_email(normalize_email(email))
        if not user or not verify_password(password, user.password_hash):
            raise_unauthorized("Invalid credentials")

        if not user.is_active:
            raise_unauthorized("User account is deactivated")

        tokens = await self.sessions.create_session(user.id, context)
        return user, tokens

    async def refresh(
        self,
        refresh_token: str,
        context: Optional[TokenContext] = None
    ) -> Optional[TokenPair]:
        """
        Rotate a refresh token. None means the client must log in again.

        A deactivated account gets no new tokens; its remaining sessions
        are revoked instead.
        """
        async with transaction(self.session):
            user_id = await self.sessions.session_owner(refresh_token)
            if user_id is not None:
                user = await self.user_repo.get(user_id)
                if not user or not user.is_active:
                    logger.info(f"Refresh rejected: user {user_id} is deactivated")
                    await self.sessions.revoke_all_sessions(user_id)
                    return None

            return await self.sessions.rotate_session(refresh_token, context)

    async def logout(self, user_id: uuid.UUID, refresh_token: Optional[str] = None) -> int:
        """
        Log out the session owning `refresh_token`, or every session of the
        user when no token is presented. Returns the number of sessions ended
        when logging out everywhere, 0 otherwise.
        """
        if refresh_token:
            await self.sessions.revoke_session(refresh_token)
            return 0
        return await self.sessions.revoke_all_sessions(user_id)

    async def logout_all(self, user_id: uuid.UUID) -> int:
        """Logout from all devices by revoking all refresh tokens."""
        return await self.sessions.revoke_all_sessions(user_id)

    async def forgot_password(
        self,
        email: str,
        context: Optional[TokenContext] = None
    ) -> dict:
        """Initiate password reset flow."""
        response = {
            "message": "If the email exists, a reset link has been sent"
        }

        user = await self.user_repo.get_by_email(normalize_email(email))
        if not user:
            # Don't reveal if email exists
            return response

        reset_token = await self.sessions.create_password_reset_token(user.id, context)

        # In DEV_MODE, include the token for easy testing
        if self.settings.DEV_MODE:
            response["_dev_reset_token"] = reset_token

        return response

    async def reset_password(self, token: str, new_password: str) -> uuid.UUID:
        """
        Reset password using token.

        Consuming the token, storing the new hash and revoking every existing
        session happen in one transaction.
        """
        async with transaction(self.session):
            user_id = await self.sessions.consume_password_reset_token(token)
            if user_id is None:
                raise_unauthorized("Reset token invalid or expired")

            updated = await self.user_repo.update_password(user_id, get_password_hash(new_password))
            if not updated:
                raise_not_found("User", str(user_id))

            # Revoke all refresh tokens for security
            await self.sessions.revoke_all_sessions(user_id)

        logger.info(f"Password reset for user {user_id}")
        return user_id

    async def get_user(self, user_id: uuid.UUID) -> User:
        user = await self.user_repo.get(user_id)
        if not user or not user.is_active:
            raise_unauthorized("User not found")
        return user
