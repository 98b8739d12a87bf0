"""
User repository.
"""
import uuid
from typing import Optional

from sqlmodel import select
from sqlmodel.ext.asyncio.session import AsyncSession

from taskflow.core.clock import utcnow
from taskflow.models.user import User
from taskflow.repositories.base import BaseRepository


class UserRepository(BaseRepository[User]):
    """Repository for User operations."""

    def __init__(self, session: AsyncSession):
        super().__init__(User, session)

    async def get_by_email(self, email: str) -> Optional[User]:
        """Get user by email."""
        query = select(User).where(User.email == email)
        result = await self.session.exec(query)
        return result.first()

    async def create_user(self, email: str, password_hash: str, name: str) -> User:
        """Create a user."""
        return await self.create({
            "email": email,
            "password_hash": password_hash,
            "name": name
        })

    async def update_password(self, user_id: uuid.UUID, password_hash: str) -> bool:
        """Update user's password."""
        user = await self.get(user_id)
        if user:
            user.password_hash = password_hash
            user.updated_at = utcnow()
            self.session.add(user)
            await self.session.flush()
            return True
        return False
