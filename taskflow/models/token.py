"""
Auth token model.
One table for every stored bearer secret; the kind decides which flow may consume it.
"""
import uuid
from datetime import datetime
from typing import Optional

from sqlalchemy import Column, DateTime
from sqlmodel import SQLModel, Field

from taskflow.core.clock import utcnow, as_utc


# Token kind constants for consistency
class AuthTokenKind:
    REFRESH = "REFRESH"
    RESET_PASSWORD = "RESET_PASSWORD"

    ALL = (REFRESH, RESET_PASSWORD)


class AuthToken(SQLModel, table=True):
    """
    Refresh or password reset token.
    Only the digest of the secret is stored. Rows are never updated:
    consuming a token deletes it.
    """
    __tablename__ = "auth_token"

    id: uuid.UUID = Field(default_factory=uuid.uuid4, primary_key=True)
    user_id: uuid.UUID = Field(foreign_key="user.id", index=True)

    kind: str = Field(index=True)  # REFRESH, RESET_PASSWORD
    secret_digest: str = Field(unique=True, index=True)  # sha256 hex of the raw secret

    # Metadata (diagnostic only, never used for authorization)
    user_agent: Optional[str] = None
    ip_address: Optional[str] = None

    # Timestamps
    created_at: datetime = Field(
        default_factory=utcnow,
        sa_column=Column(DateTime(timezone=True), nullable=False)
    )
    expires_at: datetime = Field(sa_column=Column(DateTime(timezone=True), nullable=False))
    last_used_at: Optional[datetime] = Field(
        default=None,
        sa_column=Column(DateTime(timezone=True), nullable=True)
    )

    def is_expired(self, now: Optional[datetime] = None) -> bool:
        return as_utc(self.expires_at) <= as_utc(now or utcnow())
