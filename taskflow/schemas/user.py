"""
User schemas.
"""
import uuid
from datetime import datetime
from pydantic import BaseModel


class UserResponse(BaseModel):
    """Public view of a user."""
    id: uuid.UUID
    email: str
    name: str
    created_at: datetime
    updated_at: datetime

    class Config:
        from_attributes = True
