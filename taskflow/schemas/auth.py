"""
Authentication schemas.
"""
from typing import Optional
from pydantic import BaseModel, EmailStr, Field, field_validator

from taskflow.config import settings
from taskflow.core.security import BCRYPT_MAX_BYTES
from taskflow.schemas.user import UserResponse


def check_password_bytes(value: str) -> str:
    """Passwords are hashed with bcrypt, which takes at most 72 bytes."""
    if len(value.encode("utf-8")) > BCRYPT_MAX_BYTES:
        raise ValueError(f"Password must be at most {BCRYPT_MAX_BYTES} bytes")
    return value


class TokenContext(BaseModel):
    """Request metadata recorded alongside an issued token."""
    user_agent: Optional[str] = None
    ip_address: Optional[str] = None


class TokenPair(BaseModel):
    """Access token plus the raw refresh secret, handed out exactly once."""
    access_token: str
    refresh_token: str
    expires_in: int  # seconds until the access token expires


class RegisterRequest(BaseModel):
    """User registration request."""
    email: EmailStr
    password: str = Field(min_length=settings.PASSWORD_MIN_LENGTH)
    name: str = Field(min_length=1)

    validate_password = field_validator("password")(check_password_bytes)

    class Config:
        json_schema_extra = {
            "example": {
                "email": "user@company.com",
                "password": "correct-horse-battery",
                "name": "Jane Doe"
            }
        }


class LoginRequest(BaseModel):
    """User login request."""
    email: EmailStr
    password: str = Field(min_length=1)

    class Config:
        json_schema_extra = {
            "example": {
                "email": "user@company.com",
                "password": "correct-horse-battery"
            }
        }


class TokenResponse(BaseModel):
    """Token response after login or refresh."""
    access_token: str
    refresh_token: str
    token_type: str = "bearer"
    expires_in: int  # seconds


class SessionResponse(BaseModel):
    """Register/login response."""
    user: UserResponse
    tokens: TokenResponse


class RefreshRequest(BaseModel):
    """Refresh token request. Falls back to the refresh cookie when omitted."""
    refresh_token: Optional[str] = None


class PasswordResetRequest(BaseModel):
    """Request password reset."""
    email: EmailStr


class PasswordResetConfirm(BaseModel):
    """Confirm password reset with token."""
    token: str = Field(min_length=1)
    new_password: str = Field(min_length=settings.PASSWORD_MIN_LENGTH)

    validate_new_password = field_validator("new_password")(check_password_bytes)
