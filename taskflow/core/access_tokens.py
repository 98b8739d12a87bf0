"""
Short-lived access tokens.
Stateless JWTs verified by signature and clock alone, no database round-trip.
"""
from datetime import datetime, timedelta, timezone
from typing import Optional
import uuid

import jwt

from taskflow.config import Settings
from taskflow.core.exceptions import (
    TokenExpiredError,
    TokenInvalidError,
    TokenMalformedError
)

ACCESS_TOKEN_TYPE = "access"


class AccessTokenSigner:
    """Issues and verifies signed access tokens with a key fixed at construction."""

    def __init__(self, secret_key: str, algorithm: str = "HS256", ttl_seconds: int = 900):
        if not secret_key:
            raise ValueError("Access token signing key must not be empty")
        self._secret_key = secret_key
        self.algorithm = algorithm
        self.ttl_seconds = ttl_seconds

    @classmethod
    def from_settings(cls, settings: Settings) -> "AccessTokenSigner":
        return cls(
            secret_key=settings.SECRET_KEY,
            algorithm=settings.ALGORITHM,
            ttl_seconds=settings.ACCESS_TOKEN_EXPIRE_SECONDS
        )

    def issue(self, user_id, ttl_seconds: Optional[int] = None) -> str:
        """
        Create an access token for a user.

        Args:
            user_id: Subject of the token
            ttl_seconds: Lifetime override, defaults to the signer's TTL

        Returns:
            Encoded JWT string
        """
        ttl = self.ttl_seconds if ttl_seconds is None else ttl_seconds
        issued_at = datetime.now(timezone.utc)
        payload = {
            "sub": str(user_id),
            "type": ACCESS_TOKEN_TYPE,
            "iat": issued_at,
            "exp": issued_at + timedelta(seconds=ttl),
            "jti": str(uuid.uuid4())
        }
        return jwt.encode(payload, self._secret_key, algorithm=self.algorithm)

    def verify(self, token: str) -> str:
        """
        Verify an access token and return its subject.

        Raises:
            TokenExpiredError: the token is past its expiry
            TokenInvalidError: bad signature, wrong type or missing subject
            TokenMalformedError: the value is not a JWT
        """
        try:
            payload = jwt.decode(
                token,
                self._secret_key,
                algorithms=[self.algorithm],
                options={"require": ["exp", "sub"]}
            )
        except jwt.ExpiredSignatureError:
            raise TokenExpiredError("Access token")
        except jwt.DecodeError as e:
            # InvalidSignatureError is a DecodeError subclass
            if isinstance(e, jwt.InvalidSignatureError):
                raise TokenInvalidError("Access token")
            raise TokenMalformedError("Access token")
        except jwt.InvalidTokenError:
            raise TokenInvalidError("Access token")

        if payload.get("type") != ACCESS_TOKEN_TYPE:
            raise TokenInvalidError("Access token")
        subject = payload.get("sub")
        if not subject:
            raise TokenInvalidError("Access token")
        return subject
