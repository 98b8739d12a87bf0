"""
Security utilities for Taskflow API.
Password hashing and the opaque secrets backing refresh and reset tokens.
"""
import hashlib
import secrets

import bcrypt


# bcrypt ignores or rejects input beyond 72 bytes
BCRYPT_MAX_BYTES = 72


def verify_password(plain_password: str, hashed_password: str) -> bool:
    """Verify a password against its hash."""
    try:
        return bcrypt.checkpw(
            plain_password.encode('utf-8'),
            hashed_password.encode('utf-8')
        )
    except ValueError:
        # Stored value is not a bcrypt hash
        return False


def get_password_hash(password: str) -> str:
    """Hash a password."""
    salt = bcrypt.gensalt()
    return bcrypt.hashpw(password.encode('utf-8'), salt).decode('utf-8')


# 48 random bytes -> 384 bits of entropy
SECRET_NBYTES = 48


def generate_secret(nbytes: int = SECRET_NBYTES) -> str:
    """Generate a URL-safe bearer secret for refresh and password reset tokens."""
    return secrets.token_urlsafe(nbytes)


def digest_secret(secret: str) -> str:
    """
    One-way digest of a raw secret.

    The hex SHA-256 is what gets stored and looked up; the raw secret
    itself is never persisted.
    """
    return hashlib.sha256(secret.encode('utf-8')).hexdigest()
