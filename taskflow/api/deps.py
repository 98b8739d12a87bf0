"""
API dependencies - shared across all routes.
"""
import uuid

from fastapi import Depends, Request
from fastapi.security import OAuth2PasswordBearer
from sqlmodel.ext.asyncio.session import AsyncSession

from taskflow.database import get_session
from taskflow.config import settings
from taskflow.core.access_tokens import AccessTokenSigner
from taskflow.core.exceptions import UnauthorizedError, raise_unauthorized
from taskflow.models.user import User
from taskflow.schemas.auth import TokenContext
from taskflow.services.auth_service import AuthService
from taskflow.services.session_service import SessionService


oauth2_scheme = OAuth2PasswordBearer(tokenUrl=f"{settings.API_PREFIX}/auth/login")

# Built once at import from settings; read-only afterwards
access_token_signer = AccessTokenSigner.from_settings(settings)


def get_signer() -> AccessTokenSigner:
    return access_token_signer


def get_session_service(
    session: AsyncSession = Depends(get_session),
    signer: AccessTokenSigner = Depends(get_signer)
) -> SessionService:
    return SessionService(session, settings=settings, signer=signer)


def get_auth_service(
    session: AsyncSession = Depends(get_session),
    sessions: SessionService = Depends(get_session_service)
) -> AuthService:
    return AuthService(session, settings=settings, sessions=sessions)


async def get_current_user(
    token: str = Depends(oauth2_scheme),
    signer: AccessTokenSigner = Depends(get_signer),
    auth_service: AuthService = Depends(get_auth_service)
) -> User:
    """Get current authenticated user from the access token."""
    try:
        user_id = uuid.UUID(signer.verify(token))
    except (UnauthorizedError, ValueError):
        raise_unauthorized("Could not validate credentials")

    return await auth_service.get_user(user_id)


def get_client_info(request: Request) -> TokenContext:
    """Extract client info from request."""
    return TokenContext(
        ip_address=request.client.host if request.client else None,
        user_agent=request.headers.get("user-agent")
    )
