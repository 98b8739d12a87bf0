"""
Authentication API routes.
"""
from typing import Optional

from fastapi import APIRouter, Depends, Request, Response, status
from fastapi.responses import JSONResponse

from taskflow.config import settings
from taskflow.services.auth_service import AuthService
from taskflow.schemas.auth import (
    RegisterRequest, LoginRequest, TokenResponse, SessionResponse, RefreshRequest,
    PasswordResetRequest, PasswordResetConfirm, TokenPair
)
from taskflow.schemas.common import MessageResponse
from taskflow.schemas.user import UserResponse
from taskflow.api.deps import get_auth_service, get_current_user, get_client_info
from taskflow.core.cookies import set_refresh_cookie, clear_refresh_cookie, read_refresh_cookie
from taskflow.core.exceptions import raise_bad_request
from taskflow.models.user import User

router = APIRouter(prefix=f"{settings.API_PREFIX}/auth", tags=["auth"])


def _token_response(tokens: TokenPair) -> TokenResponse:
    return TokenResponse(**tokens.model_dump())


@router.post("/register", response_model=SessionResponse, status_code=status.HTTP_201_CREATED)
async def register(
    body: RegisterRequest,
    request: Request,
    response: Response,
    auth_service: AuthService = Depends(get_auth_service)
):
    """Register a new user and log them in."""
    user, tokens = await auth_service.register(
        email=body.email,
        password=body.password,
        name=body.name,
        context=get_client_info(request)
    )
    set_refresh_cookie(response, tokens.refresh_token)
    return SessionResponse(
        user=UserResponse.model_validate(user),
        tokens=_token_response(tokens)
    )


@router.post("/login", response_model=SessionResponse)
async def login(
    body: LoginRequest,
    request: Request,
    response: Response,
    auth_service: AuthService = Depends(get_auth_service)
):
    """Login and get access + refresh tokens."""
    user, tokens = await auth_service.login(
        email=body.email,
        password=body.password,
        context=get_client_info(request)
    )
    set_refresh_cookie(response, tokens.refresh_token)
    return SessionResponse(
        user=UserResponse.model_validate(user),
        tokens=_token_response(tokens)
    )


@router.post("/refresh", response_model=TokenResponse)
async def refresh_token(
    request: Request,
    response: Response,
    body: Optional[RefreshRequest] = None,
    auth_service: AuthService = Depends(get_auth_service)
):
    """Rotate the refresh token and get a new token pair."""
    presented = (body.refresh_token if body else None) or read_refresh_cookie(request)
    if not presented:
        raise_bad_request("Refresh token missing", field="refresh_token")

    tokens = await auth_service.refresh(presented, get_client_info(request))
    if tokens is None:
        # Client is logged out: answer 401 and drop the stale cookie
        failure = JSONResponse(
            status_code=status.HTTP_401_UNAUTHORIZED,
            content={"detail": "Refresh token invalid"},
            headers={"WWW-Authenticate": "Bearer"}
        )
        clear_refresh_cookie(failure)
        return failure

    set_refresh_cookie(response, tokens.refresh_token)
    return _token_response(tokens)


@router.post("/logout", response_model=MessageResponse)
async def logout(
    request: Request,
    response: Response,
    body: Optional[RefreshRequest] = None,
    current_user: User = Depends(get_current_user),
    auth_service: AuthService = Depends(get_auth_service)
):
    """Logout by revoking the presented refresh token, or all of them if none is given."""
    presented = (body.refresh_token if body else None) or read_refresh_cookie(request)
    await auth_service.logout(current_user.id, presented)
    clear_refresh_cookie(response)
    return MessageResponse(message="Logged out successfully")


@router.post("/logout-all", response_model=MessageResponse)
async def logout_all(
    response: Response,
    current_user: User = Depends(get_current_user),
    auth_service: AuthService = Depends(get_auth_service)
):
    """Logout from all devices."""
    count = await auth_service.logout_all(current_user.id)
    clear_refresh_cookie(response)
    return MessageResponse(message=f"Logged out from {count} devices")


@router.post("/forgot-password", status_code=status.HTTP_202_ACCEPTED)
async def forgot_password(
    body: PasswordResetRequest,
    request: Request,
    auth_service: AuthService = Depends(get_auth_service)
):
    """Request password reset."""
    # Returns dict with message
    # In DEV_MODE, also includes _dev_reset_token for testing
    return await auth_service.forgot_password(body.email, get_client_info(request))


@router.post("/reset-password", response_model=MessageResponse)
async def reset_password(
    body: PasswordResetConfirm,
    response: Response,
    auth_service: AuthService = Depends(get_auth_service)
):
    """Reset password using token. Every existing session is logged out."""
    await auth_service.reset_password(body.token, body.new_password)
    clear_refresh_cookie(response)
    return MessageResponse(message="Password reset successfully")


@router.get("/me", response_model=UserResponse)
async def me(current_user: User = Depends(get_current_user)):
    """Get the current user."""
    return current_user
