"""
Refresh token cookie helpers.
The refresh secret travels in an HttpOnly cookie; access tokens go in the body.
"""
from typing import Optional

from fastapi import Request, Response

from taskflow.config import settings


def _cookie_options() -> dict:
    return {
        "httponly": True,
        "samesite": "lax",
        "secure": not settings.DEV_MODE,
        "path": "/",
    }


def set_refresh_cookie(response: Response, value: str) -> None:
    """Attach the refresh secret to the response."""
    response.set_cookie(
        key=settings.REFRESH_COOKIE_NAME,
        value=value,
        max_age=settings.REFRESH_TOKEN_EXPIRE_DAYS * 24 * 60 * 60,
        **_cookie_options()
    )


def clear_refresh_cookie(response: Response) -> None:
    """Expire the refresh cookie immediately with an empty value."""
    response.set_cookie(
        key=settings.REFRESH_COOKIE_NAME,
        value="",
        max_age=0,
        expires=0,
        **_cookie_options()
    )


def read_refresh_cookie(request: Request) -> Optional[str]:
    return request.cookies.get(settings.REFRESH_COOKIE_NAME) or None
