"""Refresh-token cookie helpers."""

from starlette.responses import Response

from src.config import Settings


def refresh_cookie_name(role: str) -> str:
    """Cookies are scoped per role so each role keeps its own session."""
    return f"refresh_token_{role}"


def set_refresh_cookie(response: Response, settings: Settings, role: str, token: str) -> None:
    """Issue the HttpOnly refresh-token cookie."""
    response.set_cookie(
        key=refresh_cookie_name(role),
        value=token,
        max_age=settings.session_ttl,
        path="/",
        domain=f".{settings.cookie_domain}",
        secure=settings.secure_cookies,
        httponly=True,
        samesite=settings.cookie_samesite,
    )


def clear_refresh_cookie(response: Response, settings: Settings, role: str) -> None:
    """Overwrite the refresh-token cookie with an empty, already-expired value."""
    response.set_cookie(
        key=refresh_cookie_name(role),
        value="",
        max_age=0,
        path="/",
        domain=f".{settings.cookie_domain}",
        secure=settings.secure_cookies,
        httponly=True,
        samesite=settings.cookie_samesite,
    )
