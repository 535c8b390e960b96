"""FastAPI dependencies for the application context, API key and JWT auth."""

import hmac
import re
from typing import Optional
from uuid import UUID

from fastapi import Depends, Header, Request
from fastapi.security import HTTPAuthorizationCredentials, HTTPBearer

from src.context import AppContext
from src.errors import ApplicationError, ErrorKind
from src.models.session import AuthCredentials
from src.services.auth_service import TokenExpiredError

API_KEY_PATTERN = re.compile(r"^[a-f0-9]{64}$")

bearer_scheme = HTTPBearer(auto_error=False)


def get_context(request: Request) -> AppContext:
    """Return the application context built during startup."""
    return request.app.state.context


async def require_api_key(
    x_api_key: Optional[str] = Header(default=None),
    ctx: AppContext = Depends(get_context),
) -> None:
    """Require the shared-secret `x-api-key` header.

    Raises:
        ApplicationError 401: If the key is missing, malformed or wrong
    """
    if not x_api_key or not API_KEY_PATTERN.match(x_api_key):
        raise ApplicationError(ErrorKind.UNAUTHORIZED)
    if not hmac.compare_digest(x_api_key, ctx.settings.api_key):
        raise ApplicationError(ErrorKind.UNAUTHORIZED)


async def require_user_agent(user_agent: Optional[str] = Header(default=None)) -> str:
    """Require a `user-agent` header and return it."""
    if not user_agent:
        raise ApplicationError(ErrorKind.UNAUTHORIZED)
    return user_agent


async def require_json(request: Request) -> None:
    """Reject request bodies that are not declared as JSON.

    Raises:
        ApplicationError 415: If a content type other than JSON is given
    """
    content_type = request.headers.get("content-type")
    if content_type is None:
        return
    media_type = content_type.split(";")[0].strip().lower()
    if media_type != "application/json" and not media_type.endswith("+json"):
        raise ApplicationError(ErrorKind.UNSUPPORTED_MEDIA_TYPE)


async def get_current_user(
    credentials: Optional[HTTPAuthorizationCredentials] = Depends(bearer_scheme),
    ctx: AppContext = Depends(get_context),
) -> AuthCredentials:
    """Extract the caller's id and role from a JWT Bearer token.

    Args:
        credentials: Bearer token from Authorization header

    Returns:
        AuthCredentials of the caller

    Raises:
        ApplicationError 401: If the token is missing, invalid or too old
    """
    if credentials is None:
        raise ApplicationError(ErrorKind.UNAUTHORIZED)

    try:
        payload = ctx.auth_service.validate_access_token(credentials.credentials)
    except TokenExpiredError:
        raise ApplicationError(ErrorKind.UNAUTHORIZED, "Token exceeded maximum age")
    except ValueError:
        raise ApplicationError(ErrorKind.UNAUTHORIZED)

    user_id = payload.get("id")
    role = payload.get("role")
    if not user_id or not role:
        raise ApplicationError(ErrorKind.UNAUTHORIZED)

    try:
        return AuthCredentials(id=UUID(str(user_id)), role=role)
    except ValueError:
        raise ApplicationError(ErrorKind.UNAUTHORIZED)
