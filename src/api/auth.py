"""Authentication API endpoints: access-token refresh."""

import re
from uuid import UUID

import structlog
from fastapi import APIRouter, Depends, Request
from fastapi.responses import JSONResponse

from src.api.cookies import clear_refresh_cookie, refresh_cookie_name
from src.api.dependencies import get_context, require_api_key
from src.context import AppContext
from src.errors import ApplicationError, ErrorKind
from src.models.auth import ApiResponse, RefreshData

logger = structlog.get_logger(__name__)

JWT_PATTERN = re.compile(r"^[A-Za-z0-9_-]+\.[A-Za-z0-9_-]+\.[A-Za-z0-9_-]+$")

router = APIRouter(prefix="/auths", tags=["Auth"])


@router.get("/{session_id}", dependencies=[Depends(require_api_key)])
async def refresh_token(
    session_id: UUID,
    request: Request,
    ctx: AppContext = Depends(get_context),
):
    """Exchange a session id plus its refresh cookie for a new access token.

    The refresh cookie is cleared when the presented token does not match
    the session.

    Raises:
        ApplicationError 404: If the session is missing or expired
        ApplicationError 401: If the refresh cookie is missing or malformed
    """
    session_token, role = await ctx.sessions.get_session(session_id)

    presented = request.cookies.get(refresh_cookie_name(role))
    if not presented or not JWT_PATTERN.match(presented):
        raise ApplicationError(ErrorKind.UNAUTHORIZED, "Session expired.")

    try:
        access_token, role = ctx.sessions.validate_token(role, presented, session_token)
    except ApplicationError as e:
        logger.warning("refresh_token_rejected", session_id=str(session_id), role=role)
        response = JSONResponse(status_code=e.status_code, content=e.to_response())
        clear_refresh_cookie(response, ctx.settings, role)
        return response

    return ApiResponse(
        message="Token refreshed successfully.",
        data=RefreshData(access_token=access_token).model_dump(),
    )
