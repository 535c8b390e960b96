"""User API endpoints: registration, login, profile, update, logout, (un)delete."""

from uuid import UUID

import structlog
from fastapi import APIRouter, Depends, Response, status

from src.api.cookies import clear_refresh_cookie, set_refresh_cookie
from src.api.dependencies import (
    get_context,
    get_current_user,
    require_api_key,
    require_json,
    require_user_agent,
)
from src.context import AppContext
from src.models.auth import (
    ApiResponse,
    LoginData,
    LoginRequest,
    RegisterData,
    RegisterRequest,
    UpdateUserRequest,
)
from src.models.session import AuthCredentials
from src.models.user import UserRole

logger = structlog.get_logger(__name__)

router = APIRouter(prefix="/users", tags=["Users"])


@router.post(
    "/login",
    dependencies=[Depends(require_api_key), Depends(require_json)],
)
async def login(
    request: LoginRequest,
    response: Response,
    user_agent: str = Depends(require_user_agent),
    ctx: AppContext = Depends(get_context),
) -> ApiResponse:
    """Login with email and password.

    Creates a session and sets the `refresh_token_{role}` cookie.

    Returns:
        Session id and access token

    Raises:
        ApplicationError 400: If the credentials are invalid
    """
    tokens = await ctx.accounts.login_user(request.email, request.password)
    refresh_token, session_id = await ctx.sessions.create_session(tokens, user_agent)

    set_refresh_cookie(response, ctx.settings, tokens.role, refresh_token)

    data = LoginData(session_id=session_id, access_token=tokens.access_token)
    return ApiResponse(
        message="User logged in successfully.",
        data=data.model_dump(mode="json"),
    )


@router.post(
    "/{role}",
    status_code=status.HTTP_201_CREATED,
    dependencies=[Depends(require_api_key), Depends(require_json)],
)
async def register(
    role: UserRole,
    request: RegisterRequest,
    ctx: AppContext = Depends(get_context),
) -> ApiResponse:
    """Register a user under the role named in the path.

    Raises:
        ApplicationError 409: If the email is already registered
    """
    user_id = await ctx.accounts.register_user(request, role)
    return ApiResponse(
        message="User created successfully.",
        data=RegisterData(user_id=user_id).model_dump(mode="json"),
    )


@router.get("")
async def get_profile(
    current_user: AuthCredentials = Depends(get_current_user),
    ctx: AppContext = Depends(get_context),
) -> ApiResponse:
    """Get the authenticated user's profile."""
    user = await ctx.accounts.get_profile(current_user.id, current_user.role)
    return ApiResponse(
        message="User retrieved successfully.",
        data={"user": user.model_dump(mode="json")},
    )


@router.put("/update", dependencies=[Depends(require_json)])
async def update_user(
    request: UpdateUserRequest,
    current_user: AuthCredentials = Depends(get_current_user),
    ctx: AppContext = Depends(get_context),
) -> ApiResponse:
    """Update the authenticated user's profile; requires the current password."""
    await ctx.accounts.update_user(current_user.id, current_user.role, request)
    return ApiResponse(message="User updated successfully.")


@router.delete("/logout/{session_id}")
async def logout(
    session_id: UUID,
    response: Response,
    current_user: AuthCredentials = Depends(get_current_user),
    ctx: AppContext = Depends(get_context),
) -> ApiResponse:
    """Delete the caller's session and clear the refresh cookie."""
    await ctx.accounts.logout_user(current_user.role, current_user.id)
    await ctx.sessions.delete_session(session_id, current_user.id)

    clear_refresh_cookie(response, ctx.settings, current_user.role)
    logger.info("user_logged_out", user_id=str(current_user.id), session_id=str(session_id))
    return ApiResponse(message="User logged out successfully.")


@router.delete("/{client_id}")
async def delete_user(
    client_id: UUID,
    current_user: AuthCredentials = Depends(get_current_user),
    ctx: AppContext = Depends(get_context),
) -> ApiResponse:
    """Soft-delete a user and end their sessions. Admin only."""
    await ctx.accounts.delete_user(current_user.id, client_id, current_user.role)
    return ApiResponse(message="User deleted successfully.")


@router.patch("/{client_id}/undelete")
async def undelete_user(
    client_id: UUID,
    current_user: AuthCredentials = Depends(get_current_user),
    ctx: AppContext = Depends(get_context),
) -> ApiResponse:
    """Restore a soft-deleted user. Admin only."""
    await ctx.accounts.undelete_user(current_user.id, client_id, current_user.role)
    return ApiResponse(message="User undeleted successfully.")
