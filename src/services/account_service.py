"""Account use cases: registration, login, profile, update and (un)deletion."""

from uuid import UUID

import structlog

from src.config import Settings
from src.errors import ApplicationError, ErrorKind, PostgresUniqueViolationError
from src.models.auth import RegisterRequest, UpdateUserRequest
from src.models.session import TokenPair
from src.models.user import NewUser, User, UserRole
from src.services.auth_service import AuthService
from src.services.session_store import SessionStore
from src.services.user_service import UserService

logger = structlog.get_logger(__name__)

ADMIN_ROLE = "admin"
INVALID_CREDENTIALS = "Invalid username or password."
EMAIL_TAKEN = "Email already exists."


class AccountService:
    """Orchestrates user stores, password hashing and token issuance."""

    def __init__(
        self,
        settings: Settings,
        users: UserService,
        sessions: SessionStore,
        auth_service: AuthService,
    ):
        self.settings = settings
        self.users = users
        self.sessions = sessions
        self.auth_service = auth_service

    async def register_user(self, request: RegisterRequest, role: UserRole) -> UUID:
        """Create an account under `role`.

        Returns:
            The new user's UUID

        Raises:
            ApplicationError: CONFLICT if the email is already taken
        """
        if await self.users.email_exists(request.email):
            raise ApplicationError(ErrorKind.CONFLICT, EMAIL_TAKEN)

        new_user = NewUser(
            first_name=request.first_name,
            last_name=request.last_name,
            email=request.email,
            password=self.auth_service.hash_password(request.password),
            role=role,
            photo=request.photo or self.settings.default_photo,
        )
        try:
            user_id = await self.users.add_user(new_user)
        except PostgresUniqueViolationError:
            # Lost a race with a concurrent registration of the same email
            raise ApplicationError(ErrorKind.CONFLICT, EMAIL_TAKEN) from None
        logger.info("user_registered", user_id=str(user_id), role=role.value)
        return user_id

    async def login_user(self, email: str, password: str) -> TokenPair:
        """Check credentials and issue an access/refresh token pair.

        Unknown email and wrong password fail identically.

        Raises:
            ApplicationError: BAD_REQUEST on invalid credentials
        """
        credentials = await self.users.get_credentials_by_email(email)
        if credentials is None:
            raise ApplicationError(ErrorKind.BAD_REQUEST, INVALID_CREDENTIALS)

        if not self.auth_service.verify_password(password, credentials.password):
            raise ApplicationError(ErrorKind.BAD_REQUEST, INVALID_CREDENTIALS)

        user = await self.users.get_by_id(credentials.id)
        if user is None:
            raise ApplicationError(ErrorKind.NOT_FOUND, "User not found.")

        claims = {"id": str(user.id), "role": user.role.value}
        tokens = TokenPair(
            access_token=self.auth_service.create_access_token(claims),
            refresh_token=self.auth_service.create_refresh_token(claims),
            role=user.role.value,
            user_id=user.id,
        )
        logger.info("user_logged_in", user_id=str(user.id), role=user.role.value)
        return tokens

    async def get_profile(self, user_id: UUID, role: str) -> User:
        """Fetch the caller's own profile.

        Raises:
            ApplicationError: NOT_FOUND if absent, FORBIDDEN on role mismatch
        """
        user = await self.users.get_by_id(user_id)
        if user is None:
            raise ApplicationError(ErrorKind.NOT_FOUND, "User ID not found.")
        if user.role.value != role:
            raise ApplicationError(ErrorKind.FORBIDDEN)
        return user

    async def update_user(self, user_id: UUID, role: str, request: UpdateUserRequest) -> None:
        """Update the caller's profile after re-checking the current password.

        Raises:
            ApplicationError: FORBIDDEN if the user is missing or the role
                differs, BAD_REQUEST on a wrong password or nothing to update,
                CONFLICT if the new email is taken
        """
        user = await self.users.get_by_id(user_id)
        if user is None or user.role.value != role:
            raise ApplicationError(ErrorKind.FORBIDDEN)

        credentials = await self.users.get_credentials_by_email(user.email)
        if credentials is None:
            raise ApplicationError(ErrorKind.FORBIDDEN)

        if not self.auth_service.verify_password(request.password, credentials.password):
            raise ApplicationError(ErrorKind.BAD_REQUEST, "Invalid password.")

        changes = request.changes()
        if not changes:
            raise ApplicationError(ErrorKind.BAD_REQUEST, "No fields to update.")

        new_email = changes.get("email")
        if new_email and new_email != user.email:
            if await self.users.email_exists(new_email, exclude_id=user_id):
                raise ApplicationError(ErrorKind.CONFLICT, EMAIL_TAKEN)

        try:
            await self.users.update_user(user_id, changes)
        except PostgresUniqueViolationError:
            raise ApplicationError(ErrorKind.CONFLICT, EMAIL_TAKEN) from None

    async def logout_user(self, role: str, user_id: UUID) -> None:
        """Check that the caller may log out; the session is deleted separately.

        Raises:
            ApplicationError: NOT_FOUND if absent, FORBIDDEN on role mismatch
        """
        user = await self.users.get_by_id(user_id)
        if user is None:
            raise ApplicationError(ErrorKind.NOT_FOUND, "User ID not found.")
        if user.role.value != role:
            raise ApplicationError(ErrorKind.FORBIDDEN)

    async def _require_admin(self, caller_id: UUID, caller_role: str) -> None:
        caller = await self.users.get_by_id(caller_id)
        if caller is None or caller_role != ADMIN_ROLE:
            raise ApplicationError(ErrorKind.FORBIDDEN)

    async def delete_user(self, caller_id: UUID, target_id: UUID, caller_role: str) -> None:
        """Soft-delete a user and kill all of their sessions. Admin only.

        Raises:
            ApplicationError: NOT_FOUND if the target is absent, FORBIDDEN
                unless the caller is an existing admin
        """
        target = await self.users.get_by_id(target_id)
        if target is None:
            raise ApplicationError(ErrorKind.NOT_FOUND, "User ID not found.")

        await self._require_admin(caller_id, caller_role)

        if await self.sessions.session_exists_for_user(target_id):
            await self.sessions.delete_sessions_by_user(target_id)

        await self.users.soft_delete_user(target_id)
        logger.info("user_deleted", user_id=str(target_id), by=str(caller_id))

    async def undelete_user(self, caller_id: UUID, target_id: UUID, caller_role: str) -> None:
        """Restore a soft-deleted user. Admin only.

        Raises:
            ApplicationError: NOT_FOUND unless a deleted target exists,
                FORBIDDEN unless the caller is an existing admin
        """
        if not await self.users.deleted_user_exists(target_id):
            raise ApplicationError(ErrorKind.NOT_FOUND, "User ID not found.")

        await self._require_admin(caller_id, caller_role)

        await self.users.undelete_user(target_id)
        logger.info("user_restored", user_id=str(target_id), by=str(caller_id))
