"""Session lifecycle: creation at login, refresh-token validation, logout."""

from datetime import datetime, timedelta, timezone
from uuid import UUID

import jwt
import structlog

from src.config import Settings
from src.errors import ApplicationError, ErrorKind, InfrastructureError
from src.models.session import TokenPair
from src.services.auth_service import AuthService
from src.services.crypto_service import EncryptionService
from src.services.session_store import SessionStore
from src.services.user_service import UserService

logger = structlog.get_logger(__name__)


class SessionService:
    """Creates, reads, validates and deletes login sessions.

    A session stores the refresh token sealed; the plaintext token only
    ever lives in the client's cookie.
    """

    def __init__(
        self,
        settings: Settings,
        sessions: SessionStore,
        users: UserService,
        auth_service: AuthService,
        encryption: EncryptionService,
    ):
        self.settings = settings
        self.sessions = sessions
        self.users = users
        self.auth_service = auth_service
        self.encryption = encryption

    async def create_session(self, tokens: TokenPair, user_agent: str) -> tuple[str, UUID]:
        """Persist a session for a freshly issued token pair.

        Args:
            tokens: Token pair from login
            user_agent: Client user agent recorded on the session

        Returns:
            Tuple of (plaintext refresh token, session id)
        """
        expires_at = datetime.now(timezone.utc) + timedelta(seconds=self.settings.session_ttl)
        sealed = self.encryption.seal(tokens.refresh_token)

        session_id = await self.sessions.add_session(
            user_id=tokens.user_id,
            token=sealed,
            user_agent=user_agent,
            expires_at=expires_at,
        )

        logger.info(
            "session_created",
            session_id=str(session_id),
            user_id=str(tokens.user_id),
            expires_at=expires_at.isoformat(),
        )
        return tokens.refresh_token, session_id

    async def get_session(self, session_id: UUID) -> tuple[str, str]:
        """Load a session and unseal its refresh token.

        An expired session triggers a cleanup of every expired session.
        With `reject_expired_sessions` the expired session is then reported
        as not found; otherwise its token is still returned.

        Returns:
            Tuple of (refresh token, owning user's role)

        Raises:
            ApplicationError: NOT_FOUND if the session is missing (or expired
                and rejected), FORBIDDEN if the owning user is gone
        """
        session = await self.sessions.get_session(session_id)
        if session is None:
            raise ApplicationError(ErrorKind.NOT_FOUND, "Session expired or not found.")

        user = await self.users.get_by_id(session.user_id)
        if user is None:
            raise ApplicationError(ErrorKind.FORBIDDEN)

        expires_at = session.expires_at
        if expires_at.tzinfo is None:
            expires_at = expires_at.replace(tzinfo=timezone.utc)

        if expires_at <= datetime.now(timezone.utc):
            logger.info("session_expired", session_id=str(session_id))
            try:
                await self.sessions.delete_expired_sessions()
            except InfrastructureError as e:
                logger.warning("expired_session_cleanup_failed", error=str(e))
            if self.settings.reject_expired_sessions:
                raise ApplicationError(ErrorKind.NOT_FOUND, "Session expired or not found.")

        try:
            token = self.encryption.unseal(session.token)
        except ValueError:
            logger.warning("session_token_unseal_failed", session_id=str(session_id))
            raise ApplicationError(ErrorKind.FORBIDDEN)

        return token, user.role.value

    def validate_token(
        self, role: str, presented_token: str, session_token: str
    ) -> tuple[str, str]:
        """Check a presented refresh token against its session and mint an access token.

        Args:
            role: Role of the session's owner
            presented_token: Refresh token from the client's cookie
            session_token: Refresh token unsealed from the session

        Returns:
            Tuple of (new access token, role)

        Raises:
            ApplicationError: FORBIDDEN on token mismatch, bad signature or
                role mismatch
        """
        if presented_token != session_token:
            raise ApplicationError(ErrorKind.FORBIDDEN)

        try:
            payload = self.auth_service.verify_token(presented_token)
        except jwt.InvalidTokenError:
            raise ApplicationError(ErrorKind.FORBIDDEN)

        if payload.get("role") != role:
            raise ApplicationError(ErrorKind.FORBIDDEN)

        access_token = self.auth_service.create_access_token(
            {"id": payload.get("id"), "role": payload["role"]}
        )
        return access_token, payload["role"]

    async def delete_session(self, session_id: UUID, user_id: UUID) -> None:
        """Delete a session owned by the caller.

        Raises:
            ApplicationError: NOT_FOUND if the session is missing, FORBIDDEN
                if it belongs to another user
        """
        session = await self.sessions.get_session(session_id)
        if session is None:
            raise ApplicationError(ErrorKind.NOT_FOUND, "Session ID not found.")

        if session.user_id != user_id:
            raise ApplicationError(ErrorKind.FORBIDDEN)

        await self.sessions.delete_session(session_id, user_id)
