"""Authentication service for JWT tokens and password hashing."""

import time
from typing import Any, Optional
from uuid import uuid4

import bcrypt
import jwt
import structlog

from src.config import Settings, get_settings

logger = structlog.get_logger(__name__)

# Constants
JWT_ALGORITHM = "HS256"
BCRYPT_ROUNDS = 10


class TokenExpiredError(ValueError):
    """The access token is older than the allowed maximum age."""


class AuthService:
    """Service for password hashing and JWT issuance/verification.

    Access and refresh tokens are signed with distinct keys. Neither carries
    an `exp` claim: access token age is enforced from `iat` when a bearer
    token is validated, and refresh tokens live as long as their session.
    """

    def __init__(self, settings: Optional[Settings] = None):
        self.settings = settings or get_settings()

    def hash_password(self, password: str) -> str:
        """Hash a password using bcrypt.

        Args:
            password: Plain-text password to hash

        Returns:
            Bcrypt hash string
        """
        salt = bcrypt.gensalt(rounds=BCRYPT_ROUNDS)
        hashed = bcrypt.hashpw(password.encode("utf-8"), salt)
        return hashed.decode("utf-8")

    def verify_password(self, password: str, password_hash: str) -> bool:
        """Verify a password against a bcrypt hash.

        Args:
            password: Plain-text password to check
            password_hash: Bcrypt hash to verify against

        Returns:
            True if the password matches, False otherwise
        """
        try:
            return bcrypt.checkpw(
                password.encode("utf-8"),
                password_hash.encode("utf-8"),
            )
        except ValueError:
            logger.warning("password_hash_malformed")
            return False

    @staticmethod
    def _complete_payload(payload: dict[str, Any]) -> dict[str, Any]:
        return {
            **payload,
            "iat": int(time.time()),
            "jti": str(uuid4()),
        }

    def create_access_token(self, payload: dict[str, Any]) -> str:
        """Sign an access token carrying `payload` plus `iat` and `jti`.

        Args:
            payload: Claims, normally `{"id": ..., "role": ...}`

        Returns:
            Encoded JWT string
        """
        return jwt.encode(
            self._complete_payload(payload),
            self.settings.access_jwt_key,
            algorithm=JWT_ALGORITHM,
        )

    def create_refresh_token(self, payload: dict[str, Any]) -> str:
        """Sign a refresh token carrying `payload` plus `iat` and `jti`."""
        return jwt.encode(
            self._complete_payload(payload),
            self.settings.refresh_jwt_key,
            algorithm=JWT_ALGORITHM,
        )

    def verify_token(self, token: str) -> dict[str, Any]:
        """Verify a refresh token's signature and return its payload.

        Only the signature is checked; the caller decides on expiry.

        Raises:
            jwt.InvalidTokenError: If the token is malformed or the signature
                does not match the refresh key
        """
        return jwt.decode(
            token,
            self.settings.refresh_jwt_key,
            algorithms=[JWT_ALGORITHM],
            options={"verify_exp": False, "verify_iat": False},
        )

    def validate_access_token(self, token: str) -> dict[str, Any]:
        """Decode a bearer access token and enforce its maximum age.

        Args:
            token: Encoded JWT string

        Returns:
            Decoded payload dict with id, role, iat, jti

        Raises:
            TokenExpiredError: If the token is older than access_token_max_age
            ValueError: If the token is invalid or malformed
        """
        try:
            payload = jwt.decode(
                token,
                self.settings.access_jwt_key,
                algorithms=[JWT_ALGORITHM],
                options={"verify_exp": False, "verify_iat": False},
            )
        except jwt.InvalidTokenError as e:
            raise ValueError(f"Invalid access token: {e}")

        issued_at = payload.get("iat")
        if not isinstance(issued_at, (int, float)):
            raise ValueError("Invalid access token: missing iat")

        if time.time() - issued_at > self.settings.access_token_max_age:
            raise TokenExpiredError("Access token has expired")

        return payload
