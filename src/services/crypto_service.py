"""Seal/unseal: authenticated symmetric encryption keyed by a long-lived password.

Uses Fernet (AES-CBC + HMAC) from the cryptography library. The Fernet key
is derived from the password with PBKDF2 and a random per-seal salt, so the
sealed form is::

    Fe1*<urlsafe-b64 salt>*<fernet token>
"""

import base64
import json
import os
from typing import Any, Optional

import structlog
from cryptography.fernet import Fernet, InvalidToken
from cryptography.hazmat.primitives import hashes
from cryptography.hazmat.primitives.kdf.pbkdf2 import PBKDF2HMAC

logger = structlog.get_logger(__name__)

SEAL_PREFIX = "Fe1"
MIN_PASSWORD_LENGTH = 32
_SALT_SIZE = 16
_KDF_ITERATIONS = 10_000


class EncryptionService:
    """Seals JSON-serializable values into opaque strings and back."""

    def __init__(self, password: str):
        self.set_password(password)

    def set_password(self, password: str) -> None:
        """Replace the default sealing password.

        Raises:
            ValueError: If the password is shorter than 32 characters
        """
        if len(password) < MIN_PASSWORD_LENGTH:
            raise ValueError(
                f"Password must be at least {MIN_PASSWORD_LENGTH} characters long"
            )
        self._password = password

    @staticmethod
    def _fernet(password: str, salt: bytes) -> Fernet:
        kdf = PBKDF2HMAC(
            algorithm=hashes.SHA256(),
            length=32,
            salt=salt,
            iterations=_KDF_ITERATIONS,
        )
        key = kdf.derive(password.encode("utf-8"))
        return Fernet(base64.urlsafe_b64encode(key))

    def seal(self, data: Any, password: Optional[str] = None) -> str:
        """Encrypt and authenticate a JSON-serializable value.

        Args:
            data: Value to seal
            password: Optional password overriding the default

        Returns:
            Sealed string
        """
        salt = os.urandom(_SALT_SIZE)
        fernet = self._fernet(password or self._password, salt)
        token = fernet.encrypt(json.dumps(data).encode("utf-8"))
        encoded_salt = base64.urlsafe_b64encode(salt).decode("ascii")
        return f"{SEAL_PREFIX}*{encoded_salt}*{token.decode('ascii')}"

    def unseal(
        self,
        sealed: str,
        password: Optional[str] = None,
        ttl: Optional[int] = None,
    ) -> Any:
        """Decrypt a value produced by seal().

        Args:
            sealed: Sealed string
            password: Optional password overriding the default
            ttl: Optional maximum age of the seal in seconds

        Returns:
            The original value

        Raises:
            ValueError: If the seal is malformed, tampered with, expired, or
                the password is wrong
        """
        parts = sealed.split("*")
        if len(parts) != 3 or parts[0] != SEAL_PREFIX:
            raise ValueError("Invalid sealed data format")

        try:
            salt = base64.urlsafe_b64decode(parts[1].encode("ascii"))
            fernet = self._fernet(password or self._password, salt)
            raw = fernet.decrypt(parts[2].encode("ascii"), ttl=ttl)
        except (InvalidToken, ValueError) as e:
            raise ValueError("Invalid sealed data") from e

        return json.loads(raw.decode("utf-8"))

    def is_valid(self, sealed: str, password: Optional[str] = None) -> bool:
        """Return whether the sealed string can be unsealed."""
        try:
            self.unseal(sealed, password=password)
            return True
        except ValueError as e:
            logger.warning("unseal_failed", error=str(e))
            return False
