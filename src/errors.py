"""Application and infrastructure error types.

Application errors carry a stable status code and message that are returned
to the client verbatim. Infrastructure errors wrap database and cache driver
failures; they are logged with detail and surfaced as a generic 500.
"""

from contextlib import asynccontextmanager
from enum import Enum
from typing import AsyncIterator, Optional


class ErrorKind(Enum):
    """Application error variants with their HTTP status and default message."""

    BAD_REQUEST = (400, "Bad Request.")
    UNAUTHORIZED = (401, "Unauthorized.")
    FORBIDDEN = (403, "Forbidden.")
    NOT_FOUND = (404, "Resource not found")
    CONFLICT = (409, "Conflict.")
    UNSUPPORTED_MEDIA_TYPE = (415, "Unsupported Media Type.")
    INVARIANT_VALIDATION = (422, "Invalid Validation")

    @property
    def status_code(self) -> int:
        return self.value[0]

    @property
    def default_message(self) -> str:
        return self.value[1]


class ApplicationError(Exception):
    """A domain error surfaced to the client with its status and message.

    Attributes:
        kind: Error variant, which fixes the HTTP status code
        message: Client-facing message
        details: Field-level validation details (invariant errors only)
    """

    def __init__(
        self,
        kind: ErrorKind,
        message: Optional[str] = None,
        details: Optional[list[dict]] = None,
    ):
        self.kind = kind
        self.message = message or kind.default_message
        self.details = details
        super().__init__(self.message)

    @property
    def status_code(self) -> int:
        return self.kind.status_code

    def to_response(self) -> dict:
        """Build the JSON body for this error."""
        body = {"status": "fail", "message": self.message}
        if self.details is not None:
            body["details"] = self.details
        return body

    def __repr__(self) -> str:
        return f"ApplicationError({self.kind.name}, {self.message!r})"


class InfrastructureError(Exception):
    """Base class for database and cache failures."""


class PostgresError(InfrastructureError):
    """A PostgreSQL operation failed."""


class PostgresCreationError(PostgresError):
    """An INSERT did not return the created row."""


class PostgresNotFoundError(PostgresError):
    """A mutation matched no rows."""

    def __init__(self, message: str = "Data not found"):
        super().__init__(message)


class PostgresUniqueViolationError(PostgresError):
    """An INSERT or UPDATE collided with a unique index."""


class PostgresNoUpdateFieldsError(PostgresError):
    """An UPDATE was requested without any column to set."""

    def __init__(self):
        super().__init__("No fields to update")


class RedisError(InfrastructureError):
    """A Redis operation failed."""


@asynccontextmanager
async def postgres_errors() -> AsyncIterator[None]:
    """Wrap driver exceptions raised inside the block in PostgresError."""
    try:
        yield
    except (PostgresError, RedisError):
        raise
    except Exception as e:
        raise PostgresError(f"Postgres error: {e}") from e


@asynccontextmanager
async def redis_errors() -> AsyncIterator[None]:
    """Wrap driver exceptions raised inside the block in RedisError."""
    try:
        yield
    except RedisError:
        raise
    except Exception as e:
        raise RedisError(f"Redis error: {e}") from e
