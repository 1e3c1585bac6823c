"""Error taxonomy for PitchMatch domain operations.

Every rejected operation raises a :class:`PitchMatchError` subclass carrying
an :class:`ErrorKind` (which the request boundary maps to a status) and a
stable machine-readable ``code``.

Example:
    >>> from pitchmatch.errors import ConflictError
    >>> err = ConflictError("Connection already exists", code="CONNECTION_ALREADY_EXISTS")
    >>> err.kind
    <ErrorKind.CONFLICT: 'conflict'>
    >>> err.to_dict()["code"]
    'CONNECTION_ALREADY_EXISTS'
"""

from enum import StrEnum
from typing import Any

from pydantic import ValidationError


class ErrorKind(StrEnum):
    """Distinguishable categories of failure."""

    UNAUTHENTICATED = "unauthenticated"
    NOT_FOUND = "not_found"
    INVALID = "invalid"
    FORBIDDEN = "forbidden"
    CONFLICT = "conflict"
    INTERNAL = "internal"


class PitchMatchError(Exception):
    """Base class for all domain errors.

    Attributes:
        kind: Failure category
        code: Stable machine-readable error code
        message: Human-readable description
        details: Optional extra context for the boundary
    """

    kind: ErrorKind = ErrorKind.INTERNAL
    default_code: str = "INTERNAL_ERROR"

    def __init__(
        self,
        message: str,
        code: str | None = None,
        details: dict[str, Any] | None = None,
    ):
        super().__init__(message)
        self.message = message
        self.code = code or self.default_code
        self.details = details or {}

    def to_dict(self) -> dict[str, Any]:
        """Serialize the error for a response body."""
        payload: dict[str, Any] = {
            "kind": str(self.kind),
            "code": self.code,
            "message": self.message,
        }
        if self.details:
            payload["details"] = self.details
        return payload

    def __repr__(self) -> str:
        return f"{type(self).__name__}(code={self.code!r}, message={self.message!r})"


class UnauthenticatedError(PitchMatchError):
    """No authenticated caller."""

    kind = ErrorKind.UNAUTHENTICATED
    default_code = "UNAUTHENTICATED"


class NotFoundError(PitchMatchError):
    """Referenced entity does not exist."""

    kind = ErrorKind.NOT_FOUND
    default_code = "NOT_FOUND"


class ProfileNotFoundError(NotFoundError):
    """Authenticated caller has no profile yet."""

    default_code = "PROFILE_NOT_FOUND"


class InvalidInputError(PitchMatchError):
    """Malformed or disallowed input."""

    kind = ErrorKind.INVALID
    default_code = "INVALID_INPUT"

    @classmethod
    def from_validation_error(cls, exc: ValidationError) -> "InvalidInputError":
        """Convert a pydantic ValidationError into a domain error."""
        fields = [".".join(str(part) for part in err["loc"]) for err in exc.errors()]
        first = exc.errors()[0]["msg"] if exc.errors() else "Invalid input"
        return cls(first, details={"fields": fields})


class InvalidIdError(InvalidInputError):
    """Identifier that does not parse as a positive integer."""

    default_code = "INVALID_ID"


class ForbiddenError(PitchMatchError):
    """Caller is not allowed to act on the entity."""

    kind = ErrorKind.FORBIDDEN
    default_code = "FORBIDDEN"


class ConflictError(PitchMatchError):
    """Operation would violate a uniqueness rule."""

    kind = ErrorKind.CONFLICT
    default_code = "CONFLICT"


class InvalidStateError(ConflictError):
    """Entity is not in a state that permits the operation."""

    default_code = "INVALID_STATE"


class InternalError(PitchMatchError):
    """Unexpected storage or runtime failure."""

    kind = ErrorKind.INTERNAL
    default_code = "INTERNAL_ERROR"


__all__ = [
    "ErrorKind",
    "PitchMatchError",
    "UnauthenticatedError",
    "NotFoundError",
    "ProfileNotFoundError",
    "InvalidInputError",
    "InvalidIdError",
    "ForbiddenError",
    "ConflictError",
    "InvalidStateError",
    "InternalError",
]
