"""
teamforge/errors.py

Error taxonomy for the membership workflow.

Two layers:
- MembershipError / MembershipResult: domain outcomes returned (never raised)
  by the membership engine and the service layer.
- Store exceptions: raised by the storage layer and translated into
  MembershipResult values by the service layer.

The HTTP layer is the only place where a MembershipResult becomes an
HTTPException (see routes_projects.raise_for_result).
"""

from __future__ import annotations

from dataclasses import dataclass
from enum import Enum
from typing import Any, Dict, Generic, Optional, TypeVar


class MembershipError(str, Enum):
    """Discriminated failure kinds surfaced to callers."""
    NOT_AUTHENTICATED = "NotAuthenticated"
    SELF_JOIN_NOT_ALLOWED = "SelfJoinNotAllowed"
    ALREADY_REQUESTED = "AlreadyRequested"
    NOT_AUTHORIZED = "NotAuthorized"
    ALREADY_DECIDED = "AlreadyDecided"
    NOT_FOUND = "NotFound"
    STORE_UNAVAILABLE = "StoreUnavailable"


# HTTP status for each failure kind
ERROR_STATUS: Dict[MembershipError, int] = {
    MembershipError.NOT_AUTHENTICATED: 401,
    MembershipError.SELF_JOIN_NOT_ALLOWED: 400,
    MembershipError.ALREADY_REQUESTED: 409,
    MembershipError.NOT_AUTHORIZED: 403,
    MembershipError.ALREADY_DECIDED: 409,
    MembershipError.NOT_FOUND: 404,
    MembershipError.STORE_UNAVAILABLE: 503,
}

DEFAULT_MESSAGES: Dict[MembershipError, str] = {
    MembershipError.NOT_AUTHENTICATED: "Sign in required",
    MembershipError.SELF_JOIN_NOT_ALLOWED: "You already own this project",
    MembershipError.ALREADY_REQUESTED: "Request already exists",
    MembershipError.NOT_AUTHORIZED: "Only the project owner can decide requests",
    MembershipError.ALREADY_DECIDED: "Request has already been decided",
    MembershipError.NOT_FOUND: "Not found",
    MembershipError.STORE_UNAVAILABLE: "Service temporarily unavailable - please try again",
}


def is_retryable(error: MembershipError) -> bool:
    """Only transient store failures are worth retrying."""
    return error == MembershipError.STORE_UNAVAILABLE


T = TypeVar("T")


@dataclass(frozen=True)
class MembershipResult(Generic[T]):
    """
    Either a success value or a failure kind.

    Build with MembershipResult.success(...) / MembershipResult.failure(...).
    """
    value: Optional[T] = None
    error: Optional[MembershipError] = None
    message: Optional[str] = None

    @classmethod
    def success(cls, value: T) -> "MembershipResult[T]":
        return cls(value=value)

    @classmethod
    def failure(cls, error: MembershipError, message: Optional[str] = None) -> "MembershipResult[T]":
        return cls(error=error, message=message or DEFAULT_MESSAGES[error])

    @property
    def ok(self) -> bool:
        return self.error is None

    @property
    def retryable(self) -> bool:
        return self.error is not None and is_retryable(self.error)

    def to_error_detail(self) -> Dict[str, Any]:
        """JSON-safe error payload for API responses."""
        return {
            "error": self.error.value if self.error else None,
            "message": self.message,
            "retryable": self.retryable,
        }


# ============================================================================
# Store exceptions
# ============================================================================

class StoreError(Exception):
    """Base class for storage-layer failures."""
    pass


class DuplicateRequestError(StoreError):
    """Raised when the (project_id, user_id) uniqueness constraint rejects an insert."""
    pass


class PreconditionFailedError(StoreError):
    """Raised when a conditional status update finds the row in an unexpected state."""
    pass


class StoreUnavailableError(StoreError):
    """Raised on transient I/O failures talking to the database."""
    pass
