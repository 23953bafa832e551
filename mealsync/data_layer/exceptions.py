"""Structured error types for plan synchronisation.

Every failure that crosses the remote-store boundary is raised as a
PlanSyncError subclass carrying a machine-readable code, a message and a
context dictionary, so callers can report it or serialise it for an API.

ERROR FLOW:
    Local apply        → never raises for a missing target (no-op)
    Remote call        → NetworkError / NotFoundError
    Response decoding  → ValidationError
    Swap session       → StaleSessionError (response arrived too late)
"""

from enum import Enum
from typing import Any, Dict, Optional


class SyncErrorCode(Enum):
    """Error codes for the plan synchronisation pipeline."""

    NOT_FOUND = "NOT_FOUND"
    NETWORK_FAILURE = "NETWORK_FAILURE"
    TIMEOUT = "TIMEOUT"
    RATE_LIMITED = "RATE_LIMITED"
    VALIDATION_FAILURE = "VALIDATION_FAILURE"
    STALE_SESSION = "STALE_SESSION"


class PlanSyncError(Exception):
    """Base exception for all plan synchronisation errors.

    Attributes:
        code: SyncErrorCode identifying the error type
        message: Human-readable error description
        context: Dictionary of relevant error context (plan id, indices, ...)
    """

    def __init__(
        self,
        code: SyncErrorCode,
        message: str,
        context: Optional[Dict[str, Any]] = None
    ):
        self.code = code
        self.message = message
        self.context = context or {}
        super().__init__(f"[{code.value}] {message}")

    def __str__(self) -> str:
        return f"[{self.code.value}] {self.message}"

    def __repr__(self) -> str:
        return (
            f"{self.__class__.__name__}("
            f"code={self.code!r}, "
            f"message={self.message!r}, "
            f"context={self.context!r})"
        )

    def to_dict(self) -> Dict[str, Any]:
        """Convert error to dictionary for API responses.

        Returns:
            Dictionary with error code, message, and context
        """
        return {
            "error_code": self.code.value,
            "message": self.message,
            "context": self.context
        }


class NotFoundError(PlanSyncError):
    """Raised when a plan, day or meal does not exist.

    Controller mutations treat a missing local target as a no-op and never
    raise this; it surfaces from the store and from the alternatives broker.
    """

    def __init__(self, message: str, context: Optional[Dict[str, Any]] = None):
        super().__init__(SyncErrorCode.NOT_FOUND, message, context)


class NetworkError(PlanSyncError):
    """Raised on transport failures, timeouts and unusable HTTP statuses.

    Context includes, where known:
        - operation: the store operation that failed
        - status_code: HTTP status returned by the store
    """

    def __init__(
        self,
        message: str,
        context: Optional[Dict[str, Any]] = None,
        code: SyncErrorCode = SyncErrorCode.NETWORK_FAILURE
    ):
        super().__init__(code, message, context)


class ValidationError(PlanSyncError):
    """Raised when the store returns a payload that cannot be decoded.

    Example: an applied alternative comes back without any recipe.
    """

    def __init__(self, message: str, context: Optional[Dict[str, Any]] = None):
        super().__init__(SyncErrorCode.VALIDATION_FAILURE, message, context)


class StaleSessionError(PlanSyncError):
    """Raised when a swap-session response belongs to a superseded session."""

    def __init__(self, slot: str, token: int, active_token: int):
        super().__init__(
            SyncErrorCode.STALE_SESSION,
            f"Swap session for {slot} was superseded; response discarded",
            {"slot": slot, "token": token, "active_token": active_token}
        )
        self.slot = slot
        self.token = token
        self.active_token = active_token
