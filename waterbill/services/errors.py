"""Application error taxonomy and response helpers."""

from enum import Enum
from typing import Any, Dict

from fastapi import status


class AppError(Exception):
    """Base application error."""

    def __init__(
        self,
        message: str,
        code: str,
        http_status: int = 400,
        details: Dict[str, Any] | None = None,
    ):
        """Initialize error."""
        self.message = message
        self.code = code
        self.http_status = http_status
        self.details = details or {}
        super().__init__(message)


class ValidationError(AppError):
    """Malformed input, rejected before any mutation."""

    def __init__(self, message: str):
        super().__init__(message, "validation_error", status.HTTP_400_BAD_REQUEST)


class NotFoundError(AppError):
    """Referenced row, bill, period or payment does not exist."""

    def __init__(self, message: str = "Not found"):
        super().__init__(message, "not_found", status.HTTP_404_NOT_FOUND)


class PeriodLockedError(AppError):
    """The billing period is FINAL; its rows can no longer change."""

    def __init__(self, period_key: str):
        super().__init__(
            f"Period {period_key} is locked",
            "period_locked",
            status.HTTP_423_LOCKED,
            {"period": period_key},
        )


class StateConflictError(AppError):
    """Operation conflicts with the current state of the entity."""

    def __init__(self, message: str):
        super().__init__(message, "state_conflict", status.HTTP_409_CONFLICT)


class InvalidTransitionError(AppError):
    """State change not present in the entity's transition table."""

    def __init__(self, entity: str, current: Enum, target: Enum):
        super().__init__(
            f"{entity} cannot move from {current.value} to {target.value}",
            "invalid_transition",
            status.HTTP_409_CONFLICT,
            {"entity": entity, "from": current.value, "to": target.value},
        )


class SettingMissingError(AppError):
    """No billing setting has been published yet."""

    def __init__(self, message: str = "Billing setting not found"):
        super().__init__(message, "setting_missing", status.HTTP_500_INTERNAL_SERVER_ERROR)


class PendingReadingsError(AppError):
    """Period cannot be finalized while rows are still pending."""

    def __init__(self, period_key: str, progress: Dict[str, int]):
        super().__init__(
            f"Period {period_key} still has {progress['pending']} of "
            f"{progress['total']} readings pending",
            "pending_readings",
            status.HTTP_400_BAD_REQUEST,
            {"period": period_key, "progress": progress},
        )
        self.progress = progress


class TokenErrorReason(str, Enum):
    """Distinct, externally observable magic link failures."""

    TOKEN_NOT_FOUND = "invalid_token"
    TOKEN_USED = "used"
    TOKEN_EXPIRED = "expired"
    INACTIVE_USER = "inactive_user"


class TokenError(AppError):
    """Magic link could not be redeemed."""

    def __init__(self, reason: TokenErrorReason):
        super().__init__(
            f"Token rejected: {reason.name}",
            reason.value,
            status.HTTP_401_UNAUTHORIZED,
            {"reason": reason.value},
        )
        self.reason = reason


def error_response(error: AppError) -> Dict[str, Any]:
    """Create a standardized error response."""
    body: Dict[str, Any] = {
        "ok": False,
        "error": {
            "code": error.code,
            "message": error.message,
        },
    }
    body.update(error.details)
    return body


__all__ = [
    "AppError",
    "ValidationError",
    "NotFoundError",
    "PeriodLockedError",
    "StateConflictError",
    "InvalidTransitionError",
    "SettingMissingError",
    "PendingReadingsError",
    "TokenError",
    "TokenErrorReason",
    "error_response",
]
