"""Application-level exception types and the credential refresh error taxonomy.

Two families live here:

- ``AppError`` and subclasses: raised in the HTTP layer and converted to JSON
  responses by the global exception handlers.
- ``RefreshError``: a *value* describing why a credential refresh failed. The
  refresh coordinator never raises these; it returns them inside its result so
  callers only ever observe the final outcome.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from enum import StrEnum
from typing import Any, NotRequired, TypedDict


class ErrorDetails(TypedDict, total=False):
    """Structured error context for observability and clients.

    Fields are optional to keep backward compatibility while encouraging
    consistent shapes across the codebase.
    """

    code: str
    message: str
    hint: str
    http_status: int
    retry_after: float
    remaining_attempts: int
    reset_at: float | None
    limit: int
    request_id: str
    context: NotRequired[dict[str, Any]]


@dataclass
class AppError(Exception):
    """Base error for application/domain failures.

    Attributes:
        code: Stable, machine-readable error code.
        message: Human-readable error message.
        details: Optional structured details for debugging/observability.
    """

    code: str
    message: str
    details: ErrorDetails | None = None

    def __post_init__(self) -> None:
        # Populate Exception args so str(error) is useful in logs/tracebacks.
        super().__init__(self.message)


class ValidationAppError(AppError):
    """Raised when input/config validation fails."""


class AuthenticationAppError(AppError):
    """Raised when authentication/authorization fails."""


class RateLimitedAppError(AppError):
    """Raised when a login attempt is throttled."""


class RefreshErrorType(StrEnum):
    """Classification of credential refresh failures."""

    NETWORK_ERROR = "network_error"
    TOKEN_EXPIRED = "token_expired"
    INVALID_REFRESH_TOKEN = "invalid_refresh_token"
    TOKEN_REFRESH_FAILED = "token_refresh_failed"
    ACCOUNT_DISABLED = "account_disabled"
    ACCOUNT_NOT_FOUND = "account_not_found"


NON_RETRYABLE_ERROR_TYPES: frozenset[RefreshErrorType] = frozenset(
    {
        RefreshErrorType.INVALID_REFRESH_TOKEN,
        RefreshErrorType.ACCOUNT_DISABLED,
        RefreshErrorType.ACCOUNT_NOT_FOUND,
    }
)

# Checked in order; first match wins. Messages are lowercased before matching.
_CLASSIFICATION_PATTERNS: tuple[tuple[RefreshErrorType, tuple[str, ...]], ...] = (
    (
        RefreshErrorType.INVALID_REFRESH_TOKEN,
        ("refresh_token_not_found", "invalid_refresh_token", "invalid refresh token"),
    ),
    (
        RefreshErrorType.ACCOUNT_DISABLED,
        ("account_disabled", "account disabled", "user_banned", "user is banned"),
    ),
    (
        RefreshErrorType.ACCOUNT_NOT_FOUND,
        ("account_not_found", "account not found", "user_not_found", "user not found"),
    ),
    (
        RefreshErrorType.TOKEN_EXPIRED,
        ("token_expired", "token expired", "jwt expired"),
    ),
    (
        RefreshErrorType.NETWORK_ERROR,
        ("network", "fetch", "timeout", "timed out", "connection"),
    ),
)


def classify_refresh_error(message: str | None) -> RefreshErrorType:
    """Map a provider error message to a ``RefreshErrorType``.

    Args:
        message: Error message reported by the identity provider.

    Returns:
        Matching error type; ``TOKEN_REFRESH_FAILED`` when nothing matches.

    Examples:
        >>> classify_refresh_error("Invalid Refresh Token: Already Used")
        <RefreshErrorType.INVALID_REFRESH_TOKEN: 'invalid_refresh_token'>
        >>> classify_refresh_error("something odd happened")
        <RefreshErrorType.TOKEN_REFRESH_FAILED: 'token_refresh_failed'>
    """
    lowered = (message or "").lower()
    for error_type, needles in _CLASSIFICATION_PATTERNS:
        if any(needle in lowered for needle in needles):
            return error_type
    return RefreshErrorType.TOKEN_REFRESH_FAILED


def is_retryable(error_type: RefreshErrorType) -> bool:
    """Return whether a failure of this type may succeed on a later attempt."""
    return error_type not in NON_RETRYABLE_ERROR_TYPES


@dataclass(frozen=True)
class RefreshError:
    """Structured description of a failed refresh.

    Attributes:
        type: Classified failure type.
        message: Provider (or coordinator) supplied message.
        details: Extra context, never containing credential material.
    """

    type: RefreshErrorType
    message: str
    details: dict[str, Any] = field(default_factory=dict)

    @property
    def retryable(self) -> bool:
        return is_retryable(self.type)

    @classmethod
    def from_message(cls, message: str | None, **details: Any) -> "RefreshError":
        """Build an error by classifying a provider message."""
        text = message or "Token refresh failed without specific error"
        return cls(type=classify_refresh_error(message), message=text, details=details)
