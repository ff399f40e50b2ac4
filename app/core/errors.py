"""Application-level exception types.

This module defines the note store's error taxonomy. Each error carries a
stable machine-readable code and a class-level ``retryable`` label so the API
can tell callers "try again shortly" apart from "this note is gone".
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import Any, ClassVar, NotRequired, TypedDict


class ErrorDetails(TypedDict, total=False):
    """Structured error context for observability and clients.

    Fields are optional; rate-limit hints (limit/remaining/reset_at) are
    attached to every retrieval error so clients can back off.
    """

    hint: str
    limit: int
    remaining: int
    reset_at: int
    retry_after: int
    blocked: bool
    max_value: int
    actual_value: int
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

    retryable: ClassVar[bool] = False

    def __post_init__(self) -> None:
        # Populate Exception args so str(error) is useful in logs/tracebacks.
        super().__init__(self.message)


class ValidationAppError(AppError):
    """Raised when input validation fails (bad shape, client-caused)."""


class NotFoundAppError(AppError):
    """Raised when no note exists under the requested identifier."""


class ExpiredAppError(AppError):
    """Raised when a note outlived its retention window."""


class RateLimitedAppError(AppError):
    """Raised when the client is over its window quota or banned."""

    retryable = True


class StoreUnavailableAppError(AppError):
    """Raised when the backing store is unreachable. Never held against the client."""

    retryable = True


class CorruptDataAppError(AppError):
    """Raised when a stored payload cannot be interpreted (server-side defect)."""
