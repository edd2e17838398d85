"""Application-level exception types.

This module defines domain errors used across services/adapters, enabling
consistent error handling, logging, and API responses.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import Any, TypedDict


class ErrorDetails(TypedDict, total=False):
    """Structured error context for observability.

    Details are logged, never returned to clients.
    """

    visitor_id: int
    retry_after: int
    limit: int
    remaining: int
    reset_at: int
    context: dict[str, Any]


@dataclass
class AppError(Exception):
    """Base error for application/domain failures.

    Attributes:
        code: Stable, machine-readable error code.
        message: Human-readable error message, sent to the client.
        details: Optional structured details for debugging/observability.
        headers: Extra response headers (e.g. Retry-After).
    """

    code: str
    message: str
    details: ErrorDetails | None = None
    headers: dict[str, str] = field(default_factory=dict)

    def __post_init__(self) -> None:
        # Populate Exception args so str(error) is useful in logs/tracebacks.
        super().__init__(self.message)


class DuplicateNickError(AppError):
    """Raised when a nick is already registered (storage unique constraint)."""


class StoreError(AppError):
    """Raised when the visitor store fails for any other reason."""


class RateLimitExceededError(AppError):
    """Raised when a client has used up its registration budget."""


class UnauthorizedError(AppError):
    """Raised when an admin request lacks the configured bearer token."""


class VisitorNotFoundError(AppError):
    """Raised when an admin operation targets an unknown visitor id."""
