"""Application-level exception types.

Domain errors used across the HTTP layer, enabling consistent error handling,
logging, and API responses.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import TypedDict


class ErrorDetails(TypedDict, total=False):
    """Structured error context for observability and clients."""

    hint: str
    policy: str
    limit: int
    reset_at_ms: int
    retry_after: int
    field: str


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
    """Raised when request input validation fails."""


class AuthenticationAppError(AppError):
    """Raised when a route requires an authenticated principal and none is present."""


@dataclass
class RateLimitAppError(AppError):
    """Raised when a rate limit policy rejects a request.

    Attributes:
        headers: Response headers describing the exhausted quota.
    """

    headers: dict[str, str] = field(default_factory=dict)
