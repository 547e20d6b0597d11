"""Application-level exception types.

This module defines domain errors used across the limiter, its adapters and
the HTTP layer, enabling consistent error handling, logging, and API responses.
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import Any, TypedDict


class ErrorDetails(TypedDict, total=False):
    """Structured error context for observability and clients.

    Fields are optional so each error only carries what is relevant.
    """

    field: str
    actual_value: Any


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


class ConfigurationAppError(ValidationAppError):
    """Raised when a rate limiter is constructed with an invalid configuration."""


class LimiterStoppedError(AppError):
    """Raised when a stopped rate limiter is used for admission or reporting."""
