"""Rate limiter interfaces.

The HTTP layer depends on this abstraction (not the concrete implementation)
so the storage backend can be swapped with minimal changes.
"""

from __future__ import annotations

import math
from abc import ABC, abstractmethod
from dataclasses import dataclass
from typing import Any, Protocol


class KeyFunction(Protocol):
    """Strategy that maps a request-like object to a rate limit key.

    Implementations must be pure: calling them has no side effects on the
    limiter and the same request always yields the same key.
    """

    def __call__(self, request: Any) -> str: ...


@dataclass(frozen=True)
class RateLimitStatus:
    """Advisory values reported to clients after an admission decision.

    Attributes:
        allowed: Whether the request was admitted.
        limit: Permits granted per key per window.
        remaining: Permits left for the key in the current window.
        reset_seconds: Whole seconds until the next window reset (>= 0).
    """

    allowed: bool
    limit: int
    remaining: int
    reset_seconds: int


class AbstractRateLimiter(ABC):
    """Interface for per-key rate limiters."""

    @property
    @abstractmethod
    def limit(self) -> int:
        """Permits granted per key per window."""

    @property
    @abstractmethod
    def window_seconds(self) -> float:
        """Length of one window in seconds."""

    @property
    @abstractmethod
    def key_func(self) -> KeyFunction:
        """Function mapping requests to keys for this limiter."""

    @abstractmethod
    def try_acquire(self, key: str) -> bool:
        """Take one permit for ``key`` if any is left.

        Args:
            key: Unique identifier (e.g., API key, client address).

        Returns:
            True when admitted, False when the key has no permits left.
        """
        raise NotImplementedError

    @abstractmethod
    def remaining_permits(self, key: str) -> int:
        """Return the permits left for ``key`` without consuming any."""
        raise NotImplementedError

    @abstractmethod
    def time_until_reset(self) -> float:
        """Return seconds until the next window reset, floored at zero."""
        raise NotImplementedError

    @abstractmethod
    def stop(self) -> None:
        """Release background resources. The limiter is unusable afterwards."""
        raise NotImplementedError

    def consume(self, key: str) -> RateLimitStatus:
        """Make an admission decision for ``key`` and report advisory values.

        The remaining count and reset time are read after the decision, so
        they reflect the permit this call may have taken.

        Args:
            key: Unique identifier (e.g., API key, client address).

        Returns:
            RateLimitStatus describing the decision.
        """

        allowed = self.try_acquire(key)
        return RateLimitStatus(
            allowed=allowed,
            limit=self.limit,
            remaining=self.remaining_permits(key),
            reset_seconds=max(0, math.ceil(self.time_until_reset())),
        )
