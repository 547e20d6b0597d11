"""Rate limiting adapters.

This package holds the limiter abstraction, the in-memory fixed-window
implementation, and the key functions that map requests to limiter keys.
"""

from window_limiter.adapters.rate_limit.base import (
    AbstractRateLimiter,
    KeyFunction,
    RateLimitStatus,
)
from window_limiter.adapters.rate_limit.in_memory import FixedWindowRateLimiter, PermitState
from window_limiter.adapters.rate_limit.keys import (
    api_key_or_address_key,
    client_address_key,
    get_key_function,
)

__all__ = [
    "AbstractRateLimiter",
    "FixedWindowRateLimiter",
    "KeyFunction",
    "PermitState",
    "RateLimitStatus",
    "api_key_or_address_key",
    "client_address_key",
    "get_key_function",
]
