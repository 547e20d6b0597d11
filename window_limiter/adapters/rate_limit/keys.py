"""Key functions mapping incoming requests to rate limit keys.

Any object exposing ``client.host`` (Starlette/FastAPI ``Request``) works for
the address-based strategy; the API key strategy additionally reads
``headers``.
"""

from __future__ import annotations

import hashlib
from typing import Any

from window_limiter.adapters.rate_limit.base import KeyFunction
from window_limiter.core.errors import ConfigurationAppError

API_KEY_HEADER = "X-API-Key"
UNKNOWN_CLIENT = "unknown"


def client_address_key(request: Any) -> str:
    """Default key function: the caller's network address."""

    client = getattr(request, "client", None)
    host = getattr(client, "host", None)
    return host or UNKNOWN_CLIENT


def api_key_or_address_key(request: Any) -> str:
    """Key by API key when the client sends one, otherwise by address.

    Keys are namespaced so an API key can never collide with an address.
    """

    headers = getattr(request, "headers", None) or {}
    api_key = headers.get(API_KEY_HEADER)
    if api_key:
        return f"api_key:{api_key}"
    return f"ip:{client_address_key(request)}"


def hash_key(key: str) -> str:
    """Hash a rate limit key for logging without exposing client identities."""
    return hashlib.sha256(key.encode()).hexdigest()[:16]


_STRATEGIES: dict[str, KeyFunction] = {
    "ip": client_address_key,
    "api_key": api_key_or_address_key,
}


def get_key_function(strategy: str) -> KeyFunction:
    """Resolve a configured strategy name to its key function.

    Raises:
        ConfigurationAppError: If the strategy is unknown.
    """

    try:
        return _STRATEGIES[strategy]
    except KeyError:
        raise ConfigurationAppError(
            code="invalid_rate_limit_config",
            message=f"Unknown rate limit key strategy: {strategy!r}",
            details={"field": "key_strategy", "actual_value": strategy},
        ) from None
