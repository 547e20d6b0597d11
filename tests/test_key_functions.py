"""Tests for request -> rate limit key strategies."""

from types import SimpleNamespace

import pytest
from starlette.datastructures import Headers

from window_limiter.adapters.rate_limit.keys import (
    api_key_or_address_key,
    client_address_key,
    get_key_function,
    hash_key,
)
from window_limiter.core.errors import ConfigurationAppError


def _request(host: str | None = "10.0.0.1", headers: dict | None = None) -> SimpleNamespace:
    client = SimpleNamespace(host=host) if host is not None else None
    return SimpleNamespace(client=client, headers=Headers(headers or {}))


def test_client_address_key_uses_host() -> None:
    assert client_address_key(_request("192.168.1.7")) == "192.168.1.7"


def test_client_address_key_without_client_falls_back() -> None:
    assert client_address_key(_request(host=None)) == "unknown"
    assert client_address_key(object()) == "unknown"


def test_api_key_strategy_prefers_api_key_header() -> None:
    request = _request(headers={"x-api-key": "secret-1"})

    assert api_key_or_address_key(request) == "api_key:secret-1"


def test_api_key_strategy_falls_back_to_address() -> None:
    assert api_key_or_address_key(_request("10.1.1.1")) == "ip:10.1.1.1"


def test_get_key_function_resolves_strategies() -> None:
    assert get_key_function("ip") is client_address_key
    assert get_key_function("api_key") is api_key_or_address_key


def test_get_key_function_rejects_unknown_strategy() -> None:
    with pytest.raises(ConfigurationAppError) as exc_info:
        get_key_function("cookie")

    assert exc_info.value.code == "invalid_rate_limit_config"
    assert exc_info.value.details == {"field": "key_strategy", "actual_value": "cookie"}


def test_hash_key_is_stable_and_does_not_leak_key() -> None:
    digest = hash_key("api_key:secret-1")

    assert digest == hash_key("api_key:secret-1")
    assert digest != hash_key("api_key:secret-2")
    assert len(digest) == 16
    assert "secret" not in digest
