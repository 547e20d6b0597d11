"""Pytest configuration and fixtures shared across all test modules.

This file is automatically loaded by pytest before running any tests.
It sets environment defaults before settings are imported and makes sure no
limiter refresh thread outlives the test that created it.
"""

import os
from typing import Callable, Iterator

# CRITICAL: Set this before any imports that might load settings
os.environ["APP_ENV"] = "testing"
os.environ.setdefault("APP_RATE_LIMIT_ENABLED", "true")
os.environ.setdefault("APP_RATE_LIMIT_REQUESTS", "60")
os.environ.setdefault("APP_RATE_LIMIT_WINDOW_SECONDS", "60")
os.environ.setdefault("LOG_FORMAT", "json")

import pytest

from window_limiter.adapters.rate_limit.in_memory import FixedWindowRateLimiter
from window_limiter.core.rate_limit import shutdown_rate_limiter


@pytest.fixture
def make_limiter() -> Iterator[Callable[..., FixedWindowRateLimiter]]:
    """Factory for limiters that are stopped automatically after the test."""

    created: list[FixedWindowRateLimiter] = []

    def _make(**kwargs) -> FixedWindowRateLimiter:
        kwargs.setdefault("limit", 3)
        kwargs.setdefault("window_seconds", 3600)
        limiter = FixedWindowRateLimiter(**kwargs)
        created.append(limiter)
        return limiter

    yield _make

    for limiter in created:
        limiter.stop()


@pytest.fixture(autouse=True)
def _reset_process_limiter() -> Iterator[None]:
    """Drop the process-wide limiter so tests never share quotas."""

    shutdown_rate_limiter()
    yield
    shutdown_rate_limiter()
