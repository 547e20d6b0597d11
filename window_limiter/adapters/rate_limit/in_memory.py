"""In-memory fixed-window rate limiter.

Notes:
- Per-process only: running multiple workers multiplies the effective limit.
- Thread-safe: each key has its own lock; a store lock is held only while the
  key -> state mapping itself changes.
- A background thread resets every key once per window and evicts keys that
  were not used during the elapsed window.
"""

from __future__ import annotations

import logging
import math
import threading
import time
from dataclasses import dataclass, field
from typing import Any, Callable

from window_limiter.adapters.rate_limit.base import AbstractRateLimiter, KeyFunction
from window_limiter.adapters.rate_limit.keys import client_address_key, hash_key
from window_limiter.core.errors import ConfigurationAppError, LimiterStoppedError

logger = logging.getLogger(__name__)


@dataclass(eq=False)
class PermitState:
    """Permits left for one key in the current window.

    ``remaining`` is only read or written while ``lock`` is held. ``evicted``
    is set (under ``lock``) when the refresh removes the state from the store,
    so acquirers still holding a reference know to look the key up again.
    """

    remaining: int
    lock: threading.Lock = field(default_factory=threading.Lock, repr=False)
    evicted: bool = False


def _invalid_config(field_name: str, message: str, value: Any) -> ConfigurationAppError:
    return ConfigurationAppError(
        code="invalid_rate_limit_config",
        message=message,
        details={"field": field_name, "actual_value": value},
    )


class FixedWindowRateLimiter(AbstractRateLimiter):
    """Rate limiter granting a fixed number of permits per key per window.

    Every key starts with ``limit`` permits. Each admitted request takes one.
    Once per ``window_seconds`` a background thread gives every used key its
    full quota back and drops keys that were never used in the elapsed
    window, so memory stays bounded to active clients.

    The window boundary is the refresh thread actually firing, never a clock
    comparison at acquire time.

    Important:
        The limiter starts its refresh thread on construction and must be
        released with ``stop()`` (or by using it as a context manager). A
        stopped limiter raises ``LimiterStoppedError`` on every operation.
    """

    def __init__(
        self,
        *,
        limit: int,
        window_seconds: float,
        key_func: KeyFunction = client_address_key,
        clock: Callable[[], float] = time.monotonic,
    ) -> None:
        """Initialize the limiter and start the window refresh thread.

        Args:
            limit: Permits granted per key per window.
            window_seconds: Window length in seconds.
            key_func: Maps a request-like object to its key.
            clock: Monotonic time source used for reset reporting.

        Raises:
            ConfigurationAppError: If any argument is invalid.
        """
        if isinstance(limit, bool) or not isinstance(limit, int) or limit < 1:
            raise _invalid_config("limit", "limit must be an integer >= 1", limit)
        if (
            isinstance(window_seconds, bool)
            or not isinstance(window_seconds, (int, float))
            or not math.isfinite(window_seconds)
            or window_seconds <= 0
        ):
            raise _invalid_config(
                "window_seconds", "window_seconds must be a finite number > 0", window_seconds
            )
        if not callable(key_func):
            raise _invalid_config("key_func", "key_func must be callable", repr(key_func))

        self._limit = limit
        self._window_seconds = float(window_seconds)
        self._key_func = key_func
        self._clock = clock

        self._store_lock = threading.Lock()
        self._permits: dict[str, PermitState] = {}
        self._last_reset = clock()

        self._lifecycle_lock = threading.Lock()
        self._stopped = False
        self._stop_event = threading.Event()
        self._thread = threading.Thread(
            target=self._run_refresh_loop,
            name="rate-limit-window-refresh",
            daemon=True,
        )
        self._thread.start()

        logger.info(
            "rate_limit.limiter_started",
            extra={"limit": limit, "window_s": self._window_seconds},
        )

    def __repr__(self) -> str:  # pragma: no cover - representation only
        return (
            f"FixedWindowRateLimiter(limit={self._limit}, "
            f"window_seconds={self._window_seconds}, keys={len(self._permits)}, "
            f"stopped={self._stopped})"
        )

    def __enter__(self) -> FixedWindowRateLimiter:
        return self

    def __exit__(self, *exc_info: object) -> None:
        self.stop()

    def __contains__(self, key: object) -> bool:
        return key in self._permits

    def __len__(self) -> int:
        return len(self._permits)

    @property
    def limit(self) -> int:
        return self._limit

    @property
    def window_seconds(self) -> float:
        return self._window_seconds

    @property
    def key_func(self) -> KeyFunction:
        return self._key_func

    @property
    def last_reset(self) -> float:
        """Clock value of the most recent window reset (or construction)."""
        return self._last_reset

    @property
    def stopped(self) -> bool:
        return self._stopped

    def try_acquire(self, key: str) -> bool:
        """Take one permit for ``key`` if any is left.

        The test and the decrement happen under the key's lock, so concurrent
        callers can never both take the last permit.

        Returns:
            True when admitted, False (without mutation) when exhausted.
        """
        self._ensure_running()
        while True:
            state = self._get_or_create_state(key)
            with state.lock:
                if state.evicted:
                    continue
                if state.remaining > 0:
                    state.remaining -= 1
                    return True
                return False

    def try_acquire_request(self, request: Any) -> bool:
        """Derive the key for ``request`` and take one permit for it."""
        return self.try_acquire(self._key_func(request))

    def remaining_permits(self, key: str) -> int:
        """Return the permits left for ``key``.

        Creates the key at full permits when it is not tracked yet. Meant for
        reporting only; admission must go through ``try_acquire``.
        """
        self._ensure_running()
        while True:
            state = self._get_or_create_state(key)
            with state.lock:
                if not state.evicted:
                    return state.remaining

    def remaining_for_request(self, request: Any) -> int:
        return self.remaining_permits(self._key_func(request))

    def time_until_reset(self) -> float:
        """Seconds until the next scheduled window reset, floored at zero."""
        self._ensure_running()
        return max(0.0, (self._last_reset + self._window_seconds) - self._clock())

    def refresh(self) -> None:
        """Close the current window immediately.

        Runs the same sweep as the background thread: used keys get their
        full quota back and unused keys are evicted.
        """
        self._ensure_running()
        self._refresh_window()

    def stop(self, timeout: float | None = 5.0) -> None:
        """Stop the refresh thread. Safe to call more than once.

        Args:
            timeout: Maximum seconds to wait for an in-flight sweep to finish.
        """
        with self._lifecycle_lock:
            if self._stopped:
                return
            self._stopped = True
            self._stop_event.set()

        if self._thread is not threading.current_thread():
            self._thread.join(timeout)

        logger.info("rate_limit.limiter_stopped", extra={"keys": len(self._permits)})

    def _ensure_running(self) -> None:
        if self._stopped:
            raise LimiterStoppedError(
                code="limiter_stopped",
                message="Rate limiter has been stopped and cannot be used",
            )

    def _get_or_create_state(self, key: str) -> PermitState:
        state = self._permits.get(key)
        if state is not None:
            return state

        with self._store_lock:
            state = self._permits.get(key)
            if state is None:
                state = PermitState(remaining=self._limit)
                self._permits[key] = state
            return state

    def _run_refresh_loop(self) -> None:
        """Fire the window refresh at a fixed rate until stopped."""

        deadline = time.monotonic() + self._window_seconds
        while not self._stop_event.wait(max(0.0, deadline - time.monotonic())):
            self._refresh_window()
            deadline += self._window_seconds
            now = time.monotonic()
            if deadline <= now:
                # Sweep overran a whole window; skip the missed firings.
                deadline = now + self._window_seconds

    def _refresh_window(self) -> None:
        self._last_reset = self._clock()

        with self._store_lock:
            snapshot = list(self._permits.items())

        reset_count = 0
        evicted_count = 0
        failed_count = 0
        for key, state in snapshot:
            try:
                if self._refresh_key(key, state):
                    evicted_count += 1
                else:
                    reset_count += 1
            except Exception:
                failed_count += 1
                logger.exception(
                    "rate_limit.refresh_key_failed",
                    extra={"key_hash": hash_key(key)},
                )

        logger.debug(
            "rate_limit.window_refreshed",
            extra={
                "keys_reset": reset_count,
                "keys_evicted": evicted_count,
                "keys_failed": failed_count,
                "keys_tracked": len(self._permits),
            },
        )

    def _refresh_key(self, key: str, state: PermitState) -> bool:
        """Reset or evict one key. Returns True when the key was evicted."""

        with state.lock:
            if state.evicted:
                return True
            if state.remaining == self._limit:
                state.evicted = True
                with self._store_lock:
                    if self._permits.get(key) is state:
                        del self._permits[key]
                return True
            state.remaining = self._limit
            return False
