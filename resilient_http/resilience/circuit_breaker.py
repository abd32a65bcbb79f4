"""Async circuit breaker.

Implements the standard three-state circuit breaker:

    CLOSED    →  (failure_threshold consecutive failures)  →  OPEN
    OPEN      →  (open_timeout elapsed, next call probes)  →  HALF_OPEN
    HALF_OPEN →  (success_threshold probe successes)       →  CLOSED
    HALF_OPEN →  (any probe failure)                       →  OPEN

A breaker is owned by a single ``ResilientClient``; sharing the client
shares the accumulated health signal.  There is no module-level instance.
"""

from __future__ import annotations

import asyncio
import time
from collections.abc import Awaitable, Callable
from dataclasses import asdict, dataclass
from enum import Enum
from typing import Any, TypeVar

from resilient_http.core.config import CircuitBreakerConfig
from resilient_http.core.errors import CircuitOpenError

T = TypeVar("T")


class CircuitState(str, Enum):
    """Circuit breaker states."""

    CLOSED = "closed"
    OPEN = "open"
    HALF_OPEN = "half_open"


@dataclass(frozen=True)
class CircuitSnapshot:
    """Point-in-time copy of a breaker's state.

    ``last_failure_time`` is a reading of the breaker's clock
    (``time.monotonic`` by default), or ``None`` if no failure is recorded.
    """

    state: CircuitState
    failure_count: int
    success_count: int
    last_failure_time: float | None

    def as_dict(self) -> dict[str, Any]:
        data = asdict(self)
        data["state"] = self.state.value
        return data


class CircuitBreaker:
    """Async-safe circuit breaker for a single logical target.

    Args:
        config:   Thresholds and timeout; replaceable later via ``config``.
        name:     Human-readable target name (for errors).
        on_open:  Called once each time the circuit transitions to OPEN.
        on_close: Called once each time the circuit transitions to CLOSED.
        clock:    Monotonic time source in seconds.
    """

    def __init__(
        self,
        config: CircuitBreakerConfig | None = None,
        *,
        name: str = "default",
        on_open: Callable[[], None] | None = None,
        on_close: Callable[[], None] | None = None,
        clock: Callable[[], float] = time.monotonic,
    ) -> None:
        self.config = config or CircuitBreakerConfig()
        self.name = name
        self.on_open = on_open
        self.on_close = on_close
        self._clock = clock

        self._state = CircuitState.CLOSED
        self._failure_count = 0
        self._success_count = 0
        self._last_failure_time: float | None = None
        self._half_open_calls = 0
        self._probe_epoch = 0
        self._lock = asyncio.Lock()

    # ── Public properties ────────────────────────────────────────────

    @property
    def state(self) -> CircuitState:
        return self._state

    @property
    def failure_count(self) -> int:
        return self._failure_count

    @property
    def success_count(self) -> int:
        return self._success_count

    def get_state(self) -> CircuitSnapshot:
        """Return a snapshot copy of the current state."""
        return CircuitSnapshot(
            state=self._state,
            failure_count=self._failure_count,
            success_count=self._success_count,
            last_failure_time=self._last_failure_time,
        )

    # ── Core call wrapper ────────────────────────────────────────────

    async def execute(
        self,
        operation: Callable[[], Awaitable[T]],
        config: CircuitBreakerConfig | None = None,
    ) -> T:
        """Run *operation* through the breaker.

        *config* replaces ``self.config`` for this call only; the breaker's
        state is still shared.  The operation's own exceptions are re-raised
        unchanged after being recorded.  Cancellation is not recorded as a
        failure.

        Hooks fire after the lock is released.  A hook that raises while a
        failure is being recorded propagates with the operation's error as
        its ``__context__``.

        Raises:
            CircuitOpenError: The circuit is open and the call was rejected
                without running *operation*.
        """
        config = config or self.config
        if not config.enabled:
            return await operation()

        async with self._lock:
            epoch = self._admit(config)

        try:
            result = await operation()
        except Exception:
            async with self._lock:
                hook = self._record_failure(epoch, config)
            if hook is not None:
                hook()
            raise
        except BaseException:
            # Cancelled: free the probe slot without awaiting the lock.
            self._release_probe(epoch)
            raise

        async with self._lock:
            hook = self._record_success(epoch, config)
        if hook is not None:
            hook()
        return result

    async def reset(self) -> None:
        """Force the breaker to CLOSED with zeroed counters."""
        async with self._lock:
            self._state = CircuitState.CLOSED
            self._failure_count = 0
            self._success_count = 0
            self._last_failure_time = None
            self._half_open_calls = 0

    # ── State transitions (caller holds the lock) ────────────────────
    #
    # Each OPEN → HALF_OPEN transition starts a new probe epoch.  Only a
    # call admitted as a probe in the current epoch decides recovery;
    # outcomes of calls admitted earlier are ignored while HALF_OPEN.

    def _admit(self, config: CircuitBreakerConfig) -> int | None:
        """Decide whether a call may run; return the probe epoch, or None."""
        if self._state == CircuitState.OPEN:
            elapsed = self._elapsed_since_failure()
            if elapsed < config.open_timeout:
                raise CircuitOpenError(self.name, config.open_timeout - elapsed)
            self._state = CircuitState.HALF_OPEN
            self._success_count = 0
            self._half_open_calls = 0
            self._probe_epoch += 1

        if self._state == CircuitState.HALF_OPEN:
            limit = config.half_open_max_calls
            if limit is not None and self._half_open_calls >= limit:
                raise CircuitOpenError(self.name, 0.0)
            self._half_open_calls += 1
            return self._probe_epoch
        return None

    def _record_success(self, epoch: int | None, config: CircuitBreakerConfig) -> Callable[[], None] | None:
        if self._is_current_probe(epoch):
            self._release_probe(epoch)
            self._failure_count = 0
            self._success_count += 1
            if self._success_count >= config.success_threshold:
                self._state = CircuitState.CLOSED
                self._success_count = 0
                self._half_open_calls = 0
                return self.on_close
        elif self._state == CircuitState.CLOSED:
            self._failure_count = 0
        # A late success while OPEN or HALF_OPEN leaves the newer outcome in charge.
        return None

    def _record_failure(self, epoch: int | None, config: CircuitBreakerConfig) -> Callable[[], None] | None:
        probe = self._is_current_probe(epoch)
        if self._state == CircuitState.HALF_OPEN and not probe:
            return None
        self._release_probe(epoch)
        self._failure_count += 1
        self._success_count = 0
        self._last_failure_time = self._clock()

        if probe:
            return self._open()
        if self._state == CircuitState.CLOSED and self._failure_count >= config.failure_threshold:
            return self._open()
        return None

    def _open(self) -> Callable[[], None] | None:
        self._state = CircuitState.OPEN
        self._half_open_calls = 0
        return self.on_open

    def _is_current_probe(self, epoch: int | None) -> bool:
        return self._state == CircuitState.HALF_OPEN and epoch == self._probe_epoch

    def _release_probe(self, epoch: int | None) -> None:
        if self._is_current_probe(epoch) and self._half_open_calls > 0:
            self._half_open_calls -= 1

    def _elapsed_since_failure(self) -> float:
        if self._last_failure_time is None:
            return float("inf")
        return self._clock() - self._last_failure_time
