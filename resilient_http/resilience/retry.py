"""Bounded retry with exponential backoff and full jitter.

``calculate_delay`` and ``is_retryable`` are pure functions.
``RetryExecutor`` runs an attempt function at most ``max_retries + 1``
times, strictly one after another:

    attempt 0 ── fail (retryable) ── sleep(delay(0)) ── attempt 1 ── ...

A non-retryable failure, or any failure on the last allowed attempt, is
surfaced unchanged.
"""

from __future__ import annotations

import asyncio
import math
import random
from collections.abc import Awaitable, Callable, Collection
from typing import TypeVar

from resilient_http.core.config import RetryConfig
from resilient_http.core.errors import AttemptError, ErrorKind

T = TypeVar("T")

RetryHook = Callable[[int, Exception], None]


def calculate_delay(attempt: int, base_delay: float, max_delay: float, jitter: bool = True) -> float:
    """Return the backoff delay in seconds before retrying after *attempt*.

    The exponential term ``base_delay * 2**attempt`` is capped at
    *max_delay*.  The cap is checked on the exponent before any power is
    taken, so arbitrarily large attempts cost nothing and never overflow.
    With *jitter* the result is uniform in ``[0, capped)``.
    """
    if attempt >= math.log2(max_delay / base_delay):
        delay = max_delay
    else:
        delay = base_delay * 2**attempt

    if not jitter:
        return delay
    return random.random() * delay


def is_retryable(
    error: BaseException,
    retryable_statuses: Collection[int],
    retryable_error_codes: Collection[str],
) -> bool:
    """Decide whether *error* is transient.  First matching rule wins:

    1. its status code is in *retryable_statuses*;
    2. its symbolic error code is in *retryable_error_codes*;
    3. it is a timeout or an abort, whatever the configured sets say.
    """
    status_code = getattr(error, "status_code", None)
    if status_code is not None and status_code in retryable_statuses:
        return True

    error_code = getattr(error, "error_code", None)
    if error_code is not None and error_code in retryable_error_codes:
        return True

    if isinstance(error, TimeoutError):
        return True
    return getattr(error, "kind", None) in (ErrorKind.TIMEOUT, ErrorKind.ABORT)


class RetryExecutor:
    """Runs an attempt function under a ``RetryConfig``.

    Args:
        sleep: Awaitable used to wait between attempts.  Cancelling the
               enclosing task cancels a pending sleep.
    """

    def __init__(self, sleep: Callable[[float], Awaitable[object]] = asyncio.sleep) -> None:
        self._sleep = sleep

    async def run(
        self,
        attempt_fn: Callable[[int], Awaitable[T]],
        config: RetryConfig,
        on_retry: RetryHook | None = None,
    ) -> T:
        """Call ``attempt_fn(attempt)`` until it succeeds or must give up.

        *on_retry* receives the number of the upcoming retry (1-based) and
        the error that caused it, before the backoff sleep begins.

        Raises:
            The last attempt's error.  ``AttemptError`` instances have
            ``attempts`` set to the number of attempts made.
        """
        attempt = 0
        while True:
            try:
                return await attempt_fn(attempt)
            except Exception as exc:
                if isinstance(exc, AttemptError):
                    exc.attempts = attempt + 1

                if attempt >= config.max_retries:
                    raise
                if not is_retryable(exc, config.retryable_statuses, config.retryable_error_codes):
                    raise

                delay = calculate_delay(attempt, config.base_delay, config.max_delay, config.jitter)
                if on_retry is not None:
                    on_retry(attempt + 1, exc)

            await self._sleep(delay)
            attempt += 1
