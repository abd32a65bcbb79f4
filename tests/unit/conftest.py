"""Shared fakes for unit tests: a manual clock, a recording sleep and a
scripted transport."""

from __future__ import annotations

import pytest

from resilient_http.models import RequestDescriptor, Response


class FakeClock:
    """Monotonic clock advanced by hand."""

    def __init__(self, start: float = 1000.0) -> None:
        self.now = start

    def __call__(self) -> float:
        return self.now

    def advance(self, seconds: float) -> None:
        self.now += seconds


class RecordingSleep:
    """Sleep replacement that records requested delays and returns at once."""

    def __init__(self) -> None:
        self.delays: list[float] = []

    async def __call__(self, delay: float) -> None:
        self.delays.append(delay)


class ScriptedTransport:
    """Transport returning (or raising) pre-programmed outcomes in order.

    Once the script is exhausted the last outcome repeats.
    """

    def __init__(self, *outcomes: Response | Exception) -> None:
        self.outcomes = list(outcomes) or [Response(200)]
        self.calls: list[tuple[RequestDescriptor, float]] = []

    async def call(self, request: RequestDescriptor, timeout: float) -> Response:
        self.calls.append((request, timeout))
        index = min(len(self.calls), len(self.outcomes)) - 1
        outcome = self.outcomes[index]
        if isinstance(outcome, Exception):
            raise outcome
        return outcome


@pytest.fixture
def clock() -> FakeClock:
    return FakeClock()


@pytest.fixture
def sleep() -> RecordingSleep:
    return RecordingSleep()
