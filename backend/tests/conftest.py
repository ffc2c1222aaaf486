"""Shared fixtures for bingo server tests."""

from __future__ import annotations

import os
from collections.abc import Callable

import pytest

TEST_JWT_SECRET = "sbingo-test-secret-key-32-bytes-minimum"

# runtime loads Settings at import time; give it a valid secret before any test module imports it.
os.environ.setdefault("SBINGO_JWT_SECRET", TEST_JWT_SECRET)


class FakeClock:
    """Manually advanced wall clock in seconds."""

    def __init__(self, start: float = 1_700_000_000.0) -> None:
        self.now = start

    def __call__(self) -> float:
        return self.now

    def advance(self, seconds: float) -> None:
        self.now += seconds


@pytest.fixture
def clock() -> FakeClock:
    return FakeClock()


@pytest.fixture
def inline_dispatch() -> Callable[[Callable[[], None]], None]:
    """Settlement dispatcher that runs the job immediately."""

    def _dispatch(job: Callable[[], None]) -> None:
        job()

    return _dispatch
