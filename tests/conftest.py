"""Pytest configuration and shared fixtures."""

from __future__ import annotations

import pytest

from netlayer.core.retry import Retrier
from tests.fixtures.transport import FakeTransport


@pytest.fixture
def fake_transport() -> FakeTransport:
    """Create an empty scripted transport."""
    return FakeTransport()


@pytest.fixture
def sleeps() -> list[float]:
    """Delays requested by the retrier fixture."""
    return []


@pytest.fixture
def retrier(sleeps: list[float]) -> Retrier:
    """Retrier that records delays instead of sleeping."""

    async def record(delay: float) -> None:
        sleeps.append(delay)

    return Retrier(sleep=record)
