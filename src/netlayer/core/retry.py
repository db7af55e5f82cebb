"""Retry engine: per-call retry state and backoff policy.

Retry state is keyed by the ``EndpointRequest`` id, so every attempt of one
logical call shares a counter while unrelated concurrent calls never touch
each other's state. When retrying stops, the first error observed for the
call is surfaced rather than the latest one.
"""

from __future__ import annotations

import asyncio
import logging
from collections.abc import Awaitable, Callable
from dataclasses import dataclass
from enum import Enum, auto
from typing import NoReturn

from netlayer.core.errors import UnacceptableStatusCode, is_retryable

logger = logging.getLogger(__name__)

type Sleep = Callable[[float], Awaitable[None]]

TERMINAL_STATUS_CODES: frozenset[int] = frozenset({404, 500})


class DelayKind(Enum):
    """How the wait between attempts evolves."""

    CONSTANT = auto()
    PROGRESSIVE = auto()


@dataclass(slots=True, frozen=True)
class DelayPolicy:
    """Wait before each retry.

    A constant policy always waits ``seconds``; a progressive policy waits
    ``seconds * attempt`` where ``attempt`` starts at 1.
    """

    kind: DelayKind
    seconds: float

    @classmethod
    def constant(cls, seconds: float) -> DelayPolicy:
        return cls(DelayKind.CONSTANT, seconds)

    @classmethod
    def progressive(cls, seconds: float) -> DelayPolicy:
        return cls(DelayKind.PROGRESSIVE, seconds)

    def delay_for(self, attempt: int) -> float:
        """Return the wait in seconds before retry number ``attempt``."""
        if self.kind is DelayKind.PROGRESSIVE:
            return self.seconds * attempt
        return self.seconds


def default_should_retry(error: Exception) -> bool:
    """Retry everything except 404 and 500 responses."""
    return not (
        isinstance(error, UnacceptableStatusCode) and error.status_code in TERMINAL_STATUS_CODES
    )


@dataclass(slots=True, frozen=True)
class RetryConfiguration:
    """How many times and how patiently a failing call is resubmitted.

    Attributes:
        retries: Maximum number of retries after the first attempt
        delay: Wait policy between attempts
        should_retry: Predicate deciding whether an error is worth retrying
    """

    retries: int
    delay: DelayPolicy
    should_retry: Callable[[Exception], bool] = default_should_retry

    @classmethod
    def default(cls) -> RetryConfiguration:
        """Three retries, two seconds apart, skipping 404 and 500."""
        return cls(retries=3, delay=DelayPolicy.constant(2.0))


@dataclass(slots=True)
class RetryState:
    """Retries performed so far for one call and the first error it hit."""

    count: int
    first_error: Exception


@dataclass(slots=True, frozen=True)
class RetryDecision:
    """Outcome of registering a failure."""

    retry: bool
    attempt: int
    surfaced: Exception


class RetryStateRegistry:
    """Owner of all retry state, serializing access behind one lock."""

    def __init__(self) -> None:
        self._states: dict[str, RetryState] = {}
        self._lock: asyncio.Lock = asyncio.Lock()

    async def register_failure(
        self,
        request_id: str,
        error: Exception,
        configuration: RetryConfiguration | None,
    ) -> RetryDecision:
        """Record a failed attempt and decide whether to retry.

        Args:
            request_id: Id of the failing call
            error: Error of the latest attempt
            configuration: Retry policy, or None to never retry

        Returns:
            The decision; when not retrying, ``surfaced`` is the error to raise
            and the state for ``request_id`` has been cleared
        """
        async with self._lock:
            state = self._states.get(request_id)
            if state is None:
                state = RetryState(count=0, first_error=error)
                self._states[request_id] = state

            if not is_retryable(error):
                _ = self._states.pop(request_id, None)
                return RetryDecision(retry=False, attempt=state.count, surfaced=error)

            if (
                configuration is None
                or state.count >= configuration.retries
                or not configuration.should_retry(error)
            ):
                _ = self._states.pop(request_id, None)
                return RetryDecision(retry=False, attempt=state.count, surfaced=state.first_error)

            state.count += 1
            return RetryDecision(retry=True, attempt=state.count, surfaced=error)

    async def count(self, request_id: str) -> int:
        """Return the retries performed so far for ``request_id``."""
        async with self._lock:
            state = self._states.get(request_id)
            return state.count if state else 0

    async def pending(self) -> list[str]:
        """Ids of calls that failed at least once and have not ended yet."""
        async with self._lock:
            return list(self._states)

    async def reset(self, request_id: str) -> None:
        """Forget the state of ``request_id`` after a success."""
        async with self._lock:
            _ = self._states.pop(request_id, None)


class Retrier:
    """Applies a ``RetryConfiguration`` to failures of identified calls."""

    def __init__(self, sleep: Sleep = asyncio.sleep) -> None:
        """Initialize Retrier.

        Args:
            sleep: Coroutine used to wait between attempts
        """
        self.states: RetryStateRegistry = RetryStateRegistry()
        self._sleep: Sleep = sleep

    async def backoff_or_raise(
        self,
        request_id: str,
        error: Exception,
        configuration: RetryConfiguration | None,
    ) -> None:
        """Wait before the next attempt, or raise the error to surface.

        Args:
            request_id: Id of the failing call
            error: Error of the latest attempt
            configuration: Retry policy, or None to never retry

        Raises:
            Exception: The first error of the call (or ``error`` itself when it
                is never retryable) once no further attempt will be made
        """
        decision = await self.states.register_failure(request_id, error, configuration)
        if not decision.retry or configuration is None:
            self._surface(decision, error)

        delay = configuration.delay.delay_for(decision.attempt)
        logger.info(
            "Retrying %s (attempt %d/%d) in %.2fs after %s",
            request_id,
            decision.attempt,
            configuration.retries,
            delay,
            type(error).__name__,
        )
        await self._sleep(delay)

    def _surface(self, decision: RetryDecision, latest: Exception) -> NoReturn:
        surfaced = decision.surfaced
        if decision.attempt:
            surfaced.add_note(f"gave up after {decision.attempt} retries")
            logger.warning("Giving up on request after %d retries: %s", decision.attempt, surfaced)
        if surfaced is not latest:
            raise surfaced from latest
        raise surfaced

    async def reset(self, request_id: str) -> None:
        """Clear the retry state of a call that ended."""
        await self.states.reset(request_id)
