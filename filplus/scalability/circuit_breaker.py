"""Bounded collaborator calls: per-call timeout plus a CLOSED / OPEN / HALF_OPEN circuit breaker."""

import asyncio
import time
from enum import Enum
from typing import Any, Awaitable, Callable, Optional, TypeVar

from filplus.application.exceptions import CollaboratorUnavailableError, NotFoundError

T = TypeVar("T")


class CircuitState(str, Enum):
    CLOSED = "closed"
    OPEN = "open"
    HALF_OPEN = "half_open"


class CircuitBreaker:
    """
    After failure_threshold consecutive failures the circuit opens for recovery_timeout_seconds,
    then lets a single trial call through (half-open) while other callers are rejected.
    Timeouts count as failures.
    Every failure leaves as CollaboratorUnavailableError so callers handle one type.
    """

    def __init__(
        self,
        failure_threshold: int = 5,
        recovery_timeout_seconds: float = 30.0,
        timeout_seconds: Optional[float] = None,
        name: str = "default",
    ) -> None:
        self._threshold = failure_threshold
        self._recovery_timeout = recovery_timeout_seconds
        self._timeout = timeout_seconds
        self._name = name
        self._state = CircuitState.CLOSED
        self._failures = 0
        self._last_failure_time: float | None = None
        self._trial_in_flight = False
        self._lock = asyncio.Lock()

    @property
    def state(self) -> CircuitState:
        return self._state

    @property
    def name(self) -> str:
        return self._name

    def _record_success(self) -> None:
        self._failures = 0
        self._state = CircuitState.CLOSED

    def _record_failure(self) -> None:
        self._last_failure_time = time.monotonic()
        self._failures += 1
        if self._failures >= self._threshold or self._state == CircuitState.HALF_OPEN:
            self._state = CircuitState.OPEN

    async def call(
        self,
        func: Callable[..., Awaitable[T]],
        *args: Any,
        **kwargs: Any,
    ) -> T:
        """Execute func through the circuit, bounded by the configured timeout."""
        async with self._lock:
            if self._state == CircuitState.OPEN:
                elapsed = time.monotonic() - (self._last_failure_time or 0.0)
                if elapsed < self._recovery_timeout:
                    raise CollaboratorUnavailableError(f"Circuit breaker {self._name} is OPEN")
                self._state = CircuitState.HALF_OPEN
            if self._state == CircuitState.HALF_OPEN:
                if self._trial_in_flight:
                    raise CollaboratorUnavailableError(
                        f"Circuit breaker {self._name} is HALF_OPEN with a trial call in flight"
                    )
                self._trial_in_flight = True
                trial = True
            else:
                trial = False
        try:
            return await self._invoke(func, *args, **kwargs)
        finally:
            if trial:
                self._trial_in_flight = False

    async def _invoke(
        self,
        func: Callable[..., Awaitable[T]],
        *args: Any,
        **kwargs: Any,
    ) -> T:
        try:
            if self._timeout is None:
                result = await func(*args, **kwargs)
            else:
                result = await asyncio.wait_for(func(*args, **kwargs), timeout=self._timeout)
        except asyncio.TimeoutError as e:
            async with self._lock:
                self._record_failure()
            raise CollaboratorUnavailableError(
                f"{self._name} timed out after {self._timeout}s"
            ) from e
        except NotFoundError:
            # A definitive "no such actor" is an answer, not an outage.
            async with self._lock:
                self._record_success()
            raise
        except CollaboratorUnavailableError:
            async with self._lock:
                self._record_failure()
            raise
        except Exception as e:
            async with self._lock:
                self._record_failure()
            raise CollaboratorUnavailableError(f"{self._name} failed: {e}") from e
        async with self._lock:
            self._record_success()
        return result
