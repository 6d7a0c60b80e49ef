"""Scalability: aggregate locks and bounded collaborator calls."""

from filplus.scalability.aggregate_lock import (
    AggregateLock,
    AggregateLockTimeoutError,
    LocalAggregateLock,
    RedisAggregateLock,
)
from filplus.scalability.circuit_breaker import CircuitBreaker, CircuitState

__all__ = [
    "AggregateLock",
    "AggregateLockTimeoutError",
    "CircuitBreaker",
    "CircuitState",
    "LocalAggregateLock",
    "RedisAggregateLock",
]
