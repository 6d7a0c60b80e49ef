"""
In-process command, event and query buses.

Commands and queries map to exactly one handler and never raise across the bus: every
outcome comes back as a Result carrying an ErrorCategory. Events fan out to any number
of handlers, fail-open, in sequence order per aggregate.
"""

import asyncio
import logging
from contextlib import asynccontextmanager
from dataclasses import dataclass
from enum import Enum
from typing import (
    Any,
    AsyncIterator,
    Awaitable,
    Callable,
    Dict,
    List,
    Optional,
    Protocol,
    Sequence,
    Type,
)

from filplus.application.exceptions import (
    ApplicationError,
    CollaboratorUnavailableError,
    ConcurrencyConflictError,
    NoHandlerRegisteredError,
    NotFoundError,
)
from filplus.core.context import application_id_ctx
from filplus.domain.exceptions import (
    AlreadyExistsError,
    DomainValidationError,
    InvalidTransitionError,
)
from filplus.domain.models.events import DomainEvent
from filplus.scalability.aggregate_lock import AggregateLock, AggregateLockTimeoutError
from filplus.security.exceptions import AuthorizationError


class ErrorCategory(str, Enum):
    ALREADY_EXISTS = "ALREADY_EXISTS"
    NOT_FOUND = "NOT_FOUND"
    INVALID_TRANSITION = "INVALID_TRANSITION"
    CONCURRENCY_CONFLICT = "CONCURRENCY_CONFLICT"
    NO_HANDLER_REGISTERED = "NO_HANDLER_REGISTERED"
    COLLABORATOR_UNAVAILABLE = "COLLABORATOR_UNAVAILABLE"
    VALIDATION_ERROR = "VALIDATION_ERROR"
    UNAUTHORIZED = "UNAUTHORIZED"
    INTERNAL_ERROR = "INTERNAL_ERROR"


_CATEGORIES: Sequence[tuple[Type[Exception], ErrorCategory]] = (
    (AlreadyExistsError, ErrorCategory.ALREADY_EXISTS),
    (NotFoundError, ErrorCategory.NOT_FOUND),
    (InvalidTransitionError, ErrorCategory.INVALID_TRANSITION),
    (ConcurrencyConflictError, ErrorCategory.CONCURRENCY_CONFLICT),
    (AggregateLockTimeoutError, ErrorCategory.CONCURRENCY_CONFLICT),
    (NoHandlerRegisteredError, ErrorCategory.NO_HANDLER_REGISTERED),
    (CollaboratorUnavailableError, ErrorCategory.COLLABORATOR_UNAVAILABLE),
    (DomainValidationError, ErrorCategory.VALIDATION_ERROR),
    (AuthorizationError, ErrorCategory.UNAUTHORIZED),
)


def categorize(exc: Exception) -> ErrorCategory:
    for exc_type, category in _CATEGORIES:
        if isinstance(exc, exc_type):
            return category
    return ErrorCategory.INTERNAL_ERROR


@dataclass(frozen=True)
class Result:
    """Outcome of a command or query. error_category is set iff success is False."""

    success: bool
    data: Any = None
    error: Optional[str] = None
    error_category: Optional[ErrorCategory] = None

    @classmethod
    def ok(cls, data: Any = None) -> "Result":
        return cls(success=True, data=data)

    @classmethod
    def fail(cls, exc: Exception) -> "Result":
        message = getattr(exc, "message", None) or str(exc)
        return cls(success=False, error=message, error_category=categorize(exc))


class CommandHandler(Protocol):
    async def handle(self, command: Any) -> Optional[Dict[str, Any]]:
        ...


class QueryHandler(Protocol):
    async def handle(self, query: Any) -> Any:
        ...


class EventHandler(Protocol):
    """Subscribes to exactly one event type."""

    event_type: str

    async def handle(self, event: DomainEvent) -> None:
        ...


CatchAllHandler = Callable[[DomainEvent], Awaitable[None]]


class CommandBus:
    """
    Dispatches each command to its single handler while holding the aggregate lock for
    the command's application_id. ConcurrencyConflictError is retried by re-running the
    handler (which reloads the aggregate); other errors are returned, never retried.
    """

    def __init__(
        self,
        lock: AggregateLock,
        logger: logging.Logger,
        max_retries: int = 3,
    ) -> None:
        self._handlers: Dict[type, CommandHandler] = {}
        self._lock = lock
        self._logger = logger
        self._max_retries = max_retries

    def register(self, command_type: type, handler: CommandHandler) -> None:
        if command_type in self._handlers:
            raise ApplicationError(f"Handler already registered for {command_type.__name__}")
        self._handlers[command_type] = handler

    def is_registered(self, command_type: type) -> bool:
        return command_type in self._handlers

    async def execute(self, command: Any) -> Result:
        command_name = type(command).__name__
        handler = self._handlers.get(type(command))
        if handler is None:
            return Result.fail(NoHandlerRegisteredError(f"No handler registered for {command_name}"))

        application_id = getattr(command, "application_id", None)
        token = application_id_ctx.set(application_id)
        try:
            return await self._execute_locked(handler, command, command_name, application_id)
        finally:
            application_id_ctx.reset(token)

    async def _execute_locked(
        self,
        handler: CommandHandler,
        command: Any,
        command_name: str,
        application_id: Optional[str],
    ) -> Result:
        attempt = 0
        while True:
            try:
                if application_id:
                    async with self._lock.hold(application_id):
                        data = await handler.handle(command)
                else:
                    data = await handler.handle(command)
            except ConcurrencyConflictError as e:
                if attempt < self._max_retries:
                    attempt += 1
                    self._logger.warning(
                        "command_concurrency_retry",
                        extra={"command": command_name, "attempt": attempt, "error": e.message},
                    )
                    continue
                return self._failed(command_name, e)
            except Exception as e:
                return self._failed(command_name, e)
            self._logger.info(
                "command_succeeded",
                extra={"command": command_name, "attempts": attempt + 1},
            )
            return Result.ok(data)

    def _failed(self, command_name: str, exc: Exception) -> Result:
        result = Result.fail(exc)
        unexpected = result.error_category == ErrorCategory.INTERNAL_ERROR
        log = self._logger.error if unexpected else self._logger.warning
        log(
            "command_failed",
            extra={
                "command": command_name,
                "error_category": result.error_category.value,
                "error": result.error,
            },
            exc_info=unexpected,
        )
        return result


class EventBus:
    """
    Fans each event out to the handlers subscribed to its type plus catch-all subscribers.
    Handlers for one event run concurrently and fail-open (a failure is logged, the rest
    still run). Events of one aggregate are delivered one at a time in publish order;
    different aggregates proceed in parallel.
    """

    def __init__(self, logger: logging.Logger) -> None:
        self._handlers: Dict[str, List[EventHandler]] = {}
        self._catch_all: List[CatchAllHandler] = []
        self._logger = logger
        self._aggregate_locks: Dict[str, asyncio.Lock] = {}
        self._waiters: Dict[str, int] = {}

    def subscribe(self, handler: EventHandler) -> None:
        self._handlers.setdefault(handler.event_type, []).append(handler)

    def subscribe_all(self, handler: CatchAllHandler) -> None:
        self._catch_all.append(handler)

    def handlers_for(self, event_type: str) -> List[EventHandler]:
        return list(self._handlers.get(event_type, []))

    async def publish_all(self, events: Sequence[DomainEvent]) -> None:
        for event in events:
            await self.publish(event)

    async def publish(self, event: DomainEvent) -> None:
        async with self.ordered(event.aggregate_id):
            await self._dispatch(event)

    async def replay(self, events: Sequence[DomainEvent]) -> None:
        """
        Re-deliver already-published events to the typed subscribers only (catch-all
        subscribers such as forwarders are skipped). Callers hold ordered() for the aggregate.
        """
        for event in events:
            handlers = self._handlers.get(event.event_type, [])
            await self._run(event, [(type(h).__name__, h.handle) for h in handlers])

    @asynccontextmanager
    async def ordered(self, aggregate_id: str) -> AsyncIterator[None]:
        lock = self._aggregate_locks.setdefault(aggregate_id, asyncio.Lock())
        self._waiters[aggregate_id] = self._waiters.get(aggregate_id, 0) + 1
        try:
            async with lock:
                yield
        finally:
            self._waiters[aggregate_id] -= 1
            if self._waiters[aggregate_id] == 0:
                del self._waiters[aggregate_id]
                del self._aggregate_locks[aggregate_id]

    async def _dispatch(self, event: DomainEvent) -> None:
        targets = [(type(h).__name__, h.handle) for h in self._handlers.get(event.event_type, [])]
        targets += [(getattr(h, "__qualname__", type(h).__name__), h) for h in self._catch_all]
        if not targets:
            return
        self._logger.debug(
            "event_publishing",
            extra={
                "event_type": event.event_type,
                "aggregate_id": event.aggregate_id,
                "sequence_number": event.sequence_number,
                "handler_count": len(targets),
            },
        )
        await self._run(event, targets)

    async def _run(self, event: DomainEvent, targets: List[tuple[str, CatchAllHandler]]) -> None:
        results = await asyncio.gather(
            *(handle(event) for _, handle in targets),
            return_exceptions=True,
        )
        for (name, _), result in zip(targets, results):
            if isinstance(result, Exception):
                self._logger.warning(
                    "event_handler_failed",
                    extra={
                        "event_type": event.event_type,
                        "aggregate_id": event.aggregate_id,
                        "sequence_number": event.sequence_number,
                        "handler": name,
                        "error": str(result),
                    },
                )


class QueryBus:
    """Dispatches each query to its single handler. Handlers read only from the read model."""

    def __init__(self, logger: logging.Logger) -> None:
        self._handlers: Dict[type, QueryHandler] = {}
        self._logger = logger

    def register(self, query_type: type, handler: QueryHandler) -> None:
        if query_type in self._handlers:
            raise ApplicationError(f"Handler already registered for {query_type.__name__}")
        self._handlers[query_type] = handler

    async def execute(self, query: Any) -> Result:
        query_name = type(query).__name__
        handler = self._handlers.get(type(query))
        if handler is None:
            return Result.fail(NoHandlerRegisteredError(f"No handler registered for {query_name}"))
        try:
            return Result.ok(await handler.handle(query))
        except Exception as e:
            result = Result.fail(e)
            self._logger.warning(
                "query_failed",
                extra={
                    "query": query_name,
                    "error_category": result.error_category.value,
                    "error": result.error,
                },
            )
            return result
