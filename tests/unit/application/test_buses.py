"""CommandBus, EventBus, QueryBus: registration, results, retries, fan-out, ordering."""

import asyncio
from dataclasses import dataclass
from unittest.mock import AsyncMock, MagicMock

import pytest

from filplus.application.bus import (
    CommandBus,
    ErrorCategory,
    EventBus,
    QueryBus,
    Result,
    categorize,
)
from filplus.application.exceptions import (
    ApplicationError,
    CollaboratorUnavailableError,
    ConcurrencyConflictError,
    NotFoundError,
)
from filplus.domain.exceptions import AlreadyExistsError, InvalidTransitionError
from filplus.domain.models.events import DomainEvent
from filplus.scalability.aggregate_lock import AggregateLockTimeoutError, LocalAggregateLock
from filplus.security.exceptions import AuthorizationError


@dataclass(frozen=True)
class Ping:
    application_id: str


@dataclass(frozen=True)
class Unregistered:
    application_id: str


class Recorder:
    def __init__(self, event_type: str, log: list, fail: bool = False, delay: float = 0):
        self.event_type = event_type
        self._log = log
        self._fail = fail
        self._delay = delay

    async def handle(self, event: DomainEvent) -> None:
        if self._delay:
            await asyncio.sleep(self._delay)
        if self._fail:
            raise RuntimeError("projector broke")
        self._log.append((self.event_type, event.aggregate_id, event.sequence_number))


def _event(seq: int, aggregate_id: str = "app-1", event_type: str = "KYCApproved") -> DomainEvent:
    return DomainEvent(aggregate_id=aggregate_id, sequence_number=seq, event_type=event_type)


@pytest.fixture
def command_bus(logger):
    return CommandBus(LocalAggregateLock(), logger, max_retries=2)


@pytest.mark.parametrize(
    "exc, category",
    [
        (AlreadyExistsError("x"), ErrorCategory.ALREADY_EXISTS),
        (NotFoundError("x"), ErrorCategory.NOT_FOUND),
        (InvalidTransitionError("x"), ErrorCategory.INVALID_TRANSITION),
        (ConcurrencyConflictError("x"), ErrorCategory.CONCURRENCY_CONFLICT),
        (AggregateLockTimeoutError("x"), ErrorCategory.CONCURRENCY_CONFLICT),
        (CollaboratorUnavailableError("x"), ErrorCategory.COLLABORATOR_UNAVAILABLE),
        (AuthorizationError("x"), ErrorCategory.UNAUTHORIZED),
        (KeyError("x"), ErrorCategory.INTERNAL_ERROR),
    ],
)
def test_categorize(exc, category):
    assert categorize(exc) == category


@pytest.mark.asyncio
async def test_command_without_handler_fails_with_no_handler(command_bus):
    result = await command_bus.execute(Unregistered("app-1"))
    assert result.success is False
    assert result.error_category == ErrorCategory.NO_HANDLER_REGISTERED


def test_duplicate_command_registration_rejected(command_bus):
    command_bus.register(Ping, AsyncMock())
    with pytest.raises(ApplicationError):
        command_bus.register(Ping, AsyncMock())
    assert command_bus.is_registered(Ping)


@pytest.mark.asyncio
async def test_command_success_returns_handler_data(command_bus):
    handler = AsyncMock()
    handler.handle = AsyncMock(return_value={"version": 1})
    command_bus.register(Ping, handler)
    result = await command_bus.execute(Ping("app-1"))
    assert result == Result.ok({"version": 1})


@pytest.mark.asyncio
async def test_command_retries_on_concurrency_conflict(command_bus):
    handler = AsyncMock()
    handler.handle = AsyncMock(side_effect=[ConcurrencyConflictError("stale"), {"version": 3}])
    command_bus.register(Ping, handler)
    result = await command_bus.execute(Ping("app-1"))
    assert result.success is True
    assert handler.handle.await_count == 2


@pytest.mark.asyncio
async def test_command_surfaces_conflict_after_max_retries(command_bus):
    handler = AsyncMock()
    handler.handle = AsyncMock(side_effect=ConcurrencyConflictError("stale"))
    command_bus.register(Ping, handler)
    result = await command_bus.execute(Ping("app-1"))
    assert result.error_category == ErrorCategory.CONCURRENCY_CONFLICT
    assert handler.handle.await_count == 3


@pytest.mark.asyncio
async def test_invalid_transition_is_not_retried(command_bus):
    handler = AsyncMock()
    handler.handle = AsyncMock(side_effect=InvalidTransitionError("nope"))
    command_bus.register(Ping, handler)
    result = await command_bus.execute(Ping("app-1"))
    assert result.error_category == ErrorCategory.INVALID_TRANSITION
    assert result.error == "nope"
    assert handler.handle.await_count == 1


@pytest.mark.asyncio
async def test_unexpected_error_becomes_internal_error(command_bus):
    handler = AsyncMock()
    handler.handle = AsyncMock(side_effect=KeyError("boom"))
    command_bus.register(Ping, handler)
    result = await command_bus.execute(Ping("app-1"))
    assert result.success is False
    assert result.error_category == ErrorCategory.INTERNAL_ERROR


@pytest.mark.asyncio
async def test_commands_for_one_aggregate_run_one_at_a_time(command_bus):
    active = 0
    peak = 0

    class Slow:
        async def handle(self, command):
            nonlocal active, peak
            active += 1
            peak = max(peak, active)
            await asyncio.sleep(0.01)
            active -= 1

    command_bus.register(Ping, Slow())
    await asyncio.gather(*(command_bus.execute(Ping("app-1")) for _ in range(5)))
    assert peak == 1


@pytest.mark.asyncio
async def test_event_handler_failure_does_not_block_others(logger):
    bus = EventBus(logger)
    log: list = []
    bus.subscribe(Recorder("KYCApproved", log, fail=True))
    bus.subscribe(Recorder("KYCApproved", log))
    await bus.publish(_event(2))
    assert log == [("KYCApproved", "app-1", 2)]
    assert logger.warning.call_args.args[0] == "event_handler_failed"


@pytest.mark.asyncio
async def test_event_without_handlers_is_a_no_op(logger):
    bus = EventBus(logger)
    await bus.publish(_event(1, event_type="Unknown"))
    assert bus.handlers_for("Unknown") == []


@pytest.mark.asyncio
async def test_events_of_one_aggregate_delivered_in_order(logger):
    bus = EventBus(logger)
    log: list = []
    bus.subscribe(Recorder("KYCApproved", log, delay=0.02))
    bus.subscribe(Recorder("KYCRevoked", log))
    await asyncio.gather(
        bus.publish(_event(1, event_type="KYCApproved")),
        bus.publish(_event(2, event_type="KYCRevoked")),
    )
    assert [seq for _, _, seq in log] == [1, 2]


@pytest.mark.asyncio
async def test_catch_all_receives_every_event_but_not_replays(logger):
    bus = EventBus(logger)
    forwarded = AsyncMock()
    log: list = []
    bus.subscribe(Recorder("KYCApproved", log))
    bus.subscribe_all(forwarded)

    await bus.publish_all([_event(1), _event(2, event_type="KYCRevoked")])
    assert forwarded.await_count == 2

    async with bus.ordered("app-1"):
        await bus.replay([_event(1)])
    assert forwarded.await_count == 2
    assert log == [("KYCApproved", "app-1", 1), ("KYCApproved", "app-1", 1)]


@pytest.mark.asyncio
async def test_query_bus_dispatch_and_failure():
    bus = QueryBus(MagicMock())
    handler = AsyncMock()
    handler.handle = AsyncMock(side_effect=NotFoundError("missing"))
    bus.register(Ping, handler)
    result = await bus.execute(Ping("app-1"))
    assert result.error_category == ErrorCategory.NOT_FOUND

    missing = await bus.execute(Unregistered("app-1"))
    assert missing.error_category == ErrorCategory.NO_HANDLER_REGISTERED
