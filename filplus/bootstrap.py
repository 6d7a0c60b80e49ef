"""Composition root: builds every component from settings and registers all handlers."""

import logging
from dataclasses import dataclass, field
from typing import Any, List, Optional

from filplus.application.bus import CommandBus, EventBus, QueryBus
from filplus.application.commands import (
    CreateApplication,
    CreateApplicationHandler,
    CreateRefreshApplication,
    CreateRefreshApplicationHandler,
    EditApplication,
    EditApplicationHandler,
    RefreshAllocatorMultisig,
    RefreshAllocatorMultisigHandler,
    RevokeKYC,
    RevokeKYCHandler,
    SetApplicationPullRequest,
    SetApplicationPullRequestHandler,
    SubmitGovernanceReviewResult,
    SubmitGovernanceReviewResultHandler,
    SubmitKYCResult,
    SubmitKYCResultHandler,
    UpdateDatacapAllocation,
    UpdateDatacapAllocationHandler,
    UpdateMetaAllocatorApprovals,
    UpdateMetaAllocatorApprovalsHandler,
    UpdateRKHApprovals,
    UpdateRKHApprovalsHandler,
)
from filplus.application.event_handlers import EventForwarder, register_projectors
from filplus.application.event_store import ApplicationDetailsStore, EventStore
from filplus.application.projection_rebuilder import ProjectionRebuilder
from filplus.application.queries import (
    GetApplication,
    GetApplicationHandler,
    GetApplications,
    GetApplicationsHandler,
)
from filplus.application.repository import ApplicationRepository
from filplus.config.settings import AppSettings
from filplus.infrastructure.cache.redis_client import RedisClient
from filplus.infrastructure.clients.filecoin_chain import FilecoinChainClient
from filplus.infrastructure.database.application_details_db import DbApplicationDetailsStore
from filplus.infrastructure.database.event_store_db import DbEventStore
from filplus.infrastructure.database.session import get_session_factory
from filplus.infrastructure.memory import InMemoryApplicationDetailsStore, InMemoryEventStore
from filplus.infrastructure.messaging.rabbitmq_publisher import RabbitMQPublisher
from filplus.scalability.aggregate_lock import AggregateLock, LocalAggregateLock, RedisAggregateLock
from filplus.scalability.circuit_breaker import CircuitBreaker
from filplus.security.roles import RoleConfig, RoleResolver
from filplus.services.dummy_pull_request import DummyPullRequestService
from filplus.services.interface import BlockchainClient, PullRequestService

logger = logging.getLogger(__name__)


@dataclass
class Container:
    settings: AppSettings
    command_bus: CommandBus
    event_bus: EventBus
    query_bus: QueryBus
    repository: ApplicationRepository
    event_store: EventStore
    details_store: ApplicationDetailsStore
    rebuilder: ProjectionRebuilder
    role_resolver: RoleResolver
    blockchain_client: BlockchainClient
    # Objects with an async close() to call on shutdown.
    resources: List[Any] = field(default_factory=list)

    async def close(self) -> None:
        for resource in self.resources:
            await resource.close()


def _stores(settings: AppSettings) -> tuple[EventStore, ApplicationDetailsStore]:
    if settings.storage_backend == "database":
        sessions = get_session_factory(settings.database_url)
        return DbEventStore(sessions), DbApplicationDetailsStore(sessions)
    return InMemoryEventStore(), InMemoryApplicationDetailsStore()


def _aggregate_lock(settings: AppSettings, resources: List[Any]) -> AggregateLock:
    if not settings.use_distributed_lock:
        return LocalAggregateLock()
    redis_client = RedisClient(settings.redis_url)
    resources.append(redis_client)
    return RedisAggregateLock(
        redis_client,
        ttl_seconds=settings.aggregate_lock_ttl_seconds,
        wait_seconds=settings.aggregate_lock_wait_seconds,
    )


def _collaborator_breaker(settings: AppSettings, name: str) -> CircuitBreaker:
    return CircuitBreaker(
        failure_threshold=settings.circuit_breaker_failure_threshold,
        recovery_timeout_seconds=settings.circuit_breaker_recovery_seconds,
        timeout_seconds=settings.collaborator_timeout_seconds,
        name=name,
    )


def _blockchain_client(settings: AppSettings, resources: List[Any]) -> BlockchainClient:
    client = FilecoinChainClient(
        lotus_rpc_url=settings.lotus_rpc_url,
        filfox_api_url=settings.filfox_api_url,
        lotus_rpc_token=settings.lotus_rpc_token,
        circuit_breaker=_collaborator_breaker(settings, "filecoin_chain"),
        timeout=settings.collaborator_timeout_seconds,
    )
    resources.append(client)
    return client


def build_container(
    settings: AppSettings,
    *,
    event_store: Optional[EventStore] = None,
    details_store: Optional[ApplicationDetailsStore] = None,
    blockchain_client: Optional[BlockchainClient] = None,
    pull_request_service: Optional[PullRequestService] = None,
    aggregate_lock: Optional[AggregateLock] = None,
) -> Container:
    """
    Wire the service. Keyword overrides replace the settings-selected implementation,
    which is how tests inject fakes.
    """
    resources: List[Any] = []
    if event_store is None or details_store is None:
        default_events, default_details = _stores(settings)
        event_store = event_store or default_events
        details_store = details_store or default_details
    if blockchain_client is None:
        blockchain_client = _blockchain_client(settings, resources)
    pull_request_service = pull_request_service or DummyPullRequestService()
    aggregate_lock = aggregate_lock or _aggregate_lock(settings, resources)

    role_resolver = RoleResolver(
        RoleConfig.from_lists(
            governance_review_addresses=settings.governance_review_address_list,
            rkh_addresses=settings.rkh_address_list,
            ma_addresses=settings.ma_address_list,
        )
    )

    event_bus = EventBus(logging.getLogger("filplus.event_bus"))
    register_projectors(
        event_bus,
        details_store,
        blockchain_client,
        logging.getLogger("filplus.projectors"),
    )
    if settings.enable_event_forwarding:
        publisher = RabbitMQPublisher(settings.rabbitmq_url)
        resources.append(publisher)
        event_bus.subscribe_all(EventForwarder(publisher, logging.getLogger("filplus.forwarder")))

    repository = ApplicationRepository(
        event_store,
        event_bus,
        logging.getLogger("filplus.repository"),
    )

    command_logger = logging.getLogger("filplus.commands")
    command_bus = CommandBus(
        aggregate_lock,
        logging.getLogger("filplus.command_bus"),
        max_retries=settings.max_command_retries,
    )
    command_bus.register(
        CreateApplication,
        CreateApplicationHandler(
            repository,
            blockchain_client,
            pull_request_service,
            _collaborator_breaker(settings, "pull_requests"),
            command_logger,
        ),
    )
    command_bus.register(
        EditApplication,
        EditApplicationHandler(repository, command_logger, blockchain_client),
    )
    command_bus.register(
        SetApplicationPullRequest,
        SetApplicationPullRequestHandler(repository, command_logger),
    )
    command_bus.register(
        RefreshAllocatorMultisig,
        RefreshAllocatorMultisigHandler(repository, blockchain_client, command_logger),
    )
    command_bus.register(
        SubmitKYCResult,
        SubmitKYCResultHandler(repository, command_logger, blockchain_client),
    )
    command_bus.register(RevokeKYC, RevokeKYCHandler(repository, command_logger, blockchain_client))
    command_bus.register(
        SubmitGovernanceReviewResult,
        SubmitGovernanceReviewResultHandler(
            repository,
            role_resolver,
            settings.rkh_approval_threshold,
            command_logger,
            blockchain_client,
        ),
    )
    command_bus.register(
        UpdateRKHApprovals,
        UpdateRKHApprovalsHandler(
            repository,
            settings.rkh_approval_threshold,
            command_logger,
            blockchain_client,
        ),
    )
    command_bus.register(
        UpdateMetaAllocatorApprovals,
        UpdateMetaAllocatorApprovalsHandler(repository, command_logger, blockchain_client),
    )
    command_bus.register(
        UpdateDatacapAllocation,
        UpdateDatacapAllocationHandler(repository, command_logger, blockchain_client),
    )
    command_bus.register(
        CreateRefreshApplication,
        CreateRefreshApplicationHandler(repository, command_logger, blockchain_client),
    )

    query_bus = QueryBus(logging.getLogger("filplus.query_bus"))
    query_bus.register(GetApplication, GetApplicationHandler(details_store))
    query_bus.register(GetApplications, GetApplicationsHandler(details_store))

    rebuilder = ProjectionRebuilder(
        event_store,
        details_store,
        event_bus,
        logging.getLogger("filplus.rebuilder"),
    )

    logger.info(
        "container_built",
        extra={
            "storage_backend": settings.storage_backend,
            "distributed_lock": settings.use_distributed_lock,
            "event_forwarding": settings.enable_event_forwarding,
        },
    )
    return Container(
        settings=settings,
        command_bus=command_bus,
        event_bus=event_bus,
        query_bus=query_bus,
        repository=repository,
        event_store=event_store,
        details_store=details_store,
        rebuilder=rebuilder,
        role_resolver=role_resolver,
        blockchain_client=blockchain_client,
        resources=resources,
    )
