"""Shared fixtures: in-memory stores, fake collaborators, a fully wired container."""

from unittest.mock import AsyncMock, MagicMock

import pytest

from filplus.bootstrap import build_container
from filplus.config.settings import AppSettings
from filplus.domain.models.application import PullRequest
from filplus.infrastructure.memory import InMemoryApplicationDetailsStore, InMemoryEventStore
from filplus.scalability.aggregate_lock import LocalAggregateLock
from filplus.services.interface import MultisigInfo


@pytest.fixture
def settings():
    return AppSettings(
        environment="test",
        governance_review_addresses="f1governance",
        rkh_addresses="f1rootkeyholder",
        ma_addresses="f1metaallocator",
        rkh_approval_threshold=2,
        max_command_retries=2,
    )


@pytest.fixture
def event_store():
    return InMemoryEventStore()


@pytest.fixture
def details_store():
    return InMemoryApplicationDetailsStore()


@pytest.fixture
def logger():
    return MagicMock()


@pytest.fixture
def chain():
    """Fake BlockchainClient resolving every address to the same multisig."""
    c = AsyncMock()
    c.resolve_actor_id = AsyncMock(return_value="f01234")
    c.get_multisig_info = AsyncMock(
        return_value=MultisigInfo(signers=["f1signer1", "f1signer2"], approval_threshold=2)
    )
    return c


@pytest.fixture
def pull_requests():
    p = AsyncMock()
    p.create_pull_request = AsyncMock(
        return_value=PullRequest(number=7, url="https://github.com/org/apps/pull/7", comment_id=70)
    )
    return p


@pytest.fixture
def container(settings, event_store, details_store, chain, pull_requests):
    return build_container(
        settings,
        event_store=event_store,
        details_store=details_store,
        blockchain_client=chain,
        pull_request_service=pull_requests,
        aggregate_lock=LocalAggregateLock(),
    )
