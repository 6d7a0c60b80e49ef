"""External collaborator contracts and placeholder implementations."""

from filplus.services.dummy_pull_request import DummyPullRequestService
from filplus.services.interface import BlockchainClient, MultisigInfo, PullRequestService

__all__ = [
    "BlockchainClient",
    "DummyPullRequestService",
    "MultisigInfo",
    "PullRequestService",
]
