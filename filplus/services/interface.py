"""External collaborator interfaces. Application layer depends on these protocols."""

from dataclasses import dataclass, field
from typing import List, Protocol

from filplus.domain.models.application import Application, PullRequest


@dataclass(frozen=True)
class MultisigInfo:
    signers: List[str] = field(default_factory=list)
    approval_threshold: int = 0


class BlockchainClient(Protocol):
    """Read-only chain access. Failures raise NotFoundError or CollaboratorUnavailableError."""

    async def resolve_actor_id(self, address: str) -> str:
        """Return the f0 actor id for an address."""
        ...

    async def get_multisig_info(self, address: str) -> MultisigInfo:
        """Return signers and approval threshold of a multisig actor."""
        ...


class PullRequestService(Protocol):
    """Creates the application pull request on the code-hosting service."""

    async def create_pull_request(self, application: Application) -> PullRequest:
        """Raises CollaboratorUnavailableError when the pull request cannot be created."""
        ...
