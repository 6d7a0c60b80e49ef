"""
Command handlers. Each loads (or creates) the aggregate, maps the command onto aggregate
operations, and saves. Transition rules live in the aggregate; handlers only orchestrate.

Calls to external collaborators are enrichment: a failure is logged and the aggregate is
saved without that enrichment, never rolled back. Lifecycle handlers retry a multisig
lookup that failed on an earlier command before they commit.
"""

import logging
from dataclasses import replace
from datetime import datetime, timezone
from typing import Any, Dict, Optional

from filplus.application.commands.application_commands import (
    CreateApplication,
    CreateRefreshApplication,
    EditApplication,
    RefreshAllocatorMultisig,
    RevokeKYC,
    SetApplicationPullRequest,
    SubmitGovernanceReviewResult,
    SubmitKYCResult,
    UpdateDatacapAllocation,
    UpdateMetaAllocatorApprovals,
    UpdateRKHApprovals,
)
from filplus.application.exceptions import CollaboratorUnavailableError
from filplus.application.repository import ApplicationRepository
from filplus.domain.exceptions import AlreadyExistsError, DomainValidationError
from filplus.domain.models.application import (
    ApplicantInfo,
    Application,
    ApplicationStatus,
)
from filplus.domain.validators.application_validator import (
    normalize_github_handles,
    require_non_empty,
    validate_application_id,
    validate_approvals,
    validate_datacap_amount,
    validate_instructions,
)
from filplus.scalability.circuit_breaker import CircuitBreaker
from filplus.security.roles import RoleResolver
from filplus.services.interface import BlockchainClient, PullRequestService


async def resolve_allocator_multisig(
    application: Application,
    address: str,
    chain: BlockchainClient,
    logger: logging.Logger,
) -> bool:
    """
    Resolve actor id and multisig info for address and record them on the aggregate.
    All-or-nothing: on any failure nothing is recorded and False is returned.
    """
    try:
        actor_id = await chain.resolve_actor_id(address)
        info = await chain.get_multisig_info(address)
        application.set_allocator_multisig(
            actor_id,
            address,
            info.approval_threshold,
            info.signers,
        )
    except Exception as e:
        logger.warning(
            "multisig_enrichment_failed",
            extra={
                "application_id": application.application_id,
                "address": address,
                "error": getattr(e, "message", str(e)),
            },
        )
        return False
    return True


class _ApplicationCommandHandler:
    def __init__(
        self,
        repository: ApplicationRepository,
        logger: logging.Logger,
        blockchain_client: Optional[BlockchainClient] = None,
    ) -> None:
        self._repository = repository
        self._logger = logger
        # Set only for lifecycle handlers; retries a multisig lookup that failed earlier.
        self._enrichment_chain = blockchain_client

    async def _load(self, application_id: str) -> Application:
        validate_application_id(application_id)
        return await self._repository.get_by_id(application_id)

    async def _retry_multisig_enrichment(self, application: Application) -> None:
        if application.allocator_multisig is not None or application.applicant_info is None:
            return
        address = application.applicant_info.on_chain_address
        if address:
            await resolve_allocator_multisig(application, address, self._enrichment_chain, self._logger)

    async def _commit(
        self,
        application: Application,
        expected_version: Optional[int] = None,
    ) -> Dict[str, Any]:
        if self._enrichment_chain is not None:
            await self._retry_multisig_enrichment(application)
        events = await self._repository.save(application, expected_version)
        return {
            "application_id": application.application_id,
            "status": application.status.value if application.status else None,
            "version": application.version,
            "events": [e.event_type for e in events],
        }


class CreateApplicationHandler(_ApplicationCommandHandler):
    """
    Creates the aggregate. An existing id is reported as AlreadyExists without touching it,
    so a replayed submission is harmless. PR creation is bounded by pull_request_breaker.
    """

    def __init__(
        self,
        repository: ApplicationRepository,
        blockchain_client: BlockchainClient,
        pull_request_service: PullRequestService,
        pull_request_breaker: CircuitBreaker,
        logger: logging.Logger,
    ) -> None:
        super().__init__(repository, logger)
        self._chain = blockchain_client
        self._pull_requests = pull_request_service
        self._pull_request_breaker = pull_request_breaker

    async def handle(self, command: CreateApplication) -> Dict[str, Any]:
        validate_application_id(command.application_id)
        require_non_empty(command.applicant_name, "applicant_name")

        existing = await self._repository.find_by_id(command.application_id)
        if existing is not None:
            self._logger.info(
                "application_already_exists",
                extra={"application_id": command.application_id, "version": existing.version},
            )
            raise AlreadyExistsError(f"Application already exists: {command.application_id}")

        application = Application(command.application_id)
        application.create(
            command.application_number,
            ApplicantInfo(
                name=command.applicant_name,
                address=command.applicant_address,
                organization=command.applicant_org_name,
                organization_addresses=command.applicant_org_addresses,
                github_handle=command.applicant_github_handle,
                other_github_handles=normalize_github_handles(command.other_github_handles),
                allocation_tranche_schedule=command.allocation_tranche_schedule,
                allocation_audit=command.allocation_audit,
                allocation_distribution_required=command.allocation_distribution_required,
                allocation_required_storage_providers=command.allocation_required_storage_providers,
                allocation_required_replicas=command.allocation_required_replicas,
                bookkeeping_repo=command.bookkeeping_repo,
                datacap_allocation_limits=command.datacap_allocation_limits,
                on_chain_address=command.on_chain_address_for_datacap_allocation,
            ),
        )

        if command.on_chain_address_for_datacap_allocation:
            await resolve_allocator_multisig(
                application,
                command.on_chain_address_for_datacap_allocation,
                self._chain,
                self._logger,
            )

        try:
            pull_request = await self._pull_request_breaker.call(
                self._pull_requests.create_pull_request,
                application,
            )
            application.set_application_pull_request(
                pull_request.number,
                pull_request.url,
                pull_request.comment_id,
            )
        except Exception as e:
            self._logger.error(
                "pull_request_creation_failed",
                extra={
                    "application_id": command.application_id,
                    "error": getattr(e, "message", str(e)),
                },
            )

        return await self._commit(application, expected_version=0)


class EditApplicationHandler(_ApplicationCommandHandler):
    async def handle(self, command: EditApplication) -> Dict[str, Any]:
        require_non_empty(command.applicant_name, "applicant_name")
        application = await self._load(command.application_id)
        applicant = replace(
            application.applicant_info,
            name=command.applicant_name,
            address=command.applicant_address,
            organization=command.applicant_org_name,
            organization_addresses=command.applicant_org_addresses,
            github_handle=command.applicant_github_handle,
            other_github_handles=normalize_github_handles(command.other_github_handles),
        )
        application.edit(applicant)
        return await self._commit(application)


class SetApplicationPullRequestHandler(_ApplicationCommandHandler):
    async def handle(self, command: SetApplicationPullRequest) -> Dict[str, Any]:
        require_non_empty(command.url, "url")
        application = await self._load(command.application_id)
        application.set_application_pull_request(command.number, command.url, command.comment_id)
        return await self._commit(application)


class RefreshAllocatorMultisigHandler(_ApplicationCommandHandler):
    """Re-reads signers and threshold from chain. Here the lookup is the whole command, so failure is surfaced."""

    def __init__(
        self,
        repository: ApplicationRepository,
        blockchain_client: BlockchainClient,
        logger: logging.Logger,
    ) -> None:
        super().__init__(repository, logger)
        self._chain = blockchain_client

    async def handle(self, command: RefreshAllocatorMultisig) -> Dict[str, Any]:
        application = await self._load(command.application_id)
        if application.allocator_multisig is not None:
            address = application.allocator_multisig.address
        else:
            address = application.applicant_info.on_chain_address
        if not address:
            raise DomainValidationError(
                f"Application {command.application_id} has no on-chain address to resolve"
            )
        if not await resolve_allocator_multisig(application, address, self._chain, self._logger):
            raise CollaboratorUnavailableError(f"Could not resolve multisig {address}")
        return await self._commit(application)


class SubmitKYCResultHandler(_ApplicationCommandHandler):
    async def handle(self, command: SubmitKYCResult) -> Dict[str, Any]:
        application = await self._load(command.application_id)
        application.record_kyc(command.approved, command.reason)
        return await self._commit(application)


class RevokeKYCHandler(_ApplicationCommandHandler):
    async def handle(self, command: RevokeKYC) -> Dict[str, Any]:
        application = await self._load(command.application_id)
        application.revoke_kyc(command.reason)
        return await self._commit(application)


class SubmitGovernanceReviewResultHandler(_ApplicationCommandHandler):
    """
    Records the review outcome. On approval, also opens the approval phase the latest
    instruction routes to: RKH with the configured threshold, or Meta-Allocator.
    """

    def __init__(
        self,
        repository: ApplicationRepository,
        role_resolver: RoleResolver,
        rkh_approval_threshold: int,
        logger: logging.Logger,
        blockchain_client: Optional[BlockchainClient] = None,
    ) -> None:
        super().__init__(repository, logger, blockchain_client)
        self._roles = role_resolver
        self._rkh_threshold = rkh_approval_threshold

    async def handle(self, command: SubmitGovernanceReviewResult) -> Dict[str, Any]:
        require_non_empty(command.reviewer_address, "reviewer_address")
        self._roles.check_permission(command.reviewer_address, "submit_governance_review")
        validate_instructions(command.application_instructions)

        application = await self._load(command.application_id)
        application.record_governance_review(
            command.approved,
            list(command.application_instructions),
            command.reason,
        )
        if application.status == ApplicationStatus.RKH_APPROVAL_PHASE:
            application.start_rkh_approval(self._rkh_threshold)
        elif application.status == ApplicationStatus.META_APPROVAL_PHASE:
            application.start_meta_allocator_approval()
        return await self._commit(application)


class UpdateRKHApprovalsHandler(_ApplicationCommandHandler):
    """Applies multisig vote updates for the RKH proposal. Unchanged signer sets record nothing."""

    def __init__(
        self,
        repository: ApplicationRepository,
        default_approval_threshold: int,
        logger: logging.Logger,
        blockchain_client: Optional[BlockchainClient] = None,
    ) -> None:
        super().__init__(repository, logger, blockchain_client)
        self._default_threshold = default_approval_threshold

    async def handle(self, command: UpdateRKHApprovals) -> Dict[str, Any]:
        validate_approvals(command.approvals)
        application = await self._load(command.application_id)

        if command.status == "Rejected":
            self._logger.info(
                "rkh_proposal_rejected",
                extra={"application_id": command.application_id, "message_id": command.message_id},
            )
            return await self._commit(application)

        threshold = command.approval_threshold
        if threshold is None and application.rkh_phase is None:
            threshold = self._default_threshold
        if command.status == "Pending" or command.approvals:
            application.update_rkh_approvals(command.message_id, command.approvals, threshold)
        if command.status == "Approved":
            application.complete_rkh_approval()
        return await self._commit(application)


class UpdateMetaAllocatorApprovalsHandler(_ApplicationCommandHandler):
    async def handle(self, command: UpdateMetaAllocatorApprovals) -> Dict[str, Any]:
        application = await self._load(command.application_id)
        if command.status == "Approved":
            application.complete_meta_allocator_approval(command.block_number, command.tx_hash)
        return await self._commit(application)


class UpdateDatacapAllocationHandler(_ApplicationCommandHandler):
    async def handle(self, command: UpdateDatacapAllocation) -> Dict[str, Any]:
        validate_datacap_amount(command.amount, "amount")
        application = await self._load(command.application_id)
        application.record_datacap_allocation(command.amount, command.allocated_at)
        return await self._commit(application)


class CreateRefreshApplicationHandler(_ApplicationCommandHandler):
    async def handle(self, command: CreateRefreshApplication) -> Dict[str, Any]:
        validate_datacap_amount(command.amount, "amount")
        application = await self._load(command.application_id)
        application.request_datacap_refresh(
            command.method,
            command.amount,
            command.timestamp or datetime.now(timezone.utc),
        )
        return await self._commit(application)
