"""
Read-model projectors. One projector per event type; each writes the post-event values of
the fields its event changes into the ApplicationDetails document.

Projectors never accumulate in place. Re-delivery of an event is absorbed by the store's
sequence guard, and the one append-only field (refresh instructions) is also de-duplicated
by content.
"""

import logging
from typing import Any, Dict, List, Optional

from filplus.application.bus import EventBus
from filplus.application.event_store import ApplicationDetailsStore
from filplus.domain.models import events as ev
from filplus.domain.models.application import (
    ApplicationInstruction,
    ApplicationInstructionStatus,
    ApplicationStatus,
    approval_phase_for,
    instructions_from_payload,
    latest_instruction,
)
from filplus.domain.models.events import DomainEvent
from filplus.services.interface import BlockchainClient

Fields = Dict[str, Any]


class _Projector:
    event_type: str = ""

    def __init__(self, store: ApplicationDetailsStore, logger: logging.Logger) -> None:
        self._store = store
        self._logger = logger

    async def handle(self, event: DomainEvent) -> None:
        fields = await self.project(event)
        applied = await self._store.upsert(event.aggregate_id, fields, event.sequence_number)
        self._logger.debug(
            "projection_applied" if applied else "projection_skipped",
            extra={
                "application_id": event.aggregate_id,
                "event_type": event.event_type,
                "sequence_number": event.sequence_number,
            },
        )

    async def project(self, event: DomainEvent) -> Fields:
        raise NotImplementedError


def _status(status: ApplicationStatus) -> Fields:
    return {"status": status.value}


def _instructions(raw: Optional[List[Dict[str, Any]]]) -> List[Dict[str, Any]]:
    return [i.to_dict() for i in instructions_from_payload(raw)]


class ApplicationCreatedProjector(_Projector):
    event_type = ev.APPLICATION_CREATED

    async def project(self, event: DomainEvent) -> Fields:
        applicant = event.payload["applicant"]
        return {
            "id": event.aggregate_id,
            "number": event.payload.get("application_number"),
            "name": applicant.get("name"),
            "organization": applicant.get("organization"),
            "address": applicant.get("on_chain_address") or None,
            "github": applicant.get("github_handle"),
            "other_github_handles": list(applicant.get("other_github_handles") or []),
            "application_instructions": [],
            **_status(ApplicationStatus.KYC_PHASE),
        }


class ApplicationEditedProjector(_Projector):
    event_type = ev.APPLICATION_EDITED

    async def project(self, event: DomainEvent) -> Fields:
        applicant = event.payload["applicant"]
        return {
            "name": applicant.get("name"),
            "organization": applicant.get("organization"),
            "github": applicant.get("github_handle"),
            "other_github_handles": list(applicant.get("other_github_handles") or []),
        }


class AllocatorMultisigUpdatedProjector(_Projector):
    """
    Re-reads signers and threshold from chain so the document shows current values.
    A failed lookup falls back to the values carried by the event and never blocks.
    """

    event_type = ev.ALLOCATOR_MULTISIG_UPDATED

    def __init__(
        self,
        store: ApplicationDetailsStore,
        blockchain_client: BlockchainClient,
        logger: logging.Logger,
    ) -> None:
        super().__init__(store, logger)
        self._chain = blockchain_client

    async def project(self, event: DomainEvent) -> Fields:
        address = event.payload["address"]
        threshold = event.payload.get("threshold") or 0
        signers = list(event.payload.get("signers") or [])
        try:
            info = await self._chain.get_multisig_info(address)
            threshold, signers = info.approval_threshold, list(info.signers)
        except Exception as e:
            self._logger.warning(
                "multisig_lookup_failed",
                extra={
                    "application_id": event.aggregate_id,
                    "address": address,
                    "error": getattr(e, "message", str(e)),
                },
            )
        return {
            "actor_id": event.payload["actor_id"],
            "address": address,
            "multisig_details": {"multisig_threshold": threshold, "multisig_signers": signers},
        }


class ApplicationPullRequestUpdatedProjector(_Projector):
    event_type = ev.APPLICATION_PULL_REQUEST_UPDATED

    async def project(self, event: DomainEvent) -> Fields:
        fields: Fields = {
            "application_details": {
                "pull_request_url": event.payload["url"],
                "pull_request_number": event.payload["number"],
                "pull_request_comment_id": event.payload.get("comment_id"),
            }
        }
        if event.payload.get("status"):
            fields["status"] = event.payload["status"]
        return fields


class KYCApprovedProjector(_Projector):
    event_type = ev.KYC_APPROVED

    async def project(self, event: DomainEvent) -> Fields:
        return _status(ApplicationStatus.GOVERNANCE_REVIEW_PHASE)


class KYCRejectedProjector(_Projector):
    event_type = ev.KYC_REJECTED

    async def project(self, event: DomainEvent) -> Fields:
        return _status(ApplicationStatus.REJECTED)


class KYCRevokedProjector(_Projector):
    event_type = ev.KYC_REVOKED

    async def project(self, event: DomainEvent) -> Fields:
        return _status(ApplicationStatus.KYC_PHASE)


class GovernanceReviewApprovedProjector(_Projector):
    event_type = ev.GOVERNANCE_REVIEW_APPROVED

    async def project(self, event: DomainEvent) -> Fields:
        instructions = instructions_from_payload(event.payload["application_instructions"])
        latest = latest_instruction(instructions)
        return {
            "application_instructions": [i.to_dict() for i in instructions],
            "datacap": latest.datacap_amount,
            **_status(approval_phase_for(latest)),
        }


class GovernanceReviewRejectedProjector(_Projector):
    event_type = ev.GOVERNANCE_REVIEW_REJECTED

    async def project(self, event: DomainEvent) -> Fields:
        return {
            "application_instructions": _instructions(event.payload.get("application_instructions")),
            **_status(ApplicationStatus.REJECTED),
        }


class RKHApprovalStartedProjector(_Projector):
    event_type = ev.RKH_APPROVAL_STARTED

    async def project(self, event: DomainEvent) -> Fields:
        return {
            "rkh_phase": {
                "approvals": [],
                "approval_threshold": event.payload["approval_threshold"],
                "approval_message_id": None,
            },
            **_status(ApplicationStatus.RKH_APPROVAL_PHASE),
        }


class RKHApprovalsUpdatedProjector(_Projector):
    event_type = ev.RKH_APPROVALS_UPDATED

    async def project(self, event: DomainEvent) -> Fields:
        return {
            "rkh_phase": {
                "approvals": list(event.payload.get("approvals") or []),
                "approval_threshold": event.payload["approval_threshold"],
                "approval_message_id": event.payload.get("approval_message_id"),
            }
        }


class RKHApprovalCompletedProjector(_Projector):
    event_type = ev.RKH_APPROVAL_COMPLETED

    async def project(self, event: DomainEvent) -> Fields:
        return {
            "application_instructions": _instructions(event.payload["application_instructions"]),
            "rkh_phase": None,
            **_status(ApplicationStatus.APPROVED),
        }


class MetaAllocatorApprovalStartedProjector(_Projector):
    event_type = ev.META_ALLOCATOR_APPROVAL_STARTED

    async def project(self, event: DomainEvent) -> Fields:
        return {"meta_allocator": None, **_status(ApplicationStatus.META_APPROVAL_PHASE)}


class MetaAllocatorApprovalCompletedProjector(_Projector):
    event_type = ev.META_ALLOCATOR_APPROVAL_COMPLETED

    async def project(self, event: DomainEvent) -> Fields:
        return {
            "application_instructions": _instructions(event.payload["application_instructions"]),
            "meta_allocator": {
                "block_number": event.payload.get("block_number"),
                "tx_hash": event.payload.get("tx_hash"),
            },
            **_status(ApplicationStatus.APPROVED),
        }


class DatacapAllocationUpdatedProjector(_Projector):
    event_type = ev.DATACAP_ALLOCATION_UPDATED

    async def project(self, event: DomainEvent) -> Fields:
        return {
            "application_instructions": _instructions(event.payload["application_instructions"]),
            "datacap": event.payload["datacap_amount"],
            **_status(ApplicationStatus.DC_ALLOCATED),
        }


class DatacapRefreshRequestedProjector(_Projector):
    """Appends the refresh instruction to the document's list unless an identical entry is already there."""

    event_type = ev.DATACAP_REFRESH_REQUESTED

    async def project(self, event: DomainEvent) -> Fields:
        current = await self._store.get(event.aggregate_id)
        existing = [i.model_dump(mode="json") for i in current.application_instructions] if current else []
        appended = ApplicationInstruction.from_dict(
            {
                "method": event.payload["method"],
                "datacap_amount": event.payload["datacap_amount"],
                "start_timestamp": event.payload.get("timestamp"),
                "status": ApplicationInstructionStatus.PENDING.value,
            }
        ).to_dict()
        if appended not in existing:
            existing.append(appended)
        return {
            "application_instructions": existing,
            "datacap": event.payload["datacap_amount"],
            "rkh_phase": None,
            **_status(ApplicationStatus.GOVERNANCE_REVIEW_PHASE),
        }


def build_projectors(
    store: ApplicationDetailsStore,
    blockchain_client: BlockchainClient,
    logger: logging.Logger,
) -> List[_Projector]:
    simple = (
        ApplicationCreatedProjector,
        ApplicationEditedProjector,
        ApplicationPullRequestUpdatedProjector,
        KYCApprovedProjector,
        KYCRejectedProjector,
        KYCRevokedProjector,
        GovernanceReviewApprovedProjector,
        GovernanceReviewRejectedProjector,
        RKHApprovalStartedProjector,
        RKHApprovalsUpdatedProjector,
        RKHApprovalCompletedProjector,
        MetaAllocatorApprovalStartedProjector,
        MetaAllocatorApprovalCompletedProjector,
        DatacapAllocationUpdatedProjector,
        DatacapRefreshRequestedProjector,
    )
    projectors: List[_Projector] = [cls(store, logger) for cls in simple]
    projectors.append(AllocatorMultisigUpdatedProjector(store, blockchain_client, logger))
    return projectors


def register_projectors(
    event_bus: EventBus,
    store: ApplicationDetailsStore,
    blockchain_client: BlockchainClient,
    logger: logging.Logger,
) -> List[_Projector]:
    """Subscribe one projector per event type; returns them for inspection."""
    projectors = build_projectors(store, blockchain_client, logger)
    for projector in projectors:
        event_bus.subscribe(projector)
    return projectors
