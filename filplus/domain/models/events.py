"""Domain events for the application aggregate. Immutable, append-only."""

from dataclasses import dataclass, field
from datetime import datetime, timezone
from typing import Any, Dict


# Event type names. Persisted in the event log; never rename.
APPLICATION_CREATED = "ApplicationCreated"
APPLICATION_EDITED = "ApplicationEdited"
ALLOCATOR_MULTISIG_UPDATED = "AllocatorMultisigUpdated"
APPLICATION_PULL_REQUEST_UPDATED = "ApplicationPullRequestUpdated"
KYC_APPROVED = "KYCApproved"
KYC_REJECTED = "KYCRejected"
KYC_REVOKED = "KYCRevoked"
GOVERNANCE_REVIEW_APPROVED = "GovernanceReviewApproved"
GOVERNANCE_REVIEW_REJECTED = "GovernanceReviewRejected"
RKH_APPROVAL_STARTED = "RKHApprovalStarted"
RKH_APPROVALS_UPDATED = "RKHApprovalsUpdated"
RKH_APPROVAL_COMPLETED = "RKHApprovalCompleted"
META_ALLOCATOR_APPROVAL_STARTED = "MetaAllocatorApprovalStarted"
META_ALLOCATOR_APPROVAL_COMPLETED = "MetaAllocatorApprovalCompleted"
DATACAP_ALLOCATION_UPDATED = "DatacapAllocationUpdated"
DATACAP_REFRESH_REQUESTED = "DatacapRefreshRequested"

ALL_EVENT_TYPES = (
    APPLICATION_CREATED,
    APPLICATION_EDITED,
    ALLOCATOR_MULTISIG_UPDATED,
    APPLICATION_PULL_REQUEST_UPDATED,
    KYC_APPROVED,
    KYC_REJECTED,
    KYC_REVOKED,
    GOVERNANCE_REVIEW_APPROVED,
    GOVERNANCE_REVIEW_REJECTED,
    RKH_APPROVAL_STARTED,
    RKH_APPROVALS_UPDATED,
    RKH_APPROVAL_COMPLETED,
    META_ALLOCATOR_APPROVAL_STARTED,
    META_ALLOCATOR_APPROVAL_COMPLETED,
    DATACAP_ALLOCATION_UPDATED,
    DATACAP_REFRESH_REQUESTED,
)


@dataclass(frozen=True)
class DomainEvent:
    """
    One fact in an aggregate's log. Ordering is only defined within one aggregate,
    by sequence_number (1-based, contiguous). Payload must be JSON-serializable.
    """

    aggregate_id: str
    sequence_number: int
    event_type: str
    payload: Dict[str, Any] = field(default_factory=dict)
    occurred_at: datetime = field(default_factory=lambda: datetime.now(timezone.utc))

    def to_dict(self) -> Dict[str, Any]:
        return {
            "aggregate_id": self.aggregate_id,
            "sequence_number": self.sequence_number,
            "event_type": self.event_type,
            "payload": self.payload,
            "occurred_at": self.occurred_at.isoformat(),
        }
