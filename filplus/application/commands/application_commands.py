"""Command definitions. One command type per externally-triggered intent."""

from dataclasses import dataclass
from datetime import datetime
from typing import Literal, Optional, Tuple

from filplus.domain.models.application import ApplicationAllocator, ApplicationInstruction


@dataclass(frozen=True)
class CreateApplication:
    application_id: str
    application_number: int
    applicant_name: str
    applicant_address: str = ""
    applicant_org_name: str = ""
    applicant_org_addresses: str = ""
    applicant_github_handle: str = ""
    other_github_handles: str = ""  # raw free-text field, normalized by the handler
    allocation_tranche_schedule: str = ""
    allocation_audit: str = ""
    allocation_distribution_required: str = ""
    allocation_required_storage_providers: str = ""
    allocation_required_replicas: str = ""
    bookkeeping_repo: str = ""
    datacap_allocation_limits: str = ""
    on_chain_address_for_datacap_allocation: str = ""


@dataclass(frozen=True)
class EditApplication:
    application_id: str
    applicant_name: str
    applicant_address: str = ""
    applicant_org_name: str = ""
    applicant_org_addresses: str = ""
    applicant_github_handle: str = ""
    other_github_handles: str = ""


@dataclass(frozen=True)
class SetApplicationPullRequest:
    application_id: str
    number: int
    url: str
    comment_id: Optional[int] = None


@dataclass(frozen=True)
class RefreshAllocatorMultisig:
    application_id: str


@dataclass(frozen=True)
class SubmitKYCResult:
    application_id: str
    approved: bool
    reason: Optional[str] = None


@dataclass(frozen=True)
class RevokeKYC:
    application_id: str
    reason: Optional[str] = None


@dataclass(frozen=True)
class SubmitGovernanceReviewResult:
    application_id: str
    approved: bool
    reviewer_address: str
    application_instructions: Tuple[ApplicationInstruction, ...] = ()
    reason: Optional[str] = None


@dataclass(frozen=True)
class UpdateRKHApprovals:
    application_id: str
    message_id: int
    approvals: Tuple[str, ...] = ()
    status: Literal["Pending", "Approved", "Rejected"] = "Pending"
    approval_threshold: Optional[int] = None


@dataclass(frozen=True)
class UpdateMetaAllocatorApprovals:
    application_id: str
    status: Literal["Pending", "Approved"] = "Pending"
    block_number: Optional[int] = None
    tx_hash: Optional[str] = None


@dataclass(frozen=True)
class UpdateDatacapAllocation:
    application_id: str
    amount: float
    allocated_at: Optional[datetime] = None


@dataclass(frozen=True)
class CreateRefreshApplication:
    application_id: str
    method: ApplicationAllocator
    amount: float
    timestamp: Optional[datetime] = None
