"""Pydantic schemas for the application API and the read model. No DB or infrastructure."""

from datetime import datetime
from typing import Any, Dict, List, Literal, Optional

from pydantic import BaseModel, Field

from filplus.domain.models.application import (
    ApplicationAllocator,
    ApplicationInstructionStatus,
    ApplicationStatus,
)


# ---------------------------------------------------------------------------
# Request schemas
# ---------------------------------------------------------------------------

class ApplicationInstructionSchema(BaseModel):
    method: ApplicationAllocator
    datacap_amount: float = Field(0, ge=0)
    start_timestamp: Optional[int] = None
    end_timestamp: Optional[int] = None
    allocated_timestamp: Optional[int] = None
    status: ApplicationInstructionStatus = ApplicationInstructionStatus.PENDING


class CreateApplicationRequest(BaseModel):
    """Applicant submission. other_github_handles is the raw free-text field."""

    application_id: str = Field(..., min_length=1)
    application_number: int = Field(..., ge=0)
    applicant_name: str = Field(..., min_length=1)
    applicant_address: str = ""
    applicant_org_name: str = ""
    applicant_org_addresses: str = ""
    applicant_github_handle: str = ""
    other_github_handles: str = ""
    allocation_tranche_schedule: str = ""
    allocation_audit: str = ""
    allocation_distribution_required: str = ""
    allocation_required_storage_providers: str = ""
    allocation_required_replicas: str = ""
    bookkeeping_repo: str = ""
    datacap_allocation_limits: str = ""
    on_chain_address_for_datacap_allocation: str = ""


class EditApplicationRequest(BaseModel):
    applicant_name: str = Field(..., min_length=1)
    applicant_address: str = ""
    applicant_org_name: str = ""
    applicant_org_addresses: str = ""
    applicant_github_handle: str = ""
    other_github_handles: str = ""


class KYCResultRequest(BaseModel):
    approved: bool
    reason: Optional[str] = None


class RevokeKYCRequest(BaseModel):
    reason: Optional[str] = None


class GovernanceReviewRequest(BaseModel):
    approved: bool
    reviewer_address: str = Field(..., min_length=1)
    application_instructions: List[ApplicationInstructionSchema] = Field(default_factory=list)
    reason: Optional[str] = None


class RKHApprovalsRequest(BaseModel):
    message_id: int
    approvals: List[str] = Field(default_factory=list)
    status: Literal["Pending", "Approved", "Rejected"] = "Pending"
    approval_threshold: Optional[int] = Field(None, ge=1)


class MetaAllocatorApprovalsRequest(BaseModel):
    status: Literal["Pending", "Approved"] = "Pending"
    block_number: Optional[int] = None
    tx_hash: Optional[str] = None


class DatacapAllocationRequest(BaseModel):
    amount: float = Field(..., gt=0)
    allocated_at: Optional[datetime] = None


class DatacapRefreshRequest(BaseModel):
    method: ApplicationAllocator
    amount: float = Field(..., gt=0)
    timestamp: Optional[datetime] = None


class PullRequestUpdateRequest(BaseModel):
    number: int = Field(..., ge=1)
    url: str = Field(..., min_length=1)
    comment_id: Optional[int] = None


# ---------------------------------------------------------------------------
# Read model (ApplicationDetails document)
# ---------------------------------------------------------------------------

class MultisigDetails(BaseModel):
    multisig_threshold: int = 0
    multisig_signers: List[str] = Field(default_factory=list)


class RKHPhaseDetails(BaseModel):
    approvals: List[str] = Field(default_factory=list)
    approval_threshold: int = 0
    approval_message_id: Optional[int] = None


class PullRequestDetails(BaseModel):
    pull_request_url: Optional[str] = None
    pull_request_number: Optional[int] = None
    pull_request_comment_id: Optional[int] = None


class MetaAllocatorDetails(BaseModel):
    block_number: Optional[int] = None
    tx_hash: Optional[str] = None


class ApplicationDetails(BaseModel):
    """Denormalized, query-side view of one application. Not authoritative; rebuildable."""

    id: str
    number: Optional[int] = None
    name: Optional[str] = None
    organization: Optional[str] = None
    address: Optional[str] = None
    actor_id: Optional[str] = None
    github: Optional[str] = None
    other_github_handles: List[str] = Field(default_factory=list)
    status: Optional[ApplicationStatus] = None
    datacap: Optional[float] = None
    application_instructions: List[ApplicationInstructionSchema] = Field(default_factory=list)
    multisig_details: Optional[MultisigDetails] = None
    rkh_phase: Optional[RKHPhaseDetails] = None
    application_details: Optional[PullRequestDetails] = None
    meta_allocator: Optional[MetaAllocatorDetails] = None
    last_sequence_number: int = 0

    model_config = {"from_attributes": True}


class ApplicationsPage(BaseModel):
    items: List[ApplicationDetails]
    total: int
    page: int
    limit: int


# ---------------------------------------------------------------------------
# Command / query results
# ---------------------------------------------------------------------------

class ErrorDetail(BaseModel):
    category: str
    message: str


class CommandResponse(BaseModel):
    success: bool
    data: Optional[Dict[str, Any]] = None
    error: Optional[ErrorDetail] = None


class RoleResponse(BaseModel):
    address: str
    role: str
