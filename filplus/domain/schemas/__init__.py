"""Pydantic schemas for API and read model."""

from filplus.domain.schemas.application import (
    ApplicationDetails,
    ApplicationInstructionSchema,
    ApplicationsPage,
    CommandResponse,
    CreateApplicationRequest,
    DatacapAllocationRequest,
    DatacapRefreshRequest,
    EditApplicationRequest,
    ErrorDetail,
    GovernanceReviewRequest,
    KYCResultRequest,
    MetaAllocatorApprovalsRequest,
    MetaAllocatorDetails,
    MultisigDetails,
    PullRequestDetails,
    PullRequestUpdateRequest,
    RevokeKYCRequest,
    RKHApprovalsRequest,
    RKHPhaseDetails,
    RoleResponse,
)

__all__ = [
    "ApplicationDetails",
    "ApplicationInstructionSchema",
    "ApplicationsPage",
    "CommandResponse",
    "CreateApplicationRequest",
    "DatacapAllocationRequest",
    "DatacapRefreshRequest",
    "EditApplicationRequest",
    "ErrorDetail",
    "GovernanceReviewRequest",
    "KYCResultRequest",
    "MetaAllocatorApprovalsRequest",
    "MetaAllocatorDetails",
    "MultisigDetails",
    "PullRequestDetails",
    "PullRequestUpdateRequest",
    "RevokeKYCRequest",
    "RKHApprovalsRequest",
    "RKHPhaseDetails",
    "RoleResponse",
]
