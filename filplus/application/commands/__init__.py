"""Commands and their handlers."""

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
from filplus.application.commands.handlers import (
    CreateApplicationHandler,
    CreateRefreshApplicationHandler,
    EditApplicationHandler,
    RefreshAllocatorMultisigHandler,
    RevokeKYCHandler,
    SetApplicationPullRequestHandler,
    SubmitGovernanceReviewResultHandler,
    SubmitKYCResultHandler,
    UpdateDatacapAllocationHandler,
    UpdateMetaAllocatorApprovalsHandler,
    UpdateRKHApprovalsHandler,
)

__all__ = [
    "CreateApplication",
    "CreateApplicationHandler",
    "CreateRefreshApplication",
    "CreateRefreshApplicationHandler",
    "EditApplication",
    "EditApplicationHandler",
    "RefreshAllocatorMultisig",
    "RefreshAllocatorMultisigHandler",
    "RevokeKYC",
    "RevokeKYCHandler",
    "SetApplicationPullRequest",
    "SetApplicationPullRequestHandler",
    "SubmitGovernanceReviewResult",
    "SubmitGovernanceReviewResultHandler",
    "SubmitKYCResult",
    "SubmitKYCResultHandler",
    "UpdateDatacapAllocation",
    "UpdateDatacapAllocationHandler",
    "UpdateMetaAllocatorApprovals",
    "UpdateMetaAllocatorApprovalsHandler",
    "UpdateRKHApprovals",
    "UpdateRKHApprovalsHandler",
]
