"""Domain models. Pure business entities."""

from filplus.domain.models.application import (
    AllocatorMultisig,
    ApplicantInfo,
    Application,
    ApplicationAllocator,
    ApplicationInstruction,
    ApplicationInstructionStatus,
    ApplicationStatus,
    MetaAllocatorTx,
    PullRequest,
    RKHPhase,
    approval_phase_for,
    latest_instruction,
)
from filplus.domain.models.events import DomainEvent

__all__ = [
    "AllocatorMultisig",
    "ApplicantInfo",
    "Application",
    "ApplicationAllocator",
    "ApplicationInstruction",
    "ApplicationInstructionStatus",
    "ApplicationStatus",
    "DomainEvent",
    "MetaAllocatorTx",
    "PullRequest",
    "RKHPhase",
    "approval_phase_for",
    "latest_instruction",
]
