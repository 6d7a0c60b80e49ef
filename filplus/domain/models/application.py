"""
Event-sourced application aggregate. Pure business semantics, no ORM or infrastructure.

State is only ever changed by applying a DomainEvent; public operations validate the
current status, then record exactly one event. Replaying the same log from an empty
aggregate always yields the same state.
"""

from dataclasses import dataclass, field, replace
from datetime import datetime, timezone
from enum import Enum
from typing import Any, Callable, Dict, FrozenSet, List, Optional, Sequence

from filplus.domain.exceptions import (
    AlreadyExistsError,
    DomainValidationError,
    InvalidTransitionError,
)
from filplus.domain.models import events as ev
from filplus.domain.models.events import DomainEvent


class ApplicationStatus(str, Enum):
    KYC_PHASE = "KYC_PHASE"
    GOVERNANCE_REVIEW_PHASE = "GOVERNANCE_REVIEW_PHASE"
    RKH_APPROVAL_PHASE = "RKH_APPROVAL_PHASE"
    META_APPROVAL_PHASE = "META_APPROVAL_PHASE"
    APPROVED = "APPROVED"
    DC_ALLOCATED = "DC_ALLOCATED"
    REJECTED = "REJECTED"


class ApplicationAllocator(str, Enum):
    """Approval path of an allocation instruction."""

    RKH_ALLOCATOR = "RKH"
    META_ALLOCATOR = "META"


class ApplicationInstructionStatus(str, Enum):
    PENDING = "PENDING"
    GRANTED = "GRANTED"
    REJECTED = "REJECTED"


@dataclass(frozen=True)
class ApplicationInstruction:
    """One allocation tranche. Timestamps are epoch seconds."""

    method: ApplicationAllocator
    datacap_amount: float = 0
    start_timestamp: Optional[int] = None
    end_timestamp: Optional[int] = None
    allocated_timestamp: Optional[int] = None
    status: ApplicationInstructionStatus = ApplicationInstructionStatus.PENDING

    def to_dict(self) -> Dict[str, Any]:
        return {
            "method": self.method.value,
            "datacap_amount": self.datacap_amount,
            "start_timestamp": self.start_timestamp,
            "end_timestamp": self.end_timestamp,
            "allocated_timestamp": self.allocated_timestamp,
            "status": self.status.value,
        }

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "ApplicationInstruction":
        return cls(
            method=ApplicationAllocator(data["method"]),
            datacap_amount=data.get("datacap_amount") or 0,
            start_timestamp=data.get("start_timestamp"),
            end_timestamp=data.get("end_timestamp"),
            allocated_timestamp=data.get("allocated_timestamp"),
            status=ApplicationInstructionStatus(
                data.get("status") or ApplicationInstructionStatus.PENDING.value
            ),
        )


@dataclass(frozen=True)
class ApplicantInfo:
    """Applicant and application-form fields captured at creation (or edit)."""

    name: str
    address: str = ""
    organization: str = ""
    organization_addresses: str = ""
    github_handle: str = ""
    other_github_handles: List[str] = field(default_factory=list)
    allocation_tranche_schedule: str = ""
    allocation_audit: str = ""
    allocation_distribution_required: str = ""
    allocation_required_storage_providers: str = ""
    allocation_required_replicas: str = ""
    bookkeeping_repo: str = ""
    datacap_allocation_limits: str = ""
    on_chain_address: str = ""

    def to_dict(self) -> Dict[str, Any]:
        return {
            "name": self.name,
            "address": self.address,
            "organization": self.organization,
            "organization_addresses": self.organization_addresses,
            "github_handle": self.github_handle,
            "other_github_handles": list(self.other_github_handles),
            "allocation_tranche_schedule": self.allocation_tranche_schedule,
            "allocation_audit": self.allocation_audit,
            "allocation_distribution_required": self.allocation_distribution_required,
            "allocation_required_storage_providers": self.allocation_required_storage_providers,
            "allocation_required_replicas": self.allocation_required_replicas,
            "bookkeeping_repo": self.bookkeeping_repo,
            "datacap_allocation_limits": self.datacap_allocation_limits,
            "on_chain_address": self.on_chain_address,
        }

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "ApplicantInfo":
        known = {k: v for k, v in data.items() if k in cls.__dataclass_fields__}
        known["other_github_handles"] = list(known.get("other_github_handles") or [])
        return cls(**known)


@dataclass(frozen=True)
class AllocatorMultisig:
    actor_id: str
    address: str
    threshold: int
    signers: List[str] = field(default_factory=list)

    def to_dict(self) -> Dict[str, Any]:
        return {
            "actor_id": self.actor_id,
            "address": self.address,
            "threshold": self.threshold,
            "signers": list(self.signers),
        }


@dataclass(frozen=True)
class PullRequest:
    number: int
    url: str
    comment_id: Optional[int] = None

    def to_dict(self) -> Dict[str, Any]:
        return {"number": self.number, "url": self.url, "comment_id": self.comment_id}


@dataclass(frozen=True)
class RKHPhase:
    approvals: List[str] = field(default_factory=list)
    approval_threshold: int = 0
    approval_message_id: Optional[int] = None

    def to_dict(self) -> Dict[str, Any]:
        return {
            "approvals": list(self.approvals),
            "approval_threshold": self.approval_threshold,
            "approval_message_id": self.approval_message_id,
        }


@dataclass(frozen=True)
class MetaAllocatorTx:
    block_number: Optional[int] = None
    tx_hash: Optional[str] = None

    def to_dict(self) -> Dict[str, Any]:
        return {"block_number": self.block_number, "tx_hash": self.tx_hash}


def latest_instruction(
    instructions: Sequence[ApplicationInstruction],
) -> Optional[ApplicationInstruction]:
    """
    The instruction that decides routing and the datacap amount of the current phase.
    Currently the last appended entry; instructions are not guaranteed to be time-ordered,
    so any change to that policy belongs here and nowhere else.
    """
    if not instructions:
        return None
    return instructions[-1]


def approval_phase_for(instruction: ApplicationInstruction) -> ApplicationStatus:
    if instruction.method == ApplicationAllocator.META_ALLOCATOR:
        return ApplicationStatus.META_APPROVAL_PHASE
    return ApplicationStatus.RKH_APPROVAL_PHASE


def instructions_to_payload(instructions: Sequence[ApplicationInstruction]) -> List[Dict[str, Any]]:
    return [i.to_dict() for i in instructions]


def instructions_from_payload(raw: Optional[List[Dict[str, Any]]]) -> List[ApplicationInstruction]:
    return [ApplicationInstruction.from_dict(i) for i in raw or []]


def _dedupe(items: Sequence[str]) -> List[str]:
    seen: List[str] = []
    for item in items:
        if item and item not in seen:
            seen.append(item)
    return seen


def _epoch(moment: datetime) -> int:
    if moment.tzinfo is None:
        moment = moment.replace(tzinfo=timezone.utc)
    return int(moment.timestamp())


S = ApplicationStatus

# Legal source statuses per operation. Creation is handled separately (no status yet).
_OPERATION_SOURCES: Dict[str, FrozenSet[ApplicationStatus]] = {
    "edit": frozenset(
        {
            S.KYC_PHASE,
            S.GOVERNANCE_REVIEW_PHASE,
            S.RKH_APPROVAL_PHASE,
            S.META_APPROVAL_PHASE,
            S.APPROVED,
        }
    ),
    "set_allocator_multisig": frozenset(S),
    "set_application_pull_request": frozenset(S),
    "record_kyc": frozenset({S.KYC_PHASE}),
    "revoke_kyc": frozenset({S.GOVERNANCE_REVIEW_PHASE}),
    "record_governance_review": frozenset({S.GOVERNANCE_REVIEW_PHASE}),
    "start_rkh_approval": frozenset({S.RKH_APPROVAL_PHASE}),
    "update_rkh_approvals": frozenset({S.RKH_APPROVAL_PHASE}),
    "complete_rkh_approval": frozenset({S.RKH_APPROVAL_PHASE}),
    "start_meta_allocator_approval": frozenset({S.META_APPROVAL_PHASE}),
    "complete_meta_allocator_approval": frozenset({S.META_APPROVAL_PHASE}),
    "record_datacap_allocation": frozenset({S.APPROVED}),
    "request_datacap_refresh": frozenset(
        {
            S.RKH_APPROVAL_PHASE,
            S.META_APPROVAL_PHASE,
            S.APPROVED,
            S.DC_ALLOCATED,
            S.REJECTED,
        }
    ),
}


class Application:
    """
    Aggregate root for one datacap application. Identity is the application id.
    `version` is the number of events applied; uncommitted events are those recorded
    since the last load or save.
    """

    def __init__(self, application_id: str) -> None:
        if not application_id or not application_id.strip():
            raise DomainValidationError("application_id must not be empty")
        self.application_id = application_id
        self.version = 0
        self.status: Optional[ApplicationStatus] = None
        self.application_number: Optional[int] = None
        self.applicant_info: Optional[ApplicantInfo] = None
        self.allocator_multisig: Optional[AllocatorMultisig] = None
        self.pull_request: Optional[PullRequest] = None
        self.rkh_phase: Optional[RKHPhase] = None
        self.meta_allocator_tx: Optional[MetaAllocatorTx] = None
        self.application_instructions: List[ApplicationInstruction] = []
        self.datacap_allocated: Optional[float] = None
        self._uncommitted: List[DomainEvent] = []

    # ------------------------------------------------------------------
    # Replay
    # ------------------------------------------------------------------

    @classmethod
    def from_history(cls, application_id: str, events: Sequence[DomainEvent]) -> "Application":
        aggregate = cls(application_id)
        aggregate.load_from_history(events)
        return aggregate

    def load_from_history(self, events: Sequence[DomainEvent]) -> None:
        for event in events:
            self._apply(event)

    @property
    def uncommitted_events(self) -> List[DomainEvent]:
        return list(self._uncommitted)

    @property
    def committed_version(self) -> int:
        """Version of the last persisted event; the expected version for the next save."""
        return self.version - len(self._uncommitted)

    def mark_committed(self) -> None:
        self._uncommitted.clear()

    @property
    def exists(self) -> bool:
        return self.version > 0

    # ------------------------------------------------------------------
    # Operations
    # ------------------------------------------------------------------

    def create(self, application_number: int, applicant: ApplicantInfo) -> DomainEvent:
        if self.exists:
            raise AlreadyExistsError(f"Application already exists: {self.application_id}")
        if not applicant.name or not applicant.name.strip():
            raise DomainValidationError("applicant name must not be empty")
        return self._record(
            ev.APPLICATION_CREATED,
            {"application_number": application_number, "applicant": applicant.to_dict()},
        )

    def edit(self, applicant: ApplicantInfo) -> Optional[DomainEvent]:
        self._require("edit")
        if applicant == self.applicant_info:
            return None
        return self._record(ev.APPLICATION_EDITED, {"applicant": applicant.to_dict()})

    def set_allocator_multisig(
        self,
        actor_id: str,
        address: str,
        threshold: int,
        signers: Sequence[str],
    ) -> Optional[DomainEvent]:
        """Record resolved on-chain multisig data. Only refreshes; never moves to another address."""
        self._require("set_allocator_multisig")
        if not actor_id or not address:
            raise DomainValidationError("multisig actor_id and address must be resolved")
        if self.allocator_multisig and self.allocator_multisig.address != address:
            raise InvalidTransitionError(
                f"Allocator multisig already set to {self.allocator_multisig.address}; "
                f"cannot reassign to {address}"
            )
        multisig = AllocatorMultisig(
            actor_id=actor_id,
            address=address,
            threshold=threshold,
            signers=list(signers),
        )
        if multisig == self.allocator_multisig:
            return None
        return self._record(ev.ALLOCATOR_MULTISIG_UPDATED, multisig.to_dict())

    def set_application_pull_request(
        self,
        number: int,
        url: str,
        comment_id: Optional[int] = None,
    ) -> Optional[DomainEvent]:
        self._require("set_application_pull_request")
        pull_request = PullRequest(number=number, url=url, comment_id=comment_id)
        if pull_request == self.pull_request:
            return None
        return self._record(
            ev.APPLICATION_PULL_REQUEST_UPDATED,
            {**pull_request.to_dict(), "status": self.status.value},
        )

    def record_kyc(self, approved: bool, reason: Optional[str] = None) -> DomainEvent:
        self._require("record_kyc")
        if approved:
            return self._record(ev.KYC_APPROVED, {})
        return self._record(ev.KYC_REJECTED, {"reason": reason})

    def revoke_kyc(self, reason: Optional[str] = None) -> DomainEvent:
        self._require("revoke_kyc")
        return self._record(ev.KYC_REVOKED, {"reason": reason})

    def record_governance_review(
        self,
        approved: bool,
        instructions: Sequence[ApplicationInstruction],
        reason: Optional[str] = None,
    ) -> DomainEvent:
        self._require("record_governance_review")
        if approved:
            latest = latest_instruction(instructions)
            if latest is None:
                raise DomainValidationError(
                    "governance approval requires at least one allocation instruction"
                )
            if latest.datacap_amount <= 0:
                raise DomainValidationError("latest instruction datacap_amount must be positive")
            return self._record(
                ev.GOVERNANCE_REVIEW_APPROVED,
                {"application_instructions": instructions_to_payload(instructions)},
            )
        kept = list(instructions) or self.application_instructions
        rejected = self._with_latest(kept, status=ApplicationInstructionStatus.REJECTED)
        return self._record(
            ev.GOVERNANCE_REVIEW_REJECTED,
            {"application_instructions": instructions_to_payload(rejected), "reason": reason},
        )

    def start_rkh_approval(self, approval_threshold: int) -> DomainEvent:
        self._require("start_rkh_approval")
        if self.rkh_phase is not None:
            raise InvalidTransitionError(
                f"RKH approval already started for {self.application_id}"
            )
        if approval_threshold < 1:
            raise DomainValidationError("approval_threshold must be at least 1")
        return self._record(ev.RKH_APPROVAL_STARTED, {"approval_threshold": approval_threshold})

    def update_rkh_approvals(
        self,
        message_id: int,
        approvals: Sequence[str],
        approval_threshold: Optional[int] = None,
    ) -> Optional[DomainEvent]:
        """Record the current signer set of the RKH proposal. No event when nothing changed."""
        self._require("update_rkh_approvals")
        threshold = approval_threshold
        if threshold is None and self.rkh_phase is not None:
            threshold = self.rkh_phase.approval_threshold
        if threshold is None:
            raise DomainValidationError("approval_threshold is unknown for this RKH phase")
        phase = RKHPhase(
            approvals=_dedupe(approvals),
            approval_threshold=threshold,
            approval_message_id=message_id,
        )
        if phase == self.rkh_phase:
            return None
        return self._record(ev.RKH_APPROVALS_UPDATED, phase.to_dict())

    def complete_rkh_approval(self) -> DomainEvent:
        self._require("complete_rkh_approval")
        return self._record(
            ev.RKH_APPROVAL_COMPLETED,
            {"application_instructions": instructions_to_payload(self.application_instructions)},
        )

    def start_meta_allocator_approval(self) -> DomainEvent:
        self._require("start_meta_allocator_approval")
        return self._record(ev.META_ALLOCATOR_APPROVAL_STARTED, {})

    def complete_meta_allocator_approval(
        self,
        block_number: Optional[int] = None,
        tx_hash: Optional[str] = None,
    ) -> DomainEvent:
        self._require("complete_meta_allocator_approval")
        return self._record(
            ev.META_ALLOCATOR_APPROVAL_COMPLETED,
            {
                "application_instructions": instructions_to_payload(self.application_instructions),
                "block_number": block_number,
                "tx_hash": tx_hash,
            },
        )

    def record_datacap_allocation(
        self,
        amount: float,
        allocated_at: Optional[datetime] = None,
    ) -> DomainEvent:
        self._require("record_datacap_allocation")
        if amount <= 0:
            raise DomainValidationError("allocated datacap amount must be positive")
        allocated_timestamp = _epoch(allocated_at or datetime.now(timezone.utc))
        granted = self._with_latest(
            self.application_instructions,
            status=ApplicationInstructionStatus.GRANTED,
            allocated_timestamp=allocated_timestamp,
            end_timestamp=allocated_timestamp,
        )
        return self._record(
            ev.DATACAP_ALLOCATION_UPDATED,
            {
                "datacap_amount": amount,
                "allocated_timestamp": allocated_timestamp,
                "application_instructions": instructions_to_payload(granted),
            },
        )

    def request_datacap_refresh(
        self,
        method: ApplicationAllocator,
        amount: float,
        timestamp: datetime,
    ) -> DomainEvent:
        self._require("request_datacap_refresh")
        if amount <= 0:
            raise DomainValidationError("refresh datacap amount must be positive")
        return self._record(
            ev.DATACAP_REFRESH_REQUESTED,
            {
                "method": ApplicationAllocator(method).value,
                "datacap_amount": amount,
                "timestamp": _epoch(timestamp),
            },
        )

    # ------------------------------------------------------------------
    # Internals
    # ------------------------------------------------------------------

    def _require(self, operation: str) -> None:
        if self.status is None:
            raise InvalidTransitionError(
                f"{operation}: application {self.application_id} has not been created"
            )
        if self.status not in _OPERATION_SOURCES[operation]:
            raise InvalidTransitionError(
                f"{operation} is not allowed from status {self.status.value}"
            )

    @staticmethod
    def _with_latest(
        instructions: Sequence[ApplicationInstruction],
        **changes: Any,
    ) -> List[ApplicationInstruction]:
        updated = list(instructions)
        latest = latest_instruction(updated)
        if latest is not None:
            updated[-1] = replace(latest, **changes)
        return updated

    def _record(self, event_type: str, payload: Dict[str, Any]) -> DomainEvent:
        event = DomainEvent(
            aggregate_id=self.application_id,
            sequence_number=self.version + 1,
            event_type=event_type,
            payload=payload,
        )
        self._apply(event)
        self._uncommitted.append(event)
        return event

    def _apply(self, event: DomainEvent) -> None:
        if event.sequence_number != self.version + 1:
            raise InvalidTransitionError(
                f"Out-of-order event {event.event_type} #{event.sequence_number} "
                f"for {self.application_id} at version {self.version}"
            )
        applier = _APPLIERS.get(event.event_type)
        if applier is None:
            raise DomainValidationError(f"Unknown event type: {event.event_type}")
        applier(self, event.payload)
        if self.status != ApplicationStatus.RKH_APPROVAL_PHASE:
            self.rkh_phase = None
        self.version = event.sequence_number

    def _on_created(self, payload: Dict[str, Any]) -> None:
        self.application_number = payload.get("application_number")
        self.applicant_info = ApplicantInfo.from_dict(payload["applicant"])
        self.status = ApplicationStatus.KYC_PHASE

    def _on_edited(self, payload: Dict[str, Any]) -> None:
        self.applicant_info = ApplicantInfo.from_dict(payload["applicant"])

    def _on_multisig_updated(self, payload: Dict[str, Any]) -> None:
        self.allocator_multisig = AllocatorMultisig(
            actor_id=payload["actor_id"],
            address=payload["address"],
            threshold=payload.get("threshold") or 0,
            signers=list(payload.get("signers") or []),
        )

    def _on_pull_request_updated(self, payload: Dict[str, Any]) -> None:
        self.pull_request = PullRequest(
            number=payload["number"],
            url=payload["url"],
            comment_id=payload.get("comment_id"),
        )

    def _on_kyc_approved(self, payload: Dict[str, Any]) -> None:
        self.status = ApplicationStatus.GOVERNANCE_REVIEW_PHASE

    def _on_kyc_rejected(self, payload: Dict[str, Any]) -> None:
        self.status = ApplicationStatus.REJECTED

    def _on_kyc_revoked(self, payload: Dict[str, Any]) -> None:
        self.status = ApplicationStatus.KYC_PHASE

    def _on_governance_approved(self, payload: Dict[str, Any]) -> None:
        self.application_instructions = instructions_from_payload(
            payload["application_instructions"]
        )
        self.status = approval_phase_for(latest_instruction(self.application_instructions))

    def _on_governance_rejected(self, payload: Dict[str, Any]) -> None:
        self.application_instructions = instructions_from_payload(
            payload.get("application_instructions")
        )
        self.status = ApplicationStatus.REJECTED

    def _on_rkh_started(self, payload: Dict[str, Any]) -> None:
        self.rkh_phase = RKHPhase(approvals=[], approval_threshold=payload["approval_threshold"])

    def _on_rkh_updated(self, payload: Dict[str, Any]) -> None:
        self.rkh_phase = RKHPhase(
            approvals=list(payload.get("approvals") or []),
            approval_threshold=payload["approval_threshold"],
            approval_message_id=payload.get("approval_message_id"),
        )

    def _on_rkh_completed(self, payload: Dict[str, Any]) -> None:
        self.application_instructions = instructions_from_payload(
            payload["application_instructions"]
        )
        self.status = ApplicationStatus.APPROVED

    def _on_meta_started(self, payload: Dict[str, Any]) -> None:
        self.meta_allocator_tx = None

    def _on_meta_completed(self, payload: Dict[str, Any]) -> None:
        self.application_instructions = instructions_from_payload(
            payload["application_instructions"]
        )
        self.meta_allocator_tx = MetaAllocatorTx(
            block_number=payload.get("block_number"),
            tx_hash=payload.get("tx_hash"),
        )
        self.status = ApplicationStatus.APPROVED

    def _on_datacap_allocated(self, payload: Dict[str, Any]) -> None:
        self.application_instructions = instructions_from_payload(
            payload["application_instructions"]
        )
        self.datacap_allocated = payload["datacap_amount"]
        self.status = ApplicationStatus.DC_ALLOCATED

    def _on_refresh_requested(self, payload: Dict[str, Any]) -> None:
        self.application_instructions = self.application_instructions + [
            ApplicationInstruction(
                method=ApplicationAllocator(payload["method"]),
                datacap_amount=payload["datacap_amount"],
                start_timestamp=payload.get("timestamp"),
                status=ApplicationInstructionStatus.PENDING,
            )
        ]
        self.status = ApplicationStatus.GOVERNANCE_REVIEW_PHASE


_APPLIERS: Dict[str, Callable[[Application, Dict[str, Any]], None]] = {
    ev.APPLICATION_CREATED: Application._on_created,
    ev.APPLICATION_EDITED: Application._on_edited,
    ev.ALLOCATOR_MULTISIG_UPDATED: Application._on_multisig_updated,
    ev.APPLICATION_PULL_REQUEST_UPDATED: Application._on_pull_request_updated,
    ev.KYC_APPROVED: Application._on_kyc_approved,
    ev.KYC_REJECTED: Application._on_kyc_rejected,
    ev.KYC_REVOKED: Application._on_kyc_revoked,
    ev.GOVERNANCE_REVIEW_APPROVED: Application._on_governance_approved,
    ev.GOVERNANCE_REVIEW_REJECTED: Application._on_governance_rejected,
    ev.RKH_APPROVAL_STARTED: Application._on_rkh_started,
    ev.RKH_APPROVALS_UPDATED: Application._on_rkh_updated,
    ev.RKH_APPROVAL_COMPLETED: Application._on_rkh_completed,
    ev.META_ALLOCATOR_APPROVAL_STARTED: Application._on_meta_started,
    ev.META_ALLOCATOR_APPROVAL_COMPLETED: Application._on_meta_completed,
    ev.DATACAP_ALLOCATION_UPDATED: Application._on_datacap_allocated,
    ev.DATACAP_REFRESH_REQUESTED: Application._on_refresh_requested,
}
