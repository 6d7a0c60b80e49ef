"""Application aggregate: transitions, emitted events, no-op updates, replay."""

from datetime import datetime, timezone

import pytest

from filplus.domain.exceptions import (
    AlreadyExistsError,
    DomainValidationError,
    InvalidTransitionError,
)
from filplus.domain.models import events as ev
from filplus.domain.models.application import (
    ApplicantInfo,
    Application,
    ApplicationAllocator,
    ApplicationInstruction,
    ApplicationInstructionStatus,
    ApplicationStatus,
)
from filplus.domain.models.events import DomainEvent


def _rkh(amount: float = 100) -> ApplicationInstruction:
    return ApplicationInstruction(method=ApplicationAllocator.RKH_ALLOCATOR, datacap_amount=amount)


def _meta(amount: float = 50) -> ApplicationInstruction:
    return ApplicationInstruction(method=ApplicationAllocator.META_ALLOCATOR, datacap_amount=amount)


def _created(application_id: str = "app-1") -> Application:
    app = Application(application_id)
    app.create(1, ApplicantInfo(name="Alice", organization="Acme", on_chain_address="f2msig"))
    return app


def _in_rkh_phase() -> Application:
    app = _created()
    app.record_kyc(True)
    app.record_governance_review(True, [_rkh(100)])
    app.start_rkh_approval(2)
    return app


def _snapshot(app: Application) -> dict:
    return {
        "version": app.version,
        "status": app.status,
        "applicant_info": app.applicant_info,
        "allocator_multisig": app.allocator_multisig,
        "pull_request": app.pull_request,
        "rkh_phase": app.rkh_phase,
        "meta_allocator_tx": app.meta_allocator_tx,
        "application_instructions": list(app.application_instructions),
        "datacap_allocated": app.datacap_allocated,
    }


def test_create_starts_in_kyc_phase():
    app = _created()
    assert app.status == ApplicationStatus.KYC_PHASE
    assert app.version == 1
    assert [e.event_type for e in app.uncommitted_events] == [ev.APPLICATION_CREATED]
    assert app.applicant_info.name == "Alice"


def test_empty_application_id_rejected():
    with pytest.raises(DomainValidationError):
        Application("  ")


def test_create_twice_raises_already_exists_and_keeps_state():
    app = _created()
    before = _snapshot(app)
    with pytest.raises(AlreadyExistsError):
        app.create(2, ApplicantInfo(name="Mallory"))
    assert _snapshot(app) == before
    assert len(app.uncommitted_events) == 1


def test_operation_before_create_is_invalid_transition():
    app = Application("app-1")
    with pytest.raises(InvalidTransitionError):
        app.record_kyc(True)


def test_kyc_approved_moves_to_governance_review():
    app = _created()
    app.record_kyc(True)
    assert app.status == ApplicationStatus.GOVERNANCE_REVIEW_PHASE


def test_kyc_rejected_is_terminal():
    app = _created()
    app.record_kyc(False, reason="documents expired")
    assert app.status == ApplicationStatus.REJECTED
    with pytest.raises(InvalidTransitionError):
        app.record_kyc(True)
    with pytest.raises(InvalidTransitionError):
        app.edit(ApplicantInfo(name="Alice B"))


def test_revoke_kyc_returns_to_kyc_phase():
    app = _created()
    app.record_kyc(True)
    app.revoke_kyc("flagged")
    assert app.status == ApplicationStatus.KYC_PHASE
    assert app.uncommitted_events[-1].payload == {"reason": "flagged"}


def test_governance_review_not_allowed_from_kyc_phase():
    app = _created()
    with pytest.raises(InvalidTransitionError):
        app.record_governance_review(True, [_rkh()])


def test_governance_approval_routes_to_rkh():
    app = _created()
    app.record_kyc(True)
    app.record_governance_review(True, [_rkh(100)])
    assert app.status == ApplicationStatus.RKH_APPROVAL_PHASE
    assert app.application_instructions == [_rkh(100)]


def test_governance_approval_routes_to_meta_on_latest_instruction():
    app = _created()
    app.record_kyc(True)
    app.record_governance_review(True, [_rkh(100), _meta(50)])
    assert app.status == ApplicationStatus.META_APPROVAL_PHASE


def test_governance_approval_requires_instructions():
    app = _created()
    app.record_kyc(True)
    with pytest.raises(DomainValidationError):
        app.record_governance_review(True, [])
    with pytest.raises(DomainValidationError):
        app.record_governance_review(True, [_rkh(0)])
    assert app.status == ApplicationStatus.GOVERNANCE_REVIEW_PHASE


def test_governance_rejection_marks_latest_instruction_rejected():
    app = _created()
    app.record_kyc(True)
    app.record_governance_review(False, [_rkh(10), _rkh(20)], reason="too large")
    assert app.status == ApplicationStatus.REJECTED
    assert app.application_instructions[0].status == ApplicationInstructionStatus.PENDING
    assert app.application_instructions[-1].status == ApplicationInstructionStatus.REJECTED


def test_approval_phase_only_reached_through_governance_review():
    app = _created()
    seen = [app.status]
    app.record_kyc(True)
    seen.append(app.status)
    app.record_governance_review(True, [_rkh()])
    seen.append(app.status)
    first_approval = seen.index(ApplicationStatus.RKH_APPROVAL_PHASE)
    assert ApplicationStatus.GOVERNANCE_REVIEW_PHASE in seen[:first_approval]


def test_start_rkh_approval_twice_is_invalid():
    app = _in_rkh_phase()
    with pytest.raises(InvalidTransitionError):
        app.start_rkh_approval(2)


def test_update_rkh_approvals_dedupes_and_skips_unchanged():
    app = _in_rkh_phase()
    event = app.update_rkh_approvals(5, ["f1abc", "f1def", "f1abc"])
    assert event.event_type == ev.RKH_APPROVALS_UPDATED
    assert app.rkh_phase.approvals == ["f1abc", "f1def"]
    assert app.rkh_phase.approval_threshold == 2

    version = app.version
    assert app.update_rkh_approvals(5, ["f1abc", "f1def"]) is None
    assert app.version == version


def test_complete_rkh_preserves_instructions_from_governance_review():
    app = _in_rkh_phase()
    instructions = list(app.application_instructions)
    app.update_rkh_approvals(1, ["f1abc", "f1def"], approval_threshold=2)
    app.complete_rkh_approval()
    assert app.status == ApplicationStatus.APPROVED
    assert app.application_instructions == instructions
    assert app.rkh_phase is None


def test_duplicate_rkh_completion_is_invalid_transition():
    app = _in_rkh_phase()
    app.complete_rkh_approval()
    with pytest.raises(InvalidTransitionError):
        app.complete_rkh_approval()


def test_meta_allocator_flow():
    app = _created()
    app.record_kyc(True)
    app.record_governance_review(True, [_meta(50)])
    app.start_meta_allocator_approval()
    app.complete_meta_allocator_approval(block_number=123, tx_hash="0xabc")
    assert app.status == ApplicationStatus.APPROVED
    assert app.meta_allocator_tx.block_number == 123
    assert app.meta_allocator_tx.tx_hash == "0xabc"


def test_datacap_allocation_grants_latest_instruction():
    app = _in_rkh_phase()
    app.complete_rkh_approval()
    allocated_at = datetime(2024, 5, 1, tzinfo=timezone.utc)
    app.record_datacap_allocation(100, allocated_at)
    latest = app.application_instructions[-1]
    assert app.status == ApplicationStatus.DC_ALLOCATED
    assert app.datacap_allocated == 100
    assert latest.status == ApplicationInstructionStatus.GRANTED
    assert latest.allocated_timestamp == int(allocated_at.timestamp())


def test_datacap_allocation_requires_approved():
    app = _in_rkh_phase()
    with pytest.raises(InvalidTransitionError):
        app.record_datacap_allocation(100)


def test_refresh_appends_without_mutating_history():
    app = _in_rkh_phase()
    app.complete_rkh_approval()
    app.record_datacap_allocation(100, datetime(2024, 5, 1, tzinfo=timezone.utc))
    granted = list(app.application_instructions)

    app.request_datacap_refresh(
        ApplicationAllocator.META_ALLOCATOR,
        200,
        datetime(2024, 8, 1, tzinfo=timezone.utc),
    )
    assert app.status == ApplicationStatus.GOVERNANCE_REVIEW_PHASE
    assert app.application_instructions[:-1] == granted
    assert app.application_instructions[-1].method == ApplicationAllocator.META_ALLOCATOR
    assert app.application_instructions[-1].datacap_amount == 200
    assert app.application_instructions[-1].status == ApplicationInstructionStatus.PENDING


def test_refresh_not_allowed_during_kyc():
    app = _created()
    with pytest.raises(InvalidTransitionError):
        app.request_datacap_refresh(ApplicationAllocator.RKH_ALLOCATOR, 10, datetime.now(timezone.utc))


def test_edit_records_only_changes():
    app = _created()
    assert app.edit(app.applicant_info) is None
    event = app.edit(ApplicantInfo(name="Alice Cooper", organization="Acme"))
    assert event.event_type == ev.APPLICATION_EDITED
    assert app.applicant_info.name == "Alice Cooper"


def test_allocator_multisig_refresh_and_reassignment():
    app = _created()
    app.set_allocator_multisig("f01234", "f2msig", 2, ["f1a", "f1b"])
    assert app.set_allocator_multisig("f01234", "f2msig", 2, ["f1a", "f1b"]) is None
    app.set_allocator_multisig("f01234", "f2msig", 3, ["f1a", "f1b", "f1c"])
    assert app.allocator_multisig.threshold == 3
    with pytest.raises(InvalidTransitionError):
        app.set_allocator_multisig("f05678", "f2other", 1, ["f1z"])


def test_allocator_multisig_requires_resolved_ids():
    app = _created()
    with pytest.raises(DomainValidationError):
        app.set_allocator_multisig("", "f2msig", 2, [])


def test_pull_request_update_is_idempotent():
    app = _created()
    event = app.set_application_pull_request(7, "https://github.com/org/apps/pull/7", 70)
    assert event.payload["status"] == ApplicationStatus.KYC_PHASE.value
    assert app.set_application_pull_request(7, "https://github.com/org/apps/pull/7", 70) is None


def test_replay_matches_live_state():
    app = _created()
    app.set_allocator_multisig("f01234", "f2msig", 2, ["f1a", "f1b"])
    app.record_kyc(True)
    app.record_governance_review(True, [_rkh(100)])
    app.start_rkh_approval(2)
    app.update_rkh_approvals(9, ["f1a"])
    app.complete_rkh_approval()
    app.record_datacap_allocation(100, datetime(2024, 5, 1, tzinfo=timezone.utc))
    app.request_datacap_refresh(
        ApplicationAllocator.RKH_ALLOCATOR,
        300,
        datetime(2024, 9, 1, tzinfo=timezone.utc),
    )

    replayed = Application.from_history("app-1", app.uncommitted_events)
    assert _snapshot(replayed) == _snapshot(app)
    assert replayed.uncommitted_events == []


def test_out_of_order_event_rejected_on_replay():
    app = _created()
    app.record_kyc(True)
    events = app.uncommitted_events
    with pytest.raises(InvalidTransitionError):
        Application.from_history("app-1", [events[1], events[0]])


def test_unknown_event_type_rejected():
    app = Application("app-1")
    with pytest.raises(DomainValidationError):
        app.load_from_history([DomainEvent("app-1", 1, "SomethingElse", {})])


def test_committed_version_tracks_uncommitted_events():
    app = Application.from_history("app-1", _created().uncommitted_events)
    assert app.committed_version == 1
    app.record_kyc(True)
    assert app.version == 2
    assert app.committed_version == 1
    app.mark_committed()
    assert app.committed_version == 2
