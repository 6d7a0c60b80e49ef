"""
Applications API router. Commands go through the command bus and answer with a
CommandResponse; reads go through the query bus and return read-model documents.
"""

from typing import Annotated, Optional

from fastapi import APIRouter, Depends, Query

from filplus.api.dependencies import get_container
from filplus.api.responses import command_response, query_response
from filplus.application.commands import (
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
from filplus.application.queries import GetApplication, GetApplications
from filplus.bootstrap import Container
from filplus.domain.models.application import ApplicationInstruction, ApplicationStatus
from filplus.domain.schemas.application import (
    ApplicationDetails,
    ApplicationInstructionSchema,
    ApplicationsPage,
    CommandResponse,
    CreateApplicationRequest,
    DatacapAllocationRequest,
    DatacapRefreshRequest,
    EditApplicationRequest,
    GovernanceReviewRequest,
    KYCResultRequest,
    MetaAllocatorApprovalsRequest,
    PullRequestUpdateRequest,
    RevokeKYCRequest,
    RKHApprovalsRequest,
)

router = APIRouter()

ContainerDep = Annotated[Container, Depends(get_container)]


def _to_instruction(schema: ApplicationInstructionSchema) -> ApplicationInstruction:
    return ApplicationInstruction(
        method=schema.method,
        datacap_amount=schema.datacap_amount,
        start_timestamp=schema.start_timestamp,
        end_timestamp=schema.end_timestamp,
        allocated_timestamp=schema.allocated_timestamp,
        status=schema.status,
    )


# ---------------------------------------------------------------------------
# Commands
# ---------------------------------------------------------------------------

@router.post("", response_model=CommandResponse, status_code=201)
async def create_application(body: CreateApplicationRequest, container: ContainerDep):
    """Create an application. Enrichment (multisig, pull request) is best-effort."""
    result = await container.command_bus.execute(CreateApplication(**body.model_dump()))
    return command_response(result, success_status=201)


@router.patch("/{application_id}", response_model=CommandResponse)
async def edit_application(application_id: str, body: EditApplicationRequest, container: ContainerDep):
    command = EditApplication(application_id=application_id, **body.model_dump())
    return command_response(await container.command_bus.execute(command))


@router.post("/{application_id}/pull-request", response_model=CommandResponse)
async def set_pull_request(application_id: str, body: PullRequestUpdateRequest, container: ContainerDep):
    command = SetApplicationPullRequest(
        application_id=application_id,
        number=body.number,
        url=body.url,
        comment_id=body.comment_id,
    )
    return command_response(await container.command_bus.execute(command))


@router.post("/{application_id}/multisig/refresh", response_model=CommandResponse)
async def refresh_multisig(application_id: str, container: ContainerDep):
    command = RefreshAllocatorMultisig(application_id=application_id)
    return command_response(await container.command_bus.execute(command))


@router.post("/{application_id}/kyc", response_model=CommandResponse)
async def submit_kyc_result(application_id: str, body: KYCResultRequest, container: ContainerDep):
    command = SubmitKYCResult(application_id=application_id, approved=body.approved, reason=body.reason)
    return command_response(await container.command_bus.execute(command))


@router.post("/{application_id}/kyc/revoke", response_model=CommandResponse)
async def revoke_kyc(application_id: str, body: RevokeKYCRequest, container: ContainerDep):
    command = RevokeKYC(application_id=application_id, reason=body.reason)
    return command_response(await container.command_bus.execute(command))


@router.post("/{application_id}/governance-review", response_model=CommandResponse)
async def submit_governance_review(
    application_id: str,
    body: GovernanceReviewRequest,
    container: ContainerDep,
):
    """Reviewer address must belong to the governance team."""
    command = SubmitGovernanceReviewResult(
        application_id=application_id,
        approved=body.approved,
        reviewer_address=body.reviewer_address,
        application_instructions=tuple(_to_instruction(i) for i in body.application_instructions),
        reason=body.reason,
    )
    return command_response(await container.command_bus.execute(command))


@router.post("/{application_id}/rkh-approvals", response_model=CommandResponse)
async def update_rkh_approvals(application_id: str, body: RKHApprovalsRequest, container: ContainerDep):
    command = UpdateRKHApprovals(
        application_id=application_id,
        message_id=body.message_id,
        approvals=tuple(body.approvals),
        status=body.status,
        approval_threshold=body.approval_threshold,
    )
    return command_response(await container.command_bus.execute(command))


@router.post("/{application_id}/meta-allocator-approvals", response_model=CommandResponse)
async def update_meta_allocator_approvals(
    application_id: str,
    body: MetaAllocatorApprovalsRequest,
    container: ContainerDep,
):
    command = UpdateMetaAllocatorApprovals(
        application_id=application_id,
        status=body.status,
        block_number=body.block_number,
        tx_hash=body.tx_hash,
    )
    return command_response(await container.command_bus.execute(command))


@router.post("/{application_id}/datacap-allocation", response_model=CommandResponse)
async def update_datacap_allocation(
    application_id: str,
    body: DatacapAllocationRequest,
    container: ContainerDep,
):
    command = UpdateDatacapAllocation(
        application_id=application_id,
        amount=body.amount,
        allocated_at=body.allocated_at,
    )
    return command_response(await container.command_bus.execute(command))


@router.post("/{application_id}/refresh", response_model=CommandResponse)
async def request_datacap_refresh(
    application_id: str,
    body: DatacapRefreshRequest,
    container: ContainerDep,
):
    command = CreateRefreshApplication(
        application_id=application_id,
        method=body.method,
        amount=body.amount,
        timestamp=body.timestamp,
    )
    return command_response(await container.command_bus.execute(command))


# ---------------------------------------------------------------------------
# Queries
# ---------------------------------------------------------------------------

@router.get("", response_model=ApplicationsPage)
async def list_applications(
    container: ContainerDep,
    status: Optional[ApplicationStatus] = None,
    search: Optional[str] = None,
    page: Annotated[int, Query(ge=1)] = 1,
    limit: Annotated[int, Query(ge=1, le=100)] = 10,
):
    query = GetApplications(
        status=status.value if status else None,
        search=search,
        page=page,
        limit=limit,
    )
    return query_response(await container.query_bus.execute(query))


@router.get("/{application_id}", response_model=ApplicationDetails)
async def get_application(application_id: str, container: ContainerDep):
    return query_response(await container.query_bus.execute(GetApplication(application_id)))


@router.post("/{application_id}/rebuild")
async def rebuild_projection(application_id: str, container: ContainerDep):
    """Drop and replay the read-model document from the event log. Unknown id is a 404."""
    replayed = await container.rebuilder.rebuild(application_id)
    return {"application_id": application_id, "events_replayed": replayed}
