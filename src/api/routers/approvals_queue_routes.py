from datetime import datetime
from decimal import Decimal
from typing import Annotated, List, Optional

from fastapi import APIRouter, Depends, Path, Query, status

from src.api.routers import approvals as shared
from src.api.routers.approval_http_errors import raise_approval_http_exception
from src.core.approvals import (
    ApprovalAnalyticsResponse,
    ApprovalAnalyticsService,
    ApprovalChainCatalogResponse,
    ApprovalChainDefinition,
    ApprovalQueueResponse,
    ApprovalQueueService,
    ApprovalQueueSummary,
    ApprovalWorkflowError,
    ApprovalWorkflowService,
    ChainResolutionContext,
)

router = APIRouter(tags=["Approval Queues and Catalog"])


@router.get(
    "/approvals/queues/{role}",
    response_model=ApprovalQueueResponse,
    status_code=status.HTTP_200_OK,
    summary="List Approval Queue",
    description=(
        "Returns pending requests whose current step awaits the role, oldest submission first. "
        "Membership is recomputed from stored requests on every call."
    ),
)
def list_approval_queue(
    role: Annotated[str, Path(description="Approver role.", examples=["coo"])],
    service: Annotated[ApprovalQueueService, Depends(shared.get_approval_queue_service)] = None,
) -> ApprovalQueueResponse:
    shared._assert_workflow_enabled()
    return service.list_queue(role=role)


@router.get(
    "/approvals/queues/{role}/summary",
    response_model=ApprovalQueueSummary,
    status_code=status.HTTP_200_OK,
    summary="Summarize Approval Queue",
    description=(
        "Returns queue size and aging counts. Each aging_<days> bucket counts items that "
        "have waited at least that many whole days at their current step."
    ),
)
def summarize_approval_queue(
    role: Annotated[str, Path(description="Approver role.", examples=["coo"])],
    thresholds: Annotated[
        Optional[List[int]],
        Query(
            description="Day thresholds; repeat the parameter for several buckets.",
            examples=[[2, 5, 10]],
        ),
    ] = None,
    service: Annotated[ApprovalQueueService, Depends(shared.get_approval_queue_service)] = None,
) -> ApprovalQueueSummary:
    shared._assert_workflow_enabled()
    return service.summarize(role=role, thresholds=thresholds)


@router.get(
    "/approvals/chains",
    response_model=ApprovalChainCatalogResponse,
    status_code=status.HTTP_200_OK,
    summary="List Approval Chains",
    description="Returns the configured approval chain definitions.",
)
def list_approval_chains(
    service: Annotated[
        ApprovalWorkflowService, Depends(shared.get_approval_workflow_service)
    ] = None,
) -> ApprovalChainCatalogResponse:
    shared._assert_workflow_enabled()
    return service.list_chains()


@router.get(
    "/approvals/chains/resolve",
    response_model=ApprovalChainDefinition,
    status_code=status.HTTP_200_OK,
    summary="Resolve Approval Chain",
    description=(
        "Returns the chain a new request would use for the entity type and context. "
        "Scope-specific chains win over global ones, then amount brackets over open chains."
    ),
)
def resolve_approval_chain(
    entity_type: Annotated[str, Query(description="Entity type.", examples=["budget"])],
    amount: Annotated[
        Optional[Decimal],
        Query(description="Amount used for bracket selection.", examples=["12500.00"]),
    ] = None,
    scope_ref: Annotated[
        Optional[str],
        Query(description="Organization scope reference.", examples=["org_kenya_01"]),
    ] = None,
    service: Annotated[
        ApprovalWorkflowService, Depends(shared.get_approval_workflow_service)
    ] = None,
) -> ApprovalChainDefinition:
    shared._assert_workflow_enabled()
    try:
        return service.resolve_chain(
            entity_type=entity_type,
            context=ChainResolutionContext(amount=amount, scope_ref=scope_ref),
        )
    except ApprovalWorkflowError as exc:
        raise_approval_http_exception(exc)


@router.get(
    "/approvals/analytics",
    response_model=ApprovalAnalyticsResponse,
    status_code=status.HTTP_200_OK,
    summary="Get Approval Analytics",
    description=(
        "Returns status counts, completion time, approval rate, overdue count, and per-step "
        "bottlenecks for requests submitted in the window."
    ),
)
def get_approval_analytics(
    entity_type: Annotated[
        Optional[str], Query(description="Entity type filter.", examples=["budget"])
    ] = None,
    submitted_from: Annotated[
        Optional[datetime],
        Query(
            description="Submitted-at lower bound in UTC ISO8601.",
            examples=["2026-03-01T00:00:00Z"],
        ),
    ] = None,
    submitted_to: Annotated[
        Optional[datetime],
        Query(
            description="Submitted-at upper bound in UTC ISO8601.",
            examples=["2026-03-31T23:59:59Z"],
        ),
    ] = None,
    service: Annotated[
        ApprovalAnalyticsService, Depends(shared.get_approval_analytics_service)
    ] = None,
) -> ApprovalAnalyticsResponse:
    shared._assert_workflow_enabled()
    shared._assert_analytics_enabled()
    return service.summarize(
        entity_type=entity_type,
        submitted_from=submitted_from,
        submitted_to=submitted_to,
    )
