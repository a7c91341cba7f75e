from typing import Annotated, Optional

from fastapi import APIRouter, Depends, HTTPException, Path, Query, status

from src.api.routers import approvals_config
from src.api.routers.approval_http_errors import raise_approval_http_exception
from src.api.routers.runtime_utils import (
    assert_feature_enabled,
    env_flag,
    normalize_backend_init_error,
)
from src.core.approvals import (
    ApprovalAnalyticsService,
    ApprovalCancelRequest,
    ApprovalCreateRequest,
    ApprovalDecisionRequest,
    ApprovalHistoryResponse,
    ApprovalQueueService,
    ApprovalRequestListResponse,
    ApprovalRequestSnapshot,
    ApprovalSupportabilityConfigResponse,
    ApprovalWorkflowError,
    ApprovalWorkflowService,
)
from src.core.approvals.events import ApprovalEventPublisher, LoggingApprovalEventPublisher
from src.core.approvals.models import ApprovalRequestStatus
from src.core.approvals.repository import ApprovalRequestRepository

router = APIRouter(tags=["Approval Workflow"])

_REPOSITORY: Optional[ApprovalRequestRepository] = None
_EVENT_PUBLISHER: ApprovalEventPublisher = LoggingApprovalEventPublisher()
_SERVICE: Optional[ApprovalWorkflowService] = None
_QUEUE_SERVICE: Optional[ApprovalQueueService] = None
_ANALYTICS_SERVICE: Optional[ApprovalAnalyticsService] = None


def _get_repository() -> ApprovalRequestRepository:
    global _REPOSITORY
    if _REPOSITORY is None:
        try:
            _REPOSITORY = approvals_config.build_repository()
        except RuntimeError as exc:
            raise HTTPException(
                status_code=status.HTTP_503_SERVICE_UNAVAILABLE,
                detail=normalize_backend_init_error(
                    detail=str(exc),
                    required_detail="APPROVAL_POSTGRES_DSN_REQUIRED",
                    fallback_detail="APPROVAL_POSTGRES_CONNECTION_FAILED",
                ),
            ) from exc
    return _REPOSITORY


def get_approval_workflow_service() -> ApprovalWorkflowService:
    global _SERVICE
    if _SERVICE is None:
        _SERVICE = ApprovalWorkflowService(
            repository=_get_repository(),
            chain_catalog=approvals_config.build_chain_catalog(),
            role_directory=approvals_config.build_role_directory(),
            event_publisher=_EVENT_PUBLISHER,
            require_step_order=approvals_config.require_step_order(),
            require_rejection_comments=approvals_config.require_rejection_comments(),
            cancel_requires_submitter=approvals_config.cancel_requires_submitter(),
        )
    return _SERVICE


def get_approval_queue_service() -> ApprovalQueueService:
    global _QUEUE_SERVICE
    if _QUEUE_SERVICE is None:
        _QUEUE_SERVICE = ApprovalQueueService(
            repository=_get_repository(),
            default_thresholds=approvals_config.queue_aging_thresholds(),
        )
    return _QUEUE_SERVICE


def get_approval_analytics_service() -> ApprovalAnalyticsService:
    global _ANALYTICS_SERVICE
    if _ANALYTICS_SERVICE is None:
        _ANALYTICS_SERVICE = ApprovalAnalyticsService(
            repository=_get_repository(),
            overdue_hours=approvals_config.analytics_overdue_hours(),
        )
    return _ANALYTICS_SERVICE


def reset_approval_services_for_tests(
    *, event_publisher: Optional[ApprovalEventPublisher] = None
) -> None:
    global _REPOSITORY
    global _EVENT_PUBLISHER
    global _SERVICE
    global _QUEUE_SERVICE
    global _ANALYTICS_SERVICE
    _REPOSITORY = None
    _EVENT_PUBLISHER = event_publisher or LoggingApprovalEventPublisher()
    _SERVICE = None
    _QUEUE_SERVICE = None
    _ANALYTICS_SERVICE = None
    approvals_config.reset_chain_catalog_for_tests()


def _assert_workflow_enabled() -> None:
    assert_feature_enabled(
        name="APPROVAL_WORKFLOW_ENABLED",
        default=True,
        detail="APPROVAL_WORKFLOW_DISABLED",
    )


def _assert_analytics_enabled() -> None:
    assert_feature_enabled(
        name="APPROVAL_ANALYTICS_ENABLED",
        default=True,
        detail="APPROVAL_ANALYTICS_DISABLED",
    )


@router.get(
    "/approvals/supportability/config",
    response_model=ApprovalSupportabilityConfigResponse,
    status_code=status.HTTP_200_OK,
    summary="Get Approval Supportability Configuration",
    description=(
        "Returns approval runtime configuration and backend initialization status "
        "for operational diagnostics without direct database access."
    ),
)
def get_approval_supportability_config() -> ApprovalSupportabilityConfigResponse:
    backend_error: Optional[str] = None
    backend_ready = True
    try:
        _get_repository()
    except HTTPException as exc:
        backend_ready = False
        backend_error = str(exc.detail)

    return ApprovalSupportabilityConfigResponse(
        store_backend=approvals_config.approval_store_backend_name(),
        backend_ready=backend_ready,
        backend_init_error=backend_error,
        chain_definition_count=len(
            approvals_config.build_chain_catalog().list_chain_definitions()
        ),
        workflow_enabled=env_flag("APPROVAL_WORKFLOW_ENABLED", True),
        analytics_enabled=env_flag("APPROVAL_ANALYTICS_ENABLED", True),
        require_step_order=approvals_config.require_step_order(),
        require_rejection_comments=approvals_config.require_rejection_comments(),
        cancel_requires_submitter=approvals_config.cancel_requires_submitter(),
        queue_aging_thresholds=list(approvals_config.queue_aging_thresholds()),
    )


@router.post(
    "/approvals/requests",
    response_model=ApprovalRequestSnapshot,
    status_code=status.HTTP_201_CREATED,
    summary="Create Approval Request",
    description=(
        "Resolves the approval chain for the entity type and context, then opens a pending "
        "request positioned at step 1."
    ),
)
def create_approval_request(
    payload: ApprovalCreateRequest,
    service: Annotated[ApprovalWorkflowService, Depends(get_approval_workflow_service)] = None,
) -> ApprovalRequestSnapshot:
    _assert_workflow_enabled()
    try:
        return service.create_request(payload=payload)
    except ApprovalWorkflowError as exc:
        raise_approval_http_exception(exc)


@router.get(
    "/approvals/requests",
    response_model=ApprovalRequestListResponse,
    status_code=status.HTTP_200_OK,
    summary="List Approval Requests",
    description="Lists approval requests, newest first, with optional filters and cursor paging.",
)
def list_approval_requests(
    entity_type: Annotated[
        Optional[str], Query(description="Entity type filter.", examples=["budget"])
    ] = None,
    entity_id: Annotated[
        Optional[str], Query(description="Entity identifier filter.", examples=["bud_2026_017"])
    ] = None,
    request_status: Annotated[
        Optional[ApprovalRequestStatus],
        Query(alias="status", description="Request status filter.", examples=["pending"]),
    ] = None,
    limit: Annotated[
        int,
        Query(description="Page size.", ge=1, le=200, examples=[50]),
    ] = 50,
    cursor: Annotated[
        Optional[str],
        Query(description="Opaque cursor from previous list response.", examples=["apr_123"]),
    ] = None,
    service: Annotated[ApprovalWorkflowService, Depends(get_approval_workflow_service)] = None,
) -> ApprovalRequestListResponse:
    _assert_workflow_enabled()
    return service.list_requests(
        entity_type=entity_type,
        entity_id=entity_id,
        status=request_status,
        limit=limit,
        cursor=cursor,
    )


@router.get(
    "/approvals/requests/{request_id}",
    response_model=ApprovalRequestSnapshot,
    status_code=status.HTTP_200_OK,
    summary="Get Approval Request",
    description="Returns the request snapshot with progress, queue age, and decision history.",
)
def get_approval_request(
    request_id: Annotated[
        str,
        Path(description="Approval request identifier.", examples=["apr_0a1b2c3d4e5f"]),
    ],
    service: Annotated[ApprovalWorkflowService, Depends(get_approval_workflow_service)] = None,
) -> ApprovalRequestSnapshot:
    _assert_workflow_enabled()
    try:
        return service.get_request(request_id=request_id)
    except ApprovalWorkflowError as exc:
        raise_approval_http_exception(exc)


@router.post(
    "/approvals/requests/{request_id}/decisions",
    response_model=ApprovalRequestSnapshot,
    status_code=status.HTTP_200_OK,
    summary="Record Approval Decision",
    description=(
        "Records an approve or reject decision against the current step. Approving the last "
        "step approves the request; rejecting at any step rejects it."
    ),
)
def decide_approval_request(
    request_id: Annotated[
        str,
        Path(description="Approval request identifier.", examples=["apr_0a1b2c3d4e5f"]),
    ],
    payload: ApprovalDecisionRequest,
    service: Annotated[ApprovalWorkflowService, Depends(get_approval_workflow_service)] = None,
) -> ApprovalRequestSnapshot:
    _assert_workflow_enabled()
    try:
        return service.decide(request_id=request_id, payload=payload)
    except ApprovalWorkflowError as exc:
        raise_approval_http_exception(exc)


@router.post(
    "/approvals/requests/{request_id}/cancel",
    response_model=ApprovalRequestSnapshot,
    status_code=status.HTTP_200_OK,
    summary="Cancel Approval Request",
    description="Cancels a pending request; no further decisions are accepted afterwards.",
)
def cancel_approval_request(
    request_id: Annotated[
        str,
        Path(description="Approval request identifier.", examples=["apr_0a1b2c3d4e5f"]),
    ],
    payload: ApprovalCancelRequest,
    service: Annotated[ApprovalWorkflowService, Depends(get_approval_workflow_service)] = None,
) -> ApprovalRequestSnapshot:
    _assert_workflow_enabled()
    try:
        return service.cancel(request_id=request_id, payload=payload)
    except ApprovalWorkflowError as exc:
        raise_approval_http_exception(exc)


@router.get(
    "/approvals/requests/{request_id}/history",
    response_model=ApprovalHistoryResponse,
    status_code=status.HTTP_200_OK,
    summary="Get Approval History",
    description="Returns the append-only decision history of a request.",
)
def get_approval_history(
    request_id: Annotated[
        str,
        Path(description="Approval request identifier.", examples=["apr_0a1b2c3d4e5f"]),
    ],
    service: Annotated[ApprovalWorkflowService, Depends(get_approval_workflow_service)] = None,
) -> ApprovalHistoryResponse:
    _assert_workflow_enabled()
    try:
        return service.get_history(request_id=request_id)
    except ApprovalWorkflowError as exc:
        raise_approval_http_exception(exc)
