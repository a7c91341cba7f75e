import logging
import uuid
from datetime import datetime, timezone
from typing import Callable, Optional

from src.core.approvals.chain_catalog import ApprovalChainCatalog
from src.core.approvals.chains import resolve_chain_definition
from src.core.approvals.errors import (
    ApprovalConcurrencyConflictError,
    ApprovalValidationError,
    ApproverUnauthorizedError,
    ChainDefinitionUnavailableError,
    NoStepsDefinedError,
    RequestAlreadyTerminalError,
    RequestNotFoundError,
    StepMismatchError,
)
from src.core.approvals.events import ApprovalEventPublisher
from src.core.approvals.models import (
    TERMINAL_STATUSES,
    ApprovalActionRecord,
    ApprovalCancelRequest,
    ApprovalChainCatalogResponse,
    ApprovalChainDefinition,
    ApprovalCreateRequest,
    ApprovalDecisionRequest,
    ApprovalEvent,
    ApprovalEventType,
    ApprovalHistoryResponse,
    ApprovalRequestListResponse,
    ApprovalRequestRecord,
    ApprovalRequestSnapshot,
    ApprovalRequestView,
    ChainResolutionContext,
    StepSpec,
)
from src.core.approvals.read_model import to_action, to_snapshot
from src.core.approvals.repository import ApprovalRequestRepository
from src.core.approvals.roles import ApproverRoleDirectory

logger = logging.getLogger(__name__)


class ApprovalWorkflowService:
    def __init__(
        self,
        *,
        repository: ApprovalRequestRepository,
        chain_catalog: ApprovalChainCatalog,
        role_directory: ApproverRoleDirectory,
        event_publisher: Optional[ApprovalEventPublisher] = None,
        require_step_order: bool = False,
        require_rejection_comments: bool = False,
        cancel_requires_submitter: bool = False,
        clock: Optional[Callable[[], datetime]] = None,
    ) -> None:
        self._repository = repository
        self._chain_catalog = chain_catalog
        self._role_directory = role_directory
        self._event_publisher = event_publisher
        self._require_step_order = require_step_order
        self._require_rejection_comments = require_rejection_comments
        self._cancel_requires_submitter = cancel_requires_submitter
        self._clock = clock or _utc_now

    def list_chains(self) -> ApprovalChainCatalogResponse:
        items = sorted(
            self._chain_catalog.list_chain_definitions(),
            key=lambda item: item.chain_definition_id,
        )
        return ApprovalChainCatalogResponse(total=len(items), items=items)

    def resolve_chain(
        self, *, entity_type: str, context: Optional[ChainResolutionContext]
    ) -> ApprovalChainDefinition:
        return resolve_chain_definition(
            entity_type=entity_type,
            context=context,
            definitions=self._chain_catalog.list_chain_definitions(),
        )

    def create_request(self, *, payload: ApprovalCreateRequest) -> ApprovalRequestSnapshot:
        chain = self.resolve_chain(entity_type=payload.entity_type, context=payload.context)
        first_step = chain.step(1)
        if first_step is None:
            raise NoStepsDefinedError(f"NO_STEPS_DEFINED: {chain.chain_definition_id}")

        now = self._clock()
        request = ApprovalRequestRecord(
            request_id=f"apr_{uuid.uuid4().hex[:12]}",
            entity_type=payload.entity_type,
            entity_id=payload.entity_id,
            chain_definition_id=chain.chain_definition_id,
            total_steps=len(chain.steps),
            status="pending",
            current_step=1,
            step_name=first_step.step_name,
            approver_role=first_step.approver_role,
            submitted_by=payload.submitted_by,
            submitted_at=now,
            step_entered_at=now,
            metadata=payload.metadata,
        )
        self._repository.create_request(request)
        self._publish("CREATED", request=request, actor_id=payload.submitted_by, now=now)
        return to_snapshot(request=request, actions=[], now=now)

    def get_request(self, *, request_id: str) -> ApprovalRequestSnapshot:
        view = self._load_view(request_id)
        return to_snapshot(request=view.request, actions=view.actions, now=self._clock())

    def list_requests(
        self,
        *,
        entity_type: Optional[str] = None,
        entity_id: Optional[str] = None,
        status: Optional[str] = None,
        limit: int = 50,
        cursor: Optional[str] = None,
    ) -> ApprovalRequestListResponse:
        rows, next_cursor = self._repository.list_requests(
            entity_type=entity_type,
            entity_id=entity_id,
            status=status,
            submitted_from=None,
            submitted_to=None,
            limit=limit,
            cursor=cursor,
        )
        now = self._clock()
        items = []
        for row in rows:
            view = self._repository.get_request_view(request_id=row.request_id)
            if view is not None:
                items.append(to_snapshot(request=view.request, actions=view.actions, now=now))
        return ApprovalRequestListResponse(items=items, next_cursor=next_cursor)

    def get_history(self, *, request_id: str) -> ApprovalHistoryResponse:
        view = self._load_view(request_id)
        return ApprovalHistoryResponse(
            request_id=view.request.request_id,
            status=view.request.status,
            actions=[to_action(action) for action in view.actions],
        )

    def decide(
        self, *, request_id: str, payload: ApprovalDecisionRequest
    ) -> ApprovalRequestSnapshot:
        view = self._load_view(request_id)
        request = view.request
        self._assert_pending(request)
        target_step = self._resolve_target_step(request, payload.step_order)

        roles = self._role_directory.get_roles(approver_id=payload.approver_id)
        if request.approver_role not in roles:
            logger.warning(
                "Approval decision refused for approver without step role",
                extra={
                    "extra_fields": {
                        "request_id": request.request_id,
                        "approver_id": payload.approver_id,
                        "required_role": request.approver_role,
                    }
                },
            )
            raise ApproverUnauthorizedError(
                f"APPROVER_UNAUTHORIZED: role {request.approver_role} required"
            )
        if (
            payload.decision == "reject"
            and self._require_rejection_comments
            and not (payload.comments or "").strip()
        ):
            raise ApprovalValidationError("REJECTION_COMMENTS_REQUIRED")

        now = self._clock()
        action = ApprovalActionRecord(
            action_id=f"apa_{uuid.uuid4().hex[:12]}",
            request_id=request.request_id,
            step_order=request.current_step,
            step_name=request.step_name,
            action="approved" if payload.decision == "approve" else "rejected",
            approver_id=payload.approver_id,
            approver_name=payload.approver_name,
            acted_at=now,
            comments=payload.comments,
        )

        event_type: ApprovalEventType
        if payload.decision == "reject":
            updates = {"status": "rejected", "completed_at": now}
            event_type = "REJECTED"
        elif request.current_step >= request.total_steps:
            updates = {"status": "approved", "completed_at": now}
            event_type = "APPROVED"
        else:
            next_step = self._next_step(request)
            updates = {
                "current_step": next_step.step_order,
                "step_name": next_step.step_name,
                "approver_role": next_step.approver_role,
                "step_entered_at": now,
            }
            event_type = "ADVANCED"
        updates["version"] = request.version + 1
        updated = request.model_copy(update=updates)

        if not self._save(current=request, updated=updated, action=action):
            latest = self._load(request_id)
            self._assert_pending(latest)
            raise StepMismatchError(
                f"STEP_MISMATCH: decision targets step {target_step}, "
                f"current step is {latest.current_step}"
            )
        self._publish(event_type, request=updated, actor_id=payload.approver_id, now=now)
        return to_snapshot(request=updated, actions=[*view.actions, action], now=now)

    def cancel(self, *, request_id: str, payload: ApprovalCancelRequest) -> ApprovalRequestSnapshot:
        view = self._load_view(request_id)
        while True:
            request = view.request
            self._assert_pending(request)
            if self._cancel_requires_submitter and payload.actor_id != request.submitted_by:
                raise ApproverUnauthorizedError("CANCEL_RESTRICTED_TO_SUBMITTER")

            now = self._clock()
            metadata = dict(request.metadata)
            if payload.reason:
                metadata["cancellation_reason"] = payload.reason
            updated = request.model_copy(
                update={
                    "status": "cancelled",
                    "completed_at": now,
                    "cancelled_by": payload.actor_id,
                    "metadata": metadata,
                    "version": request.version + 1,
                }
            )
            if self._save(current=request, updated=updated, action=None):
                break
            # Lost to a concurrent decision; retry against the reloaded state.
            view = self._load_view(request_id)

        self._publish("CANCELLED", request=updated, actor_id=payload.actor_id, now=now)
        return to_snapshot(request=updated, actions=view.actions, now=now)

    def _load(self, request_id: str) -> ApprovalRequestRecord:
        request = self._repository.get_request(request_id=request_id)
        if request is None:
            raise RequestNotFoundError("REQUEST_NOT_FOUND")
        return request

    def _load_view(self, request_id: str) -> ApprovalRequestView:
        view = self._repository.get_request_view(request_id=request_id)
        if view is None:
            raise RequestNotFoundError("REQUEST_NOT_FOUND")
        return view

    def _next_step(self, request: ApprovalRequestRecord) -> StepSpec:
        chain = self._chain_catalog.get_chain_definition(
            chain_definition_id=request.chain_definition_id
        )
        next_step = chain.step(request.current_step + 1) if chain is not None else None
        if next_step is None:
            logger.error(
                "Approval chain no longer defines the next step of a pending request",
                extra={
                    "extra_fields": {
                        "request_id": request.request_id,
                        "chain_definition_id": request.chain_definition_id,
                        "next_step": request.current_step + 1,
                    }
                },
            )
            raise ChainDefinitionUnavailableError(
                f"CHAIN_DEFINITION_UNAVAILABLE: {request.chain_definition_id}"
            )
        return next_step

    def _assert_pending(self, request: ApprovalRequestRecord) -> None:
        if request.status in TERMINAL_STATUSES:
            raise RequestAlreadyTerminalError(f"REQUEST_ALREADY_TERMINAL: {request.status}")

    def _resolve_target_step(
        self, request: ApprovalRequestRecord, step_order: Optional[int]
    ) -> int:
        if step_order is None:
            if self._require_step_order:
                raise StepMismatchError("STEP_MISMATCH: step_order is required")
            return request.current_step
        if step_order != request.current_step:
            raise StepMismatchError(
                f"STEP_MISMATCH: decision targets step {step_order}, "
                f"current step is {request.current_step}"
            )
        return step_order

    def _save(
        self,
        *,
        current: ApprovalRequestRecord,
        updated: ApprovalRequestRecord,
        action: Optional[ApprovalActionRecord],
    ) -> bool:
        try:
            self._repository.save_transition(
                request=updated, action=action, expected_version=current.version
            )
        except ApprovalConcurrencyConflictError:
            logger.warning(
                "Concurrent modification detected on approval request",
                extra={
                    "extra_fields": {
                        "request_id": current.request_id,
                        "expected_version": current.version,
                    }
                },
            )
            return False
        return True

    def _publish(
        self,
        event_type: ApprovalEventType,
        *,
        request: ApprovalRequestRecord,
        actor_id: str,
        now: datetime,
    ) -> None:
        if self._event_publisher is None:
            return
        event = ApprovalEvent(
            event_id=f"ape_{uuid.uuid4().hex[:12]}",
            event_type=event_type,
            request_id=request.request_id,
            entity_type=request.entity_type,
            entity_id=request.entity_id,
            status=request.status,
            step_order=request.current_step,
            approver_role=request.approver_role,
            actor_id=actor_id,
            occurred_at=now,
        )
        try:
            self._event_publisher.publish(event)
        except Exception:
            logger.exception(
                "Approval event publication failed. RequestID=%s Event=%s",
                request.request_id,
                event_type,
            )


def _utc_now() -> datetime:
    return datetime.now(timezone.utc)
