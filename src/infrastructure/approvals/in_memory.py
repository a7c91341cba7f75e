from copy import deepcopy
from datetime import datetime
from threading import Lock
from typing import Optional

from src.core.approvals.errors import ApprovalConcurrencyConflictError
from src.core.approvals.models import (
    ApprovalActionRecord,
    ApprovalRequestRecord,
    ApprovalRequestView,
    ApprovalTransitionResult,
)
from src.core.approvals.repository import ApprovalRequestRepository


class InMemoryApprovalRequestRepository(ApprovalRequestRepository):
    def __init__(self) -> None:
        self._lock = Lock()
        self._requests: dict[str, ApprovalRequestRecord] = {}
        self._actions: dict[str, list[ApprovalActionRecord]] = {}

    def create_request(self, request: ApprovalRequestRecord) -> None:
        with self._lock:
            self._requests[request.request_id] = deepcopy(request)
            self._actions.setdefault(request.request_id, [])

    def get_request(self, *, request_id: str) -> Optional[ApprovalRequestRecord]:
        with self._lock:
            request = self._requests.get(request_id)
            return deepcopy(request) if request is not None else None

    def get_request_view(self, *, request_id: str) -> Optional[ApprovalRequestView]:
        with self._lock:
            request = self._requests.get(request_id)
            if request is None:
                return None
            return ApprovalRequestView(
                request=deepcopy(request),
                actions=[deepcopy(action) for action in self._actions.get(request_id, [])],
            )

    def list_requests(
        self,
        *,
        entity_type: Optional[str],
        entity_id: Optional[str],
        status: Optional[str],
        submitted_from: Optional[datetime],
        submitted_to: Optional[datetime],
        limit: Optional[int],
        cursor: Optional[str],
    ) -> tuple[list[ApprovalRequestRecord], Optional[str]]:
        with self._lock:
            rows = list(self._requests.values())

        rows = sorted(rows, key=lambda x: (x.submitted_at, x.request_id), reverse=True)

        if entity_type is not None:
            rows = [row for row in rows if row.entity_type == entity_type]
        if entity_id is not None:
            rows = [row for row in rows if row.entity_id == entity_id]
        if status is not None:
            rows = [row for row in rows if row.status == status]
        if submitted_from is not None:
            rows = [row for row in rows if row.submitted_at >= submitted_from]
        if submitted_to is not None:
            rows = [row for row in rows if row.submitted_at <= submitted_to]

        if cursor:
            row_ids = [row.request_id for row in rows]
            if cursor in row_ids:
                start = row_ids.index(cursor) + 1
                rows = rows[start:]

        if limit is None:
            return [deepcopy(row) for row in rows], None
        page = rows[:limit]
        next_cursor = page[-1].request_id if len(rows) > limit else None
        return [deepcopy(row) for row in page], next_cursor

    def list_pending_by_role(self, *, approver_role: str) -> list[ApprovalRequestRecord]:
        with self._lock:
            rows = [
                deepcopy(row)
                for row in self._requests.values()
                if row.status == "pending" and row.approver_role == approver_role
            ]
        return sorted(rows, key=lambda x: (x.submitted_at, x.request_id))

    def save_transition(
        self,
        *,
        request: ApprovalRequestRecord,
        action: Optional[ApprovalActionRecord],
        expected_version: int,
    ) -> ApprovalTransitionResult:
        with self._lock:
            stored = self._requests.get(request.request_id)
            if stored is None or stored.version != expected_version:
                raise ApprovalConcurrencyConflictError("APPROVAL_REQUEST_VERSION_CONFLICT")
            if action is not None:
                self._actions.setdefault(action.request_id, []).append(deepcopy(action))
            self._requests[request.request_id] = deepcopy(request)

        return ApprovalTransitionResult(
            request=deepcopy(request),
            action=deepcopy(action) if action is not None else None,
        )
