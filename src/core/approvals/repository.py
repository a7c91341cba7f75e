from datetime import datetime
from typing import Optional, Protocol

from src.core.approvals.models import (
    ApprovalActionRecord,
    ApprovalRequestRecord,
    ApprovalRequestView,
    ApprovalTransitionResult,
)


class ApprovalRequestRepository(Protocol):
    def create_request(self, request: ApprovalRequestRecord) -> None: ...

    def get_request(self, *, request_id: str) -> Optional[ApprovalRequestRecord]: ...

    def get_request_view(self, *, request_id: str) -> Optional[ApprovalRequestView]: ...

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
    ) -> tuple[list[ApprovalRequestRecord], Optional[str]]: ...

    def list_pending_by_role(self, *, approver_role: str) -> list[ApprovalRequestRecord]: ...

    def save_transition(
        self,
        *,
        request: ApprovalRequestRecord,
        action: Optional[ApprovalActionRecord],
        expected_version: int,
    ) -> ApprovalTransitionResult: ...
