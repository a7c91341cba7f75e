from datetime import datetime, timezone
from typing import Callable, Iterable, Optional

from src.core.approvals.models import (
    ApprovalQueueResponse,
    ApprovalQueueSummary,
    ApprovalRequestRecord,
)
from src.core.approvals.read_model import to_snapshot
from src.core.approvals.repository import ApprovalRequestRepository

DEFAULT_AGING_THRESHOLDS = (2, 5, 10)


class ApprovalQueueService:
    """Per-role views over pending requests.

    Membership and counts are recomputed from persisted requests on every call;
    bucket thresholds are supplied by the caller and never stored.
    """

    def __init__(
        self,
        *,
        repository: ApprovalRequestRepository,
        default_thresholds: Iterable[int] = DEFAULT_AGING_THRESHOLDS,
        clock: Optional[Callable[[], datetime]] = None,
    ) -> None:
        self._repository = repository
        self._default_thresholds = normalize_thresholds(default_thresholds)
        self._clock = clock or _utc_now

    def list_queue(self, *, role: str) -> ApprovalQueueResponse:
        now = self._clock()
        rows = sorted(
            self._repository.list_pending_by_role(approver_role=role),
            key=lambda row: (row.submitted_at, row.request_id),
        )
        items = []
        for row in rows:
            view = self._repository.get_request_view(request_id=row.request_id)
            # Skip requests decided or cancelled since the listing.
            if view is None or not _awaits_role(view.request, role):
                continue
            items.append(to_snapshot(request=view.request, actions=view.actions, now=now))
        return ApprovalQueueResponse(role=role, total=len(items), items=items)

    def summarize(
        self, *, role: str, thresholds: Optional[Iterable[int]] = None
    ) -> ApprovalQueueSummary:
        resolved_thresholds = (
            normalize_thresholds(thresholds) if thresholds else self._default_thresholds
        )
        queue = self.list_queue(role=role)
        ages = [item.days_in_queue or 0 for item in queue.items]
        return ApprovalQueueSummary(
            role=role,
            total=queue.total,
            aging={
                f"aging_{threshold}": sum(1 for age in ages if age >= threshold)
                for threshold in resolved_thresholds
            },
            oldest_days_in_queue=max(ages) if ages else None,
        )


def normalize_thresholds(thresholds: Iterable[int]) -> tuple[int, ...]:
    return tuple(sorted({int(threshold) for threshold in thresholds if int(threshold) >= 0}))


def parse_thresholds(raw: Optional[str]) -> tuple[int, ...]:
    values = []
    for part in (raw or "").split(","):
        part = part.strip()
        if part.isdigit():
            values.append(int(part))
    return normalize_thresholds(values) or DEFAULT_AGING_THRESHOLDS


def _utc_now() -> datetime:
    return datetime.now(timezone.utc)


def _awaits_role(request: ApprovalRequestRecord, role: str) -> bool:
    return request.status == "pending" and request.approver_role == role
