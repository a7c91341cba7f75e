from collections import defaultdict
from datetime import datetime, timedelta, timezone
from typing import Callable, Optional

from src.core.approvals.models import (
    ApprovalActionRecord,
    ApprovalAnalyticsResponse,
    ApprovalRequestRecord,
    ApprovalStepBottleneck,
)
from src.core.approvals.repository import ApprovalRequestRepository

SECONDS_PER_HOUR = 3600
DEFAULT_OVERDUE_HOURS = 48
MAX_BOTTLENECKS = 10


class ApprovalAnalyticsService:
    def __init__(
        self,
        *,
        repository: ApprovalRequestRepository,
        overdue_hours: int = DEFAULT_OVERDUE_HOURS,
        clock: Optional[Callable[[], datetime]] = None,
    ) -> None:
        self._repository = repository
        self._overdue_hours = overdue_hours
        self._clock = clock or _utc_now

    def summarize(
        self,
        *,
        entity_type: Optional[str] = None,
        submitted_from: Optional[datetime] = None,
        submitted_to: Optional[datetime] = None,
    ) -> ApprovalAnalyticsResponse:
        requests, _ = self._repository.list_requests(
            entity_type=entity_type,
            entity_id=None,
            status=None,
            submitted_from=submitted_from,
            submitted_to=submitted_to,
            limit=None,
            cursor=None,
        )
        views = [
            view
            for view in (
                self._repository.get_request_view(request_id=request.request_id)
                for request in requests
            )
            if view is not None
        ]
        return build_approval_analytics(
            requests=[view.request for view in views],
            actions_by_request={view.request.request_id: view.actions for view in views},
            now=self._clock(),
            overdue_hours=self._overdue_hours,
        )


def build_approval_analytics(
    *,
    requests: list[ApprovalRequestRecord],
    actions_by_request: dict[str, list[ApprovalActionRecord]],
    now: datetime,
    overdue_hours: int = DEFAULT_OVERDUE_HOURS,
) -> ApprovalAnalyticsResponse:
    counts: dict[str, int] = defaultdict(int)
    completion_hours: list[float] = []
    overdue_before = now - timedelta(hours=overdue_hours)
    overdue_count = 0

    for request in requests:
        counts[request.status] += 1
        if request.completed_at is not None:
            completion_hours.append(_hours_between(request.submitted_at, request.completed_at))
        if request.status == "pending" and request.submitted_at < overdue_before:
            overdue_count += 1

    decided = counts["approved"] + counts["rejected"]
    approval_rate = round(counts["approved"] / decided * 100, 2) if decided else 0.0
    avg_hours_to_complete = (
        round(sum(completion_hours) / len(completion_hours), 2) if completion_hours else None
    )

    return ApprovalAnalyticsResponse(
        total_requests=len(requests),
        pending_count=counts["pending"],
        approved_count=counts["approved"],
        rejected_count=counts["rejected"],
        cancelled_count=counts["cancelled"],
        overdue_count=overdue_count,
        avg_hours_to_complete=avg_hours_to_complete,
        approval_rate=approval_rate,
        bottlenecks=_step_bottlenecks(requests, actions_by_request),
    )


def _step_bottlenecks(
    requests: list[ApprovalRequestRecord],
    actions_by_request: dict[str, list[ApprovalActionRecord]],
) -> list[ApprovalStepBottleneck]:
    durations: dict[tuple[int, str], list[float]] = defaultdict(list)
    for request in requests:
        entered_at = request.submitted_at
        for action in actions_by_request.get(request.request_id, []):
            durations[(action.step_order, action.step_name)].append(
                _hours_between(entered_at, action.acted_at)
            )
            entered_at = action.acted_at

    bottlenecks = [
        ApprovalStepBottleneck(
            step_order=step_order,
            step_name=step_name,
            decision_count=len(hours),
            avg_hours_in_step=round(sum(hours) / len(hours), 2),
        )
        for (step_order, step_name), hours in durations.items()
    ]
    bottlenecks.sort(key=lambda item: (-item.avg_hours_in_step, item.step_order))
    return bottlenecks[:MAX_BOTTLENECKS]


def _hours_between(start: datetime, end: datetime) -> float:
    return max(0.0, (end - start).total_seconds() / SECONDS_PER_HOUR)


def _utc_now() -> datetime:
    return datetime.now(timezone.utc)
