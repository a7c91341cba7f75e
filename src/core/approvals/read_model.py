"""Read-model projections of the approval aggregate.

Progress, days-in-queue and history views are derived here so every consumer
(API, queue, dashboards) sees the same numbers.
"""

import math
from datetime import datetime
from typing import Optional

from src.core.approvals.models import (
    ApprovalAction,
    ApprovalActionRecord,
    ApprovalRequestRecord,
    ApprovalRequestSnapshot,
)

SECONDS_PER_DAY = 86400


def compute_progress(
    *, request: ApprovalRequestRecord, actions: list[ApprovalActionRecord]
) -> tuple[int, int, float]:
    completed_steps = sum(1 for action in actions if action.action == "approved")
    total_steps = max(request.total_steps, request.current_step)
    if total_steps <= 0:
        return completed_steps, total_steps, 0.0
    return completed_steps, total_steps, round(completed_steps / total_steps * 100, 2)


def days_in_queue(*, request: ApprovalRequestRecord, now: datetime) -> Optional[int]:
    if request.status != "pending":
        return None
    elapsed = (now - request.step_entered_at).total_seconds()
    return max(0, math.floor(elapsed / SECONDS_PER_DAY))


def to_action(action: ApprovalActionRecord) -> ApprovalAction:
    return ApprovalAction(
        action_id=action.action_id,
        request_id=action.request_id,
        step_order=action.step_order,
        step_name=action.step_name,
        action=action.action,
        approver_id=action.approver_id,
        approver_name=action.approver_name,
        acted_at=action.acted_at.isoformat(),
        comments=action.comments,
    )


def to_snapshot(
    *,
    request: ApprovalRequestRecord,
    actions: list[ApprovalActionRecord],
    now: datetime,
) -> ApprovalRequestSnapshot:
    completed_steps, total_steps, progress_percentage = compute_progress(
        request=request, actions=actions
    )
    return ApprovalRequestSnapshot(
        request_id=request.request_id,
        entity_type=request.entity_type,
        entity_id=request.entity_id,
        chain_definition_id=request.chain_definition_id,
        status=request.status,
        current_step=request.current_step,
        step_name=request.step_name,
        approver_role=request.approver_role,
        submitted_by=request.submitted_by,
        submitted_at=request.submitted_at.isoformat(),
        step_entered_at=request.step_entered_at.isoformat(),
        completed_at=request.completed_at.isoformat() if request.completed_at else None,
        cancelled_by=request.cancelled_by,
        completed_steps=completed_steps,
        total_steps=total_steps,
        progress_percentage=progress_percentage,
        days_in_queue=days_in_queue(request=request, now=now),
        metadata=request.metadata,
        actions=[to_action(action) for action in actions],
    )
