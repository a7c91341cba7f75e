from datetime import timedelta

from src.core.approvals import (
    ApprovalCancelRequest,
    ApprovalCreateRequest,
    ApprovalDecisionRequest,
    ApprovalQueueService,
)
from src.core.approvals.queue import DEFAULT_AGING_THRESHOLDS, parse_thresholds


def _create(service, entity_id, entity_type="organization"):
    return service.create_request(
        payload=ApprovalCreateRequest(
            entity_type=entity_type,
            entity_id=entity_id,
            submitted_by="user_submitter",
        )
    )


def _decide(service, request_id, approver_id, decision="approve"):
    return service.decide(
        request_id=request_id,
        payload=ApprovalDecisionRequest(decision=decision, approver_id=approver_id),
    )


def test_queue_reports_days_in_queue_and_aging_bucket(service, repository, clock):
    created = _create(service, "org_aged")
    clock.advance(days=6)
    queue_service = ApprovalQueueService(repository=repository, clock=clock)

    queue = queue_service.list_queue(role="finance")

    assert queue.total == 1
    assert queue.items[0].request_id == created.request_id
    assert queue.items[0].days_in_queue == 6

    summary = queue_service.summarize(role="finance", thresholds=[5])
    assert summary.aging == {"aging_5": 1}
    assert summary.oldest_days_in_queue == 6


def test_days_in_queue_counts_from_step_entry(service, repository, clock):
    created = _create(service, "org_step_entry")
    clock.advance(days=4)
    _decide(service, created.request_id, "user_finance")
    clock.advance(days=1, hours=23)
    queue_service = ApprovalQueueService(repository=repository, clock=clock)

    assert queue_service.list_queue(role="finance").total == 0
    gm_queue = queue_service.list_queue(role="gm")
    assert gm_queue.items[0].days_in_queue == 1


def test_queue_orders_oldest_submission_first(service, repository, clock):
    first = _create(service, "org_first")
    clock.advance(hours=2)
    second = _create(service, "org_second")
    queue_service = ApprovalQueueService(repository=repository, clock=clock)

    queue = queue_service.list_queue(role="finance")

    assert [item.request_id for item in queue.items] == [first.request_id, second.request_id]


def test_terminal_requests_leave_every_queue(service, repository, clock):
    rejected = _create(service, "org_rejected")
    cancelled = _create(service, "org_cancelled")
    _decide(service, rejected.request_id, "user_finance", decision="reject")
    service.cancel(
        request_id=cancelled.request_id,
        payload=ApprovalCancelRequest(actor_id="user_submitter"),
    )
    queue_service = ApprovalQueueService(repository=repository, clock=clock)

    for role in ["finance", "gm", "coo", "program"]:
        assert queue_service.list_queue(role=role).items == []


def test_summary_uses_default_thresholds_and_counts_cumulatively(service, repository, clock):
    _create(service, "org_age_11")
    clock.advance(days=6)
    _create(service, "org_age_5")
    clock.advance(days=3)
    _create(service, "org_age_2")
    clock.advance(days=2)
    _create(service, "org_age_0")
    queue_service = ApprovalQueueService(repository=repository, clock=clock)

    summary = queue_service.summarize(role="finance")

    assert summary.total == 4
    assert list(summary.aging) == [f"aging_{t}" for t in DEFAULT_AGING_THRESHOLDS]
    assert summary.aging["aging_2"] == 3
    assert summary.aging["aging_5"] == 2
    assert summary.aging["aging_10"] == 1


def test_summary_for_empty_queue(repository, clock):
    summary = ApprovalQueueService(repository=repository, clock=clock).summarize(role="coo")

    assert summary.total == 0
    assert summary.oldest_days_in_queue is None
    assert set(summary.aging.values()) == {0}


def test_summary_is_recomputed_on_every_call(service, repository, clock):
    created = _create(service, "org_recompute")
    queue_service = ApprovalQueueService(repository=repository, clock=clock)
    assert queue_service.summarize(role="finance", thresholds=[1]).aging["aging_1"] == 0

    clock.now = clock.now + timedelta(days=1)
    assert queue_service.summarize(role="finance", thresholds=[1]).aging["aging_1"] == 1

    _decide(service, created.request_id, "user_finance")
    assert queue_service.summarize(role="finance", thresholds=[1]).total == 0


def test_parse_thresholds():
    assert parse_thresholds("7, 3,x,3") == (3, 7)
    assert parse_thresholds(None) == DEFAULT_AGING_THRESHOLDS
    assert parse_thresholds("-1,abc") == DEFAULT_AGING_THRESHOLDS
