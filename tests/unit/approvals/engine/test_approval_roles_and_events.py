import json
import logging
from datetime import datetime, timezone

from src.core.approvals.events import (
    InMemoryApprovalEventPublisher,
    LoggingApprovalEventPublisher,
)
from src.core.approvals.models import ApprovalEvent
from src.core.approvals.roles import (
    StaticMapApproverRoleDirectory,
    build_approver_role_directory,
    parse_approver_role_map,
)


def _event() -> ApprovalEvent:
    return ApprovalEvent(
        event_id="ape_001",
        event_type="ADVANCED",
        request_id="apr_001",
        entity_type="organization",
        entity_id="org_001",
        status="pending",
        step_order=2,
        approver_role="gm",
        actor_id="user_finance",
        occurred_at=datetime(2026, 3, 2, 9, 0, tzinfo=timezone.utc),
    )


def test_parse_approver_role_map_normalizes_entries():
    mapping = parse_approver_role_map(
        json.dumps(
            {
                " user_a ": ["finance", " gm ", ""],
                "user_b": "coo",
                "user_c": [],
                "user_d": 42,
                "": ["finance"],
            }
        )
    )

    assert mapping == {"user_a": {"finance", "gm"}, "user_b": {"coo"}}


def test_parse_approver_role_map_invalid_json():
    assert parse_approver_role_map("{") == {}
    assert parse_approver_role_map(None) == {}
    assert parse_approver_role_map('["finance"]') == {}


def test_static_directory_returns_copies_and_supports_assignment():
    directory = build_approver_role_directory(mapping_json='{"user_a": ["finance"]}')

    roles = directory.get_roles(approver_id="user_a")
    roles.add("coo")

    assert directory.get_roles(approver_id="user_a") == {"finance"}
    assert directory.get_roles(approver_id="  ") == set()
    assert directory.get_roles(approver_id="user_missing") == set()

    directory.assign(approver_id="user_a", roles={"gm"})
    assert directory.get_roles(approver_id=" user_a ") == {"gm"}


def test_static_directory_from_role_map():
    directory = StaticMapApproverRoleDirectory(role_map={"user_x": {"program"}})

    assert directory.get_roles(approver_id="user_x") == {"program"}


def test_logging_publisher_emits_structured_event(caplog):
    publisher = LoggingApprovalEventPublisher()

    with caplog.at_level(logging.INFO, logger="approvals.events"):
        publisher.publish(_event())

    record = caplog.records[-1]
    assert record.getMessage() == "approval.event.advanced"
    assert record.extra_fields["request_id"] == "apr_001"
    assert record.extra_fields["occurred_at"] == "2026-03-02T09:00:00Z"


def test_in_memory_publisher_keeps_publication_order():
    publisher = InMemoryApprovalEventPublisher()
    first = _event()
    second = _event().model_copy(update={"event_id": "ape_002", "event_type": "APPROVED"})

    publisher.publish(first)
    publisher.publish(second)

    assert [event.event_id for event in publisher.list_events()] == ["ape_001", "ape_002"]
