import logging
from threading import Lock
from typing import Protocol

from src.core.approvals.models import ApprovalEvent


class ApprovalEventPublisher(Protocol):
    def publish(self, event: ApprovalEvent) -> None:
        """Hand a committed state change to the notification dispatcher."""


class LoggingApprovalEventPublisher:
    def __init__(self, logger: logging.Logger | None = None) -> None:
        self._logger = logger or logging.getLogger("approvals.events")

    def publish(self, event: ApprovalEvent) -> None:
        self._logger.info(
            f"approval.event.{event.event_type.lower()}",
            extra={"extra_fields": event.model_dump(mode="json")},
        )


class InMemoryApprovalEventPublisher:
    def __init__(self) -> None:
        self._lock = Lock()
        self._events: list[ApprovalEvent] = []

    def publish(self, event: ApprovalEvent) -> None:
        with self._lock:
            self._events.append(event.model_copy(deep=True))

    def list_events(self) -> list[ApprovalEvent]:
        with self._lock:
            return [event.model_copy(deep=True) for event in self._events]
