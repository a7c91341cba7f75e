import json
from contextlib import closing
from datetime import datetime
from importlib.util import find_spec
from typing import Optional

from src.core.approvals.errors import ApprovalConcurrencyConflictError
from src.core.approvals.models import (
    ApprovalActionRecord,
    ApprovalRequestRecord,
    ApprovalRequestView,
    ApprovalTransitionResult,
)
from src.infrastructure.postgres_migrations import apply_postgres_migrations

_REQUEST_COLUMNS = """
    request_id,
    entity_type,
    entity_id,
    chain_definition_id,
    total_steps,
    status,
    current_step,
    step_name,
    approver_role,
    submitted_by,
    submitted_at,
    step_entered_at,
    completed_at,
    cancelled_by,
    version,
    metadata_json
"""

_ACTION_COLUMNS = """
    action_id,
    request_id,
    step_order,
    step_name,
    action,
    approver_id,
    approver_name,
    acted_at,
    comments
"""


class PostgresApprovalRequestRepository:
    def __init__(self, *, dsn: str) -> None:
        if not dsn:
            raise RuntimeError("APPROVAL_POSTGRES_DSN_REQUIRED")
        if find_spec("psycopg") is None:
            raise RuntimeError("APPROVAL_POSTGRES_DRIVER_MISSING")
        self._dsn = dsn
        self._init_db()

    def create_request(self, request: ApprovalRequestRecord) -> None:
        query = f"""
            INSERT INTO approval_requests ({_REQUEST_COLUMNS})
            VALUES (%s, %s, %s, %s, %s, %s, %s, %s, %s, %s, %s, %s, %s, %s, %s, %s)
        """
        with closing(self._connect()) as connection:
            connection.execute(query, _request_args(request))
            connection.commit()

    def get_request(self, *, request_id: str) -> Optional[ApprovalRequestRecord]:
        query = f"""
            SELECT {_REQUEST_COLUMNS}
            FROM approval_requests
            WHERE request_id = %s
        """
        with closing(self._connect()) as connection:
            row = connection.execute(query, (request_id,)).fetchone()
        return _to_request(row)

    def get_request_view(self, *, request_id: str) -> Optional[ApprovalRequestView]:
        request_query = f"""
            SELECT {_REQUEST_COLUMNS}
            FROM approval_requests
            WHERE request_id = %s
        """
        actions_query = f"""
            SELECT {_ACTION_COLUMNS}
            FROM approval_actions
            WHERE request_id = %s
            ORDER BY action_seq ASC
        """
        with closing(self._connect()) as connection:
            # Both reads share one snapshot.
            connection.execute("SET TRANSACTION ISOLATION LEVEL REPEATABLE READ")
            row = connection.execute(request_query, (request_id,)).fetchone()
            action_rows = (
                connection.execute(actions_query, (request_id,)).fetchall()
                if row is not None
                else []
            )
        request = _to_request(row)
        if request is None:
            return None
        return ApprovalRequestView(
            request=request,
            actions=[_to_action(action_row) for action_row in action_rows],
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
        where_clauses = []
        args: list[str] = []
        if entity_type is not None:
            where_clauses.append("entity_type = %s")
            args.append(entity_type)
        if entity_id is not None:
            where_clauses.append("entity_id = %s")
            args.append(entity_id)
        if status is not None:
            where_clauses.append("status = %s")
            args.append(status)
        if submitted_from is not None:
            where_clauses.append("submitted_at >= %s")
            args.append(submitted_from.isoformat())
        if submitted_to is not None:
            where_clauses.append("submitted_at <= %s")
            args.append(submitted_to.isoformat())
        where_sql = f"WHERE {' AND '.join(where_clauses)}" if where_clauses else ""
        query = f"""
            SELECT {_REQUEST_COLUMNS}
            FROM approval_requests
            {where_sql}
            ORDER BY submitted_at DESC, request_id DESC
        """
        with closing(self._connect()) as connection:
            rows = connection.execute(query, tuple(args)).fetchall()
        requests = [_to_request(row) for row in rows]
        requests = [request for request in requests if request is not None]
        if cursor:
            cursor_index = next(
                (
                    index
                    for index, request in enumerate(requests)
                    if request.request_id == cursor
                ),
                None,
            )
            if cursor_index is None:
                return [], None
            requests = requests[cursor_index + 1 :]
        if limit is None:
            return requests, None
        page = requests[:limit]
        next_cursor = page[-1].request_id if len(requests) > limit else None
        return page, next_cursor

    def list_pending_by_role(self, *, approver_role: str) -> list[ApprovalRequestRecord]:
        query = f"""
            SELECT {_REQUEST_COLUMNS}
            FROM approval_requests
            WHERE status = 'pending' AND approver_role = %s
            ORDER BY submitted_at ASC, request_id ASC
        """
        with closing(self._connect()) as connection:
            rows = connection.execute(query, (approver_role,)).fetchall()
        requests = [_to_request(row) for row in rows]
        return [request for request in requests if request is not None]

    def save_transition(
        self,
        *,
        request: ApprovalRequestRecord,
        action: Optional[ApprovalActionRecord],
        expected_version: int,
    ) -> ApprovalTransitionResult:
        update_query = """
            UPDATE approval_requests SET
                status = %s,
                current_step = %s,
                step_name = %s,
                approver_role = %s,
                step_entered_at = %s,
                completed_at = %s,
                cancelled_by = %s,
                version = %s,
                metadata_json = %s
            WHERE request_id = %s AND version = %s
        """
        with closing(self._connect()) as connection:
            cursor = connection.execute(
                update_query,
                (
                    request.status,
                    request.current_step,
                    request.step_name,
                    request.approver_role,
                    request.step_entered_at.isoformat(),
                    _optional_iso(request.completed_at),
                    request.cancelled_by,
                    request.version,
                    _json_dump(request.metadata),
                    request.request_id,
                    expected_version,
                ),
            )
            if cursor.rowcount != 1:
                connection.rollback()
                raise ApprovalConcurrencyConflictError("APPROVAL_REQUEST_VERSION_CONFLICT")
            if action is not None:
                self._insert_action(connection=connection, action=action)
            connection.commit()

        return ApprovalTransitionResult(request=request, action=action)

    def _connect(self):
        psycopg, dict_row = _import_psycopg()
        return psycopg.connect(self._dsn, row_factory=dict_row)

    def _init_db(self) -> None:
        with closing(self._connect()) as connection:
            apply_postgres_migrations(connection=connection, namespace="approvals")

    def _insert_action(self, *, connection, action: ApprovalActionRecord) -> None:
        query = f"""
            INSERT INTO approval_actions ({_ACTION_COLUMNS})
            VALUES (%s, %s, %s, %s, %s, %s, %s, %s, %s)
        """
        connection.execute(
            query,
            (
                action.action_id,
                action.request_id,
                action.step_order,
                action.step_name,
                action.action,
                action.approver_id,
                action.approver_name,
                action.acted_at.isoformat(),
                action.comments,
            ),
        )


def _import_psycopg():
    import psycopg
    from psycopg.rows import dict_row

    return psycopg, dict_row


def _optional_iso(value: Optional[datetime]) -> Optional[str]:
    if value is None:
        return None
    return value.isoformat()


def _json_dump(value: dict) -> str:
    return json.dumps(value, separators=(",", ":"), sort_keys=True)


def _optional_datetime(value: Optional[str]) -> Optional[datetime]:
    if value is None:
        return None
    return datetime.fromisoformat(value)


def _request_args(request: ApprovalRequestRecord) -> tuple:
    return (
        request.request_id,
        request.entity_type,
        request.entity_id,
        request.chain_definition_id,
        request.total_steps,
        request.status,
        request.current_step,
        request.step_name,
        request.approver_role,
        request.submitted_by,
        request.submitted_at.isoformat(),
        request.step_entered_at.isoformat(),
        _optional_iso(request.completed_at),
        request.cancelled_by,
        request.version,
        _json_dump(request.metadata),
    )


def _to_request(row) -> Optional[ApprovalRequestRecord]:
    if row is None:
        return None
    return ApprovalRequestRecord(
        request_id=row["request_id"],
        entity_type=row["entity_type"],
        entity_id=row["entity_id"],
        chain_definition_id=row["chain_definition_id"],
        total_steps=int(row["total_steps"]),
        status=row["status"],
        current_step=int(row["current_step"]),
        step_name=row["step_name"],
        approver_role=row["approver_role"],
        submitted_by=row["submitted_by"],
        submitted_at=datetime.fromisoformat(row["submitted_at"]),
        step_entered_at=datetime.fromisoformat(row["step_entered_at"]),
        completed_at=_optional_datetime(row["completed_at"]),
        cancelled_by=row["cancelled_by"],
        version=int(row["version"]),
        metadata=json.loads(row["metadata_json"]),
    )


def _to_action(row) -> ApprovalActionRecord:
    return ApprovalActionRecord(
        action_id=row["action_id"],
        request_id=row["request_id"],
        step_order=int(row["step_order"]),
        step_name=row["step_name"],
        action=row["action"],
        approver_id=row["approver_id"],
        approver_name=row["approver_name"],
        acted_at=datetime.fromisoformat(row["acted_at"]),
        comments=row["comments"],
    )
