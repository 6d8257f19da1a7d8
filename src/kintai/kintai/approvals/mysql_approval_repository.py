from __future__ import annotations

from datetime import datetime
from typing import Any, Optional, Sequence

from ..common.datetime_utils import parse_iso_datetime
from ..core.enums import ApprovalActionType, ApprovalStatus, ApprovalType, Priority, Role
from ..database.connection import DatabaseConnection
from ..database.mysql_base import db_cursor, dump_json, fetchall, fetchone, load_json
from .model import ApprovalAction, ApprovalRequest, ApprovalStep, ApprovalWorkflow
from .repository import ApprovalRequestRepository, WorkflowRepository


def _steps_from_json(value) -> tuple[ApprovalStep, ...]:
    return tuple(
        ApprovalStep(
            step_id=s["id"],
            name=s["name"],
            approver_roles=tuple(Role(r) for r in s.get("approver_roles", [])),
            is_required=bool(s.get("is_required", True)),
            order=int(s.get("order", 1)),
        )
        for s in load_json(value, [])
    )


def _row_to_workflow(r: dict) -> ApprovalWorkflow:
    return ApprovalWorkflow(
        workflow_id=r["workflow_id"],
        name=r["name"],
        approval_type=ApprovalType(r["approval_type"]),
        steps=_steps_from_json(r["steps"]),
        is_active=bool(r.get("is_active")),
    )


class MySQLWorkflowRepository(WorkflowRepository):
    def __init__(self, conn_factory: DatabaseConnection):
        self._conn_factory = conn_factory

    def list_all(self) -> Sequence[ApprovalWorkflow]:
        with db_cursor(self._conn_factory) as (_, cur):
            cur.execute("SELECT * FROM approval_workflows ORDER BY workflow_id")
            return [_row_to_workflow(r) for r in fetchall(cur)]

    def get_active_for_type(self, approval_type: ApprovalType) -> Optional[ApprovalWorkflow]:
        with db_cursor(self._conn_factory) as (_, cur):
            cur.execute(
                "SELECT * FROM approval_workflows WHERE approval_type=%s AND is_active=1 ORDER BY workflow_id LIMIT 1",
                (approval_type.value,),
            )
            r = fetchone(cur)
            return _row_to_workflow(r) if r else None

    def save(self, workflow: ApprovalWorkflow) -> None:
        with db_cursor(self._conn_factory) as (_, cur):
            cur.execute(
                """
                INSERT INTO approval_workflows(workflow_id, name, approval_type, steps, is_active)
                VALUES(%s,%s,%s,%s,%s)
                ON DUPLICATE KEY UPDATE
                    name=VALUES(name),
                    approval_type=VALUES(approval_type),
                    steps=VALUES(steps),
                    is_active=VALUES(is_active)
                """,
                (
                    workflow.workflow_id,
                    workflow.name,
                    workflow.approval_type.value,
                    dump_json([s.to_dict() for s in workflow.steps]),
                    1 if workflow.is_active else 0,
                ),
            )


def _actions_from_json(value) -> tuple[ApprovalAction, ...]:
    return tuple(
        ApprovalAction(
            approver_id=str(a["approver_id"]),
            action=ApprovalActionType(a["action"]),
            timestamp=parse_iso_datetime(a["timestamp"]),
            comment=a.get("comment"),
            step_id=a.get("step_id"),
        )
        for a in load_json(value, [])
    )


def _row_to_request(r: dict) -> ApprovalRequest:
    return ApprovalRequest(
        request_id=int(r["request_id"]),
        approval_type=ApprovalType(r["approval_type"]),
        requester_id=int(r["requester_id"]),
        requested_at=r["requested_at"],
        title=r["title"],
        description=r.get("description") or "",
        data=load_json(r.get("data"), {}),
        status=ApprovalStatus(r["status"]),
        approved_by=r.get("approved_by"),
        approved_at=r.get("approved_at"),
        rejection_reason=r.get("rejection_reason"),
        priority=Priority(r.get("priority") or Priority.MEDIUM.value),
        required_approvers=tuple(str(a) for a in load_json(r.get("required_approvers"), [])),
        approvals=_actions_from_json(r.get("approvals")),
    )


class MySQLApprovalRequestRepository(ApprovalRequestRepository):
    def __init__(self, conn_factory: DatabaseConnection):
        self._conn_factory = conn_factory

    def create(
        self,
        *,
        approval_type: ApprovalType,
        requester_id: int,
        requested_at: datetime,
        title: str,
        description: str,
        data: dict[str, Any],
        priority: Priority,
        required_approvers: Sequence[str],
    ) -> int:
        with db_cursor(self._conn_factory) as (_, cur):
            cur.execute(
                """
                INSERT INTO approval_requests(approval_type, requester_id, requested_at, title, description, data,
                                              status, priority, required_approvers, approvals)
                VALUES(%s,%s,%s,%s,%s,%s,'pending',%s,%s,'[]')
                """,
                (
                    approval_type.value,
                    int(requester_id),
                    requested_at,
                    title,
                    description,
                    dump_json(data),
                    priority.value,
                    dump_json(list(required_approvers)),
                ),
            )
            return int(cur.lastrowid)

    def get(self, request_id: int) -> Optional[ApprovalRequest]:
        with db_cursor(self._conn_factory) as (_, cur):
            cur.execute("SELECT * FROM approval_requests WHERE request_id=%s", (int(request_id),))
            r = fetchone(cur)
            return _row_to_request(r) if r else None

    def save(self, request: ApprovalRequest) -> None:
        with db_cursor(self._conn_factory) as (_, cur):
            cur.execute(
                """
                UPDATE approval_requests
                SET status=%s, approved_by=%s, approved_at=%s, rejection_reason=%s, priority=%s,
                    approvals=%s, data=%s
                WHERE request_id=%s
                """,
                (
                    request.status.value,
                    request.approved_by,
                    request.approved_at,
                    request.rejection_reason,
                    request.priority.value,
                    dump_json([a.to_dict() for a in request.approvals]),
                    dump_json(request.data),
                    int(request.request_id),
                ),
            )

    def list_all(
        self,
        *,
        status: Optional[ApprovalStatus] = None,
        requester_id: Optional[int] = None,
        approval_type: Optional[ApprovalType] = None,
    ) -> Sequence[ApprovalRequest]:
        sql = "SELECT * FROM approval_requests WHERE 1=1"
        params: list = []
        if status is not None:
            sql += " AND status=%s"
            params.append(status.value)
        if requester_id is not None:
            sql += " AND requester_id=%s"
            params.append(int(requester_id))
        if approval_type is not None:
            sql += " AND approval_type=%s"
            params.append(approval_type.value)
        sql += " ORDER BY requested_at DESC, request_id DESC"
        with db_cursor(self._conn_factory) as (_, cur):
            cur.execute(sql, tuple(params))
            return [_row_to_request(r) for r in fetchall(cur)]
