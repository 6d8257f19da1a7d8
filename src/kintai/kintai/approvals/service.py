from __future__ import annotations

import logging
from dataclasses import replace
from datetime import date, datetime, time
from typing import Any, Callable, Optional

from ..common.datetime_utils import inclusive_days, now_local
from ..common.validators import require_non_empty, require_positive_number
from ..core.constants import OVERTIME_HIGH_PRIORITY_HOURS
from ..core.enums import ApprovalActionType, ApprovalStatus, ApprovalType, Priority, Role
from ..core.exceptions import AuthorizationError, ConflictError, NotFoundError, ValidationError
from ..notifications.service import NotificationService
from ..paid_leave.service import PaidLeaveService
from ..users.model import User
from ..users.repository import UserRepository
from .model import SYSTEM_APPROVER, ApprovalAction, ApprovalRequest, ApprovalStep, ApprovalWorkflow
from .repository import ApprovalRequestRepository, WorkflowRepository

logger = logging.getLogger(__name__)

# Called once a request reaches approved/rejected, before it is stored.
DecisionHandler = Callable[[ApprovalRequest], None]


def _step(step_id: str, name: str, roles: tuple[Role, ...], order: int) -> ApprovalStep:
    return ApprovalStep(step_id=step_id, name=name, approver_roles=roles, is_required=True, order=order)


DEFAULT_WORKFLOWS: tuple[ApprovalWorkflow, ...] = (
    ApprovalWorkflow(
        "time-record-approval",
        "勤怠記録承認",
        ApprovalType.TIME_RECORD,
        (_step("step1", "管理者承認", (Role.ADMIN, Role.CREATOR), 1),),
    ),
    ApprovalWorkflow(
        "overtime-approval",
        "残業申請承認",
        ApprovalType.OVERTIME_REQUEST,
        (
            _step("step1", "作成者承認", (Role.CREATOR,), 1),
            _step("step2", "管理者承認", (Role.ADMIN,), 2),
        ),
    ),
    ApprovalWorkflow(
        "vacation-approval",
        "有給休暇申請承認",
        ApprovalType.VACATION_REQUEST,
        (_step("step1", "管理者承認", (Role.ADMIN,), 1),),
    ),
    ApprovalWorkflow(
        "shift-change-approval",
        "シフト変更承認",
        ApprovalType.SHIFT_CHANGE,
        (_step("step1", "シフト管理者承認", (Role.ADMIN, Role.CREATOR), 1),),
    ),
)


def next_step_for(workflow: ApprovalWorkflow, request: ApprovalRequest, role: Role) -> Optional[ApprovalStep]:
    """Earliest incomplete required step the given role may complete."""
    done = request.completed_step_ids
    for step in workflow.ordered_steps:
        if step.is_required and step.step_id not in done and role in step.approver_roles:
            return step
    return None


def all_required_done(workflow: ApprovalWorkflow, completed: set[str]) -> bool:
    return all(s.step_id in completed for s in workflow.steps if s.is_required)


class ApprovalService:
    """Multi-step approval workflow engine."""

    def __init__(
        self,
        requests: ApprovalRequestRepository,
        workflows: WorkflowRepository,
        users: UserRepository,
        notifications: Optional[NotificationService] = None,
        paid_leave: Optional[PaidLeaveService] = None,
        *,
        clock: Callable[[], datetime] = now_local,
    ):
        self._requests = requests
        self._workflows = workflows
        self._users = users
        self._notifications = notifications
        self._paid_leave = paid_leave
        self._clock = clock
        self._handlers: dict[ApprovalType, DecisionHandler] = {}

    def register_handler(self, approval_type: ApprovalType, handler: DecisionHandler) -> None:
        self._handlers[ApprovalType(approval_type)] = handler

    def ensure_default_workflows(self) -> None:
        existing = {w.workflow_id for w in self._workflows.list_all()}
        for workflow in DEFAULT_WORKFLOWS:
            if workflow.workflow_id not in existing:
                self._workflows.save(workflow)

    def list_workflows(self) -> list[ApprovalWorkflow]:
        return list(self._workflows.list_all())

    def _user(self, user_id: int) -> User:
        user = self._users.get_by_id(int(user_id))
        if not user:
            raise NotFoundError("ユーザーが見つかりません")
        return user

    def _get(self, request_id: int) -> ApprovalRequest:
        req = self._requests.get(int(request_id))
        if not req:
            raise NotFoundError("承認リクエストが見つかりません")
        return req

    def create_request(
        self,
        *,
        approval_type: ApprovalType,
        requester_id: int,
        title: str,
        description: str,
        data: Optional[dict[str, Any]] = None,
        priority: Priority = Priority.MEDIUM,
    ) -> ApprovalRequest:
        approval_type = ApprovalType(approval_type)
        workflow = self._workflows.get_active_for_type(approval_type)
        if not workflow:
            raise ValidationError("対応するワークフローが見つかりません")

        approvers: list[str] = []
        for role in workflow.approver_roles:
            for user in self._users.list_by_roles([role]):
                if user.is_active and user.staff_id not in approvers:
                    approvers.append(user.staff_id)

        now = self._clock()
        request_id = self._requests.create(
            approval_type=approval_type,
            requester_id=int(requester_id),
            requested_at=now,
            title=title,
            description=description,
            data=dict(data or {}),
            priority=Priority(priority),
            required_approvers=approvers,
        )
        logger.info("approval request %s created: type=%s requester=%s", request_id, approval_type.value, requester_id)
        return ApprovalRequest(
            request_id=request_id,
            approval_type=approval_type,
            requester_id=int(requester_id),
            requested_at=now,
            title=title,
            description=description,
            data=dict(data or {}),
            priority=Priority(priority),
            required_approvers=tuple(approvers),
        )

    def process(
        self,
        request_id: int,
        *,
        approver_id: int,
        action: ApprovalActionType,
        comment: Optional[str] = None,
    ) -> ApprovalRequest:
        action = ApprovalActionType(action)
        approver = self._user(approver_id)
        req = self._get(request_id)

        if not req.is_pending:
            raise ConflictError("この承認リクエストは既に処理済みです")
        if approver.staff_id not in req.required_approvers:
            raise AuthorizationError("この承認リクエストを処理する権限がありません")
        if req.has_acted(approver.staff_id):
            raise ConflictError("既にこのリクエストを処理しています")

        now = self._clock()
        if action == ApprovalActionType.REJECT:
            entry = ApprovalAction(approver.staff_id, action, now, comment)
            updated = replace(
                req,
                approvals=req.approvals + (entry,),
                status=ApprovalStatus.REJECTED,
                rejection_reason=comment,
                approved_by=None,
                approved_at=None,
            )
            return self._finalize(updated)

        workflow = self._workflows.get_active_for_type(req.approval_type)
        if not workflow:
            entry = ApprovalAction(approver.staff_id, action, now, comment)
            return self._finalize(
                replace(
                    req,
                    approvals=req.approvals + (entry,),
                    status=ApprovalStatus.APPROVED,
                    approved_by=approver.staff_id,
                    approved_at=now,
                )
            )

        step = next_step_for(workflow, req, approver.role)
        if not step:
            raise ValidationError("承認可能なステップがありません")

        entry = ApprovalAction(approver.staff_id, action, now, comment, step.step_id)
        updated = replace(
            req,
            approvals=req.approvals + (entry,),
            approved_by=approver.staff_id,
            approved_at=now,
        )
        if all_required_done(workflow, updated.completed_step_ids):
            return self._finalize(replace(updated, status=ApprovalStatus.APPROVED))

        self._requests.save(updated)
        logger.info("approval request %s: step %s done by %s", req.request_id, step.step_id, approver.staff_id)
        return updated

    def auto_approve(self, request_id: int, reason: str) -> bool:
        req = self._requests.get(int(request_id))
        if not req or not req.is_pending:
            return False
        now = self._clock()
        entry = ApprovalAction(SYSTEM_APPROVER, ApprovalActionType.APPROVE, now, f"自動承認: {reason}")
        self._finalize(
            replace(
                req,
                approvals=req.approvals + (entry,),
                status=ApprovalStatus.APPROVED,
                approved_by=SYSTEM_APPROVER,
                approved_at=now,
            )
        )
        return True

    def emergency_approve(self, request_id: int, *, approver_id: int, reason: str) -> ApprovalRequest:
        approver = self._user(approver_id)
        if approver.role != Role.ADMIN:
            raise AuthorizationError("緊急承認は管理者のみ実行できます")
        req = self._get(request_id)
        if not req.is_pending:
            raise ConflictError("この承認リクエストは既に処理済みです")

        now = self._clock()
        entry = ApprovalAction(approver.staff_id, ApprovalActionType.APPROVE, now, f"緊急承認: {reason}")
        logger.warning("emergency approval of request %s by %s", req.request_id, approver.staff_id)
        return self._finalize(
            replace(
                req,
                approvals=req.approvals + (entry,),
                status=ApprovalStatus.APPROVED,
                approved_by=approver.staff_id,
                approved_at=now,
                priority=Priority.HIGH,
            )
        )

    def _finalize(self, req: ApprovalRequest) -> ApprovalRequest:
        handler = self._handlers.get(req.approval_type)
        if handler:
            handler(req)
        self._requests.save(req)
        logger.info("approval request %s %s", req.request_id, req.status.value)
        self._notify_requester(req)
        return req

    def _notify_requester(self, req: ApprovalRequest) -> None:
        if not self._notifications:
            return
        approved = req.status == ApprovalStatus.APPROVED
        if req.approval_type == ApprovalType.TIME_RECORD:
            work_date = req.data.get("work_date")
            self._notifications.send_attendance_approval(
                req.requester_id,
                approved=approved,
                work_date=date.fromisoformat(work_date) if work_date else None,
            )
            return

        if approved:
            title, message, priority = "申請が承認されました", f"「{req.title}」が承認されました", Priority.MEDIUM
        else:
            reason = f" 理由: {req.rejection_reason}" if req.rejection_reason else ""
            title, message, priority = "申請が却下されました", f"「{req.title}」が却下されました。{reason}", Priority.HIGH
        self._notifications.send_system_message(title, message, target_user_id=req.requester_id, priority=priority)

    def find_pending(self, approval_type: ApprovalType, **match: Any) -> Optional[ApprovalRequest]:
        for req in self._requests.list_all(status=ApprovalStatus.PENDING, approval_type=ApprovalType(approval_type)):
            if all(req.data.get(k) == v for k, v in match.items()):
                return req
        return None

    def pending_for(self, user_id: int) -> list[ApprovalRequest]:
        user = self._user(user_id)
        return [
            r for r in self._requests.list_all(status=ApprovalStatus.PENDING) if user.staff_id in r.required_approvers
        ]

    def my_requests(self, user_id: int) -> list[ApprovalRequest]:
        return list(self._requests.list_all(requester_id=int(user_id)))

    def history_for(self, user_id: int) -> list[ApprovalRequest]:
        user = self._user(user_id)
        return [r for r in self._requests.list_all() if r.has_acted(user.staff_id)]

    def details(self, request_id: int, *, user_id: int, current_role: Role) -> dict:
        req = self._get(request_id)
        viewer = self._user(user_id)
        if current_role == Role.STAFF and req.requester_id != viewer.user_id:
            raise AuthorizationError("この承認リクエストを閲覧する権限がありません")

        requester = self._users.get_by_id(req.requester_id)
        approvers = []
        for action in req.approvals:
            user = None if action.approver_id == SYSTEM_APPROVER else self._users.get_by_staff_id(action.approver_id)
            approvers.append({**action.to_dict(), "approver": user.to_public() if user else None})

        data = req.to_dict()
        data.update(requester=requester.to_public() if requester else None, approvers=approvers)
        return data

    def stats(self, user_id: int) -> dict:
        everything = list(self._requests.list_all())
        total = len(everything)
        approved = sum(1 for r in everything if r.status == ApprovalStatus.APPROVED)
        return {
            "total": total,
            "pending": sum(1 for r in everything if r.status == ApprovalStatus.PENDING),
            "approved": approved,
            "rejected": sum(1 for r in everything if r.status == ApprovalStatus.REJECTED),
            "my_pending": len(self.pending_for(user_id)),
            "my_requests": sum(1 for r in everything if r.requester_id == int(user_id)),
            "approval_rate": round(approved / total * 100) if total else 0,
        }

    # request helpers

    def request_time_record(
        self,
        *,
        requester_id: int,
        record_id: int,
        work_date: date,
        reason: str,
        clock_in: Optional[datetime] = None,
        clock_out: Optional[datetime] = None,
        correction: bool = False,
    ) -> ApprovalRequest:
        data: dict[str, Any] = {
            "record_id": int(record_id),
            "work_date": work_date.isoformat(),
            "reason": reason,
            "correction": correction,
        }
        if clock_in:
            data["clock_in"] = clock_in.isoformat()
        if clock_out:
            data["clock_out"] = clock_out.isoformat()
        return self.create_request(
            approval_type=ApprovalType.TIME_RECORD,
            requester_id=requester_id,
            title="勤怠記録の修正申請" if correction else "勤怠記録の承認申請",
            description=f"{work_date.isoformat()}の勤怠記録について承認をお願いします。",
            data=data,
            priority=Priority.MEDIUM,
        )

    def request_overtime(self, *, requester_id: int, work_date: date, hours: Any, reason: str) -> ApprovalRequest:
        hours = require_positive_number(hours, "残業時間")
        reason = require_non_empty(reason, "理由")
        return self.create_request(
            approval_type=ApprovalType.OVERTIME_REQUEST,
            requester_id=requester_id,
            title="残業申請",
            description=f"{work_date.isoformat()}に{hours:g}時間の残業申請をします。理由: {reason}",
            data={"date": work_date.isoformat(), "hours": hours, "reason": reason},
            priority=Priority.HIGH if hours > OVERTIME_HIGH_PRIORITY_HOURS else Priority.MEDIUM,
        )

    def request_vacation(self, *, requester_id: int, start: date, end: date, reason: str) -> ApprovalRequest:
        if end < start:
            raise ValidationError("終了日は開始日以降を指定してください")
        reason = require_non_empty(reason, "理由")
        days = inclusive_days(start, end)
        if self._paid_leave is not None:
            self._paid_leave.ensure_available(requester_id, days)
        return self.create_request(
            approval_type=ApprovalType.VACATION_REQUEST,
            requester_id=requester_id,
            title="有給休暇申請",
            description=f"{start.isoformat()}〜{end.isoformat()}（{days}日間）の有給休暇を申請します。理由: {reason}",
            data={"start_date": start.isoformat(), "end_date": end.isoformat(), "days": days, "reason": reason},
            priority=Priority.MEDIUM,
        )

    def request_shift_change(
        self,
        *,
        requester_id: int,
        work_date: date,
        start_time: time,
        end_time: time,
        reason: str,
        position: Optional[str] = None,
    ) -> ApprovalRequest:
        reason = require_non_empty(reason, "理由")
        if start_time == end_time:
            raise ValidationError("開始時刻と終了時刻が同じです")
        return self.create_request(
            approval_type=ApprovalType.SHIFT_CHANGE,
            requester_id=requester_id,
            title="シフト変更申請",
            description=(
                f"{work_date.isoformat()}のシフトを{start_time.strftime('%H:%M')}〜"
                f"{end_time.strftime('%H:%M')}に変更したいです。理由: {reason}"
            ),
            data={
                "work_date": work_date.isoformat(),
                "start_time": start_time.strftime("%H:%M"),
                "end_time": end_time.strftime("%H:%M"),
                "position": position,
                "reason": reason,
            },
            priority=Priority.MEDIUM,
        )
