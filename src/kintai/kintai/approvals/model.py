from __future__ import annotations

from dataclasses import dataclass, field
from datetime import datetime
from typing import Any, Optional

from ..core.enums import ApprovalActionType, ApprovalStatus, ApprovalType, Priority, Role

SYSTEM_APPROVER = "system"


@dataclass(frozen=True)
class ApprovalStep:
    step_id: str
    name: str
    approver_roles: tuple[Role, ...]
    is_required: bool = True
    order: int = 1

    def to_dict(self) -> dict:
        return {
            "id": self.step_id,
            "name": self.name,
            "approver_roles": [r.value for r in self.approver_roles],
            "is_required": self.is_required,
            "order": self.order,
        }


@dataclass(frozen=True)
class ApprovalWorkflow:
    workflow_id: str
    name: str
    approval_type: ApprovalType
    steps: tuple[ApprovalStep, ...]
    is_active: bool = True

    @property
    def ordered_steps(self) -> list[ApprovalStep]:
        return sorted(self.steps, key=lambda s: s.order)

    @property
    def approver_roles(self) -> list[Role]:
        roles: list[Role] = []
        for step in self.ordered_steps:
            for role in step.approver_roles:
                if role not in roles:
                    roles.append(role)
        return roles

    def to_dict(self) -> dict:
        return {
            "id": self.workflow_id,
            "name": self.name,
            "type": self.approval_type.value,
            "steps": [s.to_dict() for s in self.ordered_steps],
            "is_active": self.is_active,
        }


@dataclass(frozen=True)
class ApprovalAction:
    """One approve/reject made on a request; approver_id is a staff id or 'system'."""

    approver_id: str
    action: ApprovalActionType
    timestamp: datetime
    comment: Optional[str] = None
    step_id: Optional[str] = None

    def to_dict(self) -> dict:
        return {
            "approver_id": self.approver_id,
            "action": self.action.value,
            "timestamp": self.timestamp.isoformat(),
            "comment": self.comment,
            "step_id": self.step_id,
        }


@dataclass(frozen=True)
class ApprovalRequest:
    request_id: int
    approval_type: ApprovalType
    requester_id: int
    requested_at: datetime
    title: str
    description: str
    data: dict[str, Any] = field(default_factory=dict)
    status: ApprovalStatus = ApprovalStatus.PENDING
    approved_by: Optional[str] = None
    approved_at: Optional[datetime] = None
    rejection_reason: Optional[str] = None
    priority: Priority = Priority.MEDIUM
    required_approvers: tuple[str, ...] = ()
    approvals: tuple[ApprovalAction, ...] = ()

    @property
    def is_pending(self) -> bool:
        return self.status == ApprovalStatus.PENDING

    def has_acted(self, approver_id: str) -> bool:
        return any(a.approver_id == approver_id for a in self.approvals)

    @property
    def completed_step_ids(self) -> set[str]:
        return {
            a.step_id for a in self.approvals if a.action == ApprovalActionType.APPROVE and a.step_id is not None
        }

    def to_dict(self) -> dict:
        return {
            "id": self.request_id,
            "type": self.approval_type.value,
            "requester_id": self.requester_id,
            "requested_at": self.requested_at.isoformat(),
            "title": self.title,
            "description": self.description,
            "data": self.data,
            "status": self.status.value,
            "approved_by": self.approved_by,
            "approved_at": self.approved_at.isoformat() if self.approved_at else None,
            "rejection_reason": self.rejection_reason,
            "priority": self.priority.value,
            "required_approvers": list(self.required_approvers),
            "approvals": [a.to_dict() for a in self.approvals],
        }
