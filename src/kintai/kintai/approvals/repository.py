from __future__ import annotations

from datetime import datetime
from typing import Any, Optional, Protocol, Sequence

from ..core.enums import ApprovalStatus, ApprovalType, Priority
from .model import ApprovalRequest, ApprovalWorkflow


class WorkflowRepository(Protocol):
    def list_all(self) -> Sequence[ApprovalWorkflow]:
        raise NotImplementedError

    def get_active_for_type(self, approval_type: ApprovalType) -> Optional[ApprovalWorkflow]:
        raise NotImplementedError

    def save(self, workflow: ApprovalWorkflow) -> None:
        raise NotImplementedError


class ApprovalRequestRepository(Protocol):
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
        raise NotImplementedError

    def get(self, request_id: int) -> Optional[ApprovalRequest]:
        raise NotImplementedError

    def save(self, request: ApprovalRequest) -> None:
        """Persist status, approvals and decision fields of an existing request."""

        raise NotImplementedError

    def list_all(
        self,
        *,
        status: Optional[ApprovalStatus] = None,
        requester_id: Optional[int] = None,
        approval_type: Optional[ApprovalType] = None,
    ) -> Sequence[ApprovalRequest]:
        raise NotImplementedError
