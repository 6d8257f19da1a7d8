from __future__ import annotations

from datetime import datetime
from typing import Optional, Protocol, Sequence

from ..core.enums import ContactMethod, EmergencyRequestType, EmergencyStatus
from .backup_codes import BackupCodeSet
from .model import EmergencyAccessRequest, EmergencyContact


class BackupCodeRepository(Protocol):
    def get_for_user(self, user_id: int) -> Optional[BackupCodeSet]:
        raise NotImplementedError

    def save(self, code_set: BackupCodeSet) -> None:
        """Insert or replace the user's whole code set."""

        raise NotImplementedError

    def delete_for_user(self, user_id: int) -> bool:
        raise NotImplementedError


class EmergencyRepository(Protocol):
    def create(
        self,
        *,
        user_id: int,
        request_type: EmergencyRequestType,
        reason: str,
        contact_method: ContactMethod,
        contact_info: str,
        requested_at: datetime,
    ) -> int:
        raise NotImplementedError

    def get(self, request_id: int) -> Optional[EmergencyAccessRequest]:
        raise NotImplementedError

    def list_all(self, *, status: Optional[EmergencyStatus] = None) -> Sequence[EmergencyAccessRequest]:
        raise NotImplementedError

    def mark_processed(
        self,
        request_id: int,
        *,
        status: EmergencyStatus,
        processed_by: int,
        processed_at: datetime,
        admin_notes: Optional[str],
    ) -> bool:
        raise NotImplementedError

    def save_contact(self, contact: EmergencyContact) -> None:
        raise NotImplementedError

    def get_contact(self, user_id: int) -> Optional[EmergencyContact]:
        raise NotImplementedError
