from __future__ import annotations

from dataclasses import dataclass
from datetime import datetime
from typing import Optional

from ..core.enums import ContactMethod, EmergencyRequestType, EmergencyStatus


@dataclass(frozen=True)
class EmergencyAccessRequest:
    request_id: int
    user_id: int
    request_type: EmergencyRequestType
    reason: str
    contact_method: ContactMethod
    contact_info: str
    status: EmergencyStatus
    requested_at: datetime
    processed_at: Optional[datetime] = None
    processed_by: Optional[int] = None
    admin_notes: Optional[str] = None

    def to_dict(self) -> dict:
        return {
            "id": self.request_id,
            "user_id": self.user_id,
            "request_type": self.request_type.value,
            "reason": self.reason,
            "contact_method": self.contact_method.value,
            "contact_info": self.contact_info,
            "status": self.status.value,
            "requested_at": self.requested_at.isoformat(),
            "processed_at": self.processed_at.isoformat() if self.processed_at else None,
            "processed_by": self.processed_by,
            "admin_notes": self.admin_notes,
        }


@dataclass(frozen=True)
class EmergencyContact:
    user_id: int
    name: str
    relationship: Optional[str] = None
    email: Optional[str] = None
    phone: Optional[str] = None
    verified: bool = False

    def to_dict(self) -> dict:
        return {
            "name": self.name,
            "relationship": self.relationship,
            "email": self.email,
            "phone": self.phone,
            "verified": self.verified,
        }
