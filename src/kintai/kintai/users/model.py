from __future__ import annotations

from dataclasses import dataclass
from datetime import date
from typing import Optional

from ..core.enums import Role


@dataclass(frozen=True)
class User:
    """Domain entity: staff account.

    Plain data object (no DB access code).
    """

    user_id: int
    staff_id: str
    name: str
    email: Optional[str]
    role: Role
    password_hash: str
    birth_date: Optional[date] = None
    address: Optional[str] = None
    phone: Optional[str] = None
    is_active: bool = True
    mfa_enabled: bool = False
    mfa_secret: Optional[str] = None
    work_start_date: Optional[date] = None

    def to_public(self) -> dict:
        return {
            "id": self.user_id,
            "staff_id": self.staff_id,
            "name": self.name,
            "email": self.email,
            "role": self.role.value,
            "birth_date": self.birth_date.isoformat() if self.birth_date else None,
            "address": self.address,
            "phone": self.phone,
            "is_active": self.is_active,
            "mfa_enabled": self.mfa_enabled,
            "work_start_date": self.work_start_date.isoformat() if self.work_start_date else None,
        }
