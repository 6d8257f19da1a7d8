from __future__ import annotations

from datetime import date
from typing import Optional, Protocol, Sequence

from ..core.enums import Role
from .model import User


class UserRepository(Protocol):
    """Repository interface for User.

    Services depend on this interface, never on a concrete database.
    """

    def get_by_id(self, user_id: int) -> Optional[User]:
        raise NotImplementedError

    def get_by_staff_id(self, staff_id: str) -> Optional[User]:
        raise NotImplementedError

    def list_all(self, *, active_only: bool = True) -> Sequence[User]:
        raise NotImplementedError

    def list_by_roles(self, roles: Sequence[Role]) -> Sequence[User]:
        raise NotImplementedError

    def create_user(
        self,
        *,
        staff_id: str,
        name: str,
        email: Optional[str],
        password_hash: str,
        role: Role,
        birth_date: Optional[date] = None,
        address: Optional[str] = None,
        phone: Optional[str] = None,
        work_start_date: Optional[date] = None,
    ) -> int:
        raise NotImplementedError

    def update_profile(
        self,
        user_id: int,
        *,
        name: str,
        email: Optional[str],
        address: Optional[str],
        phone: Optional[str],
        birth_date: Optional[date],
    ) -> bool:
        raise NotImplementedError

    def update_password(self, user_id: int, password_hash: str) -> bool:
        raise NotImplementedError

    def set_mfa(self, user_id: int, *, enabled: bool, secret: Optional[str]) -> bool:
        raise NotImplementedError

    def set_active(self, user_id: int, *, is_active: bool) -> bool:
        raise NotImplementedError
