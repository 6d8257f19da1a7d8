from __future__ import annotations

from datetime import date
from typing import Optional, Sequence

from ..core.enums import Role
from ..database.connection import DatabaseConnection
from ..database.mysql_base import db_cursor, fetchall, fetchone
from .model import User
from .repository import UserRepository

_COLUMNS = """
    user_id, staff_id, name, email, role, password_hash, birth_date, address, phone,
    is_active, mfa_enabled, mfa_secret, work_start_date
"""


def _row_to_user(row: dict) -> User:
    return User(
        user_id=int(row["user_id"]),
        staff_id=row["staff_id"],
        name=row["name"],
        email=row.get("email"),
        role=Role(row["role"]),
        password_hash=row["password_hash"],
        birth_date=row.get("birth_date"),
        address=row.get("address"),
        phone=row.get("phone"),
        is_active=bool(row.get("is_active", True)),
        mfa_enabled=bool(row.get("mfa_enabled", False)),
        mfa_secret=row.get("mfa_secret"),
        work_start_date=row.get("work_start_date"),
    )


class MySQLUserRepository(UserRepository):
    def __init__(self, conn_factory: DatabaseConnection):
        self._conn_factory = conn_factory

    def get_by_id(self, user_id: int) -> Optional[User]:
        with db_cursor(self._conn_factory) as (_, cur):
            cur.execute(f"SELECT {_COLUMNS} FROM users WHERE user_id=%s", (int(user_id),))
            row = fetchone(cur)
            return _row_to_user(row) if row else None

    def get_by_staff_id(self, staff_id: str) -> Optional[User]:
        with db_cursor(self._conn_factory) as (_, cur):
            cur.execute(f"SELECT {_COLUMNS} FROM users WHERE staff_id=%s", (staff_id,))
            row = fetchone(cur)
            return _row_to_user(row) if row else None

    def list_all(self, *, active_only: bool = True) -> Sequence[User]:
        sql = f"SELECT {_COLUMNS} FROM users"
        if active_only:
            sql += " WHERE is_active=1"
        sql += " ORDER BY user_id"
        with db_cursor(self._conn_factory) as (_, cur):
            cur.execute(sql)
            return [_row_to_user(r) for r in fetchall(cur)]

    def list_by_roles(self, roles: Sequence[Role]) -> Sequence[User]:
        if not roles:
            return []
        placeholders = ",".join(["%s"] * len(roles))
        with db_cursor(self._conn_factory) as (_, cur):
            cur.execute(
                f"SELECT {_COLUMNS} FROM users WHERE is_active=1 AND role IN ({placeholders}) ORDER BY user_id",
                tuple(Role(r).value for r in roles),
            )
            return [_row_to_user(r) for r in fetchall(cur)]

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
        with db_cursor(self._conn_factory) as (_, cur):
            cur.execute(
                """
                INSERT INTO users(staff_id, name, email, password_hash, role, birth_date, address, phone,
                                  work_start_date, is_active)
                VALUES(%s,%s,%s,%s,%s,%s,%s,%s,%s,1)
                """,
                (staff_id, name, email, password_hash, role.value, birth_date, address, phone, work_start_date),
            )
            return int(cur.lastrowid)

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
        with db_cursor(self._conn_factory) as (_, cur):
            cur.execute(
                """
                UPDATE users SET name=%s, email=%s, address=%s, phone=%s, birth_date=%s
                WHERE user_id=%s
                """,
                (name, email, address, phone, birth_date, int(user_id)),
            )
            return cur.rowcount > 0

    def update_password(self, user_id: int, password_hash: str) -> bool:
        with db_cursor(self._conn_factory) as (_, cur):
            cur.execute("UPDATE users SET password_hash=%s WHERE user_id=%s", (password_hash, int(user_id)))
            return cur.rowcount > 0

    def set_mfa(self, user_id: int, *, enabled: bool, secret: Optional[str]) -> bool:
        with db_cursor(self._conn_factory) as (_, cur):
            cur.execute(
                "UPDATE users SET mfa_enabled=%s, mfa_secret=%s WHERE user_id=%s",
                (1 if enabled else 0, secret, int(user_id)),
            )
            return cur.rowcount > 0

    def set_active(self, user_id: int, *, is_active: bool) -> bool:
        with db_cursor(self._conn_factory) as (_, cur):
            cur.execute("UPDATE users SET is_active=%s WHERE user_id=%s", (1 if is_active else 0, int(user_id)))
            return cur.rowcount > 0
