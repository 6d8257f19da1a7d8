from __future__ import annotations

from datetime import datetime
from typing import Optional, Sequence

from ..core.enums import ContactMethod, EmergencyRequestType, EmergencyStatus
from ..database.connection import DatabaseConnection
from ..database.mysql_base import db_cursor, dump_json, fetchall, fetchone, load_json
from .backup_codes import BackupCode, BackupCodeSet
from .model import EmergencyAccessRequest, EmergencyContact
from .repository import BackupCodeRepository, EmergencyRepository


def _parse_dt(value) -> Optional[datetime]:
    if not value:
        return None
    return datetime.fromisoformat(value)


class MySQLBackupCodeRepository(BackupCodeRepository):
    def __init__(self, conn_factory: DatabaseConnection):
        self._conn_factory = conn_factory

    def get_for_user(self, user_id: int) -> Optional[BackupCodeSet]:
        with db_cursor(self._conn_factory) as (_, cur):
            cur.execute("SELECT user_id, codes, generated_at FROM backup_codes WHERE user_id=%s", (int(user_id),))
            row = fetchone(cur)
            if not row:
                return None
            payload = load_json(row["codes"], {})
            codes = tuple(BackupCode(code=c["code"], used_at=_parse_dt(c.get("used_at"))) for c in payload["codes"])
            return BackupCodeSet(
                user_id=int(row["user_id"]),
                codes=codes,
                generated_at=row["generated_at"],
                last_used=_parse_dt(payload.get("last_used")),
            )

    def save(self, code_set: BackupCodeSet) -> None:
        payload = {
            "codes": [{"code": c.code, "used_at": c.used_at} for c in code_set.codes],
            "last_used": code_set.last_used,
        }
        with db_cursor(self._conn_factory) as (_, cur):
            cur.execute(
                """
                INSERT INTO backup_codes(user_id, codes, generated_at)
                VALUES(%s,%s,%s)
                ON DUPLICATE KEY UPDATE codes=VALUES(codes), generated_at=VALUES(generated_at)
                """,
                (int(code_set.user_id), dump_json(payload), code_set.generated_at),
            )

    def delete_for_user(self, user_id: int) -> bool:
        with db_cursor(self._conn_factory) as (_, cur):
            cur.execute("DELETE FROM backup_codes WHERE user_id=%s", (int(user_id),))
            return cur.rowcount > 0


def _row_to_request(r: dict) -> EmergencyAccessRequest:
    return EmergencyAccessRequest(
        request_id=int(r["request_id"]),
        user_id=int(r["user_id"]),
        request_type=EmergencyRequestType(r["request_type"]),
        reason=r["reason"],
        contact_method=ContactMethod(r["contact_method"]),
        contact_info=r["contact_info"],
        status=EmergencyStatus(r["status"]),
        requested_at=r["requested_at"],
        processed_at=r.get("processed_at"),
        processed_by=r.get("processed_by"),
        admin_notes=r.get("admin_notes"),
    )


class MySQLEmergencyRepository(EmergencyRepository):
    def __init__(self, conn_factory: DatabaseConnection):
        self._conn_factory = conn_factory

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
        with db_cursor(self._conn_factory) as (_, cur):
            cur.execute(
                """
                INSERT INTO emergency_requests(user_id, request_type, reason, contact_method, contact_info,
                                               status, requested_at)
                VALUES(%s,%s,%s,%s,%s,'pending',%s)
                """,
                (int(user_id), request_type.value, reason, contact_method.value, contact_info, requested_at),
            )
            return int(cur.lastrowid)

    def get(self, request_id: int) -> Optional[EmergencyAccessRequest]:
        with db_cursor(self._conn_factory) as (_, cur):
            cur.execute("SELECT * FROM emergency_requests WHERE request_id=%s", (int(request_id),))
            row = fetchone(cur)
            return _row_to_request(row) if row else None

    def list_all(self, *, status: Optional[EmergencyStatus] = None) -> Sequence[EmergencyAccessRequest]:
        sql = "SELECT * FROM emergency_requests"
        params: tuple = ()
        if status:
            sql += " WHERE status=%s"
            params = (status.value,)
        sql += " ORDER BY requested_at DESC"
        with db_cursor(self._conn_factory) as (_, cur):
            cur.execute(sql, params)
            return [_row_to_request(r) for r in fetchall(cur)]

    def mark_processed(
        self,
        request_id: int,
        *,
        status: EmergencyStatus,
        processed_by: int,
        processed_at: datetime,
        admin_notes: Optional[str],
    ) -> bool:
        with db_cursor(self._conn_factory) as (_, cur):
            cur.execute(
                """
                UPDATE emergency_requests
                SET status=%s, processed_by=%s, processed_at=%s, admin_notes=%s
                WHERE request_id=%s AND status='pending'
                """,
                (status.value, int(processed_by), processed_at, admin_notes, int(request_id)),
            )
            return cur.rowcount > 0

    def save_contact(self, contact: EmergencyContact) -> None:
        with db_cursor(self._conn_factory) as (_, cur):
            cur.execute(
                """
                INSERT INTO emergency_contacts(user_id, name, email, phone, relationship, verified)
                VALUES(%s,%s,%s,%s,%s,%s)
                ON DUPLICATE KEY UPDATE name=VALUES(name), email=VALUES(email), phone=VALUES(phone),
                                        relationship=VALUES(relationship), verified=VALUES(verified)
                """,
                (
                    int(contact.user_id),
                    contact.name,
                    contact.email,
                    contact.phone,
                    contact.relationship,
                    1 if contact.verified else 0,
                ),
            )

    def get_contact(self, user_id: int) -> Optional[EmergencyContact]:
        with db_cursor(self._conn_factory) as (_, cur):
            cur.execute("SELECT * FROM emergency_contacts WHERE user_id=%s", (int(user_id),))
            r = fetchone(cur)
            if not r:
                return None
            return EmergencyContact(
                user_id=int(r["user_id"]),
                name=r["name"],
                relationship=r.get("relationship"),
                email=r.get("email"),
                phone=r.get("phone"),
                verified=bool(r.get("verified")),
            )
