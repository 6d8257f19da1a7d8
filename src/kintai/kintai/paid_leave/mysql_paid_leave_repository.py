from __future__ import annotations

from datetime import date, datetime
from typing import Optional, Sequence

from ..core.enums import AlertType, Severity
from ..database.connection import DatabaseConnection
from ..database.mysql_base import db_cursor, fetchall, fetchone
from .model import PaidLeaveAlert, PayrollInfo
from .repository import AlertRepository, PayrollRepository


def _row_to_info(r: dict) -> PayrollInfo:
    return PayrollInfo(
        user_id=int(r["user_id"]),
        hourly_rate=int(r.get("hourly_rate") or 0),
        transportation_allowance=int(r.get("transportation_allowance") or 0),
        remaining_paid_leave=float(r.get("remaining_paid_leave") or 0),
        paid_leave_expiry=r.get("paid_leave_expiry"),
        total_paid_leave=float(r.get("total_paid_leave") or 0),
        used_paid_leave=float(r.get("used_paid_leave") or 0),
        last_grant_date=r.get("last_grant_date"),
        work_start_date=r.get("work_start_date"),
    )


class MySQLPayrollRepository(PayrollRepository):
    def __init__(self, conn_factory: DatabaseConnection):
        self._conn_factory = conn_factory

    def get(self, user_id: int) -> Optional[PayrollInfo]:
        with db_cursor(self._conn_factory) as (_, cur):
            cur.execute("SELECT * FROM payroll_info WHERE user_id=%s", (int(user_id),))
            row = fetchone(cur)
            return _row_to_info(row) if row else None

    def ensure(self, user_id: int, *, work_start_date: Optional[date] = None) -> PayrollInfo:
        with db_cursor(self._conn_factory) as (_, cur):
            cur.execute(
                "INSERT IGNORE INTO payroll_info(user_id, work_start_date) VALUES(%s,%s)",
                (int(user_id), work_start_date),
            )
            cur.execute("SELECT * FROM payroll_info WHERE user_id=%s", (int(user_id),))
            return _row_to_info(fetchone(cur))

    def save(self, info: PayrollInfo) -> None:
        with db_cursor(self._conn_factory) as (_, cur):
            cur.execute(
                """
                INSERT INTO payroll_info(user_id, hourly_rate, transportation_allowance, remaining_paid_leave,
                                         paid_leave_expiry, total_paid_leave, used_paid_leave, last_grant_date,
                                         work_start_date)
                VALUES(%s,%s,%s,%s,%s,%s,%s,%s,%s)
                ON DUPLICATE KEY UPDATE
                    hourly_rate=VALUES(hourly_rate),
                    transportation_allowance=VALUES(transportation_allowance),
                    remaining_paid_leave=VALUES(remaining_paid_leave),
                    paid_leave_expiry=VALUES(paid_leave_expiry),
                    total_paid_leave=VALUES(total_paid_leave),
                    used_paid_leave=VALUES(used_paid_leave),
                    last_grant_date=VALUES(last_grant_date),
                    work_start_date=VALUES(work_start_date)
                """,
                (
                    int(info.user_id),
                    int(info.hourly_rate),
                    int(info.transportation_allowance),
                    info.remaining_paid_leave,
                    info.paid_leave_expiry,
                    info.total_paid_leave,
                    info.used_paid_leave,
                    info.last_grant_date,
                    info.work_start_date,
                ),
            )

    def list_all(self) -> Sequence[PayrollInfo]:
        with db_cursor(self._conn_factory) as (_, cur):
            cur.execute(
                """
                SELECT p.* FROM payroll_info p
                JOIN users u ON u.user_id = p.user_id
                WHERE u.is_active=1
                ORDER BY p.user_id
                """
            )
            return [_row_to_info(r) for r in fetchall(cur)]


def _row_to_alert(r: dict) -> PaidLeaveAlert:
    return PaidLeaveAlert(
        alert_id=int(r["alert_id"]),
        user_id=int(r["user_id"]),
        alert_type=AlertType(r["alert_type"]),
        message=r["message"],
        severity=Severity(r["severity"]),
        created_at=r["created_at"],
        dismissed=bool(r.get("dismissed")),
    )


class MySQLAlertRepository(AlertRepository):
    def __init__(self, conn_factory: DatabaseConnection):
        self._conn_factory = conn_factory

    def add(
        self,
        *,
        user_id: int,
        alert_type: AlertType,
        message: str,
        severity: Severity,
        created_at: datetime,
    ) -> int:
        with db_cursor(self._conn_factory) as (_, cur):
            cur.execute(
                """
                INSERT INTO paid_leave_alerts(user_id, alert_type, message, severity, created_at, dismissed)
                VALUES(%s,%s,%s,%s,%s,0)
                """,
                (int(user_id), alert_type.value, message, severity.value, created_at),
            )
            return int(cur.lastrowid)

    def get(self, alert_id: int) -> Optional[PaidLeaveAlert]:
        with db_cursor(self._conn_factory) as (_, cur):
            cur.execute("SELECT * FROM paid_leave_alerts WHERE alert_id=%s", (int(alert_id),))
            row = fetchone(cur)
            return _row_to_alert(row) if row else None

    def list_active(self, *, user_id: Optional[int] = None) -> Sequence[PaidLeaveAlert]:
        sql = "SELECT * FROM paid_leave_alerts WHERE dismissed=0"
        params: tuple = ()
        if user_id is not None:
            sql += " AND user_id=%s"
            params = (int(user_id),)
        sql += " ORDER BY created_at DESC, alert_id DESC"
        with db_cursor(self._conn_factory) as (_, cur):
            cur.execute(sql, params)
            return [_row_to_alert(r) for r in fetchall(cur)]

    def dismiss(self, alert_id: int) -> bool:
        with db_cursor(self._conn_factory) as (_, cur):
            cur.execute("UPDATE paid_leave_alerts SET dismissed=1 WHERE alert_id=%s", (int(alert_id),))
            return cur.rowcount > 0
