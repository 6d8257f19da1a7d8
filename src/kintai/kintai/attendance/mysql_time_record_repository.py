from __future__ import annotations

from datetime import date, datetime
from typing import Optional, Sequence

from ..core.enums import ApprovalStatus, AttendanceStatus, TimeRecordType
from ..database.connection import DatabaseConnection
from ..database.mysql_base import db_cursor, fetchall, fetchone
from .model import TimeRecord
from .repository import TimeRecordRepository

_COLUMNS = """
    record_id, user_id, work_date, clock_in, clock_out, record_type, status,
    attendance_status, note, location_id
"""


def _row_to_record(r: dict) -> TimeRecord:
    return TimeRecord(
        record_id=int(r["record_id"]),
        user_id=int(r["user_id"]),
        work_date=r["work_date"],
        clock_in=r["clock_in"],
        clock_out=r.get("clock_out"),
        record_type=TimeRecordType(r["record_type"]),
        status=ApprovalStatus(r["status"]),
        attendance_status=AttendanceStatus(r.get("attendance_status") or AttendanceStatus.UNKNOWN.value),
        note=r.get("note"),
        location_id=r.get("location_id"),
    )


class MySQLTimeRecordRepository(TimeRecordRepository):
    def __init__(self, conn_factory: DatabaseConnection):
        self._conn_factory = conn_factory

    def get(self, record_id: int) -> Optional[TimeRecord]:
        with db_cursor(self._conn_factory) as (_, cur):
            cur.execute(f"SELECT {_COLUMNS} FROM time_records WHERE record_id=%s", (int(record_id),))
            r = fetchone(cur)
            return _row_to_record(r) if r else None

    def get_open_for_user(self, user_id: int) -> Optional[TimeRecord]:
        with db_cursor(self._conn_factory) as (_, cur):
            cur.execute(
                f"""
                SELECT {_COLUMNS} FROM time_records
                WHERE user_id=%s AND clock_out IS NULL AND status <> 'rejected'
                ORDER BY clock_in DESC
                LIMIT 1
                """,
                (int(user_id),),
            )
            r = fetchone(cur)
            return _row_to_record(r) if r else None

    def list_for_user(self, user_id: int, *, start: date, end: date) -> Sequence[TimeRecord]:
        return self.list_range(start=start, end=end, user_id=user_id)

    def list_range(self, *, start: date, end: date, user_id: Optional[int] = None) -> Sequence[TimeRecord]:
        sql = f"SELECT {_COLUMNS} FROM time_records WHERE work_date BETWEEN %s AND %s"
        params: list = [start, end]
        if user_id is not None:
            sql += " AND user_id=%s"
            params.append(int(user_id))
        sql += " ORDER BY work_date, clock_in"
        with db_cursor(self._conn_factory) as (_, cur):
            cur.execute(sql, tuple(params))
            return [_row_to_record(r) for r in fetchall(cur)]

    def create_clock_in(
        self,
        *,
        user_id: int,
        work_date: date,
        clock_in: datetime,
        record_type: TimeRecordType,
        status: ApprovalStatus,
        attendance_status: AttendanceStatus,
        note: Optional[str] = None,
        location_id: Optional[str] = None,
    ) -> int:
        with db_cursor(self._conn_factory) as (_, cur):
            cur.execute(
                """
                INSERT INTO time_records(user_id, work_date, clock_in, record_type, status,
                                         attendance_status, note, location_id)
                VALUES(%s,%s,%s,%s,%s,%s,%s,%s)
                """,
                (
                    int(user_id),
                    work_date,
                    clock_in,
                    record_type.value,
                    status.value,
                    attendance_status.value,
                    note,
                    location_id,
                ),
            )
            return int(cur.lastrowid)

    def update_clock_out(
        self,
        *,
        record_id: int,
        clock_out: datetime,
        attendance_status: AttendanceStatus,
        status: ApprovalStatus,
        record_type: TimeRecordType,
        note: Optional[str] = None,
    ) -> bool:
        with db_cursor(self._conn_factory) as (_, cur):
            cur.execute(
                """
                UPDATE time_records
                SET clock_out=%s, attendance_status=%s, status=%s, record_type=%s, note=%s
                WHERE record_id=%s AND clock_out IS NULL
                """,
                (clock_out, attendance_status.value, status.value, record_type.value, note, int(record_id)),
            )
            return cur.rowcount > 0

    def set_status(self, record_id: int, status: ApprovalStatus) -> bool:
        with db_cursor(self._conn_factory) as (_, cur):
            cur.execute("UPDATE time_records SET status=%s WHERE record_id=%s", (status.value, int(record_id)))
            return cur.rowcount > 0

    def update_times(
        self,
        *,
        record_id: int,
        clock_in: datetime,
        clock_out: Optional[datetime],
        note: Optional[str] = None,
    ) -> bool:
        with db_cursor(self._conn_factory) as (_, cur):
            cur.execute(
                """
                UPDATE time_records
                SET clock_in=%s, clock_out=%s, note=COALESCE(%s, note)
                WHERE record_id=%s
                """,
                (clock_in, clock_out, note, int(record_id)),
            )
            return cur.rowcount > 0
