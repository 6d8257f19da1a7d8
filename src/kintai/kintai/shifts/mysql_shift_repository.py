from __future__ import annotations

from datetime import date, time
from typing import Optional, Sequence

from ..common.datetime_utils import parse_hhmm
from ..database.connection import DatabaseConnection
from ..database.mysql_base import db_cursor, dump_json, fetchall, fetchone, load_json, normalize_mysql_time
from .model import Shift, ShiftTemplate, TemplateShift
from .repository import ShiftRepository, ShiftTemplateRepository


def _row_to_shift(r: dict) -> Shift:
    return Shift(
        shift_id=int(r["shift_id"]),
        user_id=int(r["user_id"]),
        work_date=r["work_date"],
        start_time=normalize_mysql_time(r["start_time"]),
        end_time=normalize_mysql_time(r["end_time"]),
        position=r.get("position"),
        note=r.get("note"),
    )


class MySQLShiftRepository(ShiftRepository):
    def __init__(self, conn_factory: DatabaseConnection):
        self._conn_factory = conn_factory

    def get_by_id(self, shift_id: int) -> Optional[Shift]:
        with db_cursor(self._conn_factory) as (_, cur):
            cur.execute("SELECT * FROM shifts WHERE shift_id=%s", (int(shift_id),))
            r = fetchone(cur)
            return _row_to_shift(r) if r else None

    def get_for_user_and_date(self, user_id: int, work_date: date) -> Optional[Shift]:
        with db_cursor(self._conn_factory) as (_, cur):
            cur.execute(
                "SELECT * FROM shifts WHERE user_id=%s AND work_date=%s",
                (int(user_id), work_date),
            )
            r = fetchone(cur)
            return _row_to_shift(r) if r else None

    def list_range(self, start: date, end: date, *, user_id: Optional[int] = None) -> Sequence[Shift]:
        sql = "SELECT * FROM shifts WHERE work_date BETWEEN %s AND %s"
        params: list = [start, end]
        if user_id is not None:
            sql += " AND user_id=%s"
            params.append(int(user_id))
        sql += " ORDER BY work_date, start_time, user_id"
        with db_cursor(self._conn_factory) as (_, cur):
            cur.execute(sql, tuple(params))
            return [_row_to_shift(r) for r in fetchall(cur)]

    def upsert(
        self,
        *,
        user_id: int,
        work_date: date,
        start_time: time,
        end_time: time,
        position: Optional[str] = None,
        note: Optional[str] = None,
    ) -> int:
        with db_cursor(self._conn_factory) as (_, cur):
            cur.execute(
                """
                INSERT INTO shifts(user_id, work_date, start_time, end_time, position, note)
                VALUES(%s,%s,%s,%s,%s,%s)
                ON DUPLICATE KEY UPDATE
                    start_time=VALUES(start_time),
                    end_time=VALUES(end_time),
                    position=VALUES(position),
                    note=VALUES(note)
                """,
                (int(user_id), work_date, start_time, end_time, position, note),
            )
            cur.execute(
                "SELECT shift_id FROM shifts WHERE user_id=%s AND work_date=%s",
                (int(user_id), work_date),
            )
            return int(fetchone(cur)["shift_id"])

    def delete(self, shift_id: int) -> bool:
        with db_cursor(self._conn_factory) as (_, cur):
            cur.execute("DELETE FROM shifts WHERE shift_id=%s", (int(shift_id),))
            return cur.rowcount > 0


def _pattern_from_json(value) -> tuple[TemplateShift, ...]:
    return tuple(
        TemplateShift(
            day_of_week=int(p["day_of_week"]),
            start_time=parse_hhmm(p["start_time"]),
            end_time=parse_hhmm(p["end_time"]),
            position=p.get("position"),
            is_optional=bool(p.get("is_optional", False)),
        )
        for p in load_json(value, [])
    )


def _row_to_template(r: dict) -> ShiftTemplate:
    return ShiftTemplate(
        template_id=r["template_id"],
        name=r["name"],
        description=r.get("description"),
        pattern=_pattern_from_json(r["pattern"]),
        created_at=r.get("created_at"),
        created_by=r.get("created_by") or "system",
        is_default=bool(r.get("is_default")),
    )


class MySQLShiftTemplateRepository(ShiftTemplateRepository):
    def __init__(self, conn_factory: DatabaseConnection):
        self._conn_factory = conn_factory

    def list_all(self) -> Sequence[ShiftTemplate]:
        with db_cursor(self._conn_factory) as (_, cur):
            cur.execute("SELECT * FROM shift_templates ORDER BY is_default DESC, created_at, template_id")
            return [_row_to_template(r) for r in fetchall(cur)]

    def get(self, template_id: str) -> Optional[ShiftTemplate]:
        with db_cursor(self._conn_factory) as (_, cur):
            cur.execute("SELECT * FROM shift_templates WHERE template_id=%s", (template_id,))
            r = fetchone(cur)
            return _row_to_template(r) if r else None

    def save(self, template: ShiftTemplate) -> None:
        with db_cursor(self._conn_factory) as (_, cur):
            cur.execute(
                """
                INSERT INTO shift_templates(template_id, name, description, pattern, is_default, created_by, created_at)
                VALUES(%s,%s,%s,%s,%s,%s,%s)
                ON DUPLICATE KEY UPDATE
                    name=VALUES(name),
                    description=VALUES(description),
                    pattern=VALUES(pattern)
                """,
                (
                    template.template_id,
                    template.name,
                    template.description,
                    dump_json([p.to_dict() for p in template.pattern]),
                    1 if template.is_default else 0,
                    template.created_by,
                    template.created_at,
                ),
            )

    def delete(self, template_id: str) -> bool:
        with db_cursor(self._conn_factory) as (_, cur):
            cur.execute("DELETE FROM shift_templates WHERE template_id=%s AND is_default=0", (template_id,))
            return cur.rowcount > 0
