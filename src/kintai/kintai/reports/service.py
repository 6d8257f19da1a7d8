from __future__ import annotations

from dataclasses import dataclass
from datetime import date
from typing import Optional

from ..attendance.repository import TimeRecordRepository
from ..common.datetime_utils import format_work_hours, month_range
from ..core.constants import WEEKDAY_LABELS_JA
from ..core.enums import ApprovalStatus, Role, TimeRecordType
from ..shifts.repository import ShiftRepository
from ..shifts.service import day_of_week
from ..users.model import User
from ..users.repository import UserRepository
from .calculator.base import WorkTimeCalculator
from .calculator.standard_calculator import StandardWorkTimeCalculator

ROLE_LABELS = {Role.ADMIN: "管理者", Role.CREATOR: "作成者", Role.STAFF: "スタッフ"}
STATUS_LABELS = {
    ApprovalStatus.APPROVED: "承認済み",
    ApprovalStatus.PENDING: "承認待ち",
    ApprovalStatus.REJECTED: "却下",
}


@dataclass(frozen=True)
class ReportTable:
    """Rows keyed by their (Japanese) column header, in column order."""

    name: str
    columns: list[str]
    rows: list[dict]


def _hours(minutes: int) -> float:
    return round(minutes / 60, 1)


class ReportService:
    def __init__(
        self,
        records: TimeRecordRepository,
        shifts: ShiftRepository,
        users: UserRepository,
        *,
        calculator: Optional[WorkTimeCalculator] = None,
    ):
        self._records = records
        self._shifts = shifts
        self._users = users
        self._calculator = calculator or StandardWorkTimeCalculator()

    def _user_map(self) -> dict[int, User]:
        return {u.user_id: u for u in self._users.list_all(active_only=False)}

    def time_records(self, *, start: date, end: date, user_id: Optional[int] = None) -> ReportTable:
        users = self._user_map()
        rows = []
        for r in sorted(self._records.list_range(start=start, end=end, user_id=user_id), key=lambda r: r.clock_in):
            user = users.get(r.user_id)
            rows.append(
                {
                    "スタッフID": user.staff_id if user else "",
                    "スタッフ名": user.name if user else "不明",
                    "日付": r.work_date.isoformat(),
                    "出勤時刻": r.clock_in.strftime("%H:%M"),
                    "退勤時刻": r.clock_out.strftime("%H:%M") if r.clock_out else "",
                    "勤務時間": format_work_hours(self._calculator.worked_minutes(r)) if r.clock_out else "",
                    "記録タイプ": "自動" if r.record_type == TimeRecordType.AUTO else "手動",
                    "承認状況": STATUS_LABELS.get(r.status, "不明"),
                    "備考": r.note or "",
                }
            )
        columns = ["スタッフID", "スタッフ名", "日付", "出勤時刻", "退勤時刻", "勤務時間", "記録タイプ", "承認状況", "備考"]
        return ReportTable("勤怠データ", columns, rows)

    def shifts(self, *, start: date, end: date, user_id: Optional[int] = None) -> ReportTable:
        users = self._user_map()
        rows = []
        for s in sorted(self._shifts.list_range(start, end, user_id=user_id), key=lambda s: (s.work_date, s.start_time)):
            user = users.get(s.user_id)
            rows.append(
                {
                    "スタッフID": user.staff_id if user else "",
                    "スタッフ名": user.name if user else "不明",
                    "日付": s.work_date.isoformat(),
                    "曜日": WEEKDAY_LABELS_JA[day_of_week(s.work_date)],
                    "開始時刻": s.start_time.strftime("%H:%M"),
                    "終了時刻": s.end_time.strftime("%H:%M"),
                    "シフト時間": format_work_hours(self._calculator.scheduled_minutes(s)),
                    "ポジション": s.position or "",
                }
            )
        columns = ["スタッフID", "スタッフ名", "日付", "曜日", "開始時刻", "終了時刻", "シフト時間", "ポジション"]
        return ReportTable("シフトデータ", columns, rows)

    def users(self) -> ReportTable:
        rows = [
            {
                "スタッフID": u.staff_id,
                "スタッフ名": u.name,
                "メールアドレス": u.email or "",
                "権限": ROLE_LABELS.get(u.role, "不明"),
                "生年月日": u.birth_date.isoformat() if u.birth_date else "",
                "住所": u.address or "",
                "電話番号": u.phone or "",
            }
            for u in sorted(self._users.list_all(active_only=False), key=lambda u: u.staff_id)
        ]
        columns = ["スタッフID", "スタッフ名", "メールアドレス", "権限", "生年月日", "住所", "電話番号"]
        return ReportTable("スタッフデータ", columns, rows)

    def monthly_summary(self, *, year: int, month: int) -> ReportTable:
        """Per-staff totals for one month; only approved, closed records count as work."""

        start, end = month_range(year, month)
        worked: dict[int, list[int]] = {}
        for r in self._records.list_range(start=start, end=end):
            if r.status == ApprovalStatus.APPROVED and r.clock_out:
                worked.setdefault(r.user_id, []).append(self._calculator.worked_minutes(r))
        scheduled: dict[int, list[int]] = {}
        for s in self._shifts.list_range(start, end):
            scheduled.setdefault(s.user_id, []).append(self._calculator.scheduled_minutes(s))

        rows = []
        for user in sorted(self._users.list_all(active_only=True), key=lambda u: u.staff_id):
            work = worked.get(user.user_id, [])
            plan = scheduled.get(user.user_id, [])
            work_hours = _hours(sum(work))
            rows.append(
                {
                    "スタッフID": user.staff_id,
                    "スタッフ名": user.name,
                    "権限": ROLE_LABELS.get(user.role, "不明"),
                    "出勤日数": len(work),
                    "実働時間": work_hours,
                    "シフト日数": len(plan),
                    "シフト時間": _hours(sum(plan)),
                    "出勤率": f"{round(len(work) / len(plan) * 100)}%" if plan else "0%",
                    "平均勤務時間": round(work_hours / len(work), 1) if work else 0,
                }
            )
        columns = ["スタッフID", "スタッフ名", "権限", "出勤日数", "実働時間", "シフト日数", "シフト時間", "出勤率", "平均勤務時間"]
        return ReportTable(f"月次レポート_{year}年{month}月", columns, rows)
