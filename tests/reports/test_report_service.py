from __future__ import annotations

import io
from datetime import date, datetime, time

import pandas as pd
import pytest

from kintai.attendance.model import TimeRecord
from kintai.core.enums import ApprovalStatus, AttendanceStatus, TimeRecordType
from kintai.reports.calculator.standard_calculator import StandardWorkTimeCalculator
from kintai.reports.exporters import to_csv_bytes, to_excel_bytes
from kintai.shifts.model import Shift

JUNE_START = date(2025, 6, 1)
JUNE_END = date(2025, 6, 30)


def _record(record_id, user_id, day, start, end, *, status=ApprovalStatus.APPROVED, kind=TimeRecordType.AUTO):
    return TimeRecord(
        record_id=record_id,
        user_id=user_id,
        work_date=date(2025, 6, day),
        clock_in=datetime(2025, 6, day, *start),
        clock_out=datetime(2025, 6, day, *end) if end else None,
        record_type=kind,
        status=status,
        attendance_status=AttendanceStatus.ON_TIME,
    )


@pytest.fixture
def month(repos):
    for day in (9, 10, 11):
        repos.shifts.upsert(user_id=2, work_date=date(2025, 6, day), start_time=time(9, 0), end_time=time(17, 0))
    repos.shifts.upsert(user_id=2, work_date=date(2025, 6, 12), start_time=time(22, 0), end_time=time(6, 0))
    repos.time_records.add(_record(1, 2, 9, (9, 0), (17, 30)))
    repos.time_records.add(_record(2, 2, 10, (9, 0), (16, 30)))
    repos.time_records.add(_record(3, 2, 11, (9, 0), (18, 0), status=ApprovalStatus.PENDING, kind=TimeRecordType.MANUAL))
    repos.time_records.add(_record(4, 2, 12, (9, 0), None))
    return repos


def test_standard_calculator():
    calc = StandardWorkTimeCalculator()

    assert calc.worked_minutes(_record(1, 2, 9, (9, 0), (17, 30))) == 510
    assert calc.worked_minutes(_record(1, 2, 9, (9, 0), None)) == 0
    assert calc.worked_minutes(_record(1, 2, 9, (9, 0), (8, 0))) == 0
    overnight = Shift(1, 2, date(2025, 6, 12), time(22, 0), time(6, 0))
    assert calc.scheduled_minutes(overnight) == 480


def test_time_record_rows(container, month):
    table = container.report_service.time_records(start=JUNE_START, end=JUNE_END)

    assert table.name == "勤怠データ"
    first, _, manual, open_record = table.rows
    assert first["勤務時間"] == "8時間30分"
    assert first["記録タイプ"] == "自動"
    assert manual["記録タイプ"] == "手動"
    assert manual["承認状況"] == "承認待ち"
    assert open_record["退勤時刻"] == open_record["勤務時間"] == ""


def test_shift_rows_include_weekday_and_length(container, month):
    table = container.report_service.shifts(start=JUNE_START, end=JUNE_END, user_id=2)

    assert [r["曜日"] for r in table.rows] == ["月", "火", "水", "木"]
    assert table.rows[-1]["シフト時間"] == "8時間0分"


def test_user_rows_use_japanese_role_labels(container):
    table = container.report_service.users()

    assert [(r["スタッフID"], r["権限"]) for r in table.rows] == [
        ("C001", "作成者"),
        ("S001", "スタッフ"),
        ("admin", "管理者"),
    ]


def test_monthly_summary_counts_only_approved_closed_records(container, month):
    table = container.report_service.monthly_summary(year=2025, month=6)

    assert table.name == "月次レポート_2025年6月"
    staff = next(r for r in table.rows if r["スタッフID"] == "S001")
    assert staff["出勤日数"] == 2
    assert staff["実働時間"] == 16.0
    assert staff["シフト日数"] == 4
    assert staff["シフト時間"] == 32.0
    assert staff["出勤率"] == "50%"
    assert staff["平均勤務時間"] == 8.0

    admin = next(r for r in table.rows if r["スタッフID"] == "admin")
    assert (admin["出勤率"], admin["平均勤務時間"]) == ("0%", 0)


def test_csv_starts_with_bom_and_header(container, month):
    data = to_csv_bytes(container.report_service.time_records(start=JUNE_START, end=JUNE_END))

    assert data.startswith(b"\xef\xbb\xbf")
    header = data.decode("utf-8-sig").splitlines()[0]
    assert header == "スタッフID,スタッフ名,日付,出勤時刻,退勤時刻,勤務時間,記録タイプ,承認状況,備考"


def test_excel_round_trips_through_pandas(container, month):
    data = to_excel_bytes(container.report_service.shifts(start=JUNE_START, end=JUNE_END), sheet_name="シフト")

    df = pd.read_excel(io.BytesIO(data), sheet_name="シフト")
    assert list(df.columns)[:4] == ["スタッフID", "スタッフ名", "日付", "曜日"]
    assert len(df) == 4
