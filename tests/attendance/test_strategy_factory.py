from datetime import date, datetime, time

from kintai.attendance.factory import AttendanceStrategyFactory
from kintai.attendance.strategies.early_strategy import EarlyLeaveStrategy
from kintai.attendance.strategies.late_strategy import LateStrategy
from kintai.attendance.strategies.normal_strategy import NormalStrategy
from kintai.core.enums import AttendanceStatus
from kintai.shifts.model import Shift


def _shift(start: time, end: time, day: date = date(2025, 1, 1)) -> Shift:
    return Shift(shift_id=1, user_id=2, work_date=day, start_time=start, end_time=end)


def test_factory_clock_in_on_time_within_grace():
    shift = _shift(time(8, 0), time(17, 0))
    now = datetime(2025, 1, 1, 8, 4, 59)

    strategy = AttendanceStrategyFactory().for_clock_in(now=now, shift=shift, grace_minutes=5)

    assert isinstance(strategy, NormalStrategy)
    assert strategy.decide_clock_in(now=now, shift=shift, grace_minutes=5).status == AttendanceStatus.ON_TIME


def test_factory_clock_in_late_after_grace():
    shift = _shift(time(8, 0), time(17, 0))
    now = datetime(2025, 1, 1, 8, 6, 0)

    strategy = AttendanceStrategyFactory().for_clock_in(now=now, shift=shift, grace_minutes=5)

    assert isinstance(strategy, LateStrategy)
    decision = strategy.decide_clock_in(now=now, shift=shift, grace_minutes=5)
    assert decision.status == AttendanceStatus.LATE
    assert decision.note == "6分遅刻"


def test_factory_without_shift_is_unknown():
    now = datetime(2025, 1, 1, 8, 0)
    strategy = AttendanceStrategyFactory().for_clock_in(now=now, shift=None, grace_minutes=5)

    decision = strategy.decide_clock_in(now=now, shift=None, grace_minutes=5)
    assert decision.status == AttendanceStatus.UNKNOWN
    assert decision.note == "シフト未登録"


def test_factory_early_leave_only_after_on_time_clock_in():
    shift = _shift(time(8, 0), time(17, 0))
    now = datetime(2025, 1, 1, 16, 30)
    factory = AttendanceStrategyFactory()

    early = factory.for_clock_out(now=now, shift=shift, current_status=AttendanceStatus.ON_TIME)
    assert isinstance(early, EarlyLeaveStrategy)
    assert early.decide_clock_out(now=now, shift=shift, current=AttendanceStatus.ON_TIME).note == "30分早退"

    late = factory.for_clock_out(now=now, shift=shift, current_status=AttendanceStatus.LATE)
    assert late.decide_clock_out(now=now, shift=shift, current=AttendanceStatus.LATE).status == AttendanceStatus.LATE


def test_factory_overnight_shift_ends_next_day():
    shift = _shift(time(22, 0), time(6, 0))
    factory = AttendanceStrategyFactory()

    # 23:30 on the work date is before the 06:00 end on the next day
    strategy = factory.for_clock_out(
        now=datetime(2025, 1, 1, 23, 30), shift=shift, current_status=AttendanceStatus.ON_TIME
    )
    assert isinstance(strategy, EarlyLeaveStrategy)

    strategy = factory.for_clock_out(
        now=datetime(2025, 1, 2, 6, 5), shift=shift, current_status=AttendanceStatus.ON_TIME
    )
    assert isinstance(strategy, NormalStrategy)
