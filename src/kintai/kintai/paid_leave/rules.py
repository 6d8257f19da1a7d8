"""Paid-leave (有給) grant, expiry and alert rules.

Every function takes the reference day explicitly so the scheduler and the
tests agree on "today".
"""

from __future__ import annotations

from dataclasses import replace
from datetime import date
from typing import Optional

from ..common.datetime_utils import add_months, add_years
from ..core.constants import (
    PAID_LEAVE_EXPIRY_URGENT_DAYS,
    PAID_LEAVE_EXPIRY_WARNING_DAYS,
    PAID_LEAVE_FIRST_GRANT_MONTHS,
    PAID_LEAVE_GRANT_TABLE,
    PAID_LEAVE_LOW_BALANCE_DAYS,
    PAID_LEAVE_MAX_DAYS,
    PAID_LEAVE_VALID_YEARS,
)
from ..core.enums import AlertType, Severity
from .model import AlertNotice, PayrollInfo


def format_days(days: float) -> str:
    return f"{days:g}"


def completed_months(start: date, today: date) -> int:
    months = (today.year - start.year) * 12 + (today.month - start.month)
    if today.day < start.day and add_months(start, months) > today:
        months -= 1
    return max(months, 0)


def tenure_years(work_start: date, today: date) -> float:
    """Years of service counted in completed months (6 months -> 0.5)."""
    return completed_months(work_start, today) / 12


def annual_grant_days(work_start: Optional[date], today: date) -> int:
    if not work_start:
        return 0
    years = tenure_years(work_start, today)
    for upper, days in PAID_LEAVE_GRANT_TABLE:
        if years < upper:
            return days
    return PAID_LEAVE_MAX_DAYS


def expiry_for(grant_date: date) -> date:
    return add_years(grant_date, PAID_LEAVE_VALID_YEARS)


def days_until_expiry(info: PayrollInfo, today: date) -> Optional[int]:
    if not info.paid_leave_expiry:
        return None
    return (info.paid_leave_expiry - today).days


def should_grant(info: PayrollInfo, today: date) -> bool:
    if not info.work_start_date:
        return False
    if today < add_months(info.work_start_date, PAID_LEAVE_FIRST_GRANT_MONTHS):
        return False
    if info.last_grant_date is None:
        return True
    return today >= add_years(info.last_grant_date, 1)


def grant(info: PayrollInfo, today: date) -> PayrollInfo:
    days = annual_grant_days(info.work_start_date, today)
    return replace(
        info,
        total_paid_leave=float(days),
        remaining_paid_leave=info.remaining_paid_leave + days,
        last_grant_date=today,
        paid_leave_expiry=expiry_for(today),
    )


def consume(info: PayrollInfo, days: float) -> PayrollInfo:
    return replace(
        info,
        remaining_paid_leave=max(0.0, info.remaining_paid_leave - days),
        used_paid_leave=info.used_paid_leave + days,
    )


def remove_expired(info: PayrollInfo, today: date) -> PayrollInfo:
    if info.paid_leave_expiry and today > info.paid_leave_expiry:
        return replace(info, remaining_paid_leave=0.0, paid_leave_expiry=expiry_for(today))
    return info


def generate_alerts(info: PayrollInfo, today: date) -> list[AlertNotice]:
    alerts: list[AlertNotice] = []
    remaining = info.remaining_paid_leave
    left = days_until_expiry(info, today)

    if left is not None and remaining > 0:
        if PAID_LEAVE_EXPIRY_URGENT_DAYS < left <= PAID_LEAVE_EXPIRY_WARNING_DAYS:
            alerts.append(
                AlertNotice(
                    AlertType.EXPIRY_WARNING,
                    f"有給休暇が{left}日後に期限切れになります（残り{format_days(remaining)}日）",
                    Severity.WARNING,
                )
            )
        elif 0 <= left <= PAID_LEAVE_EXPIRY_URGENT_DAYS:
            alerts.append(
                AlertNotice(
                    AlertType.EXPIRY_WARNING,
                    f"有給休暇が{left}日後に期限切れになります！早急に使用してください（残り{format_days(remaining)}日）",
                    Severity.ERROR,
                )
            )

    if 0 < remaining <= PAID_LEAVE_LOW_BALANCE_DAYS:
        alerts.append(
            AlertNotice(
                AlertType.LOW_BALANCE,
                f"有給休暇の残日数が少なくなっています（残り{format_days(remaining)}日）",
                Severity.WARNING,
            )
        )

    if should_grant(info, today):
        days = annual_grant_days(info.work_start_date, today)
        alerts.append(
            AlertNotice(AlertType.GRANT_AVAILABLE, f"新たに{days}日の有給休暇を付与できます", Severity.INFO)
        )

    return alerts
