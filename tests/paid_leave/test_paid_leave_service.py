from __future__ import annotations

from datetime import date

import pytest

from kintai.core.enums import AlertType, Role, Severity
from kintai.core.exceptions import AuthorizationError, ValidationError
from kintai.paid_leave.model import AlertNotice, PayrollInfo

TODAY = date(2025, 6, 11)
LOW_BALANCE = AlertNotice(AlertType.LOW_BALANCE, "有給休暇の残日数が少なくなっています（残り1日）", Severity.WARNING)


def test_info_is_created_from_the_staff_start_date(container):
    info = container.paid_leave_service.get_info(2)

    assert info.work_start_date == date(2023, 4, 1)
    assert info.remaining_paid_leave == 0.0


def test_summary_reports_grant_state(container, repos):
    repos.payroll.save(
        PayrollInfo(user_id=2, remaining_paid_leave=6.0, paid_leave_expiry=date(2025, 7, 11),
                    last_grant_date=date(2024, 7, 1), work_start_date=date(2023, 4, 1))
    )

    summary = container.paid_leave_service.summary(2)

    assert summary["days_until_expiry"] == 30
    assert summary["annual_grant_days"] == 11
    assert summary["can_grant"] is False


def test_only_admins_update_or_grant(container):
    svc = container.paid_leave_service
    with pytest.raises(AuthorizationError):
        svc.update_info(2, current_role=Role.CREATOR, hourly_rate=1200)
    with pytest.raises(AuthorizationError):
        svc.grant_now(2, current_role=Role.STAFF)


def test_update_rejects_unknown_fields_and_negative_values(container):
    svc = container.paid_leave_service
    with pytest.raises(ValidationError):
        svc.update_info(2, current_role=Role.ADMIN, salary=100)
    with pytest.raises(ValidationError):
        svc.update_info(2, current_role=Role.ADMIN, remaining_paid_leave=-1)

    info = svc.update_info(2, current_role=Role.ADMIN, hourly_rate=1200, remaining_paid_leave=3.5)
    assert (info.hourly_rate, info.remaining_paid_leave) == (1200, 3.5)


def test_grant_now_requires_eligibility_unless_forced(container, repos):
    svc = container.paid_leave_service
    repos.payroll.save(PayrollInfo(user_id=2, last_grant_date=date(2025, 4, 1), work_start_date=date(2023, 4, 1)))

    with pytest.raises(ValidationError):
        svc.grant_now(2, current_role=Role.ADMIN)

    granted = svc.grant_now(2, current_role=Role.ADMIN, force=True)
    assert granted.remaining_paid_leave == 11.0
    assert granted.last_grant_date == TODAY


def test_daily_check_clears_expired_leave_and_dedupes_alerts(container, repos):
    svc = container.paid_leave_service
    repos.payroll.save(
        PayrollInfo(user_id=2, remaining_paid_leave=4.0, paid_leave_expiry=date(2025, 6, 1),
                    last_grant_date=date(2025, 4, 1), work_start_date=date(2023, 4, 1))
    )
    repos.payroll.save(
        PayrollInfo(user_id=3, remaining_paid_leave=2.0, paid_leave_expiry=date(2025, 7, 1),
                    last_grant_date=date(2025, 4, 1), work_start_date=date(2021, 4, 1))
    )

    first = svc.run_daily_check()

    assert repos.payroll.get(2).remaining_paid_leave == 0.0
    assert first.processed == 3
    assert first.updated == 1
    types = sorted(a.alert_type.value for a in repos.alerts.list_active(user_id=3))
    assert types == [AlertType.EXPIRY_WARNING.value, AlertType.LOW_BALANCE.value]

    second = svc.run_daily_check()
    assert second.alerts == 0
    assert len(repos.alerts.list_active(user_id=3)) == 2


def test_yearly_grant_covers_every_eligible_staff_member(container, repos):
    result = container.paid_leave_service.run_yearly_grant(today=date(2025, 4, 1))

    assert result.updated == 3
    assert repos.payroll.get(1).remaining_paid_leave == 18.0
    assert repos.payroll.get(2).remaining_paid_leave == 11.0
    assert repos.payroll.get(3).remaining_paid_leave == 14.0
    assert "11日の有給休暇を付与しました" in repos.alerts.list_active(user_id=2)[0].message

    again = container.paid_leave_service.run_yearly_grant(today=date(2025, 4, 2))
    assert again.updated == 0


def test_monthly_maintenance_grants_when_due(container, repos):
    result = container.paid_leave_service.run_monthly_maintenance()

    assert result.updated == 3
    assert repos.payroll.get(2).last_grant_date == TODAY


def test_weekly_expiry_alert_fires_at_thirty_and_seven_days(container, repos):
    repos.payroll.save(PayrollInfo(user_id=2, remaining_paid_leave=3.0, paid_leave_expiry=date(2025, 6, 18)))
    repos.payroll.save(PayrollInfo(user_id=3, remaining_paid_leave=3.0, paid_leave_expiry=date(2025, 6, 20)))

    result = container.paid_leave_service.run_weekly_expiry_alert()

    assert result.alerts == 1
    (alert,) = repos.alerts.list_active(user_id=2)
    assert alert.message == "有給休暇があと7日で期限切れになります！至急使用してください"
    assert repos.alerts.list_active(user_id=3) == []


def test_batch_keeps_going_when_one_staff_member_fails(container, repos, monkeypatch):
    original = repos.payroll.get

    def broken(user_id):
        if user_id == 3:
            raise RuntimeError("db down")
        return original(user_id)

    monkeypatch.setattr(repos.payroll, "get", broken)

    result = container.paid_leave_service.run_daily_check()

    assert result.failures == [3]
    assert result.processed == 2


def test_alert_dismissal_is_owner_or_admin(container):
    svc = container.paid_leave_service
    (alert,) = svc.add_alerts(2, [LOW_BALANCE])

    with pytest.raises(AuthorizationError):
        svc.dismiss_alert(alert.alert_id, user_id=3, current_role=Role.CREATOR)
    with pytest.raises(AuthorizationError):
        svc.list_alerts(user_id=2, current_role=Role.STAFF, all_users=True)

    svc.dismiss_alert(alert.alert_id, user_id=2, current_role=Role.STAFF)
    assert svc.list_alerts(user_id=2, current_role=Role.STAFF) == []
