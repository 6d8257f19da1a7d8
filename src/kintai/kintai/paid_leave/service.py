from __future__ import annotations

import logging
from dataclasses import dataclass, field, replace
from datetime import date, datetime
from typing import Callable, Iterable, Optional

from ..common.datetime_utils import now_local
from ..core.enums import AlertType, Role, Severity
from ..core.exceptions import AuthorizationError, NotFoundError, ValidationError
from ..users.repository import UserRepository
from . import rules
from .model import AlertNotice, PaidLeaveAlert, PayrollInfo
from .repository import AlertRepository, PayrollRepository

logger = logging.getLogger(__name__)


@dataclass
class BatchResult:
    """Outcome of a run over every active staff member."""

    processed: int = 0
    updated: int = 0
    alerts: int = 0
    failures: list[int] = field(default_factory=list)

    def to_dict(self) -> dict:
        return {
            "processed": self.processed,
            "updated": self.updated,
            "alerts": self.alerts,
            "failures": list(self.failures),
        }


class PaidLeaveService:
    def __init__(
        self,
        payroll: PayrollRepository,
        alerts: AlertRepository,
        users: UserRepository,
        *,
        clock: Callable[[], datetime] = now_local,
    ):
        self._payroll = payroll
        self._alerts = alerts
        self._users = users
        self._clock = clock

    def _today(self, today: Optional[date]) -> date:
        return today or self._clock().date()

    def get_info(self, user_id: int) -> PayrollInfo:
        info = self._payroll.get(int(user_id))
        if info:
            return info
        user = self._users.get_by_id(int(user_id))
        if not user:
            raise NotFoundError("ユーザーが見つかりません")
        return self._payroll.ensure(user.user_id, work_start_date=user.work_start_date)

    def summary(self, user_id: int, *, today: Optional[date] = None) -> dict:
        today = self._today(today)
        info = self.get_info(user_id)
        data = info.to_dict()
        data.update(
            days_until_expiry=rules.days_until_expiry(info, today),
            annual_grant_days=rules.annual_grant_days(info.work_start_date, today),
            can_grant=rules.should_grant(info, today),
        )
        return data

    def update_info(self, user_id: int, *, current_role: Role, **changes) -> PayrollInfo:
        if current_role != Role.ADMIN:
            raise AuthorizationError("給与情報は管理者のみ更新できます")

        allowed = {
            "hourly_rate",
            "transportation_allowance",
            "remaining_paid_leave",
            "paid_leave_expiry",
            "total_paid_leave",
            "used_paid_leave",
            "last_grant_date",
            "work_start_date",
        }
        unknown = set(changes) - allowed
        if unknown:
            raise ValidationError(f"更新できない項目です: {', '.join(sorted(unknown))}")
        for key in ("hourly_rate", "transportation_allowance", "remaining_paid_leave", "used_paid_leave"):
            if key in changes and changes[key] is not None and float(changes[key]) < 0:
                raise ValidationError("0以上の値を入力してください")

        info = replace(self.get_info(user_id), **changes)
        self._payroll.save(info)
        return info

    def grant_now(
        self, user_id: int, *, current_role: Role, force: bool = False, today: Optional[date] = None
    ) -> PayrollInfo:
        if current_role != Role.ADMIN:
            raise AuthorizationError("有給付与は管理者のみ実行できます")
        today = self._today(today)
        info = self.get_info(user_id)
        if not force and not rules.should_grant(info, today):
            raise ValidationError("有給付与の条件を満たしていません")
        granted = rules.grant(info, today)
        self._payroll.save(granted)
        logger.info("paid leave granted: user=%s days=%s", user_id, granted.total_paid_leave)
        return granted

    def ensure_available(self, user_id: int, days: float) -> PayrollInfo:
        if days <= 0:
            raise ValidationError("日数が正しくありません")
        info = self.get_info(user_id)
        if days > info.remaining_paid_leave:
            raise ValidationError("有給残日数が不足しています")
        return info

    def consume(self, user_id: int, days: float) -> PayrollInfo:
        """Deduct approved leave; the balance is checked when the request is made, so here it only clamps at 0."""
        if days <= 0:
            raise ValidationError("日数が正しくありません")
        info = self.get_info(user_id)
        if days > info.remaining_paid_leave:
            logger.warning(
                "paid leave short at approval: user=%s days=%s remaining=%s", user_id, days, info.remaining_paid_leave
            )
        updated = rules.consume(info, days)
        self._payroll.save(updated)
        return updated

    def add_alerts(self, user_id: int, notices: Iterable[AlertNotice]) -> list[PaidLeaveAlert]:
        """Store new alerts, skipping ones already active with the same text."""

        active = {(a.alert_type, a.severity, a.message) for a in self._alerts.list_active(user_id=int(user_id))}
        created: list[PaidLeaveAlert] = []
        for notice in notices:
            key = (notice.alert_type, notice.severity, notice.message)
            if key in active:
                continue
            now = self._clock()
            alert_id = self._alerts.add(
                user_id=int(user_id),
                alert_type=notice.alert_type,
                message=notice.message,
                severity=notice.severity,
                created_at=now,
            )
            active.add(key)
            created.append(
                PaidLeaveAlert(
                    alert_id=alert_id,
                    user_id=int(user_id),
                    alert_type=notice.alert_type,
                    message=notice.message,
                    severity=notice.severity,
                    created_at=now,
                )
            )
        return created

    def list_alerts(self, *, user_id: int, current_role: Role, all_users: bool = False) -> list[PaidLeaveAlert]:
        if all_users:
            if current_role not in (Role.ADMIN, Role.CREATOR):
                raise AuthorizationError("全スタッフのアラートは閲覧できません")
            return list(self._alerts.list_active())
        return list(self._alerts.list_active(user_id=int(user_id)))

    def dismiss_alert(self, alert_id: int, *, user_id: int, current_role: Role) -> None:
        alert = self._alerts.get(int(alert_id))
        if not alert:
            raise NotFoundError("アラートが見つかりません")
        if alert.user_id != int(user_id) and current_role != Role.ADMIN:
            raise AuthorizationError("このアラートを操作する権限がありません")
        self._alerts.dismiss(alert.alert_id)

    def _for_each_staff(self, job: str, step: Callable[[PayrollInfo, BatchResult], None]) -> BatchResult:
        result = BatchResult()
        for user in self._users.list_all(active_only=True):
            try:
                step(self.get_info(user.user_id), result)
                result.processed += 1
            except Exception:
                # One broken row must not stop the batch.
                logger.exception("%s failed for staff %s", job, user.staff_id)
                result.failures.append(user.user_id)
        logger.info("%s finished: %s", job, result.to_dict())
        return result

    def run_daily_check(self, *, today: Optional[date] = None) -> BatchResult:
        today = self._today(today)

        def step(info: PayrollInfo, result: BatchResult) -> None:
            updated = rules.remove_expired(info, today)
            if updated != info:
                self._payroll.save(updated)
                result.updated += 1
            result.alerts += len(self.add_alerts(info.user_id, rules.generate_alerts(updated, today)))

        return self._for_each_staff("daily paid leave check", step)

    def run_monthly_maintenance(self, *, today: Optional[date] = None) -> BatchResult:
        today = self._today(today)

        def step(info: PayrollInfo, result: BatchResult) -> None:
            updated = rules.remove_expired(info, today)
            if rules.should_grant(updated, today):
                updated = rules.grant(updated, today)
            result.alerts += len(self.add_alerts(info.user_id, rules.generate_alerts(updated, today)))
            if updated != info:
                self._payroll.save(updated)
                result.updated += 1

        return self._for_each_staff("monthly maintenance", step)

    def run_yearly_grant(self, *, today: Optional[date] = None) -> BatchResult:
        today = self._today(today)

        def step(info: PayrollInfo, result: BatchResult) -> None:
            if not rules.should_grant(info, today):
                return
            granted = rules.grant(info, today)
            self._payroll.save(granted)
            result.updated += 1
            notice = AlertNotice(
                AlertType.GRANT_AVAILABLE,
                f"年度開始に伴い、{rules.format_days(granted.total_paid_leave)}日の有給休暇を付与しました",
                Severity.INFO,
            )
            result.alerts += len(self.add_alerts(info.user_id, [notice]))

        return self._for_each_staff("yearly paid leave grant", step)

    def run_weekly_expiry_alert(self, *, today: Optional[date] = None) -> BatchResult:
        today = self._today(today)

        def step(info: PayrollInfo, result: BatchResult) -> None:
            left = rules.days_until_expiry(info, today)
            if left not in (30, 7) or info.remaining_paid_leave <= 0:
                return
            if left <= 7:
                notice = AlertNotice(
                    AlertType.EXPIRY_WARNING,
                    f"有給休暇があと{left}日で期限切れになります！至急使用してください",
                    Severity.ERROR,
                )
            else:
                notice = AlertNotice(
                    AlertType.EXPIRY_WARNING,
                    f"有給休暇があと{left}日で期限切れになります。計画的に使用してください",
                    Severity.WARNING,
                )
            result.alerts += len(self.add_alerts(info.user_id, [notice]))

        return self._for_each_staff("weekly expiry alert", step)
