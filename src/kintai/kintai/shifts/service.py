from __future__ import annotations

import logging
import secrets
from dataclasses import replace
from datetime import date, datetime, time
from typing import Callable, Iterable, Optional

from ..common.datetime_utils import iter_dates, now_local, parse_hhmm, span_minutes
from ..common.validators import require_date, require_non_empty
from ..core.constants import WEEKDAY_LABELS_JA
from ..core.enums import Role
from ..core.exceptions import AuthorizationError, NotFoundError, ValidationError
from ..notifications.service import NotificationService
from ..users.repository import UserRepository
from .model import Shift, ShiftTemplate, TemplateShift
from .repository import ShiftRepository, ShiftTemplateRepository

logger = logging.getLogger(__name__)

_MANAGERS = (Role.ADMIN, Role.CREATOR)


def day_of_week(d: date) -> int:
    """0=Sunday .. 6=Saturday."""
    return (d.weekday() + 1) % 7


def _as_time(value, label: str) -> time:
    if isinstance(value, time):
        return value
    try:
        return parse_hhmm(require_non_empty(value, label))
    except ValueError:
        raise ValidationError(f"{label}の形式が正しくありません (HH:MM)")


class ShiftService:
    def __init__(
        self,
        shifts: ShiftRepository,
        users: UserRepository,
        notifications: Optional[NotificationService] = None,
    ):
        self._shifts = shifts
        self._users = users
        self._notifications = notifications

    def list_range(self, start: date, end: date, *, user_id: Optional[int] = None) -> list[Shift]:
        if end < start:
            raise ValidationError("終了日は開始日以降を指定してください")
        return list(self._shifts.list_range(start, end, user_id=user_id))

    def effective_shift(self, user_id: int, work_date: date) -> Optional[Shift]:
        return self._shifts.get_for_user_and_date(int(user_id), work_date)

    def save_shifts(self, items: Iterable[dict], *, current_role: Role, notify: bool = True) -> list[Shift]:
        """Upsert shifts given as dicts (user_id, date, start_time, end_time, position, note)."""

        if current_role not in _MANAGERS:
            raise AuthorizationError("シフトを編集する権限がありません")
        return self._save(items, notify=notify)

    def apply_approved_change(self, user_id: int, data: dict) -> Shift:
        """Store the shift carried by an approved shift-change request."""

        item = dict(data)
        item["user_id"] = int(user_id)
        return self._save([item], notify=True)[0]

    def _save(self, items: Iterable[dict], *, notify: bool) -> list[Shift]:
        saved: list[Shift] = []
        touched: dict[int, list[date]] = {}
        for item in items:
            user_id = item.get("user_id")
            if user_id is None and item.get("staff_id"):
                user = self._users.get_by_staff_id(str(item["staff_id"]))
                user_id = user.user_id if user else None
            if user_id is None or not self._users.get_by_id(int(user_id)):
                raise NotFoundError("スタッフが見つかりません")

            work_date = require_date(item.get("date") or item.get("work_date"), "日付")
            start = _as_time(item.get("start_time"), "開始時刻")
            end = _as_time(item.get("end_time"), "終了時刻")
            if start == end:
                raise ValidationError("開始時刻と終了時刻が同じです")

            shift_id = self._shifts.upsert(
                user_id=int(user_id),
                work_date=work_date,
                start_time=start,
                end_time=end,
                position=item.get("position"),
                note=item.get("note"),
            )
            saved.append(
                Shift(
                    shift_id=shift_id,
                    user_id=int(user_id),
                    work_date=work_date,
                    start_time=start,
                    end_time=end,
                    position=item.get("position"),
                    note=item.get("note"),
                )
            )
            touched.setdefault(int(user_id), []).append(work_date)

        if notify and self._notifications:
            for user_id, dates in touched.items():
                self._notifications.send_shift_update(user_id, work_date=min(dates) if len(dates) == 1 else None)
        logger.info("saved %d shifts for %d staff", len(saved), len(touched))
        return saved

    def delete(self, shift_id: int, *, current_role: Role) -> None:
        if current_role not in _MANAGERS:
            raise AuthorizationError("シフトを編集する権限がありません")
        shift = self._shifts.get_by_id(int(shift_id))
        if not shift:
            raise NotFoundError("シフトが見つかりません")
        self._shifts.delete(shift.shift_id)
        if self._notifications is not None:
            self._notifications.send_schedule_change(
                shift.user_id, f"{shift.work_date.isoformat()}のシフトが削除されました"
            )


def _weekday_pattern(days: Iterable[int], start: str, end: str, position: str) -> tuple[TemplateShift, ...]:
    return tuple(TemplateShift(d, parse_hhmm(start), parse_hhmm(end), position) for d in days)


DEFAULT_TEMPLATES: tuple[ShiftTemplate, ...] = (
    ShiftTemplate(
        template_id="default-morning",
        name="朝シフト",
        description="平日の朝勤務パターン",
        pattern=_weekday_pattern((1, 2, 3, 4, 5), "09:00", "17:00", "一般"),
        is_default=True,
    ),
    ShiftTemplate(
        template_id="default-evening",
        name="夜シフト",
        description="夜間勤務パターン",
        pattern=_weekday_pattern((1, 2, 3, 4, 5, 6), "17:00", "01:00", "夜勤"),
        is_default=True,
    ),
    ShiftTemplate(
        template_id="default-weekend",
        name="週末シフト",
        description="土日勤務パターン",
        pattern=_weekday_pattern((6, 0), "10:00", "18:00", "週末"),
        is_default=True,
    ),
)


def template_errors(name: Optional[str], pattern: Optional[list]) -> list[str]:
    errors: list[str] = []
    if not name or not str(name).strip():
        errors.append("テンプレート名は必須です")
    if pattern and not isinstance(pattern, list):
        errors.append("シフトパターンの形式が正しくありません")
        return errors
    if not pattern:
        errors.append("少なくとも1つのシフトパターンが必要です")
    for index, item in enumerate(pattern or [], start=1):
        if not isinstance(item, dict):
            errors.append(f"{index}番目のシフトの形式が正しくありません")
            continue
        if not item.get("start_time"):
            errors.append(f"{index}番目のシフトの開始時刻が必要です")
        if not item.get("end_time"):
            errors.append(f"{index}番目のシフトの終了時刻が必要です")
        try:
            dow = int(item.get("day_of_week"))
        except (TypeError, ValueError):
            dow = -1
        if dow < 0 or dow > 6:
            errors.append(f"{index}番目のシフトの曜日が無効です")
    return errors


def _parse_pattern(pattern: list) -> tuple[TemplateShift, ...]:
    return tuple(
        TemplateShift(
            day_of_week=int(p["day_of_week"]),
            start_time=_as_time(p["start_time"], "開始時刻"),
            end_time=_as_time(p["end_time"], "終了時刻"),
            position=p.get("position") or None,
            is_optional=bool(p.get("is_optional", False)),
        )
        for p in pattern
    )


def template_summary(template: ShiftTemplate) -> dict:
    total_days = len(template.pattern)
    total_hours = sum(span_minutes(p.start_time, p.end_time) for p in template.pattern) / 60
    return {
        "total_days": total_days,
        "total_hours": round(total_hours, 1),
        "days_text": ", ".join(WEEKDAY_LABELS_JA[p.day_of_week] for p in template.pattern),
        "average_hours_per_day": round(total_hours / total_days, 1) if total_days else 0,
    }


class TemplateService:
    """Reusable weekly shift patterns."""

    def __init__(
        self,
        templates: ShiftTemplateRepository,
        shifts: ShiftService,
        *,
        clock: Callable[[], datetime] = now_local,
    ):
        self._templates = templates
        self._shifts = shifts
        self._clock = clock

    def ensure_defaults(self) -> None:
        if self._templates.list_all():
            return
        now = self._clock()
        for template in DEFAULT_TEMPLATES:
            self._templates.save(replace(template, created_at=now))
        logger.info("default shift templates created")

    def list_templates(self) -> list[ShiftTemplate]:
        return list(self._templates.list_all())

    def get(self, template_id: str) -> ShiftTemplate:
        template = self._templates.get(template_id)
        if not template:
            raise NotFoundError("テンプレートが見つかりません")
        return template

    @staticmethod
    def _new_id() -> str:
        return f"template_{secrets.token_hex(6)}"

    def create(
        self,
        *,
        current_role: Role,
        created_by: str,
        name: str,
        pattern: list,
        description: Optional[str] = None,
    ) -> ShiftTemplate:
        if current_role not in _MANAGERS:
            raise AuthorizationError("テンプレートを作成する権限がありません")
        errors = template_errors(name, pattern)
        if errors:
            raise ValidationError(" / ".join(errors))

        template = ShiftTemplate(
            template_id=self._new_id(),
            name=name.strip(),
            description=description,
            pattern=_parse_pattern(pattern),
            created_at=self._clock(),
            created_by=created_by,
            is_default=False,
        )
        self._templates.save(template)
        return template

    def update(
        self,
        template_id: str,
        *,
        current_role: Role,
        name: Optional[str] = None,
        description: Optional[str] = None,
        pattern: Optional[list] = None,
    ) -> ShiftTemplate:
        if current_role not in _MANAGERS:
            raise AuthorizationError("テンプレートを編集する権限がありません")
        template = self.get(template_id)

        new_name = name if name is not None else template.name
        errors = template_errors(new_name, pattern if pattern is not None else [p.to_dict() for p in template.pattern])
        if errors:
            raise ValidationError(" / ".join(errors))

        updated = replace(
            template,
            name=new_name.strip(),
            description=description if description is not None else template.description,
            pattern=_parse_pattern(pattern) if pattern is not None else template.pattern,
        )
        self._templates.save(updated)
        return updated

    def delete(self, template_id: str, *, current_role: Role) -> None:
        if current_role not in _MANAGERS:
            raise AuthorizationError("テンプレートを削除する権限がありません")
        template = self.get(template_id)
        if template.is_default:
            raise ValidationError("デフォルトテンプレートは削除できません")
        self._templates.delete(template.template_id)

    def apply(
        self,
        template_id: str,
        *,
        user_id: int,
        start: date,
        end: date,
        current_role: Role,
        save: bool = False,
    ) -> list[Shift]:
        """Expand the weekly pattern over start..end (inclusive) for one staff member."""

        if end < start:
            raise ValidationError("終了日は開始日以降を指定してください")
        template = self.get(template_id)

        planned: list[dict] = []
        for d in iter_dates(start, end):
            entry = next((p for p in template.pattern if p.day_of_week == day_of_week(d)), None)
            if entry:
                planned.append(
                    {
                        "user_id": int(user_id),
                        "date": d,
                        "start_time": entry.start_time,
                        "end_time": entry.end_time,
                        "position": entry.position,
                    }
                )

        if save:
            return self._shifts.save_shifts(planned, current_role=current_role)
        return [
            Shift(
                shift_id=0,
                user_id=p["user_id"],
                work_date=p["date"],
                start_time=p["start_time"],
                end_time=p["end_time"],
                position=p["position"],
            )
            for p in planned
        ]

    def duplicate(self, template_id: str, *, new_name: str, created_by: str, current_role: Role) -> ShiftTemplate:
        if current_role not in _MANAGERS:
            raise AuthorizationError("テンプレートを作成する権限がありません")
        source = self.get(template_id)
        copy = replace(
            source,
            template_id=self._new_id(),
            name=require_non_empty(new_name, "テンプレート名"),
            created_at=self._clock(),
            created_by=created_by,
            is_default=False,
        )
        self._templates.save(copy)
        return copy

    def summary(self, template_id: str) -> dict:
        return template_summary(self.get(template_id))
