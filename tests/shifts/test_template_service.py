from __future__ import annotations

from datetime import date, time

import pytest

from kintai.core.enums import Role
from kintai.core.exceptions import AuthorizationError, NotFoundError, ValidationError
from kintai.shifts.service import day_of_week, template_errors

MONDAY = date(2025, 6, 9)
SUNDAY = date(2025, 6, 15)

PATTERN = [
    {"day_of_week": 2, "start_time": "10:00", "end_time": "14:00", "position": "ホール"},
    {"day_of_week": 4, "start_time": "22:00", "end_time": "06:00"},
]


@pytest.fixture
def templates(container):
    container.template_service.ensure_defaults()
    return container.template_service


def test_defaults_are_created_once(templates, repos):
    templates.ensure_defaults()

    ids = sorted(t.template_id for t in templates.list_templates())
    assert ids == ["default-evening", "default-morning", "default-weekend"]


def test_day_of_week_counts_from_sunday():
    assert day_of_week(SUNDAY) == 0
    assert day_of_week(MONDAY) == 1


def test_preview_expands_the_weekly_pattern(templates, repos):
    shifts = templates.apply("default-morning", user_id=2, start=MONDAY, end=SUNDAY, current_role=Role.ADMIN)

    assert [s.work_date.day for s in shifts] == [9, 10, 11, 12, 13]
    assert all((s.start_time, s.end_time) == (time(9, 0), time(17, 0)) for s in shifts)
    assert repos.shifts.list_range(MONDAY, SUNDAY) == []


def test_apply_with_save_stores_shifts_and_notifies(templates, repos):
    saved = templates.apply(
        "default-weekend", user_id=2, start=MONDAY, end=SUNDAY, current_role=Role.CREATOR, save=True
    )

    assert [s.work_date for s in saved] == [date(2025, 6, 14), SUNDAY]
    assert len(repos.shifts.list_range(MONDAY, SUNDAY, user_id=2)) == 2
    assert [n.title for n in repos.notifications.targeted(2)] == ["シフトが更新されました"]


def test_staff_cannot_save_from_template(templates):
    with pytest.raises(AuthorizationError):
        templates.apply("default-morning", user_id=2, start=MONDAY, end=SUNDAY, current_role=Role.STAFF, save=True)


def test_create_update_duplicate_and_delete(templates):
    created = templates.create(
        current_role=Role.CREATOR, created_by="C001", name=" 平日ランチ ", pattern=PATTERN, description="昼"
    )
    assert created.name == "平日ランチ"
    assert created.pattern[0].position == "ホール"
    assert created.pattern[1].position is None

    updated = templates.update(created.template_id, current_role=Role.ADMIN, name="ランチ")
    assert updated.name == "ランチ"
    assert updated.pattern == created.pattern

    copy = templates.duplicate(created.template_id, new_name="ランチ(コピー)", created_by="admin", current_role=Role.ADMIN)
    assert copy.template_id != created.template_id
    assert copy.is_default is False

    templates.delete(created.template_id, current_role=Role.ADMIN)
    with pytest.raises(NotFoundError):
        templates.get(created.template_id)


def test_default_templates_cannot_be_deleted(templates):
    with pytest.raises(ValidationError):
        templates.delete("default-morning", current_role=Role.ADMIN)


def test_template_validation_messages():
    errors = template_errors("", [{"day_of_week": 9, "start_time": "09:00"}])

    assert errors == [
        "テンプレート名は必須です",
        "1番目のシフトの終了時刻が必要です",
        "1番目のシフトの曜日が無効です",
    ]
    assert template_errors("x", []) == ["少なくとも1つのシフトパターンが必要です"]


def test_malformed_patterns_are_validation_errors(templates):
    assert template_errors("x", ["09:00"]) == ["1番目のシフトの形式が正しくありません"]
    assert template_errors("x", "月-金") == ["シフトパターンの形式が正しくありません"]

    with pytest.raises(ValidationError):
        templates.create(current_role=Role.ADMIN, created_by="admin", name="壊れた", pattern=[None, 3])


def test_summary_handles_overnight_patterns(templates):
    summary = templates.summary("default-evening")

    assert summary == {
        "total_days": 6,
        "total_hours": 48.0,
        "days_text": "月, 火, 水, 木, 金, 土",
        "average_hours_per_day": 8.0,
    }


def test_manager_saves_shifts_by_staff_id(container, repos):
    saved = container.shift_service.save_shifts(
        [{"staff_id": "S001", "date": "2025-06-20", "start_time": "09:00", "end_time": "18:00"}],
        current_role=Role.ADMIN,
    )

    assert saved[0].user_id == 2
    assert saved[0].minutes == 9 * 60
    with pytest.raises(ValidationError):
        container.shift_service.save_shifts(
            [{"user_id": 2, "date": "2025-06-20", "start_time": "09:00", "end_time": "09:00"}],
            current_role=Role.ADMIN,
        )

    container.shift_service.delete(saved[0].shift_id, current_role=Role.CREATOR)
    assert repos.shifts.get_by_id(saved[0].shift_id) is None
    assert repos.notifications.targeted(2)[-1].title == "勤務スケジュールが変更されました"
