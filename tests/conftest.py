from __future__ import annotations

from datetime import date, datetime

import pytest

from kintai.container import build_services
from kintai.core.enums import Role

from tests.fakes import FakeClock, in_memory_repositories, make_user

# A Wednesday inside business hours.
NOW = datetime(2025, 6, 11, 9, 0)


class Settings:
    QR_ALLOWED_LOCATIONS = ("main", "office")
    QR_MAX_AGE_HOURS = 24
    BUSINESS_HOURS = (6, 22)
    LATE_GRACE_MINUTES = 5
    SCHEDULER_TIMEZONE = "Asia/Tokyo"


@pytest.fixture
def clock():
    return FakeClock(NOW)


@pytest.fixture
def repos():
    repos = in_memory_repositories()
    repos.users.add(make_user(1, "admin", Role.ADMIN, password="admin123", work_start_date=date(2019, 4, 1)))
    repos.users.add(make_user(2, "S001", Role.STAFF, password="staff123", work_start_date=date(2023, 4, 1)))
    repos.users.add(make_user(3, "C001", Role.CREATOR, password="creator123", work_start_date=date(2021, 4, 1)))
    return repos


@pytest.fixture
def container(repos, clock):
    container = build_services(repos, settings=Settings, clock=clock)
    container.approval_service.ensure_default_workflows()
    return container
