from __future__ import annotations

from datetime import date

import pytest

from kintai.core.enums import Role
from kintai.core.exceptions import (
    AuthenticationError,
    AuthorizationError,
    ConflictError,
    RateLimitError,
    ValidationError,
)
from kintai.security import totp

SECRET = "GEZDGNBVGY3TQOJQGEZDGNBVGY3TQOJQ"


def test_login_returns_session_user(container):
    user = container.auth_service.authenticate("S001", "staff123")

    assert user.to_dict() == {"id": 2, "staff_id": "S001", "name": "S001", "role": "staff"}
    assert container.security_log.recent()[-1].event == "LOGIN_SUCCESS"


def test_wrong_password_and_unknown_user_share_the_message(container):
    with pytest.raises(AuthenticationError) as wrong:
        container.auth_service.authenticate("S001", "nope")
    with pytest.raises(AuthenticationError) as unknown:
        container.auth_service.authenticate("X999", "nope")

    assert str(wrong.value) == str(unknown.value) == "スタッフIDまたはパスワードが正しくありません"


def test_inactive_users_cannot_log_in(container, repos):
    repos.users.set_active(2, is_active=False)
    with pytest.raises(AuthenticationError):
        container.auth_service.authenticate("S001", "staff123")


def test_fifth_failure_locks_the_account(container):
    for _ in range(5):
        with pytest.raises(AuthenticationError):
            container.auth_service.authenticate("S001", "nope")

    with pytest.raises(RateLimitError, match="分後に再試行"):
        container.auth_service.authenticate("S001", "staff123")


def test_mfa_users_need_a_second_factor(container, repos, clock):
    repos.users.set_mfa(2, enabled=True, secret=SECRET)

    with pytest.raises(AuthenticationError) as exc:
        container.auth_service.authenticate("S001", "staff123")
    assert exc.value.mfa_required is True

    with pytest.raises(AuthenticationError):
        container.auth_service.authenticate("S001", "staff123", otp="12345x")

    user = container.auth_service.authenticate("S001", "staff123", otp=totp.current_code(SECRET, at=clock()))
    assert user.message == "認証成功"


def test_backup_code_login_consumes_the_code(container, repos):
    repos.users.set_mfa(2, enabled=True, secret=SECRET)
    codes = container.mfa_service.regenerate_backup_codes(2)["codes"]

    user = container.auth_service.authenticate("S001", "staff123", backup_code=codes[0].lower())
    assert user.message == "認証成功。残り9個のバックアップコードが利用可能です"

    with pytest.raises(AuthenticationError, match="使用済み"):
        container.auth_service.authenticate("S001", "staff123", backup_code=codes[0])


def test_change_password_enforces_policy(container):
    auth = container.auth_service
    with pytest.raises(AuthenticationError):
        auth.change_password(2, current_password="wrong", new_password="NewPassw0rd!")
    with pytest.raises(ValidationError):
        auth.change_password(2, current_password="staff123", new_password="weak")

    auth.change_password(2, current_password="staff123", new_password="NewPassw0rd!")
    assert auth.authenticate("S001", "NewPassw0rd!").user_id == 2


def test_admin_creates_users_with_payroll_row(container, repos):
    users = container.user_service
    with pytest.raises(AuthorizationError):
        users.create_user(current_role=Role.CREATOR, staff_id="S002", name="佐藤", email=None, password="Passw0rd!")

    created = users.create_user(
        current_role=Role.ADMIN,
        staff_id="S002",
        name="佐藤",
        email="s002@example.com",
        password="Passw0rd!",
        work_start_date=date(2025, 4, 1),
    )

    assert created.role == Role.STAFF
    assert repos.payroll.get(created.user_id).work_start_date == date(2025, 4, 1)
    with pytest.raises(ConflictError):
        users.create_user(current_role=Role.ADMIN, staff_id="S002", name="佐藤", email=None, password="Passw0rd!")


@pytest.mark.parametrize(
    "changes",
    [{"staff_id": "S!"}, {"email": "broken"}, {"phone": "abc"}, {"password": "short"}],
)
def test_create_user_validates_input(container, changes):
    data = {"staff_id": "S010", "name": "鈴木", "email": None, "password": "Passw0rd!", **changes}
    with pytest.raises(ValidationError):
        container.user_service.create_user(current_role=Role.ADMIN, **data)


def test_profile_update_and_deactivation_rules(container):
    users = container.user_service
    updated = users.update_profile(2, name="山田 太郎", phone="090-0000-0000")
    assert (updated.name, updated.phone) == ("山田 太郎", "090-0000-0000")

    with pytest.raises(ValidationError):
        users.set_active(1, current_role=Role.ADMIN, is_active=False)
    users.set_active(2, current_role=Role.ADMIN, is_active=False)
    assert users.get(2).is_active is False
    assert len(users.list_users(current_role=Role.CREATOR)) == 3
