from __future__ import annotations

from datetime import date, datetime, time

import pytest

from kintai.main import create_app
from kintai.paid_leave.model import PayrollInfo
from kintai.security import totp

MFA_SECRET = "GEZDGNBVGY3TQOJQGEZDGNBVGY3TQOJQ"


@pytest.fixture
def app(container):
    app = create_app(container, settings_module="config.testing")
    app.config.update(TESTING=True)
    return app


@pytest.fixture
def client(app):
    return app.test_client()


def login(client, staff_id, password):
    return client.post("/api/auth/login", json={"staff_id": staff_id, "password": password})


def test_health(client):
    res = client.get("/health")

    assert res.status_code == 200
    assert res.get_json()["status"] == "healthy"


def test_unknown_route_is_json_404(client):
    res = client.get("/api/nothing-here")

    assert res.status_code == 404
    assert res.get_json() == {"error": "Route not found", "path": "/api/nothing-here"}


def test_login_me_logout(client):
    res = login(client, "S001", "staff123")
    assert res.status_code == 200
    assert res.get_json()["data"]["role"] == "staff"

    me = client.get("/api/auth/me").get_json()["data"]
    assert me["staff_id"] == "S001"
    assert "password_hash" not in me

    client.post("/api/auth/logout")
    assert client.get("/api/auth/me").status_code == 401


def test_bad_login_is_401_with_japanese_message(client):
    res = login(client, "S001", "wrong")

    assert res.status_code == 401
    assert res.get_json() == {"success": False, "message": "スタッフIDまたはパスワードが正しくありません"}


def test_mfa_required_flag_is_returned(client, repos):
    repos.users.set_mfa(2, enabled=True, secret=MFA_SECRET)

    res = login(client, "S001", "staff123")

    assert res.status_code == 401
    assert res.get_json()["mfa_required"] is True


def test_staff_cannot_list_users(client):
    login(client, "S001", "staff123")

    res = client.get("/api/users")

    assert res.status_code == 403
    assert res.get_json()["success"] is False


def test_clock_in_and_out_with_qr_code(client, container, clock, repos):
    repos.shifts.upsert(user_id=2, work_date=date(2025, 6, 11), start_time=time(9, 0), end_time=time(17, 0))
    qr_code = container.attendance_service.qr_payload("main", "本店")
    login(client, "S001", "staff123")

    res = client.post("/api/attendance", json={"action": "clock_in", "qr_code": qr_code})
    assert res.status_code == 201
    body = res.get_json()
    assert body["message"] == "出勤を記録しました"
    assert body["data"]["attendance_status"] == "ON_TIME"

    clock.now = datetime(2025, 6, 11, 17, 0)
    res = client.post("/api/attendance/qr/scan", json={"qr_code": qr_code})
    assert res.status_code == 200
    assert res.get_json()["action"] == "clock_out"

    records = client.get("/api/attendance/S001?year=2025&month=6").get_json()["data"]
    assert records[0]["work_hours"] == "8時間0分"


def test_bad_qr_code_is_rejected(client):
    login(client, "S001", "staff123")

    res = client.post("/api/attendance", json={"action": "clock_in", "qr_code": "{}"})

    assert res.status_code == 400
    assert res.get_json()["message"] == "無効なQRコードタイプです"


def test_staff_cannot_read_other_staff_attendance(client):
    login(client, "S001", "staff123")

    assert client.get("/api/attendance/C001").status_code == 403


def test_vacation_request_flow(client, repos):
    repos.payroll.save(PayrollInfo(user_id=2, remaining_paid_leave=5.0))
    login(client, "S001", "staff123")
    res = client.post(
        "/api/approvals/vacation", json={"start_date": "2025-07-01", "end_date": "2025-07-02", "reason": "帰省"}
    )
    assert res.status_code == 201
    request_id = res.get_json()["data"]["id"]

    login(client, "admin", "admin123")
    res = client.post(f"/api/approvals/{request_id}/decision", json={"action": "approve"})
    assert res.status_code == 200
    assert res.get_json()["data"]["status"] == "approved"

    leave = client.get("/api/paid-leave/S001").get_json()["data"]
    assert leave["remaining_paid_leave"] == 3.0


def test_csv_export_for_managers(client, repos):
    repos.shifts.upsert(user_id=2, work_date=date(2025, 6, 11), start_time=time(9, 0), end_time=time(17, 0))
    login(client, "C001", "creator123")

    res = client.get("/api/exports/shifts?start=2025-06-01&end=2025-06-30")

    assert res.status_code == 200
    assert res.mimetype == "text/csv"
    assert res.data.startswith(b"\xef\xbb\xbf")
    assert "filename*=UTF-8''" in res.headers["Content-Disposition"]


def test_api_rate_limit(container):
    import config.testing as settings

    original = settings.API_RATE_LIMIT
    settings.API_RATE_LIMIT = (2, 60)
    try:
        client = create_app(container, settings_module="config.testing").test_client()
        codes = [client.get("/api/auth/me").status_code for _ in range(3)]
    finally:
        settings.API_RATE_LIMIT = original

    assert codes == [401, 401, 429]


FULL_WIDTH_DIGITS = str.maketrans("0123456789", "０１２３４５６７８９")


@pytest.mark.parametrize(
    "as_sent",
    [int, lambda code: code.translate(FULL_WIDTH_DIGITS)],
    ids=["json-number", "full-width"],
)
def test_mfa_login_accepts_numeric_and_full_width_codes(client, repos, clock, as_sent):
    repos.users.set_mfa(2, enabled=True, secret=MFA_SECRET)
    code = totp.current_code(MFA_SECRET, at=clock())

    res = client.post("/api/auth/login", json={"staff_id": "S001", "password": "staff123", "otp": as_sent(code)})

    assert res.status_code == 200
    assert res.get_json()["data"]["staff_id"] == "S001"


def test_mfa_login_with_garbage_otp_is_401(client, repos):
    repos.users.set_mfa(2, enabled=True, secret=MFA_SECRET)

    res = client.post("/api/auth/login", json={"staff_id": "S001", "password": "staff123", "otp": {"code": 1}})

    assert res.status_code == 401
    assert res.get_json()["mfa_required"] is True


def test_forwarded_header_does_not_reset_the_api_limit(container):
    import config.testing as settings

    original = settings.API_RATE_LIMIT
    settings.API_RATE_LIMIT = (2, 60)
    try:
        client = create_app(container, settings_module="config.testing").test_client()
        codes = [
            client.get("/api/auth/me", headers={"X-Forwarded-For": f"203.0.113.{i}"}).status_code for i in range(3)
        ]
    finally:
        settings.API_RATE_LIMIT = original

    assert codes == [401, 401, 429]
    assert container.rate_limiter.tracked_keys() == ["api:127.0.0.1"]
