from __future__ import annotations

import io
from datetime import datetime
from typing import Optional

from flask import Flask, request, send_file, session

from ..common.datetime_utils import now_local, parse_hhmm, parse_iso_datetime
from ..common.qr_image import decode_image, render_png
from ..common.web import (
    current_role,
    current_user_id,
    json_body,
    login_required,
    ok,
    query_int,
    roles_required,
)
from ..core.enums import QRErrorCode, Role, TimeRecordType
from ..core.exceptions import QRCodeError, ValidationError
from ..container import Container

_ACTION_LABELS = {"clock_in": "出勤", "clock_out": "退勤"}


def _parse_time_input(value, label: str) -> Optional[datetime]:
    """Accept an ISO datetime or a bare HH:MM meaning today."""
    if value in (None, ""):
        return None
    text = str(value).strip()
    try:
        if "T" in text or "-" in text:
            return parse_iso_datetime(text)
        return datetime.combine(now_local().date(), parse_hhmm(text))
    except ValueError:
        raise ValidationError(f"{label}の形式が正しくありません")


def register(app: Flask, container: Container) -> None:
    svc = container.attendance_service

    @app.route("/api/attendance/<staff_id>", methods=["GET"], endpoint="attendance_list")
    @login_required
    def list_records(staff_id: str):
        today = now_local().date()
        user = container.user_service.get_by_staff_id(staff_id)
        records = svc.list_records(
            user.user_id,
            year=query_int("year", today.year),
            month=query_int("month", today.month),
            viewer_id=current_user_id(),
            viewer_role=current_role(),
        )
        return ok([r.to_dict() for r in records])

    @app.route("/api/attendance", methods=["POST"], endpoint="attendance_create")
    @login_required
    def create_record():
        data = json_body()
        action = data.get("action") or "clock_in"
        if action not in _ACTION_LABELS:
            raise ValidationError("操作の指定が正しくありません")
        try:
            record_type = TimeRecordType(data.get("type") or TimeRecordType.AUTO.value)
        except ValueError:
            raise ValidationError("打刻種別の指定が正しくありません")

        user_id = current_user_id()
        location_id = None
        if record_type == TimeRecordType.AUTO:
            qr_code = (data.get("qr_code") or "").strip()
            if not qr_code:
                raise ValidationError("QRコードが必要です")
            payload = svc.verify_qr(qr_code, staff_id=container.user_service.get(user_id).staff_id)
            location_id = payload.location_id
            manual_time = None
        else:
            manual_time = _parse_time_input(data.get("time"), "時刻")
            if manual_time is None:
                raise ValidationError("手動打刻には時刻が必要です")

        if action == "clock_in":
            record = svc.clock_in(
                user_id,
                record_type=record_type,
                manual_time=manual_time,
                reason=data.get("reason"),
                location_id=location_id,
            )
        else:
            record = svc.clock_out(user_id, record_type=record_type, manual_time=manual_time, reason=data.get("reason"))

        message = f"{_ACTION_LABELS[action]}を記録しました"
        if record_type == TimeRecordType.MANUAL:
            message += "（承認待ち）"
        return ok(record.to_dict(), 201, message=message)

    @app.route("/api/attendance/qr/scan", methods=["POST"], endpoint="attendance_qr_scan")
    @login_required
    def qr_scan():
        data = json_body()
        qr_code = (data.get("qr_code") or "").strip()
        if not qr_code:
            raise ValidationError("QRコードが空です")
        action, record = svc.scan(current_user_id(), qr_code)
        return ok(record.to_dict(), action=action, message=f"{_ACTION_LABELS[action]}を記録しました")

    @app.route("/api/attendance/qr/scan/image", methods=["POST"], endpoint="attendance_qr_scan_image")
    @login_required
    def qr_scan_image():
        upload = request.files.get("image")
        if not upload:
            raise ValidationError("画像ファイルが必要です")
        try:
            symbols = decode_image(upload.stream)
        except (OSError, ValueError):
            symbols = []
        if not symbols:
            error = QRCodeError("画像からQRコードを読み取れませんでした", QRErrorCode.SCAN_ERROR.value)
            svc.error_reporter.report(error, {"action": "scan_image"}, session.get("staff_id"))
            raise error

        action, record = svc.scan(current_user_id(), symbols[0])
        return ok(record.to_dict(), action=action, message=f"{_ACTION_LABELS[action]}を記録しました")

    @app.route("/api/attendance/qr/image", methods=["GET"], endpoint="attendance_qr_image")
    @roles_required(Role.ADMIN, Role.CREATOR)
    def qr_image():
        payload = svc.qr_payload(
            request.args.get("location_id", "main"),
            request.args.get("location_name", "本店"),
        )
        return send_file(io.BytesIO(render_png(payload)), mimetype="image/png")

    @app.route("/api/attendance/qr/errors", methods=["GET"], endpoint="attendance_qr_errors")
    @roles_required(Role.ADMIN)
    def qr_errors():
        return ok(svc.error_reporter.summary())

    @app.route("/api/attendance/<int:record_id>/approve", methods=["PATCH"], endpoint="attendance_approve")
    @roles_required(Role.ADMIN, Role.CREATOR)
    def approve(record_id: int):
        data = json_body()
        if "approved" not in data:
            raise ValidationError("approvedを指定してください")
        approved = bool(data.get("approved"))
        record = svc.approve_record(
            record_id, approver_id=current_user_id(), current_role=current_role(), approved=approved
        )
        return ok(record.to_dict(), message="勤怠記録を承認しました" if approved else "勤怠記録を却下しました")

    @app.route("/api/attendance/<int:record_id>/correction", methods=["POST"], endpoint="attendance_correction")
    @login_required
    def correction(record_id: int):
        data = json_body()
        req = svc.request_correction(
            current_user_id(),
            record_id,
            clock_in=_parse_time_input(data.get("clock_in"), "出勤時刻"),
            clock_out=_parse_time_input(data.get("clock_out"), "退勤時刻"),
            reason=data.get("reason") or "",
        )
        return ok(req.to_dict(), 201, message="修正申請を送信しました")
