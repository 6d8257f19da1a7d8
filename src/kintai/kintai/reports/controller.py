from __future__ import annotations

from datetime import date, timedelta
from urllib.parse import quote

from flask import Flask, Response, request

from ..common.datetime_utils import month_range, now_local
from ..common.validators import require_date
from ..common.web import query_int, roles_required
from ..core.enums import Role
from ..core.exceptions import ValidationError
from ..container import Container
from .exporters import EXCEL_MIMETYPE, to_csv_bytes, to_excel_bytes
from .service import ReportTable


def _date_range() -> tuple[date, date]:
    today = now_local().date()
    start_s = request.args.get("start")
    end_s = request.args.get("end")
    if not start_s and not end_s:
        return month_range(today.year, today.month)
    start = require_date(start_s, "開始日") if start_s else today - timedelta(days=30)
    end = require_date(end_s, "終了日") if end_s else today
    if end < start:
        raise ValidationError("終了日は開始日以降を指定してください")
    return start, end


def _respond(table: ReportTable) -> Response:
    fmt = (request.args.get("format") or "csv").lower()
    stamp = now_local().strftime("%Y-%m-%d")
    if fmt == "csv":
        body, mimetype, ext = to_csv_bytes(table), "text/csv; charset=utf-8", "csv"
    elif fmt in ("excel", "xlsx"):
        body, mimetype, ext = to_excel_bytes(table), EXCEL_MIMETYPE, "xlsx"
    else:
        raise ValidationError("formatはcsvまたはexcelを指定してください")
    filename = quote(f"{table.name}_{stamp}.{ext}")
    return Response(
        body,
        mimetype=mimetype,
        headers={"Content-Disposition": f"attachment; filename*=UTF-8''{filename}"},
    )


def register(app: Flask, container: Container) -> None:
    svc = container.report_service

    def _user_filter():
        staff_id = request.args.get("staff_id")
        if not staff_id:
            return None
        return container.user_service.get_by_staff_id(staff_id).user_id

    @app.route("/api/exports/time-records", methods=["GET"], endpoint="exports_time_records")
    @roles_required(Role.ADMIN, Role.CREATOR)
    def export_time_records():
        start, end = _date_range()
        return _respond(svc.time_records(start=start, end=end, user_id=_user_filter()))

    @app.route("/api/exports/shifts", methods=["GET"], endpoint="exports_shifts")
    @roles_required(Role.ADMIN, Role.CREATOR)
    def export_shifts():
        start, end = _date_range()
        return _respond(svc.shifts(start=start, end=end, user_id=_user_filter()))

    @app.route("/api/exports/users", methods=["GET"], endpoint="exports_users")
    @roles_required(Role.ADMIN)
    def export_users():
        return _respond(svc.users())

    @app.route("/api/exports/summary", methods=["GET"], endpoint="exports_summary")
    @roles_required(Role.ADMIN, Role.CREATOR)
    def export_summary():
        today = now_local().date()
        year = query_int("year", today.year)
        month = query_int("month", today.month)
        if not 1 <= month <= 12:
            raise ValidationError("月は1〜12で指定してください")
        return _respond(svc.monthly_summary(year=year, month=month))
