"""Shared Flask helpers for the JSON controllers."""

from __future__ import annotations

import logging
from functools import wraps
from typing import Any, Optional

from flask import Flask, jsonify, request, session

from ..core.enums import Role
from ..core.exceptions import AuthenticationError, DomainError, ValidationError
from .datetime_utils import now_local

logger = logging.getLogger(__name__)


def ok(data: Any = None, status: int = 200, **extra: Any):
    body: dict[str, Any] = {"success": True}
    if data is not None:
        body["data"] = data
    body.update(extra)
    return jsonify(body), status


def fail(message: str, status: int = 400, **extra: Any):
    body: dict[str, Any] = {"success": False, "message": message}
    body.update(extra)
    return jsonify(body), status


def json_body() -> dict:
    data = request.get_json(silent=True)
    if data is None:
        return {}
    if not isinstance(data, dict):
        raise ValidationError("リクエストの形式が正しくありません")
    return data


def current_user_id() -> int:
    return int(session["user_id"])


def current_role() -> Role:
    return Role(session["role"])


def client_address() -> str:
    # X-Forwarded-For is only honoured through ProxyFix (TRUSTED_PROXIES)
    return request.remote_addr or "unknown"


def login_required(view):
    @wraps(view)
    def wrapper(*args, **kwargs):
        if "user_id" not in session:
            return fail("ログインが必要です", 401)
        return view(*args, **kwargs)

    return wrapper


def roles_required(*roles: Role):
    """Allow only the listed roles (401 when logged out, 403 otherwise)."""

    allowed = {Role(r).value for r in roles}

    def decorator(view):
        @wraps(view)
        def wrapper(*args, **kwargs):
            if "user_id" not in session:
                return fail("ログインが必要です", 401)
            if session.get("role") not in allowed:
                logger.warning(
                    "forbidden: user=%s role=%s path=%s", session.get("staff_id"), session.get("role"), request.path
                )
                return fail("この操作を行う権限がありません", 403)
            return view(*args, **kwargs)

        return wrapper

    return decorator


def query_int(name: str, default: Optional[int] = None) -> Optional[int]:
    raw = request.args.get(name)
    if raw is None or raw == "":
        return default
    try:
        return int(raw)
    except ValueError:
        raise ValidationError(f"{name}は整数で指定してください")


def register_error_handlers(app: Flask) -> None:
    started_at = now_local()

    @app.errorhandler(DomainError)
    def _domain_error(e: DomainError):
        extra = {}
        if isinstance(e, AuthenticationError) and e.mfa_required:
            extra["mfa_required"] = True
        return fail(str(e), e.status_code, **extra)

    @app.errorhandler(404)
    def _not_found(_e):
        return jsonify({"error": "Route not found", "path": request.path}), 404

    @app.errorhandler(405)
    def _method_not_allowed(_e):
        return jsonify({"error": "Method not allowed", "path": request.path}), 405

    @app.errorhandler(500)
    def _server_error(e):
        logger.exception("unhandled error on %s", request.path)
        message = str(getattr(e, "original_exception", e)) if app.config.get("DEBUG") else "Something went wrong"
        return jsonify({"error": "Internal server error", "message": message}), 500

    @app.route("/health", methods=["GET"], endpoint="health")
    def health():
        now = now_local()
        return jsonify(
            {
                "status": "healthy",
                "timestamp": now.isoformat(),
                "uptime": int((now - started_at).total_seconds()),
            }
        )
