from __future__ import annotations

import importlib
import logging
from datetime import timedelta
from logging.config import dictConfig
from pathlib import Path
from typing import Optional

from dotenv import load_dotenv
from flask import Flask, request
from flask_cors import CORS
from werkzeug.middleware.proxy_fix import ProxyFix

from config import get_settings_module

from .common.web import client_address, fail, register_error_handlers
from .container import Container, api_rate_limit, build_container
from .database.bootstrap import apply_schema, apply_seed_sql, ensure_demo_users, list_tables

from .approvals.controller import register as register_approvals
from .attendance.controller import register as register_attendance
from .notifications.controller import register as register_notifications
from .paid_leave.controller import register as register_paid_leave
from .reports.controller import register as register_reports
from .security.controller import register as register_security
from .shifts.controller import register as register_shifts
from .users.controller import register as register_users

logger = logging.getLogger(__name__)

DATABASE_DIR = Path(__file__).resolve().parents[3] / "database"


def configure_logging(level: str) -> None:
    dictConfig(
        {
            "version": 1,
            "disable_existing_loggers": False,
            "formatters": {"default": {"format": "%(asctime)s %(levelname)s [%(name)s] %(message)s"}},
            "handlers": {"console": {"class": "logging.StreamHandler", "formatter": "default"}},
            "root": {"level": level, "handlers": ["console"]},
        }
    )


def create_app(container: Optional[Container] = None, settings_module: Optional[str] = None) -> Flask:
    load_dotenv(override=False)
    app = Flask(__name__)

    settings_module = settings_module or get_settings_module()
    settings = importlib.import_module(settings_module)
    configure_logging(getattr(settings, "LOG_LEVEL", "INFO"))

    app.secret_key = getattr(settings, "SECRET_KEY")
    app.config["DEBUG"] = bool(getattr(settings, "DEBUG", False))
    app.config["TESTING"] = bool(getattr(settings, "TESTING", False))
    app.config["PERMANENT_SESSION_LIFETIME"] = timedelta(hours=int(getattr(settings, "SESSION_HOURS", 8)))
    app.config["SESSION_COOKIE_HTTPONLY"] = True
    app.config["SESSION_COOKIE_SAMESITE"] = "Lax"
    app.json.ensure_ascii = False

    trusted_proxies = int(getattr(settings, "TRUSTED_PROXIES", 0))
    if trusted_proxies:
        app.wsgi_app = ProxyFix(app.wsgi_app, x_for=trusted_proxies, x_proto=trusted_proxies)

    CORS(
        app,
        resources={r"/api/*": {"origins": [getattr(settings, "FRONTEND_URL", "http://localhost:5173")]}},
        supports_credentials=True,
    )

    if container is None:
        db_config = getattr(settings, "DB_CONFIG")
        logger.info(
            "settings=%s db=%s@%s:%s/%s",
            settings_module,
            db_config.get("user"),
            db_config.get("host"),
            db_config.get("port", 3306),
            db_config.get("database"),
        )
        if getattr(settings, "AUTO_INIT_DB", False):
            apply_schema(db_config, schema_path=DATABASE_DIR / "schema.sql")
            logger.info("schema ready (tables=%d)", len(list_tables(db_config)))
        if getattr(settings, "AUTO_SEED_DB", False):
            apply_seed_sql(db_config, seed_path=DATABASE_DIR / "seed.sql")
            ensure_demo_users(db_config)
            logger.info("demo seed ready")
        container = build_container(db_config=db_config, settings=settings)

    container.approval_service.ensure_default_workflows()
    container.template_service.ensure_defaults()

    max_requests, window = api_rate_limit(settings)

    @app.before_request
    def _limit_api_requests():
        if not request.path.startswith("/api/") or request.method == "OPTIONS":
            return None
        if not container.rate_limiter.check(f"api:{client_address()}", max_requests, window):
            logger.warning("api rate limit exceeded: %s", client_address())
            return fail("リクエストが多すぎます。しばらくしてから再試行してください", 429)
        return None

    register_error_handlers(app)
    register_users(app, container)
    register_attendance(app, container)
    register_shifts(app, container)
    register_approvals(app, container)
    register_paid_leave(app, container)
    register_notifications(app, container)
    register_security(app, container)
    register_reports(app, container)

    if getattr(settings, "ENABLE_SCHEDULER", False):
        container.scheduler.start_all()

    app.extensions["kintai"] = container
    return app
