"""Schema / seed helpers used by `create_app()` and the scripts in `scripts/`."""

from __future__ import annotations

import logging
import re
from contextlib import contextmanager
from pathlib import Path
from typing import Iterator

import mysql.connector
from werkzeug.security import generate_password_hash

logger = logging.getLogger(__name__)

# (staff_id, name, email, password, role, work_start_date, hourly_rate)
DEMO_USERS = (
    ("admin", "管理者", "admin@example.com", "admin123", "admin", "2019-04-01", 1500),
    ("S001", "田中太郎", "tanaka@example.com", "staff123", "staff", "2023-04-01", 1100),
    ("C001", "佐藤花子", "sato@example.com", "creator123", "creator", "2021-04-01", 1300),
)

DEMO_TRANSPORTATION_ALLOWANCE = 500

_CREATE_DB_OR_USE = re.compile(r"(?im)^\s*(CREATE\s+DATABASE|USE)\b.*?;\s*$")


def _database_name(db_config: dict) -> str:
    return str(db_config.get("database") or "kintai_db")


@contextmanager
def _connection(db_config: dict, *, with_database: bool = True) -> Iterator:
    kwargs = {
        "host": str(db_config.get("host", "localhost")),
        "port": int(db_config.get("port", 3306)),
        "user": str(db_config.get("user", "root")),
        "password": str(db_config.get("password", "")),
        "use_pure": True,
    }
    if with_database:
        kwargs["database"] = _database_name(db_config)
    conn = mysql.connector.connect(**kwargs)
    try:
        yield conn
        conn.commit()
    finally:
        conn.close()


def split_statements(sql: str) -> Iterator[str]:
    """Split a .sql file on ';' outside quoted strings."""
    start = 0
    quote = None
    escaped = False
    for i, ch in enumerate(sql):
        if escaped:
            escaped = False
        elif ch == "\\":
            escaped = True
        elif quote:
            if ch == quote:
                quote = None
        elif ch in ("'", '"'):
            quote = ch
        elif ch == ";":
            stmt = sql[start:i].strip()
            if stmt:
                yield stmt
            start = i + 1
    tail = sql[start:].strip()
    if tail:
        yield tail


def ensure_database_exists(db_config: dict) -> None:
    name = _database_name(db_config)
    with _connection(db_config, with_database=False) as conn:
        conn.cursor().execute(
            f"CREATE DATABASE IF NOT EXISTS `{name}` CHARACTER SET utf8mb4 COLLATE utf8mb4_unicode_ci"
        )


def _run_sql_file(db_config: dict, path: str | Path) -> int:
    # the target database comes from DB_CONFIG, not from the file
    sql = _CREATE_DB_OR_USE.sub("", Path(path).read_text(encoding="utf-8"))
    count = 0
    with _connection(db_config) as conn:
        cur = conn.cursor()
        for stmt in split_statements(sql):
            cur.execute(stmt)
            count += 1
    return count


def apply_schema(db_config: dict, *, schema_path: str | Path) -> None:
    ensure_database_exists(db_config)
    count = _run_sql_file(db_config, schema_path)
    logger.info("schema applied from %s (%d statements)", schema_path, count)


def apply_seed_sql(db_config: dict, *, seed_path: str | Path) -> None:
    count = _run_sql_file(db_config, seed_path)
    logger.info("seed applied from %s (%d statements)", seed_path, count)


def ensure_demo_users(db_config: dict) -> None:
    """Create (or reset) the demo accounts and their payroll rows."""

    with _connection(db_config) as conn:
        cur = conn.cursor(dictionary=True)
        for staff_id, name, email, password, role, work_start, hourly_rate in DEMO_USERS:
            password_hash = generate_password_hash(password)
            cur.execute("SELECT user_id FROM users WHERE staff_id=%s", (staff_id,))
            row = cur.fetchone()
            if row:
                user_id = int(row["user_id"])
                cur.execute(
                    "UPDATE users SET name=%s, email=%s, password_hash=%s, role=%s, is_active=1 WHERE user_id=%s",
                    (name, email, password_hash, role, user_id),
                )
            else:
                cur.execute(
                    """
                    INSERT INTO users (staff_id, name, email, password_hash, role, work_start_date)
                    VALUES (%s, %s, %s, %s, %s, %s)
                    """,
                    (staff_id, name, email, password_hash, role, work_start),
                )
                user_id = int(cur.lastrowid)

            cur.execute(
                """
                INSERT IGNORE INTO payroll_info (user_id, hourly_rate, transportation_allowance, work_start_date)
                VALUES (%s, %s, %s, %s)
                """,
                (user_id, hourly_rate, DEMO_TRANSPORTATION_ALLOWANCE, work_start),
            )
    logger.info("demo users ready (%d)", len(DEMO_USERS))


def list_tables(db_config: dict) -> list[str]:
    with _connection(db_config) as conn:
        cur = conn.cursor()
        cur.execute("SHOW TABLES")
        return [row[0] for row in cur.fetchall()]
