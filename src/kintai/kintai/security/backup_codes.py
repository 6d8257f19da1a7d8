"""One-time backup codes for logging in without the authenticator app."""

from __future__ import annotations

import re
import secrets
import unicodedata
from dataclasses import dataclass, field, replace
from datetime import datetime, timedelta
from typing import Optional

from ..core.constants import (
    BACKUP_CODE_CHARSET,
    BACKUP_CODE_COUNT,
    BACKUP_CODE_LENGTH,
    BACKUP_CODE_MIN_SET,
    BACKUP_CODE_RENEW_THRESHOLD,
    BACKUP_CODE_VALID_DAYS,
)

_CODE_FORMAT = re.compile(r"^[A-Z0-9]{4}-[A-Z0-9]{4}$")


@dataclass(frozen=True)
class BackupCode:
    code: str
    used_at: Optional[datetime] = None

    @property
    def used(self) -> bool:
        return self.used_at is not None


@dataclass(frozen=True)
class BackupCodeSet:
    user_id: int
    codes: tuple[BackupCode, ...]
    generated_at: datetime
    last_used: Optional[datetime] = field(default=None)

    @property
    def remaining_codes(self) -> list[str]:
        return [c.code for c in self.codes if not c.used]

    @property
    def used_count(self) -> int:
        return sum(1 for c in self.codes if c.used)


@dataclass(frozen=True)
class BackupCodeResult:
    valid: bool
    message: str
    code_set: BackupCodeSet


def normalize_code(value: str) -> str:
    """Upper-case, drop whitespace and hyphens."""
    return re.sub(r"[\s\-]+", "", unicodedata.normalize("NFKC", value or "").strip().upper())


def generate_code() -> str:
    raw = "".join(secrets.choice(BACKUP_CODE_CHARSET) for _ in range(BACKUP_CODE_LENGTH))
    return f"{raw[:4]}-{raw[4:]}"


def generate_code_set(user_id: int, *, now: datetime, count: int = BACKUP_CODE_COUNT) -> BackupCodeSet:
    codes: list[str] = []
    while len(codes) < count:
        code = generate_code()
        if code not in codes:
            codes.append(code)
    return BackupCodeSet(user_id=int(user_id), codes=tuple(BackupCode(c) for c in codes), generated_at=now)


def validate_and_use(code_set: BackupCodeSet, input_code: str, *, now: datetime) -> BackupCodeResult:
    wanted = normalize_code(input_code)
    for index, item in enumerate(code_set.codes):
        if normalize_code(item.code) != wanted:
            continue
        if item.used:
            return BackupCodeResult(False, "このバックアップコードは既に使用済みです", code_set)
        codes = list(code_set.codes)
        codes[index] = replace(item, used_at=now)
        updated = replace(code_set, codes=tuple(codes), last_used=now)
        remaining = len(updated.remaining_codes)
        return BackupCodeResult(True, f"認証成功。残り{remaining}個のバックアップコードが利用可能です", updated)
    return BackupCodeResult(False, "無効なバックアップコードです", code_set)


def remaining_count(code_set: BackupCodeSet) -> int:
    return len(code_set.remaining_codes)


def is_expired(code_set: BackupCodeSet, *, now: datetime, valid_days: int = BACKUP_CODE_VALID_DAYS) -> bool:
    return now > code_set.generated_at + timedelta(days=valid_days)


def needs_new_set(code_set: BackupCodeSet, *, now: datetime) -> bool:
    return remaining_count(code_set) <= BACKUP_CODE_RENEW_THRESHOLD or is_expired(code_set, now=now)


def usage_stats(code_set: BackupCodeSet) -> dict:
    total = len(code_set.codes)
    used = code_set.used_count
    return {
        "total": total,
        "used": used,
        "remaining": total - used,
        "usage_rate": round(used / total * 100) if total else 0,
        "last_used": code_set.last_used.isoformat() if code_set.last_used else None,
        "generated_at": code_set.generated_at.isoformat(),
    }


def format_for_display(codes: list[str]) -> list[str]:
    out = []
    for index, code in enumerate(codes, start=1):
        formatted = code if "-" in code else f"{code[:4]}-{code[4:]}"
        out.append(f"{index:02d}. {formatted}")
    return out


def copy_text(codes: list[str], *, name: str, email: str, now: datetime) -> str:
    lines = [
        "勤怠管理システム - バックアップコード",
        f"生成日時: {now.strftime('%Y/%m/%d %H:%M:%S')}",
        f"ユーザー: {name} ({email})",
        "",
        "これらのコードは一度だけ使用できます。",
        "安全な場所に保管し、他人と共有しないでください。",
        "",
        *format_for_display(codes),
        "",
        "注意事項:",
        "- 各コードは一度だけ使用可能です",
        "- コードを紛失した場合は管理者にお問い合わせください",
        "- 定期的に新しいコードを生成することを推奨します",
    ]
    return "\n".join(lines)


def check_code_security(codes: list[str]) -> dict:
    issues: list[str] = []
    recommendations: list[str] = []

    if len(codes) < BACKUP_CODE_MIN_SET:
        issues.append("バックアップコードの数が不足しています")
        recommendations.append(f"最低{BACKUP_CODE_MIN_SET}個のバックアップコードを生成してください")

    if any(not _CODE_FORMAT.match(code) for code in codes):
        issues.append("フォーマットが不正なコードが含まれています")
        recommendations.append("標準フォーマット（XXXX-XXXX）のコードを使用してください")

    if len(set(codes)) != len(codes):
        issues.append("重複したコードが含まれています")
        recommendations.append("すべてのコードがユニークであることを確認してください")

    return {"is_secure": not issues, "issues": issues, "recommendations": recommendations}
