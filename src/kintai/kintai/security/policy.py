"""Password strength and input sanitising rules."""

from __future__ import annotations

import re

from werkzeug.security import check_password_hash

from ..core.constants import PASSWORD_MIN_LENGTH, PASSWORD_SPECIAL_CHARS
from ..core.exceptions import ValidationError


def password_errors(password: str) -> list[str]:
    errors: list[str] = []
    password = password or ""
    if len(password) < PASSWORD_MIN_LENGTH:
        errors.append(f"パスワードは{PASSWORD_MIN_LENGTH}文字以上で入力してください")
    if not re.search(r"[a-z]", password):
        errors.append("小文字を含む必要があります")
    if not re.search(r"[A-Z]", password):
        errors.append("大文字を含む必要があります")
    if not re.search(r"\d", password):
        errors.append("数字を含む必要があります")
    if not any(ch in PASSWORD_SPECIAL_CHARS for ch in password):
        errors.append(f"特殊文字({PASSWORD_SPECIAL_CHARS})を含む必要があります")
    return errors


def require_strong_password(password: str) -> str:
    errors = password_errors(password)
    if errors:
        raise ValidationError(" / ".join(errors))
    return password


_EVENT_HANDLER_RE = re.compile(r"on\w+=", re.IGNORECASE)
_JS_URL_RE = re.compile(r"javascript:", re.IGNORECASE)


def sanitize_input(value: str) -> str:
    """Strip tags, quotes, javascript: URLs and inline handlers from free text."""
    value = re.sub(r"[<>]", "", value or "")
    value = re.sub(r"['\"]", "", value)
    value = _JS_URL_RE.sub("", value)
    value = _EVENT_HANDLER_RE.sub("", value)
    return value.strip()


def password_matches(password_hash: str, password: str) -> bool:
    try:
        return check_password_hash(password_hash or "", password or "")
    except ValueError:
        # e.g. placeholder hashes like 'CHANGE_ME' or corrupted values
        return False
