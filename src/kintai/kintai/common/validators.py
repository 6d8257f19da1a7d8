from __future__ import annotations

import re
from datetime import date
from typing import Any, Optional

from ..core.exceptions import ValidationError
from .datetime_utils import parse_iso_date

_EMAIL_RE = re.compile(r"^[^\s@]+@[^\s@]+\.[^\s@]+$")
_PHONE_RE = re.compile(r"^[0-9\-+().\s]+$")
_STAFF_ID_RE = re.compile(r"^[A-Za-z0-9]{3,}$")


def require_non_empty(value: Optional[str], field_name: str) -> str:
    if not value or not str(value).strip():
        raise ValidationError(f"{field_name}は必須です")
    return str(value).strip()


def require_min_length(value: Optional[str], field_name: str, min_len: int) -> str:
    if value is None or len(value) < min_len:
        raise ValidationError(f"{field_name}は{min_len}文字以上で入力してください")
    return value


def is_valid_email(value: str) -> bool:
    return bool(_EMAIL_RE.match(value or ""))


def is_valid_phone(value: str) -> bool:
    return bool(_PHONE_RE.match(value or "")) and len(value) >= 10


def is_valid_staff_id(value: str) -> bool:
    return bool(_STAFF_ID_RE.match(value or ""))


def require_email(value: Optional[str]) -> str:
    value = require_non_empty(value, "メールアドレス")
    if not is_valid_email(value):
        raise ValidationError("メールアドレスの形式が正しくありません")
    return value


def require_date(value: Any, field_name: str) -> date:
    if isinstance(value, date):
        return value
    try:
        return parse_iso_date(require_non_empty(value, field_name))
    except ValueError:
        raise ValidationError(f"{field_name}の日付形式が正しくありません (YYYY-MM-DD)")


def require_positive_number(value: Any, field_name: str) -> float:
    try:
        number = float(value)
    except (TypeError, ValueError):
        raise ValidationError(f"{field_name}は数値で入力してください")
    if number <= 0:
        raise ValidationError(f"{field_name}は0より大きい値を入力してください")
    return number
