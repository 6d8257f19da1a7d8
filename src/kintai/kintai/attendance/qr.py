"""Attendance QR codes: payload format, validation and scan guards.

A QR code posted at a work location carries a small JSON document::

    {"type": "attendance-qr", "locationId": "main", "locationName": "本店",
     "timestamp": 1700000000000, "version": "1.0"}

Scans are checked for format, allowed location and age, then per staff for
scan frequency and suspicious timing before a clock-in/out is recorded.
"""

from __future__ import annotations

import json
import logging
import re
import threading
from collections import Counter, deque
from dataclasses import dataclass, field
from datetime import datetime, timedelta
from typing import Any, Callable, Optional, Sequence

from ..common.datetime_utils import now_local, to_epoch_ms
from ..core.constants import (
    BUSINESS_HOURS,
    QR_ALLOWED_LOCATIONS,
    QR_ERROR_REPORT_KEEP,
    QR_MAX_AGE_HOURS,
    QR_RAPID_SCAN_SECONDS,
    QR_SCANS_PER_MINUTE,
    QR_TYPE,
    QR_VERSION,
)
from ..core.enums import QRErrorCode
from ..core.exceptions import QRCodeError, RateLimitError
from ..security.audit import SecurityLogger
from .model import QRPayload

logger = logging.getLogger(__name__)

# printable ASCII, hiragana, katakana and CJK ideographs
_DISALLOWED_CHARS = re.compile(r"[^\x20-\x7E\u3040-\u309F\u30A0-\u30FF\u4E00-\u9FAF]")


def build_payload(location_id: str, location_name: str, *, now: datetime) -> str:
    payload = QRPayload(
        location_id=location_id,
        location_name=location_name,
        timestamp_ms=to_epoch_ms(now),
        version=QR_VERSION,
    )
    return json.dumps(payload.to_dict(), ensure_ascii=False)


def preprocess(data: str) -> str:
    return _DISALLOWED_CHARS.sub("", (data or "").strip())


def validate_payload(
    data: str,
    *,
    now: datetime,
    allowed_locations: Sequence[str] = QR_ALLOWED_LOCATIONS,
    max_age_hours: int = QR_MAX_AGE_HOURS,
) -> QRPayload:
    """Parse and check a scanned payload; raises QRCodeError(VALIDATION_ERROR)."""

    def invalid(message: str) -> QRCodeError:
        return QRCodeError(message, QRErrorCode.VALIDATION_ERROR.value)

    try:
        parsed = json.loads(data)
    except (TypeError, ValueError):
        raise invalid("QRコードの解析に失敗しました")
    if not isinstance(parsed, dict):
        raise invalid("QRコードの解析に失敗しました")

    if parsed.get("type") != QR_TYPE:
        raise invalid("無効なQRコードタイプです")
    if not parsed.get("locationId") or not parsed.get("locationName"):
        raise invalid("場所情報が不足しています")
    if not parsed.get("timestamp") or not parsed.get("version"):
        raise invalid("QRコードメタデータが不足しています")
    if allowed_locations and parsed["locationId"] not in allowed_locations:
        raise invalid("許可されていない場所のQRコードです")

    try:
        timestamp_ms = int(parsed["timestamp"])
    except (TypeError, ValueError):
        raise invalid("QRコードメタデータが不足しています")
    if to_epoch_ms(now) - timestamp_ms > max_age_hours * 60 * 60 * 1000:
        raise invalid("QRコードの有効期限が切れています")

    return QRPayload(
        location_id=str(parsed["locationId"]),
        location_name=str(parsed["locationName"]),
        timestamp_ms=timestamp_ms,
        version=str(parsed["version"]),
    )


@dataclass(frozen=True)
class QRErrorReport:
    timestamp: datetime
    code: str
    message: str
    context: dict[str, Any] = field(default_factory=dict)
    staff_id: Optional[str] = None

    def to_dict(self) -> dict:
        return {
            "timestamp": self.timestamp.isoformat(),
            "code": self.code,
            "message": self.message,
            "context": self.context,
            "staff_id": self.staff_id,
        }


class QRErrorReporter:
    """Keeps the latest QR failures for the admin dashboard."""

    def __init__(
        self,
        audit: Optional[SecurityLogger] = None,
        *,
        keep: int = QR_ERROR_REPORT_KEEP,
        clock: Callable[[], datetime] = now_local,
    ):
        self._audit = audit
        self._clock = clock
        self._reports: deque[QRErrorReport] = deque(maxlen=keep)
        self._lock = threading.Lock()

    def report(self, error: QRCodeError, context: Optional[dict] = None, staff_id: Optional[str] = None) -> QRErrorReport:
        entry = QRErrorReport(
            timestamp=self._clock(),
            code=error.code,
            message=str(error),
            context=dict(context or {}),
            staff_id=staff_id,
        )
        with self._lock:
            self._reports.append(entry)

        logger.error("QR code error %s: %s staff=%s details=%s", error.code, error, staff_id, error.details)
        if error.code == QRErrorCode.SECURITY_ERROR.value:
            logger.warning("SECURITY ALERT: %s", entry.to_dict())
            if self._audit is not None:
                self._audit.log("QR_SECURITY_ERROR", staff_id, reason=error.details)
        return entry

    def summary(self) -> dict:
        now = self._clock()
        with self._lock:
            reports = list(self._reports)
        last_day = [r for r in reports if now - r.timestamp < timedelta(hours=24)]
        return {
            "total": len(last_day),
            "error_counts": dict(Counter(r.code for r in last_day)),
            "recent_errors": [r.to_dict() for r in reports[-10:]],
        }


class QRScanGuard:
    """Per-staff scan frequency limit and suspicious-activity detection."""

    def __init__(
        self,
        *,
        scans_per_minute: int = QR_SCANS_PER_MINUTE,
        rapid_scan_seconds: int = QR_RAPID_SCAN_SECONDS,
        business_hours: tuple[int, int] = BUSINESS_HOURS,
        clock: Callable[[], datetime] = now_local,
    ):
        self._limit = scans_per_minute
        self._rapid = timedelta(seconds=rapid_scan_seconds)
        self._open_hour, self._close_hour = business_hours
        self._clock = clock
        self._scans: dict[str, list[datetime]] = {}
        self._last_scan: dict[str, datetime] = {}
        self._lock = threading.Lock()

    def record_scan(self, staff_id: str) -> None:
        """Register a scan; raises RateLimitError past the per-minute limit."""

        now = self._clock()
        with self._lock:
            recent = [t for t in self._scans.get(staff_id, []) if now - t < timedelta(minutes=1)]
            if len(recent) >= self._limit:
                self._scans[staff_id] = recent
                raise RateLimitError("スキャン頻度が高すぎます。1分後に再試行してください")
            recent.append(now)
            self._scans[staff_id] = recent

    def suspicious_reason(self, staff_id: str) -> Optional[str]:
        """Check the current scan, then remember it as the latest one."""

        now = self._clock()
        with self._lock:
            previous = self._last_scan.get(staff_id)
            self._last_scan[staff_id] = now

        if now.hour >= self._close_hour or now.hour < self._open_hour:
            return "営業時間外のアクセスです"
        if previous is not None and now - previous < self._rapid:
            return "短時間での連続アクセスです"
        return None
