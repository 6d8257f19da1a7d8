"""Constants and defaults.

Note: Keep constants here to avoid magic numbers spread across code.
"""

DEFAULT_LATE_GRACE_MINUTES = 5
DEFAULT_SESSION_HOURS = 8

# Login lockout
MAX_LOGIN_ATTEMPTS = 5
LOCKOUT_MINUTES = 30

# Password policy
PASSWORD_MIN_LENGTH = 8
PASSWORD_SPECIAL_CHARS = "@$!%*?&"

# API rate limit (requests per window)
API_RATE_LIMIT_COUNT = 100
API_RATE_LIMIT_WINDOW_SECONDS = 15 * 60

# Security log ring buffer
SECURITY_LOG_MAX = 1000
SECURITY_LOG_KEEP = 500

# QR codes
QR_TYPE = "attendance-qr"
QR_VERSION = "1.0"
QR_ALLOWED_LOCATIONS = ("main", "staff-room", "office", "test")
QR_MAX_AGE_HOURS = 24
QR_SCANS_PER_MINUTE = 5
QR_RAPID_SCAN_SECONDS = 5 * 60
QR_ERROR_REPORT_KEEP = 100
BUSINESS_HOURS = (6, 22)

# Paid leave (有給)
# (upper bound of tenure in years, days granted)
PAID_LEAVE_GRANT_TABLE = (
    (0.5, 0),
    (1.5, 10),
    (2.5, 11),
    (3.5, 12),
    (4.5, 14),
    (5.5, 16),
    (6.5, 18),
)
PAID_LEAVE_MAX_DAYS = 20
PAID_LEAVE_VALID_YEARS = 2
PAID_LEAVE_FIRST_GRANT_MONTHS = 6
PAID_LEAVE_EXPIRY_WARNING_DAYS = 30
PAID_LEAVE_EXPIRY_URGENT_DAYS = 7
PAID_LEAVE_LOW_BALANCE_DAYS = 3

# Backup codes
BACKUP_CODE_COUNT = 10
BACKUP_CODE_LENGTH = 8
BACKUP_CODE_CHARSET = "23456789ABCDEFGHJKLMNPQRSTUVWXYZ"
BACKUP_CODE_VALID_DAYS = 365
BACKUP_CODE_RENEW_THRESHOLD = 3
BACKUP_CODE_MIN_SET = 8

# TOTP
MFA_ISSUER = "勤怠管理システム"
TOTP_STEP_SECONDS = 30
TOTP_DIGITS = 6
TOTP_WINDOW = 1
TOTP_SECRET_LENGTH = 32

# Overtime approvals above this many hours are high priority
OVERTIME_HIGH_PRIORITY_HOURS = 3

WEEKDAY_LABELS_JA = "日月火水木金土"
