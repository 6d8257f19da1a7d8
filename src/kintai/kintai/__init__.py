"""Kintai (勤怠) attendance package.

Organized by feature modules (users, attendance, shifts, approvals,
paid_leave, ...) with a thin Flask JSON controller layer on top of
service/repository layers.
"""

__version__ = "1.0.0"
