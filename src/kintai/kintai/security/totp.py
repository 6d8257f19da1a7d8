"""RFC 6238 time-based one-time passwords for the authenticator-app login step."""

from __future__ import annotations

import base64
import hashlib
import hmac
import secrets
import struct
import unicodedata
from datetime import datetime
from typing import Union
from urllib.parse import quote

from ..core.constants import MFA_ISSUER, TOTP_DIGITS, TOTP_SECRET_LENGTH, TOTP_STEP_SECONDS, TOTP_WINDOW

_BASE32_ALPHABET = "ABCDEFGHIJKLMNOPQRSTUVWXYZ234567"


def generate_secret(length: int = TOTP_SECRET_LENGTH) -> str:
    return "".join(secrets.choice(_BASE32_ALPHABET) for _ in range(length))


def provisioning_uri(secret: str, account: str, issuer: str = MFA_ISSUER) -> str:
    issuer_q = quote(issuer, safe="")
    return f"otpauth://totp/{issuer_q}:{quote(account, safe='')}?secret={secret}&issuer={issuer_q}"


def _decode_secret(secret: str) -> bytes:
    cleaned = secret.replace(" ", "").upper()
    padding = "=" * (-len(cleaned) % 8)
    return base64.b32decode(cleaned + padding)


def time_step(at: datetime, step_seconds: int = TOTP_STEP_SECONDS) -> int:
    return int(at.timestamp()) // step_seconds


def code_for_step(secret: str, counter: int, digits: int = TOTP_DIGITS) -> str:
    digest = hmac.new(_decode_secret(secret), struct.pack(">Q", counter), hashlib.sha1).digest()
    offset = digest[-1] & 0x0F
    value = struct.unpack(">I", digest[offset : offset + 4])[0] & 0x7FFFFFFF
    return str(value % (10**digits)).zfill(digits)


def current_code(secret: str, *, at: datetime) -> str:
    return code_for_step(secret, time_step(at))


def verify(secret: str, code: Union[str, int, None], *, at: datetime, window: int = TOTP_WINDOW) -> bool:
    if isinstance(code, int) and not isinstance(code, bool):
        # JSON numbers lose leading zeros
        code = str(code).zfill(TOTP_DIGITS)
    if not isinstance(code, str):
        return False
    # IME input arrives as full-width digits
    code = unicodedata.normalize("NFKC", code).strip().replace(" ", "")
    if not (code.isascii() and code.isdigit()) or len(code) != TOTP_DIGITS:
        return False
    counter = time_step(at)
    return any(
        hmac.compare_digest(code_for_step(secret, counter + offset), code) for offset in range(-window, window + 1)
    )
