from __future__ import annotations

from datetime import datetime, timedelta, timezone

from kintai.security import totp

# RFC 6238 appendix B secret ("12345678901234567890")
SECRET = "GEZDGNBVGY3TQOJQGEZDGNBVGY3TQOJQ"
T59 = datetime.fromtimestamp(59, tz=timezone.utc)


def test_rfc6238_reference_value():
    assert totp.time_step(T59) == 1
    assert totp.code_for_step(SECRET, 1, digits=8) == "94287082"
    assert totp.current_code(SECRET, at=T59) == "287082"


def test_verify_accepts_one_step_of_clock_drift():
    code = totp.current_code(SECRET, at=T59)

    assert totp.verify(SECRET, code, at=T59 + timedelta(seconds=30))
    assert not totp.verify(SECRET, code, at=T59 + timedelta(seconds=90))


def test_verify_rejects_malformed_codes():
    assert not totp.verify(SECRET, "", at=T59)
    assert not totp.verify(SECRET, "12a456", at=T59)
    assert not totp.verify(SECRET, "94287082", at=T59)
    assert totp.verify(SECRET, " 287 082 ", at=T59)


def test_generated_secret_is_base32():
    secret = totp.generate_secret()

    assert len(secret) == 32
    assert set(secret) <= set("ABCDEFGHIJKLMNOPQRSTUVWXYZ234567")
    assert len(totp.current_code(secret, at=T59)) == 6


def test_provisioning_uri_quotes_issuer_and_account():
    uri = totp.provisioning_uri("ABC", "s001@example.com", issuer="Kintai App")

    assert uri == "otpauth://totp/Kintai%20App:s001%40example.com?secret=ABC&issuer=Kintai%20App"


def test_verify_accepts_full_width_and_numeric_input():
    assert totp.verify(SECRET, "２８７０８２", at=T59)
    assert totp.verify(SECRET, 287082, at=T59)
    assert not totp.verify(SECRET, "２８７ａ８２", at=T59)
    assert not totp.verify(SECRET, ["287082"], at=T59)


def test_numeric_code_keeps_leading_zeros():
    code = totp.current_code(SECRET, at=T59 + timedelta(days=3))

    assert totp.verify(SECRET, int(code), at=T59 + timedelta(days=3))
