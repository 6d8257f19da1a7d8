from __future__ import annotations

import re
from datetime import datetime, timedelta

from kintai.security import backup_codes
from kintai.security.backup_codes import BackupCode, BackupCodeSet

NOW = datetime(2025, 6, 11, 9, 0)


def _set(*codes: str) -> BackupCodeSet:
    return BackupCodeSet(user_id=2, codes=tuple(BackupCode(c) for c in codes), generated_at=NOW)


def test_generated_set_is_unique_and_well_formed():
    code_set = backup_codes.generate_code_set(2, now=NOW)

    codes = [c.code for c in code_set.codes]
    assert len(codes) == 10
    assert len(set(codes)) == 10
    assert all(re.fullmatch(r"[2-9A-HJ-NP-Z]{4}-[2-9A-HJ-NP-Z]{4}", c) for c in codes)
    assert backup_codes.check_code_security(codes)["is_secure"] is True


def test_code_is_usable_once_and_input_is_normalised():
    code_set = _set("ABCD-EFGH", "JKLM-NPQR")

    first = backup_codes.validate_and_use(code_set, " abcd efgh ", now=NOW)
    assert first.valid
    assert first.message == "認証成功。残り1個のバックアップコードが利用可能です"
    assert first.code_set.last_used == NOW

    again = backup_codes.validate_and_use(first.code_set, "ABCDEFGH", now=NOW)
    assert not again.valid
    assert again.message == "このバックアップコードは既に使用済みです"

    unknown = backup_codes.validate_and_use(code_set, "ZZZZ-ZZZZ", now=NOW)
    assert not unknown.valid
    assert unknown.code_set is code_set


def test_renewal_is_needed_when_few_left_or_expired():
    code_set = backup_codes.generate_code_set(2, now=NOW)
    assert not backup_codes.needs_new_set(code_set, now=NOW)
    assert backup_codes.needs_new_set(code_set, now=NOW + timedelta(days=366))

    for code in code_set.remaining_codes[:7]:
        code_set = backup_codes.validate_and_use(code_set, code, now=NOW).code_set
    assert backup_codes.remaining_count(code_set) == 3
    assert backup_codes.needs_new_set(code_set, now=NOW)

    stats = backup_codes.usage_stats(code_set)
    assert (stats["used"], stats["remaining"], stats["usage_rate"]) == (7, 3, 70)


def test_security_check_reports_every_problem():
    report = backup_codes.check_code_security(["ABCD-EFGH", "ABCD-EFGH", "bad"])

    assert report["is_secure"] is False
    assert report["issues"] == [
        "バックアップコードの数が不足しています",
        "フォーマットが不正なコードが含まれています",
        "重複したコードが含まれています",
    ]


def test_display_and_copy_text():
    assert backup_codes.format_for_display(["ABCD-EFGH", "JKLMNPQR"]) == ["01. ABCD-EFGH", "02. JKLM-NPQR"]

    text = backup_codes.copy_text(["ABCD-EFGH"], name="山田", email="s001@example.com", now=NOW)
    assert "ユーザー: 山田 (s001@example.com)" in text
    assert "01. ABCD-EFGH" in text
