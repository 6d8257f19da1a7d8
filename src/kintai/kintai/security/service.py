from __future__ import annotations

import logging
from collections import Counter
from datetime import datetime
from typing import Callable, Optional

from ..common.datetime_utils import now_local
from ..common.qr_image import render_png_data_url
from ..common.validators import is_valid_email, is_valid_phone, require_non_empty
from ..core.enums import ContactMethod, EmergencyRequestType, EmergencyStatus, Priority, Role
from ..core.exceptions import (
    AuthenticationError,
    AuthorizationError,
    ConflictError,
    NotFoundError,
    ValidationError,
)
from ..notifications.service import NotificationService
from ..users.model import User
from ..users.repository import UserRepository
from . import backup_codes, totp
from .audit import SecurityLogger
from .limits import LoginAttemptManager
from .model import EmergencyAccessRequest, EmergencyContact
from .policy import password_matches, sanitize_input
from .repository import BackupCodeRepository, EmergencyRepository

logger = logging.getLogger(__name__)


class MfaService:
    """Authenticator-app setup and the backup-code lifecycle."""

    def __init__(
        self,
        users: UserRepository,
        codes: BackupCodeRepository,
        audit: SecurityLogger,
        *,
        clock: Callable[[], datetime] = now_local,
    ):
        self._users = users
        self._codes = codes
        self._audit = audit
        self._clock = clock

    def _get_user(self, user_id: int) -> User:
        user = self._users.get_by_id(int(user_id))
        if not user:
            raise NotFoundError("ユーザーが見つかりません")
        return user

    def begin_setup(self, user_id: int) -> dict:
        user = self._get_user(user_id)
        if user.mfa_enabled:
            raise ConflictError("多要素認証は既に有効です")

        secret = totp.generate_secret()
        self._users.set_mfa(user.user_id, enabled=False, secret=secret)
        uri = totp.provisioning_uri(secret, user.email or user.staff_id)
        code_set = self._issue_codes(user.user_id)
        self._audit.log("MFA_SETUP_STARTED", user.staff_id)
        return {
            "secret": secret,
            "uri": uri,
            "qr_code": render_png_data_url(uri),
            "backup_codes": [c.code for c in code_set.codes],
        }

    def enable(self, user_id: int, code: str) -> None:
        user = self._get_user(user_id)
        if not user.mfa_secret:
            raise ValidationError("先に多要素認証のセットアップを行ってください")
        if not totp.verify(user.mfa_secret, code, at=self._clock()):
            self._audit.log("MFA_ENABLE_FAILED", user.staff_id)
            raise ValidationError("認証コードが正しくありません")
        self._users.set_mfa(user.user_id, enabled=True, secret=user.mfa_secret)
        self._audit.log("MFA_ENABLED", user.staff_id)

    def disable(self, user_id: int, *, password: str) -> None:
        user = self._get_user(user_id)
        if not password_matches(user.password_hash, password):
            raise AuthenticationError("パスワードが正しくありません")
        self.force_disable(user.user_id)

    def force_disable(self, user_id: int) -> None:
        user = self._get_user(user_id)
        self._users.set_mfa(user.user_id, enabled=False, secret=None)
        self._codes.delete_for_user(user.user_id)
        self._audit.log("MFA_DISABLED", user.staff_id)

    def verify_second_factor(self, user: User, *, otp: Optional[str] = None, backup_code: Optional[str] = None) -> str:
        """Check an OTP or consume a backup code; returns a message for the client."""

        now = self._clock()
        if otp:
            if user.mfa_secret and totp.verify(user.mfa_secret, otp, at=now):
                return "認証成功"
            self._audit.log("MFA_OTP_FAILED", user.staff_id)
            raise AuthenticationError("認証コードが正しくありません", mfa_required=True)

        if backup_code:
            code_set = self._codes.get_for_user(user.user_id)
            if not code_set:
                raise AuthenticationError("バックアップコードが登録されていません", mfa_required=True)
            result = backup_codes.validate_and_use(code_set, backup_code, now=now)
            if not result.valid:
                self._audit.log("BACKUP_CODE_FAILED", user.staff_id, reason=result.message)
                raise AuthenticationError(result.message, mfa_required=True)
            self._codes.save(result.code_set)
            self._audit.log("BACKUP_CODE_USED", user.staff_id, remaining=len(result.code_set.remaining_codes))
            return result.message

        raise AuthenticationError("認証コードを入力してください", mfa_required=True)

    def _issue_codes(self, user_id: int) -> backup_codes.BackupCodeSet:
        code_set = backup_codes.generate_code_set(user_id, now=self._clock())
        self._codes.save(code_set)
        return code_set

    def regenerate_backup_codes(self, user_id: int) -> dict:
        user = self._get_user(user_id)
        code_set = self._issue_codes(user.user_id)
        codes = [c.code for c in code_set.codes]
        self._audit.log("BACKUP_CODES_REGENERATED", user.staff_id)
        return {
            "codes": codes,
            "display": backup_codes.format_for_display(codes),
            "copy_text": backup_codes.copy_text(
                codes, name=user.name, email=user.email or user.staff_id, now=code_set.generated_at
            ),
            "security": backup_codes.check_code_security(codes),
        }

    def backup_code_status(self, user_id: int) -> dict:
        code_set = self._codes.get_for_user(int(user_id))
        if not code_set:
            return {"configured": False, "needs_new_set": True}
        now = self._clock()
        stats = backup_codes.usage_stats(code_set)
        stats.update(
            configured=True,
            expired=backup_codes.is_expired(code_set, now=now),
            needs_new_set=backup_codes.needs_new_set(code_set, now=now),
        )
        return stats


class EmergencyAccessService:
    """Requests for help when a user lost their second factor or account access."""

    def __init__(
        self,
        emergency: EmergencyRepository,
        users: UserRepository,
        mfa: MfaService,
        login_attempts: LoginAttemptManager,
        audit: SecurityLogger,
        notifications: Optional[NotificationService] = None,
        *,
        clock: Callable[[], datetime] = now_local,
    ):
        self._emergency = emergency
        self._users = users
        self._mfa = mfa
        self._login_attempts = login_attempts
        self._audit = audit
        self._notifications = notifications
        self._clock = clock

    def create_request(
        self,
        *,
        staff_id: str,
        request_type: str,
        reason: str,
        contact_method: str,
        contact_info: str,
    ) -> EmergencyAccessRequest:
        user = self._users.get_by_staff_id(require_non_empty(staff_id, "スタッフID"))
        if not user:
            raise NotFoundError("ユーザーが見つかりません")

        try:
            kind = EmergencyRequestType(request_type)
            method = ContactMethod(contact_method)
        except ValueError:
            raise ValidationError("リクエストの種類または連絡方法が正しくありません")

        reason = sanitize_input(require_non_empty(reason, "理由"))
        contact_info = require_non_empty(contact_info, "連絡先")
        if method == ContactMethod.EMAIL and not is_valid_email(contact_info):
            raise ValidationError("メールアドレスの形式が正しくありません")
        if method == ContactMethod.PHONE and not is_valid_phone(contact_info):
            raise ValidationError("電話番号の形式が正しくありません")

        now = self._clock()
        request_id = self._emergency.create(
            user_id=user.user_id,
            request_type=kind,
            reason=reason,
            contact_method=method,
            contact_info=contact_info,
            requested_at=now,
        )
        self._audit.log("EMERGENCY_REQUEST_CREATED", user.staff_id, request_type=kind.value)
        logger.warning("emergency access requested: staff=%s type=%s", user.staff_id, kind.value)
        return EmergencyAccessRequest(
            request_id=request_id,
            user_id=user.user_id,
            request_type=kind,
            reason=reason,
            contact_method=method,
            contact_info=contact_info,
            status=EmergencyStatus.PENDING,
            requested_at=now,
        )

    def process(
        self,
        request_id: int,
        *,
        current_role: Role,
        admin_user_id: int,
        approve: bool,
        admin_notes: Optional[str] = None,
    ) -> EmergencyAccessRequest:
        if current_role != Role.ADMIN:
            raise AuthorizationError("緊急アクセス要求は管理者のみ処理できます")

        req = self._emergency.get(int(request_id))
        if not req:
            raise NotFoundError("緊急アクセス要求が見つかりません")
        if req.status != EmergencyStatus.PENDING:
            raise ConflictError("この要求は既に処理済みです")

        status = EmergencyStatus.APPROVED if approve else EmergencyStatus.REJECTED
        now = self._clock()
        notes = admin_notes.strip() if admin_notes else None
        if not self._emergency.mark_processed(
            req.request_id, status=status, processed_by=int(admin_user_id), processed_at=now, admin_notes=notes
        ):
            raise ConflictError("この要求は既に処理済みです")

        if approve:
            self._apply(req)

        user = self._users.get_by_id(req.user_id)
        staff_id = user.staff_id if user else str(req.user_id)
        self._audit.log(
            "EMERGENCY_REQUEST_PROCESSED", staff_id, request_type=req.request_type.value, status=status.value
        )
        if self._notifications is not None:
            self._notifications.send_system_message(
                "緊急アクセス要求が処理されました",
                "緊急アクセス要求が承認されました" if approve else "緊急アクセス要求が却下されました",
                target_user_id=req.user_id,
                priority=Priority.HIGH,
            )

        return EmergencyAccessRequest(
            request_id=req.request_id,
            user_id=req.user_id,
            request_type=req.request_type,
            reason=req.reason,
            contact_method=req.contact_method,
            contact_info=req.contact_info,
            status=status,
            requested_at=req.requested_at,
            processed_at=now,
            processed_by=int(admin_user_id),
            admin_notes=notes,
        )

    def _apply(self, req: EmergencyAccessRequest) -> None:
        user = self._users.get_by_id(req.user_id)
        if not user:
            raise NotFoundError("ユーザーが見つかりません")

        if req.request_type == EmergencyRequestType.BACKUP_CODE_RESET:
            self._mfa.regenerate_backup_codes(user.user_id)
        elif req.request_type == EmergencyRequestType.MFA_DISABLE:
            self._mfa.force_disable(user.user_id)
        elif req.request_type == EmergencyRequestType.ACCOUNT_RECOVERY:
            self._login_attempts.reset(user.staff_id)
            self._users.set_active(user.user_id, is_active=True)

    def list_requests(self, *, current_role: Role, status: Optional[str] = None) -> list[EmergencyAccessRequest]:
        if current_role != Role.ADMIN:
            raise AuthorizationError("緊急アクセス要求は管理者のみ閲覧できます")
        return list(self._emergency.list_all(status=EmergencyStatus(status) if status else None))

    def stats(self, *, current_role: Role) -> dict:
        requests = self.list_requests(current_role=current_role)
        by_status = Counter(r.status for r in requests)
        recent = sorted(requests, key=lambda r: r.requested_at, reverse=True)[:5]
        return {
            "total": len(requests),
            "pending": by_status[EmergencyStatus.PENDING],
            "approved": by_status[EmergencyStatus.APPROVED],
            "rejected": by_status[EmergencyStatus.REJECTED],
            "by_type": dict(Counter(r.request_type.value for r in requests)),
            "recent": [r.to_dict() for r in recent],
        }

    def set_contact(
        self,
        user_id: int,
        *,
        name: str,
        relationship: Optional[str] = None,
        email: Optional[str] = None,
        phone: Optional[str] = None,
    ) -> EmergencyContact:
        name = (name or "").strip()
        email = (email or "").strip() or None
        phone = (phone or "").strip() or None
        if not name or (not email and not phone):
            raise ValidationError("緊急連絡先には名前と連絡方法（メールまたは電話）が必要です")
        if email and not is_valid_email(email):
            raise ValidationError("メールアドレスの形式が正しくありません")
        if phone and not is_valid_phone(phone):
            raise ValidationError("電話番号の形式が正しくありません")

        contact = EmergencyContact(
            user_id=int(user_id), name=name, relationship=relationship, email=email, phone=phone, verified=False
        )
        self._emergency.save_contact(contact)
        return contact

    def get_contact(self, user_id: int) -> Optional[EmergencyContact]:
        return self._emergency.get_contact(int(user_id))
