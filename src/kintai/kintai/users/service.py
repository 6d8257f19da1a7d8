from __future__ import annotations

import logging
from dataclasses import dataclass
from datetime import date
from typing import Optional

from werkzeug.security import generate_password_hash

from ..common.validators import (
    is_valid_email,
    is_valid_phone,
    is_valid_staff_id,
    require_non_empty,
)
from ..core.enums import Role
from ..core.exceptions import (
    AuthenticationError,
    AuthorizationError,
    ConflictError,
    NotFoundError,
    RateLimitError,
    ValidationError,
)
from ..paid_leave.repository import PayrollRepository
from ..security.audit import SecurityLogger
from ..security.limits import LoginAttemptManager
from ..security.policy import password_matches, require_strong_password, sanitize_input
from ..security.service import MfaService
from .model import User
from .repository import UserRepository

logger = logging.getLogger(__name__)

INVALID_CREDENTIALS = "スタッフIDまたはパスワードが正しくありません"


@dataclass(frozen=True)
class SessionUser:
    """What we store into the Flask session after login."""

    user_id: int
    staff_id: str
    name: str
    role: Role
    message: Optional[str] = None

    def to_dict(self) -> dict:
        return {"id": self.user_id, "staff_id": self.staff_id, "name": self.name, "role": self.role.value}


class AuthService:
    """Use case: authenticate a user (login), including the MFA step."""

    def __init__(
        self,
        users: UserRepository,
        login_attempts: LoginAttemptManager,
        audit: SecurityLogger,
        mfa: MfaService,
    ):
        self._users = users
        self._attempts = login_attempts
        self._audit = audit
        self._mfa = mfa

    def authenticate(
        self,
        staff_id: str,
        password: str,
        *,
        otp: Optional[str] = None,
        backup_code: Optional[str] = None,
    ) -> SessionUser:
        staff_id = require_non_empty(staff_id, "スタッフID")

        if not self._attempts.can_attempt(staff_id):
            minutes = max(1, int(self._attempts.remaining_lockout(staff_id).total_seconds() // 60) + 1)
            self._audit.log("LOGIN_BLOCKED", staff_id)
            raise RateLimitError(f"ログイン試行回数が上限に達しました。{minutes}分後に再試行してください")

        user = self._users.get_by_staff_id(staff_id)
        if not user or not user.is_active or not password_matches(user.password_hash, password):
            self._attempts.record(staff_id, False)
            self._audit.log("LOGIN_FAILED", staff_id, remaining=self._attempts.remaining_attempts(staff_id))
            raise AuthenticationError(INVALID_CREDENTIALS)

        message = None
        if user.mfa_enabled:
            if not otp and not backup_code:
                raise AuthenticationError("多要素認証コードを入力してください", mfa_required=True)
            try:
                message = self._mfa.verify_second_factor(user, otp=otp, backup_code=backup_code)
            except AuthenticationError:
                self._attempts.record(staff_id, False)
                raise

        self._attempts.record(staff_id, True)
        self._audit.log("LOGIN_SUCCESS", staff_id)
        return SessionUser(user_id=user.user_id, staff_id=user.staff_id, name=user.name, role=user.role, message=message)

    def change_password(self, user_id: int, *, current_password: str, new_password: str) -> None:
        user = self._users.get_by_id(int(user_id))
        if not user:
            raise NotFoundError("ユーザーが見つかりません")
        if not password_matches(user.password_hash, current_password):
            self._audit.log("PASSWORD_CHANGE_FAILED", user.staff_id)
            raise AuthenticationError("現在のパスワードが正しくありません")
        if current_password == new_password:
            raise ValidationError("新しいパスワードは現在のパスワードと異なる必要があります")
        require_strong_password(new_password)

        self._users.update_password(user.user_id, generate_password_hash(new_password))
        self._audit.log("PASSWORD_CHANGED", user.staff_id)


class UserService:
    """Use case: manage staff accounts."""

    def __init__(self, users: UserRepository, payroll: Optional[PayrollRepository] = None):
        self._users = users
        self._payroll = payroll

    def create_user(
        self,
        *,
        current_role: Role,
        staff_id: str,
        name: str,
        email: Optional[str],
        password: str,
        role: Role = Role.STAFF,
        birth_date: Optional[date] = None,
        address: Optional[str] = None,
        phone: Optional[str] = None,
        work_start_date: Optional[date] = None,
    ) -> User:
        if current_role != Role.ADMIN:
            raise AuthorizationError("ユーザー登録は管理者のみ実行できます")

        staff_id = require_non_empty(staff_id, "スタッフID")
        if not is_valid_staff_id(staff_id):
            raise ValidationError("スタッフIDは3文字以上の英数字で入力してください")
        name = sanitize_input(require_non_empty(name, "氏名"))
        email = (email or "").strip() or None
        if email and not is_valid_email(email):
            raise ValidationError("メールアドレスの形式が正しくありません")
        phone = (phone or "").strip() or None
        if phone and not is_valid_phone(phone):
            raise ValidationError("電話番号の形式が正しくありません")
        require_strong_password(password)

        if self._users.get_by_staff_id(staff_id):
            raise ConflictError("このスタッフIDは既に使用されています")

        user_id = self._users.create_user(
            staff_id=staff_id,
            name=name,
            email=email,
            password_hash=generate_password_hash(password),
            role=Role(role),
            birth_date=birth_date,
            address=sanitize_input(address) if address else None,
            phone=phone,
            work_start_date=work_start_date,
        )
        if self._payroll is not None:
            self._payroll.ensure(user_id, work_start_date=work_start_date)
        logger.info("user created: %s (%s)", staff_id, Role(role).value)

        user = self._users.get_by_id(user_id)
        if not user:
            raise NotFoundError("ユーザーが見つかりません")
        return user

    def list_users(self, *, current_role: Role) -> list[User]:
        if current_role not in (Role.ADMIN, Role.CREATOR):
            raise AuthorizationError("ユーザー一覧を閲覧する権限がありません")
        return list(self._users.list_all(active_only=False))

    def get(self, user_id: int) -> User:
        user = self._users.get_by_id(int(user_id))
        if not user:
            raise NotFoundError("ユーザーが見つかりません")
        return user

    def get_by_staff_id(self, staff_id: str) -> User:
        user = self._users.get_by_staff_id(staff_id)
        if not user:
            raise NotFoundError("ユーザーが見つかりません")
        return user

    def update_profile(
        self,
        user_id: int,
        *,
        name: Optional[str] = None,
        email: Optional[str] = None,
        address: Optional[str] = None,
        phone: Optional[str] = None,
        birth_date: Optional[date] = None,
    ) -> User:
        user = self.get(user_id)
        new_name = sanitize_input(name) if name is not None else user.name
        if not new_name:
            raise ValidationError("氏名は必須です")
        new_email = email.strip() if email is not None else user.email
        if new_email and not is_valid_email(new_email):
            raise ValidationError("メールアドレスの形式が正しくありません")
        new_phone = phone.strip() if phone is not None else user.phone
        if new_phone and not is_valid_phone(new_phone):
            raise ValidationError("電話番号の形式が正しくありません")

        self._users.update_profile(
            user.user_id,
            name=new_name,
            email=new_email or None,
            address=sanitize_input(address) if address is not None else user.address,
            phone=new_phone or None,
            birth_date=birth_date if birth_date is not None else user.birth_date,
        )
        return self.get(user.user_id)

    def set_active(self, user_id: int, *, current_role: Role, is_active: bool) -> None:
        if current_role != Role.ADMIN:
            raise AuthorizationError("この操作を行う権限がありません")
        user = self.get(user_id)
        if user.role == Role.ADMIN and not is_active:
            raise ValidationError("管理者アカウントは無効化できません")
        self._users.set_active(user.user_id, is_active=is_active)
