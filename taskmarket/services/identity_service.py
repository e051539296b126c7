import logging
from typing import Any, Callable, Dict, List

import bcrypt

from taskmarket.database import models
from taskmarket.repositories.interfaces import IUserRepository, IPermissionRepository
from taskmarket.services.permission_service import PermissionService, parse_user_mode
from taskmarket.services.token_service import TokenService
from taskmarket.services.exceptions import (
    UserCreationError, UserNotFoundError, AuthenticationError
)
from taskmarket.utils.time_utils import utcnow

logger = logging.getLogger(__name__)


def hash_password(password: str) -> str:
    return bcrypt.hashpw(password.encode('utf-8'), bcrypt.gensalt()).decode('utf-8')


def verify_password(password: str, password_hash: str) -> bool:
    try:
        return bcrypt.checkpw(password.encode('utf-8'), password_hash.encode('utf-8'))
    except ValueError:
        # 저장된 해시가 bcrypt 형식이 아닌 경우
        return False


class IdentityService:
    """사용자 등록, 인증, 토큰 발급 및 운영 모드 전환 서비스를 제공합니다."""

    def __init__(
        self,
        user_repo: IUserRepository,
        permission_repo: IPermissionRepository,
        permission_service: PermissionService,
        token_service: TokenService,
        clock: Callable = utcnow,
    ):
        """
        IdentityService를 초기화합니다.

        Args:
            user_repo: 사용자 데이터에 접근하기 위한 리포지토리.
            permission_repo: 제한 권한 키 검증에 사용할 권한 리포지토리.
            permission_service: 유효 권한 집합을 계산하는 서비스.
            token_service: 토큰을 서명/검증하는 서비스.
            clock: 현재 UTC 시각을 반환하는 함수.
        """
        self.user_repo = user_repo
        self.permission_repo = permission_repo
        self.permission_service = permission_service
        self.token_service = token_service
        self.clock = clock

    def create_user(self, username: str, email: str, password: str, mode: str = "taskDoer") -> Dict[str, Any]:
        """
        새로운 사용자를 생성합니다. 비밀번호는 bcrypt로 해시하여 저장합니다.

        Raises:
            UserCreationError: 필수 값이 없거나 동일한 이름/이메일의 사용자가 이미 존재할 때.
            InvalidModeError: mode가 taskDoer/taskGiver가 아닐 때.
        """
        if not username or not email or not password:
            raise UserCreationError("username, email and password are required.")
        user_mode = parse_user_mode(mode)

        if self.user_repo.find_by_username(username):
            raise UserCreationError(f"User with username '{username}' already exists.")
        if self.user_repo.find_by_email(email):
            raise UserCreationError(f"User with email '{email}' already exists.")

        new_user = models.User(
            username=username,
            email=email,
            password_hash=hash_password(password),
            mode=user_mode,
        )
        created_user = self.user_repo.create(new_user)
        logger.info("User %s created (mode=%s)", created_user.id, user_mode.value)
        return self._serialize_user(created_user)

    def authenticate(self, email: str, password: str) -> Dict[str, Any]:
        """
        자격증명을 검증하고, 성공 시 현재 모드의 권한 집합을 담은 토큰을 발급합니다.

        Raises:
            AuthenticationError: 사용자 또는 비밀번호가 올바르지 않거나 계정이 비활성일 때.
            PermissionLookupError: 권한 집계에 실패했을 때.
        """
        user = self.user_repo.find_by_email(email)
        if not user:
            raise AuthenticationError("Invalid email or password.")

        if not verify_password(password, user.password_hash):
            raise AuthenticationError("Invalid email or password.")

        if user.status != models.UserStatus.ACTIVE:
            raise AuthenticationError("Account is not active.")

        token = self._issue_token(user)
        self.user_repo.update_last_login(user, self.clock())
        logger.info("User %s logged in (mode=%s)", user.id, user.mode.value)
        return {**token, "user": self._serialize_user(user)}

    def switch_mode(self, user_id: int, mode: str) -> Dict[str, Any]:
        """
        사용자의 운영 모드를 전환하고 새 모드의 권한 집합으로 토큰을 재발급합니다.
        이전 토큰에 담긴 권한 집합은 더 이상 현재 모드를 반영하지 않습니다.

        Raises:
            UserNotFoundError: 해당 ID의 사용자를 찾을 수 없을 때.
            InvalidModeError: mode가 taskDoer/taskGiver가 아닐 때.
        """
        user_mode = parse_user_mode(mode)
        user = self.user_repo.find_by_id(user_id)
        if not user:
            raise UserNotFoundError(f"User with id '{user_id}' not found.")

        user = self.user_repo.update_mode(user, user_mode)
        logger.info("User %s switched mode to %s", user_id, user_mode.value)
        return {**self._issue_token(user), "user": self._serialize_user(user)}

    def set_restricted_permissions(self, user_id: int, permission_keys: List[str]) -> Dict[str, Any]:
        """
        사용자의 제한 권한 목록을 교체합니다. 다음 토큰 발급부터 적용됩니다.

        Raises:
            UserNotFoundError: 해당 ID의 사용자를 찾을 수 없을 때.
            ValueError: 목록이 아니거나 존재하지 않는 권한 키가 포함되었을 때.
        """
        if not isinstance(permission_keys, list):
            raise ValueError("restricted_permissions must be a list.")

        user = self.user_repo.find_by_id(user_id)
        if not user:
            raise UserNotFoundError(f"User with id '{user_id}' not found.")

        known_keys = set(self.permission_repo.list_all_keys())
        unknown = sorted(set(permission_keys) - known_keys)
        if unknown:
            raise ValueError(f"Unknown permission keys: {', '.join(unknown)}")

        old = set(user.restricted_permissions or [])
        user = self.user_repo.update_restricted_permissions(user, sorted(set(permission_keys)))
        logger.info(
            "Restrictions updated for user %s (added=%s, removed=%s)",
            user_id, sorted(set(permission_keys) - old), sorted(old - set(permission_keys))
        )
        return {"id": user.id, "restricted_permissions": user.restricted_permissions or []}

    def validate_token(self, token: str) -> Dict[str, Any]:
        """
        인증 토큰의 유효성을 검증하고, 유효하면 토큰 데이터를 반환합니다.

        Raises:
            TokenInvalidError: 토큰이 유효하지 않거나 만료되었을 때.
        """
        return self.token_service.verify(token)

    def _issue_token(self, user: models.User) -> Dict[str, str]:
        permissions = self.permission_service.get_user_permissions(user.id, user.mode)
        roles = self.permission_service.get_user_roles(user.id)
        return self.token_service.issue(
            user_id=user.id,
            mode=user.mode.value,
            roles=roles,
            permissions=permissions,
            restricted=user.restricted_permissions or [],
        )

    def _serialize_user(self, user: models.User) -> Dict[str, Any]:
        return {
            "id": user.id,
            "username": user.username,
            "email": user.email,
            "role": user.role,
            "mode": user.mode.value,
        }
