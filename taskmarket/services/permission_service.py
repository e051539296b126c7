import logging
from typing import Any, Dict, List, Set

from sqlalchemy.exc import SQLAlchemyError

from taskmarket.database import models
from taskmarket.database.models.enums import coerce_enum
from taskmarket.repositories.interfaces import (
    IUserRepository, IRoleRepository, IPermissionRepository
)
from taskmarket.services.exceptions import (
    UserNotFoundError, RoleNotFoundError, PermissionNotFoundError,
    InvalidModeError, PermissionLookupError
)

logger = logging.getLogger(__name__)


def parse_user_mode(mode) -> models.UserMode:
    """문자열 모드를 UserMode로 변환합니다. 허용되지 않은 값이면 InvalidModeError."""
    try:
        return coerce_enum(models.UserMode, mode)
    except ValueError as e:
        raise InvalidModeError(str(e)) from e


def parse_permission_mode(mode) -> models.PermissionMode:
    """문자열 모드를 PermissionMode로 변환합니다. 허용되지 않은 값이면 InvalidModeError."""
    try:
        return coerce_enum(models.PermissionMode, mode)
    except ValueError as e:
        raise InvalidModeError(str(e)) from e


class PermissionService:
    """역할(Role)과 권한(Permission)을 기반으로 사용자의 유효 권한을 계산하고 관리합니다."""

    def __init__(self, user_repo: IUserRepository, role_repo: IRoleRepository, permission_repo: IPermissionRepository):
        """
        PermissionService를 초기화합니다.

        Args:
            user_repo: 사용자 데이터에 접근하기 위한 리포지토리.
            role_repo: 역할 및 사용자-역할 연결에 접근하기 위한 리포지토리.
            permission_repo: 권한 및 역할-권한 연결에 접근하기 위한 리포지토리.
        """
        self.user_repo = user_repo
        self.role_repo = role_repo
        self.permission_repo = permission_repo

    def get_user_permissions(self, user_id: int, mode) -> Set[str]:
        """
        사용자가 현재 모드에서 사용할 수 있는 권한 키의 집합을 계산합니다.

        보유한 역할 중 하나라도 is_universal이면 시스템의 모든 권한을 반환합니다.
        그 외에는 각 역할의 RolePermission 중 allow가 True이고 mode가 'all' 또는
        현재 모드인 항목의 권한 키를 모두 합칩니다. 역할이 없으면 빈 집합입니다.

        Args:
            user_id: 권한을 계산할 사용자의 ID.
            mode: 사용자의 현재 운영 모드 (taskDoer 또는 taskGiver).

        Returns:
            중복이 제거된 권한 키 집합.

        Raises:
            InvalidModeError: mode가 taskDoer/taskGiver가 아닐 때.
            PermissionLookupError: 역할/권한 조회 중 저장소 오류가 발생했을 때.
        """
        user_mode = parse_user_mode(mode)
        try:
            roles = self.role_repo.list_for_user(user_id)
            if not roles:
                return set()

            if any(role.is_universal for role in roles):
                return set(self.permission_repo.list_all_keys())

            role_ids = [role.id for role in roles]
            return set(self.permission_repo.list_granted_keys(role_ids, user_mode))
        except SQLAlchemyError as e:
            logger.exception("Permission lookup failed for user %s (mode=%s)", user_id, user_mode.value)
            raise PermissionLookupError(f"Failed to compute permissions for user '{user_id}'.") from e

    def get_user_roles(self, user_id: int) -> List[Dict[str, Any]]:
        """
        사용자가 보유한 역할 목록을 조회합니다.

        Raises:
            PermissionLookupError: 역할 조회 중 저장소 오류가 발생했을 때.
        """
        try:
            roles = self.role_repo.list_for_user(user_id)
        except SQLAlchemyError as e:
            logger.exception("Role lookup failed for user %s", user_id)
            raise PermissionLookupError(f"Failed to load roles for user '{user_id}'.") from e
        return [{"id": r.id, "key": r.key, "label": r.label} for r in roles]

    def user_has_permission(self, user_id: int, permission_key: str, mode) -> bool:
        """사용자가 현재 모드에서 특정 권한을 가지고 있는지 확인합니다."""
        return permission_key in self.get_user_permissions(user_id, mode)

    def list_roles(self) -> List[Dict[str, Any]]:
        """모든 역할의 목록을 조회합니다."""
        return [
            {"id": r.id, "key": r.key, "label": r.label, "is_universal": bool(r.is_universal)}
            for r in self.role_repo.list_all()
        ]

    def list_permissions(self) -> List[Dict[str, Any]]:
        """모든 권한의 목록을 조회합니다."""
        return [
            {"id": p.id, "key": p.key, "label": p.label, "group": p.group}
            for p in self.permission_repo.list_all()
        ]

    def assign_role(self, user_id: int, role_key: str) -> bool:
        """
        사용자에게 역할을 부여합니다. 이미 보유한 역할이면 아무 일도 일어나지 않습니다.

        Raises:
            UserNotFoundError: 해당 ID의 사용자를 찾을 수 없을 때.
            RoleNotFoundError: 해당 키의 역할을 찾을 수 없을 때.
        """
        user = self.user_repo.find_by_id(user_id)
        if not user: raise UserNotFoundError(f"User with id '{user_id}' not found.")

        role = self.role_repo.find_by_key(role_key)
        if not role: raise RoleNotFoundError(f"Role '{role_key}' not found.")

        self.role_repo.assign_to_user(user, role)
        logger.info("Role '%s' assigned to user %s", role_key, user_id)
        return True

    def revoke_role(self, user_id: int, role_key: str) -> bool:
        """
        사용자의 역할을 회수합니다.

        Raises:
            UserNotFoundError: 해당 ID의 사용자를 찾을 수 없을 때.
            RoleNotFoundError: 해당 키의 역할을 찾을 수 없을 때.
        """
        user = self.user_repo.find_by_id(user_id)
        if not user: raise UserNotFoundError(f"User with id '{user_id}' not found.")

        role = self.role_repo.find_by_key(role_key)
        if not role: raise RoleNotFoundError(f"Role '{role_key}' not found.")

        removed = self.role_repo.revoke_from_user(user, role)
        if removed:
            logger.info("Role '%s' revoked from user %s", role_key, user_id)
        return removed

    def grant_permission(self, role_key: str, permission_key: str, mode="all", allow: bool = True) -> Dict[str, Any]:
        """
        역할에 권한을 연결합니다. 같은 (역할, 권한, 모드) 조합이 있으면 allow 값만 갱신합니다.

        Raises:
            RoleNotFoundError: 해당 키의 역할을 찾을 수 없을 때.
            PermissionNotFoundError: 해당 키의 권한을 찾을 수 없을 때.
            InvalidModeError: mode가 all/taskDoer/taskGiver가 아닐 때.
        """
        permission_mode = parse_permission_mode(mode)
        role, permission = self._get_role_and_permission(role_key, permission_key)
        role_permission = self.permission_repo.set_role_permission(role, permission, permission_mode, bool(allow))
        logger.info(
            "Role '%s' permission '%s' set (mode=%s, allow=%s)",
            role_key, permission_key, permission_mode.value, bool(allow)
        )
        return {
            "role": role.key,
            "permission": permission.key,
            "mode": role_permission.mode.value,
            "allow": bool(role_permission.allow),
        }

    def remove_permission(self, role_key: str, permission_key: str, mode="all") -> bool:
        """
        역할과 권한의 연결을 삭제합니다.

        Raises:
            RoleNotFoundError: 해당 키의 역할을 찾을 수 없을 때.
            PermissionNotFoundError: 해당 키의 권한을 찾을 수 없을 때.
            InvalidModeError: mode가 all/taskDoer/taskGiver가 아닐 때.
        """
        permission_mode = parse_permission_mode(mode)
        role, permission = self._get_role_and_permission(role_key, permission_key)
        return self.permission_repo.delete_role_permission(role, permission, permission_mode)

    def _get_role_and_permission(self, role_key: str, permission_key: str):
        role = self.role_repo.find_by_key(role_key)
        if not role: raise RoleNotFoundError(f"Role '{role_key}' not found.")

        permission = self.permission_repo.find_by_key(permission_key)
        if not permission: raise PermissionNotFoundError(f"Permission '{permission_key}' not found.")
        return role, permission
