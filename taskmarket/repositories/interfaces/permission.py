from abc import ABC, abstractmethod
from typing import Iterable, List, Optional
from taskmarket.database import models

class IPermissionRepository(ABC):
    @abstractmethod
    def find_by_key(self, key: str) -> Optional[models.Permission]:
        """키로 특정 권한을 조회합니다."""
        pass

    @abstractmethod
    def list_all(self) -> List[models.Permission]:
        """모든 권한의 목록을 조회합니다."""
        pass

    @abstractmethod
    def list_all_keys(self) -> List[str]:
        """시스템에 존재하는 모든 권한 키를 조회합니다."""
        pass

    @abstractmethod
    def list_granted_keys(self, role_ids: Iterable[int], mode: models.UserMode) -> List[str]:
        """
        주어진 역할들이 현재 모드에서 허용하는 권한 키를 조회합니다.

        allow가 True이고 mode가 'all' 또는 현재 모드인 RolePermission 행만 대상입니다.
        중복 제거는 호출자가 담당합니다.

        Args:
            role_ids: 조회할 역할 ID 목록.
            mode: 사용자의 현재 운영 모드.

        Returns:
            권한 키 문자열의 리스트 (중복 가능).
        """
        pass

    @abstractmethod
    def set_role_permission(
        self, role: models.Role, permission: models.Permission, mode: models.PermissionMode, allow: bool
    ) -> models.RolePermission:
        """(역할, 권한, 모드) 조합의 RolePermission을 생성하거나 allow 값을 갱신합니다."""
        pass

    @abstractmethod
    def delete_role_permission(
        self, role: models.Role, permission: models.Permission, mode: models.PermissionMode
    ) -> bool:
        """(역할, 권한, 모드) 조합의 RolePermission을 삭제합니다."""
        pass
