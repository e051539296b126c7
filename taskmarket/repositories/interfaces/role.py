from abc import ABC, abstractmethod
from typing import List, Optional
from taskmarket.database import models

class IRoleRepository(ABC):
    @abstractmethod
    def find_by_key(self, key: str) -> Optional[models.Role]:
        """키로 특정 역할을 조회합니다."""
        pass

    @abstractmethod
    def list_all(self) -> List[models.Role]:
        """모든 역할의 목록을 조회합니다."""
        pass

    @abstractmethod
    def list_for_user(self, user_id: int) -> List[models.Role]:
        """
        UserRole을 통해 사용자가 보유한 모든 역할을 조회합니다.

        Args:
            user_id: 역할을 조회할 사용자의 ID.

        Returns:
            역할 모델의 리스트. 역할이 없으면 빈 리스트.
        """
        pass

    @abstractmethod
    def assign_to_user(self, user: models.User, role: models.Role):
        """사용자에게 역할을 부여합니다. 이미 보유한 역할이면 무시합니다."""
        pass

    @abstractmethod
    def revoke_from_user(self, user: models.User, role: models.Role) -> bool:
        """사용자의 역할을 회수합니다. 실제로 삭제된 경우 True를 반환합니다."""
        pass
