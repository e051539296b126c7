from abc import ABC, abstractmethod
from datetime import datetime
from typing import List, Optional
from taskmarket.database import models

class IUserRepository(ABC):
    @abstractmethod
    def create(self, user_model: models.User) -> models.User:
        """새로운 사용자를 데이터베이스에 생성합니다."""
        pass

    @abstractmethod
    def find_by_id(self, user_id: int) -> Optional[models.User]:
        """고유 ID로 특정 사용자를 조회합니다."""
        pass

    @abstractmethod
    def find_by_username(self, username: str) -> Optional[models.User]:
        """사용자 이름으로 특정 사용자를 조회합니다."""
        pass

    @abstractmethod
    def find_by_email(self, email: str) -> Optional[models.User]:
        """이메일로 특정 사용자를 조회합니다."""
        pass

    @abstractmethod
    def update_mode(self, user: models.User, mode: models.UserMode) -> models.User:
        """사용자의 현재 운영 모드를 변경합니다."""
        pass

    @abstractmethod
    def update_last_login(self, user: models.User, logged_in_at: datetime) -> None:
        """마지막 로그인 시각을 기록합니다."""
        pass

    @abstractmethod
    def update_restricted_permissions(self, user: models.User, keys: List[str]) -> models.User:
        """사용자의 제한 권한 목록을 교체합니다. 빈 목록이면 제한을 해제합니다."""
        pass
