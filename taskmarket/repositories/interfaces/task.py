from abc import ABC, abstractmethod
from datetime import datetime
from typing import Iterable, List, Optional
from taskmarket.database import models

class ITaskRepository(ABC):
    @abstractmethod
    def find_by_id(self, task_id: int) -> Optional[models.Task]:
        """고유 ID로 특정 작업을 조회합니다."""
        pass

    @abstractmethod
    def find_execution_by_id(self, execution_id: int) -> Optional[models.TaskExecution]:
        """고유 ID로 특정 작업 수행(예약)을 조회합니다."""
        pass

    @abstractmethod
    def find_execution_for_user(
        self, task_id: int, user_id: int, statuses: Optional[Iterable[models.ExecutionStatus]] = None
    ) -> Optional[models.TaskExecution]:
        """
        사용자가 해당 작업에 대해 가진 수행 기록을 조회합니다.
        statuses가 주어지면 해당 상태의 기록만 대상으로 합니다.
        """
        pass

    @abstractmethod
    def reserve_slot(
        self, task: models.Task, user_id: int, reserved_at: datetime, expires_at: datetime
    ) -> Optional[models.TaskExecution]:
        """
        작업의 남은 수량을 1 감소시키고 pending 상태의 수행 기록을 생성합니다.

        두 변경은 하나의 트랜잭션으로 처리됩니다. 남은 수량이 0이면
        아무것도 변경하지 않고 None을 반환합니다.
        """
        pass

    @abstractmethod
    def mark_submitted(
        self, execution: models.TaskExecution, proof_url: Optional[str], submitted_at: datetime
    ) -> Optional[models.TaskExecution]:
        """
        수행 기록을 submitted 상태로 변경하고 제출 시각을 기록합니다.

        아직 pending이고 submitted_at 시각이 expires_at 이전인 경우에만 변경합니다.
        조건에 맞지 않으면 아무것도 변경하지 않고 None을 반환합니다.
        """
        pass

    @abstractmethod
    def list_expired_executions(self, now: datetime, limit: Optional[int] = None) -> List[models.TaskExecution]:
        """
        만료된 예약 목록을 조회합니다.

        status가 pending이고 submitted_at이 NULL이며 expires_at이 now 이하인 행이 대상입니다.

        Args:
            now: 기준 시각.
            limit: 최대 조회 개수. None이면 제한하지 않습니다.

        Returns:
            expires_at 오름차순으로 정렬된 수행 기록 리스트.
        """
        pass

    @abstractmethod
    def expire_execution(self, execution_id: int) -> bool:
        """
        예약을 expired로 변경하고 작업의 남은 수량을 1 복원합니다.

        두 변경은 하나의 트랜잭션으로 커밋되며, 실패 시 롤백 후 예외를 다시 발생시킵니다.
        이미 pending이 아닌 행이면 아무것도 변경하지 않고 False를 반환합니다.
        """
        pass

    @abstractmethod
    def approve_execution(
        self, execution: models.TaskExecution, reviewed_at: datetime
    ) -> Optional[models.TaskExecution]:
        """
        제출된 수행 기록을 승인하고 작업의 완료 수량을 증가시킵니다.
        이미 submitted 상태가 아니면 아무것도 변경하지 않고 None을 반환합니다.
        """
        pass

    @abstractmethod
    def reject_execution(
        self, execution: models.TaskExecution, reason: Optional[str], reviewed_at: datetime
    ) -> Optional[models.TaskExecution]:
        """
        제출된 수행 기록을 반려하고 작업의 남은 수량을 1 복원합니다.
        이미 submitted 상태가 아니면 수량을 복원하지 않고 None을 반환합니다.
        """
        pass
