import logging
from datetime import timedelta
from typing import Any, Callable, Dict, Optional

from taskmarket.database import models
from taskmarket.repositories.interfaces import ITaskRepository
from taskmarket.services.exceptions import (
    TaskNotFoundError, ExecutionNotFoundError, TaskUnavailableError,
    TaskAlreadyClaimedError, ReservationExpiredError, InvalidExecutionStateError,
    PermissionDeniedError
)
from taskmarket.utils.time_utils import utcnow

logger = logging.getLogger(__name__)

DEFAULT_RESERVATION_WINDOW = timedelta(minutes=15)

CLAIMABLE_TASK_STATUSES = (models.TaskStatus.PENDING, models.TaskStatus.PROCESSING)

# 만료되거나 반려된 수행 기록은 같은 작업의 재예약을 막지 않습니다.
BLOCKING_EXECUTION_STATUSES = (
    models.ExecutionStatus.PENDING, models.ExecutionStatus.SUBMITTED, models.ExecutionStatus.APPROVED
)


def serialize_execution(execution: models.TaskExecution) -> Dict[str, Any]:
    return {
        "id": execution.id,
        "task_id": execution.task_id,
        "user_id": execution.user_id,
        "status": execution.status.value,
        "reserved_at": execution.reserved_at.isoformat() if execution.reserved_at else None,
        "expires_at": execution.expires_at.isoformat() if execution.expires_at else None,
        "submitted_at": execution.submitted_at.isoformat() if execution.submitted_at else None,
    }


class TaskService:
    """작업 예약(claim), 증빙 제출, 관리자 검토를 처리합니다."""

    def __init__(
        self,
        task_repo: ITaskRepository,
        reservation_window: timedelta = DEFAULT_RESERVATION_WINDOW,
        clock: Callable = utcnow,
    ):
        self.task_repo = task_repo
        self.reservation_window = reservation_window
        self.clock = clock

    def claim_task(self, user_id: int, task_id: int) -> Dict[str, Any]:
        """
        작업의 한 단위를 예약합니다.

        남은 수량을 1 감소시키고 expires_at = 예약 시각 + 예약 제한 시간인
        pending 상태의 수행 기록을 생성합니다.

        Args:
            user_id: 예약하는 사용자의 ID.
            task_id: 예약할 작업의 ID.

        Returns:
            생성된 수행 기록 정보.

        Raises:
            TaskNotFoundError: 작업을 찾을 수 없을 때.
            TaskUnavailableError: 예약 가능한 상태가 아니거나, 관리자 승인 전이거나, 남은 수량이 없을 때.
            PermissionDeniedError: 자신이 주문한 작업을 예약하려 할 때.
            TaskAlreadyClaimedError: 같은 작업에 진행 중이거나 승인된 수행 기록이 있을 때.
        """
        task = self.task_repo.find_by_id(task_id)
        if not task:
            raise TaskNotFoundError(f"Task with id '{task_id}' not found.")

        if task.status not in CLAIMABLE_TASK_STATUSES:
            raise TaskUnavailableError(f"Task '{task_id}' is not available for reservation.")

        if task.admin_status != models.TaskAdminStatus.APPROVED:
            raise TaskUnavailableError(f"Task '{task_id}' is not approved by admin.")

        if task.excluded_user_id is not None and task.excluded_user_id == user_id:
            raise PermissionDeniedError("You cannot execute your own order task.")

        existing = self.task_repo.find_execution_for_user(task_id, user_id, BLOCKING_EXECUTION_STATUSES)
        if existing:
            raise TaskAlreadyClaimedError(
                f"Task '{task_id}' already reserved or completed (status: {existing.status.value})."
            )

        if task.remaining_quantity <= 0:
            raise TaskUnavailableError(f"Task '{task_id}' has no remaining quantity.")

        reserved_at = self.clock()
        expires_at = reserved_at + self.reservation_window
        execution = self.task_repo.reserve_slot(task, user_id, reserved_at, expires_at)
        if execution is None:
            # 확인 이후 다른 사용자가 마지막 수량을 예약한 경우
            raise TaskUnavailableError(f"Task '{task_id}' has no remaining quantity.")

        logger.info("Task %s reserved by user %s until %s", task_id, user_id, expires_at.isoformat())
        return serialize_execution(execution)

    def submit_proof(self, user_id: int, execution_id: int, proof_url: Optional[str] = None) -> Dict[str, Any]:
        """
        예약한 작업의 증빙을 제출합니다.

        제한 시간이 지난 예약이면 즉시 만료 처리(수량 복원 포함) 후 예외를 발생시킵니다.

        Raises:
            ExecutionNotFoundError: 사용자의 수행 기록을 찾을 수 없을 때.
            InvalidExecutionStateError: pending 상태가 아니거나 제출 도중 상태가 바뀌었을 때.
            ReservationExpiredError: 예약 제한 시간이 지났을 때.
        """
        execution = self.task_repo.find_execution_by_id(execution_id)
        if not execution or execution.user_id != user_id:
            raise ExecutionNotFoundError(f"Execution with id '{execution_id}' not found.")

        if execution.status != models.ExecutionStatus.PENDING:
            raise InvalidExecutionStateError(
                f"Execution '{execution_id}' is not pending (status: {execution.status.value})."
            )

        now = self.clock()
        if now >= execution.expires_at:
            expires_at = execution.expires_at
            try:
                if self.task_repo.expire_execution(execution_id):
                    logger.info("Execution %s expired at submission time", execution_id)
            except Exception:
                # 수량 복원은 다음 만료 처리 주기에 다시 시도됩니다.
                logger.exception("Failed to expire execution %s at submission time", execution_id)
            raise ReservationExpiredError(
                f"Reservation expired at {expires_at.isoformat()}."
            )

        execution = self.task_repo.mark_submitted(execution, proof_url, now)
        if execution is None:
            # 조회 이후 만료 처리 등으로 상태가 바뀐 경우
            raise InvalidExecutionStateError(f"Execution '{execution_id}' is no longer pending.")
        logger.info("Execution %s submitted by user %s", execution_id, user_id)
        return serialize_execution(execution)

    def approve_execution(self, execution_id: int) -> Dict[str, Any]:
        """
        제출된 수행 기록을 승인합니다.

        Raises:
            ExecutionNotFoundError: 수행 기록을 찾을 수 없을 때.
            InvalidExecutionStateError: submitted 상태가 아닐 때.
        """
        execution = self._get_submitted_execution(execution_id)
        execution = self.task_repo.approve_execution(execution, self.clock())
        if execution is None:
            raise InvalidExecutionStateError(f"Execution '{execution_id}' is no longer submitted.")
        logger.info("Execution %s approved", execution_id)
        return serialize_execution(execution)

    def reject_execution(self, execution_id: int, reason: Optional[str] = None) -> Dict[str, Any]:
        """
        제출된 수행 기록을 반려하고 작업의 남은 수량을 복원합니다.

        Raises:
            ExecutionNotFoundError: 수행 기록을 찾을 수 없을 때.
            InvalidExecutionStateError: submitted 상태가 아닐 때.
        """
        execution = self._get_submitted_execution(execution_id)
        execution = self.task_repo.reject_execution(execution, reason, self.clock())
        if execution is None:
            raise InvalidExecutionStateError(f"Execution '{execution_id}' is no longer submitted.")
        logger.info("Execution %s rejected: %s", execution_id, reason)
        return serialize_execution(execution)

    def _get_submitted_execution(self, execution_id: int) -> models.TaskExecution:
        execution = self.task_repo.find_execution_by_id(execution_id)
        if not execution:
            raise ExecutionNotFoundError(f"Execution with id '{execution_id}' not found.")
        if execution.status != models.ExecutionStatus.SUBMITTED:
            raise InvalidExecutionStateError(
                f"Execution '{execution_id}' is not in submitted status (status: {execution.status.value})."
            )
        return execution
