import logging
from typing import Callable, Dict, Optional

from taskmarket.repositories.interfaces import ITaskRepository
from taskmarket.utils.time_utils import utcnow

logger = logging.getLogger(__name__)


class TaskExpiryService:
    """
    제출 없이 제한 시간이 지난 예약을 만료시키고 작업의 남은 수량을 복원합니다.

    각 예약은 독립된 트랜잭션으로 처리되므로 한 건의 실패가
    나머지 예약의 처리를 중단시키지 않습니다.
    """

    def __init__(self, task_repo: ITaskRepository, clock: Callable = utcnow, batch_size: Optional[int] = None):
        """
        TaskExpiryService를 초기화합니다.

        Args:
            task_repo: 작업 및 수행 기록에 접근하기 위한 리포지토리.
            clock: 현재 UTC 시각을 반환하는 함수. 테스트에서는 고정 시각을 주입합니다.
            batch_size: 한 번의 실행에서 처리할 최대 예약 수. None이면 제한하지 않습니다.
        """
        if batch_size is not None and batch_size <= 0:
            raise ValueError("batch_size must be a positive integer or None.")
        self.task_repo = task_repo
        self.clock = clock
        self.batch_size = batch_size

    def expire_reservations(self) -> Dict[str, int]:
        """
        만료된 예약을 찾아 하나씩 expired로 전환하고 수량을 복원합니다.

        pending 상태이고 submitted_at이 없으며 expires_at이 현재 시각 이하인 예약이 대상입니다.
        개별 예약의 실패는 로그로 남기고 다음 예약으로 넘어갑니다.

        Returns:
            checked: 조회된 만료 예약 수.
            expired: 실제로 만료 처리된 예약 수.
            failed: 처리 중 오류가 발생한 예약 수.
        """
        now = self.clock()
        logger.info("Starting task execution expiry check (now=%s)", now.isoformat())

        expired_executions = self.task_repo.list_expired_executions(now, limit=self.batch_size)
        if not expired_executions:
            logger.info("No expired task executions found")
            return {"checked": 0, "expired": 0, "failed": 0}

        # 처리 중 세션이 만료되어도 재조회하지 않도록 ID를 먼저 복사합니다.
        targets = [(execution.id, execution.task_id) for execution in expired_executions]
        logger.info("Found %d expired task executions", len(targets))

        expired_count = 0
        failed_count = 0
        for execution_id, task_id in targets:
            try:
                if self.task_repo.expire_execution(execution_id):
                    expired_count += 1
                    logger.info("Expired execution %s for task %s", execution_id, task_id)
                else:
                    logger.info("Execution %s was no longer pending, skipped", execution_id)
            except Exception:
                failed_count += 1
                logger.exception("Error expiring execution %s for task %s", execution_id, task_id)

        logger.info(
            "Task expiry check finished: %d found, %d expired, %d failed",
            len(targets), expired_count, failed_count
        )
        return {"checked": len(targets), "expired": expired_count, "failed": failed_count}
