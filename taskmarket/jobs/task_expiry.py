# taskmarket/jobs/task_expiry.py
from typing import Callable, Dict, Optional

from taskmarket.repositories.sqlalchemy.sqlalchemy_task_repository import SqlalchemyTaskRepository
from taskmarket.services.expiry_service import TaskExpiryService
from taskmarket.utils.time_utils import utcnow


def build_expiry_job(
    session_factory,
    clock: Callable = utcnow,
    batch_size: Optional[int] = None,
) -> Callable[[], Dict[str, int]]:
    """
    스케줄러가 매 주기 호출할 만료 처리 함수를 생성합니다.
    호출마다 새 DB 세션을 열고, 처리 후 반드시 닫습니다.
    """
    def run_expiry_sweep() -> Dict[str, int]:
        db_session = session_factory()
        try:
            expiry_service = TaskExpiryService(
                SqlalchemyTaskRepository(db_session), clock=clock, batch_size=batch_size
            )
            return expiry_service.expire_reservations()
        finally:
            db_session.close()

    return run_expiry_sweep
