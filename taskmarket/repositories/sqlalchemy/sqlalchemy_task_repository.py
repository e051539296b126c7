from datetime import datetime
from typing import Iterable, List, Optional
from sqlalchemy.orm import Session
from taskmarket.database import models
from taskmarket.repositories.interfaces import ITaskRepository

class SqlalchemyTaskRepository(ITaskRepository):
    def __init__(self, db_session: Session):
        self.db = db_session

    def find_by_id(self, task_id: int) -> Optional[models.Task]:
        return self.db.query(models.Task).filter(models.Task.id == task_id).first()

    def find_execution_by_id(self, execution_id: int) -> Optional[models.TaskExecution]:
        return self.db.query(models.TaskExecution).filter(models.TaskExecution.id == execution_id).first()

    def find_execution_for_user(
        self, task_id: int, user_id: int, statuses: Optional[Iterable[models.ExecutionStatus]] = None
    ) -> Optional[models.TaskExecution]:
        query = self.db.query(models.TaskExecution).filter(
            models.TaskExecution.task_id == task_id,
            models.TaskExecution.user_id == user_id
        )
        if statuses is not None:
            query = query.filter(models.TaskExecution.status.in_(list(statuses)))
        return query.first()

    def reserve_slot(
        self, task: models.Task, user_id: int, reserved_at: datetime, expires_at: datetime
    ) -> Optional[models.TaskExecution]:
        try:
            # remaining_quantity > 0 조건으로 동시 예약 시 음수가 되는 것을 막습니다.
            updated = self.db.query(models.Task).filter(
                models.Task.id == task.id,
                models.Task.remaining_quantity > 0
            ).update(
                {models.Task.remaining_quantity: models.Task.remaining_quantity - 1},
                synchronize_session=False
            )
            if updated == 0:
                self.db.rollback()
                return None

            self.db.query(models.Task).filter(
                models.Task.id == task.id,
                models.Task.status == models.TaskStatus.PENDING
            ).update({models.Task.status: models.TaskStatus.PROCESSING}, synchronize_session=False)

            execution = models.TaskExecution(
                task_id=task.id,
                user_id=user_id,
                status=models.ExecutionStatus.PENDING,
                reserved_at=reserved_at,
                expires_at=expires_at
            )
            self.db.add(execution)
            self.db.commit()
        except Exception:
            self.db.rollback()
            raise

        self.db.refresh(execution)
        self.db.refresh(task)
        return execution

    def mark_submitted(
        self, execution: models.TaskExecution, proof_url: Optional[str], submitted_at: datetime
    ) -> Optional[models.TaskExecution]:
        execution_id = execution.id
        try:
            # 만료 처리와 경합할 수 있으므로 아직 pending이고 기한 내인 행만 변경합니다.
            updated = self.db.query(models.TaskExecution).filter(
                models.TaskExecution.id == execution_id,
                models.TaskExecution.status == models.ExecutionStatus.PENDING,
                models.TaskExecution.submitted_at.is_(None),
                models.TaskExecution.expires_at > submitted_at
            ).update({
                models.TaskExecution.status: models.ExecutionStatus.SUBMITTED,
                models.TaskExecution.submitted_at: submitted_at,
                models.TaskExecution.proof_url: proof_url,
            }, synchronize_session=False)
            if updated == 0:
                self.db.rollback()
                return None
            self.db.commit()
        except Exception:
            self.db.rollback()
            raise
        finally:
            self.db.expire_all()
        return self.find_execution_by_id(execution_id)

    def list_expired_executions(self, now: datetime, limit: Optional[int] = None) -> List[models.TaskExecution]:
        query = self.db.query(models.TaskExecution).filter(
            models.TaskExecution.status == models.ExecutionStatus.PENDING,
            models.TaskExecution.submitted_at.is_(None),
            models.TaskExecution.expires_at <= now
        ).order_by(models.TaskExecution.expires_at.asc(), models.TaskExecution.id.asc())
        if limit is not None:
            query = query.limit(limit)
        return query.all()

    def expire_execution(self, execution_id: int) -> bool:
        try:
            # status = pending 조건이 같은 예약을 두 번 복원하지 않도록 보장합니다.
            updated = self.db.query(models.TaskExecution).filter(
                models.TaskExecution.id == execution_id,
                models.TaskExecution.status == models.ExecutionStatus.PENDING,
                models.TaskExecution.submitted_at.is_(None)
            ).update({models.TaskExecution.status: models.ExecutionStatus.EXPIRED}, synchronize_session=False)
            if updated == 0:
                self.db.rollback()
                return False

            task_id = self.db.query(models.TaskExecution.task_id).filter(
                models.TaskExecution.id == execution_id
            ).scalar()
            self._restore_slot(task_id)
            self.db.commit()
        except Exception:
            self.db.rollback()
            raise
        finally:
            # 벌크 UPDATE는 세션에 로드된 객체에 반영되지 않으므로 만료시킵니다.
            self.db.expire_all()
        return True

    def approve_execution(
        self, execution: models.TaskExecution, reviewed_at: datetime
    ) -> Optional[models.TaskExecution]:
        execution_id, task_id = execution.id, execution.task_id
        try:
            updated = self._transition(execution_id, models.ExecutionStatus.SUBMITTED, {
                models.TaskExecution.status: models.ExecutionStatus.APPROVED,
                models.TaskExecution.reviewed_at: reviewed_at,
            })
            if updated == 0:
                self.db.rollback()
                return None

            self.db.query(models.Task).filter(models.Task.id == task_id).update(
                {models.Task.completed_quantity: models.Task.completed_quantity + 1},
                synchronize_session=False
            )
            self.db.query(models.Task).filter(
                models.Task.id == task_id,
                models.Task.completed_quantity >= models.Task.quantity
            ).update({models.Task.status: models.TaskStatus.COMPLETED}, synchronize_session=False)
            self.db.commit()
        except Exception:
            self.db.rollback()
            raise
        finally:
            self.db.expire_all()
        return self.find_execution_by_id(execution_id)

    def reject_execution(
        self, execution: models.TaskExecution, reason: Optional[str], reviewed_at: datetime
    ) -> Optional[models.TaskExecution]:
        execution_id, task_id = execution.id, execution.task_id
        try:
            updated = self._transition(execution_id, models.ExecutionStatus.SUBMITTED, {
                models.TaskExecution.status: models.ExecutionStatus.REJECTED,
                models.TaskExecution.reviewed_at: reviewed_at,
                models.TaskExecution.rejection_reason: reason,
            })
            if updated == 0:
                self.db.rollback()
                return None

            # 상태 전이가 실제로 일어난 경우에만 수량을 복원합니다.
            self._restore_slot(task_id)
            self.db.commit()
        except Exception:
            self.db.rollback()
            raise
        finally:
            self.db.expire_all()
        return self.find_execution_by_id(execution_id)

    def _transition(self, execution_id: int, expected_status: models.ExecutionStatus, values) -> int:
        return self.db.query(models.TaskExecution).filter(
            models.TaskExecution.id == execution_id,
            models.TaskExecution.status == expected_status
        ).update(values, synchronize_session=False)

    def _restore_slot(self, task_id: int):
        self.db.query(models.Task).filter(models.Task.id == task_id).update(
            {models.Task.remaining_quantity: models.Task.remaining_quantity + 1},
            synchronize_session=False
        )
