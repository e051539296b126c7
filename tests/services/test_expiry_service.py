# tests/services/test_expiry_service.py
import pytest
from unittest.mock import MagicMock, call
from datetime import datetime, timedelta
from sqlalchemy.exc import OperationalError

from taskmarket.services.expiry_service import TaskExpiryService
from taskmarket.repositories.interfaces import ITaskRepository
from taskmarket.database import models

NOW = datetime(2024, 5, 1, 12, 0, 0)

@pytest.fixture
def mock_task_repo() -> MagicMock:
    """ITaskRepository에 대한 모의 객체를 생성합니다."""
    return MagicMock(spec=ITaskRepository)

def make_expired(execution_id, task_id) -> models.TaskExecution:
    return models.TaskExecution(
        id=execution_id, task_id=task_id, user_id=1, status="pending",
        reserved_at=NOW - timedelta(minutes=20), expires_at=NOW - timedelta(minutes=5)
    )

class TestExpireReservations:
    def test_no_expired_reservations(self, mock_task_repo: MagicMock):
        """만료 대상이 없으면 아무것도 변경하지 않아야 합니다."""
        # === Arrange ===
        mock_task_repo.list_expired_executions.return_value = []
        service = TaskExpiryService(mock_task_repo, clock=lambda: NOW)

        # === Act ===
        result = service.expire_reservations()

        # === Assert ===
        assert result == {"checked": 0, "expired": 0, "failed": 0}
        mock_task_repo.list_expired_executions.assert_called_once_with(NOW, limit=None)
        mock_task_repo.expire_execution.assert_not_called()

    def test_expires_each_reservation(self, mock_task_repo: MagicMock):
        # === Arrange ===
        mock_task_repo.list_expired_executions.return_value = [make_expired(1, 10), make_expired(2, 11)]
        mock_task_repo.expire_execution.return_value = True
        service = TaskExpiryService(mock_task_repo, clock=lambda: NOW)

        # === Act ===
        result = service.expire_reservations()

        # === Assert ===
        assert result == {"checked": 2, "expired": 2, "failed": 0}
        mock_task_repo.expire_execution.assert_has_calls([call(1), call(2)])

    def test_one_failure_does_not_stop_the_sweep(self, mock_task_repo: MagicMock):
        """한 건의 처리 실패는 로그로 남기고 나머지 예약은 계속 처리해야 합니다."""
        # === Arrange ===
        mock_task_repo.list_expired_executions.return_value = [
            make_expired(1, 10), make_expired(2, 11), make_expired(3, 12)
        ]
        mock_task_repo.expire_execution.side_effect = [
            True, OperationalError("UPDATE", {}, Exception("locked")), True
        ]
        service = TaskExpiryService(mock_task_repo, clock=lambda: NOW)

        # === Act ===
        result = service.expire_reservations()

        # === Assert ===
        assert result == {"checked": 3, "expired": 2, "failed": 1}
        assert mock_task_repo.expire_execution.call_count == 3

    def test_already_processed_reservation_is_skipped(self, mock_task_repo: MagicMock):
        """다른 경로에서 이미 처리된 예약은 실패가 아닌 건너뜀으로 집계되어야 합니다."""
        # === Arrange ===
        mock_task_repo.list_expired_executions.return_value = [make_expired(1, 10)]
        mock_task_repo.expire_execution.return_value = False
        service = TaskExpiryService(mock_task_repo, clock=lambda: NOW)

        # === Act ===
        result = service.expire_reservations()

        # === Assert ===
        assert result == {"checked": 1, "expired": 0, "failed": 0}

    def test_batch_size_is_passed_as_limit(self, mock_task_repo: MagicMock):
        # === Arrange ===
        mock_task_repo.list_expired_executions.return_value = []
        service = TaskExpiryService(mock_task_repo, clock=lambda: NOW, batch_size=50)

        # === Act ===
        service.expire_reservations()

        # === Assert ===
        mock_task_repo.list_expired_executions.assert_called_once_with(NOW, limit=50)

    @pytest.mark.parametrize("batch_size", [0, -1])
    def test_invalid_batch_size(self, mock_task_repo: MagicMock, batch_size):
        with pytest.raises(ValueError):
            TaskExpiryService(mock_task_repo, batch_size=batch_size)
