# tests/services/test_permission_service.py
import pytest
from unittest.mock import MagicMock
from sqlalchemy.exc import OperationalError

from taskmarket.services.permission_service import PermissionService
from taskmarket.services.exceptions import (
    UserNotFoundError, RoleNotFoundError, PermissionNotFoundError,
    InvalidModeError, PermissionLookupError
)
from taskmarket.repositories.interfaces import IUserRepository, IRoleRepository, IPermissionRepository
from taskmarket.database import models

# ===================================================================
#  Fixture 설정
# ===================================================================

@pytest.fixture
def mock_user_repo() -> MagicMock:
    """IUserRepository에 대한 모의 객체를 생성합니다."""
    return MagicMock(spec=IUserRepository)

@pytest.fixture
def mock_role_repo() -> MagicMock:
    """IRoleRepository에 대한 모의 객체를 생성합니다."""
    return MagicMock(spec=IRoleRepository)

@pytest.fixture
def mock_permission_repo() -> MagicMock:
    """IPermissionRepository에 대한 모의 객체를 생성합니다."""
    return MagicMock(spec=IPermissionRepository)

@pytest.fixture
def permission_service(
    mock_user_repo: MagicMock,
    mock_role_repo: MagicMock,
    mock_permission_repo: MagicMock
) -> PermissionService:
    """테스트에 사용될 PermissionService 인스턴스를 생성하고, 의존성을 주입합니다."""
    return PermissionService(mock_user_repo, mock_role_repo, mock_permission_repo)

# ===================================================================
#  권한 집계(get_user_permissions) 테스트
# ===================================================================
class TestGetUserPermissions:
    def test_user_without_roles_gets_empty_set(
        self, permission_service: PermissionService, mock_role_repo: MagicMock, mock_permission_repo: MagicMock
    ):
        """역할이 없는 사용자는 빈 권한 집합을 받아야 합니다."""
        # === Arrange ===
        mock_role_repo.list_for_user.return_value = []

        # === Act ===
        permissions = permission_service.get_user_permissions(1, "taskDoer")

        # === Assert ===
        assert permissions == set()
        mock_permission_repo.list_granted_keys.assert_not_called()
        mock_permission_repo.list_all_keys.assert_not_called()

    def test_universal_role_returns_every_permission(
        self, permission_service: PermissionService, mock_role_repo: MagicMock, mock_permission_repo: MagicMock
    ):
        """is_universal 역할을 가진 사용자는 모드와 무관하게 모든 권한을 받아야 합니다."""
        # === Arrange ===
        mock_role_repo.list_for_user.return_value = [
            models.Role(id=1, key="super_admin", label="Super Admin", is_universal=True),
            models.Role(id=4, key="member", label="Member", is_universal=False),
        ]
        mock_permission_repo.list_all_keys.return_value = ["tasks.take", "orders.create", "roles.manage"]

        # === Act ===
        doer_permissions = permission_service.get_user_permissions(1, "taskDoer")
        giver_permissions = permission_service.get_user_permissions(1, "taskGiver")

        # === Assert ===
        assert doer_permissions == {"tasks.take", "orders.create", "roles.manage"}
        assert giver_permissions == doer_permissions
        # 검증: 개별 역할-권한 조회는 건너뛰어야 함
        mock_permission_repo.list_granted_keys.assert_not_called()

    def test_permissions_are_union_of_roles_without_duplicates(
        self, permission_service: PermissionService, mock_role_repo: MagicMock, mock_permission_repo: MagicMock
    ):
        """여러 역할의 권한은 중복 없이 합쳐져야 합니다."""
        # === Arrange ===
        mock_role_repo.list_for_user.return_value = [
            models.Role(id=3, key="moderator", label="Moderator", is_universal=False),
            models.Role(id=4, key="member", label="Member", is_universal=False),
        ]
        # 시나리오: 두 역할이 같은 권한(tasks.view)을 부여함
        mock_permission_repo.list_granted_keys.return_value = [
            "tasks.view", "tasks.manage", "tasks.view", "tasks.take"
        ]

        # === Act ===
        permissions = permission_service.get_user_permissions(7, "taskDoer")

        # === Assert ===
        assert permissions == {"tasks.view", "tasks.manage", "tasks.take"}
        mock_permission_repo.list_granted_keys.assert_called_once_with([3, 4], models.UserMode.TASK_DOER)

    def test_invalid_mode_raises_error(self, permission_service: PermissionService, mock_role_repo: MagicMock):
        """허용되지 않은 모드는 InvalidModeError를 발생시켜야 합니다."""
        # === Act & Assert ===
        with pytest.raises(InvalidModeError):
            permission_service.get_user_permissions(1, "admin")
        # 'all'은 역할-권한 연결의 범위일 뿐, 사용자 모드가 아님
        with pytest.raises(InvalidModeError):
            permission_service.get_user_permissions(1, "all")
        mock_role_repo.list_for_user.assert_not_called()

    def test_storage_failure_is_not_treated_as_empty_set(
        self, permission_service: PermissionService, mock_role_repo: MagicMock
    ):
        """저장소 오류는 빈 권한 집합이 아닌 PermissionLookupError로 전달되어야 합니다."""
        # === Arrange ===
        mock_role_repo.list_for_user.side_effect = OperationalError("SELECT", {}, Exception("db down"))

        # === Act & Assert ===
        with pytest.raises(PermissionLookupError):
            permission_service.get_user_permissions(1, "taskDoer")

    def test_user_has_permission(
        self, permission_service: PermissionService, mock_role_repo: MagicMock, mock_permission_repo: MagicMock
    ):
        """user_has_permission은 계산된 권한 집합을 기준으로 판단해야 합니다."""
        # === Arrange ===
        mock_role_repo.list_for_user.return_value = [
            models.Role(id=4, key="member", label="Member", is_universal=False)
        ]
        mock_permission_repo.list_granted_keys.return_value = ["orders.create"]

        # === Act & Assert ===
        assert permission_service.user_has_permission(1, "orders.create", "taskGiver") is True
        assert permission_service.user_has_permission(1, "tasks.take", "taskGiver") is False

# ===================================================================
#  역할/권한 관리 테스트
# ===================================================================
class TestRoleManagement:
    def test_assign_role_success(
        self, permission_service: PermissionService, mock_user_repo: MagicMock, mock_role_repo: MagicMock
    ):
        """사용자와 역할이 존재하면 역할이 부여되어야 합니다."""
        # === Arrange ===
        user = models.User(id=1, username="alice", email="a@example.com", mode="taskDoer", status="active")
        role = models.Role(id=2, key="admin", label="Admin", is_universal=False)
        mock_user_repo.find_by_id.return_value = user
        mock_role_repo.find_by_key.return_value = role

        # === Act ===
        result = permission_service.assign_role(1, "admin")

        # === Assert ===
        assert result is True
        mock_role_repo.assign_to_user.assert_called_once_with(user, role)

    def test_assign_role_fails_for_unknown_user(
        self, permission_service: PermissionService, mock_user_repo: MagicMock, mock_role_repo: MagicMock
    ):
        """사용자가 없으면 UserNotFoundError가 발생해야 합니다."""
        # === Arrange ===
        mock_user_repo.find_by_id.return_value = None

        # === Act & Assert ===
        with pytest.raises(UserNotFoundError):
            permission_service.assign_role(99, "admin")
        mock_role_repo.assign_to_user.assert_not_called()

    def test_revoke_role_fails_for_unknown_role(
        self, permission_service: PermissionService, mock_user_repo: MagicMock, mock_role_repo: MagicMock
    ):
        """역할이 없으면 RoleNotFoundError가 발생해야 합니다."""
        # === Arrange ===
        mock_user_repo.find_by_id.return_value = models.User(
            id=1, username="alice", email="a@example.com", mode="taskDoer", status="active"
        )
        mock_role_repo.find_by_key.return_value = None

        # === Act & Assert ===
        with pytest.raises(RoleNotFoundError):
            permission_service.revoke_role(1, "ghost")
        mock_role_repo.revoke_from_user.assert_not_called()

    def test_grant_permission_with_mode(
        self, permission_service: PermissionService, mock_role_repo: MagicMock, mock_permission_repo: MagicMock
    ):
        """모드가 지정된 권한 부여는 PermissionMode로 변환되어 저장되어야 합니다."""
        # === Arrange ===
        role = models.Role(id=4, key="member", label="Member", is_universal=False)
        permission = models.Permission(id=10, key="orders.create", label="Create orders", group="orders")
        mock_role_repo.find_by_key.return_value = role
        mock_permission_repo.find_by_key.return_value = permission
        mock_permission_repo.set_role_permission.return_value = models.RolePermission(
            role_id=4, permission_id=10, mode="taskGiver", allow=True
        )

        # === Act ===
        result = permission_service.grant_permission("member", "orders.create", mode="taskGiver")

        # === Assert ===
        assert result == {"role": "member", "permission": "orders.create", "mode": "taskGiver", "allow": True}
        mock_permission_repo.set_role_permission.assert_called_once_with(
            role, permission, models.PermissionMode.TASK_GIVER, True
        )

    def test_grant_permission_fails_for_unknown_permission(
        self, permission_service: PermissionService, mock_role_repo: MagicMock, mock_permission_repo: MagicMock
    ):
        """존재하지 않는 권한 키는 PermissionNotFoundError를 발생시켜야 합니다."""
        # === Arrange ===
        mock_role_repo.find_by_key.return_value = models.Role(id=4, key="member", label="Member", is_universal=False)
        mock_permission_repo.find_by_key.return_value = None

        # === Act & Assert ===
        with pytest.raises(PermissionNotFoundError):
            permission_service.grant_permission("member", "nope.nothing")
        mock_permission_repo.set_role_permission.assert_not_called()

    def test_grant_permission_rejects_invalid_mode(
        self, permission_service: PermissionService, mock_permission_repo: MagicMock
    ):
        """허용되지 않은 모드로는 권한을 부여할 수 없어야 합니다."""
        # === Act & Assert ===
        with pytest.raises(InvalidModeError):
            permission_service.grant_permission("member", "orders.create", mode="everyone")
        mock_permission_repo.set_role_permission.assert_not_called()
