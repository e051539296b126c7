# tests/repositories/test_sqlalchemy_permission_repository.py
import pytest

from taskmarket.database import models
from taskmarket.database.db_init import DEFAULT_PERMISSIONS, initialize_db
from taskmarket.repositories.sqlalchemy.sqlalchemy_user_repository import SqlalchemyUserRepository
from taskmarket.repositories.sqlalchemy.sqlalchemy_role_repository import SqlalchemyRoleRepository
from taskmarket.repositories.sqlalchemy.sqlalchemy_permission_repository import SqlalchemyPermissionRepository
from taskmarket.services.permission_service import PermissionService

@pytest.fixture
def permission_service(db_session) -> PermissionService:
    """실제 SQLAlchemy 리포지토리를 사용하는 PermissionService를 생성합니다."""
    return PermissionService(
        SqlalchemyUserRepository(db_session),
        SqlalchemyRoleRepository(db_session),
        SqlalchemyPermissionRepository(db_session),
    )

class TestModeScopedPermissions:
    def test_member_permissions_follow_current_mode(self, permission_service: PermissionService, make_user):
        """같은 역할이라도 모드에 따라 권한 집합이 달라져야 합니다."""
        # === Arrange ===
        user = make_user("member1", role_keys=["member"])

        # === Act ===
        doer = permission_service.get_user_permissions(user.id, "taskDoer")
        giver = permission_service.get_user_permissions(user.id, "taskGiver")

        # === Assert ===
        assert {"tasks.take", "tasks.complete"} <= doer
        assert "orders.create" not in doer
        assert "orders.create" in giver
        assert "tasks.take" not in giver
        # 'all' 범위의 권한은 두 모드 모두에 포함
        assert "profile.view" in doer and "profile.view" in giver

    def test_user_without_roles_has_no_permissions(self, permission_service: PermissionService, make_user):
        user = make_user("nobody")
        assert permission_service.get_user_permissions(user.id, "taskDoer") == set()

    def test_universal_role_gets_every_permission(self, permission_service: PermissionService, make_user):
        """super_admin은 역할-권한 연결과 무관하게 모든 권한을 가져야 합니다."""
        # === Arrange ===
        user = make_user("root", role_keys=["super_admin"])
        all_keys = {key for key, _, _ in DEFAULT_PERMISSIONS}

        # === Act & Assert ===
        assert permission_service.get_user_permissions(user.id, "taskDoer") == all_keys
        assert permission_service.get_user_permissions(user.id, "taskGiver") == all_keys

    def test_permissions_are_union_of_roles(self, permission_service: PermissionService, make_user):
        # === Arrange ===
        user = make_user("mod", role_keys=["member", "moderator"])

        # === Act ===
        permissions = permission_service.get_user_permissions(user.id, "taskDoer")

        # === Assert ===
        assert "tasks.manage" in permissions  # moderator
        assert "tasks.take" in permissions    # member (taskDoer)
        assert "profile.view" in permissions  # member (all)

    def test_disallowed_link_is_excluded(self, permission_service: PermissionService, make_user):
        """allow=False인 역할-권한 연결은 권한 집합에서 제외되어야 합니다."""
        # === Arrange ===
        user = make_user("mod2", role_keys=["moderator"])
        assert "dashboard.view" in permission_service.get_user_permissions(user.id, "taskDoer")

        # === Act ===
        permission_service.grant_permission("moderator", "dashboard.view", mode="all", allow=False)

        # === Assert ===
        assert "dashboard.view" not in permission_service.get_user_permissions(user.id, "taskDoer")

    def test_grant_mode_scoped_permission(self, permission_service: PermissionService, make_user):
        # === Arrange ===
        user = make_user("member2", role_keys=["member"])

        # === Act ===
        permission_service.grant_permission("member", "tasks.view", mode="taskGiver")

        # === Assert ===
        assert "tasks.view" in permission_service.get_user_permissions(user.id, "taskGiver")

        # === Act ===
        removed = permission_service.remove_permission("member", "tasks.view", mode="taskGiver")

        # === Assert ===
        assert removed is True
        assert "tasks.view" not in permission_service.get_user_permissions(user.id, "taskGiver")

class TestExactPermissionSets:
    """역할-권한 행을 직접 넣어 집계 결과를 정확히 비교합니다."""

    @pytest.fixture
    def link(self, db_session):
        """역할과 권한을 (없으면) 만들고 RolePermission 행을 추가하는 헬퍼를 반환합니다."""
        def _link(role_key, permission_key, mode="all", allow=True):
            role = db_session.query(models.Role).filter(models.Role.key == role_key).first()
            if role is None:
                role = models.Role(key=role_key, label=role_key)
                db_session.add(role)
            permission = db_session.query(models.Permission).filter(models.Permission.key == permission_key).first()
            if permission is None:
                permission = models.Permission(key=permission_key, label=permission_key, group="test")
                db_session.add(permission)
            db_session.flush()
            db_session.add(models.RolePermission(
                role_id=role.id, permission_id=permission.id, mode=mode, allow=allow
            ))
            db_session.commit()
        return _link

    def test_union_across_roles_is_exact_per_mode(self, permission_service: PermissionService, make_user, link):
        """R1{A,B}(all) + R2{B,C}(taskDoer): taskDoer는 정확히 {A,B,C}, taskGiver는 정확히 {A,B}."""
        # === Arrange ===
        link("r1", "test.a", mode="all")
        link("r1", "test.b", mode="all")
        link("r2", "test.b", mode="taskDoer")
        link("r2", "test.c", mode="taskDoer")
        user = make_user("both", role_keys=["r1", "r2"])

        # === Act ===
        doer = permission_service.get_user_permissions(user.id, "taskDoer")
        giver = permission_service.get_user_permissions(user.id, "taskGiver")

        # === Assert ===
        assert doer == {"test.a", "test.b", "test.c"}
        assert giver == {"test.a", "test.b"}

    def test_disallowed_row_is_excluded_next_to_allowed_rows(
        self, permission_service: PermissionService, make_user, link
    ):
        # === Arrange ===
        link("r1", "test.a", allow=True)
        link("r1", "test.b", allow=False)
        user = make_user("partial", role_keys=["r1"])

        # === Act & Assert ===
        assert permission_service.get_user_permissions(user.id, "taskDoer") == {"test.a"}
        assert permission_service.get_user_permissions(user.id, "taskGiver") == {"test.a"}

    def test_deny_in_one_role_does_not_override_allow_in_another(
        self, permission_service: PermissionService, make_user, link
    ):
        """다른 역할이 같은 키를 허용하면 allow=False 행이 있어도 키가 포함되어야 합니다."""
        # === Arrange ===
        link("r1", "test.a", allow=True)
        link("r2", "test.a", allow=False)
        link("r2", "test.c", allow=True)
        user = make_user("mixed", role_keys=["r1", "r2"])

        # === Act ===
        permissions = permission_service.get_user_permissions(user.id, "taskDoer")

        # === Assert ===
        assert permissions == {"test.a", "test.c"}

class TestRoleAssignment:
    def test_assign_and_revoke_role(self, permission_service: PermissionService, make_user):
        # === Arrange ===
        user = make_user("promoted", role_keys=["member"])

        # === Act ===
        permission_service.assign_role(user.id, "admin")
        permission_service.assign_role(user.id, "admin")  # 중복 부여는 무시

        # === Assert ===
        assert [r["key"] for r in permission_service.get_user_roles(user.id)] == ["admin", "member"]
        assert "roles.view" in permission_service.get_user_permissions(user.id, "taskDoer")

        # === Act ===
        assert permission_service.revoke_role(user.id, "admin") is True

        # === Assert ===
        assert [r["key"] for r in permission_service.get_user_roles(user.id)] == ["member"]
        assert "roles.view" not in permission_service.get_user_permissions(user.id, "taskDoer")

def test_seed_is_not_duplicated(engine, session_factory, db_session):
    """initialize_db를 다시 호출해도 기본 데이터가 중복 삽입되지 않아야 합니다."""

    initialize_db(engine, session_factory)

    assert db_session.query(models.Permission).count() == len(DEFAULT_PERMISSIONS)
    assert db_session.query(models.Role).count() == 4
