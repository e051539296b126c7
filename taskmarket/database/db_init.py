import logging
from .database import Base
from .models import Role, Permission, RolePermission, PermissionMode

logger = logging.getLogger(__name__)

DEFAULT_MEMBER_ROLE = "member"

# (key, label, group)
DEFAULT_PERMISSIONS = [
    ("dashboard.view", "View dashboard", "dashboard"),
    ("profile.view", "View profile", "profile"),
    ("profile.edit", "Edit profile", "profile"),
    ("balance.view", "View balance", "balance"),
    ("balance.add", "Add balance", "balance"),
    ("balance.withdraw", "Request withdrawal", "balance"),
    ("accounts.view", "View social accounts", "accounts"),
    ("accounts.add", "Add social account", "accounts"),
    ("tasks.view", "View tasks", "tasks"),
    ("tasks.take", "Reserve tasks", "tasks"),
    ("tasks.complete", "Submit task proof", "tasks"),
    ("tasks.manage", "Review and manage tasks", "tasks"),
    ("orders.view", "View orders", "orders"),
    ("orders.create", "Create orders", "orders"),
    ("orders.cancel", "Cancel orders", "orders"),
    ("orders.refund", "Refund orders", "orders"),
    ("users.view", "View users", "users"),
    ("users.edit", "Edit users", "users"),
    ("users.restrict", "Restrict user permissions", "users"),
    ("transactions.view", "View transactions", "transactions"),
    ("withdrawals.view", "View withdrawals", "withdrawals"),
    ("withdrawals.approve", "Approve withdrawals", "withdrawals"),
    ("roles.view", "View roles and permissions", "roles"),
    ("roles.manage", "Manage roles and permissions", "roles"),
    ("settings.view", "View settings", "settings"),
    ("settings.edit", "Edit settings", "settings"),
]

# (key, label, is_universal)
DEFAULT_ROLES = [
    ("super_admin", "Super Admin", True),
    ("admin", "Admin", False),
    ("moderator", "Moderator", False),
    (DEFAULT_MEMBER_ROLE, "Member", False),
]

# role key -> {mode: [permission keys]}
DEFAULT_ROLE_PERMISSIONS = {
    "admin": {
        PermissionMode.ALL: [
            "dashboard.view", "users.view", "users.edit", "users.restrict",
            "orders.view", "orders.refund", "tasks.view", "tasks.manage",
            "transactions.view", "withdrawals.view", "withdrawals.approve",
            "roles.view", "settings.view", "settings.edit",
        ],
    },
    "moderator": {
        PermissionMode.ALL: [
            "dashboard.view", "users.view", "orders.view", "tasks.view",
            "tasks.manage", "transactions.view", "withdrawals.view",
        ],
    },
    DEFAULT_MEMBER_ROLE: {
        PermissionMode.ALL: [
            "dashboard.view", "profile.view", "profile.edit", "balance.view",
            "balance.withdraw", "accounts.view", "accounts.add",
        ],
        PermissionMode.TASK_DOER: ["tasks.view", "tasks.take", "tasks.complete"],
        PermissionMode.TASK_GIVER: ["orders.view", "orders.create", "orders.cancel", "balance.add"],
    },
}


def initialize_db(engine, session_factory):
    """
    테이블을 생성하고, 기본 역할/권한 데이터를 삽입합니다.
    SQLAlchemy 모델을 사용하여 모든 작업을 수행합니다.
    """
    logger.info("Initializing database schema...")

    # 모든 테이블을 생성합니다. (이미 존재하면 생성하지 않음)
    Base.metadata.create_all(bind=engine)

    db = session_factory()
    try:
        # 기본 데이터가 이미 있는지 확인
        if db.query(Role).first():
            logger.info("Default roles already exist, skipping seed.")
            return

        logger.info("Seeding default roles and permissions...")

        permissions = {}
        for key, label, group in DEFAULT_PERMISSIONS:
            permissions[key] = Permission(key=key, label=label, group=group)
            db.add(permissions[key])

        roles = {}
        for key, label, is_universal in DEFAULT_ROLES:
            roles[key] = Role(key=key, label=label, is_universal=is_universal)
            db.add(roles[key])

        # 변경사항을 반영하여 각 객체의 id를 할당받습니다.
        db.flush()

        for role_key, grants in DEFAULT_ROLE_PERMISSIONS.items():
            for mode, permission_keys in grants.items():
                for permission_key in permission_keys:
                    db.add(RolePermission(
                        role_id=roles[role_key].id,
                        permission_id=permissions[permission_key].id,
                        mode=mode,
                        allow=True
                    ))

        db.commit()
        logger.info("Database initialized with %d roles and %d permissions.", len(roles), len(permissions))

    except Exception:
        logger.exception("Database seed failed, rolling back.")
        db.rollback()
        raise
    finally:
        db.close()
