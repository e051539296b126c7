from .enums import (
    UserMode, PermissionMode, UserStatus, TaskStatus, TaskAdminStatus, ExecutionStatus,
)
from .user import User
from .role import Role
from .permission import Permission
from .association import UserRole, RolePermission
from .task import Task
from .task_execution import TaskExecution

__all__ = [
    "UserMode", "PermissionMode", "UserStatus", "TaskStatus", "TaskAdminStatus", "ExecutionStatus",
    "User", "Role", "Permission", "UserRole", "RolePermission", "Task", "TaskExecution",
]
