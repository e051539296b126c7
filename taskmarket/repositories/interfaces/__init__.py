from .user import IUserRepository
from .role import IRoleRepository
from .permission import IPermissionRepository
from .task import ITaskRepository

__all__ = ["IUserRepository", "IRoleRepository", "IPermissionRepository", "ITaskRepository"]
