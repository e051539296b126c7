from typing import Iterable, List, Optional
from sqlalchemy.orm import Session
from taskmarket.database import models
from taskmarket.repositories.interfaces import IPermissionRepository

class SqlalchemyPermissionRepository(IPermissionRepository):
    def __init__(self, db_session: Session):
        self.db = db_session

    def find_by_key(self, key: str) -> Optional[models.Permission]:
        return self.db.query(models.Permission).filter(models.Permission.key == key).first()

    def list_all(self) -> List[models.Permission]:
        return self.db.query(models.Permission).order_by(models.Permission.group.asc(), models.Permission.key.asc()).all()

    def list_all_keys(self) -> List[str]:
        return [row[0] for row in self.db.query(models.Permission.key).all()]

    def list_granted_keys(self, role_ids: Iterable[int], mode: models.UserMode) -> List[str]:
        role_ids = list(role_ids)
        if not role_ids:
            return []
        # UserMode와 PermissionMode는 같은 값('taskDoer', 'taskGiver')을 사용합니다.
        scoped_mode = models.PermissionMode(models.UserMode(mode).value)
        rows = (
            self.db.query(models.Permission.key)
            .join(models.RolePermission, models.RolePermission.permission_id == models.Permission.id)
            .filter(
                models.RolePermission.role_id.in_(role_ids),
                models.RolePermission.allow.is_(True),
                models.RolePermission.mode.in_([models.PermissionMode.ALL, scoped_mode]),
            )
            .all()
        )
        return [row[0] for row in rows]

    def set_role_permission(
        self, role: models.Role, permission: models.Permission, mode: models.PermissionMode, allow: bool
    ) -> models.RolePermission:
        role_permission = self._find_role_permission(role, permission, mode)
        if role_permission is None:
            role_permission = models.RolePermission(
                role_id=role.id, permission_id=permission.id, mode=mode, allow=allow
            )
            self.db.add(role_permission)
        else:
            role_permission.allow = allow
        self.db.commit()
        self.db.refresh(role_permission)
        return role_permission

    def delete_role_permission(
        self, role: models.Role, permission: models.Permission, mode: models.PermissionMode
    ) -> bool:
        role_permission = self._find_role_permission(role, permission, mode)
        if role_permission:
            self.db.delete(role_permission)
            self.db.commit()
            return True
        return False

    def _find_role_permission(self, role, permission, mode) -> Optional[models.RolePermission]:
        return self.db.query(models.RolePermission).filter(
            models.RolePermission.role_id == role.id,
            models.RolePermission.permission_id == permission.id,
            models.RolePermission.mode == mode,
        ).first()
