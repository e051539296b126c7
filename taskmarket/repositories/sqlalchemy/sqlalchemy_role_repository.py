from typing import List, Optional
from sqlalchemy.orm import Session
from taskmarket.database import models
from taskmarket.repositories.interfaces import IRoleRepository

class SqlalchemyRoleRepository(IRoleRepository):
    def __init__(self, db_session: Session):
        self.db = db_session

    def find_by_key(self, key: str) -> Optional[models.Role]:
        return self.db.query(models.Role).filter(models.Role.key == key).first()

    def list_all(self) -> List[models.Role]:
        return self.db.query(models.Role).order_by(models.Role.key.asc()).all()

    def list_for_user(self, user_id: int) -> List[models.Role]:
        return (
            self.db.query(models.Role)
            .join(models.UserRole, models.UserRole.role_id == models.Role.id)
            .filter(models.UserRole.user_id == user_id)
            .order_by(models.Role.key.asc())
            .all()
        )

    def assign_to_user(self, user: models.User, role: models.Role):
        association = models.UserRole(user_id=user.id, role_id=role.id)
        self.db.merge(association) # INSERT OR IGNORE와 유사한 동작
        self.db.commit()

    def revoke_from_user(self, user: models.User, role: models.Role) -> bool:
        association = self.db.query(models.UserRole).filter(
            models.UserRole.user_id == user.id,
            models.UserRole.role_id == role.id
        ).first()
        if association:
            self.db.delete(association)
            self.db.commit()
            return True
        return False
