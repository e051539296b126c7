from datetime import datetime
from typing import List, Optional
from sqlalchemy.orm import Session
from taskmarket.database import models
from taskmarket.repositories.interfaces import IUserRepository

class SqlalchemyUserRepository(IUserRepository):
    def __init__(self, db_session: Session):
        self.db = db_session

    def create(self, user_model: models.User) -> models.User:
        self.db.add(user_model)
        self.db.commit()
        self.db.refresh(user_model)
        return user_model

    def find_by_id(self, user_id: int) -> Optional[models.User]:
        return self.db.query(models.User).filter(models.User.id == user_id).first()

    def find_by_username(self, username: str) -> Optional[models.User]:
        return self.db.query(models.User).filter(models.User.username == username).first()

    def find_by_email(self, email: str) -> Optional[models.User]:
        return self.db.query(models.User).filter(models.User.email == email).first()

    def update_mode(self, user: models.User, mode: models.UserMode) -> models.User:
        user.mode = mode
        self.db.commit()
        self.db.refresh(user)
        return user

    def update_last_login(self, user: models.User, logged_in_at: datetime) -> None:
        user.last_login = logged_in_at
        self.db.commit()

    def update_restricted_permissions(self, user: models.User, keys: List[str]) -> models.User:
        user.restricted_permissions = list(keys) if keys else None
        self.db.commit()
        self.db.refresh(user)
        return user
