from sqlalchemy import Column, Integer, String, DateTime, Enum, JSON, func
from sqlalchemy.orm import relationship, validates
from ..database import Base
from .enums import UserMode, UserStatus, enum_values, coerce_enum

class User(Base):
    """
    플랫폼에 로그인하는 사용자를 나타냅니다.
    사용자는 UserRole을 통해 여러 역할(Role)을 가질 수 있으며,
    현재 운영 모드(taskDoer / taskGiver)에 따라 적용되는 권한이 달라집니다.
    `role` 컬럼은 과거 단일 역할 문자열로, 표시용으로만 사용합니다.
    """
    __tablename__ = "users"
    id = Column(Integer, primary_key=True, index=True)
    username = Column(String(50), unique=True, nullable=False, index=True)
    email = Column(String(255), unique=True, nullable=False, index=True)
    password_hash = Column(String(255), nullable=False)
    role = Column(String(50), nullable=False, default="user")
    mode = Column(
        Enum(UserMode, values_callable=enum_values, native_enum=False, validate_strings=True, name="user_mode"),
        nullable=False,
        default=UserMode.TASK_DOER,
    )
    status = Column(
        Enum(UserStatus, values_callable=enum_values, native_enum=False, validate_strings=True, name="user_status"),
        nullable=False,
        default=UserStatus.ACTIVE,
    )
    # 역할로 부여되었더라도 일시적으로 사용이 제한된 권한 키 목록
    restricted_permissions = Column(JSON, nullable=True)
    last_login = Column(DateTime, nullable=True)
    created_at = Column(DateTime, server_default=func.now())

    role_associations = relationship("UserRole", back_populates="user", cascade="all, delete-orphan")
    executions = relationship("TaskExecution", back_populates="user", cascade="all, delete-orphan")

    @validates("mode")
    def validate_mode(self, key, value):
        return coerce_enum(UserMode, value)

    @validates("status")
    def validate_status(self, key, value):
        return coerce_enum(UserStatus, value)
