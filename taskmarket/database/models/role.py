from sqlalchemy import Column, Integer, String, Boolean
from sqlalchemy.orm import relationship
from ..database import Base

class Role(Base):
    """
    사용자가 가질 수 있는 권한의 묶음을 정의합니다.
    (예: 'admin', 'moderator', 'member').
    is_universal이 True인 역할(예: super_admin)은 시스템의 모든 권한을 부여합니다.
    """
    __tablename__ = "roles"
    id = Column(Integer, primary_key=True, index=True)
    key = Column(String(50), unique=True, nullable=False, index=True)
    label = Column(String(100), nullable=False)
    is_universal = Column(Boolean, nullable=False, default=False)

    permission_associations = relationship("RolePermission", back_populates="role", cascade="all, delete-orphan")
