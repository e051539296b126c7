from sqlalchemy import Column, Integer, Boolean, Enum, ForeignKey
from sqlalchemy.orm import relationship, validates
from ..database import Base
from .enums import PermissionMode, enum_values, coerce_enum

class UserRole(Base):
    """
    사용자(User)와 역할(Role) 사이의 다대다(many-to-many) 관계를 연결하는 연관 테이블입니다.
    사용자의 권한은 보유한 모든 역할이 부여하는 권한의 합집합입니다.
    """
    __tablename__ = 'user_roles'
    user_id = Column(Integer, ForeignKey('users.id'), primary_key=True)
    role_id = Column(Integer, ForeignKey('roles.id'), primary_key=True)

    user = relationship("User", back_populates="role_associations")
    role = relationship("Role")


class RolePermission(Base):
    """
    역할(Role)과 권한(Permission)을 연결하는 연관 테이블입니다.
    mode로 적용 범위(all / taskDoer / taskGiver)를 한정하고,
    allow가 False인 행은 해당 역할의 권한 집합에 포함되지 않습니다.
    (role, permission, mode) 조합은 하나만 존재한다고 가정합니다.
    """
    __tablename__ = 'role_permissions'
    id = Column(Integer, primary_key=True, index=True)
    role_id = Column(Integer, ForeignKey('roles.id'), nullable=False, index=True)
    permission_id = Column(Integer, ForeignKey('permissions.id'), nullable=False)
    mode = Column(
        Enum(PermissionMode, values_callable=enum_values, native_enum=False, validate_strings=True, name="permission_mode"),
        nullable=False,
        default=PermissionMode.ALL,
    )
    allow = Column(Boolean, nullable=False, default=True)

    role = relationship("Role", back_populates="permission_associations")
    permission = relationship("Permission")

    @validates("mode")
    def validate_mode(self, key, value):
        return coerce_enum(PermissionMode, value)
