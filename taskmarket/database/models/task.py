from sqlalchemy import Column, Integer, String, DateTime, Enum, ForeignKey, func
from sqlalchemy.orm import relationship, validates
from ..database import Base
from .enums import TaskStatus, TaskAdminStatus, enum_values, coerce_enum

class Task(Base):
    """
    작업 의뢰자(task giver)가 구매한 참여(좋아요, 팔로우, 조회 등)의 작업 단위입니다.
    remaining_quantity는 예약 시 감소하고, 예약 만료나 반려 시 다시 증가하는
    공유 카운터입니다.
    """
    __tablename__ = "tasks"
    id = Column(Integer, primary_key=True, index=True)
    title = Column(String(255), nullable=False)
    quantity = Column(Integer, nullable=False)
    remaining_quantity = Column(Integer, nullable=False)
    completed_quantity = Column(Integer, nullable=False, default=0)
    status = Column(
        Enum(TaskStatus, values_callable=enum_values, native_enum=False, validate_strings=True, name="task_status"),
        nullable=False,
        default=TaskStatus.PENDING,
        index=True,
    )
    admin_status = Column(
        Enum(TaskAdminStatus, values_callable=enum_values, native_enum=False, validate_strings=True, name="task_admin_status"),
        nullable=False,
        default=TaskAdminStatus.PENDING,
        index=True,
    )
    # 주문을 넣은 사용자는 자신의 작업을 수행할 수 없습니다.
    excluded_user_id = Column(Integer, ForeignKey("users.id"), nullable=True)
    created_at = Column(DateTime, server_default=func.now())

    executions = relationship("TaskExecution", back_populates="task", cascade="all, delete-orphan")

    @validates("status")
    def validate_status(self, key, value):
        return coerce_enum(TaskStatus, value)

    @validates("admin_status")
    def validate_admin_status(self, key, value):
        return coerce_enum(TaskAdminStatus, value)
