from sqlalchemy import Column, Integer, String, Text, DateTime, Enum, ForeignKey
from sqlalchemy.orm import relationship, validates
from ..database import Base
from .enums import ExecutionStatus, enum_values, coerce_enum

class TaskExecution(Base):
    """
    한 사용자가 작업(Task)의 수량 중 한 단위를 예약한 기록입니다.
    예약 시 pending 상태로 생성되며, expires_at 이전에 증빙을 제출하면
    submitted → approved/rejected 경로로, 제출 없이 만료되면 expired로 전이합니다.
    """
    __tablename__ = "task_executions"
    id = Column(Integer, primary_key=True, index=True)
    task_id = Column(Integer, ForeignKey("tasks.id"), nullable=False, index=True)
    user_id = Column(Integer, ForeignKey("users.id"), nullable=False, index=True)
    status = Column(
        Enum(ExecutionStatus, values_callable=enum_values, native_enum=False, validate_strings=True, name="execution_status"),
        nullable=False,
        default=ExecutionStatus.PENDING,
        index=True,
    )
    reserved_at = Column(DateTime, nullable=False)
    expires_at = Column(DateTime, nullable=False, index=True)
    submitted_at = Column(DateTime, nullable=True)
    proof_url = Column(String(500), nullable=True)
    reviewed_at = Column(DateTime, nullable=True)
    rejection_reason = Column(Text, nullable=True)

    task = relationship("Task", back_populates="executions")
    user = relationship("User", back_populates="executions")

    @validates("status")
    def validate_status(self, key, value):
        return coerce_enum(ExecutionStatus, value)
