from sqlalchemy import Column, Integer, String
from ..database import Base

class Permission(Base):
    """
    하나의 동작/리소스에 대한 접근을 제어하는 원자적 권한입니다.
    (예: 'orders.refund', 'tasks.take'). group은 화면 표시용 분류입니다.
    """
    __tablename__ = "permissions"
    id = Column(Integer, primary_key=True, index=True)
    key = Column(String(100), unique=True, nullable=False, index=True)
    label = Column(String(150), nullable=False)
    group = Column(String(100), nullable=True)
