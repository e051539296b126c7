import enum


class UserMode(str, enum.Enum):
    """사용자의 현재 운영 모드"""
    TASK_DOER = "taskDoer"
    TASK_GIVER = "taskGiver"


class PermissionMode(str, enum.Enum):
    """역할-권한 연결이 적용되는 모드 범위"""
    ALL = "all"
    TASK_DOER = "taskDoer"
    TASK_GIVER = "taskGiver"


class UserStatus(str, enum.Enum):
    ACTIVE = "active"
    SUSPENDED = "suspended"


class TaskStatus(str, enum.Enum):
    PENDING = "pending"
    PROCESSING = "processing"
    COMPLETED = "completed"
    FAILED = "failed"
    CANCELLED = "cancelled"


class TaskAdminStatus(str, enum.Enum):
    PENDING = "pending"
    APPROVED = "approved"
    REJECTED = "rejected"


class ExecutionStatus(str, enum.Enum):
    """작업 수행(예약) 상태. approved, rejected, expired는 종료 상태입니다."""
    PENDING = "pending"
    SUBMITTED = "submitted"
    APPROVED = "approved"
    REJECTED = "rejected"
    EXPIRED = "expired"


def enum_values(enum_cls):
    # DB에는 멤버 이름이 아닌 값('taskDoer' 등)을 저장합니다.
    return [member.value for member in enum_cls]


def coerce_enum(enum_cls, value):
    """
    문자열 또는 Enum 멤버를 해당 Enum으로 변환합니다.

    Raises:
        ValueError: 허용되지 않은 값일 때.
    """
    if isinstance(value, enum_cls):
        return value
    try:
        return enum_cls(value)
    except ValueError:
        allowed = ", ".join(enum_values(enum_cls))
        raise ValueError(f"Invalid {enum_cls.__name__} '{value}'. Allowed values: {allowed}.")
