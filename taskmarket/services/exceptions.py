# taskmarket/services/exceptions.py

# --- General Exceptions ---
class UserNotFoundError(Exception):
    """사용자를 찾을 수 없을 때"""
    pass

class RoleNotFoundError(Exception):
    """역할을 찾을 수 없을 때"""
    pass

class PermissionNotFoundError(Exception):
    """권한을 찾을 수 없을 때"""
    pass

class TaskNotFoundError(Exception):
    """작업을 찾을 수 없을 때"""
    pass

class ExecutionNotFoundError(Exception):
    """작업 수행(예약) 기록을 찾을 수 없을 때"""
    pass

# --- Creation/Validation Exceptions ---
class UserCreationError(Exception):
    """사용자 생성 실패 시"""
    pass

class InvalidModeError(ValueError):
    """허용되지 않은 모드 값이 전달되었을 때"""
    pass

class TaskUnavailableError(Exception):
    """작업을 예약할 수 없는 상태이거나 남은 수량이 없을 때"""
    pass

class TaskAlreadyClaimedError(Exception):
    """사용자가 이미 해당 작업을 예약했거나 수행했을 때"""
    pass

class ReservationExpiredError(Exception):
    """예약 제한 시간이 지난 뒤 증빙을 제출했을 때"""
    pass

class InvalidExecutionStateError(Exception):
    """현재 상태에서 허용되지 않는 전이를 요청했을 때"""
    pass

# --- Auth Exceptions ---
class TokenInvalidError(Exception):
    """토큰이 유효하지 않거나 없을 때"""
    pass

class AuthenticationError(Exception):
    """사용자 자격 증명 실패 시"""
    pass

class PermissionDeniedError(Exception):
    """요청에 필요한 권한이 토큰에 없을 때"""
    pass

class PermissionLookupError(Exception):
    """권한 집계 중 저장소 오류가 발생했을 때. 빈 권한 집합으로 대체하지 않습니다."""
    pass
