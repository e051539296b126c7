# taskmarket/services/authorization.py
"""
요청 시점의 권한 검사.

검증된 토큰 페이로드에 포함된 권한 집합만을 신뢰하며,
DB를 다시 조회하지 않습니다.
"""
import logging
from typing import Any, Dict

from taskmarket.services.exceptions import PermissionDeniedError

logger = logging.getLogger(__name__)


def check_permission(token_data: Dict[str, Any], permission_key: str) -> Dict[str, bool]:
    """
    토큰에 포함된 권한 집합에서 특정 권한을 확인합니다.

    Returns:
        has_permission: 권한 집합에 키가 포함되어 있는지 여부.
        is_restricted: 권한은 있지만 사용자에게 제한되어 있는지 여부.
    """
    permissions = token_data.get("permissions") or []
    restricted = token_data.get("restricted") or []
    has_permission = permission_key in permissions
    return {
        "has_permission": has_permission,
        "is_restricted": has_permission and permission_key in restricted,
    }


def require_permission(token_data: Dict[str, Any], permission_key: str) -> None:
    """
    요청을 처리하기 전에 필요한 권한이 있는지 확인합니다.

    Raises:
        PermissionDeniedError: 권한이 없거나 제한되어 있을 때.
    """
    result = check_permission(token_data, permission_key)
    if result["has_permission"] and not result["is_restricted"]:
        return

    logger.info(
        "Permission '%s' denied for user %s (restricted=%s)",
        permission_key, token_data.get("userId"), result["is_restricted"]
    )
    if result["is_restricted"]:
        raise PermissionDeniedError(f"Permission '{permission_key}' is restricted for this account.")
    raise PermissionDeniedError(f"Permission '{permission_key}' required.")
