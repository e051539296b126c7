# taskmarket/utils/time_utils.py
from datetime import datetime, timezone


def utcnow() -> datetime:
    """
    현재 UTC 시각을 tzinfo 없는(naive) datetime으로 반환합니다.
    DB에 저장되는 모든 시각은 이 형식을 사용합니다.
    """
    return datetime.now(timezone.utc).replace(tzinfo=None)
