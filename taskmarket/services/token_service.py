from datetime import datetime, timedelta, timezone
from typing import Any, Dict, Iterable

import jwt

from taskmarket.services.exceptions import TokenInvalidError

TOKEN_TYPE = "access"


class TokenService:
    """권한 집합을 포함한 서명된 액세스 토큰을 발급하고 검증합니다."""

    def __init__(self, secret_key: str, algorithm: str = "HS256", expire_minutes: int = 60 * 24):
        if not secret_key:
            raise ValueError("A non-empty secret key is required to sign tokens.")
        self.secret_key = secret_key
        self.algorithm = algorithm
        self.expire_minutes = expire_minutes

    def issue(
        self,
        user_id: int,
        mode: str,
        roles: Iterable[Dict[str, Any]],
        permissions: Iterable[str],
        restricted: Iterable[str] = (),
    ) -> Dict[str, str]:
        """
        사용자 ID, 역할, 유효 권한 집합을 담은 토큰을 발급합니다.

        Args:
            user_id: 토큰 소유자의 ID.
            mode: 권한 집합을 계산한 운영 모드.
            roles: 보유 역할 목록 (key, label 포함).
            permissions: 유효 권한 키 목록.
            restricted: 사용이 제한된 권한 키 목록.

        Returns:
            토큰 문자열과 만료 시각(ISO 8601)을 담은 딕셔너리.
        """
        issued_at = datetime.now(timezone.utc)
        expires_at = issued_at + timedelta(minutes=self.expire_minutes)
        payload = {
            "sub": str(user_id),
            "userId": user_id,
            "mode": mode,
            "roles": [{"key": r["key"], "label": r["label"]} for r in roles],
            "permissions": sorted(set(permissions)),
            "restricted": sorted(set(restricted)),
            "iat": issued_at,
            "exp": expires_at,
            "type": TOKEN_TYPE,
        }
        token = jwt.encode(payload, self.secret_key, algorithm=self.algorithm)
        return {"token": token, "expires_at": expires_at.isoformat()}

    def verify(self, token: str) -> Dict[str, Any]:
        """
        토큰의 서명과 만료를 검증하고 페이로드를 반환합니다.

        Raises:
            TokenInvalidError: 서명이 잘못되었거나, 만료되었거나, 형식이 올바르지 않을 때.
        """
        try:
            payload = jwt.decode(token, self.secret_key, algorithms=[self.algorithm])
        except jwt.ExpiredSignatureError:
            raise TokenInvalidError("Token has expired.")
        except jwt.InvalidTokenError:
            raise TokenInvalidError("Token not found or invalid.")

        if payload.get("type") != TOKEN_TYPE:
            raise TokenInvalidError("Invalid token type.")
        if payload.get("userId") is None or not isinstance(payload.get("permissions"), list):
            raise TokenInvalidError("Token payload is malformed.")
        return payload
