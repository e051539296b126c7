# taskmarket/config.py
"""
환경 변수 기반 설정 모듈.

.env 파일이 주어지면 python-dotenv로 먼저 읽어들인 뒤,
환경 변수에서 값을 검증하여 AppConfig를 생성합니다.
"""
import logging
import os
from dataclasses import dataclass
from datetime import timedelta
from typing import Callable, Optional

from dotenv import load_dotenv

LOGGER = logging.getLogger(__name__)

_PORT_UPPER_BOUND = 65536
_DEFAULT_TOKEN_EXPIRE_MINUTES = 60 * 24
_DEFAULT_RESERVATION_WINDOW_MINUTES = 15
_DEFAULT_SWEEP_INTERVAL_SECONDS = 5 * 60


@dataclass
class AppConfig:
    """환경 변수에서 읽어들인 애플리케이션 설정"""

    database_url: str
    logging_level: str

    jwt_secret: str
    jwt_algorithm: str
    jwt_expires_minutes: int

    reservation_window_minutes: int
    expiry_sweep_interval_seconds: int
    expiry_batch_size: Optional[int]

    host: str
    port: int

    @property
    def reservation_window(self) -> timedelta:
        return timedelta(minutes=self.reservation_window_minutes)


def configure_logging(app_config: AppConfig) -> None:
    """설정된 로그 레벨로 루트 로거를 구성합니다."""
    numeric_level = getattr(logging, app_config.logging_level.upper(), None)
    if not isinstance(numeric_level, int):
        LOGGER.warning("Invalid log level: %s, using INFO", app_config.logging_level)
        numeric_level = logging.INFO
    logging.basicConfig(
        level=numeric_level,
        format="%(asctime)s - %(name)s - %(levelname)s - %(message)s",
    )


def get_env_str(var_name: str, default: Optional[str], value_checker: Optional[Callable[[str], bool]] = None) -> str:
    """
    환경 변수를 문자열로 읽습니다.

    Raises:
        ValueError: 필수 값이 없거나 검증에 실패했을 때.
    """
    value = os.getenv(var_name, default)
    if value is None or value == "":
        raise ValueError(f"Environment variable {var_name} is required")

    if value_checker and not value_checker(value):
        raise ValueError(f"Environment variable {var_name} has invalid value: {value}")

    return value


def get_env_int(var_name: str, default: int, value_checker: Optional[Callable[[int], bool]] = None) -> int:
    """
    환경 변수를 정수로 읽습니다. 설정되지 않았거나 빈 문자열이면 기본값을 사용합니다.

    Raises:
        ValueError: 정수가 아니거나 검증에 실패했을 때.
    """
    value_str = os.getenv(var_name)
    if value_str is None or value_str == "":
        return default

    if not value_str.isnumeric():
        raise ValueError(f"Environment variable {var_name} must be an integer, got: {value_str}")

    value = int(value_str)
    if value_checker and not value_checker(value):
        raise ValueError(f"Environment variable {var_name} has invalid value: {value}")

    return value


def get_env_optional_int(
    var_name: str, default: Optional[int], value_checker: Optional[Callable[[int], bool]] = None
) -> Optional[int]:
    """
    환경 변수를 정수 또는 None으로 읽습니다.
    설정되지 않으면 기본값, 빈 문자열이면 None을 반환합니다.

    Raises:
        ValueError: 정수가 아니거나 검증에 실패했을 때.
    """
    value_str = os.getenv(var_name)
    if value_str is None:
        return default
    if value_str == "":
        return None

    if not value_str.isnumeric():
        raise ValueError(f"Environment variable {var_name} must be an integer, got: {value_str}")

    value = int(value_str)
    if value_checker and not value_checker(value):
        raise ValueError(f"Environment variable {var_name} has invalid value: {value}")

    return value


def load_config_from_env(env_file: Optional[str] = None) -> AppConfig:
    """환경 변수(및 선택적으로 .env 파일)에서 AppConfig를 생성합니다."""
    if env_file:
        load_dotenv(dotenv_path=env_file)

    return AppConfig(
        database_url=get_env_str("DATABASE_URL", "sqlite:///taskmarket.db"),
        logging_level=get_env_str("LOGGING_LEVEL", "INFO"),
        jwt_secret=get_env_str("JWT_SECRET", None),
        jwt_algorithm=get_env_str("JWT_ALGORITHM", "HS256", lambda v: v in ("HS256", "HS384", "HS512")),
        jwt_expires_minutes=get_env_int("JWT_EXPIRES_MINUTES", _DEFAULT_TOKEN_EXPIRE_MINUTES, lambda v: v > 0),
        reservation_window_minutes=get_env_int(
            "RESERVATION_WINDOW_MINUTES", _DEFAULT_RESERVATION_WINDOW_MINUTES, lambda v: v > 0
        ),
        expiry_sweep_interval_seconds=get_env_int(
            "EXPIRY_SWEEP_INTERVAL_SECONDS", _DEFAULT_SWEEP_INTERVAL_SECONDS, lambda v: v > 0
        ),
        expiry_batch_size=get_env_optional_int("EXPIRY_BATCH_SIZE", None, lambda v: v > 0),
        host=get_env_str("HOST", "0.0.0.0"),
        port=get_env_int("PORT", 8000, lambda v: 0 < v < _PORT_UPPER_BOUND),
    )
