"""
Settings

Environment-driven configuration. A local .env file is loaded once on
import, so CLIs and library callers see the same values.
"""
import logging
import os
from dataclasses import dataclass
from typing import Optional

from dotenv import load_dotenv


# Load environment variables
load_dotenv()


def _env_float(name: str, default: float) -> float:
    raw = os.getenv(name)
    if raw is None or raw.strip() == '':
        return default
    try:
        return float(raw)
    except ValueError:
        logging.getLogger(__name__).warning("Ignoring invalid %s=%r, using %s", name, raw, default)
        return default


def _env_int(name: str, default: int) -> int:
    return int(_env_float(name, default))


@dataclass(frozen=True)
class DatabaseSettings:
    """PostgreSQL connection parameters"""
    host: str = 'localhost'
    port: int = 5432
    database: str = 'budget_db'
    user: str = 'budget_user'
    password: str = 'budget_password_local_dev'
    connect_timeout: int = 5

    @classmethod
    def from_env(cls) -> 'DatabaseSettings':
        return cls(
            host=os.getenv('DB_HOST', cls.host),
            port=_env_int('DB_PORT', cls.port),
            database=os.getenv('DB_NAME', cls.database),
            user=os.getenv('DB_USER', cls.user),
            password=os.getenv('DB_PASSWORD', cls.password),
            connect_timeout=_env_int('DB_CONNECT_TIMEOUT', cls.connect_timeout),
        )


@dataclass(frozen=True)
class CategorizerSettings:
    """Tunables for the categorization engine and alias resolver"""
    confidence_threshold: float = 0.55
    alias_list_limit: int = 50
    store_max_attempts: int = 10
    alias_timeout_seconds: Optional[float] = 2.0
    log_level: str = 'INFO'

    @classmethod
    def from_env(cls) -> 'CategorizerSettings':
        timeout = _env_float('CATEGORIZER_ALIAS_TIMEOUT_SECONDS', cls.alias_timeout_seconds)
        return cls(
            confidence_threshold=_env_float('CATEGORIZER_CONFIDENCE_THRESHOLD', cls.confidence_threshold),
            alias_list_limit=_env_int('CATEGORIZER_ALIAS_LIST_LIMIT', cls.alias_list_limit),
            store_max_attempts=_env_int('CATEGORIZER_STORE_MAX_ATTEMPTS', cls.store_max_attempts),
            # 0 disables the timeout
            alias_timeout_seconds=timeout if timeout > 0 else None,
            log_level=os.getenv('CATEGORIZER_LOG_LEVEL', cls.log_level).upper(),
        )


def configure_logging(level: Optional[str] = None) -> None:
    """Console logging for the CLIs"""
    level_name = (level or CategorizerSettings.from_env().log_level).upper()
    logging.basicConfig(
        level=getattr(logging, level_name, logging.INFO),
        format="%(asctime)s [%(levelname)s] %(name)s: %(message)s",
        datefmt="%Y-%m-%d %H:%M:%S",
    )
