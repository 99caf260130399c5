"""Settings loaded from the environment, ./.env, or the per-user env file."""
from __future__ import annotations

import os
from dataclasses import dataclass
from pathlib import Path
from typing import Mapping, Optional

from dotenv import load_dotenv

from .errors import ConfigError

USER_ENV_FILE = Path.home() / ".mysql-gateway" / ".env"

REQUIRED_VARS = ("DB_HOST", "DB_USER", "DB_NAME")


@dataclass(frozen=True)
class Settings:
    db_host: Optional[str] = None
    db_port: int = 3306
    db_user: Optional[str] = None
    db_password: str = ""
    db_name: Optional[str] = None
    database_url: Optional[str] = None
    host: str = "0.0.0.0"
    port: int = 8080
    pool_size: int = 10
    pool_timeout: int = 30
    log_level: str = "INFO"


def _int(env: Mapping[str, str], name: str, default: int) -> int:
    raw = env.get(name)
    if raw is None or raw.strip() == "":
        return default
    try:
        return int(raw)
    except ValueError:
        raise ConfigError(f"{name} must be an integer, got {raw!r}") from None


def settings_from_env(env: Mapping[str, str]) -> Settings:
    """Build Settings from a mapping; raises ConfigError when it is unusable."""
    database_url = env.get("DATABASE_URL") or None
    if database_url is None:
        missing = [name for name in REQUIRED_VARS if not env.get(name)]
        if missing:
            raise ConfigError(
                "Missing database configuration: " + ", ".join(missing) + ". "
                f"Set them in the environment, ./.env or {USER_ENV_FILE}"
            )
    return Settings(
        db_host=env.get("DB_HOST"),
        db_port=_int(env, "DB_PORT", 3306),
        db_user=env.get("DB_USER"),
        db_password=env.get("DB_PASSWORD", ""),
        db_name=env.get("DB_NAME"),
        database_url=database_url,
        host=env.get("HOST") or "0.0.0.0",
        port=_int(env, "PORT", 8080),
        pool_size=_int(env, "DB_POOL_SIZE", 10),
        pool_timeout=_int(env, "DB_POOL_TIMEOUT", 30),
        log_level=(env.get("LOG_LEVEL") or "INFO").upper(),
    )


def load_settings(env_file: Optional[Path] = None) -> Settings:
    """Load .env files into os.environ (never overriding) and read Settings.

    ``env_file`` replaces the default ./.env + user file lookup.
    """
    if env_file is not None:
        if not env_file.exists():
            raise ConfigError(f"Config file not found: {env_file}")
        load_dotenv(env_file)
    else:
        load_dotenv(Path.cwd() / ".env")
        if USER_ENV_FILE.exists():
            load_dotenv(USER_ENV_FILE)
    return settings_from_env(os.environ)
