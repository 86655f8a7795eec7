# gridsync/config.py

import os
from dataclasses import dataclass
from typing import Optional

from dotenv import load_dotenv

load_dotenv()


def _flag(name: str, default: bool) -> bool:
    value = os.getenv(name)
    if value is None or value.strip() == "":
        return default
    return value.strip().lower() in ("1", "true", "yes", "on")


def _csv(name: str, default: str = "") -> tuple[str, ...]:
    value = os.getenv(name, default)
    return tuple(item.strip() for item in value.split(",") if item.strip())


def _seconds(name: str) -> Optional[float]:
    value = os.getenv(name)
    if value is None or value.strip() == "":
        return None
    return float(value)


@dataclass
class Settings:
    grid_size: int = 9
    grid_columns: int = 3
    # Ownership checks on update/lock/move; off means plain relay
    enforce_locks: bool = True
    validate_content: bool = True
    release_on_disconnect: bool = False
    # None disables lock expiry
    lock_timeout: Optional[float] = None
    reaper_interval: float = 5.0
    restricted_tokens: tuple[str, ...] = ()
    cors_origins: tuple[str, ...] = ("*",)
    host: str = "0.0.0.0"
    port: int = 8000
    log_level: str = "INFO"

    @classmethod
    def from_env(cls) -> "Settings":
        """Build settings from the environment (and a .env file, if any)."""
        return cls(
            grid_size=int(os.getenv("GRID_SIZE", "9")),
            grid_columns=int(os.getenv("GRID_COLUMNS", "3")),
            enforce_locks=_flag("GRID_ENFORCE_LOCKS", True),
            validate_content=_flag("GRID_VALIDATE_CONTENT", True),
            release_on_disconnect=_flag("GRID_RELEASE_ON_DISCONNECT", False),
            lock_timeout=_seconds("GRID_LOCK_TIMEOUT"),
            reaper_interval=float(os.getenv("GRID_REAPER_INTERVAL", "5")),
            restricted_tokens=_csv("GRID_RESTRICTED_TOKENS"),
            cors_origins=_csv("GRID_CORS_ORIGINS", "*"),
            host=os.getenv("GRID_HOST", "0.0.0.0"),
            port=int(os.getenv("GRID_PORT", "8000")),
            log_level=os.getenv("LOG_LEVEL", "INFO").upper(),
        )
