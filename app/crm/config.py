import os
from dataclasses import dataclass


@dataclass(frozen=True)
class Settings:
    env: str
    sqlite_file: str
    log_level: str


def _getenv(name: str, default: str = "") -> str:
    return (os.environ.get(name) or default).strip()


def load_settings() -> Settings:
    return Settings(
        env=_getenv("ENV", "development"),
        sqlite_file=_getenv("SQLITE_FILE", "data/customers.db"),
        log_level=_getenv("LOG_LEVEL", "INFO").upper(),
    )


def load_config() -> dict:
    s = load_settings()
    return {
        "ENV": s.env,
        "SQLITE_FILE": s.sqlite_file,
        "LOG_LEVEL": s.log_level,
        # request body limit (1MB)
        "MAX_CONTENT_LENGTH": 1024 * 1024,
    }


def is_production(env: str | None) -> bool:
    return (env or "").strip().lower() in ("prod", "production")
