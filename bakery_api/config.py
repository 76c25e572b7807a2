import os
from dataclasses import dataclass, field
from typing import Optional

from dotenv import load_dotenv


def _env_bool(name: str, default: bool = False) -> bool:
    """Parse a boolean environment variable (1/true/yes/on, 0/false/no/off)."""
    raw = os.environ.get(name)
    if raw is None:
        return default
    v = raw.strip().lower()
    if v in ("1", "true", "yes", "y", "on"):
        return True
    if v in ("0", "false", "no", "n", "off"):
        return False
    return default


def _env(name: str, default: Optional[str] = None):
    return lambda: os.environ.get(name, default)


def _database_url() -> str:
    url = os.environ.get("DATABASE_URL")
    if url:
        return url
    host = os.environ.get("DB_HOST")
    if not host:
        return "sqlite+aiosqlite:///./bakery.sqlite"
    user = os.environ.get("DB_USER", "bakery")
    password = os.environ.get("DB_PASSWORD", "")
    name = os.environ.get("DB_NAME", "bakery")
    return f"postgresql+asyncpg://{user}:{password}@{host}/{name}"


@dataclass(frozen=True)
class Config:
    """Runtime configuration, built once at process start.

    Secrets (DB_PASSWORD, DEV_AUTH_KEY) come from the environment or a .env
    file and are never hardcoded.
    """

    DATABASE_URL: str = field(default_factory=_database_url)
    DB_ECHO: bool = field(default_factory=lambda: _env_bool("DB_ECHO", False))

    # Shared secret compared verbatim against the Authorization header.
    # Unset or blank disables the developer override.
    DEV_AUTH_KEY: Optional[str] = field(default_factory=_env("DEV_AUTH_KEY"))

    SESSION_EXPIRY_DAYS: int = field(
        default_factory=lambda: int(os.environ.get("SESSION_EXPIRY_DAYS", "3"))
    )

    CELERY_BROKER_URL: str = field(
        default_factory=_env("CELERY_BROKER_URL", "redis://localhost:6379/0")
    )
    CELERY_RESULT_BACKEND: Optional[str] = field(default_factory=_env("CELERY_RESULT_BACKEND"))
    CELERY_TASK_ALWAYS_EAGER: bool = field(
        default_factory=lambda: _env_bool("CELERY_TASK_ALWAYS_EAGER", False)
    )
    SESSION_PURGE_INTERVAL_SECONDS: float = field(
        default_factory=lambda: float(os.environ.get("SESSION_PURGE_INTERVAL_SECONDS", "3600"))
    )

    CORS_ALLOW_ORIGINS: str = field(default_factory=_env("CORS_ALLOW_ORIGINS", "*"))

    @property
    def dev_override_enabled(self) -> bool:
        return bool((self.DEV_AUTH_KEY or "").strip())

    @property
    def cors_origins(self) -> list[str]:
        return [o.strip() for o in self.CORS_ALLOW_ORIGINS.split(",") if o.strip()]

    @property
    def sync_database_url(self) -> str:
        # asyncpg -> psycopg2 for Celery and Alembic
        return (
            self.DATABASE_URL
            .replace("postgresql+asyncpg", "postgresql+psycopg2")
            .replace("sqlite+aiosqlite", "sqlite")
        )


def load_config() -> Config:
    load_dotenv()
    return Config()
