"""Environment-driven configuration."""

from __future__ import annotations

import os
from pathlib import Path

ROOT = Path(__file__).resolve().parents[1]


def _load_env_file(path: Path) -> None:
    if not path.exists():
        return
    for line in path.read_text(encoding="utf-8").splitlines():
        line = line.strip()
        if not line or line.startswith("#") or "=" not in line:
            continue
        key, value = line.split("=", 1)
        key = key.strip()
        value = value.strip().strip('"').strip("'")
        if key and key not in os.environ:
            os.environ[key] = value


_load_env_file(ROOT / "app" / ".env")


def _flag(name: str) -> bool:
    return os.getenv(name, "").strip().lower() in ("1", "true", "yes")


def use_db() -> bool:
    return os.getenv("USE_DB", "").strip() == "1"


def auth_disabled() -> bool:
    return _flag("SVGSYNC_DISABLE_AUTH")


def api_secret() -> str:
    return (os.getenv("SVGSYNC_API_SECRET") or "").strip()


def cma_base_url() -> str:
    return (os.getenv("SVGSYNC_CMA_BASE_URL") or "https://site-api.datocms.com").strip().rstrip("/")


def cma_timeout() -> float:
    return float(os.getenv("SVGSYNC_CMA_TIMEOUT", "30"))


def job_poll_interval() -> float:
    return float(os.getenv("SVGSYNC_JOB_POLL_INTERVAL", "0.5"))


def job_poll_limit() -> int:
    return int(os.getenv("SVGSYNC_JOB_POLL_LIMIT", "120"))


def settings_max_bytes() -> int:
    return int(os.getenv("SVGSYNC_SETTINGS_MAX_BYTES", str(64 * 1024)))


def cors_origins() -> set[str]:
    return {
        origin.strip().rstrip("/")
        for origin in os.getenv("SVGSYNC_CORS_ORIGINS", "").split(",")
        if origin.strip()
    }


def memory_stores() -> bool:
    return _flag("SVGSYNC_MEMORY_STORES")


def db_pool_bounds() -> tuple[int, int]:
    return int(os.getenv("SVGSYNC_DB_POOL_MIN", "1")), int(os.getenv("SVGSYNC_DB_POOL_MAX", "5"))


def database_url() -> str | None:
    return os.getenv("DATABASE_URL") or None
