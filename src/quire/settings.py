from __future__ import annotations

import os
from dataclasses import dataclass
from pathlib import Path


def _env_int(name: str, default: int, min_val: int | None = None) -> int:
    """Get integer from environment with optional minimum enforcement."""
    val = int(os.environ.get(name, str(default)))
    if min_val is not None and val < min_val:
        return min_val
    return val


@dataclass(frozen=True)
class Settings:
    """Static settings for the document engine.

    Everything is local: one SQLite file under the data directory plus a
    rotating log file next to it.
    """

    root_dir: Path = Path(__file__).resolve().parents[2]
    data_dir: Path = Path(os.environ.get("QUIRE_DATA_DIR", str(root_dir / ".quire-data")))
    log_path: Path = data_dir / "quire.log"
    log_level: str = os.environ.get("QUIRE_LOG_LEVEL", "INFO")
    log_max_bytes: int = _env_int("QUIRE_LOG_MAX_BYTES", 1_000_000)
    log_backup_count: int = _env_int("QUIRE_LOG_BACKUP_COUNT", 3)

    # Transient "database is locked" errors are retried this many times
    # before surfacing as a StoreError.
    store_retry_attempts: int = _env_int("QUIRE_STORE_RETRY_ATTEMPTS", 3, min_val=1)
    store_busy_timeout: float = float(os.environ.get("QUIRE_STORE_BUSY_TIMEOUT", "5.0"))


settings = Settings()


def db_path() -> Path:
    """Get the path to the document database.

    Read at call time so QUIRE_DB_PATH / QUIRE_DATA_DIR can be changed
    after import (tests rely on this).
    """
    explicit = os.environ.get("QUIRE_DB_PATH")
    if explicit:
        return Path(explicit)
    base = Path(os.environ.get("QUIRE_DATA_DIR", str(settings.data_dir)))
    return base / "quire.db"
