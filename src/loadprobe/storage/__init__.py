from __future__ import annotations

from pathlib import Path

from loadprobe.storage.duckdb_store import Storage

DEFAULT_DB_PATH = Path(".loadprobe/loadprobe.duckdb")


def default_storage(db_path: Path | None = None) -> Storage:
    return Storage(db_path or DEFAULT_DB_PATH)


__all__ = ["DEFAULT_DB_PATH", "Storage", "default_storage"]
