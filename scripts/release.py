"""
Release-phase helper.

Goal:
- Resolve the SQLite store path (SQLITE_FILE) and create its directory.
- Run alembic migrations up to head.

Usage:
  python scripts/release.py
"""

from __future__ import annotations

import os
import sys
from pathlib import Path


ROOT = Path(__file__).resolve().parents[1]
if str(ROOT) not in sys.path:
    sys.path.insert(0, str(ROOT))


def database_url(sqlite_file: str | None = None) -> str:
    raw = (sqlite_file or os.environ.get("SQLITE_FILE") or "data/customers.db").strip()
    path = Path(raw).expanduser().resolve()
    path.parent.mkdir(parents=True, exist_ok=True)
    return f"sqlite:///{path}"


def run_release(sqlite_file: str | None = None) -> None:
    from alembic import command
    from alembic.config import Config

    db_url = database_url(sqlite_file)
    env = (os.environ.get("ENV") or "").strip().lower()

    print("=== crm-service release start ===", flush=True)
    print(f"ENV={env or '(unset)'}", flush=True)
    print(f"Running Alembic migrations against {db_url} ...", flush=True)

    cfg = Config(str(ROOT / "alembic.ini"))
    cfg.set_main_option("script_location", str(ROOT / "migrations"))
    cfg.set_main_option("sqlalchemy.url", db_url)
    cfg.attributes["sqlalchemy_url_override"] = True
    command.upgrade(cfg, "head")

    print("Migrations complete.", flush=True)
    print("=== crm-service release done ===", flush=True)


if __name__ == "__main__":
    run_release()
