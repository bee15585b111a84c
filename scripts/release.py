"""
Release phase: migrate the schema to head, then seed roles, permissions and
the admin user (idempotent; existing passwords are left alone).

Refuses to run without DATABASE_URL, and on SQLite when ENV is production.

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


def release_database_url() -> str:
    db_url = (os.environ.get("DATABASE_URL") or "").strip()
    if not db_url:
        raise RuntimeError("DATABASE_URL is required for a release.")
    env = (os.environ.get("ENV") or "").strip().lower()
    if env in ("prod", "production") and db_url.startswith("sqlite"):
        raise RuntimeError("SQLite is not supported in production; point DATABASE_URL at Postgres.")
    return db_url


def migrate(db_url: str) -> None:
    from alembic import command
    from alembic.config import Config

    cfg = Config(str(ROOT / "alembic.ini"))
    cfg.set_main_option("script_location", str(ROOT / "migrations"))
    cfg.set_main_option("sqlalchemy.url", db_url)
    command.upgrade(cfg, "head")


def run_release() -> None:
    db_url = release_database_url()
    print("[release] alembic upgrade head", flush=True)
    migrate(db_url)

    from scripts import init_db

    print("[release] seeding roles, permissions and admin user", flush=True)
    init_db.seed_only(database_url=db_url)
    print("[release] done", flush=True)


if __name__ == "__main__":
    run_release()
