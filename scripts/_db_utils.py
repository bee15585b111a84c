from __future__ import annotations

from collections.abc import Generator
from contextlib import contextmanager

from sqlalchemy.orm import Session

from app.boaz.db import make_engine, make_sessionmaker, transaction


@contextmanager
def script_session(db_url: str) -> Generator[Session, None, None]:
    """Session for release/cron scripts that run without the Flask app."""
    engine = make_engine(db_url)
    try:
        with transaction(make_sessionmaker(engine)) as s:
            yield s
    finally:
        engine.dispose()
