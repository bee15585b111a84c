"""
Named counter sequences with retry-on-duplicate numbering.

Human facing numbers (tickets, contracts, journal entries, ...) come from a
``counters`` row per sequence. The number columns are also UNIQUE, so a
counter that fell behind (restored backup, manual import) is detected on
insert and realigned to the current max before retrying.
"""
from __future__ import annotations

import logging
from collections.abc import Callable
from typing import Any, TypeVar

from sqlalchemy import func, select
from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import InstrumentedAttribute, Session

from app.boaz.api import ApiError
from app.boaz.models import Counter

logger = logging.getLogger(__name__)

T = TypeVar("T")

MAX_NUMBER_ATTEMPTS = 5


def next_sequence(s: Session, name: str, start: int = 1) -> int:
    """Return the next value of counter `name`; the first value handed out is `start`."""
    row = s.get(Counter, name, with_for_update=True)
    if row is None:
        row = Counter(name=name, seq=start)
        s.add(row)
        s.flush()
        return start
    row.seq = max(row.seq + 1, start)
    s.flush()
    return row.seq


def align_sequence(s: Session, name: str, value: int) -> None:
    """Make sure the next value handed out by `name` is greater than `value`."""
    row = s.get(Counter, name, with_for_update=True)
    if row is None:
        s.add(Counter(name=name, seq=value))
    elif row.seq < value:
        row.seq = value
    s.flush()


def assign_number(
    s: Session,
    build: Callable[[int], T],
    *,
    counter: str,
    start: int,
    column: InstrumentedAttribute[Any],
    attempts: int = MAX_NUMBER_ATTEMPTS,
) -> T:
    """
    Insert the row returned by `build(number)` using the next counter value.

    Each attempt runs in a savepoint; on a unique violation the counter is
    realigned to MAX(column) and the insert is retried with the next value.
    Raises ApiError(409, duplicate_<column>) once attempts are exhausted.
    """
    for attempt in range(1, attempts + 1):
        number = next_sequence(s, counter, start)
        row = build(number)
        try:
            with s.begin_nested():
                s.add(row)
                s.flush()
            return row
        except IntegrityError:
            current_max = s.execute(select(func.max(column))).scalar() or 0
            logger.warning(
                "Duplicate %s=%s on attempt %s; aligning counter %s to %s",
                column.key,
                number,
                attempt,
                counter,
                current_max,
            )
            align_sequence(s, counter, int(current_max))
    raise ApiError(f"duplicate_{column.key}", 409)
