from __future__ import annotations

import re
from datetime import date, datetime, timezone
from typing import Annotated

from flask import request
from pydantic import AfterValidator


def parse_date(s: str | date | None) -> date | None:
    """Parse YYYY-MM-DD (a full ISO timestamp is truncated to its date)."""
    if s is None:
        return None
    if isinstance(s, datetime):
        return s.date()
    if isinstance(s, date):
        return s
    s = s.strip()
    if not s:
        return None
    if len(s) > 10:
        return parse_datetime(s).date()  # type: ignore[union-attr]
    return date.fromisoformat(s)


def parse_datetime(s: str | datetime | None) -> datetime | None:
    """Parse an ISO timestamp into a naive UTC datetime. Raises ValueError on garbage."""
    if s is None:
        return None
    if isinstance(s, datetime):
        dt = s
    else:
        s = s.strip()
        if not s:
            return None
        if s.endswith("Z"):
            s = s[:-1] + "+00:00"
        dt = datetime.fromisoformat(s)
    if dt.tzinfo is not None:
        dt = dt.astimezone(timezone.utc).replace(tzinfo=None)
    return dt


def iso(value: datetime | date | None) -> str | None:
    if value is None:
        return None
    return value.isoformat()


def arg_str(name: str) -> str:
    return (request.args.get(name) or "").strip()


def arg_int(name: str, default: int | None = None) -> int | None:
    raw = arg_str(name)
    if not raw:
        return default
    try:
        return int(raw)
    except ValueError:
        return default


def arg_ids(name: str) -> list[int]:
    """Comma separated integer ids (?account_ids=1,2,3); junk entries are dropped."""
    out: list[int] = []
    for part in arg_str(name).split(","):
        part = part.strip()
        if part.isdigit():
            out.append(int(part))
    return out


def sort_dir_desc(default: bool = False) -> bool:
    """`?dir=`: only "asc" sorts ascending; any other value sorts descending."""
    raw = arg_str("dir").lower()
    if not raw:
        return default
    return raw != "asc"


_SLUG_RE = re.compile(r"[^a-z0-9]+")


def slugify(value: str) -> str:
    return _SLUG_RE.sub("_", (value or "").strip().lower()).strip("_")


def normalize_str_list(values: list[str] | None, *, max_items: int = 50, max_len: int = 80) -> list[str]:
    """Trim, truncate, dedupe (order preserving) and cap a list of strings."""
    out: list[str] = []
    seen: set[str] = set()
    for v in values or []:
        v = str(v or "").strip()[:max_len]
        if not v or v in seen:
            continue
        seen.add(v)
        out.append(v)
        if len(out) >= max_items:
            break
    return out


def to_naive_utc(dt: datetime) -> datetime:
    if dt.tzinfo is not None:
        return dt.astimezone(timezone.utc).replace(tzinfo=None)
    return dt


# Timestamps are stored naive UTC; accept "Z"/offset input from clients.
UtcDateTime = Annotated[datetime, AfterValidator(to_naive_utc)]
