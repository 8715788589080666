"""Clock helpers."""

from __future__ import annotations

import datetime as dt


def utcnow() -> dt.datetime:
    """Return an aware UTC timestamp suitable for DB defaults."""
    return dt.datetime.now(dt.UTC)


def utc_today_iso() -> str:
    """Return today's UTC calendar date as ``YYYY-MM-DD``."""
    return utcnow().date().isoformat()
