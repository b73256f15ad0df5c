"""Shared utility functions for ids, timestamps and date handling."""

from __future__ import annotations

import re
import time
import uuid
from datetime import date


def new_id() -> str:
    """Return a fresh opaque record identifier."""
    return str(uuid.uuid4())


def now_ms() -> int:
    """Current time as epoch milliseconds (record creation timestamps)."""
    return int(time.time() * 1000)


def today_iso() -> str:
    """Today's date in the local calendar as YYYY-MM-DD."""
    return date.today().isoformat()


def parse_iso_date(dt_str: str) -> date | None:
    """Parse the YYYY-MM-DD prefix of a string into a date.

    Returns None for empty or unparseable input.
    """
    if not dt_str:
        return None
    m = re.match(r"(\d{4})-(\d{2})-(\d{2})", dt_str.strip())
    if not m:
        return None
    try:
        return date(int(m.group(1)), int(m.group(2)), int(m.group(3)))
    except ValueError:
        return None


def format_short_date(dt_str: str) -> str:
    """'2024-01-10' -> '10/01' (chart axis labels). Unparseable input is returned as-is."""
    d = parse_iso_date(dt_str)
    if d is None:
        return dt_str
    return f"{d.day:02d}/{d.month:02d}"


def format_display_date(dt_str: str) -> str:
    """'2024-01-10' -> '10/01/2024'."""
    d = parse_iso_date(dt_str)
    if d is None:
        return dt_str
    return f"{d.day:02d}/{d.month:02d}/{d.year}"
