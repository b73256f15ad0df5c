"""Core helpers for ids, timestamps and dates."""

from kinai.core.utils import (
    format_display_date,
    format_short_date,
    new_id,
    now_ms,
    parse_iso_date,
    today_iso,
)
