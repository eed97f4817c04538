"""Coercion rules for loosely-typed service-order fields coming from the SPA.

The form posts photos, signatures and dates in whatever shape the widget
produced; these helpers turn them into what the model stores.
"""

from __future__ import annotations

from datetime import date, datetime, time, timezone
from typing import Any


def normalize_photos(value: Any) -> list[str]:
    if value is None:
        return []
    if isinstance(value, str):
        return [value]
    if isinstance(value, (list, tuple)):
        return [item if isinstance(item, str) else str(item) for item in value]
    return []


def normalize_signature(value: Any) -> Any:
    if value is None or isinstance(value, str):
        return value
    return str(value)


def parse_timestamp(value: Any) -> Any:
    """Parse ISO-like strings into aware datetimes; other types pass through untouched."""
    if isinstance(value, datetime):
        return value if value.tzinfo else value.replace(tzinfo=timezone.utc)
    if isinstance(value, date):
        return datetime.combine(value, time.min, tzinfo=timezone.utc)
    if not isinstance(value, str):
        return value

    raw = value.strip()
    if raw == "":
        return None
    if raw.endswith("Z") or raw.endswith("z"):
        raw = raw[:-1] + "+00:00"
    try:
        parsed = datetime.fromisoformat(raw)
    except ValueError as exc:
        raise ValueError(f"invalid date: {value!r}") from exc
    if parsed.tzinfo is None:
        parsed = parsed.replace(tzinfo=timezone.utc)
    return parsed
