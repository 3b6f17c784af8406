"""Datetime and text helpers for the case management module."""

from __future__ import annotations

from datetime import datetime, timezone
from typing import Any

COMPACT_FORMAT = "%Y%m%d%H%M%S"
DISPLAY_FORMAT = "%Y-%m-%d %H:%M:%S"

# Grafana sends this for "not set" end times.
_ZERO_TIME_PREFIX = "0001-01-01"


def now() -> datetime:
    return datetime.now(timezone.utc)


def parse_iso_datetime(value: Any) -> datetime | None:
    if value is None or value == "":
        return None
    if isinstance(value, datetime):
        return value if value.tzinfo else value.replace(tzinfo=timezone.utc)
    text = str(value).strip()
    if text.startswith(_ZERO_TIME_PREFIX):
        return None
    if text.endswith("Z"):
        text = text[:-1] + "+00:00"
    # fromisoformat before 3.11 only handles up to 6 fractional digits
    if "." in text:
        head, _, tail = text.partition(".")
        digits = ""
        rest = ""
        for idx, ch in enumerate(tail):
            if not ch.isdigit():
                rest = tail[idx:]
                break
            digits += ch
        text = f"{head}.{digits[:6].ljust(6, '0')}{rest}" if digits else head + rest
    try:
        parsed = datetime.fromisoformat(text)
    except ValueError:
        return None
    return parsed if parsed.tzinfo else parsed.replace(tzinfo=timezone.utc)


def format_display(value: datetime | None) -> str:
    if not value:
        return ""
    return value.astimezone(timezone.utc).strftime(DISPLAY_FORMAT)


def format_compact(value: datetime) -> str:
    return value.astimezone(timezone.utc).strftime(COMPACT_FORMAT)


def format_iso(value: datetime | None) -> str | None:
    if not value:
        return None
    return value.astimezone(timezone.utc).isoformat()


def epoch_millis(value: datetime) -> int:
    return int(value.timestamp() * 1000)


def minutes_between(start: datetime, end: datetime) -> int:
    return int((end - start).total_seconds() // 60)


def truncate(value: str, limit: int, suffix: str = "...") -> str:
    if len(value) <= limit:
        return value
    return value[: limit - len(suffix)] + suffix
