from __future__ import annotations

from datetime import datetime, timedelta, timezone
from typing import Any, Optional


def utcnow() -> datetime:
    return datetime.now(timezone.utc)


def to_iso(value: datetime) -> str:
    """Render a datetime as UTC ISO-8601 with millisecond precision and ``Z``."""

    if value.tzinfo is None:
        value = value.replace(tzinfo=timezone.utc)
    return value.astimezone(timezone.utc).isoformat(timespec="milliseconds").replace("+00:00", "Z")


def now_iso() -> str:
    return to_iso(utcnow())


def parse_iso(value: Any) -> Optional[datetime]:
    """Parse an ISO-8601 timestamp; return ``None`` for anything unusable."""

    if not isinstance(value, str) or not value.strip():
        return None
    text = value.strip()
    if text.endswith(("Z", "z")):
        text = text[:-1] + "+00:00"
    try:
        parsed = datetime.fromisoformat(text)
    except ValueError:
        return None
    if parsed.tzinfo is None:
        parsed = parsed.replace(tzinfo=timezone.utc)
    return parsed


def future_epoch_seconds(hours: float, now: Optional[datetime] = None) -> int:
    base = now or utcnow()
    return int((base + timedelta(hours=hours)).timestamp())


def epoch_to_iso(epoch: int) -> str:
    return to_iso(datetime.fromtimestamp(epoch, tz=timezone.utc))
