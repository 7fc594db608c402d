"""
Formatting helpers for usage periods and timestamps.

Usage quotas reset at midnight US Pacific (daily) and at the start of
Monday US Pacific (weekly).
"""

from datetime import datetime, timedelta, timezone
from typing import Optional

import pytz

RESET_TIMEZONE = pytz.timezone("America/Los_Angeles")


def utc_now() -> datetime:
    return datetime.now(timezone.utc)


def to_iso(moment: datetime) -> str:
    """Render an aware datetime as ISO-8601 UTC with a ``Z`` suffix."""
    if moment.tzinfo is None:
        moment = moment.replace(tzinfo=timezone.utc)
    utc = moment.astimezone(timezone.utc)
    return utc.strftime("%Y-%m-%dT%H:%M:%S.") + f"{utc.microsecond // 1000:03d}Z"


def parse_iso(value: Optional[str]) -> Optional[datetime]:
    """Parse an ISO-8601 string (``Z`` suffix allowed). Naive values are taken as UTC."""
    if not isinstance(value, str) or not value.strip():
        return None
    text = value.strip()
    if text.endswith("Z"):
        text = text[:-1] + "+00:00"
    try:
        parsed = datetime.fromisoformat(text)
    except ValueError:
        return None
    if parsed.tzinfo is None:
        parsed = parsed.replace(tzinfo=timezone.utc)
    return parsed


def normalize_iso(value: Optional[str]) -> Optional[str]:
    """Re-render a parseable timestamp in the canonical form, else ``None``."""
    parsed = parse_iso(value)
    return to_iso(parsed) if parsed else None


def format_token_count(count: int) -> str:
    """Compact token count: ``5.0M``, ``472k``, ``500``."""
    if count >= 1_000_000:
        return f"{count / 1_000_000:.1f}M"
    if count >= 1_000:
        return f"{round(count / 1_000)}k"
    return str(count)


def format_reset_timer(reset_at: datetime, now: Optional[datetime] = None) -> str:
    """Human-readable time until ``reset_at``: ``3d 23h``, ``23h 18m`` or ``now``."""
    now = now or utc_now()
    diff_seconds = (reset_at - now).total_seconds()
    if diff_seconds <= 0:
        return "now"

    total_minutes = int(diff_seconds // 60)
    days = total_minutes // 1440
    hours = (total_minutes % 1440) // 60
    minutes = total_minutes % 60

    if days > 0:
        return f"{days}d {hours}h"
    return f"{hours}h {minutes}m"


def daily_reset_at(now: Optional[datetime] = None) -> datetime:
    """Next midnight in the reset timezone, as an aware UTC datetime."""
    now = now or utc_now()
    local = now.astimezone(RESET_TIMEZONE)
    next_day = (local + timedelta(days=1)).date()
    midnight = RESET_TIMEZONE.localize(datetime(next_day.year, next_day.month, next_day.day))
    return midnight.astimezone(timezone.utc)


def weekly_reset_at(now: Optional[datetime] = None) -> datetime:
    """Next Monday midnight in the reset timezone, as an aware UTC datetime."""
    now = now or utc_now()
    local = now.astimezone(RESET_TIMEZONE)
    # Monday is weekday 0; on a Monday the next reset is a week away
    days_until_monday = (7 - local.weekday()) % 7 or 7
    target = (local + timedelta(days=days_until_monday)).date()
    midnight = RESET_TIMEZONE.localize(datetime(target.year, target.month, target.day))
    return midnight.astimezone(timezone.utc)


def truncate_session_id(session_id: str, max_length: int = 20) -> str:
    if len(session_id) <= max_length:
        return session_id
    return f"{session_id[:max_length]}..."
