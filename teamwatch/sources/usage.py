"""
Usage Statistics Normalizer
============================

Derives ``ResourceUsage`` from the companion home's ``stats-cache.json``::

    {
      "version": 1,
      "lastComputedDate": "2026-02-11",
      "dailyActivity": [{"date": "2026-02-11", "messageCount": 120}],
      "dailyModelTokens": [
        {"date": "2026-02-11", "tokensByModel": {"claude-opus-4": 59662}}
      ]
    }

The cache is written periodically by the companion tool and may lag behind
the current day; daily usage then falls back to ``lastComputedDate``.
"""

import logging
from datetime import date, datetime, timedelta
from pathlib import Path
from typing import Dict, Iterable, List, Optional, Set, Union

from pydantic import ValidationError

from teamwatch.constants import (
    CONTEXT_WINDOW_MAX,
    DAILY_TOKEN_LIMIT,
    STATS_CACHE_FILENAME,
    TOKENS_PER_MESSAGE_ESTIMATE,
    WEEKLY_TOKEN_LIMIT,
)
from teamwatch.exceptions import ArtifactReadError
from teamwatch.formatting import (
    daily_reset_at,
    format_reset_timer,
    to_iso,
    utc_now,
    weekly_reset_at,
)
from teamwatch.models import ContextWindow, ResourceUsage, UsagePeriod
from teamwatch.sources.files import load_json
from teamwatch.sources.schemas import DailyActivity, DailyModelTokens, StatsCache

logger = logging.getLogger(__name__)


def _recent_dates(today: date, days: int) -> Set[str]:
    return {(today - timedelta(days=i)).isoformat() for i in range(days)}


def sum_tokens(entries: Iterable[DailyModelTokens], dates: Set[str]) -> int:
    total = 0.0
    for entry in entries:
        if entry.date in dates:
            total += sum(entry.tokens_by_model.values())
    return int(total)


def dominant_model(tokens_by_model: Dict[str, float]) -> str:
    """Model with the most tokens; ``unknown`` when nothing was used."""
    best, best_tokens = "unknown", 0.0
    for model, tokens in tokens_by_model.items():
        if tokens > best_tokens:
            best, best_tokens = model, tokens
    return best


def detect_model(entries: List[DailyModelTokens], today: str) -> str:
    for entry in entries:
        if entry.date == today:
            return dominant_model(entry.tokens_by_model)
    if not entries:
        return "unknown"
    latest = max(entries, key=lambda e: e.date)
    return dominant_model(latest.tokens_by_model)


def estimate_context(activity: List[DailyActivity], today: str) -> int:
    for entry in activity:
        if entry.date == today:
            return min(entry.message_count * TOKENS_PER_MESSAGE_ESTIMATE, CONTEXT_WINDOW_MAX)
    return 0


def summarize_usage(stats: StatsCache, now: Optional[datetime] = None) -> ResourceUsage:
    """Compute daily/weekly usage, dominant model and context estimate."""
    now = now or utc_now()
    today = now.date()
    today_str = today.isoformat()
    entries = stats.daily_model_tokens

    daily_used = sum_tokens(entries, {today_str})
    last_computed = stats.last_computed_date
    if daily_used == 0 and last_computed and last_computed != today_str:
        daily_used = sum_tokens(entries, {last_computed})

    weekly_used = sum_tokens(entries, _recent_dates(today, 7))
    context_used = estimate_context(stats.daily_activity, today_str)

    return ResourceUsage(
        daily=UsagePeriod(
            used=daily_used,
            limit=DAILY_TOKEN_LIMIT,
            reset_in=format_reset_timer(daily_reset_at(now), now),
        ),
        weekly=UsagePeriod(
            used=weekly_used,
            limit=WEEKLY_TOKEN_LIMIT,
            reset_in=format_reset_timer(weekly_reset_at(now), now),
        ),
        context_window=ContextWindow(
            used=context_used,
            total=CONTEXT_WINDOW_MAX,
            percentage=round(context_used / CONTEXT_WINDOW_MAX * 100),
        ),
        model=detect_model(entries, today_str),
        last_updated=to_iso(now),
    )


async def read_usage_stats(
    claude_home: Union[str, Path],
    now: Optional[datetime] = None,
) -> ResourceUsage:
    """Read the usage cache; any failure yields ``ResourceUsage.empty()``."""
    path = Path(claude_home) / STATS_CACHE_FILENAME
    try:
        stats = StatsCache.model_validate(await load_json(path))
    except ArtifactReadError as e:
        logger.debug("Usage cache unavailable: %s", e)
        return ResourceUsage.empty()
    except ValidationError as e:
        logger.debug("Usage cache malformed at %s: %s", path, e)
        return ResourceUsage.empty()
    return summarize_usage(stats, now)
