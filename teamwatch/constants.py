"""
Shared constants for the team state pipeline.
"""

from typing import Dict, Tuple

# Palette assigned round-robin to registry agents (lead is always blue)
AGENT_COLORS: Tuple[str, ...] = ("blue", "red", "green", "yellow", "purple", "cyan")

AGENT_COLOR_HEX: Dict[str, Dict[str, str]] = {
    "blue": {"body": "#3b82f6", "accent": "#1d4ed8"},
    "red": {"body": "#ef4444", "accent": "#b91c1c"},
    "green": {"body": "#22c55e", "accent": "#15803d"},
    "yellow": {"body": "#eab308", "accent": "#a16207"},
    "purple": {"body": "#a855f7", "accent": "#7e22ce"},
    "cyan": {"body": "#06b6d4", "accent": "#0e7490"},
}

DAILY_TOKEN_LIMIT = 5_000_000
WEEKLY_TOKEN_LIMIT = 20_000_000
CONTEXT_WINDOW_MAX = 200_000

# Rough context estimate per message in the usage cache
TOKENS_PER_MESSAGE_ESTIMATE = 500

# Session status thresholds (seconds since last transcript write)
WORKING_THRESHOLD_SECONDS = 2 * 60
COMPLETED_THRESHOLD_SECONDS = 5 * 60

# Session-only mode hides subagents idle for longer than this
STALE_SUBAGENT_CUTOFF_SECONDS = 60 * 60

# Transcript read windows
HEAD_READ_BYTES = 8192
HEAD_MAX_RECORDS = 5
TAIL_READ_BYTES = 16384
ACTION_MAX_CHARS = 80
TEXT_ACTION_MAX_CHARS = 100
TEXT_ACTION_MIN_CHARS = 10

MAX_ACTIVITY_EVENTS = 500

# Watcher / broadcaster timing
WATCHER_DEBOUNCE_SECONDS = 0.1
WRITE_STABILITY_SECONDS = 0.05
PERIODIC_REEVAL_SECONDS = 15.0
KEEPALIVE_SECONDS = 15.0

# Pending messages held per subscriber; the oldest is dropped when full
SUBSCRIBER_QUEUE_SIZE = 32

LEAD_AGENT_ID = "lead"
LEAD_SESSION_FALLBACK = "main"

DEFAULT_ARTIFACT_DIR = ".mamh"
STATS_CACHE_FILENAME = "stats-cache.json"
