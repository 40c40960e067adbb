"""
Timestamp helpers.

All persisted timestamps are integer milliseconds since the epoch so that they
compare and serialise identically across storage backends.
"""

import time
from datetime import datetime


def get_current_timestamp() -> int:
    return time.time_ns() // 1_000_000


def format_minute(timestamp: int) -> str:
    """Render 'timestamp' as local 'YYYY-MM-DDTHH:MM' (truncated to the minute)."""
    return datetime.fromtimestamp(timestamp / 1000).strftime("%Y-%m-%dT%H:%M")
