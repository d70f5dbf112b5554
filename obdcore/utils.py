"""
Engine Utilities
================
Shared clock helpers and version info.
"""

from datetime import datetime, timezone


def utc_now() -> datetime:
    """Current time, timezone-aware (UTC)."""
    return datetime.now(timezone.utc)


def epoch_ms(moment: datetime) -> int:
    return int(moment.timestamp() * 1000)


def utc_timestamp() -> str:
    """Formatted timestamp string for trace logs."""
    return utc_now().strftime("%Y-%m-%d %H:%M:%S")


# Version info
VERSION = "1.0.0"
