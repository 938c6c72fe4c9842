"""
Server-side timestamps
"""

from datetime import datetime
from zoneinfo import ZoneInfo


def server_now(timezone: str = "UTC") -> str:
    """Current time in the given IANA timezone as an ISO-8601 string with offset"""
    return datetime.now(ZoneInfo(timezone)).isoformat()


def is_iso8601(value: str) -> bool:
    try:
        datetime.fromisoformat(value)
    except ValueError:
        return False
    return True
