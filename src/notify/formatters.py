"""Alert message formatting.

Provides titles and bodies for:
- Restock alerts (OUT -> IN confirmed)
- Error alerts (error streak over threshold)
"""

from datetime import datetime, timezone
from typing import Optional, Tuple
from zoneinfo import ZoneInfo, ZoneInfoNotFoundError

RESTOCK_TITLE = "🎉 Possible restock (OUT → IN)"
ERROR_TITLE = "⚠️ Restock monitor error"


def format_local_time(ts: int, tz_name: str = "Asia/Shanghai") -> str:
    """
    Format a Unix timestamp in the alert timezone.

    Falls back to UTC if the zone is unknown.

    Returns:
        "YYYY-MM-DD HH:MM:SS <zone> (UTC+H)"
    """
    try:
        tz = ZoneInfo(tz_name)
    except (ZoneInfoNotFoundError, ValueError):
        tz = timezone.utc
        tz_name = "UTC"
    moment = datetime.fromtimestamp(ts, tz)
    offset = moment.utcoffset()
    hours = offset.total_seconds() / 3600 if offset else 0.0
    offset_text = f"UTC{hours:+g}" if hours else "UTC"
    return f"{moment:%Y-%m-%d %H:%M:%S} {tz_name} ({offset_text})"


def format_restock_alert(
    name: str,
    url: Optional[str],
    streak: int,
    required: int,
    now: int,
    tz_name: str = "Asia/Shanghai",
) -> Tuple[str, str]:
    """Title and body for a restock alert."""
    body = (
        f"{name}\n"
        f"Entry: {url or '-'}\n"
        f"Confirmations: {streak}/{required}\n"
        f"Time: {format_local_time(now, tz_name)}\n"
        f"Tip: open the order page now and try to add to cart / check out"
    )
    return RESTOCK_TITLE, body


def format_error_alert(
    name: str,
    reason: str,
    err_streak: int,
    url: Optional[str],
    now: int,
    tz_name: str = "Asia/Shanghai",
) -> Tuple[str, str]:
    """Title and body for an error-streak alert."""
    body = (
        f"{name}\n"
        f"Reason: {reason}\n"
        f"Consecutive errors: {err_streak}\n"
        f"Last URL: {url or '-'}\n"
        f"Time: {format_local_time(now, tz_name)}\n"
        f"Suggestion: check network / WAF / keywords / domain reachability"
    )
    return ERROR_TITLE, body
