"""
Duplicate Guard - rejects a check-in when the client already checked in
within the cooldown window.
"""
import math
from datetime import datetime, timedelta
from typing import Optional

from ptstudio import config


def _recent_sessions(store, client_id: int, window_seconds: int, now: datetime):
    return store.list_sessions(client_id, since=now - timedelta(seconds=window_seconds))


def has_recent_check_in(
    store,
    client_id: int,
    window_seconds: int = config.CHECKIN_WINDOW_SECONDS,
    now: Optional[datetime] = None,
) -> bool:
    """True if a session exists with check_in_time >= now - window_seconds"""
    now = now or store.now()
    return len(_recent_sessions(store, client_id, window_seconds, now)) > 0


def seconds_until_allowed(
    store,
    client_id: int,
    window_seconds: int = config.CHECKIN_WINDOW_SECONDS,
    now: Optional[datetime] = None,
) -> int:
    """Seconds left before the next check-in passes the guard (0 if allowed now)"""
    now = now or store.now()
    sessions = _recent_sessions(store, client_id, window_seconds, now)
    if not sessions:
        return 0

    latest = max(s["check_in_time"] for s in sessions)
    remaining = (latest + timedelta(seconds=window_seconds) - now).total_seconds()
    return max(1, math.ceil(remaining))
