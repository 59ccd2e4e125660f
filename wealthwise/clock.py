# wealthwise/clock.py
from datetime import datetime, timezone


def utcnow() -> datetime:
    """Current UTC time as a naive datetime (the form stored in the database)."""
    return datetime.now(timezone.utc).replace(tzinfo=None)


def get_now() -> datetime:
    """FastAPI dependency; tests override it to pin the clock."""
    return utcnow()
