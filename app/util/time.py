# app/util/time.py
from datetime import datetime, timezone
from typing import Callable


def utcnow_naive() -> datetime:
    # naive UTC, whole seconds
    return datetime.now(timezone.utc).replace(tzinfo=None, microsecond=0)


def get_clock() -> Callable[[], datetime]:
    """Route dependency; tests override it with a fixed clock."""
    return utcnow_naive
