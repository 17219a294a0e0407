"""System clock"""
from datetime import datetime, timezone

from domain.repositories import Clock


class SystemClock(Clock):
    """Wall-clock UTC time"""

    def now(self) -> datetime:
        return datetime.now(timezone.utc)
