"""
Rolling Window Models

A rolling window selects the observations recorded in the last N days,
N being one of the supported window sizes (7, 30, 180).
"""

from dataclasses import dataclass
from datetime import datetime, timedelta
from typing import Optional
import pytz

from config import Config


def ensure_aware(timestamp: datetime, timezone: str = "Europe/Copenhagen") -> datetime:
    """
    Return a timezone-aware datetime.

    Naive datetimes are interpreted as local plant time in ``timezone``.
    """
    if timestamp.tzinfo is not None and timestamp.tzinfo.utcoffset(timestamp) is not None:
        return timestamp
    return pytz.timezone(timezone).localize(timestamp)


@dataclass(frozen=True)
class RollingWindow:
    """
    Represents the last ``days`` days ending at ``end``.

    The start bound is inclusive. Timestamps after ``end`` (clock skew,
    future-dated records) still count as recent.
    """
    days: int
    end: datetime
    timezone: str = "Europe/Copenhagen"

    def __post_init__(self):
        """Validate window size"""
        if self.days not in Config.WINDOW_DAYS:
            raise ValueError(
                f"Invalid window: {self.days} days. "
                f"Must be one of: {list(Config.WINDOW_DAYS)}"
            )

    @classmethod
    def ending_now(
        cls,
        days: int,
        now: Optional[datetime] = None,
        timezone: str = "Europe/Copenhagen"
    ) -> 'RollingWindow':
        """Create a window ending at ``now`` (defaults to the current UTC time)"""
        end = now if now is not None else datetime.now(pytz.utc)
        return cls(days=days, end=ensure_aware(end, timezone), timezone=timezone)

    @property
    def start(self) -> datetime:
        """Earliest timestamp included in the window"""
        return ensure_aware(self.end, self.timezone) - timedelta(days=self.days)

    def contains(self, timestamp: Optional[datetime]) -> bool:
        """Check if timestamp falls within this window"""
        if timestamp is None:
            return False
        ts = ensure_aware(timestamp, self.timezone)
        return ts >= self.start

    def __repr__(self) -> str:
        return (
            f"RollingWindow({self.days}d: {self.start.strftime('%Y-%m-%d %H:%M')} → "
            f"{self.end.strftime('%Y-%m-%d %H:%M')})"
        )
