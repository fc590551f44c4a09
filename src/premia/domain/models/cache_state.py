"""Closing-price cache refresh state"""

from dataclasses import dataclass
from datetime import datetime, timedelta, timezone

DEFAULT_REFRESH_AFTER = timedelta(hours=20)


def _as_utc(value: datetime) -> datetime:
    if value.tzinfo is None:
        return value.replace(tzinfo=timezone.utc)
    return value


@dataclass(frozen=True)
class CacheState:
    """Deployment-wide marker for the last bulk closing-price refresh"""

    last_refreshed_at: datetime | None = None

    def should_refresh(
        self,
        now: datetime | None = None,
        refresh_after: timedelta = DEFAULT_REFRESH_AFTER,
    ) -> bool:
        """True when no refresh was recorded or the last one is too old"""
        if self.last_refreshed_at is None:
            return True
        now = _as_utc(now or datetime.now(timezone.utc))
        return now - _as_utc(self.last_refreshed_at) > refresh_after
