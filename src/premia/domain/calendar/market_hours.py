"""US equity market hours in exchange-local time

Regular session: 9:30 AM - 4:00 PM America/New_York, weekdays, excluding
the configured exchange holidays. Holidays are a fixed, extensible set;
no holiday rules are derived algorithmically.
"""

from collections.abc import Iterable
from datetime import date, datetime, time, timedelta, timezone
from enum import Enum
from zoneinfo import ZoneInfo

from loguru import logger

EXCHANGE_TIMEZONE = "America/New_York"
MARKET_OPEN = time(9, 30)
MARKET_CLOSE = time(16, 0)

NYSE_HOLIDAYS: frozenset[date] = frozenset(
    {
        # 2025
        date(2025, 1, 1),
        date(2025, 1, 20),
        date(2025, 2, 17),
        date(2025, 4, 18),
        date(2025, 5, 26),
        date(2025, 6, 19),
        date(2025, 7, 4),
        date(2025, 9, 1),
        date(2025, 11, 27),
        date(2025, 12, 25),
        # 2026
        date(2026, 1, 1),
        date(2026, 1, 19),
        date(2026, 2, 16),
        date(2026, 4, 3),
        date(2026, 5, 25),
        date(2026, 6, 19),
        date(2026, 7, 3),
        date(2026, 9, 7),
        date(2026, 11, 26),
        date(2026, 12, 25),
        # 2027
        date(2027, 1, 1),
        date(2027, 1, 18),
        date(2027, 2, 15),
        date(2027, 3, 26),
        date(2027, 5, 31),
        date(2027, 6, 18),
        date(2027, 7, 5),
        date(2027, 9, 6),
        date(2027, 11, 25),
        date(2027, 12, 24),
    }
)


class MarketState(str, Enum):
    """Where an instant sits relative to the regular session"""

    OPEN = "open"
    CLOSED = "closed"
    CLOSED_ALL_DAY = "closed_all_day"

    @property
    def is_open(self) -> bool:
        return self is MarketState.OPEN

    @property
    def is_last_trading_day(self) -> bool:
        """Today's figures describe the most recent completed session"""
        return self is not MarketState.OPEN


class MarketCalendar:
    """Classifies instants against exchange hours and holidays

    Naive datetimes are interpreted as UTC.
    """

    def __init__(
        self,
        holidays: Iterable[date] | None = None,
        timezone_name: str = EXCHANGE_TIMEZONE,
        open_time: time = MARKET_OPEN,
        close_time: time = MARKET_CLOSE,
    ) -> None:
        self._holidays: set[date] = set(
            NYSE_HOLIDAYS if holidays is None else holidays
        )
        self._tz = ZoneInfo(timezone_name)
        self._open_time = open_time
        self._close_time = close_time

    @property
    def holidays(self) -> frozenset[date]:
        return frozenset(self._holidays)

    def add_holidays(self, holidays: Iterable[date]) -> None:
        """Extend the holiday set (e.g. with next year's calendar)"""
        added = set(holidays) - self._holidays
        self._holidays.update(added)
        if added:
            logger.debug(f"Added {len(added)} market holidays")

    def now(self) -> datetime:
        return datetime.now(timezone.utc)

    def to_exchange_time(self, instant: datetime | None = None) -> datetime:
        instant = instant or self.now()
        if instant.tzinfo is None:
            instant = instant.replace(tzinfo=timezone.utc)
        return instant.astimezone(self._tz)

    def exchange_date(self, instant: datetime | date | None = None) -> date:
        """Calendar date in exchange-local time"""
        if isinstance(instant, datetime) or instant is None:
            return self.to_exchange_time(instant).date()
        return instant

    def is_holiday_or_weekend(
        self, instant: datetime | date | None = None
    ) -> bool:
        day = self.exchange_date(instant)
        return day.weekday() >= 5 or day in self._holidays

    def is_market_closed_all_day(
        self, instant: datetime | date | None = None
    ) -> bool:
        return self.is_holiday_or_weekend(instant)

    def is_trading_day(self, instant: datetime | date | None = None) -> bool:
        return not self.is_holiday_or_weekend(instant)

    def is_open(self, instant: datetime | None = None) -> bool:
        """True during the regular session; the close is exclusive"""
        local = self.to_exchange_time(instant)
        if self.is_holiday_or_weekend(local.date()):
            return False
        return self._open_time <= local.time() < self._close_time

    def previous_trading_day(
        self, instant: datetime | date | None = None
    ) -> date:
        """Most recent trading date strictly before the instant's date"""
        day = self.exchange_date(instant) - timedelta(days=1)
        while self.is_holiday_or_weekend(day):
            day -= timedelta(days=1)
        return day

    def state(self, instant: datetime | None = None) -> MarketState:
        local = self.to_exchange_time(instant)
        if self.is_holiday_or_weekend(local.date()):
            return MarketState.CLOSED_ALL_DAY
        if self.is_open(local):
            return MarketState.OPEN
        return MarketState.CLOSED
