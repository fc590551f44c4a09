"""Market calendar"""

from .market_hours import (
    EXCHANGE_TIMEZONE,
    NYSE_HOLIDAYS,
    MarketCalendar,
    MarketState,
)

__all__ = ["EXCHANGE_TIMEZONE", "NYSE_HOLIDAYS", "MarketCalendar", "MarketState"]
