"""Core configuration"""

from premia.core.config import (
    CalendarConfig,
    Config,
    FeedConfig,
    PricingConfig,
    get_db_path,
)

__all__ = [
    "CalendarConfig",
    "Config",
    "FeedConfig",
    "PricingConfig",
    "get_db_path",
]
