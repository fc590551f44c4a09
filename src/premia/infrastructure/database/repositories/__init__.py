"""SQLModel repository implementations"""

from .closing_prices import SqlClosingPriceCache
from .positions import SqlPositionStore

__all__ = ["SqlClosingPriceCache", "SqlPositionStore"]
