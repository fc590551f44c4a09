"""Repository protocols"""

from .closing_price import ClosingPriceCache
from .position import PositionsChangedHandler, PositionStore

__all__ = ["ClosingPriceCache", "PositionStore", "PositionsChangedHandler"]
