"""Derived valuation models"""

from dataclasses import dataclass
from datetime import datetime
from enum import Enum

from .option_position import OptionPosition, PositionKind


@dataclass(frozen=True)
class GainLoss:
    """Signed gain/loss; positive is favourable for the holder"""

    amount: float = 0.0
    percent: float = 0.0


@dataclass(frozen=True)
class ValuedOptionPosition:
    """An option position enriched with pricing for one pass"""

    position: OptionPosition
    contract_id: str
    cost: float
    current_value: float
    mark_price: float
    today_gain_loss: GainLoss
    total_gain_loss: GainLoss
    is_last_trading_day: bool
    last_updated: datetime
    closing_price: float | None = None
    bid: float | None = None
    ask: float | None = None
    last_price: float | None = None

    @property
    def id(self) -> str | None:
        return self.position.id

    @property
    def underlying_symbol(self) -> str:
        return self.position.underlying_symbol

    @property
    def position_kind(self) -> PositionKind:
        return self.position.position_kind

    @property
    def contract_quantity(self) -> int:
        return self.position.contract_quantity


class ClosingPriceSource(str, Enum):
    """Where a closing-price write came from"""

    FEED_PREVIOUS_CLOSE = "feed_previous_close"
    QUOTE_DELTA = "quote_delta"
    BASELINE = "baseline"
    PRICE_HISTORY = "price_history"


@dataclass(frozen=True)
class ClosingPriceUpdate:
    """A closing price to write back to the cache after a pass"""

    contract_id: str
    closing_price: float
    source: ClosingPriceSource


@dataclass(frozen=True)
class PortfolioSummary:
    """Totals across a list of valued positions"""

    position_count: int
    total_cost: float
    total_current_value: float
    today_gain_loss: float
    total_gain_loss: GainLoss
