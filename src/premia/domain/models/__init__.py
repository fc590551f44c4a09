"""Domain models"""

from .cache_state import CacheState
from .contract import (
    ContractSymbol,
    build_contract_id,
    format_option_symbol,
    parse_contract_id,
)
from .option_position import OptionPosition, PositionKind
from .quote import LastTradingDayChange, PriceQuote, QuoteRequest
from .valuation import (
    ClosingPriceSource,
    ClosingPriceUpdate,
    GainLoss,
    PortfolioSummary,
    ValuedOptionPosition,
)

__all__ = [
    "CacheState",
    "ClosingPriceSource",
    "ClosingPriceUpdate",
    "ContractSymbol",
    "GainLoss",
    "LastTradingDayChange",
    "OptionPosition",
    "PortfolioSummary",
    "PositionKind",
    "PriceQuote",
    "QuoteRequest",
    "ValuedOptionPosition",
    "build_contract_id",
    "format_option_symbol",
    "parse_contract_id",
]
