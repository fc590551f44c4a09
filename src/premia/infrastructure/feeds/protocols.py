"""Price source protocols defining interfaces for option data feeds.

These protocols allow the orchestrator to run against any feed (or a fake
in tests) that satisfies the same best-effort contract: missing data is
reported as absent values, never as exceptions.
"""

from collections.abc import Iterable, Sequence
from typing import Protocol, runtime_checkable

from premia.domain.models import LastTradingDayChange, PriceQuote, QuoteRequest


@runtime_checkable
class OptionPriceSource(Protocol):
    """Protocol for option quote and closing-price retrieval."""

    async def fetch_quote(self, contract_id: str) -> PriceQuote:
        """Get a quote for one contract (empty quote when unavailable)."""
        ...

    async def fetch_previous_close(self, contract_id: str) -> float | None:
        """Get the prior-session close for one contract."""
        ...

    async def batch_fetch_previous_close(
        self, contract_ids: Iterable[str]
    ) -> dict[str, float]:
        """Get prior-session closes, dropping ids that failed."""
        ...

    async def batch_fetch_quotes(
        self, requests: Sequence[QuoteRequest]
    ) -> dict[str, PriceQuote]:
        """Get quotes keyed by request id using grouped chain fetches."""
        ...

    async def fetch_last_trading_day_change(
        self, contract_id: str
    ) -> LastTradingDayChange | None:
        """Get the move between the two most recent daily closes."""
        ...

    async def batch_fetch_last_trading_day_change(
        self, contract_ids: Iterable[str]
    ) -> dict[str, LastTradingDayChange]:
        """Get last-session moves, dropping ids that failed."""
        ...

    def clear_cache(self) -> None:
        """Clear any internal caches."""
        ...
