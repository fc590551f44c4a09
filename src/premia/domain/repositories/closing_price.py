"""Closing price cache protocol"""

from datetime import datetime
from typing import Protocol

from ..models import CacheState


class ClosingPriceCache(Protocol):
    """One previous-close value per contract id plus a refresh marker"""

    def get(self, contract_id: str) -> float | None:
        """Get cached closing price"""
        ...

    def get_all(self) -> dict[str, float]:
        """Get every cached closing price keyed by contract id"""
        ...

    def set(self, contract_id: str, closing_price: float) -> None:
        """Insert or overwrite a closing price"""
        ...

    def load_state(self) -> CacheState:
        """Get the refresh marker"""
        ...

    def should_refresh(self, now: datetime | None = None) -> bool:
        """True if the daily bulk refresh is due"""
        ...

    def mark_refreshed(self, now: datetime | None = None) -> None:
        """Record a completed bulk refresh"""
        ...

    def clear(self) -> None:
        """Remove all closing prices and the refresh marker"""
        ...
