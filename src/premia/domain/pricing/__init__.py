"""Pricing engine"""

from .engine import (
    PriceCandidate,
    PricingEngine,
    PricingResult,
    calculate_cost,
    current_value,
    effective_closing_price,
    first_positive,
    mark_price,
    summarize,
    today_gain_loss,
    total_gain_loss,
)

__all__ = [
    "PriceCandidate",
    "PricingEngine",
    "PricingResult",
    "calculate_cost",
    "current_value",
    "effective_closing_price",
    "first_positive",
    "mark_price",
    "summarize",
    "today_gain_loss",
    "total_gain_loss",
]
