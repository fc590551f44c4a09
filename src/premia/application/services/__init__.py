"""Services module for application layer"""

from premia.application.services.pricing_orchestrator import (
    PricingOrchestrator,
    ValuationHandler,
)

__all__ = ["PricingOrchestrator", "ValuationHandler"]
