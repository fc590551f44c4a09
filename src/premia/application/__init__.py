"""Application layer coordinating pricing passes"""

from premia.application.services import PricingOrchestrator

__all__ = ["PricingOrchestrator"]
