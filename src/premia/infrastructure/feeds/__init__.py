"""Price feed infrastructure"""

from .protocols import OptionPriceSource

__all__ = ["OptionPriceSource"]
