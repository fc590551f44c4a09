"""premia - option position pricing and gain/loss tracking"""

__version__ = "0.1.0"
