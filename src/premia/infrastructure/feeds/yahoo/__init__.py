"""Yahoo options feed

YahooSession - cookie + crumb handshake state
YahooRequestClient - HTTP requests with re-auth and retry logic
YahooOptionPriceSource - best-effort quotes and closing prices
"""

from .client import YahooOptionPriceSource
from .requests import YahooRequestClient, install_logging_bridge
from .session import YahooSession

__all__ = [
    "YahooOptionPriceSource",
    "YahooRequestClient",
    "YahooSession",
    "install_logging_bridge",
]
