"""Consolidated exceptions for premia.

All custom exceptions are defined here to provide a single source of truth
for error handling across the application.
"""


class PremiaError(Exception):
    """Base exception for premia errors"""

    pass


class PriceFeedError(PremiaError):
    """Base exception for upstream price feed errors"""

    pass


class PriceFeedAuthenticationError(PriceFeedError):
    """Raised when the feed session (cookie + crumb) cannot be established"""

    pass


class PriceFeedRequestError(PriceFeedError):
    """Raised when an HTTP request to the feed fails"""

    pass


class PositionValidationError(PremiaError, ValueError):
    """Raised when an option position violates its creation invariants"""

    pass


class ContractIdError(PremiaError, ValueError):
    """Raised when a contract identifier cannot be parsed"""

    pass


class RepositoryError(PremiaError):
    """Base repository error"""

    pass


class PositionStoreError(RepositoryError):
    """Raised when position store operation fails"""

    pass


class ClosingPriceCacheError(RepositoryError):
    """Raised when closing price cache operation fails"""

    pass


class ConfigurationError(PremiaError):
    """Raised when configuration is invalid or missing"""

    pass
