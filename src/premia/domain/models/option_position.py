"""Option position domain model"""

from dataclasses import dataclass, field
from datetime import date, datetime, timezone
from enum import Enum

from premia.shared.exceptions import PositionValidationError


class PositionKind(str, Enum):
    """Direction and right of an option trade"""

    SELL_PUT = "SELL_PUT"
    BUY_CALL = "BUY_CALL"
    BUY_PUT = "BUY_PUT"

    @property
    def is_short(self) -> bool:
        return self is PositionKind.SELL_PUT

    @property
    def direction(self) -> int:
        """+1 for long positions, -1 for short positions"""
        return -1 if self.is_short else 1

    @property
    def option_right(self) -> str:
        """Single-letter right used in contract identifiers"""
        return "C" if self is PositionKind.BUY_CALL else "P"

    @property
    def option_type(self) -> str:
        """Chain side used by the price feed ("call" or "put")"""
        return "call" if self is PositionKind.BUY_CALL else "put"


@dataclass(frozen=True)
class OptionPosition:
    """An option trade held by the user (domain model)

    Quantity is always positive; direction is carried by ``position_kind``.
    Positions are immutable once created and are only ever deleted.
    """

    underlying_symbol: str
    position_kind: PositionKind
    contract_quantity: int
    entry_price_per_share: float
    strike_price: float
    expiration_date: date
    id: str | None = None
    created_at: datetime = field(
        default_factory=lambda: datetime.now(timezone.utc)
    )

    def __post_init__(self):
        if not self.underlying_symbol or not self.underlying_symbol.strip():
            raise PositionValidationError("Underlying symbol cannot be empty")
        if self.contract_quantity <= 0:
            raise PositionValidationError(
                f"Contract quantity must be positive, got {self.contract_quantity}"
            )
        if self.strike_price <= 0:
            raise PositionValidationError(
                f"Strike price must be positive, got {self.strike_price}"
            )
        if self.entry_price_per_share < 0:
            raise PositionValidationError(
                f"Entry price cannot be negative, got {self.entry_price_per_share}"
            )

    @property
    def contract_id(self) -> str:
        """Deterministic contract identifier (e.g. AMD260320P00160000)"""
        from .contract import build_contract_id

        return build_contract_id(
            self.underlying_symbol,
            self.strike_price,
            self.expiration_date,
            self.position_kind,
        )
