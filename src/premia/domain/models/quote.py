"""Price feed snapshot models"""

from dataclasses import dataclass
from datetime import date

from .option_position import OptionPosition


@dataclass(frozen=True)
class PriceQuote:
    """Best-effort snapshot for one option contract (domain model)

    Every field is optional; any subset may be missing depending on feed
    availability.
    """

    bid: float | None = None
    ask: float | None = None
    last_price: float | None = None
    change: float | None = None
    percent_change: float | None = None
    volume: int | None = None
    open_interest: int | None = None

    @property
    def is_empty(self) -> bool:
        return all(
            value is None
            for value in (
                self.bid,
                self.ask,
                self.last_price,
                self.change,
                self.percent_change,
                self.volume,
                self.open_interest,
            )
        )

    @classmethod
    def empty(cls) -> "PriceQuote":
        return cls()


@dataclass(frozen=True)
class LastTradingDayChange:
    """Change between the two most recent daily closes"""

    change: float
    percent_change: float
    last_close: float
    previous_close: float


@dataclass(frozen=True)
class QuoteRequest:
    """One contract to look up in a grouped option-chain fetch"""

    id: str
    underlying_symbol: str
    expiration_date: date
    strike_price: float
    option_type: str

    @classmethod
    def from_position(cls, position: OptionPosition) -> "QuoteRequest":
        return cls(
            id=position.id or position.contract_id,
            underlying_symbol=position.underlying_symbol,
            expiration_date=position.expiration_date,
            strike_price=position.strike_price,
            option_type=position.position_kind.option_type,
        )
