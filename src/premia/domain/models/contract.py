"""Contract identifier value object

Format: ``{symbol}{YY}{MM}{DD}{C|P}{strike*1000 zero-padded to 8 digits}``,
e.g. ``AMD260320P00160000`` for an AMD 160 put expiring 2026-03-20.
"""

import re
from dataclasses import dataclass
from datetime import date

from premia.shared.constants import STRIKE_DIGITS, STRIKE_SCALE
from premia.shared.exceptions import ContractIdError

from .option_position import PositionKind

_CONTRACT_ID_PATTERN = re.compile(
    r"^(?P<symbol>.+)(?P<yy>\d{2})(?P<mm>\d{2})(?P<dd>\d{2})"
    r"(?P<right>[CP])(?P<strike>\d{8})$"
)


@dataclass(frozen=True)
class ContractSymbol:
    """Value object for a listed option contract"""

    underlying_symbol: str
    expiration_date: date
    option_right: str
    strike_price: float

    def __post_init__(self):
        if self.option_right not in ("C", "P"):
            raise ContractIdError(
                f"Option right must be 'C' or 'P', got {self.option_right!r}"
            )

    def __str__(self) -> str:
        return self.contract_id

    @property
    def is_call(self) -> bool:
        return self.option_right == "C"

    @property
    def option_type(self) -> str:
        return "call" if self.is_call else "put"

    @property
    def contract_id(self) -> str:
        strike = str(round(self.strike_price * STRIKE_SCALE)).zfill(
            STRIKE_DIGITS
        )
        return (
            f"{self.underlying_symbol}"
            f"{self.expiration_date:%y%m%d}"
            f"{self.option_right}{strike}"
        )

    @classmethod
    def from_persistence(cls, value: str) -> "ContractSymbol":
        return parse_contract_id(value)

    def to_persistence(self) -> str:
        return self.contract_id


def _normalise_right(kind: PositionKind | str) -> str:
    if isinstance(kind, PositionKind):
        return kind.option_right
    value = str(kind).strip().upper()
    if value in ("C", "CALL"):
        return "C"
    if value in ("P", "PUT"):
        return "P"
    raise ContractIdError(f"Unknown option kind: {kind!r}")


def build_contract_id(
    symbol: str,
    strike: float,
    expiration: date,
    kind: PositionKind | str,
) -> str:
    """Build the contract identifier used as feed symbol and cache key

    Args:
        symbol: Underlying ticker (e.g. "AMD")
        strike: Strike price (e.g. 160.0)
        expiration: Contract expiration date
        kind: PositionKind, or "C"/"P"/"call"/"put"

    Returns:
        Contract identifier string
    """
    return ContractSymbol(
        underlying_symbol=symbol,
        expiration_date=expiration,
        option_right=_normalise_right(kind),
        strike_price=strike,
    ).contract_id


def parse_contract_id(contract_id: str) -> ContractSymbol:
    """Parse a contract identifier back into its components

    Raises:
        ContractIdError: If the identifier is malformed
    """
    match = _CONTRACT_ID_PATTERN.match(contract_id or "")
    if not match:
        raise ContractIdError(f"Malformed contract id: {contract_id!r}")

    try:
        expiration = date(
            2000 + int(match["yy"]), int(match["mm"]), int(match["dd"])
        )
    except ValueError as e:
        raise ContractIdError(
            f"Invalid expiration in contract id {contract_id!r}: {e}"
        ) from e

    return ContractSymbol(
        underlying_symbol=match["symbol"],
        expiration_date=expiration,
        option_right=match["right"],
        strike_price=int(match["strike"]) / STRIKE_SCALE,
    )


def format_option_symbol(
    symbol: str, strike: float, kind: PositionKind
) -> str:
    """Human readable label, e.g. "AMD 160 PUT" """
    label = "CALL" if kind is PositionKind.BUY_CALL else "PUT"
    return f"{symbol} {strike:g} {label}"
