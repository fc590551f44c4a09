"""Persistence models (SQLModel tables)"""

from datetime import datetime, timezone

from sqlmodel import Field, SQLModel


def _utc_now_iso() -> str:
    return datetime.now(timezone.utc).isoformat()


class OptionPositionTable(SQLModel, table=True):
    """Option position database table"""

    __tablename__ = "option_positions"

    id: str = Field(primary_key=True)
    underlying_symbol: str = Field(index=True)
    position_kind: str
    contract_quantity: int
    entry_price_per_share: float
    strike_price: float
    expiration_date: str
    created_at: str = Field(default_factory=_utc_now_iso)


class ClosingPriceTable(SQLModel, table=True):
    """Closing price cache table, one row per contract id"""

    __tablename__ = "option_closing_prices"

    contract_id: str = Field(primary_key=True)
    closing_price: float
    updated_at: str = Field(default_factory=_utc_now_iso)


class CacheStateTable(SQLModel, table=True):
    """Named refresh markers"""

    __tablename__ = "cache_state"

    name: str = Field(primary_key=True)
    last_refreshed_at: str | None = None
