"""Mappers for converting between domain and persistence models"""

from datetime import date, datetime

from premia.domain.models import CacheState, OptionPosition, PositionKind
from premia.infrastructure.database.models import (
    CacheStateTable,
    OptionPositionTable,
)


def map_table_to_position(table: OptionPositionTable) -> OptionPosition:
    """Map database table to domain OptionPosition"""
    return OptionPosition(
        id=table.id,
        underlying_symbol=table.underlying_symbol,
        position_kind=PositionKind(table.position_kind),
        contract_quantity=table.contract_quantity,
        entry_price_per_share=table.entry_price_per_share,
        strike_price=table.strike_price,
        expiration_date=date.fromisoformat(table.expiration_date),
        created_at=datetime.fromisoformat(table.created_at),
    )


def map_position_to_table(position: OptionPosition) -> OptionPositionTable:
    """Map domain OptionPosition to database table

    Raises:
        ValueError: If the position has no id yet
    """
    if position.id is None:
        raise ValueError("Position must have an id before it is persisted")

    return OptionPositionTable(
        id=position.id,
        underlying_symbol=position.underlying_symbol,
        position_kind=position.position_kind.value,
        contract_quantity=position.contract_quantity,
        entry_price_per_share=position.entry_price_per_share,
        strike_price=position.strike_price,
        expiration_date=position.expiration_date.isoformat(),
        created_at=position.created_at.isoformat(),
    )


def map_table_to_cache_state(table: CacheStateTable | None) -> CacheState:
    """Map refresh marker row (or its absence) to domain CacheState"""
    if table is None or table.last_refreshed_at is None:
        return CacheState()
    return CacheState(
        last_refreshed_at=datetime.fromisoformat(table.last_refreshed_at)
    )
