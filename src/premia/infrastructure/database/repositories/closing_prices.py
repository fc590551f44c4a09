"""SQLite-backed closing price cache"""

from __future__ import annotations

from datetime import datetime, timedelta, timezone
from typing import TYPE_CHECKING

from loguru import logger
from sqlalchemy.exc import SQLAlchemyError
from sqlmodel import delete, select

from premia.domain.models import CacheState
from premia.domain.models.cache_state import DEFAULT_REFRESH_AFTER
from premia.infrastructure.database.mappers import map_table_to_cache_state
from premia.infrastructure.database.models import (
    CacheStateTable,
    ClosingPriceTable,
)
from premia.shared.exceptions import ClosingPriceCacheError

if TYPE_CHECKING:
    from premia.infrastructure.database.base import BaseDatabase


class SqlClosingPriceCache:
    """Durable previous-close store with a once-per-day refresh policy

    The refresh marker is a single row shared by every session using the
    same database; writes are plain upserts, so concurrent passes setting
    the same value are harmless.
    """

    STATE_NAME = "option_closing_prices"

    def __init__(
        self,
        db: BaseDatabase,
        refresh_after: timedelta = DEFAULT_REFRESH_AFTER,
    ) -> None:
        self.db = db
        self.refresh_after = refresh_after

    def get(self, contract_id: str) -> float | None:
        with self.db.get_session() as session:
            row = session.get(ClosingPriceTable, contract_id)
            return row.closing_price if row else None

    def get_all(self) -> dict[str, float]:
        try:
            with self.db.get_session() as session:
                rows = session.exec(select(ClosingPriceTable)).all()
                return {row.contract_id: row.closing_price for row in rows}
        except SQLAlchemyError as e:
            raise ClosingPriceCacheError(
                f"Failed to load closing prices: {e}"
            ) from e

    def set(
        self,
        contract_id: str,
        closing_price: float,
        now: datetime | None = None,
    ) -> None:
        """Insert or overwrite a closing price

        Raises:
            ClosingPriceCacheError: If the price is not positive or the
                write fails
        """
        if closing_price <= 0:
            raise ClosingPriceCacheError(
                f"Closing price must be positive for {contract_id}, got {closing_price}"
            )

        updated_at = (now or datetime.now(timezone.utc)).isoformat()
        try:
            with self.db.get_session() as session:
                row = session.get(ClosingPriceTable, contract_id)
                if row is None:
                    row = ClosingPriceTable(
                        contract_id=contract_id,
                        closing_price=closing_price,
                        updated_at=updated_at,
                    )
                else:
                    row.closing_price = closing_price
                    row.updated_at = updated_at
                session.add(row)
                session.commit()
        except SQLAlchemyError as e:
            raise ClosingPriceCacheError(
                f"Failed to save closing price for {contract_id}: {e}"
            ) from e

        logger.debug(f"Cached closing price {contract_id} = {closing_price}")

    def load_state(self) -> CacheState:
        with self.db.get_session() as session:
            return map_table_to_cache_state(
                session.get(CacheStateTable, self.STATE_NAME)
            )

    def should_refresh(self, now: datetime | None = None) -> bool:
        return self.load_state().should_refresh(now, self.refresh_after)

    def mark_refreshed(self, now: datetime | None = None) -> None:
        refreshed_at = (now or datetime.now(timezone.utc)).isoformat()
        with self.db.get_session() as session:
            row = session.get(CacheStateTable, self.STATE_NAME)
            if row is None:
                row = CacheStateTable(name=self.STATE_NAME)
            row.last_refreshed_at = refreshed_at
            session.add(row)
            session.commit()
        logger.info(f"Closing prices marked refreshed at {refreshed_at}")

    def clear(self) -> None:
        with self.db.get_session() as session:
            session.exec(delete(ClosingPriceTable))  # type: ignore[call-overload]
            session.exec(
                delete(CacheStateTable).where(
                    CacheStateTable.name == self.STATE_NAME  # type: ignore[arg-type]
                )
            )
            session.commit()
        logger.info("Closing price cache cleared")
