"""SQLite-backed option position store"""

from __future__ import annotations

import uuid
from collections.abc import Callable
from dataclasses import replace
from datetime import datetime, timezone
from typing import TYPE_CHECKING

from loguru import logger
from sqlalchemy.exc import SQLAlchemyError
from sqlmodel import col, select

from premia.domain.calendar import MarketCalendar
from premia.domain.models import OptionPosition
from premia.domain.repositories import PositionsChangedHandler
from premia.infrastructure.database.mappers import (
    map_position_to_table,
    map_table_to_position,
)
from premia.infrastructure.database.models import OptionPositionTable
from premia.shared.exceptions import PositionStoreError, PositionValidationError

if TYPE_CHECKING:
    from premia.infrastructure.database.base import BaseDatabase


def _new_position_id() -> str:
    return uuid.uuid4().hex


class SqlPositionStore:
    """Position store persisted with SQLModel

    Change handlers are invoked synchronously with the full position list
    after every successful add or delete.
    """

    def __init__(
        self,
        db: BaseDatabase,
        calendar: MarketCalendar | None = None,
        id_factory: Callable[[], str] = _new_position_id,
    ) -> None:
        """Initialise position store

        Args:
            db: Database instance for database operations
            calendar: Used to resolve "today" in exchange-local time when
                rejecting already-expired positions
            id_factory: Generates opaque position ids
        """
        self.db = db
        self._calendar = calendar or MarketCalendar()
        self._id_factory = id_factory
        self._handlers: list[PositionsChangedHandler] = []

    def list(self) -> list[OptionPosition]:
        """Get all positions, newest first"""
        try:
            with self.db.get_session() as session:
                rows = session.exec(
                    select(OptionPositionTable).order_by(
                        col(OptionPositionTable.created_at).desc()
                    )
                ).all()
                return [map_table_to_position(row) for row in rows]
        except SQLAlchemyError as e:
            raise PositionStoreError(f"Failed to list positions: {e}") from e

    def get(self, position_id: str) -> OptionPosition | None:
        """Get position by ID"""
        with self.db.get_session() as session:
            row = session.get(OptionPositionTable, position_id)
            return map_table_to_position(row) if row else None

    def add(
        self, position: OptionPosition, now: datetime | None = None
    ) -> OptionPosition:
        """Persist a new position

        Args:
            position: Position without id; any id/created_at are replaced
            now: Creation instant (defaults to current UTC time)

        Returns:
            The stored position with id and created_at assigned

        Raises:
            PositionValidationError: If the contract already expired
            PositionStoreError: If the write fails
        """
        now = now or datetime.now(timezone.utc)
        today = self._calendar.exchange_date(now)
        if position.expiration_date < today:
            raise PositionValidationError(
                f"Expiration {position.expiration_date} is in the past"
            )

        stored = replace(position, id=self._id_factory(), created_at=now)
        try:
            with self.db.get_session() as session:
                session.add(map_position_to_table(stored))
                session.commit()
        except SQLAlchemyError as e:
            raise PositionStoreError(f"Failed to add position: {e}") from e

        logger.info(
            f"Added position {stored.id}: {stored.contract_quantity}x "
            f"{stored.contract_id} ({stored.position_kind.value})"
        )
        self._notify()
        return stored

    def delete(self, position_id: str) -> None:
        """Delete position by ID

        Raises:
            PositionStoreError: If the position does not exist or the
                delete fails
        """
        try:
            with self.db.get_session() as session:
                row = session.get(OptionPositionTable, position_id)
                if row is None:
                    raise PositionStoreError(
                        f"Position not found: {position_id}"
                    )
                session.delete(row)
                session.commit()
        except SQLAlchemyError as e:
            raise PositionStoreError(
                f"Failed to delete position {position_id}: {e}"
            ) from e

        logger.info(f"Deleted position {position_id}")
        self._notify()

    def on_change(self, handler: PositionsChangedHandler) -> Callable[[], None]:
        """Register a change handler, return an unsubscribe callable"""
        self._handlers.append(handler)
        logger.debug("Subscribed handler to position changes")

        def unsubscribe() -> None:
            if handler in self._handlers:
                self._handlers.remove(handler)
                logger.debug("Unsubscribed handler from position changes")

        return unsubscribe

    def _notify(self) -> None:
        if not self._handlers:
            return
        positions = self.list()
        for handler in list(self._handlers):
            try:
                handler(positions)
            except Exception as e:
                logger.error(f"Position change handler failed: {e}")
