"""Position store protocol"""

from collections.abc import Callable
from typing import Protocol

from ..models import OptionPosition

PositionsChangedHandler = Callable[[list[OptionPosition]], None]


class PositionStore(Protocol):
    """Owns the user's option positions and announces changes"""

    def list(self) -> list[OptionPosition]:
        """Get all positions, newest first"""
        ...

    def add(self, position: OptionPosition) -> OptionPosition:
        """Persist a new position, return it with id and created_at set"""
        ...

    def delete(self, position_id: str) -> None:
        """Delete position by ID"""
        ...

    def on_change(self, handler: PositionsChangedHandler) -> Callable[[], None]:
        """Register a change handler, return an unsubscribe callable"""
        ...
