"""Pytest fixtures for premia tests"""

from datetime import date
from pathlib import Path

import pytest
from dotenv import load_dotenv

from premia.domain.calendar import MarketCalendar
from premia.domain.models import OptionPosition, PositionKind
from premia.infrastructure.database import BaseDatabase
from premia.infrastructure.database.repositories import (
    SqlClosingPriceCache,
    SqlPositionStore,
)

# =============================================================================
# Global Test Setup
# =============================================================================

# Load environment variables from .env file for all tests
env_path = Path(__file__).parent.parent / ".env"
if env_path.exists():
    load_dotenv(env_path)


@pytest.fixture
def test_db():
    """In-memory SQLite database for testing"""
    db = BaseDatabase(":memory:")
    yield db
    db.close()


@pytest.fixture
def calendar() -> MarketCalendar:
    return MarketCalendar()


@pytest.fixture
def position_store(test_db, calendar) -> SqlPositionStore:
    return SqlPositionStore(test_db, calendar=calendar)


@pytest.fixture
def closing_cache(test_db) -> SqlClosingPriceCache:
    return SqlClosingPriceCache(test_db)


@pytest.fixture
def sample_sell_put() -> OptionPosition:
    """Two short AMD puts opened for a 3.50 credit"""
    return OptionPosition(
        underlying_symbol="AMD",
        position_kind=PositionKind.SELL_PUT,
        contract_quantity=2,
        entry_price_per_share=3.50,
        strike_price=160.0,
        expiration_date=date(2026, 3, 20),
        id="pos-amd",
    )


@pytest.fixture
def sample_buy_call() -> OptionPosition:
    """One long RCL call bought for 2.00"""
    return OptionPosition(
        underlying_symbol="RCL",
        position_kind=PositionKind.BUY_CALL,
        contract_quantity=1,
        entry_price_per_share=2.00,
        strike_price=150.0,
        expiration_date=date(2027, 1, 15),
        id="pos-rcl",
    )
