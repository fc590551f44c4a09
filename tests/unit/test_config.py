"""Test configuration loading from environment variables"""

from datetime import date
from pathlib import Path

import pytest

from premia.core.config import (
    Config,
    FeedConfig,
    PricingConfig,
    get_db_path,
    parse_holidays,
)

ENV_KEYS = [
    "PREMIA_DB_PATH",
    "PREMIA_POLL_INTERVAL",
    "PREMIA_FEED_TIMEOUT",
    "PREMIA_FEED_MAX_RETRIES",
    "PREMIA_EXTRA_HOLIDAYS",
    "PREMIA_LOG_LEVEL",
]


@pytest.fixture(autouse=True)
def clean_env(monkeypatch, tmp_path):
    for key in ENV_KEYS:
        monkeypatch.delenv(key, raising=False)
    monkeypatch.setenv("PREMIA_DB_PATH", str(tmp_path / "premia.db"))


@pytest.mark.unit
def test_defaults(tmp_path):
    config = Config.from_env()

    assert config.db_path == str(tmp_path / "premia.db")
    assert config.pricing.poll_interval_seconds == 60
    assert config.pricing.refresh_after_hours == 20
    assert config.pricing.change_epsilon == 0.001
    assert config.feed.timeout_seconds == 10.0
    assert config.feed.max_retries == 2
    assert config.feed.max_strike_distance == 2.5
    assert config.calendar.timezone == "America/New_York"
    assert config.calendar.extra_holidays == frozenset()
    assert date(2026, 12, 25) in config.calendar.all_holidays
    assert config.log_level == "INFO"


@pytest.mark.unit
def test_overrides(monkeypatch):
    monkeypatch.setenv("PREMIA_POLL_INTERVAL", "90")
    monkeypatch.setenv("PREMIA_FEED_TIMEOUT", "4.5")
    monkeypatch.setenv("PREMIA_FEED_MAX_RETRIES", "0")
    monkeypatch.setenv("PREMIA_EXTRA_HOLIDAYS", "2026-03-11, 2026-03-12")
    monkeypatch.setenv("PREMIA_LOG_LEVEL", "debug")

    config = Config.from_env()

    assert config.pricing.poll_interval_seconds == 90
    assert config.feed.timeout_seconds == 4.5
    assert config.feed.max_retries == 0
    assert config.calendar.extra_holidays == {date(2026, 3, 11), date(2026, 3, 12)}
    assert date(2026, 3, 11) in config.calendar.all_holidays
    assert config.log_level == "DEBUG"


@pytest.mark.unit
@pytest.mark.parametrize("value", ["29", "121", "0"])
def test_poll_interval_out_of_range(monkeypatch, value):
    monkeypatch.setenv("PREMIA_POLL_INTERVAL", value)
    with pytest.raises(ValueError, match="PREMIA_POLL_INTERVAL"):
        Config.from_env()


@pytest.mark.unit
@pytest.mark.parametrize("value", ["30", "120"])
def test_poll_interval_bounds_inclusive(monkeypatch, value):
    monkeypatch.setenv("PREMIA_POLL_INTERVAL", value)
    assert Config.from_env().pricing.poll_interval_seconds == int(value)


@pytest.mark.unit
def test_non_numeric_value_rejected(monkeypatch):
    monkeypatch.setenv("PREMIA_FEED_TIMEOUT", "soon")
    with pytest.raises(ValueError, match="PREMIA_FEED_TIMEOUT"):
        Config.from_env()


@pytest.mark.unit
def test_negative_retries_rejected(monkeypatch):
    monkeypatch.setenv("PREMIA_FEED_MAX_RETRIES", "-1")
    with pytest.raises(ValueError):
        Config.from_env()


@pytest.mark.unit
def test_malformed_holiday_rejected(monkeypatch):
    monkeypatch.setenv("PREMIA_EXTRA_HOLIDAYS", "2026-03-11,next friday")
    with pytest.raises(ValueError, match="next friday"):
        Config.from_env()


@pytest.mark.unit
def test_parse_holidays_ignores_blanks():
    assert parse_holidays("") == frozenset()
    assert parse_holidays(None) == frozenset()
    assert parse_holidays("2026-03-11,,") == {date(2026, 3, 11)}


@pytest.mark.unit
def test_get_db_path_prefers_environment(monkeypatch):
    monkeypatch.setenv("PREMIA_DB_PATH", "/custom/path/premia.db")
    assert get_db_path() == Path("/custom/path/premia.db")


@pytest.mark.unit
def test_get_db_path_local_fallback(monkeypatch, mocker):
    monkeypatch.delenv("PREMIA_DB_PATH")
    mocker.patch("pathlib.Path.mkdir")
    mocker.patch("pathlib.Path.exists", return_value=False)

    path = get_db_path()

    assert path.name == "premia.db"
    assert path.parent.name == "data"


@pytest.mark.unit
def test_dataclass_defaults_match_documented_values():
    feed = FeedConfig()
    assert feed.chain_cache_ttl_seconds == 30
    assert feed.previous_close_ttl_seconds == 86400
    assert feed.auth_ttl_seconds == 3600
    assert feed.exact_strike_tolerance == 0.01
    assert PricingConfig().poll_interval_seconds == 60
