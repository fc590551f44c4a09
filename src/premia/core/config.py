"""Configuration management for premia"""

import os
from dataclasses import dataclass, field
from datetime import date, time
from pathlib import Path

from loguru import logger

from premia.domain.calendar import EXCHANGE_TIMEZONE, NYSE_HOLIDAYS
from premia.infrastructure.feeds.yahoo.session import DEFAULT_USER_AGENT

MIN_POLL_INTERVAL_SECONDS = 30
MAX_POLL_INTERVAL_SECONDS = 120


@dataclass
class FeedConfig:
    """Configuration for the upstream options feed"""

    chart_url: str = "https://query2.finance.yahoo.com/v8/finance/chart"
    options_url: str = "https://query2.finance.yahoo.com/v7/finance/options"
    cookie_url: str = "https://fc.yahoo.com/"
    crumb_url: str = "https://query2.finance.yahoo.com/v1/test/getcrumb"
    user_agent: str = DEFAULT_USER_AGENT

    # HTTP behaviour
    timeout_seconds: float = 10.0
    max_retries: int = 2
    max_concurrency: int = 8

    # Re-run the cookie + crumb handshake after this many seconds
    auth_ttl_seconds: float = 3600

    # In-memory caches
    chain_cache_ttl_seconds: float = 30
    previous_close_ttl_seconds: float = 24 * 60 * 60

    # Strike matching within an option chain (price units)
    exact_strike_tolerance: float = 0.01
    max_strike_distance: float = 2.5


@dataclass
class PricingConfig:
    """Configuration for pricing passes"""

    # Polling interval between passes; shorter risks upstream rate limits
    poll_interval_seconds: int = 60

    # Bulk closing-price refresh runs at most once per this many hours
    refresh_after_hours: float = 20

    # Price deltas at or below this are treated as no change
    change_epsilon: float = 0.001


@dataclass
class CalendarConfig:
    """Exchange calendar configuration"""

    timezone: str = EXCHANGE_TIMEZONE
    open_time: time = time(9, 30)
    close_time: time = time(16, 0)
    holidays: frozenset[date] = NYSE_HOLIDAYS
    extra_holidays: frozenset[date] = frozenset()

    @property
    def all_holidays(self) -> frozenset[date]:
        return self.holidays | self.extra_holidays


def get_db_path() -> Path:
    """Get database path that works both locally and in production.

    Priority order:
    1. PREMIA_DB_PATH environment variable
    2. Production path: /opt/premia/data/premia.db
    3. Local development path: project_root/data/premia.db

    Returns:
        Path object for the database file
    """
    env_path = os.getenv("PREMIA_DB_PATH")
    if env_path:
        logger.debug(f"Using database path from environment: {env_path}")
        return Path(env_path)

    production_path = Path("/opt/premia/data/premia.db")
    if production_path.parent.exists():
        logger.debug(f"Using production database path: {production_path}")
        return production_path

    # Use __file__ to reliably find project root from config.py location
    project_root = Path(__file__).parent.parent.parent.parent
    local_path = project_root / "data" / "premia.db"
    local_path.parent.mkdir(parents=True, exist_ok=True)

    logger.debug(f"Using local database path: {local_path}")
    return local_path


def parse_holidays(raw: str | None) -> frozenset[date]:
    """Parse a comma-separated list of ISO dates

    Raises:
        ValueError: If any entry is not an ISO date
    """
    if not raw:
        return frozenset()

    holidays = set()
    for item in raw.split(","):
        item = item.strip()
        if not item:
            continue
        try:
            holidays.add(date.fromisoformat(item))
        except ValueError as e:
            raise ValueError(f"Invalid holiday date {item!r}: {e}") from e
    return frozenset(holidays)


def _env_number(name: str, default, cast):
    raw = os.getenv(name)
    if raw is None or raw == "":
        return default
    try:
        return cast(raw)
    except ValueError as e:
        raise ValueError(f"{name} must be a number, got {raw!r}") from e


@dataclass
class Config:
    """Configuration for premia loaded from environment variables"""

    db_path: str
    feed: FeedConfig = field(default_factory=FeedConfig)
    pricing: PricingConfig = field(default_factory=PricingConfig)
    calendar: CalendarConfig = field(default_factory=CalendarConfig)
    log_level: str = "INFO"

    @classmethod
    def from_env(cls) -> "Config":
        """Load configuration from environment variables

        Returns:
            Config instance with values from environment

        Raises:
            ValueError: If environment variables are invalid
        """
        poll_interval = _env_number(
            "PREMIA_POLL_INTERVAL", PricingConfig.poll_interval_seconds, int
        )
        if not (
            MIN_POLL_INTERVAL_SECONDS
            <= poll_interval
            <= MAX_POLL_INTERVAL_SECONDS
        ):
            raise ValueError(
                f"PREMIA_POLL_INTERVAL must be between "
                f"{MIN_POLL_INTERVAL_SECONDS} and {MAX_POLL_INTERVAL_SECONDS} "
                f"seconds, got {poll_interval}"
            )

        max_retries = _env_number(
            "PREMIA_FEED_MAX_RETRIES", FeedConfig.max_retries, int
        )
        if max_retries < 0:
            raise ValueError("PREMIA_FEED_MAX_RETRIES cannot be negative")

        config = cls(
            db_path=str(get_db_path()),
            feed=FeedConfig(
                timeout_seconds=_env_number(
                    "PREMIA_FEED_TIMEOUT", FeedConfig.timeout_seconds, float
                ),
                max_retries=max_retries,
            ),
            pricing=PricingConfig(poll_interval_seconds=poll_interval),
            calendar=CalendarConfig(
                timezone=os.getenv("PREMIA_MARKET_TIMEZONE", EXCHANGE_TIMEZONE),
                extra_holidays=parse_holidays(
                    os.getenv("PREMIA_EXTRA_HOLIDAYS")
                )
            ),
            log_level=os.getenv("PREMIA_LOG_LEVEL", "INFO").upper(),
        )

        logger.info("Configuration loaded:")
        logger.info(f"  Database: {config.db_path}")
        logger.info(f"  Poll Interval: {config.pricing.poll_interval_seconds}s")
        logger.info(
            f"  Closing Price Refresh: every {config.pricing.refresh_after_hours}h"
        )
        logger.info(f"  Feed Timeout: {config.feed.timeout_seconds}s")
        logger.info(f"  Feed Max Retries: {config.feed.max_retries}")
        logger.info(f"  Market Timezone: {config.calendar.timezone}")
        logger.info(
            f"  Extra Holidays: {len(config.calendar.extra_holidays)} configured"
        )
        logger.info(f"  Log Level: {config.log_level}")

        return config
