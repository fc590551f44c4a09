"""Tests for exchange hours and holiday classification"""

from datetime import date, datetime, time, timezone

import pytest
from freezegun import freeze_time

from premia.domain.calendar import MarketCalendar, MarketState


def utc(*args) -> datetime:
    return datetime(*args, tzinfo=timezone.utc)


@pytest.fixture
def calendar() -> MarketCalendar:
    return MarketCalendar()


@pytest.mark.unit
class TestIsOpen:
    def test_open_mid_session(self, calendar):
        # 2026-03-10 is a Tuesday; EDT (UTC-4) after 2026-03-08
        assert calendar.is_open(utc(2026, 3, 10, 14, 0))

    def test_open_at_exact_open(self, calendar):
        assert calendar.is_open(utc(2026, 3, 10, 13, 30))

    def test_closed_one_minute_before_open(self, calendar):
        assert not calendar.is_open(utc(2026, 3, 10, 13, 29))

    def test_closed_at_exact_close(self, calendar):
        assert not calendar.is_open(utc(2026, 3, 10, 20, 0))

    def test_open_one_minute_before_close(self, calendar):
        assert calendar.is_open(utc(2026, 3, 10, 19, 59))

    def test_standard_time_offset(self, calendar):
        # 2026-01-06 is EST (UTC-5): 14:00 UTC = 09:00 local
        assert not calendar.is_open(utc(2026, 1, 6, 14, 0))
        assert calendar.is_open(utc(2026, 1, 6, 14, 30))

    def test_weekend_closed(self, calendar):
        assert not calendar.is_open(utc(2026, 3, 14, 15, 0))

    def test_holiday_closed(self, calendar):
        # Good Friday 2026
        assert not calendar.is_open(utc(2026, 4, 3, 15, 0))

    def test_naive_datetime_interpreted_as_utc(self, calendar):
        assert calendar.is_open(datetime(2026, 3, 10, 14, 0))

    def test_utc_date_differs_from_exchange_date(self, calendar):
        # Saturday 01:00 UTC is still Friday evening in New York
        instant = utc(2026, 3, 14, 1, 0)
        assert calendar.exchange_date(instant) == date(2026, 3, 13)
        assert not calendar.is_market_closed_all_day(instant)


@pytest.mark.unit
class TestClosedAllDay:
    @pytest.mark.parametrize(
        "day",
        [date(2026, 3, 14), date(2026, 3, 15), date(2026, 12, 25), date(2027, 7, 5)],
    )
    def test_weekends_and_holidays(self, calendar, day):
        assert calendar.is_market_closed_all_day(day)
        assert calendar.is_holiday_or_weekend(day)
        assert not calendar.is_trading_day(day)

    def test_regular_weekday(self, calendar):
        assert not calendar.is_market_closed_all_day(date(2026, 3, 10))
        assert calendar.is_trading_day(date(2026, 3, 10))

    def test_extra_holidays(self):
        calendar = MarketCalendar()
        closure = date(2026, 3, 11)
        assert calendar.is_trading_day(closure)

        calendar.add_holidays([closure])

        assert calendar.is_market_closed_all_day(closure)
        assert closure in calendar.holidays

    def test_custom_holiday_set_replaces_defaults(self):
        calendar = MarketCalendar(holidays=[])
        assert calendar.is_trading_day(date(2026, 12, 25))


@pytest.mark.unit
class TestMarketState:
    def test_open(self, calendar):
        state = calendar.state(utc(2026, 3, 10, 15, 0))
        assert state is MarketState.OPEN
        assert state.is_open
        assert not state.is_last_trading_day

    def test_closed_after_hours(self, calendar):
        state = calendar.state(utc(2026, 3, 10, 22, 0))
        assert state is MarketState.CLOSED
        assert state.is_last_trading_day

    def test_closed_before_open(self, calendar):
        assert calendar.state(utc(2026, 3, 10, 12, 0)) is MarketState.CLOSED

    def test_closed_all_day(self, calendar):
        state = calendar.state(utc(2026, 3, 14, 15, 0))
        assert state is MarketState.CLOSED_ALL_DAY
        assert state.is_last_trading_day

    @freeze_time("2026-03-10 15:00:00")
    def test_defaults_to_now(self, calendar):
        assert calendar.state() is MarketState.OPEN

    @freeze_time("2026-03-15 15:00:00")
    def test_defaults_to_now_on_sunday(self, calendar):
        assert calendar.state() is MarketState.CLOSED_ALL_DAY

    def test_custom_session_hours(self):
        calendar = MarketCalendar(open_time=time(4, 0), close_time=time(20, 0))
        assert calendar.is_open(utc(2026, 3, 10, 9, 0))


@pytest.mark.unit
class TestPreviousTradingDay:
    def test_monday_rolls_back_to_friday(self, calendar):
        assert calendar.previous_trading_day(date(2026, 3, 16)) == date(
            2026, 3, 13
        )

    def test_skips_holiday(self, calendar):
        # Monday after Good Friday 2026
        assert calendar.previous_trading_day(date(2026, 4, 6)) == date(
            2026, 4, 2
        )

    def test_midweek(self, calendar):
        assert calendar.previous_trading_day(utc(2026, 3, 11, 15, 0)) == date(
            2026, 3, 10
        )


@pytest.mark.unit
def test_add_holidays_extends_calendar(calendar):
    mlk_2028 = date(2028, 1, 17)
    assert not calendar.is_holiday_or_weekend(mlk_2028)

    calendar.add_holidays([mlk_2028])

    assert calendar.is_holiday_or_weekend(mlk_2028)
    assert calendar.previous_trading_day(date(2028, 1, 18)) == date(2028, 1, 14)
