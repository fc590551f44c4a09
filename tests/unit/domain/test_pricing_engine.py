"""Tests for the option pricing engine"""

import math
from datetime import datetime, timezone

import pytest

from premia.domain.calendar import MarketState
from premia.domain.models import (
    ClosingPriceSource,
    GainLoss,
    LastTradingDayChange,
    PositionKind,
    PriceQuote,
)
from premia.domain.pricing import (
    PriceCandidate,
    PricingEngine,
    calculate_cost,
    effective_closing_price,
    first_positive,
    mark_price,
    summarize,
)
from tests.factories import OptionPositionFactory, QuoteFactory

NOW = datetime(2026, 3, 10, 15, 0, tzinfo=timezone.utc)


@pytest.fixture
def engine() -> PricingEngine:
    return PricingEngine()


@pytest.mark.unit
class TestFallbackChains:
    def test_first_positive_skips_missing_and_zero(self):
        selected = first_positive(
            [
                PriceCandidate("a", None),
                PriceCandidate("b", 0.0),
                PriceCandidate("c", -1.0),
                PriceCandidate("d", 2.5),
                PriceCandidate("e", 9.0),
            ]
        )
        assert selected == PriceCandidate("d", 2.5)

    def test_first_positive_none_when_exhausted(self):
        assert first_positive([PriceCandidate("a", None)]) is None

    def test_effective_closing_prefers_cache(self):
        quote = QuoteFactory.quote(last=5.0, change=0.5)
        assert effective_closing_price(quote, 4.2) == 4.2

    def test_effective_closing_derived_from_quote(self):
        quote = QuoteFactory.quote(last=5.0, change=0.5)
        assert effective_closing_price(quote, None) == pytest.approx(4.5)

    def test_effective_closing_absent(self):
        assert effective_closing_price(QuoteFactory.quote(last=5.0), None) is None

    def test_mark_midpoint_when_both_sides_quoted(self):
        position = OptionPositionFactory.sell_put()
        quote = QuoteFactory.quote(bid=3.0, ask=3.2, last=9.0)
        assert mark_price(position, quote, None) == pytest.approx(3.1)

    def test_mark_short_put_uses_ask_when_one_sided(self):
        position = OptionPositionFactory.sell_put()
        quote = QuoteFactory.quote(bid=None, ask=4.0, last=3.0)
        assert mark_price(position, quote, None) == 4.0

    def test_mark_long_uses_bid_when_one_sided(self):
        position = OptionPositionFactory.buy_call()
        quote = QuoteFactory.quote(bid=2.9, ask=0.0, last=3.5)
        assert mark_price(position, quote, None) == 2.9

    def test_mark_long_ignores_ask_only(self):
        position = OptionPositionFactory.buy_call()
        quote = QuoteFactory.quote(ask=4.0, last=3.5)
        assert mark_price(position, quote, None) == 3.5

    def test_mark_falls_back_to_closing_then_entry(self):
        position = OptionPositionFactory.buy_put(entry_price=1.25)
        assert mark_price(position, PriceQuote.empty(), 1.8) == 1.8
        assert mark_price(position, PriceQuote.empty(), None) == 1.25

    def test_mark_zero_when_nothing_known(self):
        position = OptionPositionFactory.buy_put(entry_price=0.0)
        assert mark_price(position, PriceQuote.empty(), None) == 0.0


@pytest.mark.unit
class TestValuationScenarios:
    def test_sell_put_with_ask_only(self, engine):
        position = OptionPositionFactory.sell_put(quantity=2, entry_price=3.50)

        valued = engine.value(
            position,
            QuoteFactory.quote(ask=4.00),
            None,
            MarketState.OPEN,
            NOW,
        )

        assert valued.cost == pytest.approx(700)
        assert valued.current_value == pytest.approx(-800)
        assert valued.total_gain_loss.amount == pytest.approx(-100)
        assert valued.total_gain_loss.percent == pytest.approx(-14.285714, rel=1e-6)

    def test_buy_call_midpoint(self, engine):
        position = OptionPositionFactory.buy_call(
            quantity=1, entry_price=2.00, strike=150
        )

        valued = engine.value(
            position,
            QuoteFactory.quote(bid=3.00, ask=3.20),
            None,
            MarketState.OPEN,
            NOW,
        )

        assert valued.cost == pytest.approx(200)
        assert valued.mark_price == pytest.approx(3.10)
        assert valued.current_value == pytest.approx(310)
        assert valued.total_gain_loss.amount == pytest.approx(110)
        assert valued.total_gain_loss.percent == pytest.approx(55)

    def test_closed_market_flat_quote_schedules_baseline(self, engine):
        position = OptionPositionFactory.sell_put()
        quote = QuoteFactory.quote(last=5.00, change=0.0)

        result = engine.price_all(
            [position], {position.id: quote}, {}, MarketState.CLOSED, NOW
        )

        valued = result.valued[0]
        assert valued.today_gain_loss == GainLoss(amount=0.0, percent=0.0)
        assert valued.is_last_trading_day
        assert len(result.closing_price_updates) == 1
        update = result.closing_price_updates[0]
        assert update.contract_id == position.contract_id
        assert update.closing_price == 5.00
        assert update.source is ClosingPriceSource.BASELINE

    def test_valued_position_carries_quote_fields(self, engine):
        position = OptionPositionFactory.buy_call()
        quote = QuoteFactory.quote(bid=3.0, ask=3.2, last=3.1, change=0.1)

        valued = engine.value(position, quote, 2.9, MarketState.OPEN, NOW)

        assert valued.contract_id == position.contract_id
        assert valued.closing_price == 2.9
        assert (valued.bid, valued.ask, valued.last_price) == (3.0, 3.2, 3.1)
        assert valued.last_updated == NOW
        assert valued.id == position.id
        assert valued.position_kind is PositionKind.BUY_CALL

    def test_missing_quote_values_at_entry(self, engine):
        position = OptionPositionFactory.buy_put(quantity=3, entry_price=1.5)

        valued = engine.value(position, None, None, MarketState.OPEN, NOW)

        assert valued.mark_price == 1.5
        assert valued.current_value == pytest.approx(450)
        assert valued.total_gain_loss == GainLoss(amount=0.0, percent=0.0)
        assert valued.today_gain_loss == GainLoss(amount=0.0, percent=0.0)


@pytest.mark.unit
class TestTodayGainLoss:
    def test_open_market_uses_feed_change_with_direction(self, engine):
        position = OptionPositionFactory.sell_put(quantity=2)
        quote = QuoteFactory.quote(bid=4.1, ask=4.3, last=4.2, change=0.25)

        valued = engine.value(position, quote, 4.0, MarketState.OPEN, NOW)

        assert valued.today_gain_loss.amount == pytest.approx(-50)
        assert valued.today_gain_loss.percent == pytest.approx(-6.25)

    def test_open_market_without_change_uses_mark_minus_closing(self, engine):
        position = OptionPositionFactory.buy_call()
        quote = QuoteFactory.quote(bid=3.4, ask=3.6)

        valued = engine.value(position, quote, 3.0, MarketState.OPEN, NOW)

        assert valued.today_gain_loss.amount == pytest.approx(50)
        assert valued.today_gain_loss.percent == pytest.approx(16.6666667)

    def test_closed_market_uses_nonzero_change(self, engine):
        position = OptionPositionFactory.buy_put()
        quote = QuoteFactory.quote(last=2.0, change=-0.4)

        valued = engine.value(position, quote, 2.4, MarketState.CLOSED, NOW)

        assert valued.today_gain_loss.amount == pytest.approx(-40)

    def test_closed_market_uses_last_minus_closing(self, engine):
        position = OptionPositionFactory.sell_put()
        quote = QuoteFactory.quote(last=4.5)

        valued = engine.value(
            position, quote, 4.0, MarketState.CLOSED_ALL_DAY, NOW
        )

        assert valued.today_gain_loss.amount == pytest.approx(-50)
        assert valued.today_gain_loss.percent == pytest.approx(-12.5)

    def test_closed_market_ignores_tiny_differences(self, engine):
        position = OptionPositionFactory.buy_call()
        quote = QuoteFactory.quote(last=3.0005, change=0.0004)

        valued = engine.value(position, quote, 3.0, MarketState.CLOSED, NOW)

        assert valued.today_gain_loss == GainLoss(amount=0.0, percent=0.0)

    def test_percent_zero_without_closing_price(self, engine):
        position = OptionPositionFactory.buy_call()
        quote = QuoteFactory.quote(bid=3.0, ask=3.2, change=None)

        valued = engine.value(position, quote, None, MarketState.OPEN, NOW)

        assert valued.today_gain_loss.percent == 0.0
        assert not math.isnan(valued.today_gain_loss.percent)


@pytest.mark.unit
class TestSignProperties:
    @pytest.mark.parametrize("mark", [0.05, 1.0, 12.5])
    def test_short_put_value_is_never_positive(self, engine, mark):
        position = OptionPositionFactory.sell_put(quantity=3)
        valued = engine.value(
            position, QuoteFactory.quote(last=mark), None, MarketState.OPEN, NOW
        )
        assert valued.current_value <= 0

    @pytest.mark.parametrize("kind", [PositionKind.BUY_CALL, PositionKind.BUY_PUT])
    def test_long_value_is_never_negative(self, engine, kind):
        position = OptionPositionFactory.position(kind=kind, quantity=2)
        valued = engine.value(
            position, QuoteFactory.quote(last=0.8), None, MarketState.OPEN, NOW
        )
        assert valued.current_value >= 0

    @pytest.mark.parametrize("kind", list(PositionKind))
    def test_cost_ignores_direction(self, kind):
        position = OptionPositionFactory.position(
            kind=kind, quantity=4, entry_price=1.25
        )
        assert calculate_cost(position) == pytest.approx(500)

    def test_zero_cost_percent_is_zero(self, engine):
        position = OptionPositionFactory.buy_call(entry_price=0.0)
        valued = engine.value(
            position, QuoteFactory.quote(bid=1.0, ask=1.2), None, MarketState.OPEN, NOW
        )
        assert valued.total_gain_loss.amount == pytest.approx(110)
        assert valued.total_gain_loss.percent == 0.0


@pytest.mark.unit
class TestClosingPriceUpdates:
    def test_derived_from_quote_delta(self, engine):
        update = engine.closing_price_update(
            "AMD260320P00160000", QuoteFactory.quote(last=5.0, change=0.5), None
        )
        assert update.closing_price == pytest.approx(4.5)
        assert update.source is ClosingPriceSource.QUOTE_DELTA

    def test_unchanged_cache_is_not_rewritten(self, engine):
        assert (
            engine.closing_price_update(
                "AMD260320P00160000", QuoteFactory.quote(last=5.0, change=0.5), 4.5
            )
            is None
        )

    def test_stale_cache_is_corrected(self, engine):
        update = engine.closing_price_update(
            "AMD260320P00160000", QuoteFactory.quote(last=5.0, change=0.5), 4.0
        )
        assert update.closing_price == pytest.approx(4.5)

    def test_no_baseline_when_cache_exists(self, engine):
        assert (
            engine.closing_price_update(
                "AMD260320P00160000", QuoteFactory.quote(last=5.0), 4.0
            )
            is None
        )

    def test_nothing_without_last_price(self, engine):
        assert (
            engine.closing_price_update(
                "AMD260320P00160000", QuoteFactory.quote(bid=1.0, change=0.2), None
            )
            is None
        )
        assert engine.closing_price_update("AMD260320P00160000", None, None) is None

    def test_baseline_is_not_used_in_same_pass(self, engine):
        position = OptionPositionFactory.buy_call()
        quote = QuoteFactory.quote(last=5.0)

        result = engine.price_all(
            [position], {position.id: quote}, {}, MarketState.CLOSED, NOW
        )

        assert result.valued[0].closing_price is None
        assert result.closing_price_updates[0].closing_price == 5.0

    def test_one_update_per_contract(self, engine):
        first = OptionPositionFactory.sell_put(id="a")
        second = OptionPositionFactory.sell_put(id="b")
        quotes = {
            "a": QuoteFactory.quote(last=5.0, change=0.5),
            "b": QuoteFactory.quote(last=5.0, change=0.5),
        }

        result = engine.price_all(
            [first, second], quotes, {}, MarketState.OPEN, NOW
        )

        assert len(result.valued) == 2
        assert len(result.closing_price_updates) == 1


@pytest.mark.unit
class TestLastTradingDayFallback:
    def test_needs_fallback_when_closed_and_flat(self, engine):
        position = OptionPositionFactory.sell_put()
        valued = engine.value(
            position, QuoteFactory.quote(last=5.0, change=0.0), None, MarketState.CLOSED, NOW
        )
        assert engine.needs_history_fallback(valued)

    def test_no_fallback_while_open(self, engine):
        position = OptionPositionFactory.sell_put()
        valued = engine.value(
            position, QuoteFactory.quote(last=5.0, change=0.0), None, MarketState.OPEN, NOW
        )
        assert not engine.needs_history_fallback(valued)

    def test_no_fallback_without_last_price(self, engine):
        position = OptionPositionFactory.sell_put()
        valued = engine.value(
            position, PriceQuote.empty(), None, MarketState.CLOSED, NOW
        )
        assert not engine.needs_history_fallback(valued)

    def test_apply_change_uses_direction(self, engine):
        position = OptionPositionFactory.sell_put(quantity=2)
        valued = engine.value(
            position, QuoteFactory.quote(last=5.0, change=0.0), None, MarketState.CLOSED, NOW
        )

        updated = engine.apply_last_trading_day_change(
            valued,
            LastTradingDayChange(
                change=0.5, percent_change=11.11, last_close=5.0, previous_close=4.5
            ),
        )

        assert updated.today_gain_loss.amount == pytest.approx(-100)
        assert updated.today_gain_loss.percent == pytest.approx(-11.111111)
        assert updated.closing_price == 4.5
        assert updated.is_last_trading_day
        assert updated.total_gain_loss == valued.total_gain_loss


@pytest.mark.unit
class TestSummarize:
    def test_totals(self, engine):
        short_put = engine.value(
            OptionPositionFactory.sell_put(quantity=2, entry_price=3.5),
            QuoteFactory.quote(ask=4.0),
            None,
            MarketState.OPEN,
            NOW,
        )
        long_call = engine.value(
            OptionPositionFactory.buy_call(quantity=1, entry_price=2.0),
            QuoteFactory.quote(bid=3.0, ask=3.2),
            None,
            MarketState.OPEN,
            NOW,
        )

        summary = summarize([short_put, long_call])

        assert summary.position_count == 2
        assert summary.total_cost == pytest.approx(900)
        assert summary.total_current_value == pytest.approx(-490)
        assert summary.total_gain_loss.amount == pytest.approx(10)
        assert summary.total_gain_loss.percent == pytest.approx(10 / 900 * 100)

    def test_empty(self):
        summary = summarize([])
        assert summary.position_count == 0
        assert summary.total_gain_loss == GainLoss(amount=0.0, percent=0.0)
