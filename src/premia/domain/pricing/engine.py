"""Option position pricing and gain/loss engine

Pure computation: maps a position, a quote snapshot, an optional cached
closing price and the market state to a ValuedOptionPosition. Missing
inputs never raise; each one degrades along an ordered fallback chain
or to a zero result.

Sign convention: every figure is multiplied by the position's direction
(+1 long, -1 short) once, so a favourable move for the holder is always
positive and a short put's current value is a liability.
"""

from collections.abc import Iterable, Mapping, Sequence
from dataclasses import dataclass, field, replace
from datetime import datetime, timezone

from loguru import logger

from premia.domain.calendar import MarketState
from premia.domain.models import (
    ClosingPriceSource,
    ClosingPriceUpdate,
    GainLoss,
    LastTradingDayChange,
    OptionPosition,
    PortfolioSummary,
    PriceQuote,
    ValuedOptionPosition,
)
from premia.shared.constants import CONTRACT_MULTIPLIER

DEFAULT_CHANGE_EPSILON = 0.001


@dataclass(frozen=True)
class PriceCandidate:
    """One entry of a fallback chain: a named source and its value"""

    source: str
    value: float | None


def _is_positive(value: float | None) -> bool:
    return value is not None and value > 0


def first_positive(candidates: Sequence[PriceCandidate]) -> PriceCandidate | None:
    """Return the first candidate carrying a positive value, in order"""
    for candidate in candidates:
        if _is_positive(candidate.value):
            return candidate
    return None


def _percent(amount: float, base: float | None) -> float:
    if not base:
        return 0.0
    return amount / base * 100


def contract_units(position: OptionPosition) -> int:
    """Shares represented by the position"""
    return position.contract_quantity * CONTRACT_MULTIPLIER


def calculate_cost(position: OptionPosition) -> float:
    """Premium paid or received; always non-negative"""
    return position.entry_price_per_share * contract_units(position)


def closing_price_candidates(
    quote: PriceQuote, cached_closing: float | None
) -> list[PriceCandidate]:
    derived = None
    if quote.last_price is not None and quote.change is not None:
        derived = quote.last_price - quote.change
    return [
        PriceCandidate("cache", cached_closing),
        PriceCandidate("quote_delta", derived),
    ]


def effective_closing_price(
    quote: PriceQuote, cached_closing: float | None
) -> float | None:
    """Prior-session baseline: cache first, then last - change"""
    selected = first_positive(closing_price_candidates(quote, cached_closing))
    return selected.value if selected else None


def mark_price_candidates(
    position: OptionPosition,
    quote: PriceQuote,
    closing_price: float | None,
) -> list[PriceCandidate]:
    midpoint = None
    if _is_positive(quote.bid) and _is_positive(quote.ask):
        midpoint = (quote.bid + quote.ask) / 2  # type: ignore[operator]

    # Closing out a short put means buying at the ask; a long position
    # exits at the bid.
    if position.position_kind.is_short:
        exit_side = PriceCandidate("ask", quote.ask)
    else:
        exit_side = PriceCandidate("bid", quote.bid)

    return [
        PriceCandidate("midpoint", midpoint),
        exit_side,
        PriceCandidate("last", quote.last_price),
        PriceCandidate("closing", closing_price),
        PriceCandidate("entry", position.entry_price_per_share),
    ]


def mark_price(
    position: OptionPosition,
    quote: PriceQuote,
    closing_price: float | None,
) -> float:
    selected = first_positive(
        mark_price_candidates(position, quote, closing_price)
    )
    return selected.value if selected else 0.0  # type: ignore[return-value]


def current_value(position: OptionPosition, mark: float) -> float:
    """Signed mark-to-market; negative for short puts"""
    return position.position_kind.direction * mark * contract_units(position)


def today_gain_loss(
    position: OptionPosition,
    quote: PriceQuote,
    closing_price: float | None,
    mark: float,
    market_state: MarketState,
    change_epsilon: float = DEFAULT_CHANGE_EPSILON,
) -> GainLoss:
    """Change in position value since the prior close

    While the market is open the feed's change is used directly, falling
    back to mark - closing. Once closed, a nonzero feed change wins, then
    last - closing when it differs meaningfully, otherwise zero.
    """
    units = contract_units(position)
    direction = position.position_kind.direction
    amount = 0.0

    if market_state.is_open:
        if quote.change is not None:
            amount = quote.change * units * direction
        elif _is_positive(closing_price) and mark > 0:
            amount = (mark - closing_price) * units * direction  # type: ignore[operator]
    else:
        if quote.change is not None and abs(quote.change) > change_epsilon:
            amount = quote.change * units * direction
        elif (
            _is_positive(quote.last_price)
            and _is_positive(closing_price)
            and abs(quote.last_price - closing_price) > change_epsilon  # type: ignore[operator]
        ):
            amount = (quote.last_price - closing_price) * units * direction  # type: ignore[operator]

    base = closing_price * units if _is_positive(closing_price) else None  # type: ignore[operator]
    return GainLoss(amount=amount, percent=_percent(amount, base))


def total_gain_loss(position: OptionPosition, mark: float) -> GainLoss:
    """Change in position value since it was opened

    Short put: cost + current value (credit netted against buyback cost).
    Long: current value - cost.
    """
    cost = calculate_cost(position)
    amount = position.position_kind.direction * (
        mark * contract_units(position) - cost
    )
    return GainLoss(amount=amount, percent=_percent(amount, cost))


@dataclass
class PricingResult:
    """Output of one pricing pass"""

    valued: list[ValuedOptionPosition] = field(default_factory=list)
    closing_price_updates: list[ClosingPriceUpdate] = field(
        default_factory=list
    )


class PricingEngine:
    """Values option positions and derives closing-price write-backs"""

    def __init__(self, change_epsilon: float = DEFAULT_CHANGE_EPSILON) -> None:
        self.change_epsilon = change_epsilon

    def value(
        self,
        position: OptionPosition,
        quote: PriceQuote | None,
        cached_closing: float | None,
        market_state: MarketState,
        now: datetime | None = None,
    ) -> ValuedOptionPosition:
        """Value a single position for this pass"""
        quote = quote or PriceQuote.empty()
        closing = effective_closing_price(quote, cached_closing)
        mark = mark_price(position, quote, closing)

        return ValuedOptionPosition(
            position=position,
            contract_id=position.contract_id,
            cost=calculate_cost(position),
            current_value=current_value(position, mark),
            mark_price=mark,
            today_gain_loss=today_gain_loss(
                position,
                quote,
                closing,
                mark,
                market_state,
                self.change_epsilon,
            ),
            total_gain_loss=total_gain_loss(position, mark),
            is_last_trading_day=market_state.is_last_trading_day,
            last_updated=now or datetime.now(timezone.utc),
            closing_price=closing,
            bid=quote.bid,
            ask=quote.ask,
            last_price=quote.last_price,
        )

    def closing_price_update(
        self,
        contract_id: str,
        quote: PriceQuote | None,
        cached_closing: float | None,
    ) -> ClosingPriceUpdate | None:
        """Closing price to persist for the next pass, if any

        A meaningful feed change yields last - change when it differs from
        the cache. Without change data and without any cached value, the
        last price becomes tomorrow's baseline; it is never read back in
        the pass that produced it.
        """
        if quote is None or not _is_positive(quote.last_price):
            return None

        if quote.change is not None and abs(quote.change) > self.change_epsilon:
            derived = quote.last_price - quote.change  # type: ignore[operator]
            if derived <= 0:
                return None
            if cached_closing is not None and (
                abs(derived - cached_closing) <= self.change_epsilon
            ):
                return None
            return ClosingPriceUpdate(
                contract_id, derived, ClosingPriceSource.QUOTE_DELTA
            )

        if not _is_positive(cached_closing):
            return ClosingPriceUpdate(
                contract_id,
                quote.last_price,  # type: ignore[arg-type]
                ClosingPriceSource.BASELINE,
            )
        return None

    def price_all(
        self,
        positions: Iterable[OptionPosition],
        quotes: Mapping[str, PriceQuote],
        closing_prices: Mapping[str, float],
        market_state: MarketState,
        now: datetime | None = None,
    ) -> PricingResult:
        """Value every position; quotes are keyed by position id"""
        now = now or datetime.now(timezone.utc)
        result = PricingResult()
        pending: dict[str, ClosingPriceUpdate] = {}

        for position in positions:
            quote = quotes.get(position.id or position.contract_id)
            contract_id = position.contract_id
            cached = closing_prices.get(contract_id)

            result.valued.append(
                self.value(position, quote, cached, market_state, now)
            )

            update = self.closing_price_update(contract_id, quote, cached)
            if update and contract_id not in pending:
                pending[contract_id] = update

        result.closing_price_updates = list(pending.values())
        logger.debug(
            f"Priced {len(result.valued)} positions, "
            f"{len(result.closing_price_updates)} closing price updates"
        )
        return result

    def needs_history_fallback(self, valued: ValuedOptionPosition) -> bool:
        """Closed market, zero change, but a last price is known"""
        return (
            valued.is_last_trading_day
            and valued.today_gain_loss.amount == 0
            and _is_positive(valued.last_price)
        )

    def apply_last_trading_day_change(
        self,
        valued: ValuedOptionPosition,
        change: LastTradingDayChange,
    ) -> ValuedOptionPosition:
        """Replace today's figures with the last completed session's move"""
        units = contract_units(valued.position)
        amount = change.change * units * valued.position_kind.direction
        base = (
            change.previous_close * units
            if change.previous_close > 0
            else None
        )
        return replace(
            valued,
            today_gain_loss=GainLoss(
                amount=amount, percent=_percent(amount, base)
            ),
            closing_price=change.previous_close,
            is_last_trading_day=True,
        )


def summarize(valued: Sequence[ValuedOptionPosition]) -> PortfolioSummary:
    """Aggregate totals across valued positions"""
    total_cost = sum(v.cost for v in valued)
    total_amount = sum(v.total_gain_loss.amount for v in valued)
    return PortfolioSummary(
        position_count=len(valued),
        total_cost=total_cost,
        total_current_value=sum(v.current_value for v in valued),
        today_gain_loss=sum(v.today_gain_loss.amount for v in valued),
        total_gain_loss=GainLoss(
            amount=total_amount, percent=_percent(total_amount, total_cost)
        ),
    )
