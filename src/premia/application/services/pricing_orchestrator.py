"""Pricing orchestrator - glue loop between store, feed, cache and engine"""

import asyncio
from collections.abc import Callable, Sequence
from datetime import datetime, timezone

from loguru import logger

from premia.domain.calendar import MarketCalendar
from premia.domain.models import (
    ClosingPriceSource,
    ClosingPriceUpdate,
    OptionPosition,
    PriceQuote,
    QuoteRequest,
    ValuedOptionPosition,
)
from premia.domain.pricing import PricingEngine
from premia.domain.repositories import ClosingPriceCache, PositionStore
from premia.infrastructure.feeds import OptionPriceSource
from premia.shared.exceptions import ClosingPriceCacheError

ValuationHandler = Callable[[list[ValuedOptionPosition]], object]

DEFAULT_POLL_INTERVAL_SECONDS = 60


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


class PricingOrchestrator:
    """Runs pricing passes and publishes valued positions

    A pass is triggered by a position-set change, by the polling loop, or
    on demand via refresh(). Passes are independent; if two overlap the
    last one to publish wins.
    """

    def __init__(
        self,
        store: PositionStore,
        price_source: OptionPriceSource,
        closing_cache: ClosingPriceCache,
        calendar: MarketCalendar | None = None,
        engine: PricingEngine | None = None,
        poll_interval_seconds: float = DEFAULT_POLL_INTERVAL_SECONDS,
        clock: Callable[[], datetime] = _utcnow,
    ) -> None:
        """Initialise orchestrator

        Args:
            store: Source of the current position set
            price_source: Best-effort option feed
            closing_cache: Persistent previous-close cache
            calendar: Exchange calendar used for the market state
            engine: Pricing engine applied to every position
            poll_interval_seconds: Delay between polling passes
            clock: Returns the current aware instant
        """
        self._store = store
        self._price_source = price_source
        self._closing_cache = closing_cache
        self._calendar = calendar or MarketCalendar()
        self._engine = engine or PricingEngine()
        self.poll_interval_seconds = poll_interval_seconds
        self._clock = clock

        self._subscribers: list[ValuationHandler] = []
        self._latest: list[ValuedOptionPosition] = []
        self._task: asyncio.Task | None = None
        self._pending_passes: set[asyncio.Task] = set()
        self._unsubscribe_store: Callable[[], None] | None = None

    @property
    def latest(self) -> list[ValuedOptionPosition]:
        """Most recently published valuation"""
        return list(self._latest)

    @property
    def is_running(self) -> bool:
        return self._task is not None and not self._task.done()

    def subscribe(self, handler: ValuationHandler) -> Callable[[], None]:
        """Register a handler for published valuations

        Handlers may be plain callables or coroutine functions.

        Returns:
            Callable removing the handler
        """
        self._subscribers.append(handler)
        logger.debug("Subscribed valuation handler")

        def unsubscribe() -> None:
            if handler in self._subscribers:
                self._subscribers.remove(handler)
                logger.debug("Unsubscribed valuation handler")

        return unsubscribe

    async def refresh(self) -> list[ValuedOptionPosition]:
        """Run one pass on demand"""
        return await self.run_pass()

    async def run_pass(self) -> list[ValuedOptionPosition]:
        """Value every position and publish the result

        Returns:
            The published list of valued positions
        """
        now = self._clock()
        positions = self._store.list()

        if not positions:
            logger.debug("No positions - publishing empty valuation")
            await self._publish([])
            return []

        logger.info(f"Pricing pass started for {len(positions)} positions")

        await self._refresh_closing_prices(positions, now)
        closing_prices = self._closing_cache.get_all()
        quotes = await self._fetch_quotes(positions)
        market_state = self._calendar.state(now)

        result = self._engine.price_all(
            positions, quotes, closing_prices, market_state, now
        )
        self._apply_closing_price_updates(result.closing_price_updates)

        valued = result.valued
        if market_state.is_last_trading_day:
            valued = await self._apply_history_fallback(valued)

        await self._publish(valued)
        logger.info(
            f"Pricing pass complete: {len(valued)} positions "
            f"(market {market_state.value})"
        )
        return valued

    async def _refresh_closing_prices(
        self, positions: Sequence[OptionPosition], now: datetime
    ) -> None:
        """Bulk-refresh previous closes when the daily refresh is due"""
        if not self._closing_cache.should_refresh(now):
            return

        contract_ids = sorted({p.contract_id for p in positions})
        logger.info(
            f"Refreshing closing prices for {len(contract_ids)} contracts"
        )
        closes = await self._price_source.batch_fetch_previous_close(
            contract_ids
        )

        self._apply_closing_price_updates(
            [
                ClosingPriceUpdate(
                    contract_id, price, ClosingPriceSource.FEED_PREVIOUS_CLOSE
                )
                for contract_id, price in closes.items()
            ]
        )

        self._closing_cache.mark_refreshed(now)
        logger.info(
            f"Cached {len(closes)}/{len(contract_ids)} closing prices"
        )

    async def _fetch_quotes(
        self, positions: Sequence[OptionPosition]
    ) -> dict[str, PriceQuote]:
        requests = [QuoteRequest.from_position(p) for p in positions]
        try:
            return await self._price_source.batch_fetch_quotes(requests)
        except Exception as e:
            logger.error(f"Quote fetch failed, pricing without quotes: {e}")
            return {}

    def _apply_closing_price_updates(
        self, updates: Sequence[ClosingPriceUpdate]
    ) -> None:
        for update in updates:
            logger.debug(
                f"Closing price for {update.contract_id}: "
                f"{update.closing_price:.4f} ({update.source.value})"
            )
            self._write_closing_price(update.contract_id, update.closing_price)

    def _write_closing_price(self, contract_id: str, price: float) -> None:
        try:
            self._closing_cache.set(contract_id, price)
        except ClosingPriceCacheError as e:
            logger.warning(f"Failed to cache closing price: {e}")

    async def _apply_history_fallback(
        self, valued: list[ValuedOptionPosition]
    ) -> list[ValuedOptionPosition]:
        """Second-chance today figures from the daily close history"""
        stale = [v for v in valued if self._engine.needs_history_fallback(v)]
        if not stale:
            return valued

        contract_ids = sorted({v.contract_id for v in stale})
        logger.info(
            f"Fetching last trading day change for {len(contract_ids)} contracts"
        )
        try:
            changes = await self._price_source.batch_fetch_last_trading_day_change(
                contract_ids
            )
        except Exception as e:
            logger.error(f"Last trading day lookup failed: {e}")
            return valued

        self._apply_closing_price_updates(
            [
                ClosingPriceUpdate(
                    contract_id,
                    change.previous_close,
                    ClosingPriceSource.PRICE_HISTORY,
                )
                for contract_id, change in changes.items()
                if change.previous_close > 0
            ]
        )

        return [
            self._engine.apply_last_trading_day_change(v, changes[v.contract_id])
            if self._engine.needs_history_fallback(v)
            and v.contract_id in changes
            else v
            for v in valued
        ]

    async def _publish(self, valued: list[ValuedOptionPosition]) -> None:
        self._latest = list(valued)
        for handler in list(self._subscribers):
            try:
                result = handler(list(valued))
                if asyncio.iscoroutine(result):
                    await result
            except Exception as e:
                logger.exception(f"Valuation handler failed: {e}")

    async def start(self) -> None:
        """Start the polling loop and react to position changes"""
        if self.is_running:
            logger.warning("Pricing orchestrator already running")
            return

        self._unsubscribe_store = self._store.on_change(
            self._on_positions_changed
        )
        self._task = asyncio.create_task(self._poll())
        logger.info(
            f"Pricing orchestrator started "
            f"(poll interval {self.poll_interval_seconds}s)"
        )

    async def stop(self) -> None:
        """Stop the polling loop and detach from the store"""
        if self._unsubscribe_store is not None:
            self._unsubscribe_store()
            self._unsubscribe_store = None

        if self._task is None:
            logger.warning("Pricing orchestrator not running")
            return

        self._task.cancel()
        try:
            await self._task
        except asyncio.CancelledError:
            pass
        self._task = None

        for task in list(self._pending_passes):
            task.cancel()
        self._pending_passes.clear()

        logger.info("Pricing orchestrator stopped")

    async def _poll(self) -> None:
        while True:
            try:
                await self.run_pass()
            except Exception as e:
                logger.exception(f"Pricing pass failed: {e}")
            await asyncio.sleep(self.poll_interval_seconds)

    def _on_positions_changed(self, positions: list[OptionPosition]) -> None:
        """Schedule a pass when the position set changes"""
        try:
            loop = asyncio.get_running_loop()
        except RuntimeError:
            logger.debug("Positions changed outside an event loop - no pass")
            return

        logger.debug(f"Positions changed ({len(positions)}) - scheduling pass")
        task = loop.create_task(self._run_pass_safely())
        self._pending_passes.add(task)
        task.add_done_callback(self._pending_passes.discard)

    async def _run_pass_safely(self) -> None:
        try:
            await self.run_pass()
        except Exception as e:
            logger.exception(f"Pricing pass failed: {e}")
