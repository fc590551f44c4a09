"""Yahoo options feed: quotes, previous closes and last-session changes

Handles:
- Grouped option-chain fetches (one call per underlying + expiration)
- Nearest-strike contract matching
- Previous-close and last-trading-day change from the daily chart
- Short-lived in-memory caches for closes and chains

Every public method is best-effort: feed failures are logged and reported
as absent data so one bad symbol never aborts a pricing pass.
"""

import asyncio
import time
from collections.abc import Callable, Iterable, Sequence
from datetime import date, datetime, timezone
from typing import Any

from loguru import logger

from premia.domain.models import (
    LastTradingDayChange,
    PriceQuote,
    QuoteRequest,
    parse_contract_id,
)
from premia.infrastructure.cache import TTLCache
from premia.shared.exceptions import ContractIdError, PriceFeedError

from .requests import YahooRequestClient
from .session import YahooSession

ChainKey = tuple[str, date]


def _as_float(value: Any) -> float | None:
    if isinstance(value, bool) or not isinstance(value, (int, float)):
        return None
    return float(value)


def _as_positive_float(value: Any) -> float | None:
    number = _as_float(value)
    return number if number is not None and number > 0 else None


def _as_positive_int(value: Any) -> int | None:
    number = _as_float(value)
    return int(number) if number is not None and number > 0 else None


def _expiration_timestamp(expiration: date) -> int:
    """Feed expirations are UTC midnight epoch seconds"""
    return int(
        datetime(
            expiration.year, expiration.month, expiration.day, tzinfo=timezone.utc
        ).timestamp()
    )


class YahooOptionPriceSource:
    """Best-effort option price source backed by the Yahoo REST endpoints"""

    def __init__(
        self,
        request_client: YahooRequestClient,
        chart_url: str = "https://query2.finance.yahoo.com/v8/finance/chart",
        options_url: str = "https://query2.finance.yahoo.com/v7/finance/options",
        previous_close_ttl_seconds: float = 24 * 60 * 60,
        chain_cache_ttl_seconds: float = 30,
        exact_strike_tolerance: float = 0.01,
        max_strike_distance: float = 2.5,
        max_concurrency: int = 8,
        clock: Callable[[], float] = time.monotonic,
    ) -> None:
        self._requests = request_client
        self.chart_url = chart_url.rstrip("/")
        self.options_url = options_url.rstrip("/")
        self.exact_strike_tolerance = exact_strike_tolerance
        self.max_strike_distance = max_strike_distance

        self._close_cache = TTLCache(previous_close_ttl_seconds, clock=clock)
        self._chain_cache = TTLCache(chain_cache_ttl_seconds, clock=clock)
        self._chain_inflight: dict[ChainKey, asyncio.Task] = {}
        self._max_concurrency = max_concurrency
        self._semaphore: asyncio.Semaphore | None = None

    @classmethod
    def from_config(cls, feed_config) -> "YahooOptionPriceSource":
        """Build session, request client and source from a FeedConfig"""
        session = YahooSession(
            cookie_url=feed_config.cookie_url,
            crumb_url=feed_config.crumb_url,
            user_agent=feed_config.user_agent,
            auth_ttl_seconds=feed_config.auth_ttl_seconds,
        )
        request_client = YahooRequestClient(
            session,
            timeout=feed_config.timeout_seconds,
            max_retries=feed_config.max_retries,
        )
        return cls(
            request_client,
            chart_url=feed_config.chart_url,
            options_url=feed_config.options_url,
            previous_close_ttl_seconds=feed_config.previous_close_ttl_seconds,
            chain_cache_ttl_seconds=feed_config.chain_cache_ttl_seconds,
            exact_strike_tolerance=feed_config.exact_strike_tolerance,
            max_strike_distance=feed_config.max_strike_distance,
            max_concurrency=feed_config.max_concurrency,
        )

    async def aclose(self) -> None:
        await self._requests.aclose()

    def clear_cache(self) -> None:
        self._close_cache.clear()
        self._chain_cache.clear()
        logger.debug("Price source caches cleared")

    # ------------------------------------------------------------------
    # Quotes
    # ------------------------------------------------------------------

    async def fetch_quote(self, contract_id: str) -> PriceQuote:
        """Quote for a single contract id (empty quote when unavailable)"""
        try:
            contract = parse_contract_id(contract_id)
        except ContractIdError as e:
            logger.warning(f"Cannot quote {contract_id}: {e}")
            return PriceQuote.empty()

        request = QuoteRequest(
            id=contract_id,
            underlying_symbol=contract.underlying_symbol,
            expiration_date=contract.expiration_date,
            strike_price=contract.strike_price,
            option_type=contract.option_type,
        )
        quotes = await self.batch_fetch_quotes([request])
        return quotes.get(contract_id, PriceQuote.empty())

    async def batch_fetch_quotes(
        self, requests: Sequence[QuoteRequest]
    ) -> dict[str, PriceQuote]:
        """Quotes keyed by request id

        Requests are grouped by (underlying, expiration) so one chain fetch
        serves every strike and side of that group; groups run concurrently.
        Unmatched or failed requests map to an empty quote.
        """
        if not requests:
            return {}

        groups: dict[ChainKey, list[QuoteRequest]] = {}
        for request in requests:
            key = (request.underlying_symbol, request.expiration_date)
            groups.setdefault(key, []).append(request)

        logger.info(
            f"Fetching quotes for {len(requests)} contracts in {len(groups)} chains"
        )

        keys = list(groups)
        chains = await asyncio.gather(
            *(self._get_chain(symbol, expiration) for symbol, expiration in keys),
            return_exceptions=True,
        )

        results: dict[str, PriceQuote] = {}
        for key, chain in zip(keys, chains, strict=True):
            if isinstance(chain, BaseException):
                logger.error(f"Chain fetch failed for {key[0]} {key[1]}: {chain}")
                chain = None
            for request in groups[key]:
                results[request.id] = self._quote_from_chain(chain, request)
        return results

    def _quote_from_chain(
        self, chain: dict | None, request: QuoteRequest
    ) -> PriceQuote:
        if not chain:
            return PriceQuote.empty()

        side = chain.get("calls" if request.option_type == "call" else "puts")
        if not isinstance(side, list):
            logger.warning(
                f"No {request.option_type}s in chain for {request.underlying_symbol}"
            )
            return PriceQuote.empty()

        contract = self.match_strike(side, request.strike_price)
        if contract is None:
            logger.warning(
                f"No {request.option_type} near strike {request.strike_price} "
                f"for {request.underlying_symbol} {request.expiration_date}"
            )
            return PriceQuote.empty()

        return PriceQuote(
            bid=_as_positive_float(contract.get("bid")),
            ask=_as_positive_float(contract.get("ask")),
            last_price=_as_positive_float(contract.get("lastPrice")),
            change=_as_float(contract.get("change")),
            percent_change=_as_float(contract.get("percentChange")),
            volume=_as_positive_int(contract.get("volume")),
            open_interest=_as_positive_int(contract.get("openInterest")),
        )

    def match_strike(self, contracts: list, strike: float) -> dict | None:
        """Exact strike first, else nearest within max_strike_distance"""
        candidates = [
            c
            for c in contracts
            if isinstance(c, dict) and _as_float(c.get("strike")) is not None
        ]

        for contract in candidates:
            if abs(contract["strike"] - strike) < self.exact_strike_tolerance:
                return contract

        nearest = None
        nearest_distance = float("inf")
        for contract in candidates:
            distance = abs(contract["strike"] - strike)
            if distance <= self.max_strike_distance and distance < nearest_distance:
                nearest = contract
                nearest_distance = distance
        return nearest

    async def _get_chain(self, symbol: str, expiration: date) -> dict | None:
        """Chain for one group, served from cache or a shared in-flight fetch"""
        key = (symbol, expiration)
        cache_key = f"{symbol}|{expiration.isoformat()}"

        cached = self._chain_cache.get(cache_key)
        if cached is not None:
            logger.debug(f"Chain cache hit: {cache_key}")
            return cached

        task = self._chain_inflight.get(key)
        if task is None:
            task = asyncio.ensure_future(self._fetch_chain(symbol, expiration))
            self._chain_inflight[key] = task
            task.add_done_callback(lambda _: self._chain_inflight.pop(key, None))

        chain = await asyncio.shield(task)
        if chain is not None:
            self._chain_cache.set(cache_key, chain)
        return chain

    async def _fetch_chain(self, symbol: str, expiration: date) -> dict | None:
        url = f"{self.options_url}/{symbol}"
        params = {"date": _expiration_timestamp(expiration)}
        try:
            async with self._limit():
                data = await self._requests.get_json(url, params=params)
        except PriceFeedError as e:
            logger.warning(f"Option chain unavailable for {symbol} {expiration}: {e}")
            return None

        option_chain = data.get("optionChain") if isinstance(data, dict) else None
        result = (option_chain or {}).get("result") or []
        if not result or not isinstance(result[0], dict):
            logger.warning(f"No option data found for {symbol} {expiration}")
            return None

        options = result[0].get("options") or []
        if not options or not isinstance(options[0], dict):
            logger.warning(f"Empty option chain for {symbol} {expiration}")
            return None
        return options[0]

    # ------------------------------------------------------------------
    # Closes
    # ------------------------------------------------------------------

    async def fetch_previous_close(self, contract_id: str) -> float | None:
        """Prior-session close, cached in memory for previous_close_ttl"""
        cached = self._close_cache.get(contract_id)
        if cached is not None:
            return cached

        result = await self._fetch_chart(contract_id, "5d")
        if result is None:
            return None

        meta = result.get("meta") or {}
        previous_close = _as_positive_float(
            meta.get("previousClose")
        ) or _as_positive_float(meta.get("chartPreviousClose"))

        if previous_close is None:
            closes = self._closes(result)
            if len(closes) >= 2:
                previous_close = closes[-2]
            elif len(closes) == 1:
                previous_close = closes[0]

        if previous_close is None or previous_close <= 0:
            logger.debug(f"No previous close available for {contract_id}")
            return None

        self._close_cache.set(contract_id, previous_close)
        return previous_close

    async def batch_fetch_previous_close(
        self, contract_ids: Iterable[str]
    ) -> dict[str, float]:
        """Previous closes for many contracts; failures are dropped"""
        ids = list(dict.fromkeys(contract_ids))
        results: dict[str, float] = {}
        uncached = []
        for contract_id in ids:
            cached = self._close_cache.get(contract_id)
            if cached is not None:
                results[contract_id] = cached
            else:
                uncached.append(contract_id)

        if uncached:
            logger.info(f"Fetching previous close for {len(uncached)} contracts")
            fetched = await asyncio.gather(
                *(self.fetch_previous_close(cid) for cid in uncached),
                return_exceptions=True,
            )
            for contract_id, price in zip(uncached, fetched, strict=True):
                if isinstance(price, BaseException):
                    logger.error(f"Previous close failed for {contract_id}: {price}")
                elif price is not None:
                    results[contract_id] = price
        return results

    async def fetch_last_trading_day_change(
        self, contract_id: str
    ) -> LastTradingDayChange | None:
        """Move between the two most recent daily closes"""
        result = await self._fetch_chart(contract_id, "10d")
        if result is None:
            return None

        closes = self._closes(result)
        if len(closes) < 2:
            return None

        last_close, previous_close = closes[-1], closes[-2]
        if last_close <= 0 or previous_close <= 0:
            return None

        change = last_close - previous_close
        return LastTradingDayChange(
            change=change,
            percent_change=change / previous_close * 100,
            last_close=last_close,
            previous_close=previous_close,
        )

    async def batch_fetch_last_trading_day_change(
        self, contract_ids: Iterable[str]
    ) -> dict[str, LastTradingDayChange]:
        ids = list(dict.fromkeys(contract_ids))
        fetched = await asyncio.gather(
            *(self.fetch_last_trading_day_change(cid) for cid in ids),
            return_exceptions=True,
        )
        results: dict[str, LastTradingDayChange] = {}
        for contract_id, change in zip(ids, fetched, strict=True):
            if isinstance(change, BaseException):
                logger.error(f"Last-session change failed for {contract_id}: {change}")
            elif change is not None:
                results[contract_id] = change
        return results

    async def _fetch_chart(self, contract_id: str, range_: str) -> dict | None:
        url = f"{self.chart_url}/{contract_id}"
        params = {"interval": "1d", "range": range_}
        try:
            async with self._limit():
                data = await self._requests.get_json(url, params=params)
        except PriceFeedError as e:
            logger.warning(f"Chart unavailable for {contract_id}: {e}")
            return None

        chart = (data.get("chart") if isinstance(data, dict) else None) or {}
        if chart.get("error"):
            error = chart["error"]
            description = (
                error.get("description") if isinstance(error, dict) else error
            )
            logger.warning(f"Chart error for {contract_id}: {description}")
            return None

        result = chart.get("result") or []
        if not result or not isinstance(result[0], dict):
            return None
        return result[0]

    @staticmethod
    def _closes(result: dict) -> list[float]:
        quotes = (result.get("indicators") or {}).get("quote") or [{}]
        raw = quotes[0].get("close") if isinstance(quotes[0], dict) else None
        return [c for c in (_as_float(v) for v in raw or []) if c is not None]

    def _limit(self) -> asyncio.Semaphore:
        if self._semaphore is None:
            self._semaphore = asyncio.Semaphore(self._max_concurrency)
        return self._semaphore
