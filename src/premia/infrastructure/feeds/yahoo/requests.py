"""YahooRequestClient - HTTP requests with re-auth and retry logic"""

import asyncio
import logging
import random
from typing import Any

import httpx
from loguru import logger

from premia.shared.exceptions import (
    PriceFeedAuthenticationError,
    PriceFeedRequestError,
)

from .session import YahooSession

_AUTH_REJECTED = (401, 403)
_RETRYABLE = (429, 500, 502, 503, 504)


class _LoguruHandler(logging.Handler):
    """Bridge stdlib logging into loguru"""

    def emit(self, record: logging.LogRecord) -> None:
        try:
            level = logger.level(record.levelname).name
        except ValueError:
            level = record.levelno
        logger.opt(depth=6, exception=record.exc_info).log(
            level, record.getMessage()
        )


def install_logging_bridge() -> None:
    """Bridge stdlib logging used by httpx into loguru once."""
    YahooRequestClient.install_logging_bridge()


class YahooRequestClient:
    """Low-level HTTP request client for the options feed

    Responsibilities:
    - HTTP request execution with the session's cookie + crumb
    - One transparent re-authentication on an auth rejection
    - Retry with exponential backoff on rate limits and server errors
    """

    _logging_bridge_installed = False

    def __init__(
        self,
        session: YahooSession,
        timeout: float = 10,
        max_retries: int = 2,
        base_delay: float = 1.0,
        transport: httpx.AsyncBaseTransport | None = None,
    ) -> None:
        """Initialize request client

        Args:
            session: Session owning cookie + crumb state
            timeout: Per-request timeout in seconds
            max_retries: Retries for rate-limit/server/network errors
            base_delay: First backoff delay in seconds (doubled each retry)
            transport: Optional httpx transport (tests use MockTransport)
        """
        self._session = session
        self._timeout = timeout
        self._max_retries = max_retries
        self._base_delay = base_delay
        self._transport = transport
        self._http_client: httpx.AsyncClient | None = None
        self.install_logging_bridge()

    @classmethod
    def install_logging_bridge(cls) -> None:
        """Bridge stdlib logging used by httpx into loguru once."""
        if cls._logging_bridge_installed:
            return

        handler = _LoguruHandler()
        for name in ("premia", "httpx"):
            std_logger = logging.getLogger(name)
            std_logger.setLevel(logging.DEBUG)
            std_logger.addHandler(handler)
            std_logger.propagate = False

        cls._logging_bridge_installed = True

    @property
    def session(self) -> YahooSession:
        return self._session

    def _build_http_client(self) -> httpx.AsyncClient:
        """Create an AsyncClient with httpx request/response logging hooks."""
        return httpx.AsyncClient(
            timeout=self._timeout,
            transport=self._transport,
            event_hooks={
                "request": [self._log_httpx_request],
                "response": [self._log_httpx_response],
            },
        )

    async def _log_httpx_request(self, request: httpx.Request) -> None:
        """Log outbound httpx requests with headers (cookie masked)."""
        headers = {
            k: ("***" if k.lower() == "cookie" else v)
            for k, v in request.headers.items()
        }
        logger.debug(f"HTTPX request: {request.method} {request.url} {headers}")

    async def _log_httpx_response(self, response: httpx.Response) -> None:
        logger.debug(
            f"HTTPX response: status={response.status_code} url={response.url}"
        )

    @property
    def http_client(self) -> httpx.AsyncClient:
        if self._http_client is None:
            self._http_client = self._build_http_client()
        return self._http_client

    async def aclose(self) -> None:
        if self._http_client is not None:
            await self._http_client.aclose()
            self._http_client = None

    async def get_json(self, url: str, params: dict | None = None) -> Any:
        """GET a feed endpoint and decode the JSON body

        Retry Strategy:
        - Exponential backoff from base_delay (±10% jitter)
        - Retry on: network errors, 429, 5xx
        - Don't retry: 400, 404
        - Special: 401/403 → re-authenticate → retry once

        Args:
            url: Absolute endpoint URL
            params: Query parameters (the crumb is appended)

        Returns:
            Decoded JSON body

        Raises:
            PriceFeedAuthenticationError: If the session cannot be
                established or is rejected again after re-authentication
            PriceFeedRequestError: If the request fails after all retries
        """
        client = self.http_client
        await self._session.ensure(client)

        retry_count = 0
        delay = self._base_delay
        reauthenticated = False

        while retry_count <= self._max_retries:
            query = dict(params or {})
            query["crumb"] = self._session.crumb or ""

            try:
                logger.debug(f"GET {url} (attempt {retry_count + 1})")
                response = await client.get(
                    url, params=query, headers=self._session.headers()
                )
            except httpx.RequestError as e:
                logger.warning(f"Network error: {e}")
                if retry_count < self._max_retries:
                    await self._backoff(delay)
                    delay *= 2
                    retry_count += 1
                    continue
                raise PriceFeedRequestError(f"Max retries exceeded: {e}") from e

            if response.status_code == 200:
                try:
                    return response.json()
                except ValueError as e:
                    raise PriceFeedRequestError(
                        f"Malformed JSON from {url}: {e}"
                    ) from e

            if response.status_code in _AUTH_REJECTED and not reauthenticated:
                logger.warning(
                    f"Feed rejected session ({response.status_code}) - re-authenticating"
                )
                reauthenticated = True
                await self._session.authenticate(client)
                continue

            if response.status_code in _AUTH_REJECTED:
                raise PriceFeedAuthenticationError(
                    f"Authentication failed after re-authentication: "
                    f"{self._format_error(response)}"
                )

            if response.status_code in _RETRYABLE:
                logger.warning(f"Retryable error {response.status_code}: {url}")
                if retry_count < self._max_retries:
                    await self._backoff(delay)
                    delay *= 2
                    retry_count += 1
                    continue
                raise PriceFeedRequestError(
                    f"Max retries exceeded: {self._format_error(response)}"
                )

            raise PriceFeedRequestError(self._format_error(response))

        raise PriceFeedRequestError("Request failed after all retries")

    async def _backoff(self, delay: float) -> None:
        jitter = delay * 0.1 * (random.random() * 2 - 1)
        sleep_time = max(delay + jitter, 0.0)
        logger.info(f"Retrying in {sleep_time:.2f}s...")
        await asyncio.sleep(sleep_time)

    def _format_error(self, response: httpx.Response) -> str:
        """Return a safe string describing an HTTP error."""
        try:
            body = str(response.json())
        except ValueError:
            body = response.text
        return f"Request failed: {response.status_code} - {body[:200]}"
