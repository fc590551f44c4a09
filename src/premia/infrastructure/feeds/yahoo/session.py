"""YahooSession - cookie + crumb handshake for the options feed"""

import asyncio
import time
from collections.abc import Callable

import httpx
from loguru import logger

from premia.shared.exceptions import PriceFeedAuthenticationError

DEFAULT_USER_AGENT = (
    "Mozilla/5.0 (Windows NT 10.0; Win64; x64) AppleWebKit/537.36 "
    "(KHTML, like Gecko) Chrome/120.0.0.0 Safari/537.36"
)


class YahooSession:
    """Owns the feed's session cookie and anti-forgery crumb

    Responsibilities:
    - Cookie + crumb acquisition
    - Expiry after ``auth_ttl_seconds``
    - Invalidation on auth rejection

    One instance is injected into each request client; nothing is shared
    at module level.
    """

    def __init__(
        self,
        cookie_url: str = "https://fc.yahoo.com/",
        crumb_url: str = "https://query2.finance.yahoo.com/v1/test/getcrumb",
        user_agent: str = DEFAULT_USER_AGENT,
        auth_ttl_seconds: float = 3600,
        clock: Callable[[], float] = time.monotonic,
    ) -> None:
        self.cookie_url = cookie_url
        self.crumb_url = crumb_url
        self.user_agent = user_agent
        self._auth_ttl = auth_ttl_seconds
        self._clock = clock

        self._cookie: str | None = None
        self._crumb: str | None = None
        self._authenticated_at: float | None = None
        self._lock: asyncio.Lock | None = None

    @property
    def cookie(self) -> str | None:
        return self._cookie

    @property
    def crumb(self) -> str | None:
        return self._crumb

    @property
    def is_valid(self) -> bool:
        """True if a crumb is held and has not outlived the TTL"""
        if self._crumb is None or self._authenticated_at is None:
            return False
        return self._clock() - self._authenticated_at < self._auth_ttl

    def headers(self) -> dict[str, str]:
        headers = {"User-Agent": self.user_agent}
        if self._cookie:
            headers["Cookie"] = self._cookie
        return headers

    def invalidate(self) -> None:
        """Forget the current cookie and crumb"""
        self._cookie = None
        self._crumb = None
        self._authenticated_at = None

    async def ensure(self, http_client: httpx.AsyncClient) -> None:
        """Authenticate unless a valid session is already held"""
        if self.is_valid:
            return
        if self._lock is None:
            self._lock = asyncio.Lock()
        async with self._lock:
            if self.is_valid:
                return
            await self.authenticate(http_client)

    async def authenticate(self, http_client: httpx.AsyncClient) -> None:
        """Run the cookie + crumb handshake

        Raises:
            PriceFeedAuthenticationError: If no crumb could be obtained
        """
        logger.info("Authenticating with options feed...")
        self.invalidate()

        try:
            cookie_response = await http_client.get(
                self.cookie_url,
                headers={"User-Agent": self.user_agent},
                follow_redirects=False,
            )
            set_cookies = cookie_response.headers.get_list("set-cookie")
            cookie = "; ".join(
                c.split(";", 1)[0].strip() for c in set_cookies if c.strip()
            )

            crumb_response = await http_client.get(
                self.crumb_url,
                headers={"User-Agent": self.user_agent, "Cookie": cookie},
            )
        except httpx.HTTPError as e:
            raise PriceFeedAuthenticationError(
                f"Feed authentication request failed: {e}"
            ) from e

        crumb = crumb_response.text.strip()
        if crumb_response.status_code != 200 or not crumb:
            raise PriceFeedAuthenticationError(
                f"Failed to get crumb: {crumb_response.status_code}"
            )

        self._cookie = cookie
        self._crumb = crumb
        self._authenticated_at = self._clock()
        logger.info("Obtained feed cookie + crumb")
