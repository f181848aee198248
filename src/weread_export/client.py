"""
Async WeRead API client using aiohttp
"""

import asyncio
import json
import logging
import time
from typing import Any

import aiohttp

from weread_export.constants import DEFAULT_TIMEOUT, HTTP_CONNECTION_POOL_LIMITS, WEREAD_BASE_URL

logger = logging.getLogger(__name__)


class RequestError(Exception):
    """A failed API request.

    ``should_retry`` is decided once, from the failure itself: rate limiting
    (429), server errors (>= 500) and failures without any HTTP status
    (network errors, unreadable bodies) are retryable.
    """

    def __init__(self, message: str, status: int | None = None, url: str | None = None):
        super().__init__(message)
        self.status = status
        self.url = url
        self.should_retry = status is None or status == 429 or status >= 500


class WeReadClient:
    """Async client for the WeRead web API."""

    def __init__(
        self,
        base_url: str = WEREAD_BASE_URL,
        cookie: str | None = None,
        timeout: int = DEFAULT_TIMEOUT,
        session: aiohttp.ClientSession | None = None,
    ):
        self.base_url = base_url.rstrip("/")
        self.cookie = cookie
        self.timeout = timeout

        # Session will be created lazily when first needed
        self.session = session
        self._owns_session = session is None
        self._request_count = 0

    async def __aenter__(self) -> "WeReadClient":
        return self

    async def __aexit__(self, exc_type, exc_val, exc_tb) -> None:
        await self.close()

    async def _ensure_session(self) -> aiohttp.ClientSession:
        """Ensure session exists, creating it if necessary."""
        if self.session is None:
            connector = aiohttp.TCPConnector(
                limit=HTTP_CONNECTION_POOL_LIMITS["limit"],
                limit_per_host=HTTP_CONNECTION_POOL_LIMITS["limit_per_host"],
            )
            timeout_config = aiohttp.ClientTimeout(total=self.timeout, connect=10)
            self.session = aiohttp.ClientSession(connector=connector, timeout=timeout_config)
            self._owns_session = True
        return self.session

    async def close(self) -> None:
        """Close the session if this client created it."""
        if self.session is not None and self._owns_session:
            await self.session.close()
        self.session = None

    def url_for(self, path: str) -> str:
        return f"{self.base_url}{path}"

    @property
    def _default_headers(self) -> dict[str, str]:
        headers = {
            "Accept": "application/json, text/plain, */*",
            "Referer": f"{self.base_url}/",
        }
        if self.cookie:
            headers["Cookie"] = self.cookie
        return headers

    async def fetch_json(self, url: str) -> Any:
        """
        GET a URL and parse the body as JSON.

        Args:
            url: Absolute URL to request

        Returns:
            Parsed JSON body

        Raises:
            RequestError: On a non-2xx status, a network failure or an unparsable body
        """
        session = await self._ensure_session()
        self._request_count += 1
        request_start = time.time()
        logger.debug(f"Request {self._request_count} starting: GET {url[:100]}")

        try:
            async with session.get(url, headers=self._default_headers) as response:
                status = response.status
                if not 200 <= status < 300:
                    logger.warning(f"Request {self._request_count} returned {status}: GET {url[:100]}")
                    raise RequestError(f"Request failed with status {status}", status=status, url=url)

                try:
                    payload = await response.json(content_type=None)
                except (json.JSONDecodeError, ValueError) as e:
                    raise RequestError(f"Invalid JSON in response: {e}", url=url) from e

        except (aiohttp.ClientError, TimeoutError, asyncio.TimeoutError) as e:
            duration = time.time() - request_start
            logger.warning(f"Request {self._request_count} failed after {duration:.3f}s: {type(e).__name__}: {e}")
            raise RequestError(f"Request failed: {type(e).__name__}: {e}", url=url) from e

        logger.debug(
            f"Request {self._request_count} succeeded in {time.time() - request_start:.3f}s: {status} GET {url[:100]}"
        )
        return payload
