"""Order-page fetcher used by the probe engine."""

from __future__ import annotations

import asyncio
import logging
from typing import Awaitable, Callable, Optional

import httpx

from src.ingest.header_builder import HeaderBuilder
from src.models import FetchResult

logger = logging.getLogger(__name__)

# Signature of the fetch capability consumed by the probe engine
FetchPage = Callable[[str, int], Awaitable[FetchResult]]


class PageFetcher:
    """
    Fetches page bodies with a hard timeout.

    Never raises on transport problems: a non-2xx response yields
    FetchResult(None, status) and any transport error or timeout yields
    FetchResult(None, 0).
    """

    def __init__(
        self,
        user_agent: Optional[str] = None,
        transport: Optional[httpx.AsyncBaseTransport] = None,
    ):
        self.header_builder = HeaderBuilder(user_agent)
        self._transport = transport
        self._http_client: Optional[httpx.AsyncClient] = None

    async def _get_client(self) -> httpx.AsyncClient:
        """Get or create HTTP client."""
        if self._http_client is None:
            self._http_client = httpx.AsyncClient(
                follow_redirects=True,
                transport=self._transport,
            )
        return self._http_client

    async def close(self):
        """Close HTTP client."""
        if self._http_client:
            await self._http_client.aclose()
            self._http_client = None

    async def fetch_page(self, url: str, timeout_ms: int) -> FetchResult:
        """
        Fetch a page body.

        Args:
            url: Page URL
            timeout_ms: Hard limit for the whole request, body included

        Returns:
            FetchResult with the body on 2xx, otherwise body=None
        """
        client = await self._get_client()
        timeout_sec = max(timeout_ms, 1) / 1000

        async def _do_fetch() -> FetchResult:
            response = await client.get(
                url,
                headers=self.header_builder.build_headers(url),
                timeout=timeout_sec,
            )
            if response.is_success:
                return FetchResult(body=response.text, status_code=response.status_code)
            logger.debug(f"Fetch {url} returned HTTP {response.status_code}")
            return FetchResult(body=None, status_code=response.status_code)

        try:
            return await asyncio.wait_for(_do_fetch(), timeout=timeout_sec)
        except asyncio.TimeoutError:
            logger.debug(f"Fetch {url} timed out after {timeout_ms}ms")
        except (httpx.HTTPError, httpx.InvalidURL) as e:
            logger.debug(f"Fetch {url} failed: {type(e).__name__}: {e}")
        except ValueError as e:
            # Malformed URL rejected before any request is sent
            logger.warning(f"Fetch {url} failed: invalid URL: {e}")
        return FetchResult(body=None, status_code=0)

    async def __call__(self, url: str, timeout_ms: int) -> FetchResult:
        return await self.fetch_page(url, timeout_ms)
