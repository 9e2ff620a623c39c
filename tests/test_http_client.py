"""Tests for the page fetcher and header builder."""

import asyncio

import httpx
import pytest

from src.ingest.header_builder import (
    DEFAULT_USER_AGENT,
    HeaderBuilder,
    detect_sec_ch_ua_platform,
    extract_chrome_major_version,
    is_mobile_user_agent,
)
from src.ingest.http_client import PageFetcher

ANDROID_UA = (
    "Mozilla/5.0 (Linux; Android 14; Pixel 8) AppleWebKit/537.36 "
    "(KHTML, like Gecko) Chrome/126.0.0.0 Mobile Safari/537.36"
)
MAC_FIREFOX_UA = "Mozilla/5.0 (Macintosh; Intel Mac OS X 14.5; rv:127.0) Gecko/20100101 Firefox/127.0"


class TestHeaderBuilder:
    """Client-hint headers derived from the User-Agent."""

    def test_user_agent_parsing(self):
        assert extract_chrome_major_version(DEFAULT_USER_AGENT) == "131"
        assert extract_chrome_major_version(MAC_FIREFOX_UA) is None
        assert is_mobile_user_agent(ANDROID_UA)
        assert not is_mobile_user_agent(DEFAULT_USER_AGENT)
        assert detect_sec_ch_ua_platform(DEFAULT_USER_AGENT) == '"Windows"'
        assert detect_sec_ch_ua_platform(ANDROID_UA) == '"Android"'
        assert detect_sec_ch_ua_platform(MAC_FIREFOX_UA) == '"macOS"'
        assert detect_sec_ch_ua_platform("curl/8.0") == '"Windows"'

    def test_headers_follow_configured_agent(self):
        headers = HeaderBuilder(ANDROID_UA).build_headers("https://shop.example/cart.php?pid=1")

        assert headers["User-Agent"] == ANDROID_UA
        assert '"Chromium";v="126"' in headers["Sec-Ch-Ua"]
        assert headers["Sec-Ch-Ua-Mobile"] == "?1"
        assert headers["Referer"] == "https://shop.example/"
        assert headers["Cache-Control"] == "no-cache"

    def test_blank_agent_uses_default(self):
        assert HeaderBuilder("  ").user_agent == DEFAULT_USER_AGENT


class TestPageFetcher:
    """Fetch outcomes mapped to FetchResult."""

    @pytest.mark.asyncio
    async def test_success_returns_body(self):
        seen = {}

        def handler(request):
            seen["ua"] = request.headers["User-Agent"]
            return httpx.Response(200, text="<html>Shopping Cart</html>")

        fetcher = PageFetcher("TestAgent/1.0", transport=httpx.MockTransport(handler))
        result = await fetcher.fetch_page("https://shop.example/cart", 5000)
        await fetcher.close()

        assert result.body == "<html>Shopping Cart</html>"
        assert result.status_code == 200
        assert seen["ua"] == "TestAgent/1.0"

    @pytest.mark.asyncio
    async def test_non_2xx_has_no_body(self):
        fetcher = PageFetcher(transport=httpx.MockTransport(lambda r: httpx.Response(403, text="denied")))
        result = await fetcher.fetch_page("https://shop.example/cart", 5000)
        await fetcher.close()

        assert result.body is None
        assert result.status_code == 403

    @pytest.mark.asyncio
    async def test_transport_error_is_status_zero(self):
        def handler(request):
            raise httpx.ConnectError("dns failure", request=request)

        fetcher = PageFetcher(transport=httpx.MockTransport(handler))
        result = await fetcher.fetch_page("https://shop.example/cart", 5000)
        await fetcher.close()

        assert result.body is None
        assert result.status_code == 0

    @pytest.mark.asyncio
    async def test_malformed_url_is_status_zero(self):
        requests = []

        def handler(request):
            requests.append(request)
            return httpx.Response(200, text="never")

        fetcher = PageFetcher(transport=httpx.MockTransport(handler))
        result = await fetcher.fetch_page("http://[::1/cart", 1000)
        await fetcher.close()

        assert result.body is None
        assert result.status_code == 0
        assert requests == []

    @pytest.mark.asyncio
    async def test_hard_timeout(self):
        async def handler(request):
            await asyncio.sleep(5)
            return httpx.Response(200, text="late")

        fetcher = PageFetcher(transport=httpx.MockTransport(handler))
        result = await asyncio.wait_for(fetcher.fetch_page("https://shop.example/cart", 50), timeout=2)
        await fetcher.close()

        assert result.body is None
        assert result.status_code == 0
