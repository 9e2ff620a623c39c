"""Probe engine: classify a target as OUT, IN or ERROR from its order pages."""

import asyncio
import logging
from typing import Awaitable, Callable, Iterable, Optional

from src.ingest.http_client import FetchPage
from src.models import FetchResult, ProbeResult, ProbeStatus, Target

logger = logging.getLogger(__name__)

Sleep = Callable[[float], Awaitable[None]]


def sanity_ok(body: str, must_contain_any: Iterable[str]) -> bool:
    """True if the page carries at least one expected marker (case-insensitive)."""
    lowered = body.lower()
    return any(marker.lower() in lowered for marker in must_contain_any)


def matches_out_of_stock(body: str, target: Target) -> bool:
    return any(pattern.search(body) for pattern in target.out_of_stock_patterns)


def _fetch_failure_reason(result: FetchResult, prefix: str = "") -> str:
    return f"{prefix}http_{result.status_code or 'error'}"


async def probe_target(
    target: Target,
    fetch: FetchPage,
    timeout_ms: int,
    confirm_delay_ms: int,
    sleep: Sleep = asyncio.sleep,
) -> ProbeResult:
    """
    Probe a target's URLs in order until one gives a conclusive answer.

    An out-of-stock match is trusted immediately. A page that looks
    purchasable is re-read after confirm_delay_ms from the same URL and only
    reported IN if the second read agrees. Fetch and sanity failures move on
    to the next URL; running out of URLs yields ERROR.

    Args:
        target: Target descriptor
        fetch: Page fetch capability
        timeout_ms: Per-fetch timeout
        confirm_delay_ms: Delay before the confirmation read
        sleep: Awaitable sleep (injectable for tests)

    Returns:
        ProbeResult
    """
    last_reason = "fetch_failed"
    last_used_url: Optional[str] = None

    for url in target.urls:
        last_used_url = url

        first = await fetch(url, timeout_ms)
        if first.body is None:
            last_reason = _fetch_failure_reason(first)
            continue

        if not sanity_ok(first.body, target.must_contain_any):
            last_reason = f"sanity_failed@{url}"
            continue

        if matches_out_of_stock(first.body, target):
            return ProbeResult(ProbeStatus.OUT, url, "out_of_stock_keyword")

        # Looks purchasable: confirm with a delayed second read
        await sleep(confirm_delay_ms / 1000)

        second = await fetch(url, timeout_ms)
        if second.body is None:
            last_reason = _fetch_failure_reason(second, prefix="confirm_")
            continue

        if not sanity_ok(second.body, target.must_contain_any):
            last_reason = f"confirm_sanity_failed@{url}"
            continue

        if matches_out_of_stock(second.body, target):
            logger.info(f"{target.name}: in-stock signal flapped back to out at {url}")
            return ProbeResult(ProbeStatus.OUT, url, "flap_back_to_out")

        return ProbeResult(ProbeStatus.IN, url, "confirmed_in_stock")

    logger.debug(f"{target.name}: all URLs exhausted ({last_reason})")
    return ProbeResult(ProbeStatus.ERROR, last_used_url, last_reason)
