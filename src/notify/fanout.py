"""Best-effort concurrent delivery to every configured channel."""

import asyncio
import logging
from typing import Sequence

from src import metrics
from src.models import NotifyResult
from src.notify.channels import Channel

logger = logging.getLogger(__name__)


async def notify_all(
    channels: Sequence[Channel],
    title: str,
    body: str,
    kind: str = "generic",
) -> NotifyResult:
    """
    Send one message to all channels concurrently.

    A failing channel never prevents delivery to the others; every send is
    awaited and its outcome aggregated.

    Args:
        channels: Channels to send to
        title: Message title
        body: Message body
        kind: Alert kind label for metrics ("restock", "error", ...)

    Returns:
        NotifyResult with attempted/sent/failed counts and per-channel errors
    """
    if not channels:
        return NotifyResult()

    outcomes = await asyncio.gather(
        *(channel.send(title, body) for channel in channels),
        return_exceptions=True,
    )

    result = NotifyResult(attempted=len(channels))
    for channel, outcome in zip(channels, outcomes):
        if isinstance(outcome, BaseException):
            name = getattr(channel, "name", None) or type(channel).__name__
            result.errors.append(f"{name}: {outcome}")
            metrics.record_alert(kind, "failed")
        else:
            result.sent += 1
            metrics.record_alert(kind, "sent")
    result.failed = len(result.errors)

    if result.errors:
        logger.error(f"Notify errors: {', '.join(result.errors)}")

    return result
