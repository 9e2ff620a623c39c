"""Tests for notification fan-out."""

import asyncio

import pytest

from src.notify.fanout import notify_all

from fakes import FakeChannel


@pytest.mark.asyncio
async def test_empty_channel_list_attempts_nothing():
    result = await notify_all([], "title", "body")

    assert (result.attempted, result.sent, result.failed, result.errors) == (0, 0, 0, [])
    assert result.any_sent is False


@pytest.mark.asyncio
async def test_one_failure_does_not_block_others():
    ok_a = FakeChannel("Telegram")
    broken = FakeChannel("Feishu", fail=True)
    ok_b = FakeChannel("DingTalk")

    result = await notify_all([ok_a, broken, ok_b], "title", "body")

    assert result.attempted == 3
    assert result.sent == 2
    assert result.failed == 1
    assert result.errors == ["Feishu: Feishu API error: 500"]
    assert ok_a.sent == [("title", "body")]
    assert ok_b.sent == [("title", "body")]


@pytest.mark.asyncio
async def test_all_failures_reported():
    result = await notify_all([FakeChannel("A", fail=True), FakeChannel("B", fail=True)], "t", "b")

    assert result.sent == 0
    assert result.failed == 2
    assert result.any_sent is False


@pytest.mark.asyncio
async def test_channels_are_sent_concurrently():
    started = []
    release = asyncio.Event()

    class SlowChannel(FakeChannel):
        async def send(self, title, body):
            started.append(self.name)
            await release.wait()

    async def releaser():
        # Both sends must be in flight before either finishes
        while len(started) < 2:
            await asyncio.sleep(0)
        release.set()

    channels = [SlowChannel("A"), SlowChannel("B")]
    result, _ = await asyncio.wait_for(
        asyncio.gather(notify_all(channels, "t", "b"), releaser()), timeout=2
    )

    assert result.sent == 2
    assert sorted(started) == ["A", "B"]
