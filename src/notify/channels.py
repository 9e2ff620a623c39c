"""Notification channels: Telegram Bot API plus Feishu and DingTalk signed webhooks.

Every channel exposes a single ``send(title, body)`` coroutine that returns
on success and raises ``ChannelError`` (or an httpx transport error) on
failure. Callers aggregate failures through ``notify_all``.
"""

import base64
import hashlib
import hmac
import logging
import time
from typing import List, Optional
from urllib.parse import parse_qsl, urlencode, urlsplit, urlunsplit

import httpx

from src.config import Settings

logger = logging.getLogger(__name__)


class ChannelError(RuntimeError):
    """Raised when a channel's API rejects a message."""
    pass


def _raise_for_status(response: httpx.Response, service_name: str) -> None:
    if response.is_success:
        return
    detail = response.text[:500] if response.text else ""
    suffix = f" - {detail}" if detail else ""
    raise ChannelError(f"{service_name} API error: {response.status_code}{suffix}")


def _hmac_sha256_b64(key: str, msg: str) -> str:
    digest = hmac.new(key.encode("utf-8"), msg.encode("utf-8"), hashlib.sha256).digest()
    return base64.b64encode(digest).decode("utf-8")


def feishu_sign(timestamp_sec: int, secret: str) -> str:
    """Feishu bot signature: HMAC-SHA256 keyed by "<ts>\\n<secret>" over an empty message."""
    return _hmac_sha256_b64(f"{timestamp_sec}\n{secret}", "")


def dingtalk_sign(timestamp_ms: int, secret: str) -> str:
    """DingTalk bot signature: HMAC-SHA256 keyed by the secret over "<ts>\\n<secret>"."""
    return _hmac_sha256_b64(secret, f"{timestamp_ms}\n{secret}")


def dingtalk_signed_url(webhook_url: str, secret: str, timestamp_ms: int) -> str:
    """Append timestamp and sign query parameters to a DingTalk webhook URL."""
    parts = urlsplit(webhook_url)
    query = [
        (k, v) for k, v in parse_qsl(parts.query, keep_blank_values=True)
        if k not in ("timestamp", "sign")
    ]
    query.append(("timestamp", str(timestamp_ms)))
    query.append(("sign", dingtalk_sign(timestamp_ms, secret)))
    return urlunsplit(parts._replace(query=urlencode(query)))


class Channel:
    """Base class for a notification channel."""

    name = "Channel"

    def __init__(self, client: httpx.AsyncClient):
        self.client = client

    async def send(self, title: str, body: str) -> None:
        raise NotImplementedError


class TelegramChannel(Channel):
    """Telegram Bot API sendMessage."""

    name = "Telegram"

    def __init__(self, client: httpx.AsyncClient, token: str, chat_id: str):
        super().__init__(client)
        self.token = token
        self.chat_id = chat_id

    async def send(self, title: str, body: str) -> None:
        url = f"https://api.telegram.org/bot{self.token}/sendMessage"
        payload = {
            "chat_id": self.chat_id,
            "text": f"{title}\n{body}",
            "disable_web_page_preview": True,
        }
        response = await self.client.post(url, json=payload)
        _raise_for_status(response, self.name)


class _PrefixedWebhookChannel(Channel):
    """Webhook bot whose message content carries the optional alert prefix."""

    def __init__(
        self,
        client: httpx.AsyncClient,
        webhook_url: str,
        secret: Optional[str] = None,
        alert_prefix: Optional[str] = None,
    ):
        super().__init__(client)
        self.webhook_url = webhook_url
        self.secret = secret or None
        self.alert_prefix = alert_prefix or None

    def _content(self, title: str, body: str) -> str:
        content = f"{title}\n{body}"
        if self.alert_prefix:
            content = f"{self.alert_prefix} {content}"
        return content


class FeishuChannel(_PrefixedWebhookChannel):
    """Feishu (Lark) custom bot webhook."""

    name = "Feishu"

    async def send(self, title: str, body: str) -> None:
        payload = {
            "msg_type": "text",
            "content": {"text": self._content(title, body)},
        }
        if self.secret:
            ts = int(time.time())
            payload["timestamp"] = str(ts)
            payload["sign"] = feishu_sign(ts, self.secret)

        response = await self.client.post(self.webhook_url, json=payload)
        _raise_for_status(response, self.name)

        # Feishu reports most failures with HTTP 200 and a non-zero code
        try:
            data = response.json()
        except ValueError:
            return
        code = data.get("code", data.get("StatusCode", 0)) if isinstance(data, dict) else 0
        if code not in (0, None):
            raise ChannelError(f"{self.name} API error: code={code} {data.get('msg', '')}".rstrip())


class DingTalkChannel(_PrefixedWebhookChannel):
    """DingTalk custom robot webhook."""

    name = "DingTalk"

    async def send(self, title: str, body: str) -> None:
        url = self.webhook_url
        if self.secret:
            url = dingtalk_signed_url(self.webhook_url, self.secret, int(time.time() * 1000))

        payload = {
            "msgtype": "text",
            "text": {"content": self._content(title, body)},
        }
        response = await self.client.post(url, json=payload)
        _raise_for_status(response, self.name)

        try:
            data = response.json()
        except ValueError:
            return
        errcode = data.get("errcode", 0) if isinstance(data, dict) else 0
        if errcode not in (0, None):
            raise ChannelError(f"{self.name} API error: errcode={errcode} {data.get('errmsg', '')}".rstrip())


def build_channels(settings: Settings, client: httpx.AsyncClient) -> List[Channel]:
    """
    Instantiate every fully configured channel.

    Args:
        settings: Application settings
        client: Shared HTTP client for channel requests

    Returns:
        List of channels (possibly empty)
    """
    channels: List[Channel] = []

    if settings.tg_bot_token and settings.tg_chat_id:
        channels.append(TelegramChannel(client, settings.tg_bot_token, settings.tg_chat_id))

    if settings.feishu_webhook_url:
        channels.append(
            FeishuChannel(
                client,
                settings.feishu_webhook_url,
                secret=settings.feishu_secret,
                alert_prefix=settings.alert_prefix,
            )
        )

    if settings.dingtalk_webhook_url:
        channels.append(
            DingTalkChannel(
                client,
                settings.dingtalk_webhook_url,
                secret=settings.dingtalk_secret,
                alert_prefix=settings.alert_prefix,
            )
        )

    if not channels:
        logger.warning("No notification channels configured; alerts will not be delivered")
    return channels
