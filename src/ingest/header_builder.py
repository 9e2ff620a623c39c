"""Browser-like HTTP header generation for order-page probes.

Derives the client-hint headers (Sec-Ch-Ua*) from the configured
User-Agent so the header set stays internally consistent.
"""

import re
from typing import Dict, Optional
from urllib.parse import urlparse

DEFAULT_USER_AGENT = (
    "Mozilla/5.0 (Windows NT 10.0; Win64; x64) AppleWebKit/537.36 "
    "(KHTML, like Gecko) Chrome/131.0.0.0 Safari/537.36"
)
DEFAULT_CHROME_MAJOR_VERSION = "131"
DEFAULT_SEC_CH_UA_PLATFORM = '"Windows"'

_CHROME_VERSION = re.compile(r"\bChrome/(\d+)\b", re.IGNORECASE)
_MOBILE = re.compile(r"\b(Mobile|Android|iPhone|iPad)\b", re.IGNORECASE)

# First match wins
_PLATFORMS = (
    (re.compile(r"\bWindows\b", re.IGNORECASE), '"Windows"'),
    (re.compile(r"\bAndroid\b", re.IGNORECASE), '"Android"'),
    (re.compile(r"\b(iPhone|iPad|iPod)\b", re.IGNORECASE), '"iOS"'),
    (re.compile(r"\b(Macintosh|Mac OS X)\b", re.IGNORECASE), '"macOS"'),
    (re.compile(r"\bLinux\b", re.IGNORECASE), '"Linux"'),
)


def extract_chrome_major_version(user_agent: str) -> Optional[str]:
    match = _CHROME_VERSION.search(user_agent)
    return match.group(1) if match else None


def is_mobile_user_agent(user_agent: str) -> bool:
    return bool(_MOBILE.search(user_agent))


def detect_sec_ch_ua_platform(user_agent: str) -> str:
    for pattern, platform in _PLATFORMS:
        if pattern.search(user_agent):
            return platform
    return DEFAULT_SEC_CH_UA_PLATFORM


def _sec_ch_ua(major_version: str) -> str:
    return (
        f'"Google Chrome";v="{major_version}", '
        f'"Chromium";v="{major_version}", '
        f'"Not_A Brand";v="24"'
    )


class HeaderBuilder:
    """
    Builds a consistent Chrome-style header set for a User-Agent.

    The Referer is the target site's origin, which mimics in-site navigation
    to the order page.
    """

    def __init__(self, user_agent: Optional[str] = None):
        self.user_agent = (user_agent or "").strip() or DEFAULT_USER_AGENT
        major = extract_chrome_major_version(self.user_agent)
        self.sec_ch_ua = _sec_ch_ua(major or DEFAULT_CHROME_MAJOR_VERSION)
        self.sec_ch_ua_mobile = "?1" if is_mobile_user_agent(self.user_agent) else "?0"
        self.sec_ch_ua_platform = detect_sec_ch_ua_platform(self.user_agent)

    def build_headers(self, url: str = "") -> Dict[str, str]:
        """
        Build request headers for a page fetch.

        Args:
            url: Target URL (used for the Referer)

        Returns:
            Dict of HTTP headers
        """
        headers = {
            "User-Agent": self.user_agent,
            "Accept": (
                "text/html,application/xhtml+xml,application/xml;q=0.9,"
                "image/avif,image/webp,image/apng,*/*;q=0.8"
            ),
            "Accept-Language": "en-US,en;q=0.9,zh-CN;q=0.8,zh;q=0.7",
            "Cache-Control": "no-cache",
            "Pragma": "no-cache",
            "Sec-Ch-Ua": self.sec_ch_ua,
            "Sec-Ch-Ua-Mobile": self.sec_ch_ua_mobile,
            "Sec-Ch-Ua-Platform": self.sec_ch_ua_platform,
            "Sec-Fetch-Dest": "document",
            "Sec-Fetch-Mode": "navigate",
            "Sec-Fetch-Site": "same-origin",
            "Sec-Fetch-User": "?1",
            "Upgrade-Insecure-Requests": "1",
        }

        parsed = urlparse(url)
        if parsed.scheme and parsed.netloc:
            headers["Referer"] = f"{parsed.scheme}://{parsed.netloc}/"

        return headers
