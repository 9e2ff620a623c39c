"""Monitored target list and TARGETS_JSON parsing."""

import json
import logging
import re
from typing import Any, Optional
from urllib.parse import urlsplit

from src.models import Target

logger = logging.getLogger(__name__)

_FLAG_MAP = {
    "i": re.IGNORECASE,
    "m": re.MULTILINE,
    "s": re.DOTALL,
}
# Literal flags with no meaning for a single search
_IGNORED_FLAGS = set("guy")

_SLASHED = re.compile(r"^/(.+)/([a-z]*)$", re.IGNORECASE)


def _compile(source: str, flags: str) -> Optional[re.Pattern]:
    re_flags = 0
    for ch in flags.lower():
        if ch in _FLAG_MAP:
            re_flags |= _FLAG_MAP[ch]
        elif ch not in _IGNORED_FLAGS:
            return None
    try:
        return re.compile(source, re_flags)
    except re.error:
        return None


def _bhost_target(pid: int, label: str) -> Target:
    return Target(
        name=f"BandwagonHost {label} (pid={pid})",
        urls=(
            f"https://bwh81.net/cart.php?a=add&pid={pid}",
            f"https://bandwagonhost.com/cart.php?a=add&pid={pid}",
        ),
        must_contain_any=("Shopping Cart", "Bandwagon Host"),
        out_of_stock_patterns=(
            re.compile(r"\bOut of Stock\b", re.IGNORECASE),
            re.compile(r"We are currently out of stock on this plan\.", re.IGNORECASE),
        ),
    )


def _dmit_target(pid: int, label: str) -> Target:
    return Target(
        name=f"DMIT {label} (pid={pid})",
        urls=(f"https://www.dmit.io/cart.php?a=add&pid={pid}",),
        must_contain_any=("DMIT, Inc.", "Client Area", "Shopping Cart"),
        out_of_stock_patterns=(
            re.compile(r"\bOut of Stock\b", re.IGNORECASE),
            re.compile(r"We are currently out of stock on this item", re.IGNORECASE),
        ),
    )


DEFAULT_TARGETS: tuple[Target, ...] = (
    _bhost_target(157, "MegaBox Pro"),
    _bhost_target(156, "BiggerBox Pro"),
    _bhost_target(147, "THE PLAN"),
    _dmit_target(186, "LAX.Pro.MALIBU"),
    _dmit_target(188, "LAX.Pro.Wee"),
)


def parse_pattern(value: Any) -> Optional[re.Pattern]:
    """
    Parse an out-of-stock pattern from its JSON form.

    Accepted forms:
    - "/source/flags" (regex literal)
    - "plain source" (compiled case-insensitively)
    - {"source": "...", "flags": "i"} (flags default to "i")

    Returns:
        Compiled pattern, or None if the value is empty or invalid
    """
    if isinstance(value, str):
        trimmed = value.strip()
        if not trimmed:
            return None
        slashed = _SLASHED.match(trimmed)
        if slashed:
            return _compile(slashed.group(1), slashed.group(2))
        return _compile(trimmed, "i")

    if isinstance(value, dict):
        source = value.get("source")
        if not isinstance(source, str) or not source:
            return None
        flags = value.get("flags")
        return _compile(source, flags if isinstance(flags, str) else "i")

    return None


def _string_list(value: Any) -> list[str]:
    if not isinstance(value, list):
        return []
    return [item.strip() for item in value if isinstance(item, str) and item.strip()]


def _is_http_url(url: str) -> bool:
    try:
        parts = urlsplit(url)
    except ValueError:
        return False
    return parts.scheme in ("http", "https") and bool(parts.hostname)


def _parse_target(value: Any) -> Optional[Target]:
    if not isinstance(value, dict):
        return None

    name = value.get("name")
    name = name.strip() if isinstance(name, str) else ""
    if not name:
        return None

    urls = _string_list(value.get("urls"))
    bad_urls = [url for url in urls if not _is_http_url(url)]
    if bad_urls:
        logger.warning(f"Target {name}: ignoring invalid URLs {bad_urls}")
        urls = [url for url in urls if url not in bad_urls]
    must_contain_any = _string_list(value.get("mustContainAny", value.get("must_contain_any")))
    if not urls or not must_contain_any:
        return None

    raw_patterns = value.get("outOfStockRegex", value.get("out_of_stock_regex"))
    patterns = []
    for item in raw_patterns if isinstance(raw_patterns, list) else []:
        pattern = parse_pattern(item)
        if pattern is not None:
            patterns.append(pattern)
    if not patterns:
        return None

    return Target(
        name=name,
        urls=tuple(urls),
        must_contain_any=tuple(must_contain_any),
        out_of_stock_patterns=tuple(patterns),
    )


def parse_targets(value: Any) -> Optional[list[Target]]:
    """Parse a decoded TARGETS_JSON array, skipping invalid items."""
    if not isinstance(value, list):
        return None

    targets = []
    seen: set[str] = set()
    for item in value:
        target = _parse_target(item)
        if target is None:
            logger.warning(f"Skipping invalid TARGETS_JSON item: {item!r}")
            continue
        # Names key the state map
        if target.name in seen:
            logger.warning(f"Skipping duplicate TARGETS_JSON name: {target.name}")
            continue
        seen.add(target.name)
        targets.append(target)

    return targets or None


def get_targets(raw_json: Optional[str] = None) -> list[Target]:
    """
    Resolve the active target list.

    Uses TARGETS_JSON when it parses to at least one valid target, otherwise
    the built-in defaults.
    """
    raw = (raw_json or "").strip()
    if not raw:
        return list(DEFAULT_TARGETS)

    try:
        parsed = json.loads(raw)
    except json.JSONDecodeError as e:
        logger.warning(f"Failed to parse TARGETS_JSON, using default targets: {e}")
        return list(DEFAULT_TARGETS)

    targets = parse_targets(parsed)
    if targets is None:
        logger.warning("TARGETS_JSON is invalid or empty, using default targets")
        return list(DEFAULT_TARGETS)
    return targets
