"""Tests for target list parsing."""

import json
import re

from src.targets import DEFAULT_TARGETS, get_targets, parse_pattern, parse_targets


class TestParsePattern:
    """Regex parsing from TARGETS_JSON."""

    def test_plain_string_is_case_insensitive(self):
        pattern = parse_pattern("out of stock")
        assert pattern.search("OUT OF STOCK")

    def test_slashed_literal_uses_its_flags(self):
        pattern = parse_pattern(r"/\bSold Out\b/")
        assert pattern.search("Sold Out")
        assert not pattern.search("sold out")

        pattern = parse_pattern(r"/\bSold Out\b/gi")
        assert pattern.flags & re.IGNORECASE

    def test_object_form(self):
        pattern = parse_pattern({"source": "Unavailable", "flags": ""})
        assert pattern.search("Unavailable")
        assert not pattern.search("unavailable")

        pattern = parse_pattern({"source": "Unavailable"})
        assert pattern.search("unavailable")

    def test_invalid_values(self):
        assert parse_pattern("") is None
        assert parse_pattern("   ") is None
        assert parse_pattern("(unclosed") is None
        assert parse_pattern({"flags": "i"}) is None
        assert parse_pattern({"source": "x", "flags": "q"}) is None
        assert parse_pattern(42) is None


class TestParseTargets:
    """Target list validation."""

    def _item(self, **overrides):
        item = {
            "name": "Box",
            "urls": ["https://shop.example/cart?pid=1"],
            "mustContainAny": ["Shopping Cart"],
            "outOfStockRegex": ["Out of Stock"],
        }
        item.update(overrides)
        return item

    def test_valid_item(self):
        targets = parse_targets([self._item(name="  Box  ", urls=[" https://x/ ", ""])])

        assert len(targets) == 1
        assert targets[0].name == "Box"
        assert targets[0].urls == ("https://x/",)
        assert targets[0].must_contain_any == ("Shopping Cart",)

    def test_invalid_items_are_skipped(self):
        targets = parse_targets([
            self._item(name=""),
            self._item(urls=[]),
            self._item(mustContainAny=[" "]),
            self._item(outOfStockRegex=["(bad"]),
            "not an object",
            self._item(name="Good"),
        ])

        assert [t.name for t in targets] == ["Good"]

    def test_malformed_urls_are_dropped(self):
        targets = parse_targets([
            self._item(urls=["http://[::1/cart", "ftp://shop.example/", "https://ok.example/cart"]),
            self._item(name="OnlyBad", urls=["not a url"]),
        ])

        assert [t.name for t in targets] == ["Box"]
        assert targets[0].urls == ("https://ok.example/cart",)

    def test_duplicate_names_keep_first(self):
        targets = parse_targets([
            self._item(urls=["https://first/"]),
            self._item(urls=["https://second/"]),
        ])

        assert len(targets) == 1
        assert targets[0].urls == ("https://first/",)

    def test_all_invalid_returns_none(self):
        assert parse_targets([self._item(name="")]) is None
        assert parse_targets({"name": "x"}) is None


class TestGetTargets:
    """Resolution of the active list."""

    def test_defaults_when_unset(self):
        assert get_targets("") == list(DEFAULT_TARGETS)
        assert get_targets(None) == list(DEFAULT_TARGETS)

    def test_defaults_on_bad_json(self):
        assert get_targets("{not json") == list(DEFAULT_TARGETS)
        assert get_targets("[]") == list(DEFAULT_TARGETS)

    def test_override(self):
        raw = json.dumps([{
            "name": "Custom",
            "urls": ["https://shop.example/a"],
            "mustContainAny": ["Cart"],
            "outOfStockRegex": [{"source": "sold out", "flags": "i"}],
        }])

        targets = get_targets(raw)

        assert [t.name for t in targets] == ["Custom"]

    def test_default_names_are_unique(self):
        names = [t.name for t in DEFAULT_TARGETS]
        assert len(names) == len(set(names))
