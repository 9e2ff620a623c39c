"""Shared fixtures for the test suite."""

import re

import pytest

from src.models import Target


@pytest.fixture
def target():
    return Target(
        name="X",
        urls=("https://a.example/cart?pid=1", "https://b.example/cart?pid=1"),
        must_contain_any=("shopping cart",),
        out_of_stock_patterns=(re.compile(r"\bOut of Stock\b", re.IGNORECASE),),
    )
