"""Tests for the JSON log formatter."""

import json
import logging

from src.logging_config import CustomJsonFormatter, current_run_id


def _record(**extra):
    record = logging.LogRecord("src.worker.checker", logging.ERROR, "checker.py", 77, "Check failed", None, None)
    for key, value in extra.items():
        setattr(record, key, value)
    return record


def test_run_id_and_target_are_included():
    formatter = CustomJsonFormatter("%(timestamp)s %(level)s %(name)s %(message)s")

    token = current_run_id.set("abc123")
    try:
        payload = json.loads(formatter.format(_record(target="MegaBox Pro")))
    finally:
        current_run_id.reset(token)

    assert payload["run_id"] == "abc123"
    assert payload["target"] == "MegaBox Pro"
    assert payload["level"] == "ERROR"
    assert payload["source"] == "checker.py:77"


def test_run_id_absent_outside_a_run():
    formatter = CustomJsonFormatter("%(timestamp)s %(level)s %(name)s %(message)s")

    payload = json.loads(formatter.format(_record()))

    assert "run_id" not in payload
    assert "target" not in payload
