"""Tests for the structured log formatters."""

import json
import logging

from pitchboard.middleware.logging_config import (
    JSONFormatter,
    ReadableFormatter,
    build_formatter,
)


def _record(msg="Primary store unreachable", **extra):
    record = logging.LogRecord("pitchboard.sync", logging.WARNING, __file__, 10, msg, (), None)
    for key, value in extra.items():
        setattr(record, key, value)
    return record


def test_json_includes_sync_fields():
    out = json.loads(JSONFormatter().format(_record(collection="winners", degraded=True, store="sql")))
    assert out["message"] == "Primary store unreachable"
    assert out["service"] == "pitchboard"
    assert out["collection"] == "winners"
    assert out["degraded"] is True
    assert out["store"] == "sql"
    assert "record_id" not in out


def test_readable_tags_collection_and_degraded():
    line = ReadableFormatter(use_color=False).format(_record(collection="elite", degraded=True, duration_ms=12))
    assert "<elite> DEGRADED" in line
    assert line.endswith("[12ms]")


def test_readable_without_extras():
    line = ReadableFormatter(use_color=False).format(_record("plain"))
    assert line.endswith("pitchboard.sync: plain")


def test_build_formatter():
    assert isinstance(build_formatter("json"), JSONFormatter)
    assert isinstance(build_formatter("readable"), ReadableFormatter)
