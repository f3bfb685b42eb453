"""Tests for LogEntry creation and the ingest wire format."""

import time

import pytest

from pythonlogdynatrace.models import LogEntry, create_log_entry, normalize_level


@pytest.mark.parametrize(
    "raw,expected",
    [
        ("info", "INFO"),
        ("Error", "ERROR"),
        ("WARNING", "WARN"),
        ("warn", "WARN"),
        ("fatal", "CRITICAL"),
        ("notice", "NOTICE"),
        ("", "INFO"),
    ],
)
def test_normalize_level(raw, expected):
    assert normalize_level(raw) == expected


def test_create_entry_merges_defaults_and_metadata(config):
    entry = create_log_entry("warn", "disk almost full", config, {"disk": "/var"})

    assert entry.level == "WARN"
    assert entry.content == "disk almost full"
    assert entry.attributes == {
        "environment": "staging",
        "appname": "Checkout",
        "service": "checkout-api",
        "hostname": "web-1",
        "segment": "eu",
        "disk": "/var",
    }


def test_metadata_overrides_defaults(config):
    entry = create_log_entry("info", "hello", config, {"service": "worker"})
    assert entry.attributes["service"] == "worker"


def test_timestamp_is_epoch_millis(config):
    before = int(time.time() * 1000)
    entry = create_log_entry("info", "hello", config)
    after = int(time.time() * 1000)
    assert before <= entry.timestamp <= after


def test_non_string_message_is_stringified(config):
    entry = create_log_entry("info", 42, config)
    assert entry.content == "42"


def test_entry_is_immutable():
    entry = LogEntry(level="INFO", content="x")
    with pytest.raises(AttributeError):
        entry.content = "y"


def test_ingest_format(config):
    entry = LogEntry(
        level="ERROR",
        content="payment failed",
        timestamp=1700000000123,
        attributes={"service": "override", "order": 17},
    )

    assert entry.to_ingest_format(config) == {
        "timestamp": 1700000000123,
        "status": "ERROR",
        "loglevel": "ERROR",
        "environment": "staging",
        "appname": "Checkout",
        "service": "checkout-api",
        "content": "payment failed",
        "severity": "ERROR",
        "segment": "eu",
        "hostname": "web-1",
        "attributes": {"service": "override", "order": 17},
    }
