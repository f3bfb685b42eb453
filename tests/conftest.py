"""Shared fixtures for the exporter tests."""

from unittest.mock import MagicMock

import pytest

from pythonlogdynatrace.clients import DynatraceClient
from pythonlogdynatrace.config import ExportConfig


@pytest.fixture
def config() -> ExportConfig:
    """Export-enabled configuration with the timer effectively disabled."""
    return ExportConfig(
        endpoint_id="abc12345",
        api_token="dt0c01.TOKEN",
        environment="staging",
        app_name="Checkout",
        service_name="checkout-api",
        hostname="web-1",
        segment="eu",
        flush_interval_ms=100000,
        max_batch_size=3,
    )


@pytest.fixture
def disabled_config() -> ExportConfig:
    """Configuration without endpoint or token."""
    return ExportConfig(flush_interval_ms=100000, max_batch_size=3)


@pytest.fixture
def client() -> MagicMock:
    """Transport double that reports every batch as delivered."""
    fake = MagicMock(spec=DynatraceClient)
    fake.send_logs.return_value = True
    return fake
