"""Tests for the Dynatrace HTTP client."""

import json
import uuid
from datetime import datetime
from decimal import Decimal
from unittest.mock import MagicMock, patch

import pytest
import requests

from pythonlogdynatrace.clients import (
    DynatraceClient,
    ExportError,
    PayloadEncodingError,
    encode_payload,
)
from pythonlogdynatrace.config import ExportConfig

PAYLOAD = [{"content": "hello", "loglevel": "INFO"}]


def _response(status_code=204):
    response = MagicMock()
    response.status_code = status_code
    if status_code >= 400:
        error = requests.exceptions.HTTPError(f"{status_code} Error")
        error.response = response
        response.raise_for_status.side_effect = error
    return response


@patch("pythonlogdynatrace.clients.requests.post")
def test_post_batch_request_shape(mock_post, config):
    mock_post.return_value = _response(204)
    client = DynatraceClient(config)

    client.post_batch(PAYLOAD)

    mock_post.assert_called_once_with(
        "https://abc12345.live.dynatrace.com/api/v2/logs/ingest",
        data=json.dumps(PAYLOAD).encode("utf-8"),
        headers={
            "Authorization": "Api-Token dt0c01.TOKEN",
            "Content-Type": "application/json; charset=utf-8",
        },
        timeout=10.0,
        verify=True,
    )


@patch("pythonlogdynatrace.clients.requests.post")
def test_send_logs_success(mock_post, config):
    mock_post.return_value = _response(204)
    assert DynatraceClient(config).send_logs(PAYLOAD) is True


@patch("pythonlogdynatrace.clients.requests.post")
def test_send_logs_empty_batch_skips_request(mock_post, config):
    assert DynatraceClient(config).send_logs([]) is True
    mock_post.assert_not_called()


@patch("pythonlogdynatrace.clients.requests.post")
def test_non_2xx_is_a_failure(mock_post, config):
    mock_post.return_value = _response(400)
    client = DynatraceClient(config)

    with pytest.raises(ExportError) as excinfo:
        client.post_batch(PAYLOAD)
    assert excinfo.value.status_code == 400
    assert client.send_logs(PAYLOAD) is False


@pytest.mark.parametrize(
    "exc",
    [
        requests.exceptions.ConnectionError("refused"),
        requests.exceptions.Timeout("slow"),
    ],
)
@patch("pythonlogdynatrace.clients.requests.post")
def test_network_errors_are_failures(mock_post, exc, config):
    mock_post.side_effect = exc
    client = DynatraceClient(config)

    with pytest.raises(ExportError):
        client.post_batch(PAYLOAD)
    assert client.send_logs(PAYLOAD) is False


@patch("pythonlogdynatrace.clients.requests.post")
def test_unconfigured_client_never_posts(mock_post, disabled_config):
    client = DynatraceClient(disabled_config)

    with pytest.raises(ExportError):
        client.post_batch(PAYLOAD)
    mock_post.assert_not_called()


@patch("pythonlogdynatrace.clients.requests.post")
def test_tls_verification_can_be_disabled(mock_post):
    mock_post.return_value = _response(200)
    cfg = ExportConfig(endpoint_id="abc", api_token="t", verify_tls=False)

    DynatraceClient(cfg).post_batch(PAYLOAD)

    assert mock_post.call_args.kwargs["verify"] is False


def test_session_is_used_and_closed(config):
    session = MagicMock(spec=requests.Session)
    session.post.return_value = _response(204)
    client = DynatraceClient(config, session=session)

    assert client.send_logs(PAYLOAD) is True
    session.post.assert_called_once()

    client.close()
    session.close.assert_called_once()


def _adapter_response(status_code=204):
    response = requests.Response()
    response.status_code = status_code
    return response


def test_encode_payload_stringifies_unknown_types():
    entry_id = uuid.UUID("12345678-1234-5678-1234-567812345678")
    body = encode_payload(
        [{"at": datetime(2024, 1, 1), "price": Decimal("9.99"), "id": entry_id}]
    )

    assert json.loads(body) == [
        {
            "at": "2024-01-01 00:00:00",
            "price": "9.99",
            "id": "12345678-1234-5678-1234-567812345678",
        }
    ]


def test_encode_payload_circular_reference():
    loop = {}
    loop["self"] = loop
    with pytest.raises(PayloadEncodingError):
        encode_payload([loop])


@patch("requests.adapters.HTTPAdapter.send")
def test_non_primitive_metadata_reaches_the_wire(mock_send, config):
    mock_send.return_value = _adapter_response(204)
    client = DynatraceClient(config)

    assert client.send_logs([{"content": "paid", "attributes": {"at": datetime(2024, 1, 1)}}])

    prepared = mock_send.call_args.args[0]
    assert prepared.headers["Content-Type"] == "application/json; charset=utf-8"
    assert prepared.headers["Authorization"] == "Api-Token dt0c01.TOKEN"
    assert json.loads(prepared.body) == [
        {"content": "paid", "attributes": {"at": "2024-01-01 00:00:00"}}
    ]


@patch("requests.adapters.HTTPAdapter.send")
def test_encoding_failure_is_raised_not_reported_as_send_failure(mock_send, config):
    loop = {}
    loop["self"] = loop
    client = DynatraceClient(config)

    with pytest.raises(PayloadEncodingError):
        client.send_logs([{"attributes": loop}])
    mock_send.assert_not_called()


@patch("requests.adapters.HTTPAdapter.send")
def test_adapter_level_rejection(mock_send, config):
    mock_send.return_value = _adapter_response(413)
    assert DynatraceClient(config).send_logs(PAYLOAD) is False
