"""Unit tests for HttpTransport, LoggingTransport and chain assembly."""
import logging
from unittest.mock import Mock

import pytest
import requests

from conftest import StubResponse
from userapi.core.http import (
    HttpTransport,
    LoggingTransport,
    RequestDescriptor,
    ResponseOutcome,
    RetryingTransport,
    build_transport_chain,
)


@pytest.fixture()
def session():
    session = Mock(spec=requests.Session)
    session.request.return_value = StubResponse(
        [{"name": "Alice"}], status_code=200, headers={"Content-Type": "application/json"}
    )
    return session


# ─────────────────────────────────────────────────────────────────────────────
# HttpTransport
# ─────────────────────────────────────────────────────────────────────────────
def test_http_transport_sends_descriptor_fields(session):
    transport = HttpTransport(session=session, timeout=7)
    request = RequestDescriptor(
        "get",
        "http://api.local/api/users",
        headers={"Authorization": "Bearer tok-1"},
        params={"olderThan": "20"},
    )

    outcome = transport.execute(request)

    session.request.assert_called_once_with(
        "GET",
        "http://api.local/api/users",
        headers={"Authorization": "Bearer tok-1"},
        params={"olderThan": "20"},
        data=None,
        json=None,
        files=None,
        timeout=7,
    )
    assert outcome.status_code == 200
    assert outcome.body == '[{"name": "Alice"}]'
    assert outcome.headers["content-type"] == "application/json"


def test_http_transport_forwards_json_and_files(session):
    files = {"file": ("users.json", b"[]", "application/json")}
    HttpTransport(session=session).execute(
        RequestDescriptor("POST", "http://api.local/api/users/upload", files=files)
    )
    kwargs = session.request.call_args.kwargs
    assert kwargs["files"] == files
    assert kwargs["timeout"] == 5

    HttpTransport(session=session).execute(
        RequestDescriptor("PUT", "http://api.local/api/users", json={"name": "Bob"})
    )
    assert session.request.call_args.kwargs["json"] == {"name": "Bob"}


def test_http_transport_returns_error_statuses_as_outcomes(session):
    session.request.return_value = StubResponse(text="Not found", status_code=404)

    outcome = HttpTransport(session=session).execute(RequestDescriptor("GET", "http://api.local/api/x"))

    assert outcome.status_code == 404
    assert outcome.body == "Not found"
    assert outcome.terminal


def test_http_transport_lets_request_exceptions_propagate(session):
    session.request.side_effect = requests.ConnectionError("refused")

    with pytest.raises(requests.ConnectionError):
        HttpTransport(session=session).execute(RequestDescriptor("GET", "http://api.local/api/x"))


# ─────────────────────────────────────────────────────────────────────────────
# LoggingTransport
# ─────────────────────────────────────────────────────────────────────────────
def test_logging_transport_returns_inner_outcome_unchanged(caplog):
    outcome = ResponseOutcome(status_code=201, body="created")
    inner = Mock()
    inner.execute.return_value = outcome
    request = RequestDescriptor("POST", "http://api.local/api/users", headers={"Authorization": "Bearer tok-9"})

    with caplog.at_level(logging.INFO):
        result = LoggingTransport(inner).execute(request)

    assert result is outcome
    inner.execute.assert_called_once_with(request)
    messages = [record.getMessage() for record in caplog.records]
    assert "Executing request: POST http://api.local/api/users" in messages
    assert "Received response: POST http://api.local/api/users -> 201" in messages
    assert not any("tok-9" in m for m in messages)


def test_logging_transport_logs_and_reraises_errors(caplog):
    error = requests.Timeout("read timed out")
    inner = Mock()
    inner.execute.side_effect = error

    with caplog.at_level(logging.INFO):
        with pytest.raises(requests.Timeout) as excinfo:
            LoggingTransport(inner).execute(RequestDescriptor("GET", "http://api.local/api/users"))

    assert excinfo.value is error
    warnings = [r.getMessage() for r in caplog.records if r.levelno == logging.WARNING]
    assert warnings == ["Request failed: GET http://api.local/api/users -> Timeout: read timed out"]


def test_logging_transport_uses_given_logger():
    log = Mock(spec=logging.Logger)
    inner = Mock()
    inner.execute.return_value = ResponseOutcome(status_code=200)

    LoggingTransport(inner, log=log).execute(RequestDescriptor("GET", "http://api.local/api/users"))

    assert log.info.call_count == 2


# ─────────────────────────────────────────────────────────────────────────────
# Chain assembly
# ─────────────────────────────────────────────────────────────────────────────
def test_build_transport_chain_order(session):
    chain = build_transport_chain(session=session, max_attempts=4, timeout=2.0, backoff_base=0.5)

    assert isinstance(chain, LoggingTransport)
    assert isinstance(chain.inner, RetryingTransport)
    assert chain.inner.max_attempts == 4
    assert chain.inner.backoff_base == 0.5
    assert isinstance(chain.inner.inner, HttpTransport)
    assert chain.inner.inner.session is session
    assert chain.inner.inner.timeout == 2.0


def test_chain_retries_server_errors_end_to_end(session):
    session.request.side_effect = [
        StubResponse(text="boom", status_code=500),
        StubResponse(text="ok", status_code=200),
    ]
    chain = build_transport_chain(session=session, max_attempts=3)

    outcome = chain.execute(RequestDescriptor("GET", "http://api.local/api/users"))

    assert outcome.status_code == 200
    assert session.request.call_count == 2
