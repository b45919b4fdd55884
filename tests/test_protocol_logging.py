"""Tests for protocol logging module."""

import logging
from datetime import UTC, datetime

import httpx
import pytest

from webssotest.core.logging import (
    TRACE,
    HTTPExchange,
    LoggingTransport,
    LogLevel,
    ProtocolLog,
    ProtocolLogger,
    configure_logging,
    get_protocol_logger,
    redact_sensitive,
    set_protocol_logger,
)
from webssotest.core.saml.bindings import encode_post, encode_redirect


class TestRedactSensitive:
    """Tests for sensitive data redaction."""

    def test_redact_saml_response_query(self):
        """SAML messages in query strings are redacted, other parameters kept."""
        encoded = encode_redirect("<Response/>")
        result = redact_sensitive(f"https://sp.test/acs?SAMLResponse={encoded}&RelayState=abc")
        assert encoded not in result
        assert "SAMLResponse=[REDACTED]" in result
        assert "RelayState=abc" in result

    def test_redact_saml_request_and_artifact(self):
        result = redact_sensitive("SAMLRequest=fZJNT8MwDIbv&SAMLart=AAQAAMh48")
        assert "fZJNT8MwDIbv" not in result
        assert "AAQAAMh48" not in result

    def test_redact_password_field(self):
        """Login form credentials are redacted."""
        result = redact_sensitive("user=alice&pass=secret&remember=yes")
        assert "secret" not in result
        assert "user=alice" in result
        assert "remember=yes" in result

    def test_redact_hidden_form_field(self):
        """HTTP-POST binding pages do not leak the message."""
        encoded = encode_post("<Response/>")
        page = f'<input type="hidden" name="SAMLResponse" value="{encoded}">'
        assert encoded not in redact_sensitive(page)

    def test_redact_authorization_header(self):
        result = redact_sensitive("Authorization: Basic YWxpY2U6c2VjcmV0")
        assert "YWxpY2U6c2VjcmV0" not in result
        assert "[REDACTED]" in result

    def test_redact_cookie_header(self):
        result = redact_sensitive("Cookie: idp_session=abc123; lang=en")
        assert "idp_session=abc123" not in result

    def test_no_redact_normal_text(self):
        """Test that normal text is not modified."""
        text = "Submitting HTTP-POST binding form found on https://idp.test/login"
        assert redact_sensitive(text) == text


class TestHTTPExchange:
    """Tests for HTTPExchange dataclass."""

    def _exchange(self) -> HTTPExchange:
        return HTTPExchange(
            id="http_0001",
            timestamp=datetime(2026, 1, 1, 12, 0, 0, tzinfo=UTC),
            method="POST",
            url="https://idp.test/login",
            request_headers={"Content-Type": "application/x-www-form-urlencoded", "Cookie": "sid=1"},
            request_body="user=alice&password=hunter2",
            response_status=302,
            response_headers={"location": "https://sp.test/acs?SAMLResponse=abc", "set-cookie": "sid=2"},
            duration_ms=12.5,
        )

    def test_to_dict_without_sensitive(self):
        result = self._exchange().to_dict(include_sensitive=False)
        assert result["request_headers"]["Cookie"] == "[REDACTED]"
        assert result["response_headers"]["set-cookie"] == "[REDACTED]"
        assert "hunter2" not in result["request_body"]
        assert "abc" not in result["response_headers"]["location"]

    def test_to_dict_with_sensitive(self):
        result = self._exchange().to_dict(include_sensitive=True)
        assert result["request_headers"]["Cookie"] == "sid=1"
        assert "hunter2" in result["request_body"]

    def test_format_log_redirect(self):
        """Redirects show their (redacted) target."""
        log = self._exchange().format_log(LogLevel.INFO)
        assert "HTTP POST https://idp.test/login -> 302" in log
        assert "Location: https://sp.test/acs?SAMLResponse=[REDACTED]" in log
        assert "12.5ms" in log
        assert "Request Headers" not in log

    def test_saml_parameter(self):
        """The hop emitting a message is flagged through its redirect target."""
        exchange = self._exchange()
        assert exchange.saml_parameter == "SAMLResponse"
        assert "Carries: SAMLResponse" in exchange.format_log(LogLevel.INFO)

        plain = HTTPExchange(id="x", timestamp=datetime.now(UTC), method="GET", url="https://idp.test/", request_headers={})
        assert plain.saml_parameter is None

    def test_format_log_levels(self):
        exchange = self._exchange()
        assert "Request Headers" in exchange.format_log(LogLevel.DEBUG)
        assert "Request Body" not in exchange.format_log(LogLevel.DEBUG)
        trace = exchange.format_log(LogLevel.TRACE, include_sensitive=True)
        assert "hunter2" in trace


class TestProtocolLogger:
    """Tests for ProtocolLogger class."""

    def test_trace_requires_explicit_enable(self):
        logger = ProtocolLogger(level=LogLevel.TRACE, trace_enabled=False)
        assert logger.effective_level == LogLevel.DEBUG

        logger.trace_enabled = True
        assert logger.effective_level == LogLevel.TRACE

    def test_flow_collects_exchanges(self):
        logger = ProtocolLogger()
        log = logger.start_flow("response_by_post", "login")
        assert logger.current_log is log

        logger.log_exchange(
            HTTPExchange(id="x", timestamp=datetime.now(UTC), method="GET", url="https://idp.test/", request_headers={})
        )
        result = logger.end_flow()

        assert result is log
        assert len(result.exchanges) == 1
        assert result.completed_at is not None
        assert logger.current_log is None
        assert logger.end_flow() is None

    def test_protocol_log_to_dict(self):
        log = ProtocolLog(flow_id="f", flow_type="authn_request")
        log.complete()
        data = log.to_dict()
        assert data["flow_type"] == "authn_request"
        assert data["exchange_count"] == 0


class TestLoggingTransport:
    """Tests for the logging httpx transport."""

    def test_logs_each_hop(self):
        """Every request of a redirect chain is logged, bodies included."""

        def handler(request: httpx.Request) -> httpx.Response:
            if request.url.path == "/start":
                return httpx.Response(302, headers={"location": "/done"})
            return httpx.Response(200, text="<html>done</html>", headers={"content-type": "text/html"})

        protocol_logger = ProtocolLogger()
        log = protocol_logger.start_flow("flow", "login")
        transport = LoggingTransport(protocol_logger, httpx.MockTransport(handler))
        with httpx.Client(transport=transport, follow_redirects=True) as client:
            response = client.get("https://idp.test/start")

        assert response.text == "<html>done</html>"
        assert [e.response_status for e in log.exchanges] == [302, 200]
        assert [e.id for e in log.exchanges] == ["http_0001", "http_0002"]
        assert log.exchanges[1].response_body == "<html>done</html>"

    def test_logs_transport_errors(self, caplog):
        def handler(request: httpx.Request) -> httpx.Response:
            raise httpx.ConnectError("connection refused", request=request)

        protocol_logger = ProtocolLogger()
        log = protocol_logger.start_flow("flow", "login")
        with httpx.Client(transport=protocol_logger.create_transport(httpx.MockTransport(handler))) as client:
            with pytest.raises(httpx.ConnectError):
                client.get("https://idp.test/")

        assert log.exchanges[0].error == "connection refused"
        assert "HTTP error" in caplog.text


class TestConfigureLogging:
    """Tests for configure_logging function."""

    def test_configure_with_string_level(self):
        protocol_logger = configure_logging(level="debug")
        assert protocol_logger.level == LogLevel.DEBUG
        assert logging.getLogger("webssotest").level == logging.DEBUG
        assert get_protocol_logger() is protocol_logger

    def test_configure_trace(self):
        protocol_logger = configure_logging(level="TRACE", trace_enabled=True)
        assert protocol_logger.effective_level == LogLevel.TRACE
        assert logging.getLogger("webssotest").level == TRACE

    def test_log_file(self, tmp_path):
        path = tmp_path / "run.log"
        configure_logging(level="INFO", log_file=str(path))
        logging.getLogger("webssotest.core.runner").info("Running test case metadata_available")
        for handler in logging.getLogger("webssotest").handlers:
            handler.flush()
        assert "Running test case metadata_available" in path.read_text()

    def test_set_protocol_logger(self):
        custom_logger = ProtocolLogger(level=LogLevel.DEBUG)
        set_protocol_logger(custom_logger)
        assert get_protocol_logger() is custom_logger
