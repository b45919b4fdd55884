"""Logging for the harness and the traffic of its driving client.

Every request the web client sends goes through a LoggingTransport, which
records it as an HTTPExchange and hands it to the active ProtocolLogger.
How much of an exchange reaches the log depends on the level:

- ERROR: failed requests only
- INFO: one line per hop, plus the redirect target
- DEBUG: headers as well
- TRACE: bodies as well; unredacted only when tracing is explicitly enabled

SAML messages, login passwords, cookies and authorization headers are
masked unless unredacted tracing was asked for.
"""

from __future__ import annotations

import logging
import re
import time
from dataclasses import dataclass, field
from datetime import UTC, datetime
from enum import IntEnum
from typing import Any

import httpx

TRACE = 5
logging.addLevelName(TRACE, "TRACE")

package_logger = logging.getLogger("webssotest")
logger = logging.getLogger("webssotest.protocol")

REDACTED = "[REDACTED]"
BODY_PREVIEW_CHARS = 2000
REDIRECT_STATUSES = frozenset({301, 302, 303, 307, 308})
SAML_PARAMETERS = ("SAMLResponse", "SAMLRequest", "SAMLart")


class LogLevel(IntEnum):
    """Verbosity of protocol logging."""

    ERROR = logging.ERROR
    INFO = logging.INFO
    DEBUG = logging.DEBUG
    TRACE = TRACE

    @classmethod
    def parse(cls, name: str) -> LogLevel:
        """Map a level name to a LogLevel; WARNING counts as ERROR, unknown names as INFO."""
        name = name.upper()
        if name == "WARNING":
            return cls.ERROR
        return cls.__members__.get(name, cls.INFO)


_SAML_PARAM = "|".join(SAML_PARAMETERS)

SENSITIVE_PATTERNS = [
    # protocol messages in query strings and form bodies
    (re.compile(rf"\b((?:{_SAML_PARAM})=)[^&\s]+"), rf"\1{REDACTED}"),
    # the same messages as hidden inputs of HTTP-POST binding pages
    (re.compile(rf'(name="(?:{_SAML_PARAM})"\s+value=")[^"]+', re.IGNORECASE), rf"\1{REDACTED}"),
    (re.compile(r"\b((?:password|passwd|pass|pwd)=)[^&\s]+", re.IGNORECASE), rf"\1{REDACTED}"),
    (re.compile(r"((?:Authorization:\s*)?\b(?:Bearer|Basic)\s+)\S+", re.IGNORECASE), rf"\1{REDACTED}"),
    (re.compile(r"((?:Set-)?Cookie:\s*)[^\r\n]+", re.IGNORECASE), rf"\1{REDACTED}"),
]

SENSITIVE_HEADERS = frozenset({"cookie", "set-cookie", "authorization"})


def redact_sensitive(text: str) -> str:
    """Mask SAML messages and credentials found anywhere in ``text``."""
    for pattern, replacement in SENSITIVE_PATTERNS:
        text = pattern.sub(replacement, text)
    return text


def _clean_headers(headers: dict[str, str], reveal: bool) -> dict[str, str]:
    if reveal:
        return dict(headers)
    return {
        name: REDACTED if name.lower() in SENSITIVE_HEADERS else redact_sensitive(value)
        for name, value in headers.items()
    }


def _clip(body: str) -> str:
    if len(body) <= BODY_PREVIEW_CHARS:
        return body
    return body[:BODY_PREVIEW_CHARS] + "..."


@dataclass
class HTTPExchange:
    """One request sent by the web client and what came back."""

    id: str
    timestamp: datetime
    method: str
    url: str
    request_headers: dict[str, str]
    request_body: str | None = None
    response_status: int | None = None
    response_headers: dict[str, str] = field(default_factory=dict)
    response_body: str | None = None
    duration_ms: float | None = None
    error: str | None = None

    @property
    def is_redirect(self) -> bool:
        return self.response_status in REDIRECT_STATUSES

    @property
    def location(self) -> str:
        return self.response_headers.get("location", "")

    @property
    def saml_parameter(self) -> str | None:
        """Name of the SAML parameter this hop carries, if any.

        The request URL and body are checked first, then the redirect
        target, so that the hop delivering a message to the mock entity
        and the hop that emits it are both recognisable in the log.
        """
        for text in (self.url, self.request_body or "", self.location):
            for name in SAML_PARAMETERS:
                if f"{name}=" in text:
                    return name
        return None

    def to_dict(self, include_sensitive: bool = False) -> dict[str, Any]:
        """Serialize the exchange, masked unless ``include_sensitive``."""
        clean = (lambda v: v) if include_sensitive else redact_sensitive
        return {
            "id": self.id,
            "timestamp": self.timestamp.isoformat(),
            "method": self.method,
            "url": clean(self.url),
            "request_headers": _clean_headers(self.request_headers, include_sensitive),
            "request_body": None if self.request_body is None else clean(self.request_body),
            "response_status": self.response_status,
            "response_headers": _clean_headers(self.response_headers, include_sensitive),
            "response_body": None if self.response_body is None else clean(self.response_body),
            "duration_ms": self.duration_ms,
            "error": self.error,
            "saml_parameter": self.saml_parameter,
        }

    def format_log(self, level: LogLevel, include_sensitive: bool = False) -> str:
        """Render the exchange as a log entry with the detail ``level`` allows."""
        clean = (lambda v: v) if include_sensitive else redact_sensitive

        head = f"HTTP {self.method} {clean(self.url)} -> {self.response_status or 'ERROR'}"
        if self.duration_ms is not None:
            head += f" ({self.duration_ms:.1f}ms)"
        lines = [head]

        if self.is_redirect:
            lines.append(f"  Location: {clean(self.location)}")
        if self.saml_parameter:
            lines.append(f"  Carries: {self.saml_parameter}")
        if self.error:
            lines.append(f"  Error: {self.error}")

        if level <= LogLevel.DEBUG:
            sections = [("Request Headers", self.request_headers), ("Response Headers", self.response_headers)]
            for title, headers in sections:
                if not headers:
                    continue
                lines.append(f"  {title}:")
                lines.extend(
                    f"    {name}: {value}"
                    for name, value in _clean_headers(headers, include_sensitive).items()
                )

        if level <= LogLevel.TRACE:
            for title, body in (("Request Body", self.request_body), ("Response Body", self.response_body)):
                if body:
                    lines.append(f"  {title}:")
                    lines.append(f"    {_clip(clean(body))}")

        return "\n".join(lines)


@dataclass
class ProtocolLog:
    """Exchanges recorded while one test case drove the target."""

    flow_id: str
    flow_type: str
    exchanges: list[HTTPExchange] = field(default_factory=list)
    started_at: datetime = field(default_factory=lambda: datetime.now(UTC))
    completed_at: datetime | None = None

    def add_exchange(self, exchange: HTTPExchange) -> None:
        self.exchanges.append(exchange)

    def complete(self) -> None:
        self.completed_at = datetime.now(UTC)

    def to_dict(self, include_sensitive: bool = False) -> dict[str, Any]:
        return {
            "flow_id": self.flow_id,
            "flow_type": self.flow_type,
            "started_at": self.started_at.isoformat(),
            "completed_at": self.completed_at and self.completed_at.isoformat(),
            "exchange_count": len(self.exchanges),
            "exchanges": [exchange.to_dict(include_sensitive) for exchange in self.exchanges],
        }


class ProtocolLogger:
    """Routes exchanges to the ``webssotest.protocol`` logger.

    While a flow is open, exchanges are also collected into its
    ProtocolLog. TRACE only takes effect when ``trace_enabled`` is set,
    since it is the one level that writes unredacted messages.
    """

    def __init__(self, level: LogLevel = LogLevel.INFO, trace_enabled: bool = False) -> None:
        self.level = level
        self.trace_enabled = trace_enabled
        self.current_log: ProtocolLog | None = None

    @property
    def effective_level(self) -> LogLevel:
        if self.level == LogLevel.TRACE and not self.trace_enabled:
            return LogLevel.DEBUG
        return self.level

    @property
    def reveals_sensitive(self) -> bool:
        return self.effective_level == LogLevel.TRACE

    def start_flow(self, flow_id: str, flow_type: str) -> ProtocolLog:
        self.current_log = ProtocolLog(flow_id=flow_id, flow_type=flow_type)
        logger.info(f"Recording {flow_type} traffic for {flow_id}")
        return self.current_log

    def end_flow(self) -> ProtocolLog | None:
        """Close the open flow, if there is one, and return its log."""
        log, self.current_log = self.current_log, None
        if log is None:
            return None
        log.complete()
        carrying = sum(1 for exchange in log.exchanges if exchange.saml_parameter)
        logger.info(
            f"Recorded {len(log.exchanges)} exchanges for {log.flow_id} ({carrying} carrying SAML messages)"
        )
        return log

    def log_exchange(self, exchange: HTTPExchange) -> None:
        if self.current_log is not None:
            self.current_log.add_exchange(exchange)

        level = self.effective_level
        reveal = self.reveals_sensitive
        if level <= LogLevel.DEBUG:
            logger.debug(exchange.format_log(level, reveal))
        elif level == LogLevel.INFO:
            logger.info(exchange.format_log(level, reveal))

        if exchange.error:
            url = exchange.url if reveal else redact_sensitive(exchange.url)
            logger.error(f"HTTP error: {exchange.method} {url}: {exchange.error}")

    def create_transport(self, transport: httpx.BaseTransport | None = None) -> LoggingTransport:
        """Wrap ``transport`` so its traffic is logged here."""
        return LoggingTransport(self, transport)


class LoggingTransport(httpx.BaseTransport):
    """Records every request passing through the wrapped transport.

    Sitting below the client's redirect handling, it sees each hop of a
    redirect chain separately.
    """

    def __init__(self, protocol_logger: ProtocolLogger, transport: httpx.BaseTransport | None = None) -> None:
        self._logger = protocol_logger
        self._transport = transport or httpx.HTTPTransport()
        self._sent = 0

    @staticmethod
    def _text(content: bytes, encoding: str | None = "utf-8") -> str | None:
        if not content:
            return None
        try:
            return content.decode(encoding or "utf-8")
        except (UnicodeDecodeError, LookupError):
            return "<binary content>"

    def handle_request(self, request: httpx.Request) -> httpx.Response:
        self._sent += 1
        exchange = HTTPExchange(
            id=f"http_{self._sent:04d}",
            timestamp=datetime.now(UTC),
            method=request.method,
            url=str(request.url),
            request_headers=dict(request.headers),
            request_body=self._text(request.content),
        )
        started = time.perf_counter()
        try:
            response = self._transport.handle_request(request)
            # buffered here; the client reads the same content afterwards
            response.read()
        except Exception as e:
            exchange.error = str(e)
            raise
        else:
            exchange.response_status = response.status_code
            exchange.response_headers = dict(response.headers)
            exchange.response_body = self._text(response.content, response.encoding)
        finally:
            exchange.duration_ms = (time.perf_counter() - started) * 1000
            self._logger.log_exchange(exchange)
        return response

    def close(self) -> None:
        self._transport.close()


_protocol_logger: ProtocolLogger | None = None


def get_protocol_logger() -> ProtocolLogger:
    """Return the process-wide ProtocolLogger, creating a default one on first use."""
    global _protocol_logger
    if _protocol_logger is None:
        _protocol_logger = ProtocolLogger()
    return _protocol_logger


def set_protocol_logger(protocol_logger: ProtocolLogger) -> None:
    global _protocol_logger
    _protocol_logger = protocol_logger


def configure_logging(
    level: LogLevel | str = LogLevel.INFO,
    trace_enabled: bool = False,
    log_file: str | None = None,
) -> ProtocolLogger:
    """Set up the ``webssotest`` logger tree and install a fresh ProtocolLogger.

    Log records go to stderr, and to ``log_file`` as well when given, so
    that stdout stays free for results.
    """
    if isinstance(level, str):
        level = LogLevel.parse(level)

    handlers: list[logging.Handler] = [logging.StreamHandler()]
    if log_file:
        handlers.append(logging.FileHandler(log_file))

    formatter = logging.Formatter("%(asctime)s %(levelname)-5s [%(name)s] %(message)s")
    package_logger.handlers.clear()
    package_logger.setLevel(level)
    for handler in handlers:
        handler.setLevel(level)
        handler.setFormatter(formatter)
        package_logger.addHandler(handler)

    protocol_logger = ProtocolLogger(level=level, trace_enabled=trace_enabled)
    set_protocol_logger(protocol_logger)
    if trace_enabled:
        logger.warning("Unredacted TRACE logging is on: SAML messages and passwords will be written to the log")
    return protocol_logger
