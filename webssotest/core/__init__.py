"""Core capture and orchestration engine."""

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

__all__ = [
    "TRACE",
    "HTTPExchange",
    "LoggingTransport",
    "LogLevel",
    "ProtocolLog",
    "ProtocolLogger",
    "configure_logging",
    "get_protocol_logger",
    "redact_sensitive",
    "set_protocol_logger",
]
