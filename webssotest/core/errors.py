"""Harness error taxonomy.

Every failure that aborts a single test case derives from WebSSOTestError so
the dispatcher can map it to a CRITICAL result in one place.
"""

from __future__ import annotations


class WebSSOTestError(Exception):
    """Base exception for harness errors."""


class DecodeError(WebSSOTestError):
    """Raised when a binding payload is not valid base64 or DEFLATE data."""


class UnsupportedBindingError(WebSSOTestError):
    """Raised when a message arrived over a binding that cannot be decoded."""


class SAMLParseError(WebSSOTestError):
    """Raised when a SAML document is not well-formed XML."""


class InteractionError(WebSSOTestError):
    """Raised when a scripted interaction cannot be applied to a page."""


class InteractionNotFoundError(InteractionError):
    """Raised when a scripted selector matches nothing on the current page."""


class TransportError(WebSSOTestError):
    """Raised on network or HTTP failure while fetching a page."""


class CaptureAbsentError(WebSSOTestError):
    """Raised when a round trip completed without a captured message."""


class RoundTripInProgressError(WebSSOTestError):
    """Raised when a second live round trip is started on an armed endpoint."""


class ConfigurationError(WebSSOTestError):
    """Raised when required configuration is missing or malformed."""


class EndpointError(WebSSOTestError):
    """Raised when the mock capture endpoint cannot be started or stopped."""


class UnknownTestCaseKindError(WebSSOTestError):
    """Raised for test case objects that are none of the known kinds."""


class UnknownSuiteError(WebSSOTestError):
    """Raised when a test suite name is not registered."""


class UnknownTestCaseError(WebSSOTestError):
    """Raised when a test case name does not exist in a suite."""
