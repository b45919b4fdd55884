"""WebSSOTest - SAML2 Web SSO conformance test harness."""

__version__ = "0.1.0"
