"""SAML HTTP binding codec.

Converts between the parameters carried on the wire and raw protocol
message XML for the two supported bindings:

- HTTP-Redirect: base64(raw DEFLATE(xml)), sent as a URL query parameter
- HTTP-POST: base64(xml), sent as an HTML form field

The HTTP-Artifact binding is recognized but cannot be decoded.
"""

from __future__ import annotations

import base64
import binascii
import zlib
from enum import StrEnum
from urllib.parse import parse_qsl, urlencode, urlsplit, urlunsplit

from webssotest.core.errors import DecodeError, UnsupportedBindingError

# Query/form parameter names defined by the bindings
PARAM_SAML_REQUEST = "SAMLRequest"
PARAM_SAML_RESPONSE = "SAMLResponse"
PARAM_SAML_ARTIFACT = "SAMLart"
PARAM_RELAY_STATE = "RelayState"

# Negative window bits select a raw DEFLATE stream (no zlib/gzip wrapper)
_RAW_DEFLATE_WBITS = -15


class Binding(StrEnum):
    """SAML 2.0 HTTP bindings."""

    HTTP_REDIRECT = "urn:oasis:names:tc:SAML:2.0:bindings:HTTP-Redirect"
    HTTP_POST = "urn:oasis:names:tc:SAML:2.0:bindings:HTTP-POST"
    HTTP_ARTIFACT = "urn:oasis:names:tc:SAML:2.0:bindings:HTTP-Artifact"

    @property
    def short_name(self) -> str:
        """Binding name without the URN prefix (e.g. "HTTP-POST")."""
        return self.value.rsplit(":", 1)[-1]


def _b64decode(param: str) -> bytes:
    # POST forms commonly wrap base64 at 76 columns
    compact = "".join(param.split())
    try:
        return base64.b64decode(compact, validate=True)
    except (binascii.Error, ValueError) as e:
        raise DecodeError(f"Malformed base64 payload: {e}") from e


def _to_text(data: bytes) -> str:
    try:
        return data.decode("utf-8")
    except UnicodeDecodeError as e:
        raise DecodeError(f"Decoded message is not valid UTF-8: {e}") from e


def decode_redirect(param: str) -> str:
    """Decode an HTTP-Redirect binding parameter.

    The transport is expected to have URL-decoded the parameter already.

    Args:
        param: The base64-encoded, DEFLATE-compressed message.

    Returns:
        The message XML.

    Raises:
        DecodeError: If the payload is not base64 or not a complete raw
            DEFLATE stream with nothing after it.
    """
    compressed = _b64decode(param)
    inflater = zlib.decompressobj(_RAW_DEFLATE_WBITS)
    try:
        data = inflater.decompress(compressed) + inflater.flush()
    except zlib.error as e:
        raise DecodeError(f"Payload is not a valid DEFLATE stream: {e}") from e
    if not inflater.eof:
        raise DecodeError("Payload is a truncated DEFLATE stream")
    if inflater.unused_data:
        raise DecodeError("Payload has trailing data after the DEFLATE stream")
    return _to_text(data)


def decode_post(param: str) -> str:
    """Decode an HTTP-POST binding parameter.

    Args:
        param: The base64-encoded message.

    Returns:
        The message XML.

    Raises:
        DecodeError: If the payload is not base64 or not UTF-8.
    """
    return _to_text(_b64decode(param))


def encode_redirect(xml: str) -> str:
    """Encode a message for the HTTP-Redirect binding (deflate + base64)."""
    deflater = zlib.compressobj(zlib.Z_BEST_COMPRESSION, zlib.DEFLATED, _RAW_DEFLATE_WBITS)
    compressed = deflater.compress(xml.encode("utf-8")) + deflater.flush()
    return base64.b64encode(compressed).decode("ascii")


def encode_post(xml: str) -> str:
    """Encode a message for the HTTP-POST binding (base64 only)."""
    return base64.b64encode(xml.encode("utf-8")).decode("ascii")


def decode_message(binding: Binding, param: str) -> str:
    """Decode a message parameter according to its binding.

    Raises:
        DecodeError: If the payload is malformed.
        UnsupportedBindingError: For the HTTP-Artifact binding.
    """
    if binding == Binding.HTTP_REDIRECT:
        return decode_redirect(param)
    if binding == Binding.HTTP_POST:
        return decode_post(param)
    raise UnsupportedBindingError(f"The {binding.short_name} binding is not supported")


def build_redirect_url(
    location: str,
    param_name: str,
    encoded_message: str,
    relay_state: str | None = None,
) -> str:
    """Build an HTTP-Redirect binding URL.

    Existing query parameters on the location are preserved, the message
    parameter comes first as the binding requires for signing.

    Args:
        location: Endpoint URL the message is sent to.
        param_name: SAMLRequest or SAMLResponse.
        encoded_message: Output of encode_redirect().
        relay_state: Optional RelayState value.

    Returns:
        Complete URL carrying the message.
    """
    parts = urlsplit(location)
    params: list[tuple[str, str]] = [(param_name, encoded_message)]
    if relay_state:
        params.append((PARAM_RELAY_STATE, relay_state))
    for key, value in parse_qsl(parts.query, keep_blank_values=True):
        if key not in (param_name, PARAM_RELAY_STATE):
            params.append((key, value))
    return urlunsplit((parts.scheme, parts.netloc, parts.path, urlencode(params), parts.fragment))
