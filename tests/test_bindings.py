"""Tests for the SAML HTTP binding codec."""

import base64
import zlib
from urllib.parse import parse_qs, urlsplit

import pytest

from webssotest.core.errors import DecodeError, UnsupportedBindingError
from webssotest.core.saml.bindings import (
    PARAM_RELAY_STATE,
    PARAM_SAML_REQUEST,
    Binding,
    build_redirect_url,
    decode_message,
    decode_post,
    decode_redirect,
    encode_post,
    encode_redirect,
)

SAMPLE_XML = (
    '<samlp:Response xmlns:samlp="urn:oasis:names:tc:SAML:2.0:protocol" '
    'ID="_r1" Version="2.0"><Issuer>https://idp.example.test/héllo</Issuer></samlp:Response>'
)


def _raw_deflate(data: bytes) -> bytes:
    deflater = zlib.compressobj(9, zlib.DEFLATED, -15)
    return deflater.compress(data) + deflater.flush()


class TestRedirectBinding:
    """Tests for the HTTP-Redirect (deflate + base64) binding."""

    def test_round_trip(self):
        """Encoded messages decode to the original XML, non-ASCII included."""
        assert decode_redirect(encode_redirect(SAMPLE_XML)) == SAMPLE_XML

    def test_decodes_foreign_encoder_output(self):
        """Payloads produced by other deflate implementations decode."""
        param = base64.b64encode(_raw_deflate(b"<Response/>")).decode("ascii")
        assert decode_redirect(param) == "<Response/>"

    def test_malformed_base64(self):
        """Non-base64 payloads are rejected."""
        with pytest.raises(DecodeError, match="base64"):
            decode_redirect("not*base64!")

    def test_not_deflate(self):
        """Base64 that is not a deflate stream is rejected."""
        param = base64.b64encode(b"\xff\xff\xff\xff").decode("ascii")
        with pytest.raises(DecodeError):
            decode_redirect(param)

    def test_truncated_stream(self):
        """A deflate stream cut short is rejected rather than partially decoded."""
        compressed = _raw_deflate(SAMPLE_XML.encode("utf-8") * 20)
        param = base64.b64encode(compressed[: len(compressed) // 2]).decode("ascii")
        with pytest.raises(DecodeError, match="truncated"):
            decode_redirect(param)

    def test_trailing_data(self):
        """Bytes after the end of a complete deflate stream are rejected."""
        param = base64.b64encode(_raw_deflate(b"<Response/>") + b"junk").decode("ascii")
        with pytest.raises(DecodeError, match="trailing data"):
            decode_redirect(param)

    def test_invalid_utf8(self):
        """Decompressed bytes must be UTF-8."""
        param = base64.b64encode(_raw_deflate(b"\xff\xfe<Response/>")).decode("ascii")
        with pytest.raises(DecodeError, match="UTF-8"):
            decode_redirect(param)


class TestPostBinding:
    """Tests for the HTTP-POST (base64) binding."""

    def test_round_trip(self):
        """Encoded messages decode to the original XML."""
        assert decode_post(encode_post(SAMPLE_XML)) == SAMPLE_XML

    def test_tolerates_line_wrapping(self):
        """Whitespace inserted by line-wrapping encoders is ignored."""
        encoded = encode_post(SAMPLE_XML)
        wrapped = "\r\n".join(encoded[i : i + 76] for i in range(0, len(encoded), 76))
        assert decode_post(f"  {wrapped}\n") == SAMPLE_XML

    def test_malformed_base64(self):
        """Non-base64 payloads are rejected."""
        with pytest.raises(DecodeError):
            decode_post("%%%")


class TestDecodeMessage:
    """Tests for binding dispatch."""

    def test_dispatches_by_binding(self):
        """Each supported binding uses its own decoder."""
        assert decode_message(Binding.HTTP_REDIRECT, encode_redirect("<a/>")) == "<a/>"
        assert decode_message(Binding.HTTP_POST, encode_post("<b/>")) == "<b/>"

    def test_artifact_unsupported(self):
        """The artifact binding is recognized but never decoded."""
        with pytest.raises(UnsupportedBindingError, match="HTTP-Artifact"):
            decode_message(Binding.HTTP_ARTIFACT, "AAQAAMh48/1oXIM+sDo7Dh2qMp1HM4IF5DaRNmDj6RdUmllwn9jJHyEgIi8=")

    def test_short_name(self):
        """Binding short names drop the URN prefix."""
        assert Binding.HTTP_POST.short_name == "HTTP-POST"
        assert Binding.HTTP_REDIRECT.short_name == "HTTP-Redirect"


class TestBuildRedirectUrl:
    """Tests for HTTP-Redirect URL construction."""

    def test_message_and_relay_state(self):
        """The message comes first and survives URL encoding."""
        encoded = encode_redirect(SAMPLE_XML)
        url = build_redirect_url("https://idp.example.test/sso", PARAM_SAML_REQUEST, encoded, "state-1")

        parts = urlsplit(url)
        assert parts.query.startswith(f"{PARAM_SAML_REQUEST}=")
        params = parse_qs(parts.query)
        assert decode_redirect(params[PARAM_SAML_REQUEST][0]) == SAMPLE_XML
        assert params[PARAM_RELAY_STATE] == ["state-1"]

    def test_preserves_existing_query(self):
        """Unrelated query parameters on the location are kept."""
        url = build_redirect_url("https://idp.example.test/sso?tenant=a", PARAM_SAML_REQUEST, "abc")
        assert parse_qs(urlsplit(url).query) == {PARAM_SAML_REQUEST: ["abc"], "tenant": ["a"]}
