"""SAML binding codec, capture endpoint and document toolkit."""

from webssotest.core.saml.bindings import (
    PARAM_RELAY_STATE,
    PARAM_SAML_ARTIFACT,
    PARAM_SAML_REQUEST,
    PARAM_SAML_RESPONSE,
    Binding,
    build_redirect_url,
    decode_message,
    decode_post,
    decode_redirect,
    encode_post,
    encode_redirect,
)
from webssotest.core.saml.capture import CapturedMessage, CaptureSlot
from webssotest.core.saml.endpoint import (
    CaptureEndpoint,
    MockEndpointServer,
    create_capture_app,
)

__all__ = [
    # Bindings
    "PARAM_RELAY_STATE",
    "PARAM_SAML_ARTIFACT",
    "PARAM_SAML_REQUEST",
    "PARAM_SAML_RESPONSE",
    "Binding",
    "build_redirect_url",
    "decode_message",
    "decode_post",
    "decode_redirect",
    "encode_post",
    "encode_redirect",
    # Capture
    "CaptureEndpoint",
    "CaptureSlot",
    "CapturedMessage",
    "MockEndpointServer",
    "create_capture_app",
]
