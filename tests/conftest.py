"""Pytest configuration and fixtures.

The driving client is routed into in-process WSGI apps: a fake Identity
Provider at https://example.test and the capture endpoint at the SAML2Int
mock SP URL, so no test opens a network connection unless it means to.
"""

import logging
from collections.abc import Generator

import httpx
import pytest
from flask import Flask, Response, redirect, request

from webssotest.core.browser.client import WebClient
from webssotest.core.logging import ProtocolLogger
from webssotest.core.saml.bindings import (
    PARAM_SAML_RESPONSE,
    build_redirect_url,
    decode_redirect,
    encode_post,
    encode_redirect,
)
from webssotest.core.saml.endpoint import CaptureEndpoint, create_capture_app
from webssotest.core.saml.toolkit import build_response, parse_xml

IDP_BASE = "https://example.test"
IDP_ENTITY_ID = "https://example.test/idp"
CAPTURE_BASE = "http://localhost:8080"
CAPTURE_URL = "http://localhost:8080/sso"

IDP_METADATA = """<?xml version="1.0" encoding="UTF-8"?>
<md:EntityDescriptor xmlns:md="urn:oasis:names:tc:SAML:2.0:metadata"
                     xmlns:ds="http://www.w3.org/2000/09/xmldsig#"
                     entityID="https://example.test/idp">
  <md:IDPSSODescriptor protocolSupportEnumeration="urn:oasis:names:tc:SAML:2.0:protocol">
    <md:KeyDescriptor use="signing">
      <ds:KeyInfo>
        <ds:X509Data>
          <ds:X509Certificate>MIIBszCCAVmgAwIBAgIUFAKE</ds:X509Certificate>
        </ds:X509Data>
      </ds:KeyInfo>
    </md:KeyDescriptor>
    <md:NameIDFormat>urn:oasis:names:tc:SAML:2.0:nameid-format:transient</md:NameIDFormat>
    <md:SingleSignOnService Binding="urn:oasis:names:tc:SAML:2.0:bindings:HTTP-Redirect"
                            Location="https://example.test/sso"/>
    <md:SingleSignOnService Binding="urn:oasis:names:tc:SAML:2.0:bindings:HTTP-POST"
                            Location="https://example.test/sso"/>
  </md:IDPSSODescriptor>
  <md:ContactPerson contactType="technical">
    <md:EmailAddress>mailto:admin@example.test</md:EmailAddress>
  </md:ContactPerson>
</md:EntityDescriptor>
"""

LOGIN_PAGE = """<!DOCTYPE html>
<html>
<head><title>Example IdP login</title></head>
<body>
<form id="login" method="post" action="{action}">
  <input type="hidden" name="flow" value="sso">
  <input type="text" name="user">
  <input type="password" name="pass">
  <input type="checkbox" name="remember" value="yes">
  <button type="submit" name="login" value="1">Log in</button>
</form>
<p><a id="help" href="/help">Need help?</a></p>
<p><span id="banner">Welcome</span></p>
</body>
</html>
"""

AUTO_POST_PAGE = """<!DOCTYPE html>
<html>
<body onload="document.forms[0].submit()">
<form method="post" action="{action}">
  <input type="hidden" name="SAMLResponse" value="{message}">
  <noscript><input type="submit" value="Continue"></noscript>
</form>
</body>
</html>
"""


def create_fake_idp() -> Flask:
    """A scripted Identity Provider.

    /login redirects to the capture endpoint with the HTTP-Redirect binding
    after alice logs in, /post-login answers with an HTTP-POST binding page,
    /sso answers AuthnRequests, /download is not an HTML page.
    """
    app = Flask("fake_idp")

    def credentials_ok() -> bool:
        return request.form.get("user") == "alice" and request.form.get("pass") == "secret"

    @app.route("/login", methods=["GET", "POST"])
    def login() -> Response | str:
        if request.method == "POST" and credentials_ok():
            return redirect(build_redirect_url(CAPTURE_URL, PARAM_SAML_RESPONSE, encode_redirect("<Response/>")))
        return LOGIN_PAGE.format(action="/login")

    @app.route("/post-login", methods=["GET", "POST"])
    def post_login() -> str:
        if request.method == "POST" and credentials_ok():
            xml = build_response(IDP_ENTITY_ID, CAPTURE_URL, CAPTURE_URL)
            return AUTO_POST_PAGE.format(action=CAPTURE_URL, message=encode_post(xml))
        return LOGIN_PAGE.format(action="/post-login")

    @app.route("/download-login", methods=["GET", "POST"])
    def download_login() -> Response | str:
        if request.method == "POST":
            return redirect("/download")
        return LOGIN_PAGE.format(action="/download-login")

    @app.route("/sso")
    def sso() -> str:
        authn_request = parse_xml(decode_redirect(request.args["SAMLRequest"]))
        acs_url = authn_request.get("AssertionConsumerServiceURL")
        xml = build_response(IDP_ENTITY_ID, CAPTURE_URL, acs_url, in_response_to=authn_request.get("ID"))
        return AUTO_POST_PAGE.format(action=acs_url, message=encode_post(xml))

    @app.route("/download")
    def download() -> Response:
        return Response(b"\x00\x01binary", mimetype="application/octet-stream")

    @app.route("/help")
    def help_page() -> str:
        return "<html><head><title>Help</title></head><body><p>Ask an admin.</p></body></html>"

    @app.route("/broken")
    def broken() -> Response:
        return Response("Internal error", status=500, mimetype="text/plain")

    return app


@pytest.fixture(autouse=True)
def reset_package_logger() -> Generator[None, None, None]:
    """Undo handlers installed by configure_logging()."""
    yield
    package_logger = logging.getLogger("webssotest")
    package_logger.handlers.clear()
    package_logger.setLevel(logging.NOTSET)


@pytest.fixture
def idp_app() -> Flask:
    """Fake Identity Provider application."""
    return create_fake_idp()


@pytest.fixture
def capture_endpoint() -> CaptureEndpoint:
    """Capture endpoint for SAMLResponse messages."""
    return CaptureEndpoint()


@pytest.fixture
def capture_app(capture_endpoint: CaptureEndpoint) -> Flask:
    """Capture endpoint mounted at /sso."""
    app = create_capture_app(capture_endpoint, "/sso")
    app.config["TESTING"] = True
    return app


@pytest.fixture
def web_client(idp_app: Flask, capture_app: Flask) -> Generator[WebClient, None, None]:
    """Web client routed into the fake IdP and the capture endpoint."""
    client = WebClient(
        mounts={
            IDP_BASE: httpx.WSGITransport(app=idp_app),
            CAPTURE_BASE: httpx.WSGITransport(app=capture_app),
        },
        protocol_logger=ProtocolLogger(),
    )
    yield client
    client.close()


@pytest.fixture
def idp_metadata() -> str:
    """Metadata document of the fake Identity Provider."""
    return IDP_METADATA
