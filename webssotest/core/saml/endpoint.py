"""Mock capture endpoint.

The capture endpoint stands in for the counterparty of the target under
test: it is published as the mock entity's AssertionConsumerService, so the
target eventually navigates the driving client into it. Whatever protocol
message arrives is decoded and published to the capture slot armed for the
current live round trip.
"""

from __future__ import annotations

import html
import logging
import threading
from collections.abc import Iterator, Mapping
from contextlib import contextmanager
from typing import TYPE_CHECKING

from flask import Flask, Response, request
from werkzeug.exceptions import MethodNotAllowed
from werkzeug.serving import make_server

from webssotest.core.errors import DecodeError, EndpointError, RoundTripInProgressError
from webssotest.core.saml.bindings import PARAM_SAML_ARTIFACT, PARAM_SAML_RESPONSE, Binding, decode_message
from webssotest.core.saml.capture import CapturedMessage, CaptureSlot

if TYPE_CHECKING:
    import ssl

    from werkzeug.serving import BaseWSGIServer

logger = logging.getLogger(__name__)

# Methods routed to the endpoint; HEAD is served through GET. Any other
# method is acknowledged by the 405 handler without reaching the view.
ENDPOINT_METHODS = ["GET", "POST", "PUT", "DELETE", "PATCH", "OPTIONS"]

# Key under which the endpoint is stored in app.extensions
EXTENSION_KEY = "webssotest_capture"

_ACK_PAGE = """<!DOCTYPE html>
<html>
<head><meta charset="utf-8"><title>WebSSOTest capture endpoint</title></head>
<body>
<h1>{heading}</h1>
<p>{detail}</p>
<pre>{content}</pre>
</body>
</html>
"""


class CaptureEndpoint:
    """Recognizes protocol messages and publishes them to the armed slot.

    Args:
        message_param: Parameter carrying the message in the Redirect and
            POST bindings. SAMLResponse when testing an IdP, SAMLRequest
            when testing an SP.
    """

    def __init__(self, message_param: str = PARAM_SAML_RESPONSE) -> None:
        self.message_param = message_param
        self._lock = threading.Lock()
        self._slot: CaptureSlot | None = None

    @property
    def is_armed(self) -> bool:
        """Whether a live round trip is in progress."""
        with self._lock:
            return self._slot is not None

    @contextmanager
    def round_trip(self, slot: CaptureSlot) -> Iterator[CaptureSlot]:
        """Arm the endpoint with a slot for the duration of one round trip.

        Raises:
            RoundTripInProgressError: If another round trip is in flight.
        """
        with self._lock:
            if self._slot is not None:
                raise RoundTripInProgressError(
                    "Another live round trip is already using the capture endpoint"
                )
            slot.reset()
            self._slot = slot
        try:
            yield slot
        finally:
            with self._lock:
                self._slot = None

    def recognize(
        self,
        method: str,
        query: Mapping[str, str],
        form: Mapping[str, str],
    ) -> CapturedMessage | None:
        """Classify an incoming request.

        GET requests are inspected for the Redirect binding, POST requests
        for the POST binding. Either may carry an artifact instead, which is
        recognized but not decoded.

        Returns:
            The captured message, or None if the request carries none.
        """
        if method == "GET":
            params, binding = query, Binding.HTTP_REDIRECT
        elif method == "POST":
            params, binding = form, Binding.HTTP_POST
        else:
            return None

        value = params.get(self.message_param)
        if value:
            try:
                return CapturedMessage(binding=binding, raw_xml=decode_message(binding, value))
            except DecodeError as e:
                logger.warning(f"Received a {binding.short_name} message that could not be decoded: {e}")
                return CapturedMessage(binding=binding, error=str(e))

        if params.get(PARAM_SAML_ARTIFACT):
            logger.warning("Received a message using the HTTP-Artifact binding, which is not supported")
            return CapturedMessage(binding=Binding.HTTP_ARTIFACT)

        return None

    def publish(self, message: CapturedMessage) -> bool:
        """Hand a message to the armed slot.

        Returns:
            False if no round trip was in progress and the message was dropped.
        """
        with self._lock:
            slot = self._slot
        if slot is None:
            logger.warning(
                f"Discarding {message.binding.short_name} message received outside of a live round trip"
            )
            return False
        slot.publish(message)
        logger.info(f"Captured {message.binding.short_name} message")
        return True


def _acknowledgement(message: CapturedMessage | None) -> str:
    if message is None:
        return _ACK_PAGE.format(
            heading="No SAML message received",
            detail="This endpoint only captures SAML protocol messages.",
            content="",
        )
    if message.raw_xml is None:
        if not message.is_supported:
            detail = f"The {message.binding.short_name} binding is not supported; the artifact was not resolved."
        else:
            detail = message.error or "The message could not be decoded."
        return _ACK_PAGE.format(
            heading=f"Received a {html.escape(message.binding.short_name)} message",
            detail=html.escape(detail),
            content="",
        )
    return _ACK_PAGE.format(
        heading=f"Received a {html.escape(message.binding.short_name)} message",
        detail="The message was captured for evaluation.",
        content=html.escape(message.raw_xml),
    )


def create_capture_app(endpoint: CaptureEndpoint, path: str = "/") -> Flask:
    """Create the Flask application serving the capture endpoint.

    Args:
        endpoint: Endpoint receiving the requests.
        path: URL path the endpoint is mounted at.

    Returns:
        Flask application.
    """
    app = Flask(__name__)
    app.extensions[EXTENSION_KEY] = endpoint

    def capture() -> Response:
        message = endpoint.recognize(request.method, request.args, request.form)
        if message is not None:
            endpoint.publish(message)
        else:
            logger.debug(f"{request.method} {request.path} carried no SAML message")
        return Response(_acknowledgement(message), status=200, mimetype="text/html")

    @app.errorhandler(MethodNotAllowed)
    def other_method(error: MethodNotAllowed) -> Response:
        logger.debug(f"{request.method} {request.path} is not a binding method, nothing captured")
        return Response(_acknowledgement(None), status=200, mimetype="text/html")

    app.add_url_rule(path or "/", endpoint="capture", view_func=capture, methods=ENDPOINT_METHODS)
    return app


class MockEndpointServer:
    """Serves the capture app from a background thread.

    Args:
        app: WSGI application to serve.
        host: Interface to bind.
        port: Port to bind; 0 picks a free port.
        ssl_context: Optional TLS context for an https endpoint.
    """

    def __init__(
        self,
        app: Flask,
        host: str = "localhost",
        port: int = 8080,
        ssl_context: ssl.SSLContext | None = None,
    ) -> None:
        self.app = app
        self.host = host
        self._requested_port = port
        self._ssl_context = ssl_context
        self._server: BaseWSGIServer | None = None
        self._thread: threading.Thread | None = None

    @property
    def is_running(self) -> bool:
        """Whether the server thread is serving requests."""
        return self._server is not None

    @property
    def port(self) -> int:
        """Bound port (the requested one until started)."""
        if self._server is not None:
            return self._server.server_port
        return self._requested_port

    @property
    def url(self) -> str:
        """Base URL of the running server."""
        scheme = "https" if self._ssl_context else "http"
        return f"{scheme}://{self.host}:{self.port}"

    def start(self) -> None:
        """Bind the port and start serving.

        Raises:
            EndpointError: If the server is already running or the port
                cannot be bound.
        """
        if self._server is not None:
            raise EndpointError("Mock endpoint server is already running")
        try:
            # werkzeug exits the process on bind failures
            server = make_server(
                self.host,
                self._requested_port,
                self.app,
                threaded=True,
                ssl_context=self._ssl_context,
            )
        except (OSError, SystemExit) as e:
            raise EndpointError(
                f"Could not start mock endpoint on {self.host}:{self._requested_port}: {e}"
            ) from e

        self._server = server
        self._thread = threading.Thread(
            target=server.serve_forever,
            name="webssotest-capture-endpoint",
            daemon=True,
        )
        self._thread.start()
        logger.info(f"Mock endpoint listening on {self.url}")

    def stop(self) -> None:
        """Stop serving and release the port. Safe to call repeatedly."""
        server, thread = self._server, self._thread
        self._server = None
        self._thread = None
        if server is None:
            return
        try:
            server.shutdown()
        finally:
            server.server_close()
            if thread is not None:
                thread.join(timeout=5)
        logger.info("Mock endpoint stopped")

    def __enter__(self) -> MockEndpointServer:
        self.start()
        return self

    def __exit__(self, *args: object) -> None:
        self.stop()
