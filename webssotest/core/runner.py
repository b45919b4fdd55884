"""Test case dispatch and suite orchestration.

Live round trips are strictly sequential: each one arms the capture endpoint
with a fresh CaptureSlot, drives the target with the web client until the
login flow returns, and consumes the captured message from the slot. Any
harness error while evaluating a test case turns into a CRITICAL result for
that case only; the run continues with the next one.
"""

from __future__ import annotations

import logging
from collections.abc import Sequence
from urllib.parse import urlsplit

from webssotest.core.browser.client import Page, WebClient
from webssotest.core.browser.engine import InteractionEngine
from webssotest.core.browser.interactions import Interaction
from webssotest.core.config import HarnessConfig
from webssotest.core.errors import (
    CaptureAbsentError,
    ConfigurationError,
    UnknownTestCaseKindError,
    WebSSOTestError,
)
from webssotest.core.logging import ProtocolLogger, get_protocol_logger
from webssotest.core.results import ResultAggregator, TestResult, TestStatus
from webssotest.core.saml.bindings import PARAM_SAML_REQUEST, Binding, build_redirect_url, encode_redirect
from webssotest.core.saml.capture import CapturedMessage, CaptureSlot
from webssotest.core.saml.endpoint import CaptureEndpoint, MockEndpointServer, create_capture_app
from webssotest.core.saml.toolkit import build_authn_request
from webssotest.core.target import TargetConfiguration
from webssotest.suites.base import (
    ConfigTestCase,
    MetadataTestCase,
    ResponseTestCase,
    RuleOutcome,
    TestCase,
    TestSuite,
)

logger = logging.getLogger(__name__)


def _url_key(url: str) -> tuple[str, str, str]:
    parts = urlsplit(url)
    return parts.scheme.lower(), parts.netloc.lower(), parts.path.rstrip("/")


class TestCaseDispatcher:
    """Executes single test cases against one target.

    Args:
        target: The system under test.
        endpoint: Capture endpoint receiving the target's messages.
        client: Web client driving the target.
        endpoint_url: Public URL of the capture endpoint (the mock
            entity's ACS location).
        mock_entity_id: Entity ID of the mock entity.
        capture_timeout: Seconds to wait for the captured message once the
            login flow has returned.
        protocol_logger: Receives a protocol-log flow per round trip.
    """

    __test__ = False

    def __init__(
        self,
        target: TargetConfiguration,
        endpoint: CaptureEndpoint,
        client: WebClient,
        endpoint_url: str,
        mock_entity_id: str,
        capture_timeout: float = 5.0,
        protocol_logger: ProtocolLogger | None = None,
    ) -> None:
        self.target = target
        self.endpoint = endpoint
        self.client = client
        self.endpoint_url = endpoint_url
        self.mock_entity_id = mock_entity_id
        self.capture_timeout = capture_timeout
        self.protocol_logger = protocol_logger or get_protocol_logger()
        self.engine = InteractionEngine(client, stop_when=self.is_capture_page)

    def is_capture_page(self, page: Page) -> bool:
        """Whether the page is the capture endpoint's acknowledgement."""
        return _url_key(page.url) == _url_key(self.endpoint_url)

    def execute(self, case: TestCase) -> TestResult | None:
        """Run one test case.

        Returns:
            The result, or None for an object that is not a known test case
            kind, which is logged and skipped.
        """
        name = getattr(case, "name", type(case).__name__)
        logger.info(f"Running test case {name}")
        try:
            outcome = self._evaluate(case)
        except UnknownTestCaseKindError as e:
            logger.error(f"Skipping test case: {e}")
            return None
        except WebSSOTestError as e:
            logger.error(f"Test case {name} could not be evaluated: {e}")
            outcome = RuleOutcome.critical(str(e))
        except Exception as e:
            # A faulty rule must not end the run
            logger.exception(f"Test case {name} raised an unexpected error")
            outcome = RuleOutcome.critical(f"{type(e).__name__}: {e}")

        if outcome.message:
            message = outcome.message
        elif outcome.status == TestStatus.OK:
            message = case.success_message
        else:
            message = case.failed_message

        logger.info(f"Test case {case.name}: {outcome.status}")
        return TestResult(
            status=outcome.status,
            name=case.name,
            description=case.description,
            message=message,
        )

    def _evaluate(self, case: TestCase) -> RuleOutcome:
        if isinstance(case, ConfigTestCase):
            return case.check(self.target)
        if isinstance(case, MetadataTestCase):
            if self.target.metadata is None:
                return RuleOutcome.critical("The target's metadata is not available")
            return case.check(self.target.metadata)
        if isinstance(case, ResponseTestCase):
            message = self._capture_for(case)
            return case.check(message.require_xml(), message.binding)
        raise UnknownTestCaseKindError(f"{type(case).__name__} is not a known test case kind")

    def _capture_for(self, case: ResponseTestCase) -> CapturedMessage:
        if case.sp_initiated:
            if not self.target.start_url:
                raise ConfigurationError("No start URL is configured for the target")
            return self.round_trip(case.name, self.target.start_url, self.target.pre_response_interactions)
        return self.round_trip(case.name, self.authn_request_url(), (), flow_type="authn_request")

    def authn_request_url(self) -> str:
        """URL sending a fresh AuthnRequest to the target's SingleSignOnService.

        Raises:
            ConfigurationError: If the metadata does not publish an
                HTTP-Redirect SingleSignOnService.
        """
        if self.target.metadata is None:
            raise ConfigurationError("The target's metadata is needed to send it an AuthnRequest")
        location = self.target.sso_location(Binding.HTTP_REDIRECT)
        if not location:
            raise ConfigurationError(
                "The target's metadata has no SingleSignOnService for the HTTP-Redirect binding"
            )
        request = build_authn_request(self.mock_entity_id, location, self.endpoint_url)
        return build_redirect_url(location, PARAM_SAML_REQUEST, encode_redirect(request))

    def round_trip(
        self,
        flow_id: str,
        start_url: str,
        interactions: Sequence[Interaction],
        flow_type: str = "login",
    ) -> CapturedMessage:
        """Drive the target and collect the message it sends.

        Raises:
            CaptureAbsentError: If no message reached the endpoint. When the
                login flow itself failed, that failure is raised instead.
            RoundTripInProgressError: If another round trip is in flight.
        """
        slot = CaptureSlot()
        self.protocol_logger.start_flow(flow_id, flow_type)
        try:
            with self.endpoint.round_trip(slot):
                run = self.engine.run(start_url, interactions)
                try:
                    message = slot.take(timeout=0 if run.error else self.capture_timeout)
                except CaptureAbsentError:
                    run.raise_for_error()
                    raise
        finally:
            self.protocol_logger.end_flow()

        if run.error is not None:
            logger.warning(f"A message was captured although the login flow failed: {run.error}")
        return message


class SuiteRunner:
    """Runs test cases of a suite against a target, one at a time.

    The mock endpoint server is only started when a live round trip is
    among the selected test cases, and is always stopped afterwards.

    Args:
        suite: Suite providing the test cases and the mock entity.
        target: The system under test.
        config: Harness settings.
        endpoint: Capture endpoint (created for the suite if not given).
        client: Web client (created from the settings if not given; a
            given client is not closed by the runner).
        server: Server exposing the endpoint (created if not given).
        protocol_logger: Receives protocol-log flows.
    """

    def __init__(
        self,
        suite: TestSuite,
        target: TargetConfiguration,
        config: HarnessConfig | None = None,
        endpoint: CaptureEndpoint | None = None,
        client: WebClient | None = None,
        server: MockEndpointServer | None = None,
        protocol_logger: ProtocolLogger | None = None,
    ) -> None:
        self.suite = suite
        self.target = target
        self.config = config or HarnessConfig()
        self.endpoint = endpoint or CaptureEndpoint(message_param=suite.capture_param)
        self.protocol_logger = protocol_logger or get_protocol_logger()
        self._client = client
        self._server = server

    def _create_client(self) -> WebClient:
        settings = self.config.client
        return WebClient(
            verify=settings.verify_tls,
            timeout=settings.timeout,
            max_auto_posts=settings.max_auto_posts,
            protocol_logger=self.protocol_logger,
        )

    def _create_server(self) -> MockEndpointServer:
        parts = urlsplit(self.suite.mock_endpoint_url)
        port = self.config.endpoint.port or parts.port or (443 if parts.scheme == "https" else 80)
        app = create_capture_app(self.endpoint, parts.path or "/")
        return MockEndpointServer(app, host=self.config.endpoint.host, port=port)

    def _stop_server(self, server: MockEndpointServer) -> None:
        try:
            server.stop()
        except Exception as e:
            # Must not mask the outcome of the run
            logger.error(f"Failed to stop the mock endpoint: {e}")

    def run(self, case_names: Sequence[str] = ()) -> ResultAggregator:
        """Run the selected test cases (all when none are named).

        Raises:
            UnknownTestCaseError: If a named test case does not exist.
            EndpointError: If the mock endpoint cannot be started.
        """
        cases = self.suite.select(case_names)
        results = ResultAggregator(suite=self.suite.name, target=self.target.display_name)
        logger.info(
            f"Running {len(cases)} test case(s) from {self.suite.name} "
            f"against {self.target.display_name}"
        )

        needs_endpoint = any(isinstance(case, ResponseTestCase) for case in cases)
        owns_client = self._client is None
        client = self._client or self._create_client()
        server: MockEndpointServer | None = None
        try:
            if needs_endpoint:
                server = self._server or self._create_server()
                server.start()

            dispatcher = TestCaseDispatcher(
                target=self.target,
                endpoint=self.endpoint,
                client=client,
                endpoint_url=self.suite.mock_endpoint_url,
                mock_entity_id=self.suite.mock_entity_id,
                capture_timeout=self.config.endpoint.capture_timeout,
                protocol_logger=self.protocol_logger,
            )
            for case in cases:
                result = dispatcher.execute(case)
                if result is not None:
                    results.add(result)
        finally:
            if server is not None:
                self._stop_server(server)
            if owns_client:
                client.close()

        counts = results.counts()
        logger.info(", ".join(f"{status}: {count}" for status, count in counts.items()))
        return results
