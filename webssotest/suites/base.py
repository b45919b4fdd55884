"""Test case and test suite model.

A test case is one of three kinds, each evaluating a different artifact:

- ConfigTestCase: the target configuration itself, no network traffic
- MetadataTestCase: the target's published metadata document
- ResponseTestCase: a protocol message captured during a live round trip

Rules are plain functions returning a RuleOutcome. Suite modules declare
them with a CaseCollector:

    cases = CaseCollector()

    @cases.metadata(
        description="Test if the metadata contains a NameIDFormat element",
        success_message="The metadata contains a NameIDFormat element",
        failed_message="The metadata contains no NameIDFormat element",
    )
    def metadata_name_id_format(metadata):
        ...
"""

from __future__ import annotations

from collections.abc import Callable, Sequence
from dataclasses import dataclass, field
from enum import StrEnum
from typing import ClassVar

from lxml import etree

from webssotest.core.errors import UnknownTestCaseError
from webssotest.core.results import TestStatus
from webssotest.core.saml.bindings import PARAM_SAML_RESPONSE, Binding
from webssotest.core.saml.toolkit import build_sp_metadata
from webssotest.core.target import TargetConfiguration


class TestCaseKind(StrEnum):
    """What a test case evaluates."""

    __test__ = False

    CONFIG = "config"
    METADATA = "metadata"
    RESPONSE = "response"


@dataclass(frozen=True)
class RuleOutcome:
    """Status returned by a rule, with an optional explanation.

    Without a message, the test case's success or failed message is used.
    """

    status: TestStatus
    message: str | None = None

    @classmethod
    def ok(cls, message: str | None = None) -> RuleOutcome:
        return cls(TestStatus.OK, message)

    @classmethod
    def warning(cls, message: str | None = None) -> RuleOutcome:
        return cls(TestStatus.WARNING, message)

    @classmethod
    def error(cls, message: str | None = None) -> RuleOutcome:
        return cls(TestStatus.ERROR, message)

    @classmethod
    def critical(cls, message: str | None = None) -> RuleOutcome:
        return cls(TestStatus.CRITICAL, message)


ConfigRule = Callable[[TargetConfiguration], RuleOutcome]
MetadataRule = Callable[[etree._Element], RuleOutcome]
ResponseRule = Callable[[str, Binding], RuleOutcome]


@dataclass(frozen=True)
class ConfigTestCase:
    """Evaluates the target configuration."""

    name: str
    description: str
    success_message: str
    failed_message: str
    check: ConfigRule

    kind: ClassVar[TestCaseKind] = TestCaseKind.CONFIG


@dataclass(frozen=True)
class MetadataTestCase:
    """Evaluates the target's metadata document.

    The rule is never called without a document; the dispatcher reports a
    missing document as CRITICAL.
    """

    name: str
    description: str
    success_message: str
    failed_message: str
    check: MetadataRule

    kind: ClassVar[TestCaseKind] = TestCaseKind.METADATA


@dataclass(frozen=True)
class ResponseTestCase:
    """Evaluates the message captured from a live round trip.

    Attributes:
        sp_initiated: Start the round trip from the target's start URL and
            replay the configured interactions. Otherwise the harness sends
            an AuthnRequest straight to the target's SingleSignOnService.
    """

    name: str
    description: str
    success_message: str
    failed_message: str
    check: ResponseRule
    sp_initiated: bool = True

    kind: ClassVar[TestCaseKind] = TestCaseKind.RESPONSE


TestCase = ConfigTestCase | MetadataTestCase | ResponseTestCase


@dataclass
class TestSuite:
    """A named collection of test cases and the mock entity they use."""

    __test__ = False

    name: str
    description: str
    mock_entity_id: str
    mock_endpoint_url: str
    test_cases: list[TestCase] = field(default_factory=list)
    capture_param: str = PARAM_SAML_RESPONSE

    def get(self, name: str) -> TestCase:
        """Look up a test case by name.

        Raises:
            UnknownTestCaseError: If the suite has no such test case.
        """
        for case in self.test_cases:
            if case.name == name:
                return case
        raise UnknownTestCaseError(f"Test suite {self.name} has no test case named {name!r}")

    def select(self, names: Sequence[str] = ()) -> list[TestCase]:
        """The named test cases in the given order, or all when none are named."""
        if not names:
            return list(self.test_cases)
        return [self.get(name) for name in names]

    def mock_metadata(self, certificate_b64: str | None = None) -> str:
        """Metadata of the mock entity, publishing the capture endpoint."""
        return build_sp_metadata(self.mock_entity_id, self.mock_endpoint_url, certificate_b64)


class CaseCollector:
    """Decorators turning rule functions into test cases.

    The test case is named after the decorated function, which is returned
    unchanged so it can be tested directly.
    """

    def __init__(self) -> None:
        self.cases: list[TestCase] = []

    def _names(self) -> set[str]:
        return {case.name for case in self.cases}

    def _add(self, case: TestCase) -> None:
        if case.name in self._names():
            raise ValueError(f"Duplicate test case name: {case.name}")
        self.cases.append(case)

    def config(
        self,
        description: str,
        success_message: str,
        failed_message: str,
    ) -> Callable[[ConfigRule], ConfigRule]:
        def decorator(func: ConfigRule) -> ConfigRule:
            self._add(ConfigTestCase(func.__name__, description, success_message, failed_message, func))
            return func
        return decorator

    def metadata(
        self,
        description: str,
        success_message: str,
        failed_message: str,
    ) -> Callable[[MetadataRule], MetadataRule]:
        def decorator(func: MetadataRule) -> MetadataRule:
            self._add(MetadataTestCase(func.__name__, description, success_message, failed_message, func))
            return func
        return decorator

    def response(
        self,
        description: str,
        success_message: str,
        failed_message: str,
        sp_initiated: bool = True,
    ) -> Callable[[ResponseRule], ResponseRule]:
        def decorator(func: ResponseRule) -> ResponseRule:
            self._add(
                ResponseTestCase(
                    func.__name__, description, success_message, failed_message, func, sp_initiated
                )
            )
            return func
        return decorator
