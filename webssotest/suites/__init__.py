"""Test suites and their registry."""

from __future__ import annotations

from collections.abc import Callable

from webssotest.core.errors import UnknownSuiteError
from webssotest.suites.base import (
    CaseCollector,
    ConfigTestCase,
    MetadataTestCase,
    ResponseTestCase,
    RuleOutcome,
    TestCase,
    TestCaseKind,
    TestSuite,
)

SuiteFactory = Callable[[], TestSuite]


class SuiteRegistry:
    """Maps stable suite names to suite factories."""

    def __init__(self) -> None:
        self._factories: dict[str, SuiteFactory] = {}

    def register(self, name: str, factory: SuiteFactory) -> None:
        if name in self._factories:
            raise ValueError(f"Test suite {name} is already registered")
        self._factories[name] = factory

    def names(self) -> list[str]:
        return sorted(self._factories)

    def __contains__(self, name: object) -> bool:
        return name in self._factories

    def create(self, name: str) -> TestSuite:
        """Instantiate a suite by name (case-insensitive).

        Raises:
            UnknownSuiteError: If no suite is registered under the name.
        """
        factory = self._factories.get(name)
        if factory is None:
            matches = [key for key in self._factories if key.lower() == name.lower()]
            if not matches:
                available = ", ".join(self.names()) or "none"
                raise UnknownSuiteError(f"Unknown test suite {name!r} (available: {available})")
            factory = self._factories[matches[0]]
        return factory()


def default_registry() -> SuiteRegistry:
    """Registry holding the bundled suites."""
    from webssotest.suites import saml2int

    registry = SuiteRegistry()
    registry.register(saml2int.SUITE_NAME, saml2int.create_suite)
    return registry


__all__ = [
    "CaseCollector",
    "ConfigTestCase",
    "MetadataTestCase",
    "ResponseTestCase",
    "RuleOutcome",
    "SuiteFactory",
    "SuiteRegistry",
    "TestCase",
    "TestCaseKind",
    "TestSuite",
    "default_registry",
]
