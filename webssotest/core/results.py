"""Test results and their aggregation."""

from __future__ import annotations

import json
from dataclasses import dataclass, field
from datetime import UTC, datetime
from enum import StrEnum
from typing import Any


class TestStatus(StrEnum):
    """Outcome of one test case.

    CRITICAL means the test could not be evaluated at all (missing input,
    undecodable message, failed round trip); it is not a harsher ERROR.
    """

    __test__ = False

    OK = "OK"
    WARNING = "WARNING"
    ERROR = "ERROR"
    CRITICAL = "CRITICAL"

    @property
    def is_failure(self) -> bool:
        """Whether the status should fail a run."""
        return self in (TestStatus.ERROR, TestStatus.CRITICAL)


@dataclass(frozen=True)
class TestResult:
    """Result of executing one test case."""

    __test__ = False

    status: TestStatus
    name: str
    description: str
    message: str

    def to_dict(self) -> dict[str, Any]:
        """Convert to dictionary for serialization."""
        return {
            "name": self.name,
            "description": self.description,
            "status": self.status.value,
            "message": self.message,
        }


@dataclass
class ResultAggregator:
    """Collects results in execution order."""

    suite: str | None = None
    target: str | None = None
    started_at: datetime = field(default_factory=lambda: datetime.now(UTC))
    _results: list[TestResult] = field(default_factory=list)

    def add(self, result: TestResult) -> None:
        self._results.append(result)

    @property
    def results(self) -> list[TestResult]:
        return list(self._results)

    def __len__(self) -> int:
        return len(self._results)

    def counts(self) -> dict[str, int]:
        """Number of results per status, every status present."""
        counts = {status.value: 0 for status in TestStatus}
        for result in self._results:
            counts[result.status.value] += 1
        return counts

    @property
    def has_failures(self) -> bool:
        return any(result.status.is_failure for result in self._results)

    def to_list(self) -> list[dict[str, Any]]:
        return [result.to_dict() for result in self._results]

    def to_dict(self) -> dict[str, Any]:
        """Full report: results plus a per-status summary."""
        return {
            "suite": self.suite,
            "target": self.target,
            "started_at": self.started_at.isoformat(),
            "summary": {"total": len(self._results), **self.counts()},
            "results": self.to_list(),
        }

    def to_json(self, indent: int = 2) -> str:
        return json.dumps(self.to_dict(), indent=indent)
