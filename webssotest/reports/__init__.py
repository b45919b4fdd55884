"""Report generation module for WebSSOTest.

JSON reports come from ResultAggregator.to_json(); this package provides
the HTML format.
"""

from webssotest.reports.html import (
    HTMLReportMetadata,
    generate_html_report,
    generate_run_report,
)

__all__ = [
    "HTMLReportMetadata",
    "generate_html_report",
    "generate_run_report",
]
