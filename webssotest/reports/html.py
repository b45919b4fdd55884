"""Standalone HTML report of a suite run.

The page needs no external assets: styles are inlined, and every value
taken from a result is escaped, since failure messages can quote
target-controlled content.
"""

from __future__ import annotations

import html
from dataclasses import dataclass, field
from datetime import UTC, datetime
from typing import Any

from webssotest.core.results import ResultAggregator, TestStatus


@dataclass
class HTMLReportMetadata:
    title: str = "WebSSOTest Conformance Report"
    suite: str = ""
    target: str = ""
    report_date: datetime = field(default_factory=lambda: datetime.now(UTC))


def _escape(value: Any) -> str:
    return "" if value is None else html.escape(str(value))


def _format_timestamp(ts: datetime | None) -> str:
    return ts.strftime("%Y-%m-%d %H:%M:%S UTC") if ts else "N/A"


def _render_result_row(result: dict[str, Any], index: int) -> str:
    status = str(result.get("status", ""))
    return f"""
            <tr>
                <td class="index">{index}</td>
                <td><span class="badge badge-{_escape(status.lower())}">{_escape(status)}</span></td>
                <td>
                    <div class="case-name">{_escape(result.get("name"))}</div>
                    <div class="case-description">{_escape(result.get("description"))}</div>
                </td>
                <td>{_escape(result.get("message"))}</td>
            </tr>"""


def _render_summary(counts: dict[str, int]) -> str:
    cards = "\n".join(
        f"""            <div class="summary-card">
                <div class="count badge-{status.lower()}">{counts.get(status, 0)}</div>
                <div class="label">{status}</div>
            </div>"""
        for status in (s.value for s in TestStatus)
    )
    return f"""        <div class="summary">
{cards}
        </div>"""


def generate_html_report(
    results: list[dict[str, Any]],
    metadata: HTMLReportMetadata | None = None,
) -> str:
    """Generate a standalone HTML report from test results.

    Args:
        results: Result dictionaries ({name, description, status, message})
        metadata: Optional report metadata for header

    Returns:
        Self-contained HTML document as string
    """
    if metadata is None:
        metadata = HTMLReportMetadata()

    counts = {status.value: 0 for status in TestStatus}
    for result in results:
        status = str(result.get("status", ""))
        if status in counts:
            counts[status] += 1

    rows = "".join(_render_result_row(r, i + 1) for i, r in enumerate(results))
    if not rows:
        rows = """
            <tr><td colspan="4" class="empty">No test cases were run.</td></tr>"""

    return f"""<!DOCTYPE html>
<html lang="en">
<head>
    <meta charset="UTF-8">
    <meta name="viewport" content="width=device-width, initial-scale=1.0">
    <title>{_escape(metadata.title)}</title>
    <style>
        body {{ margin: 0; padding: 24px; background: #f5f5f4; color: #1c1917;
                font: 14px/1.5 system-ui, sans-serif; }}
        main {{ max-width: 1100px; margin: 0 auto; }}
        header {{ border-left: 6px solid #0f766e; background: #fff; padding: 20px 24px; margin-bottom: 20px; }}
        header h1 {{ margin: 0 0 8px; font-size: 24px; }}
        header dl {{ display: grid; grid-template-columns: max-content 1fr; gap: 2px 12px; margin: 0; }}
        header dt {{ font-weight: 600; }}
        header dd {{ margin: 0; }}
        .summary {{ display: flex; gap: 12px; margin-bottom: 20px; }}
        .summary-card {{ flex: 1; background: #fff; padding: 12px; text-align: center; }}
        .summary-card .count {{ font-size: 26px; font-weight: 700; }}
        table {{ width: 100%; border-collapse: collapse; background: #fff; }}
        th, td {{ padding: 10px; text-align: left; vertical-align: top; border-bottom: 1px solid #e7e5e4; }}
        th {{ background: #fafaf9; }}
        .case-name {{ font-family: ui-monospace, monospace; font-weight: 600; }}
        .case-description, .empty {{ color: #78716c; }}
        .empty {{ text-align: center; }}
        .badge {{ display: inline-block; padding: 1px 8px; border-radius: 4px; font-weight: 700; font-size: 12px; }}
        .badge-ok {{ color: #166534; background: #dcfce7; }}
        .badge-warning {{ color: #854d0e; background: #fef9c3; }}
        .badge-error {{ color: #9a3412; background: #ffedd5; }}
        .badge-critical {{ color: #fff; background: #991b1b; }}
        .summary-card .badge-critical {{ color: #991b1b; background: none; }}
    </style>
</head>
<body>
    <main>
        <header>
            <h1>{_escape(metadata.title)}</h1>
            <dl>
                <dt>Suite</dt><dd>{_escape(metadata.suite) or "N/A"}</dd>
                <dt>Target</dt><dd>{_escape(metadata.target) or "N/A"}</dd>
                <dt>Date</dt><dd>{_format_timestamp(metadata.report_date)}</dd>
            </dl>
        </header>
{_render_summary(counts)}
        <table>
            <thead>
                <tr><th>#</th><th>Status</th><th>Test case</th><th>Message</th></tr>
            </thead>
            <tbody>{rows}
            </tbody>
        </table>
    </main>
</body>
</html>
"""


def generate_run_report(results: ResultAggregator) -> str:
    """Generate the HTML report for a suite run."""
    metadata = HTMLReportMetadata(
        suite=results.suite or "",
        target=results.target or "",
        report_date=results.started_at,
    )
    return generate_html_report(results.to_list(), metadata)
