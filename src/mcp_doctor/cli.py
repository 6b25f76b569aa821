"""Command-line entry point: ``mcp-doctor <server_config> [options]``."""

from __future__ import annotations

import argparse
import asyncio
import json
import logging
import sys
from collections.abc import Sequence
from pathlib import Path

from mcp_doctor import __version__
from mcp_doctor.doctor.runner import DoctorRunner
from mcp_doctor.models import (
    DoctorOptions,
    HealthReport,
    OutputFormat,
    Severity,
    TestStatus,
)

logger = logging.getLogger(__name__)

_STATUS_MARK = {
    TestStatus.PASSED: "PASS",
    TestStatus.FAILED: "FAIL",
    TestStatus.SKIPPED: "SKIP",
}


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="mcp-doctor",
        description="Diagnose MCP server compliance and health.",
    )
    parser.add_argument("server_config", help="Path to an mcpServers JSON config file")
    parser.add_argument("--server", default="", help="Server name when the config has several")
    parser.add_argument(
        "--categories",
        default="",
        help="Comma-separated categories to run (e.g. protocol,features)",
    )
    parser.add_argument("--timeout", default="", help="Per-test timeout in milliseconds")
    parser.add_argument(
        "--output",
        default=OutputFormat.CONSOLE,
        choices=[f.value for f in OutputFormat],
        help="Report format (default: console)",
    )
    parser.add_argument("--output-file", default="", help="Write the report to this file")
    parser.add_argument("--verbose", action="store_true", help="Enable debug logging")
    parser.add_argument("--version", action="version", version=f"%(prog)s {__version__}")
    return parser


def render_console(report: HealthReport) -> str:
    """Short plain-text summary: score, categories, issues."""
    counts = report.summary.test_results
    info = report.server_info
    lines = [
        f"MCP Doctor report for {info.name} {info.version}".rstrip(),
        f"Transport: {info.transport}"
        + (f"  Protocol: {info.protocol_version}" if info.protocol_version else ""),
        f"Capabilities: {', '.join(sorted(report.server_capabilities)) or 'none'}",
        "",
        f"Overall score: {report.summary.overall_score}/100",
        (
            f"Tests: {counts.passed} passed, {counts.failed} failed, "
            f"{counts.skipped} skipped ({counts.total} total, {report.metadata.duration_ms}ms)"
        ),
        "",
        "Categories:",
    ]
    for category in report.categories:
        lines.append(
            f"  {category.name:<12} {category.status:<8} "
            f"{category.passed}/{category.total} passed"
        )

    if report.issues:
        lines += ["", "Issues:"]
        for issue in report.issues:
            lines.append(f"  [{issue.severity.upper()}] {issue.test_name}: {issue.message}")
            lines.extend(f"      - {rec}" for rec in issue.recommendations)

    lines += ["", "Results:"]
    for result in report.results:
        lines.append(f"  {_STATUS_MARK[result.status]}  {result.test_name}")

    if report.skipped_capabilities:
        lines += [
            "",
            "Skipped capabilities: " + ", ".join(report.skipped_capabilities),
        ]
    return "\n".join(lines)


def render(report: HealthReport, output_format: OutputFormat) -> str:
    if output_format == OutputFormat.JSON:
        return json.dumps(report.to_dict(), indent=2)
    return render_console(report)


def exit_code(report: HealthReport) -> int:
    """1 when any critical issue was found, else 0."""
    return 1 if any(i.severity == Severity.CRITICAL for i in report.issues) else 0


async def run(options: DoctorOptions) -> HealthReport:
    return await DoctorRunner(options).run()


def main(argv: Sequence[str] | None = None) -> int:
    args = build_parser().parse_args(argv)
    logging.basicConfig(
        level=logging.DEBUG if args.verbose else logging.WARNING,
        format="%(levelname)s %(name)s: %(message)s",
        stream=sys.stderr,
    )

    options = DoctorOptions(
        server_config=args.server_config,
        server_name=args.server,
        categories=args.categories,
        timeout=args.timeout,
        output=args.output,
        output_file=args.output_file,
    )
    report = asyncio.run(run(options))
    text = render(report, OutputFormat(args.output))

    if args.output_file:
        Path(args.output_file).write_text(text + "\n", encoding="utf-8")
        logger.info("Report written to %s", args.output_file)
    else:
        print(text)
    return exit_code(report)


if __name__ == "__main__":
    sys.exit(main())
