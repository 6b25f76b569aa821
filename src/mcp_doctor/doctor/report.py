"""Aggregate diagnostic results into a scored, capability-aware health report.

Everything here is a pure function of its inputs. Scoring rules:

- Each category starts at 100 and loses 30 / 10 / 5 points per critical /
  warning / info failure, floored at 0. A category with no results scores 100.
- The overall score is the weighted mean of category scores, rounded half
  up. Categories missing from the weight table weigh 0.10.
- An empty result list scores 0.
"""

from __future__ import annotations

import math
import re
from collections.abc import Iterable, Sequence
from datetime import UTC, datetime

from mcp_doctor.models import (
    Capability,
    CategorizedIssues,
    DiagnosticResult,
    HealthReport,
    ReportMetadata,
    ReportSummary,
    ResultCounts,
    ServerInfo,
    Severity,
    TestCategorySummary,
    TestStatus,
)

DEFAULT_WEIGHTS: dict[str, float] = {
    "protocol": 0.30,
    "security": 0.25,
    "performance": 0.20,
    "features": 0.15,
    "transport": 0.10,
}
_DEFAULT_WEIGHT = 0.10

_SEVERITY_PENALTY: dict[Severity, int] = {
    Severity.CRITICAL: 30,
    Severity.WARNING: 10,
    Severity.INFO: 5,
}

# Sorting: lower value = reported first
_SEVERITY_ORDER: dict[Severity, int] = {
    Severity.CRITICAL: 0,
    Severity.WARNING: 1,
    Severity.INFO: 2,
}

_NAME_PREFIX = re.compile(r"^([^:]+):")


def generate_report(
    results: Sequence[DiagnosticResult],
    server_info: ServerInfo,
    *,
    duration_ms: int,
    server_capabilities: Iterable[Capability] | None = None,
    timestamp: str | None = None,
) -> HealthReport:
    """Build a HealthReport from a finished result list.

    When ``server_capabilities`` is None the set is derived from which
    capability-gated tests passed.
    """
    results = tuple(results)
    capabilities = (
        frozenset(server_capabilities)
        if server_capabilities is not None
        else derive_capabilities(results)
    )
    categories = summarize_categories(results)
    issues = extract_issues(results)
    skipped_count = sum(1 for r in results if r.status == TestStatus.SKIPPED)

    return HealthReport(
        server_info=server_info,
        server_capabilities=capabilities,
        skipped_capabilities=skipped_capabilities(results),
        metadata=ReportMetadata(
            timestamp=timestamp or datetime.now(tz=UTC).isoformat(),
            duration_ms=duration_ms,
            test_count=len(results),
            skipped_test_count=skipped_count,
        ),
        summary=ReportSummary(
            test_results=ResultCounts(
                passed=sum(1 for r in results if r.status == TestStatus.PASSED),
                failed=sum(1 for r in results if r.status == TestStatus.FAILED),
                skipped=skipped_count,
                total=len(results),
            ),
            overall_score=overall_score(categories, results),
        ),
        categories=categories,
        issues=issues,
        results=results,
        categorized_issues=CategorizedIssues(
            critical_failures=tuple(i for i in issues if i.severity == Severity.CRITICAL),
            spec_warnings=tuple(i for i in issues if i.severity == Severity.WARNING),
            optimizations=tuple(i for i in issues if i.severity == Severity.INFO),
        ),
    )


def category_of(result: DiagnosticResult) -> str:
    """The result's category, or one parsed from a "Category: Test" name."""
    if result.category:
        return str(result.category)
    match = _NAME_PREFIX.match(result.test_name)
    return match.group(1).strip().lower() if match else "general"


def summarize_categories(results: Iterable[DiagnosticResult]) -> tuple[TestCategorySummary, ...]:
    """Roll results up per category, sorted by category name."""
    buckets: dict[str, list[DiagnosticResult]] = {}
    for result in results:
        buckets.setdefault(category_of(result), []).append(result)

    return tuple(_summarize(name, buckets[name]) for name in sorted(buckets))


def _summarize(name: str, results: list[DiagnosticResult]) -> TestCategorySummary:
    passed = failed = warnings = 0
    for result in results:
        if result.status == TestStatus.PASSED:
            passed += 1
        elif result.status == TestStatus.FAILED:
            if result.severity == Severity.WARNING:
                warnings += 1
            else:
                failed += 1

    if failed > 0:
        status = "failed"
    elif warnings > 0:
        status = "warning"
    elif passed == 0:
        status = "skipped"
    else:
        status = "passed"

    return TestCategorySummary(
        name=name,
        passed=passed,
        failed=failed,
        warnings=warnings,
        total=len(results),
        duration_ms=sum(r.duration_ms for r in results),
        status=status,
    )


def category_score(category: TestCategorySummary, results: Iterable[DiagnosticResult]) -> int:
    if category.total == 0:
        return 100

    score = 100
    for result in results:
        if result.status == TestStatus.FAILED and category_of(result) == category.name:
            score -= _SEVERITY_PENALTY.get(result.severity, 0)
    return max(0, score)


def overall_score(
    categories: Sequence[TestCategorySummary],
    results: Sequence[DiagnosticResult],
) -> int:
    if not results:
        return 0

    total_score = 0.0
    total_weight = 0.0
    for category in categories:
        weight = DEFAULT_WEIGHTS.get(category.name.lower(), _DEFAULT_WEIGHT)
        total_score += category_score(category, results) * weight
        total_weight += weight

    if total_weight <= 0:
        return 0
    return _round_half_up(total_score / total_weight)


def _round_half_up(value: float) -> int:
    return int(math.floor(value + 0.5))


def extract_issues(results: Iterable[DiagnosticResult]) -> tuple[DiagnosticResult, ...]:
    """Failed results, critical first. Ties keep their original order."""
    failures = [r for r in results if r.status == TestStatus.FAILED]
    return tuple(sorted(failures, key=lambda r: _SEVERITY_ORDER.get(r.severity, 99)))


def derive_capabilities(results: Iterable[DiagnosticResult]) -> frozenset[Capability]:
    """A capability is supported if any test requiring it passed."""
    return frozenset(
        r.required_capability
        for r in results
        if r.required_capability is not None and r.status == TestStatus.PASSED
    )


def skipped_capabilities(results: Iterable[DiagnosticResult]) -> tuple[Capability, ...]:
    """Capabilities whose gated results were all skipped, sorted."""
    statuses: dict[Capability, set[TestStatus]] = {}
    for result in results:
        if result.required_capability is not None:
            statuses.setdefault(result.required_capability, set()).add(result.status)

    return tuple(
        sorted(cap for cap, seen in statuses.items() if seen == {TestStatus.SKIPPED})
    )
