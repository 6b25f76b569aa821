"""Port: the diagnostic test contract, plus helpers shared by every test.

A diagnostic test is any object carrying the descriptor attributes below and
an ``execute`` coroutine. Tests never raise for an ordinary failed check --
they return a failed result. Anything that escapes ``execute`` is treated by
the runner as a crash of that test alone.
"""

from __future__ import annotations

import json
from collections.abc import Iterable
from typing import Any, Protocol

from mcp_doctor.connection.base import McpClientPort
from mcp_doctor.models import (
    Capability,
    DiagnosticResult,
    DoctorConfig,
    Severity,
    TestStatus,
)


class DiagnosticTest(Protocol):
    """Port for one independent, self-contained compliance check."""

    @property
    def name(self) -> str: ...

    @property
    def description(self) -> str: ...

    @property
    def category(self) -> str: ...

    @property
    def severity(self) -> Severity: ...

    @property
    def required_capability(self) -> Capability | None: ...

    @property
    def spec_section(self) -> str: ...

    async def execute(self, client: McpClientPort, config: DoctorConfig) -> DiagnosticResult:
        """Run the check against a connected client and report one result."""
        ...


# ─── Result helpers ───────────────────────────────────────────


def _result(
    test: DiagnosticTest,
    status: TestStatus,
    message: str,
    details: dict[str, object] | None,
    recommendations: Iterable[str],
) -> DiagnosticResult:
    return DiagnosticResult(
        test_name=test.name,
        category=test.category,
        status=status,
        message=message,
        severity=test.severity,
        details=details,
        recommendations=tuple(recommendations),
        required_capability=test.required_capability,
        spec_section=test.spec_section,
    )


def passed(
    test: DiagnosticTest,
    message: str,
    details: dict[str, object] | None = None,
    recommendations: Iterable[str] = (),
) -> DiagnosticResult:
    return _result(test, TestStatus.PASSED, message, details, recommendations)


def failed(
    test: DiagnosticTest,
    message: str,
    details: dict[str, object] | None = None,
    recommendations: Iterable[str] = (),
) -> DiagnosticResult:
    return _result(test, TestStatus.FAILED, message, details, recommendations)


def outcome(
    test: DiagnosticTest,
    success: bool,
    message: str,
    details: dict[str, object] | None = None,
    recommendations: Iterable[str] = (),
) -> DiagnosticResult:
    """Passed or failed depending on ``success``."""
    status = TestStatus.PASSED if success else TestStatus.FAILED
    return _result(test, status, message, details, recommendations)


def skipped(test: DiagnosticTest, reason: str) -> DiagnosticResult:
    """A skip carries no details and never a duration."""
    return _result(test, TestStatus.SKIPPED, f"Test skipped: {reason}", None, ())


def error_text(exc: BaseException) -> str:
    """Human-readable text for an exception; falls back to the type name."""
    return str(exc) or type(exc).__name__


# ─── Payload access ───────────────────────────────────────────
#
# Responses arrive as SDK models, but tests also see plain dicts from
# non-SDK clients. These helpers read either shape.


def field_of(obj: Any, name: str, default: Any = None) -> Any:
    if isinstance(obj, dict):
        return obj.get(name, default)
    return getattr(obj, name, default)


def listing_items(payload: Any, field: str) -> list[Any] | None:
    """The list under ``field`` of a listing response, or None if malformed."""
    value = field_of(payload, field)
    if isinstance(value, (list, tuple)):
        return list(value)
    return None


async def fetch_listing(client: McpClientPort, method: str, field: str) -> list[Any]:
    """Call a listing method and return its items.

    Raises:
        ValueError: If the response does not carry a list under ``field``.
    """
    payload = await getattr(client, method)()
    items = listing_items(payload, field)
    if items is None:
        raise ValueError(f"{method} response has no '{field}' list")
    return items


def content_text(content: Any) -> str:
    """Flatten a message content block (text, model, or dict) into searchable text."""
    if isinstance(content, str):
        return content
    text = field_of(content, "text")
    if isinstance(text, str):
        return text
    if hasattr(content, "model_dump_json"):
        return content.model_dump_json()
    return json.dumps(content, default=str)
