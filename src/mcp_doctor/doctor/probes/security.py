"""Security probes."""

from __future__ import annotations

import re
from dataclasses import dataclass

from mcp_doctor.connection.base import McpClientPort
from mcp_doctor.doctor.base import fetch_listing, field_of, outcome, skipped
from mcp_doctor.models import (
    Capability,
    DiagnosticResult,
    DoctorConfig,
    Severity,
    TestCategory,
)

_PROBE_TOOL = "nonexistent_tool_for_disclosure_check"

_STACK_TRACE = re.compile(
    r"Traceback \(most recent call last\)"
    r"|File \"[^\"]+\", line \d+"
    r"|\n\s+at [\w.$<>]+ \(.+:\d+:\d+\)"
)
_ABSOLUTE_PATH = re.compile(
    r"(?:^|[\s'\"(=])(/(?:home|Users|usr|var|opt|etc|tmp|root|srv|app)/[^\s'\")]+)"
    r"|\b([A-Za-z]:\\[^\s'\")]+)"
)


def disclosure_findings(text: str) -> list[str]:
    """What an error message leaks: stack traces and absolute filesystem paths."""
    findings: list[str] = []
    if _STACK_TRACE.search(text):
        findings.append("stack trace")
    if _ABSOLUTE_PATH.search(text):
        findings.append("absolute filesystem path")
    return findings


@dataclass(frozen=True, slots=True)
class ErrorDisclosureProbe:
    """Error text from bad tool calls must not expose server internals."""

    name: str = "Security: Error Message Disclosure"
    description: str = "Check that error messages do not leak stack traces or file paths"
    category: str = TestCategory.SECURITY
    severity: Severity = Severity.WARNING
    required_capability: Capability | None = Capability.TOOLS
    spec_section: str = ""

    async def execute(self, client: McpClientPort, config: DoctorConfig) -> DiagnosticResult:
        # (source, error text) pairs to inspect
        errors: list[tuple[str, str]] = []

        targets: list[tuple[str, dict[str, object]]] = [(_PROBE_TOOL, {})]
        try:
            tools = await fetch_listing(client, "list_tools", "tools")
        except Exception as exc:
            errors.append(("tools/list", str(exc)))
        else:
            if tools:
                targets.append((str(field_of(tools[0], "name", "")), {"__invalid_param": 12345}))

        for tool_name, arguments in targets:
            try:
                await client.call_tool(tool_name, arguments)
            except Exception as exc:
                errors.append((tool_name, str(exc)))

        if not errors:
            return skipped(self, "No error responses were produced to inspect")

        leaks: list[str] = []
        for source, text in errors:
            found = disclosure_findings(text)
            if found:
                leaks.append(f"{source}: {', '.join(found)}")
        inspected = [source for source, _ in errors]

        return outcome(
            self,
            not leaks,
            (
                f"Error messages disclose no internals ({len(inspected)} checked)"
                if not leaks
                else f"Error messages disclose internal details ({len(leaks)} found)"
            ),
            {"inspected": inspected, "leaks": leaks},
            ()
            if not leaks
            else (
                "Return generic error messages to clients",
                "Log stack traces and file paths server-side only",
            ),
        )
