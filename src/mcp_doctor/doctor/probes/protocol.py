"""Protocol probes: connectivity, version negotiation and JSON-RPC conformance."""

from __future__ import annotations

import asyncio
import time
from dataclasses import dataclass
from typing import Any

from mcp.shared.version import SUPPORTED_PROTOCOL_VERSIONS
from mcp.types import LATEST_PROTOCOL_VERSION

from mcp_doctor.connection.base import McpClientPort
from mcp_doctor.doctor.base import (
    error_text,
    failed,
    field_of,
    listing_items,
    outcome,
    passed,
)
from mcp_doctor.models import (
    Capability,
    DiagnosticResult,
    DoctorConfig,
    Severity,
    TestCategory,
)

# Tool names no real server should expose
_UNKNOWN_TOOL = "non_existent_tool_xyz"
_INVALID_TOOL = "invalid_tool_name_12345"
_MISSING_METHOD_TOOL = "definitely_non_existent_method_12345"

_UNSUPPORTED_MARKERS = ("not implemented", "not supported", "method not found")
_ERROR_TYPE_MARKERS = ("not found", "unknown", "invalid")

_MAX_ERROR_RESPONSE_CHARS = 500
_MAX_ERROR_CODE_CHARS = 1000
_SLOW_ROUND_TRIP_MS = 50


@dataclass(frozen=True, slots=True)
class BasicConnectivityProbe:
    """Round-trip a ping. Works for every server, whatever it offers."""

    name: str = "Protocol: Basic Connectivity"
    description: str = "Test that the server answers a ping request"
    category: str = TestCategory.PROTOCOL
    severity: Severity = Severity.CRITICAL
    required_capability: Capability | None = None
    spec_section: str = "Basic Utilities: Ping"

    async def execute(self, client: McpClientPort, config: DoctorConfig) -> DiagnosticResult:
        start = time.perf_counter()
        try:
            await client.ping()
        except Exception as exc:
            return failed(
                self,
                "Server did not answer ping",
                {"error": error_text(exc), "transport": client.server_info.transport},
                [
                    "Verify the server handles the ping request",
                    "Review server logs for errors",
                ],
            )

        elapsed_ms = int((time.perf_counter() - start) * 1000)
        return passed(
            self,
            f"{client.server_info.transport} transport connected successfully ({elapsed_ms}ms)",
            {"transport": client.server_info.transport, "round_trip_ms": elapsed_ms},
        )


@dataclass(frozen=True, slots=True)
class TransportErrorHandlingProbe:
    """Slow round trips and failed concurrent listings are warnings.

    Only a ping that errors outright fails the probe.
    """

    name: str = "Protocol: Transport Error Handling"
    description: str = "Test handling of transport-level errors and concurrent requests"
    category: str = TestCategory.PROTOCOL
    severity: Severity = Severity.WARNING
    required_capability: Capability | None = None
    spec_section: str = "Transports"

    async def execute(self, client: McpClientPort, config: DoctorConfig) -> DiagnosticResult:
        errors: list[str] = []
        warnings: list[str] = []

        start = time.perf_counter()
        try:
            await client.ping()
        except Exception as exc:
            errors.append(f"Unexpected error during round trip: {error_text(exc)}")
        else:
            elapsed_ms = int((time.perf_counter() - start) * 1000)
            if elapsed_ms > _SLOW_ROUND_TRIP_MS:
                warnings.append(
                    f"Server responds slower than {_SLOW_ROUND_TRIP_MS}ms - "
                    "consider performance optimization"
                )

        outcomes = await asyncio.gather(
            client.list_tools(),
            client.list_resources(),
            client.list_prompts(),
            return_exceptions=True,
        )
        failures = sum(1 for o in outcomes if isinstance(o, BaseException))
        if failures:
            warnings.append(f"{failures} out of {len(outcomes)} concurrent requests failed")

        if errors:
            message = (
                f"Transport error handling issues detected ({len(errors)} errors, "
                f"{len(warnings)} warnings)"
            )
        elif warnings:
            message = f"Transport working with minor issues ({len(warnings)} warnings)"
        else:
            message = "Transport error handling working correctly"

        return outcome(
            self,
            not errors,
            message,
            {"errors": errors, "warnings": warnings},
            [f"Fix error: {e}" for e in errors] + [f"Address warning: {w}" for w in warnings],
        )


@dataclass(frozen=True, slots=True)
class VersionNegotiationProbe:
    """The negotiated version must be a known one and every listing answers consistently."""

    name: str = "Protocol: Version Negotiation"
    description: str = "Test negotiation with current MCP protocol version"
    category: str = TestCategory.PROTOCOL
    severity: Severity = Severity.WARNING
    required_capability: Capability | None = None
    spec_section: str = "Lifecycle: Version Negotiation"

    async def execute(self, client: McpClientPort, config: DoctorConfig) -> DiagnosticResult:
        findings: list[str] = []
        validations: list[str] = []
        recommendations: list[str] = []

        negotiated = client.server_info.protocol_version
        if negotiated in SUPPORTED_PROTOCOL_VERSIONS:
            validations.append(f"Negotiated supported protocol version {negotiated}")
            if negotiated != LATEST_PROTOCOL_VERSION:
                recommendations.append(
                    f"Consider supporting the latest protocol version {LATEST_PROTOCOL_VERSION}"
                )
        else:
            findings.append(
                f"Negotiated protocol version '{negotiated}' is not one of "
                f"{', '.join(SUPPORTED_PROTOCOL_VERSIONS)}"
            )

        for method, field in (
            ("list_tools", "tools"),
            ("list_resources", "resources"),
            ("list_prompts", "prompts"),
        ):
            try:
                payload = await getattr(client, method)()
            except Exception as exc:
                text = error_text(exc).lower()
                if any(marker in text for marker in _UNSUPPORTED_MARKERS):
                    validations.append(f"{field} endpoint properly indicates it is not implemented")
                else:
                    findings.append(f"{field} endpoint error handling may indicate version issues")
                continue

            if listing_items(payload, field) is None:
                findings.append(f"{field} endpoint response format inconsistent")
            else:
                validations.append(f"{field} endpoint follows consistent protocol format")

        if findings:
            recommendations[:0] = [
                "Ensure server implements current MCP protocol version",
                "Verify all endpoints follow consistent format",
            ]
            message = (
                f"Protocol version issues detected ({len(findings)} findings, "
                f"{len(validations)} validations)"
            )
        else:
            message = f"Protocol version negotiation successful ({len(validations)} validations)"

        return outcome(
            self,
            not findings,
            message,
            {
                "protocol_version": negotiated,
                "findings": findings,
                "validations": validations,
            },
            recommendations,
        )


@dataclass(frozen=True, slots=True)
class MessageFormatProbe:
    name: str = "Protocol: JSON-RPC Message Format Validation"
    description: str = "Validate JSON-RPC 2.0 message structure compliance"
    category: str = TestCategory.PROTOCOL
    severity: Severity = Severity.CRITICAL
    required_capability: Capability | None = Capability.TOOLS
    spec_section: str = "MCP Spec §2.1"

    async def execute(self, client: McpClientPort, config: DoctorConfig) -> DiagnosticResult:
        issues: list[str] = []
        validations: list[str] = []

        try:
            response = await client.list_tools()
        except Exception as exc:
            return failed(
                self,
                "JSON-RPC format validation failed",
                {"error": error_text(exc)},
                ["Check basic server connectivity", "Verify JSON-RPC implementation"],
            )

        tools = listing_items(response, "tools")
        if tools is None:
            issues.append("Response missing expected tools field or not an array")
        else:
            validations.append("Response contains expected tools array")
            for index, tool in enumerate(tools[:3]):
                tool_name = field_of(tool, "name")
                if isinstance(tool_name, str) and tool_name:
                    validations.append(f"Tool {index} properly structured with name: {tool_name}")
                else:
                    issues.append(f"Tool {index} missing required 'name' field or not a string")

        if field_of(response, "error") is not None:
            issues.append("Successful response contains error field")

        try:
            await client.call_tool(_UNKNOWN_TOOL, {})
        except Exception as exc:
            text = error_text(exc)
            if _UNKNOWN_TOOL in text:
                validations.append("Error responses contain proper tool identification")
            elif any(marker in text.lower() for marker in ("not found", "unknown")):
                validations.append("Error responses properly indicate missing tools")
            else:
                issues.append("Error response format unclear or non-standard")
        else:
            issues.append(f"Calling unknown tool '{_UNKNOWN_TOOL}' did not produce an error")

        return outcome(
            self,
            not issues,
            (
                f"JSON-RPC format validation passed ({len(validations)} checks)"
                if not issues
                else (
                    f"JSON-RPC format issues detected ({len(issues)} issues, "
                    f"{len(validations)} valid)"
                )
            ),
            {"issues": issues, "validations": validations},
            ()
            if not issues
            else (
                "Ensure all responses follow JSON-RPC 2.0 specification",
                "Check error handling implementation",
            ),
        )


async def _first_tool_name(client: McpClientPort) -> str | None:
    tools = listing_items(await client.list_tools(), "tools") or []
    if not tools:
        return None
    return field_of(tools[0], "name")


async def _error_from_call(
    client: McpClientPort, name: str, arguments: dict[str, Any]
) -> str | None:
    """Error text raised by a tool call, or None if the call succeeded."""
    try:
        await client.call_tool(name, arguments)
    except Exception as exc:
        return str(exc)
    return None


@dataclass(frozen=True, slots=True)
class ErrorResponseFormatProbe:
    """Invalid calls must come back with short, non-empty error messages."""

    name: str = "Protocol: Error Response Format"
    description: str = "Test standard error response format and error codes"
    category: str = TestCategory.PROTOCOL
    severity: Severity = Severity.WARNING
    required_capability: Capability | None = Capability.TOOLS
    spec_section: str = "MCP Spec §2.3"

    async def execute(self, client: McpClientPort, config: DoctorConfig) -> DiagnosticResult:
        issues: list[str] = []
        validations: list[str] = []

        checks: list[tuple[str, str | None, dict[str, Any]]] = [
            ("Invalid tool name", _INVALID_TOOL, {}),
        ]
        try:
            first_tool = await _first_tool_name(client)
        except Exception as exc:
            issues.append(f"Invalid tool arguments: could not list tools ({error_text(exc)})")
        else:
            checks.append(("Invalid tool arguments", first_tool, {"invalid_param": "test"}))

        for label, tool_name, arguments in checks:
            if tool_name is None:
                validations.append(f"{label}: Skipped - no tools to test")
                continue
            message = await _error_from_call(client, tool_name, arguments)
            if message is None:
                issues.append(f"{label}: No error returned")
            elif not message:
                issues.append(f"{label}: Empty error message")
            elif len(message) >= _MAX_ERROR_RESPONSE_CHARS:
                issues.append(f"{label}: Error message too long ({len(message)} chars)")
            else:
                validations.append(f"{label}: Proper error message received")

        return outcome(
            self,
            not issues,
            (
                f"Error response format validation passed ({len(validations)} checks)"
                if not issues
                else f"Error response format issues detected ({len(issues)} issues)"
            ),
            {"issues": issues, "validations": validations},
            ()
            if not issues
            else (
                "Ensure error messages are descriptive but concise",
                "Validate error handling for invalid inputs",
            ),
        )


@dataclass(frozen=True, slots=True)
class ErrorCodeComplianceProbe:
    name: str = "Protocol: JSON-RPC Error Code Compliance"
    description: str = "Test standard JSON-RPC error codes and protocol-level error handling"
    category: str = TestCategory.PROTOCOL
    severity: Severity = Severity.WARNING
    required_capability: Capability | None = Capability.TOOLS
    spec_section: str = "JSON-RPC 2.0 §5.1"

    async def execute(self, client: McpClientPort, config: DoctorConfig) -> DiagnosticResult:
        issues: list[str] = []
        validations: list[str] = []

        checks: list[tuple[str, str | None, dict[str, Any]]] = [
            ("Method Not Found (-32601)", _MISSING_METHOD_TOOL, {}),
        ]
        try:
            first_tool = await _first_tool_name(client)
        except Exception as exc:
            issues.append(f"Baseline test failed: {error_text(exc)}")
        else:
            validations.append("Baseline: Normal operations work correctly")
            checks.append(
                (
                    "Invalid Params (-32602)",
                    first_tool,
                    {"__invalid_param": None, "__another_bad_param": None},
                )
            )

        for label, tool_name, arguments in checks:
            if tool_name is None:
                validations.append(f"{label}: Skipped - no tools to test")
                continue
            message = await _error_from_call(client, tool_name, arguments)
            if message is None:
                issues.append(f"{label}: No error returned")
            elif not message:
                issues.append(f"{label}: Empty error message")
            elif len(message) >= _MAX_ERROR_CODE_CHARS:
                issues.append(f"{label}: Error message too long ({len(message)} chars)")
            else:
                validations.append(f"{label}: Proper error response received")
                if any(marker in message.lower() for marker in _ERROR_TYPE_MARKERS):
                    validations.append(f"{label}: Error message indicates proper error type")

        return outcome(
            self,
            not issues,
            (
                f"JSON-RPC error code validation passed ({len(validations)} checks)"
                if not issues
                else f"JSON-RPC error code issues detected ({len(issues)} issues)"
            ),
            {"issues": issues, "validations": validations},
            ()
            if not issues
            else (
                "Ensure -32601 for method not found",
                "Ensure -32602 for invalid parameters",
            ),
        )


@dataclass(frozen=True, slots=True)
class RequestIdHandlingProbe:
    """Concurrent requests on one session must each get their own response.

    Method-level failures are acceptable; a request that never resolves
    points at broken request id tracking.
    """

    name: str = "Protocol: Request ID Handling"
    description: str = "Test request ID uniqueness and proper response matching"
    category: str = TestCategory.PROTOCOL
    severity: Severity = Severity.WARNING
    required_capability: Capability | None = None
    spec_section: str = "JSON-RPC 2.0 §4"

    async def execute(self, client: McpClientPort, config: DoctorConfig) -> DiagnosticResult:
        issues: list[str] = []
        validations: list[str] = []

        start = time.perf_counter()
        outcomes = await asyncio.gather(
            client.list_tools(),
            client.list_resources(),
            client.list_prompts(),
            client.list_tools(),
            return_exceptions=True,
        )
        duration_ms = int((time.perf_counter() - start) * 1000)

        errors = [o for o in outcomes if isinstance(o, BaseException)]
        succeeded = len(outcomes) - len(errors)
        if succeeded:
            validations.append(f"{succeeded} concurrent requests handled successfully")
        if errors:
            if any(_is_timeout(e) for e in errors):
                issues.append("Some requests timed out - potential ID tracking issues")
            else:
                validations.append("Failed requests have proper error messages")

        if duration_ms > config.timeouts.test_execution:
            issues.append(f"Concurrent requests took {duration_ms}ms - longer than expected")
        else:
            validations.append(f"Concurrent requests completed in {duration_ms}ms")

        return outcome(
            self,
            not issues,
            (
                f"Request ID handling validation passed ({len(validations)} checks)"
                if not issues
                else f"Request ID handling issues detected ({len(issues)} issues)"
            ),
            {
                "successful": succeeded,
                "failed": len(errors),
                "duration_ms": duration_ms,
                "issues": issues,
                "validations": validations,
            },
            ()
            if not issues
            else ("Implement proper request ID tracking", "Ensure concurrent request handling"),
        )


def _is_timeout(exc: BaseException) -> bool:
    if isinstance(exc, TimeoutError):
        return True
    text = str(exc).lower()
    return "timeout" in text or "timed out" in text
