"""Tools feature probes. All of them require the ``tools`` capability."""

from __future__ import annotations

import time
from collections import Counter
from dataclasses import dataclass
from typing import Any

from mcp_doctor.connection.base import McpClientPort
from mcp_doctor.doctor.base import (
    error_text,
    failed,
    fetch_listing,
    field_of,
    outcome,
    passed,
    skipped,
)
from mcp_doctor.models import (
    Capability,
    DiagnosticResult,
    DoctorConfig,
    Severity,
    TestCategory,
)

# Name fragments of tools that are safe to call with dummy arguments, best first
_SAFE_TOOL_NAMES = ("echo", "ping", "test", "hello", "version", "status")

_READ_ONLY_PATTERNS = ("get", "read", "list", "view", "show", "check", "search", "find")

_LIST_FAILED_HINT = "Check server tools/list implementation"


async def _list_tools(client: McpClientPort) -> list[Any]:
    return await fetch_listing(client, "list_tools", "tools")


def _duplicates(values: list[str]) -> list[str]:
    return sorted(v for v, n in Counter(values).items() if n > 1)


@dataclass(frozen=True, slots=True)
class ToolsCapabilityProbe:
    name: str = "Tools: Capability Declaration"
    description: str = "Verify server declares tools capability correctly"
    category: str = TestCategory.FEATURES
    severity: Severity = Severity.CRITICAL
    required_capability: Capability | None = Capability.TOOLS
    spec_section: str = "MCP Spec §4.1"

    async def execute(self, client: McpClientPort, config: DoctorConfig) -> DiagnosticResult:
        try:
            tools = await _list_tools(client)
        except Exception as exc:
            return failed(
                self,
                "Failed to verify tools capability declaration",
                {"error": error_text(exc)},
                ["Ensure server implements tools/list method according to MCP specification"],
            )

        declared = client.declared_capabilities
        if declared is not None and Capability.TOOLS not in declared:
            return failed(
                self,
                "Server serves tools/list but does not declare the tools capability",
                {"tools_count": len(tools)},
                ["Declare the 'tools' capability in the initialize response"],
            )

        list_changed = field_of(client.raw_capabilities.get("tools") or {}, "listChanged")
        suffix = f" (listChanged: {list_changed})" if list_changed is not None else ""
        return passed(
            self,
            f"Tools capability declared correctly{suffix}",
            {"list_changed": list_changed, "tools_count": len(tools)},
        )


@dataclass(frozen=True, slots=True)
class ToolListingProbe:
    name: str = "Tools: Tool Listing"
    description: str = "Verify tool listing functionality"
    category: str = TestCategory.FEATURES
    severity: Severity = Severity.WARNING
    required_capability: Capability | None = Capability.TOOLS
    spec_section: str = "MCP Spec §4.1.1"

    async def execute(self, client: McpClientPort, config: DoctorConfig) -> DiagnosticResult:
        try:
            tools = await _list_tools(client)
        except Exception as exc:
            return failed(
                self, "Failed to list tools", {"error": error_text(exc)}, [_LIST_FAILED_HINT]
            )

        if not tools:
            return failed(
                self,
                "No tools found",
                {"tool_count": 0},
                ["Ensure server implements at least one tool", "Check server tool registration"],
            )

        names = [str(field_of(t, "name", "")) for t in tools]
        dupes = _duplicates(names)
        if dupes:
            return failed(
                self,
                f"Duplicate tool names found: {', '.join(dupes)}",
                {"duplicates": dupes, "tool_count": len(tools)},
                ["Ensure all tool names are unique"],
            )

        return passed(
            self,
            f"{len(tools)} tools found",
            {"tool_count": len(tools), "tool_names": names[:5]},
        )


def _schema_issues(tool: Any) -> list[str]:
    issues: list[str] = []
    name = field_of(tool, "name")
    if not name or not isinstance(name, str):
        issues.append("missing or invalid name")

    description = field_of(tool, "description")
    if not description or not isinstance(description, str):
        issues.append("missing or invalid description")

    schema = field_of(tool, "inputSchema")
    if not isinstance(schema, dict):
        issues.append("missing or invalid inputSchema")
    elif not schema.get("type"):
        issues.append("inputSchema missing type field")
    return issues


@dataclass(frozen=True, slots=True)
class ToolSchemaProbe:
    name: str = "Tools: Schema Validation"
    description: str = "Verify tool schemas are valid"
    category: str = TestCategory.FEATURES
    severity: Severity = Severity.WARNING
    required_capability: Capability | None = Capability.TOOLS
    spec_section: str = "MCP Spec §4.1.2"

    async def execute(self, client: McpClientPort, config: DoctorConfig) -> DiagnosticResult:
        try:
            tools = await _list_tools(client)
        except Exception as exc:
            return failed(self, "Failed to validate tool schemas", {"error": error_text(exc)})

        if not tools:
            return skipped(self, "No tools available to validate")

        issues: list[str] = []
        valid: list[str] = []
        for tool in tools:
            tool_name = str(field_of(tool, "name", "<unnamed>"))
            problems = _schema_issues(tool)
            if problems:
                issues.append(f"{tool_name}: {', '.join(problems)}")
            else:
                valid.append(tool_name)

        if issues:
            return failed(
                self,
                f"Schema validation failed for {len(issues)} tools",
                {"issues": issues, "valid_tools": valid, "total_tools": len(tools)},
                ["Fix tool schema validation errors", "Ensure all required fields are present"],
            )
        return passed(
            self,
            f"All {len(tools)} tool schemas are valid",
            {"valid_tools": valid, "total_tools": len(tools)},
        )


# ─── Execution helpers ────────────────────────────────────────


def _required_fields(schema: Any) -> list[str]:
    if not isinstance(schema, dict):
        return []
    required = schema.get("required")
    return list(required) if isinstance(required, list) else []


def _has_simple_schema(tool: Any) -> bool:
    schema = field_of(tool, "inputSchema")
    if not isinstance(schema, dict):
        return False
    kind = schema.get("type")
    if kind == "object":
        return not _required_fields(schema)
    return kind in (None, "null")


def find_test_tool(tools: list[Any]) -> Any:
    """Pick the tool least likely to have side effects when called."""
    for safe_name in _SAFE_TOOL_NAMES:
        for tool in tools:
            if safe_name in str(field_of(tool, "name", "")).lower():
                return tool

    for tool in tools:
        if _has_simple_schema(tool):
            return tool
    return tools[0]


def _placeholder(prop_schema: Any) -> Any:
    kind = prop_schema.get("type") if isinstance(prop_schema, dict) else None
    if kind == "string":
        return "test"
    if kind in ("number", "integer"):
        return 1
    if kind == "boolean":
        return True
    if kind == "array":
        return []
    if kind == "object":
        return {}
    return None


def generate_tool_arguments(tool: Any) -> dict[str, Any]:
    """Dummy values for the tool's required properties only."""
    schema = field_of(tool, "inputSchema")
    if not isinstance(schema, dict) or schema.get("type") != "object":
        return {}
    properties = schema.get("properties")
    if not isinstance(properties, dict):
        return {}
    return {
        prop: _placeholder(properties[prop])
        for prop in _required_fields(schema)
        if prop in properties
    }


@dataclass(frozen=True, slots=True)
class ToolExecutionProbe:
    name: str = "Tools: Tool Execution"
    description: str = "Test tool execution capability"
    category: str = TestCategory.FEATURES
    severity: Severity = Severity.INFO
    required_capability: Capability | None = Capability.TOOLS
    spec_section: str = ""

    async def execute(self, client: McpClientPort, config: DoctorConfig) -> DiagnosticResult:
        try:
            tools = await _list_tools(client)
        except Exception as exc:
            return failed(self, "Failed to test tool execution", {"error": error_text(exc)})

        if not tools:
            return skipped(self, "No tools available to test execution")

        tool = find_test_tool(tools)
        tool_name = str(field_of(tool, "name", ""))
        arguments = generate_tool_arguments(tool)

        start = time.perf_counter()
        try:
            result = await client.call_tool(tool_name, arguments)
        except Exception as exc:
            return failed(
                self,
                f"Tool execution failed ({tool_name})",
                {"tool_name": tool_name, "arguments": arguments, "error": error_text(exc)},
                ["Check tool implementation", "Verify tool parameter handling"],
            )

        content = field_of(result, "content") or []
        return passed(
            self,
            f"Tool execution successful ({tool_name})",
            {
                "tool_name": tool_name,
                "arguments": arguments,
                "call_ms": int((time.perf_counter() - start) * 1000),
                "content_blocks": len(content),
            },
        )


@dataclass(frozen=True, slots=True)
class ToolErrorHandlingProbe:
    """Unexpected arguments should be rejected, not silently accepted."""

    name: str = "Tools: Error Handling"
    description: str = "Test tool error handling for invalid parameters"
    category: str = TestCategory.FEATURES
    severity: Severity = Severity.INFO
    required_capability: Capability | None = Capability.TOOLS
    spec_section: str = ""

    async def execute(self, client: McpClientPort, config: DoctorConfig) -> DiagnosticResult:
        try:
            tools = await _list_tools(client)
        except Exception as exc:
            return failed(self, "Failed to test tool error handling", {"error": error_text(exc)})

        if not tools:
            return skipped(self, "No tools available to test error handling")

        tool_name = str(field_of(tools[0], "name", ""))
        try:
            await client.call_tool(tool_name, {"invalid_param": "invalid_value"})
        except Exception as exc:
            return passed(
                self,
                f"Tool properly rejects invalid parameters ({tool_name})",
                {"tool_name": tool_name, "error": error_text(exc)},
            )

        return failed(
            self,
            f"Tool did not reject invalid parameters ({tool_name})",
            {"tool_name": tool_name},
            [
                "Implement proper parameter validation",
                "Return appropriate error for invalid inputs",
            ],
        )


def _annotation_issues(tool: Any) -> list[str]:
    issues: list[str] = []
    annotations = field_of(tool, "annotations") or {}

    if field_of(annotations, "readOnlyHint") is None:
        lowered = str(field_of(tool, "name", "")).lower()
        if any(pattern in lowered for pattern in _READ_ONLY_PATTERNS):
            issues.append("missing readOnlyHint (likely read-only tool)")

    if not (field_of(annotations, "title") or field_of(tool, "title")):
        issues.append("missing title annotation")
    return issues


@dataclass(frozen=True, slots=True)
class ToolAnnotationsProbe:
    name: str = "Tools: Annotations Support"
    description: str = "Check for recommended tool annotations"
    category: str = TestCategory.FEATURES
    severity: Severity = Severity.INFO
    required_capability: Capability | None = Capability.TOOLS
    spec_section: str = ""

    async def execute(self, client: McpClientPort, config: DoctorConfig) -> DiagnosticResult:
        try:
            tools = await _list_tools(client)
        except Exception as exc:
            return failed(self, "Failed to check tool annotations", {"error": error_text(exc)})

        if not tools:
            return skipped(self, "No tools available to check annotations")

        issues: list[str] = []
        well_annotated: list[str] = []
        for tool in tools:
            tool_name = str(field_of(tool, "name", "<unnamed>"))
            problems = _annotation_issues(tool)
            if problems:
                issues.append(f"{tool_name}: {', '.join(problems)}")
            else:
                well_annotated.append(tool_name)

        return outcome(
            self,
            not issues,
            (
                f"All {len(tools)} tools have good annotation coverage"
                if not issues
                else f"Missing recommended annotations on {len(issues)} tools"
            ),
            {
                "annotation_issues": issues,
                "well_annotated_tools": well_annotated,
                "total_tools": len(tools),
            },
            ()
            if not issues
            else (
                "Consider adding readOnlyHint annotation for tools that only read data",
                "Include title annotation for better tool identification",
            ),
        )
