"""Lifecycle probes: is the session usable after the initialize handshake?"""

from __future__ import annotations

from dataclasses import dataclass

from mcp_doctor.connection.base import McpClientPort
from mcp_doctor.doctor.base import error_text, outcome
from mcp_doctor.models import (
    Capability,
    DiagnosticResult,
    DoctorConfig,
    Severity,
    TestCategory,
)


@dataclass(frozen=True, slots=True)
class InitializationFlowProbe:
    """Check the initialize result and that the server answers afterwards.

    The handshake itself already ran when the session opened; this probe
    inspects what it produced.
    """

    name: str = "Lifecycle: Initialization Flow"
    description: str = "Tests MCP server initialization sequence and responses"
    category: str = TestCategory.LIFECYCLE
    severity: Severity = Severity.CRITICAL
    required_capability: Capability | None = None
    spec_section: str = "Lifecycle"

    async def execute(self, client: McpClientPort, config: DoctorConfig) -> DiagnosticResult:
        issues: list[str] = []
        info = client.server_info

        try:
            await client.ping()
        except Exception as exc:
            issues.append(f"Server does not answer ping after initialization: {error_text(exc)}")

        if not info.name:
            issues.append("InitializeResult serverInfo is missing a name")
        if not info.version:
            issues.append("InitializeResult serverInfo is missing a version")
        if not info.protocol_version:
            issues.append("InitializeResult carries no protocolVersion")

        capabilities = client.raw_capabilities
        details: dict[str, object] = {
            "server_name": info.name,
            "server_version": info.version,
            "protocol_version": info.protocol_version,
            "capabilities": sorted(capabilities),
        }
        if issues:
            details["issues"] = issues

        return outcome(
            self,
            not issues,
            (
                "Initialization flow completed successfully"
                if not issues
                else f"Initialization flow has {len(issues)} issue(s)"
            ),
            details,
            ()
            if not issues
            else (
                "Verify server implements proper MCP initialization sequence",
                "Ensure the initialize response includes serverInfo name and version",
            ),
        )
