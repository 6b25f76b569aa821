"""run_doctor and list_probes tools -- diagnose a configured MCP server."""

from __future__ import annotations

from mcp.server.fastmcp import Context

from mcp_doctor.doctor.registry import default_registry
from mcp_doctor.doctor.runner import DoctorRunner
from mcp_doctor.errors import McpDoctorError
from mcp_doctor.models import DoctorOptions
from mcp_doctor.tools._helpers import get_context


async def run_doctor(
    server_config: str,
    ctx: Context,
    server_name: str = "",
    categories: str = "",
    timeout_ms: int = 0,
) -> dict[str, object]:
    """Run the compliance and health diagnostics against one MCP server.

    Connects to the server described in a config file, detects which
    optional features (tools, resources, prompts) it serves, runs every
    applicable diagnostic test, and returns a scored health report.
    Tests for features the server does not offer are reported as skipped.

    Args:
        server_config: Path to a JSON config file in the
            {"mcpServers": {name: {...}}} format.
        server_name: Which server in the config to diagnose. May be empty
            when the config holds exactly one server.
        categories: Comma-separated categories to run, e.g.
            "protocol,features". Empty runs everything.
        timeout_ms: Per-test timeout in milliseconds. 0 uses the default.

    Returns:
        Health report with server_info, overall score, per-category
        summaries, severity-sorted issues, and every individual result.
    """
    try:
        app = get_context(ctx)
        options = DoctorOptions(
            server_config=server_config,
            server_name=server_name,
            categories=categories,
            timeout=str(timeout_ms) if timeout_ms > 0 else "",
            output="json",
        )
        report = await DoctorRunner(options, connector=app.connector).run()
        return {"success": True, **report.to_dict()}

    except McpDoctorError as exc:
        return {"success": False, "error": str(exc)}
    except Exception as exc:
        await ctx.error(f"Unexpected error in run_doctor: {exc}")
        return {"success": False, "error": f"Internal error: {type(exc).__name__}"}


async def list_probes(category: str = "") -> list[dict[str, object]]:
    """List the diagnostic tests run_doctor can execute.

    Args:
        category: Only list tests in this category, e.g. "protocol".
            Empty lists all of them.

    Returns:
        One entry per test: name, description, category, severity,
        required_capability (null when always applicable), spec_section.
    """
    registry = default_registry()
    tests = registry.get_tests_by_category(category) if category else registry.get_all_tests()
    return [
        {
            "name": t.name,
            "description": t.description,
            "category": str(t.category),
            "severity": str(t.severity),
            "required_capability": (
                str(t.required_capability) if t.required_capability is not None else None
            ),
            "spec_section": t.spec_section,
        }
        for t in tests
    ]
