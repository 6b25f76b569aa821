"""MCP server exposing the doctor as tools."""

from __future__ import annotations

from collections.abc import AsyncIterator
from contextlib import asynccontextmanager
from dataclasses import dataclass

import httpx
from mcp.server.fastmcp import FastMCP
from mcp.types import ToolAnnotations

from mcp_doctor.connection.base import ServerConnectorPort
from mcp_doctor.connection.client import DefaultServerConnector, HttpReachabilityChecker
from mcp_doctor.tools.doctor import list_probes, run_doctor


@dataclass(frozen=True, slots=True)
class AppContext:
    """Shared state across all tool invocations."""

    http_client: httpx.AsyncClient
    connector: ServerConnectorPort


@asynccontextmanager
async def app_lifespan(server: FastMCP) -> AsyncIterator[AppContext]:
    """Manage shared adapter lifecycle -- the composition root."""
    async with httpx.AsyncClient(
        timeout=httpx.Timeout(30.0, connect=10.0),
        follow_redirects=True,
        limits=httpx.Limits(max_connections=10, max_keepalive_connections=5),
    ) as http_client:
        connector = DefaultServerConnector(reachability=HttpReachabilityChecker(http_client))
        yield AppContext(http_client=http_client, connector=connector)


mcp = FastMCP(
    "mcp-doctor",
    instructions=(
        "mcp-doctor checks whether an MCP server follows the protocol and "
        "behaves well for automated clients.\n\n"
        "- **run_doctor** -- Diagnose one server from a config file. Returns a "
        "0-100 health score, per-category summaries and a severity-sorted issue "
        "list. Present critical issues first, then warnings.\n"
        "- **list_probes** -- Show which diagnostic tests exist and which server "
        "capability each one needs.\n\n"
        "Skipped tests are not failures: they mean the server does not offer "
        "that feature."
    ),
    lifespan=app_lifespan,
)

# ─── Read-only tools ──────────────────────────────────────────
mcp.tool(annotations=ToolAnnotations(readOnlyHint=True))(run_doctor)
mcp.tool(annotations=ToolAnnotations(readOnlyHint=True))(list_probes)
