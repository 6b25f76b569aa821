"""Shared test fixtures."""

from __future__ import annotations

import json
from collections.abc import Callable
from pathlib import Path
from typing import Any
from unittest.mock import AsyncMock, MagicMock

import pytest
from mcp.shared.exceptions import McpError
from mcp.types import (
    LATEST_PROTOCOL_VERSION,
    EmptyResult,
    ErrorData,
    ListPromptsResult,
    ListResourcesResult,
    ListToolsResult,
    Prompt,
    Resource,
    Tool,
)

from mcp_doctor.models import Capability, DoctorConfig, ServerInfo


def method_not_found() -> McpError:
    return McpError(ErrorData(code=-32601, message="Method not found"))


def build_client(
    *,
    tools: list[Tool] | None = None,
    resources: list[Resource] | None = None,
    prompts: list[Prompt] | None = None,
    declared: frozenset[Capability] | None = None,
    raw_capabilities: dict[str, Any] | None = None,
    server_info: ServerInfo | None = None,
) -> MagicMock:
    """A McpClientPort double. A feature passed as None answers "Method not found"."""
    client = MagicMock()
    client.server_info = server_info or ServerInfo(
        name="test-server",
        version="1.0.0",
        transport="stdio",
        protocol_version=LATEST_PROTOCOL_VERSION,
    )
    if declared is None:
        declared = frozenset(
            cap
            for cap, items in (
                (Capability.TOOLS, tools),
                (Capability.RESOURCES, resources),
                (Capability.PROMPTS, prompts),
            )
            if items is not None
        )
    client.declared_capabilities = declared
    client.raw_capabilities = raw_capabilities or {cap.value: {} for cap in declared}
    client.ping = AsyncMock(return_value=EmptyResult())

    client.list_tools = (
        AsyncMock(return_value=ListToolsResult(tools=tools))
        if tools is not None
        else AsyncMock(side_effect=method_not_found())
    )
    client.list_resources = (
        AsyncMock(return_value=ListResourcesResult(resources=resources))
        if resources is not None
        else AsyncMock(side_effect=method_not_found())
    )
    client.list_prompts = (
        AsyncMock(return_value=ListPromptsResult(prompts=prompts))
        if prompts is not None
        else AsyncMock(side_effect=method_not_found())
    )
    client.call_tool = AsyncMock(side_effect=method_not_found())
    client.read_resource = AsyncMock(side_effect=method_not_found())
    client.get_prompt = AsyncMock(side_effect=method_not_found())
    return client


def build_tool(name: str = "echo", **schema: Any) -> Tool:
    return Tool(
        name=name,
        description=f"The {name} tool",
        inputSchema=schema or {"type": "object", "properties": {}},
    )


@pytest.fixture()
def make_client() -> Callable[..., MagicMock]:
    return build_client


@pytest.fixture()
def make_tool() -> Callable[..., Tool]:
    return build_tool


@pytest.fixture()
def config() -> DoctorConfig:
    return DoctorConfig()


@pytest.fixture()
def write_config(tmp_path: Path) -> Callable[..., Path]:
    """Write an mcpServers config file and return its path."""

    def _write(servers: dict[str, Any], name: str = "servers.json") -> Path:
        path = tmp_path / name
        path.write_text(json.dumps({"mcpServers": servers}), encoding="utf-8")
        return path

    return _write
