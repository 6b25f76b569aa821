"""Tests for performance and security probes."""

from __future__ import annotations

from unittest.mock import AsyncMock, MagicMock, patch

import pytest
from mcp.types import CallToolResult, TextContent

from mcp_doctor.doctor.probes.performance import ResponseTimeProbe
from mcp_doctor.doctor.probes.security import ErrorDisclosureProbe, disclosure_findings
from mcp_doctor.models import TestStatus


def _clock(*readings: float):
    """Replace the probe's clock with fixed perf_counter readings (seconds)."""
    fake_time = MagicMock()
    fake_time.perf_counter.side_effect = list(readings)
    return patch("mcp_doctor.doctor.probes.performance.time", fake_time)


class TestResponseTime:
    async def test_fast_server_passes(self, make_client, config):
        with _clock(0.0, 0.010, 1.0, 1.020, 2.0, 2.030):
            result = await ResponseTimeProbe().execute(make_client(), config)

        assert result.status == TestStatus.PASSED
        assert result.message == "Good response time (20.0ms average)"
        assert result.recommendations == ()
        assert result.details["samples"] == 3

    async def test_acceptable_server_passes_with_advice(self, make_client, config):
        with _clock(0.0, 0.2, 1.0, 1.2, 2.0, 2.2):
            result = await ResponseTimeProbe().execute(make_client(), config)

        assert result.status == TestStatus.PASSED
        assert result.message.startswith("Acceptable response time")
        assert result.recommendations

    async def test_slow_server_fails(self, make_client, config):
        with _clock(0.0, 0.9, 1.0, 1.9, 2.0, 2.9):
            result = await ResponseTimeProbe().execute(make_client(), config)

        assert result.status == TestStatus.FAILED
        assert result.message.startswith("Slow response time")

    async def test_ping_error_fails(self, make_client, config):
        client = make_client()
        client.ping = AsyncMock(side_effect=RuntimeError("gone"))
        result = await ResponseTimeProbe().execute(client, config)

        assert result.status == TestStatus.FAILED
        assert result.details["error"] == "gone"


class TestDisclosureFindings:
    @pytest.mark.parametrize(
        "text",
        [
            'Traceback (most recent call last):\n  File "/srv/app.py", line 3, in <module>',
            '  File "server.py", line 12, in handle',
            "TypeError: x is undefined\n    at handle (/app/index.js:10:5)",
        ],
    )
    def test_stack_traces(self, text: str):
        assert "stack trace" in disclosure_findings(text)

    @pytest.mark.parametrize(
        "text",
        [
            "cannot open /home/alice/.config/secret.json",
            "failed reading C:\\Users\\bob\\data.db",
            "path=/var/lib/app/state",
        ],
    )
    def test_absolute_paths(self, text: str):
        assert "absolute filesystem path" in disclosure_findings(text)

    @pytest.mark.parametrize(
        "text",
        ["Unknown tool: nonexistent_tool_for_disclosure_check", "Invalid params", "Not found"],
    )
    def test_clean_messages(self, text: str):
        assert disclosure_findings(text) == []


class TestErrorDisclosure:
    async def test_clean_errors_pass(self, make_client, make_tool, config):
        client = make_client(tools=[make_tool()])
        result = await ErrorDisclosureProbe().execute(client, config)

        assert result.status == TestStatus.PASSED
        assert result.details["inspected"] == ["nonexistent_tool_for_disclosure_check", "echo"]

    async def test_leaky_errors_fail(self, make_client, make_tool, config):
        client = make_client(tools=[make_tool()])
        client.call_tool = AsyncMock(
            side_effect=RuntimeError(
                'Traceback (most recent call last):\n  File "/home/dev/srv/tools.py", line 9'
            )
        )
        result = await ErrorDisclosureProbe().execute(client, config)

        assert result.status == TestStatus.FAILED
        assert len(result.details["leaks"]) == 2
        assert "stack trace" in result.details["leaks"][0]

    async def test_no_errors_skips(self, make_client, make_tool, config):
        client = make_client(tools=[make_tool()])
        client.call_tool = AsyncMock(
            return_value=CallToolResult(content=[TextContent(type="text", text="ok")])
        )
        result = await ErrorDisclosureProbe().execute(client, config)
        assert result.status == TestStatus.SKIPPED
