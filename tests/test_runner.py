"""Tests for DoctorRunner orchestration."""

from __future__ import annotations

import asyncio
from collections.abc import AsyncIterator
from contextlib import asynccontextmanager

import pytest

from mcp_doctor.doctor.base import passed, skipped
from mcp_doctor.doctor.registry import build_registry
from mcp_doctor.doctor.runner import CONNECTION_TEST_NAME, DoctorRunner
from mcp_doctor.errors import ConnectionFailedError
from mcp_doctor.models import (
    Capability,
    DiagnosticResult,
    DoctorOptions,
    Severity,
    TestCategory,
    TestStatus,
)


class FakeProbe:
    """Diagnostic test double that records how often it ran."""

    def __init__(
        self,
        name: str,
        *,
        category: str = TestCategory.PROTOCOL,
        severity: Severity = Severity.WARNING,
        required_capability: Capability | None = None,
        behavior: str = "pass",
    ) -> None:
        self.name = name
        self.description = f"{name} probe"
        self.category = category
        self.severity = severity
        self.required_capability = required_capability
        self.spec_section = ""
        self.behavior = behavior
        self.calls = 0

    async def execute(self, client, config):
        self.calls += 1
        if self.behavior == "fail":
            return DiagnosticResult(
                test_name=self.name,
                category=self.category,
                status=TestStatus.FAILED,
                message="broken",
                severity=self.severity,
                required_capability=self.required_capability,
            )
        if self.behavior == "crash":
            raise RuntimeError("kaboom")
        if self.behavior == "hang":
            await asyncio.sleep(10)
        if self.behavior == "slow":
            await asyncio.sleep(0.05)
        if self.behavior == "cancelled":
            raise asyncio.CancelledError
        if self.behavior == "skip":
            return skipped(self, "nothing to check")
        if self.behavior == "garbage":
            return {"status": "passed"}
        return passed(self, "fine", {"checked": True})


class FakeConnector:
    def __init__(self, client=None, error: Exception | None = None) -> None:
        self.client = client
        self.error = error
        self.opened = False
        self.closed = False
        self.timeout_ms: int | None = None

    @asynccontextmanager
    async def connect(self, server, *, timeout_ms: int) -> AsyncIterator[object]:
        self.timeout_ms = timeout_ms
        if self.error is not None:
            raise self.error
        self.opened = True
        try:
            yield self.client
        finally:
            self.closed = True


@pytest.fixture(autouse=True)
def _no_timeout_env(monkeypatch: pytest.MonkeyPatch):
    monkeypatch.delenv("MCP_DOCTOR_TEST_TIMEOUT_MS", raising=False)


@pytest.fixture()
def server_file(write_config):
    return str(write_config({"srv": {"command": "fake-server"}}))


@pytest.fixture()
def tools_client(make_client, make_tool):
    return make_client(tools=[make_tool()])


def _runner(server_file: str, probes, connector, **options) -> DoctorRunner:
    return DoctorRunner(
        DoctorOptions(server_config=server_file, **options),
        registry=build_registry(probes),
        connector=connector,
    )


def _by_name(report) -> dict[str, DiagnosticResult]:
    return {r.test_name: r for r in report.results}


class TestEndToEnd:
    async def test_pass_skip_and_critical_failure(self, server_file, tools_client):
        a = FakeProbe("A")
        b = FakeProbe(
            "B", category=TestCategory.FEATURES, required_capability=Capability.RESOURCES
        )
        c = FakeProbe(
            "C",
            category=TestCategory.FEATURES,
            severity=Severity.CRITICAL,
            required_capability=Capability.TOOLS,
            behavior="fail",
        )
        connector = FakeConnector(tools_client)

        report = await _runner(server_file, [a, b, c], connector).run()
        results = _by_name(report)

        assert [r.test_name for r in report.results] == ["A", "C", "B"]
        assert results["A"].status == TestStatus.PASSED
        assert results["B"].status == TestStatus.SKIPPED
        assert results["B"].duration_ms == 0
        assert "'resources' capability" in results["B"].message
        assert results["C"].status == TestStatus.FAILED
        assert b.calls == 0
        assert (a.calls, c.calls) == (1, 1)

        assert report.server_capabilities == frozenset({Capability.TOOLS})
        assert report.skipped_capabilities == (Capability.RESOURCES,)
        assert [i.test_name for i in report.issues] == ["C"]
        assert report.summary.test_results.skipped == 1
        # protocol 100 (w .30), features 70 (w .15)
        assert report.summary.overall_score == 90
        assert report.server_info.name == "test-server"
        assert connector.closed

    async def test_connection_timeout_passed_to_connector(self, server_file, tools_client):
        connector = FakeConnector(tools_client)
        await _runner(server_file, [FakeProbe("A")], connector).run()
        assert connector.timeout_ms == 15_000

    async def test_results_carry_runner_measured_duration(self, server_file, tools_client):
        report = await _runner(server_file, [FakeProbe("A")], FakeConnector(tools_client)).run()
        result = report.results[0]
        assert result.duration_ms >= 0
        assert result.details == {"checked": True}


class TestIsolation:
    async def test_crash_becomes_failure_and_run_continues(self, server_file, tools_client):
        crashing = FakeProbe("Crashy", behavior="crash")
        after = FakeProbe("After")
        connector = FakeConnector(tools_client)

        report = await _runner(server_file, [crashing, after], connector).run()
        results = _by_name(report)

        assert results["Crashy"].status == TestStatus.FAILED
        assert results["Crashy"].message == "Test execution failed: kaboom"
        assert results["After"].status == TestStatus.PASSED
        assert connector.closed

    async def test_timeout_names_test_and_limit(
        self, server_file, tools_client, monkeypatch: pytest.MonkeyPatch
    ):
        monkeypatch.setenv("MCP_DOCTOR_TEST_TIMEOUT_MS", "50")
        slow = FakeProbe("Slowpoke", behavior="hang")
        after = FakeProbe("After")
        connector = FakeConnector(tools_client)

        report = await _runner(server_file, [slow, after], connector).run()
        results = _by_name(report)

        assert results["Slowpoke"].status == TestStatus.FAILED
        assert results["Slowpoke"].message == "Test 'Slowpoke' timed out after 50ms"
        assert results["Slowpoke"].severity == Severity.WARNING
        assert results["After"].status == TestStatus.PASSED
        assert connector.closed

    async def test_skip_outcome_has_no_duration_or_details(self, server_file, tools_client):
        probe = FakeProbe("Skippy", behavior="skip")
        report = await _runner(server_file, [probe], FakeConnector(tools_client)).run()
        result = report.results[0]

        assert result.status == TestStatus.SKIPPED
        assert result.duration_ms == 0
        assert result.details is None

    async def test_non_result_return_is_failure(self, server_file, tools_client):
        probe = FakeProbe("Garbage", behavior="garbage")
        report = await _runner(server_file, [probe], FakeConnector(tools_client)).run()
        assert report.results[0].status == TestStatus.FAILED
        assert "returned dict" in report.results[0].message


class TestPerTestTimeout:
    async def test_every_test_gets_the_full_deadline(self, server_file, tools_client):
        probes = [FakeProbe(f"P{n}", behavior="slow") for n in range(4)]

        report = await _runner(
            server_file, probes, FakeConnector(tools_client), timeout="150"
        ).run()

        assert [p.calls for p in probes] == [1, 1, 1, 1]
        assert [r.status for r in report.results] == [TestStatus.PASSED] * 4
        assert report.summary.overall_score == 100

    async def test_cancelled_test_becomes_failure_and_run_continues(
        self, server_file, tools_client
    ):
        cancelled = FakeProbe("Cancelled", severity=Severity.CRITICAL, behavior="cancelled")
        after = FakeProbe("After")
        connector = FakeConnector(tools_client)

        report = await _runner(server_file, [cancelled, after], connector).run()
        results = _by_name(report)

        assert len(report.results) == 2
        assert results["Cancelled"].status == TestStatus.FAILED
        assert results["Cancelled"].message == "Test execution failed: operation was cancelled"
        assert results["Cancelled"].severity == Severity.CRITICAL
        assert results["After"].status == TestStatus.PASSED
        assert connector.closed


class TestFiltering:
    async def test_category_filter_narrows_applicable_tests(self, server_file, tools_client):
        protocol = FakeProbe("P")
        features = FakeProbe("F", category=TestCategory.FEATURES)
        gated = FakeProbe(
            "R", category=TestCategory.FEATURES, required_capability=Capability.RESOURCES
        )

        report = await _runner(
            server_file,
            [protocol, features, gated],
            FakeConnector(tools_client),
            categories="features",
        ).run()

        assert protocol.calls == 0
        assert [r.test_name for r in report.results] == ["F", "R"]
        assert _by_name(report)["R"].status == TestStatus.SKIPPED


class TestConnectionFailure:
    async def test_connect_error_yields_single_critical_result(self, server_file):
        probe = FakeProbe("A")
        connector = FakeConnector(error=ConnectionFailedError("Command not found: fake-server"))

        report = await _runner(server_file, [probe], connector).run()

        assert probe.calls == 0
        assert len(report.results) == 1
        result = report.results[0]
        assert result.test_name == CONNECTION_TEST_NAME
        assert result.category == TestCategory.LIFECYCLE
        assert result.severity == Severity.CRITICAL
        assert result.status == TestStatus.FAILED
        assert result.message == "Failed to connect to server: Command not found: fake-server"
        assert result.recommendations
        assert report.server_info.name == "srv"
        assert report.server_capabilities == frozenset()
        assert report.summary.overall_score == 70

    async def test_missing_config_file(self, tmp_path):
        connector = FakeConnector()
        runner = DoctorRunner(
            DoctorOptions(server_config=str(tmp_path / "missing.json")),
            registry=build_registry([FakeProbe("A")]),
            connector=connector,
        )

        report = await runner.run()

        assert report.results[0].test_name == CONNECTION_TEST_NAME
        assert "Configuration file not found" in report.results[0].message
        assert report.server_info.name == "unknown"
        assert not connector.opened

    async def test_unknown_server_name(self, server_file):
        report = await _runner(
            server_file, [FakeProbe("A")], FakeConnector(), server_name="other"
        ).run()
        assert "Server 'other' not found" in report.results[0].message
        assert report.server_info.name == "other"
