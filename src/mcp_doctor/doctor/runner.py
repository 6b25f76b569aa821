"""Run the diagnostic suite against one server and build its health report."""

from __future__ import annotations

import logging
import time
from dataclasses import replace

from mcp_doctor.config.reader import load_server_config
from mcp_doctor.connection.base import McpClientPort, ServerConnectorPort
from mcp_doctor.connection.client import DefaultServerConnector
from mcp_doctor.doctor.base import DiagnosticTest, error_text
from mcp_doctor.doctor.capabilities import detect_capabilities
from mcp_doctor.doctor.deadline import EXPIRED, run_with_deadline
from mcp_doctor.doctor.registry import TestRegistry, default_registry
from mcp_doctor.doctor.report import generate_report
from mcp_doctor.errors import ConfigReadError, ConnectionFailedError, ServerNotFoundError
from mcp_doctor.models import (
    Capability,
    DiagnosticResult,
    DoctorConfig,
    DoctorOptions,
    HealthReport,
    InstalledServer,
    ServerInfo,
    Severity,
    TestCategory,
    TestStatus,
)

logger = logging.getLogger(__name__)

CONNECTION_TEST_NAME = "Lifecycle: Server Connection"


class DoctorRunner:
    """Orchestrates one doctor run: connect, detect, discover, execute, report.

    Probes run one at a time, in registration order, on a single shared
    session. A probe that fails, raises, or overruns its deadline yields a
    failed result and the run moves on. Only a failure to load the server
    config or to open the session ends the run early, with a report holding
    a single critical result.
    """

    def __init__(
        self,
        options: DoctorOptions,
        *,
        registry: TestRegistry | None = None,
        connector: ServerConnectorPort | None = None,
    ) -> None:
        self._options = options
        self._registry = registry
        self._connector = connector or DefaultServerConnector()

    async def run(self) -> HealthReport:
        started = time.monotonic()
        server: InstalledServer | None = None

        try:
            config = DoctorConfig.from_options(self._options)
            server = load_server_config(self._options.server_config, self._options.server_name)
            registry = self._registry or default_registry()

            async with self._connector.connect(
                server, timeout_ms=config.timeouts.connection
            ) as client:
                server_info = client.server_info
                capabilities = await detect_capabilities(
                    client, timeout_ms=config.timeouts.connection
                )
                applicable, skipped_tests = self._discover(registry, capabilities, config)
                results = await self._execute(applicable, client, config)
        except (ConfigReadError, ServerNotFoundError, ConnectionFailedError) as exc:
            logger.warning("Doctor run aborted: %s", exc)
            return self._connection_failure_report(exc, server, started)

        results.extend(_skip_result(test) for test in skipped_tests)
        return generate_report(
            results,
            server_info,
            duration_ms=_elapsed_ms(started),
            server_capabilities=capabilities,
        )

    # ─── Steps ────────────────────────────────────────────────

    def _discover(
        self,
        registry: TestRegistry,
        capabilities: frozenset[Capability],
        config: DoctorConfig,
    ) -> tuple[list[DiagnosticTest], list[DiagnosticTest]]:
        """Applicable and skipped tests. Category filters narrow the applicable set only."""
        applicable = registry.get_applicable_tests(capabilities)
        skipped_tests = registry.get_skipped_tests(capabilities)

        enabled = set(config.categories.enabled)
        disabled = set(config.categories.disabled)
        if enabled:
            applicable = [t for t in applicable if t.category in enabled]
        if disabled:
            applicable = [t for t in applicable if t.category not in disabled]

        logger.debug(
            "Discovered %d applicable and %d skipped tests (capabilities: %s)",
            len(applicable),
            len(skipped_tests),
            ", ".join(sorted(capabilities)) or "none",
        )
        return applicable, skipped_tests

    async def _execute(
        self,
        tests: list[DiagnosticTest],
        client: McpClientPort,
        config: DoctorConfig,
    ) -> list[DiagnosticResult]:
        """Every test gets the full per-test deadline, whatever ran before it."""
        timeout_ms = config.timeouts.test_execution
        return [await _run_one(test, client, config, timeout_ms) for test in tests]

    def _connection_failure_report(
        self,
        exc: Exception,
        server: InstalledServer | None,
        started: float,
    ) -> HealthReport:
        duration_ms = _elapsed_ms(started)
        result = DiagnosticResult(
            test_name=CONNECTION_TEST_NAME,
            category=TestCategory.LIFECYCLE,
            status=TestStatus.FAILED,
            message=f"Failed to connect to server: {error_text(exc)}",
            severity=Severity.CRITICAL,
            recommendations=(
                "Check server configuration and ensure server is running",
                "Verify the server command, arguments and environment variables",
            ),
            duration_ms=duration_ms,
        )
        if server is not None:
            info = ServerInfo(name=server.name, transport=server.config.transport)
        else:
            info = ServerInfo(name=self._options.server_name or "unknown")
        return generate_report([result], info, duration_ms=duration_ms, server_capabilities=())


async def _run_one(
    test: DiagnosticTest,
    client: McpClientPort,
    config: DoctorConfig,
    timeout_ms: int,
) -> DiagnosticResult:
    """Execute one test under its deadline. Never raises."""
    logger.debug("Running %s", test.name)
    start = time.monotonic()
    try:
        outcome = await run_with_deadline(test.execute(client, config), timeout_ms)
    except Exception as exc:
        logger.warning("Test '%s' crashed: %s", test.name, error_text(exc))
        return _synthesized_failure(
            test, f"Test execution failed: {error_text(exc)}", _elapsed_ms(start)
        )

    if outcome is EXPIRED:
        logger.warning("Test '%s' timed out after %dms", test.name, timeout_ms)
        return _synthesized_failure(
            test, f"Test '{test.name}' timed out after {timeout_ms}ms", _elapsed_ms(start)
        )

    if not isinstance(outcome, DiagnosticResult):
        return _synthesized_failure(
            test,
            f"Test execution failed: returned {type(outcome).__name__}, not a result",
            _elapsed_ms(start),
        )

    if outcome.status == TestStatus.SKIPPED:
        return replace(outcome, duration_ms=0, details=None)
    return replace(outcome, duration_ms=_elapsed_ms(start))


def _synthesized_failure(test: DiagnosticTest, message: str, duration_ms: int) -> DiagnosticResult:
    return DiagnosticResult(
        test_name=test.name,
        category=test.category,
        status=TestStatus.FAILED,
        message=message,
        severity=test.severity,
        duration_ms=duration_ms,
        required_capability=test.required_capability,
        spec_section=test.spec_section,
    )


def _skip_result(test: DiagnosticTest) -> DiagnosticResult:
    return DiagnosticResult(
        test_name=test.name,
        category=test.category,
        status=TestStatus.SKIPPED,
        message=(
            f"Test skipped: server does not support the '{test.required_capability}' capability"
        ),
        severity=test.severity,
        required_capability=test.required_capability,
        spec_section=test.spec_section,
    )


def _elapsed_ms(start: float) -> int:
    return int((time.monotonic() - start) * 1000)
