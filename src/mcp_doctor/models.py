"""Domain models for mcp-doctor. All frozen dataclasses -- no mutation after creation."""

from __future__ import annotations

import os
from dataclasses import asdict, dataclass, field
from enum import StrEnum

from mcp_doctor.errors import ConfigReadError

# ─── Enumerations ─────────────────────────────────────────────


class Transport(StrEnum):
    STDIO = "stdio"
    SSE = "sse"
    STREAMABLE_HTTP = "streamable-http"


class Capability(StrEnum):
    """Optional protocol feature a server may or may not support."""

    TOOLS = "tools"
    RESOURCES = "resources"
    PROMPTS = "prompts"


class TestCategory(StrEnum):
    __test__ = False

    LIFECYCLE = "lifecycle"
    PROTOCOL = "protocol"
    SECURITY = "security"
    PERFORMANCE = "performance"
    FEATURES = "features"


class Severity(StrEnum):
    CRITICAL = "critical"
    WARNING = "warning"
    INFO = "info"


class TestStatus(StrEnum):
    __test__ = False

    PASSED = "passed"
    FAILED = "failed"
    SKIPPED = "skipped"


class OutputFormat(StrEnum):
    CONSOLE = "console"
    JSON = "json"


# ─── Config Models ────────────────────────────────────────────


@dataclass(frozen=True, slots=True)
class ServerConfig:
    """A stdio MCP server entry in a server config file."""

    command: str
    args: list[str] = field(default_factory=list)
    env: dict[str, str] = field(default_factory=dict)

    @property
    def transport(self) -> Transport:
        return Transport.STDIO

    def to_dict(self) -> dict[str, object]:
        result: dict[str, object] = {"command": self.command, "args": list(self.args)}
        if self.env:
            result["env"] = dict(self.env)
        return result


@dataclass(frozen=True, slots=True)
class HttpServerConfig:
    """An HTTP (streamable-http or SSE) MCP server entry."""

    url: str
    transport_type: str = "http"  # "http" or "sse"
    headers: dict[str, str] = field(default_factory=dict)
    env: dict[str, str] = field(default_factory=dict)

    @property
    def transport(self) -> Transport:
        if self.transport_type == "sse":
            return Transport.SSE
        return Transport.STREAMABLE_HTTP

    def to_dict(self) -> dict[str, object]:
        result: dict[str, object] = {"type": self.transport_type, "url": self.url}
        if self.headers:
            result["headers"] = dict(self.headers)
        return result


@dataclass(frozen=True, slots=True)
class InstalledServer:
    """An MCP server configured in a server config file."""

    name: str
    config: ServerConfig | HttpServerConfig
    source_file: str


@dataclass(frozen=True, slots=True)
class ReachabilityResult:
    """Outcome of an HTTP pre-flight check against an MCP endpoint."""

    success: bool
    url: str
    status_code: int | None = None
    error: str = ""


# ─── Doctor Configuration ─────────────────────────────────────

_TEST_TIMEOUT_ENV = "MCP_DOCTOR_TEST_TIMEOUT_MS"
_DEFAULT_CONNECTION_MS = 15_000
_DEFAULT_TEST_EXECUTION_MS = 30_000


@dataclass(frozen=True, slots=True)
class DoctorOptions:
    """Run input as given by a caller (CLI flags or tool arguments)."""

    server_config: str
    server_name: str = ""
    categories: str = ""  # comma-separated
    timeout: str = ""  # per-test timeout override, milliseconds
    output: str = OutputFormat.CONSOLE
    output_file: str = ""

    def category_filter(self) -> list[str]:
        return [c.strip() for c in self.categories.split(",") if c.strip()]


@dataclass(frozen=True, slots=True)
class Timeouts:
    """All values in milliseconds."""

    connection: int = _DEFAULT_CONNECTION_MS
    test_execution: int = _DEFAULT_TEST_EXECUTION_MS


@dataclass(frozen=True, slots=True)
class CategoryFilter:
    enabled: list[str] = field(default_factory=list)
    disabled: list[str] = field(default_factory=list)


@dataclass(frozen=True, slots=True)
class OutputConfig:
    format: OutputFormat = OutputFormat.CONSOLE
    file: str = ""


@dataclass(frozen=True, slots=True)
class DoctorConfig:
    """Resolved run configuration handed to every diagnostic test."""

    timeouts: Timeouts = field(default_factory=Timeouts)
    categories: CategoryFilter = field(default_factory=CategoryFilter)
    output: OutputConfig = field(default_factory=OutputConfig)

    @classmethod
    def from_options(cls, options: DoctorOptions) -> DoctorConfig:
        """Derive a DoctorConfig from raw options.

        An explicit ``timeout`` sets the per-test deadline. Without one,
        ``MCP_DOCTOR_TEST_TIMEOUT_MS`` sets it.

        Raises:
            ConfigReadError: If a timeout or output format is invalid.
        """
        env_value = os.environ.get(_TEST_TIMEOUT_ENV, "")
        if options.timeout:
            timeouts = Timeouts(test_execution=_parse_millis(options.timeout, "--timeout"))
        elif env_value:
            timeouts = Timeouts(test_execution=_parse_millis(env_value, _TEST_TIMEOUT_ENV))
        else:
            timeouts = Timeouts()

        try:
            output_format = OutputFormat(options.output or OutputFormat.CONSOLE)
        except ValueError as exc:
            raise ConfigReadError(
                f"Unknown output format '{options.output}'. Use 'console' or 'json'."
            ) from exc

        return cls(
            timeouts=timeouts,
            categories=CategoryFilter(enabled=options.category_filter()),
            output=OutputConfig(format=output_format, file=options.output_file),
        )


def _parse_millis(raw: str, source: str) -> int:
    try:
        value = int(raw)
    except ValueError as exc:
        raise ConfigReadError(
            f"Invalid timeout '{raw}' from {source}: expected milliseconds as an integer."
        ) from exc
    if value <= 0:
        raise ConfigReadError(f"Invalid timeout '{raw}' from {source}: must be positive.")
    return value


# ─── Diagnostic Models ────────────────────────────────────────


@dataclass(frozen=True, slots=True)
class DiagnosticResult:
    """Outcome of one diagnostic test.

    ``duration_ms`` is filled in by the runner, never by the test itself.
    Skipped results always have ``duration_ms == 0`` and no details.
    """

    test_name: str
    category: str
    status: TestStatus
    message: str
    severity: Severity
    details: dict[str, object] | None = None
    recommendations: tuple[str, ...] = ()
    duration_ms: int = 0
    required_capability: Capability | None = None
    spec_section: str = ""


@dataclass(frozen=True, slots=True)
class TestCategorySummary:
    """Per-category rollup of diagnostic results."""

    __test__ = False

    name: str
    passed: int
    failed: int
    warnings: int
    total: int
    duration_ms: int
    status: str  # "passed", "failed", "warning", "skipped"


# ─── Health Report Models ─────────────────────────────────────


@dataclass(frozen=True, slots=True)
class ServerInfo:
    name: str
    version: str = ""
    transport: str = Transport.STDIO
    protocol_version: str = ""


@dataclass(frozen=True, slots=True)
class ReportMetadata:
    timestamp: str
    duration_ms: int
    test_count: int
    skipped_test_count: int


@dataclass(frozen=True, slots=True)
class ResultCounts:
    passed: int
    failed: int
    skipped: int
    total: int


@dataclass(frozen=True, slots=True)
class ReportSummary:
    test_results: ResultCounts
    overall_score: int


@dataclass(frozen=True, slots=True)
class CategorizedIssues:
    critical_failures: tuple[DiagnosticResult, ...] = ()
    spec_warnings: tuple[DiagnosticResult, ...] = ()
    optimizations: tuple[DiagnosticResult, ...] = ()


@dataclass(frozen=True, slots=True)
class HealthReport:
    """Final artifact of a doctor run."""

    server_info: ServerInfo
    server_capabilities: frozenset[Capability]
    skipped_capabilities: tuple[Capability, ...]
    metadata: ReportMetadata
    summary: ReportSummary
    categories: tuple[TestCategorySummary, ...]
    issues: tuple[DiagnosticResult, ...]
    results: tuple[DiagnosticResult, ...]
    categorized_issues: CategorizedIssues = field(default_factory=CategorizedIssues)

    def to_dict(self) -> dict[str, object]:
        """JSON-serializable view of the report."""
        data = asdict(self)
        data["server_capabilities"] = sorted(self.server_capabilities)
        return data
