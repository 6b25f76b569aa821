"""Performance probes."""

from __future__ import annotations

import time
from dataclasses import dataclass

from mcp_doctor.connection.base import McpClientPort
from mcp_doctor.doctor.base import error_text, failed, passed
from mcp_doctor.models import (
    Capability,
    DiagnosticResult,
    DoctorConfig,
    Severity,
    TestCategory,
)

GOOD_LATENCY_MS = 100
ACCEPTABLE_LATENCY_MS = 500
_SAMPLES = 3


@dataclass(frozen=True, slots=True)
class ResponseTimeProbe:
    """Average ping latency over a few round trips.

    Under 100ms is good, under 500ms passes with a recommendation, anything
    slower fails.
    """

    name: str = "Performance: Response Time"
    description: str = "Measure request round-trip latency"
    category: str = TestCategory.PERFORMANCE
    severity: Severity = Severity.INFO
    required_capability: Capability | None = None
    spec_section: str = ""

    async def execute(self, client: McpClientPort, config: DoctorConfig) -> DiagnosticResult:
        samples: list[float] = []
        for _ in range(_SAMPLES):
            start = time.perf_counter()
            try:
                await client.ping()
            except Exception as exc:
                return failed(
                    self,
                    "Could not measure response time: ping failed",
                    {"error": error_text(exc)},
                    ["Verify the server handles the ping request"],
                )
            samples.append((time.perf_counter() - start) * 1000)

        average_ms = round(sum(samples) / len(samples), 1)
        details: dict[str, object] = {
            "average_ms": average_ms,
            "max_ms": round(max(samples), 1),
            "samples": len(samples),
        }

        if average_ms < GOOD_LATENCY_MS:
            return passed(self, f"Good response time ({average_ms}ms average)", details)
        if average_ms < ACCEPTABLE_LATENCY_MS:
            return passed(
                self,
                f"Acceptable response time ({average_ms}ms average)",
                details,
                [f"Aim for responses under {GOOD_LATENCY_MS}ms"],
            )
        return failed(
            self,
            f"Slow response time ({average_ms}ms average)",
            details,
            [
                "Profile request handling on the server",
                "Avoid blocking work on the request path",
            ],
        )
