"""Resources feature probes. All of them require the ``resources`` capability."""

from __future__ import annotations

from collections import Counter
from dataclasses import dataclass
from typing import Any
from urllib.parse import urlsplit

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

_SAFE_URI_PATTERNS = ("config", "readme", "info", "status", "help")

_NONEXISTENT_URI = "test://nonexistent/resource/12345"
_NOT_FOUND_MARKERS = (
    "not found",
    "does not exist",
    "unknown resource",
    "-32002",
    "invalidrequest",
)
_RESOURCE_NOT_FOUND_CODE = -32002

_MIN_MIME_COVERAGE = 50.0


async def _list_resources(client: McpClientPort) -> list[Any]:
    return await fetch_listing(client, "list_resources", "resources")


def _uri(resource: Any) -> str:
    value = field_of(resource, "uri")
    return "" if value is None else str(value)


@dataclass(frozen=True, slots=True)
class ResourcesCapabilityProbe:
    name: str = "Resources: Capability Declaration"
    description: str = "Verify server declares resources capability correctly"
    category: str = TestCategory.FEATURES
    severity: Severity = Severity.WARNING
    required_capability: Capability | None = Capability.RESOURCES
    spec_section: str = "MCP Spec §4.2"

    async def execute(self, client: McpClientPort, config: DoctorConfig) -> DiagnosticResult:
        try:
            resources = await _list_resources(client)
        except Exception as exc:
            return failed(
                self,
                "Server does not support resources capability",
                {"error": error_text(exc)},
                ["Resources capability is optional but recommended for content-serving servers"],
            )

        declared = client.declared_capabilities
        if declared is not None and Capability.RESOURCES not in declared:
            return failed(
                self,
                "Server serves resources/list but does not declare the resources capability",
                {"resources_count": len(resources)},
                ["Declare the 'resources' capability in the initialize response"],
            )

        subscribe = field_of(client.raw_capabilities.get("resources") or {}, "subscribe")
        suffix = f" (subscribe: {subscribe})" if subscribe is not None else ""
        return passed(
            self,
            f"Resources capability declared correctly{suffix}",
            {"subscribe": subscribe, "resources_count": len(resources)},
        )


@dataclass(frozen=True, slots=True)
class ResourceListingProbe:
    name: str = "Resources: Resource Listing"
    description: str = "Verify resource listing functionality"
    category: str = TestCategory.FEATURES
    severity: Severity = Severity.INFO
    required_capability: Capability | None = Capability.RESOURCES
    spec_section: str = ""

    async def execute(self, client: McpClientPort, config: DoctorConfig) -> DiagnosticResult:
        try:
            resources = await _list_resources(client)
        except Exception as exc:
            return failed(
                self,
                "Failed to list resources",
                {"error": error_text(exc)},
                ["Check server resources/list implementation"],
            )

        if not resources:
            return failed(
                self,
                "No resources found",
                {"resource_count": 0},
                ["Consider implementing resources if server manages content"],
            )

        uris = [_uri(r) for r in resources]
        dupes = sorted(u for u, n in Counter(uris).items() if n > 1)
        if dupes:
            return failed(
                self,
                f"Duplicate resource URIs found: {', '.join(dupes)}",
                {"duplicates": dupes, "resource_count": len(resources)},
                ["Ensure all resource URIs are unique"],
            )

        return passed(
            self,
            f"{len(resources)} resources found",
            {"resource_count": len(resources), "resource_uris": uris[:5]},
        )


def find_test_resource(resources: list[Any]) -> Any:
    for pattern in _SAFE_URI_PATTERNS:
        for resource in resources:
            if pattern in _uri(resource).lower():
                return resource
    return resources[0]


@dataclass(frozen=True, slots=True)
class ResourceReadingProbe:
    name: str = "Resources: Resource Reading"
    description: str = "Test resource reading functionality"
    category: str = TestCategory.FEATURES
    severity: Severity = Severity.INFO
    required_capability: Capability | None = Capability.RESOURCES
    spec_section: str = ""

    async def execute(self, client: McpClientPort, config: DoctorConfig) -> DiagnosticResult:
        try:
            resources = await _list_resources(client)
        except Exception as exc:
            return failed(self, "Failed to test resource reading", {"error": error_text(exc)})

        if not resources:
            return skipped(self, "No resources available to test reading")

        uri = _uri(find_test_resource(resources))
        try:
            result = await client.read_resource(uri)
        except Exception as exc:
            return failed(
                self,
                f"Resource reading failed ({uri})",
                {"resource_uri": uri, "error": error_text(exc)},
                ["Check resource implementation", "Verify resource URI validity"],
            )

        contents = field_of(result, "contents") or []
        if not isinstance(contents, (list, tuple)):
            contents = [contents]
        mime_types = [m for m in (field_of(c, "mimeType") for c in contents) if m]
        return passed(
            self,
            f"Resource reading successful ({uri})",
            {"resource_uri": uri, "content_count": len(contents), "mime_types": mime_types},
        )


@dataclass(frozen=True, slots=True)
class MimeTypeProbe:
    """At least half of the listed resources should declare a MIME type."""

    name: str = "Resources: MIME Type Handling"
    description: str = "Verify proper MIME type handling in resources"
    category: str = TestCategory.FEATURES
    severity: Severity = Severity.INFO
    required_capability: Capability | None = Capability.RESOURCES
    spec_section: str = ""

    async def execute(self, client: McpClientPort, config: DoctorConfig) -> DiagnosticResult:
        try:
            resources = await _list_resources(client)
        except Exception as exc:
            return failed(self, "Failed to check MIME type handling", {"error": error_text(exc)})

        if not resources:
            return skipped(self, "No resources available to check MIME types")

        mime_types = [field_of(r, "mimeType") for r in resources]
        with_mime = sum(1 for m in mime_types if m)
        stats: dict[str, object] = {
            "total_resources": len(resources),
            "with_mime_type": with_mime,
            "without_mime_type": len(resources) - with_mime,
            "unique_mime_types": sorted({m for m in mime_types if m}),
        }

        if with_mime == 0:
            return failed(
                self,
                "No resources specify MIME types",
                stats,
                [
                    "Add mimeType field to resource definitions",
                    "MIME types help clients handle content appropriately",
                ],
            )

        coverage = with_mime / len(resources) * 100
        stats["coverage"] = f"{coverage:.1f}%"
        good = coverage >= _MIN_MIME_COVERAGE
        return outcome(
            self,
            good,
            (
                f"Good MIME type coverage: {coverage:.1f}%"
                if good
                else f"Poor MIME type coverage: {coverage:.1f}%"
            ),
            stats,
            () if good else ("Add MIME types to more resources",),
        )


def uri_issues(uri: str) -> list[str]:
    if not uri:
        return ["empty URI"]

    issues: list[str] = []
    if uri.strip() != uri:
        issues.append("URI contains leading/trailing whitespace")
    if not urlsplit(uri.strip()).scheme and ":" not in uri:
        issues.append("URI should include scheme (e.g., file:, custom:)")
    return issues


@dataclass(frozen=True, slots=True)
class UriValidationProbe:
    name: str = "Resources: URI Validation"
    description: str = "Validate resource URI format and structure"
    category: str = TestCategory.FEATURES
    severity: Severity = Severity.WARNING
    required_capability: Capability | None = Capability.RESOURCES
    spec_section: str = ""

    async def execute(self, client: McpClientPort, config: DoctorConfig) -> DiagnosticResult:
        try:
            resources = await _list_resources(client)
        except Exception as exc:
            return failed(self, "Failed to validate resource URIs", {"error": error_text(exc)})

        if not resources:
            return skipped(self, "No resources available to validate URIs")

        issues: list[str] = []
        valid: list[str] = []
        for resource in resources:
            uri = _uri(resource)
            problems = uri_issues(uri)
            if problems:
                issues.append(f"{uri!r}: {', '.join(problems)}")
            else:
                valid.append(uri)

        return outcome(
            self,
            not issues,
            (
                f"All {len(resources)} resource URIs are valid"
                if not issues
                else f"URI validation failed for {len(issues)} resources"
            ),
            {"uri_issues": issues, "valid_uris": valid, "total_resources": len(resources)},
            ()
            if not issues
            else ("Fix URI format issues", "Ensure URIs follow proper format standards"),
        )


def _is_not_found_error(exc: Exception) -> bool:
    code = field_of(getattr(exc, "error", None), "code")
    if code == _RESOURCE_NOT_FOUND_CODE:
        return True
    text = error_text(exc).lower()
    return any(marker in text for marker in _NOT_FOUND_MARKERS)


@dataclass(frozen=True, slots=True)
class ResourceNotFoundProbe:
    name: str = "Resources: Not Found Handling"
    description: str = "Test handling of non-existent resource requests"
    category: str = TestCategory.FEATURES
    severity: Severity = Severity.INFO
    required_capability: Capability | None = Capability.RESOURCES
    spec_section: str = ""

    async def execute(self, client: McpClientPort, config: DoctorConfig) -> DiagnosticResult:
        try:
            await client.read_resource(_NONEXISTENT_URI)
        except Exception as exc:
            proper = _is_not_found_error(exc)
            return outcome(
                self,
                proper,
                (
                    "Server properly handles non-existent resources"
                    if proper
                    else "Server returns error but message could be more specific"
                ),
                {"tested_uri": _NONEXISTENT_URI, "error_message": error_text(exc)},
                ()
                if proper
                else ("Consider returning more specific error messages for resource not found",),
            )

        return failed(
            self,
            "Server did not return error for non-existent resource",
            {"tested_uri": _NONEXISTENT_URI},
            [
                "Implement proper error handling for non-existent resources",
                "Return error code -32002 (resource not found)",
            ],
        )
