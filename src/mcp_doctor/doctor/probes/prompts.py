"""Prompts feature probes. All of them require the ``prompts`` capability."""

from __future__ import annotations

from collections import Counter
from dataclasses import dataclass
from typing import Any

from mcp_doctor.connection.base import McpClientPort
from mcp_doctor.doctor.base import (
    content_text,
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

# (keyword in argument name or description, value to send)
_ARGUMENT_HINTS: tuple[tuple[str, str], ...] = (
    ("name", "test_name"),
    ("file", "test.txt"),
    ("url", "https://example.com"),
    ("email", "test@example.com"),
    ("number", "1"),
)
_DEFAULT_ARGUMENT = "test_value"

_SIMPLE_DESCRIPTION_CHARS = 100


async def _list_prompts(client: McpClientPort) -> list[Any]:
    return await fetch_listing(client, "list_prompts", "prompts")


def _arguments(prompt: Any) -> list[Any]:
    return list(field_of(prompt, "arguments") or [])


def _required_arguments(prompt: Any) -> list[Any]:
    return [a for a in _arguments(prompt) if field_of(a, "required")]


def _prompt_name(prompt: Any) -> str:
    return str(field_of(prompt, "name", ""))


@dataclass(frozen=True, slots=True)
class PromptsCapabilityProbe:
    name: str = "Prompts: Capability Declaration"
    description: str = "Verify server declares prompts capability correctly"
    category: str = TestCategory.FEATURES
    severity: Severity = Severity.INFO
    required_capability: Capability | None = Capability.PROMPTS
    spec_section: str = ""

    async def execute(self, client: McpClientPort, config: DoctorConfig) -> DiagnosticResult:
        try:
            prompts = await _list_prompts(client)
        except Exception as exc:
            return failed(
                self,
                "Server does not support prompts capability",
                {"error": error_text(exc)},
                ["Prompts capability is optional but useful for template-based interactions"],
            )

        declared = client.declared_capabilities
        if declared is not None and Capability.PROMPTS not in declared:
            return failed(
                self,
                "Server serves prompts/list but does not declare the prompts capability",
                {"prompts_count": len(prompts)},
                ["Declare the 'prompts' capability in the initialize response"],
            )

        list_changed = field_of(client.raw_capabilities.get("prompts") or {}, "listChanged")
        suffix = f" (listChanged: {list_changed})" if list_changed is not None else ""
        return passed(
            self,
            f"Prompts capability declared correctly{suffix}",
            {"list_changed": list_changed, "prompts_count": len(prompts)},
        )


@dataclass(frozen=True, slots=True)
class PromptListingProbe:
    name: str = "Prompts: Prompt Listing"
    description: str = "Verify prompt listing functionality"
    category: str = TestCategory.FEATURES
    severity: Severity = Severity.INFO
    required_capability: Capability | None = Capability.PROMPTS
    spec_section: str = ""

    async def execute(self, client: McpClientPort, config: DoctorConfig) -> DiagnosticResult:
        try:
            prompts = await _list_prompts(client)
        except Exception as exc:
            return failed(
                self,
                "Failed to list prompts",
                {"error": error_text(exc)},
                ["Check server prompts/list implementation"],
            )

        if not prompts:
            return failed(
                self,
                "No prompts found",
                {"prompt_count": 0},
                ["Consider implementing prompts for template-based interactions"],
            )

        names = [_prompt_name(p) for p in prompts]
        dupes = sorted(n for n, count in Counter(names).items() if count > 1)
        if dupes:
            return failed(
                self,
                f"Duplicate prompt names found: {', '.join(dupes)}",
                {"duplicates": dupes, "prompt_count": len(prompts)},
                ["Ensure all prompt names are unique"],
            )

        return passed(
            self,
            f"{len(prompts)} prompts found",
            {"prompt_count": len(prompts), "prompt_names": names[:5]},
        )


def _is_simple(prompt: Any) -> bool:
    """No required arguments, or only ones with a short description."""
    for argument in _required_arguments(prompt):
        description = field_of(argument, "description")
        if not isinstance(description, str) or len(description) >= _SIMPLE_DESCRIPTION_CHARS:
            return False
    return True


def find_test_prompt(prompts: list[Any]) -> Any:
    for prompt in prompts:
        if _is_simple(prompt):
            return prompt
    return prompts[0]


def argument_value(argument: Any) -> str:
    """A plausible value for a prompt argument, guessed from its name and description."""
    name = str(field_of(argument, "name", "")).lower()
    description = str(field_of(argument, "description") or "").lower()
    for keyword, value in _ARGUMENT_HINTS:
        if keyword in name or keyword in description:
            return value
    return _DEFAULT_ARGUMENT


def generate_prompt_arguments(prompt: Any) -> dict[str, str]:
    return {
        str(field_of(a, "name")): argument_value(a) for a in _required_arguments(prompt)
    }


@dataclass(frozen=True, slots=True)
class PromptRetrievalProbe:
    name: str = "Prompts: Prompt Retrieval"
    description: str = "Test prompt retrieval functionality"
    category: str = TestCategory.FEATURES
    severity: Severity = Severity.INFO
    required_capability: Capability | None = Capability.PROMPTS
    spec_section: str = ""

    async def execute(self, client: McpClientPort, config: DoctorConfig) -> DiagnosticResult:
        try:
            prompts = await _list_prompts(client)
        except Exception as exc:
            return failed(self, "Failed to test prompt retrieval", {"error": error_text(exc)})

        if not prompts:
            return skipped(self, "No prompts available to test retrieval")

        prompt = find_test_prompt(prompts)
        prompt_name = _prompt_name(prompt)
        arguments = generate_prompt_arguments(prompt)
        try:
            result = await client.get_prompt(prompt_name, arguments)
        except Exception as exc:
            return failed(
                self,
                f"Prompt retrieval failed ({prompt_name})",
                {"prompt_name": prompt_name, "arguments": arguments, "error": error_text(exc)},
                ["Check prompt implementation", "Verify prompt argument handling"],
            )

        messages = field_of(result, "messages") or []
        return passed(
            self,
            f"Prompt retrieval successful ({prompt_name})",
            {
                "prompt_name": prompt_name,
                "arguments": arguments,
                "message_count": len(messages),
                "description": field_of(result, "description"),
            },
        )


@dataclass(frozen=True, slots=True)
class PromptArgumentValidationProbe:
    """Omitting a required argument must be rejected."""

    name: str = "Prompts: Argument Validation"
    description: str = "Test prompt argument validation"
    category: str = TestCategory.FEATURES
    severity: Severity = Severity.INFO
    required_capability: Capability | None = Capability.PROMPTS
    spec_section: str = ""

    async def execute(self, client: McpClientPort, config: DoctorConfig) -> DiagnosticResult:
        try:
            prompts = await _list_prompts(client)
        except Exception as exc:
            return failed(
                self, "Failed to test prompt argument validation", {"error": error_text(exc)}
            )

        if not prompts:
            return skipped(self, "No prompts available to test argument validation")

        target = next((p for p in prompts if _required_arguments(p)), None)
        if target is None:
            return skipped(self, "No prompts declare required arguments")

        prompt_name = _prompt_name(target)
        try:
            await client.get_prompt(prompt_name, {})
        except Exception as exc:
            return passed(
                self,
                f"Prompt properly validates required arguments ({prompt_name})",
                {"prompt_name": prompt_name, "error": error_text(exc)},
            )

        return failed(
            self,
            f"Prompt did not validate required arguments ({prompt_name})",
            {"prompt_name": prompt_name},
            [
                "Implement proper argument validation",
                "Return appropriate error for missing required arguments",
            ],
        )


def _marker(argument_name: str) -> str:
    return f"TEST_VALUE_{argument_name.upper()}"


@dataclass(frozen=True, slots=True)
class TemplateRenderingProbe:
    """Send distinctive argument values and look for them in the rendered messages."""

    name: str = "Prompts: Template Rendering"
    description: str = "Test prompt template rendering with variables"
    category: str = TestCategory.FEATURES
    severity: Severity = Severity.INFO
    required_capability: Capability | None = Capability.PROMPTS
    spec_section: str = ""

    async def execute(self, client: McpClientPort, config: DoctorConfig) -> DiagnosticResult:
        try:
            prompts = await _list_prompts(client)
        except Exception as exc:
            return failed(self, "Failed to test template rendering", {"error": error_text(exc)})

        if not prompts:
            return skipped(self, "No prompts available to test template rendering")

        target = next((p for p in prompts if _arguments(p)), None)
        if target is None:
            return skipped(self, "No prompts with arguments to test template rendering")

        prompt_name = _prompt_name(target)
        arguments = {
            str(field_of(a, "name")): _marker(str(field_of(a, "name"))) for a in _arguments(target)
        }
        try:
            result = await client.get_prompt(prompt_name, arguments)
        except Exception as exc:
            return failed(
                self,
                f"Template rendering failed ({prompt_name})",
                {"prompt_name": prompt_name, "arguments": arguments, "error": error_text(exc)},
            )

        messages = field_of(result, "messages") or []
        rendered = " ".join(content_text(field_of(m, "content", "")) for m in messages)
        found = [f'{arg}="{value}"' for arg, value in arguments.items() if value in rendered]

        return outcome(
            self,
            bool(found),
            (
                f"Template rendering working ({prompt_name})"
                if found
                else f"No template substitution detected ({prompt_name})"
            ),
            {
                "prompt_name": prompt_name,
                "arguments": arguments,
                "substitutions_found": found,
                "message_count": len(messages),
            },
            ()
            if found
            else (
                "Verify prompt templates use argument substitution",
                "Check template syntax implementation",
            ),
        )
