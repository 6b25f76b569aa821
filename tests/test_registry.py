"""Tests for the diagnostic test registry."""

from __future__ import annotations

from dataclasses import dataclass

import pytest

from mcp_doctor.doctor.base import passed
from mcp_doctor.doctor.registry import TestRegistry, build_registry, default_registry
from mcp_doctor.errors import RegistryError
from mcp_doctor.models import Capability, Severity, TestCategory


@dataclass(frozen=True, slots=True)
class FakeProbe:
    name: str
    category: str = TestCategory.PROTOCOL
    required_capability: Capability | None = None
    description: str = "fake"
    severity: Severity = Severity.INFO
    spec_section: str = ""

    async def execute(self, client, config):
        return passed(self, "ok")


def _names(tests) -> list[str]:
    return [t.name for t in tests]


class TestRegistration:
    def test_preserves_registration_order(self):
        registry = build_registry([FakeProbe("b"), FakeProbe("a"), FakeProbe("c")])
        assert _names(registry.get_all_tests()) == ["b", "a", "c"]
        assert len(registry) == 3

    def test_duplicate_name_in_same_category_raises(self):
        registry = TestRegistry()
        registry.register(FakeProbe("dup"))
        with pytest.raises(RegistryError, match="already registered"):
            registry.register(FakeProbe("dup"))

    def test_same_name_in_other_category_allowed(self):
        registry = build_registry(
            [FakeProbe("dup"), FakeProbe("dup", category=TestCategory.FEATURES)]
        )
        assert len(registry) == 2


class TestQueries:
    @pytest.fixture()
    def registry(self) -> TestRegistry:
        return build_registry(
            [
                FakeProbe("ping"),
                FakeProbe("tools", TestCategory.FEATURES, Capability.TOOLS),
                FakeProbe("resources", TestCategory.FEATURES, Capability.RESOURCES),
                FakeProbe("prompts", TestCategory.FEATURES, Capability.PROMPTS),
                FakeProbe("latency", TestCategory.PERFORMANCE),
            ]
        )

    def test_by_category(self, registry: TestRegistry):
        assert _names(registry.get_tests_by_category("performance")) == ["latency"]

    def test_by_categories(self, registry: TestRegistry):
        found = registry.get_tests_by_categories(["protocol", "performance"])
        assert _names(found) == ["ping", "latency"]

    def test_available_categories_sorted(self, registry: TestRegistry):
        assert registry.get_available_categories() == ["features", "performance", "protocol"]

    def test_applicable_includes_ungated_and_present(self, registry: TestRegistry):
        found = registry.get_applicable_tests({Capability.TOOLS})
        assert _names(found) == ["ping", "tools", "latency"]

    def test_skipped_are_gated_and_absent(self, registry: TestRegistry):
        found = registry.get_skipped_tests({Capability.TOOLS})
        assert _names(found) == ["resources", "prompts"]

    @pytest.mark.parametrize(
        "caps",
        [
            set(),
            {Capability.TOOLS},
            {Capability.RESOURCES, Capability.PROMPTS},
            set(Capability),
        ],
    )
    def test_applicable_and_skipped_partition_catalog(self, registry, caps):
        applicable = _names(registry.get_applicable_tests(caps))
        skipped = _names(registry.get_skipped_tests(caps))

        assert not set(applicable) & set(skipped)
        assert sorted(applicable + skipped) == sorted(_names(registry.get_all_tests()))


class TestDefaultRegistry:
    def test_builds_without_duplicates(self):
        registry = default_registry()
        assert len(registry) == 27

    def test_every_capability_has_gated_tests(self):
        registry = default_registry()
        gated = {t.required_capability for t in registry.get_all_tests()}
        assert set(Capability) <= gated

    def test_first_test_is_initialization(self):
        first = default_registry().get_all_tests()[0]
        assert first.name == "Lifecycle: Initialization Flow"
        assert first.required_capability is None

    def test_descriptors_are_complete(self):
        for test in default_registry().get_all_tests():
            assert test.name
            assert test.description
            assert test.category in set(TestCategory)
            assert test.severity in set(Severity)
