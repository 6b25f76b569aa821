"""Catalog of diagnostic tests, assembled explicitly by a factory."""

from __future__ import annotations

import logging
from collections.abc import Iterable

from mcp_doctor.doctor.base import DiagnosticTest
from mcp_doctor.errors import RegistryError
from mcp_doctor.models import Capability

logger = logging.getLogger(__name__)


class TestRegistry:
    """Ordered catalog of diagnostic tests.

    Registration order is preserved for execution, but no test may depend on
    it. ``get_applicable_tests`` and ``get_skipped_tests`` partition the
    catalog for a given capability set.
    """

    __test__ = False

    def __init__(self) -> None:
        self._tests: list[DiagnosticTest] = []
        self._keys: set[tuple[str, str]] = set()

    def __len__(self) -> int:
        return len(self._tests)

    def register(self, test: DiagnosticTest) -> None:
        """Add a test. Names must be unique within a category."""
        key = (test.category, test.name)
        if key in self._keys:
            raise RegistryError(
                f"Diagnostic test '{test.name}' is already registered in category "
                f"'{test.category}'."
            )
        self._keys.add(key)
        self._tests.append(test)
        logger.debug("Registered diagnostic test: %s", test.name)

    def get_all_tests(self) -> list[DiagnosticTest]:
        return list(self._tests)

    def get_tests_by_category(self, category: str) -> list[DiagnosticTest]:
        return [t for t in self._tests if t.category == category]

    def get_tests_by_categories(self, categories: Iterable[str]) -> list[DiagnosticTest]:
        wanted = set(categories)
        return [t for t in self._tests if t.category in wanted]

    def get_available_categories(self) -> list[str]:
        return sorted({str(t.category) for t in self._tests})

    def get_applicable_tests(self, capabilities: Iterable[Capability]) -> list[DiagnosticTest]:
        """Tests with no capability requirement or whose requirement is present."""
        caps = frozenset(capabilities)
        return [
            t
            for t in self._tests
            if t.required_capability is None or t.required_capability in caps
        ]

    def get_skipped_tests(self, capabilities: Iterable[Capability]) -> list[DiagnosticTest]:
        """Tests whose required capability is absent. These never execute."""
        caps = frozenset(capabilities)
        return [
            t
            for t in self._tests
            if t.required_capability is not None and t.required_capability not in caps
        ]


def build_registry(tests: Iterable[DiagnosticTest]) -> TestRegistry:
    """Assemble a registry from an explicit, ordered list of tests."""
    registry = TestRegistry()
    for test in tests:
        registry.register(test)
    return registry


def default_registry() -> TestRegistry:
    """Registry holding the full built-in test library, in catalog order."""
    from mcp_doctor.doctor.probes.catalog import ALL_PROBES

    return build_registry(ALL_PROBES)
