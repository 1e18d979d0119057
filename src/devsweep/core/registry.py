"""Central checker registry."""

from __future__ import annotations

import logging
from typing import Iterator

from devsweep.models.checker import Checker
from devsweep.settings import Settings

log = logging.getLogger(__name__)


class CheckerRegistry:
    """Stores checkers keyed by category.

    Registration order is the canonical category order: scans always
    report categories in this order, whichever checker finishes first.
    """

    def __init__(self) -> None:
        self._checkers: dict[str, Checker] = {}

    def register(self, checker: Checker) -> None:
        """Register a checker instance."""
        if checker.category in self._checkers:
            log.warning("Checker for '%s' already registered, skipping duplicate", checker.category)
            return
        self._checkers[checker.category] = checker
        log.debug("Registered checker: %s", checker.category)

    def get(self, category: str) -> Checker | None:
        """Get the checker for a category."""
        return self._checkers.get(category)

    def get_all(self) -> list[Checker]:
        """Get all registered checkers in canonical order."""
        return list(self._checkers.values())

    def categories(self) -> list[str]:
        """Category names in canonical order."""
        return list(self._checkers)

    def __len__(self) -> int:
        return len(self._checkers)

    def __iter__(self) -> Iterator[Checker]:
        return iter(self._checkers.values())

    def __contains__(self, category: str) -> bool:
        return category in self._checkers


def default_registry(settings: Settings | None = None) -> CheckerRegistry:
    """Registry holding the built-in checkers in display order."""
    from devsweep.checkers import builtin_checkers

    registry = CheckerRegistry()
    for checker in builtin_checkers(settings):
        registry.register(checker)
    log.info("Loaded %d checkers", len(registry))
    return registry
