from __future__ import annotations

from dataclasses import dataclass, field
from typing import Generic, TypeVar

from scenario_harness.domain.diagnostics import Category, Diagnostic

T = TypeVar("T")

EXIT_OK = 0
EXIT_ASSERTION = 1
EXIT_VALIDATION = 2
EXIT_ENVIRONMENT = 3


def _new_diagnostics() -> list[Diagnostic]:
    return []


@dataclass
class Result(Generic[T]):
    value: T | None = None
    diagnostics: list[Diagnostic] = field(default_factory=_new_diagnostics)

    def _has_error(self, category: Category) -> bool:
        return any(d.is_error and d.category == category for d in self.diagnostics)

    @property
    def has_errors(self) -> bool:
        return any(d.is_error for d in self.diagnostics)

    @property
    def exit_code(self) -> int:
        if self._has_error(Category.ENVIRONMENT):
            return EXIT_ENVIRONMENT
        if self._has_error(Category.VALIDATION):
            return EXIT_VALIDATION
        if self._has_error(Category.ASSERTION):
            return EXIT_ASSERTION
        return EXIT_OK
