from __future__ import annotations

from dataclasses import dataclass, field
from pathlib import Path

from scenario_harness.domain.command import Command
from scenario_harness.domain.outcome import DEFAULT_MATCH


def _new_params() -> dict[str, str]:
    return {}


@dataclass(frozen=True)
class ScenarioStep:
    name: str
    command: Command
    expected: str
    match: str = DEFAULT_MATCH
    params: dict[str, str] = field(default_factory=_new_params)


@dataclass(frozen=True)
class Scenario:
    name: str
    steps: tuple[ScenarioStep, ...]
    setup: tuple[Command, ...] = ()
    teardown: tuple[Command, ...] = ()
    params: dict[str, str] = field(default_factory=_new_params)
    env: dict[str, str] = field(default_factory=_new_params)
    workdir: Path | None = None
    timeout: float | None = None
    source: Path | None = None

    def step_names(self) -> list[str]:
        return [step.name for step in self.steps]


def merge_params(*layers: dict[str, str] | None) -> dict[str, str]:
    """Layer parameter mappings; later layers win."""
    merged: dict[str, str] = {}
    for layer in layers:
        if layer:
            merged.update({str(k): str(v) for k, v in layer.items()})
    return merged


def resolve_timeout(*candidates: float | None) -> float | None:
    """Return the first configured timeout, most specific first."""
    for candidate in candidates:
        if candidate is not None:
            return candidate
    return None
