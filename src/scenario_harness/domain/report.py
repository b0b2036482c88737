from __future__ import annotations

from dataclasses import dataclass, field
from enum import Enum

from scenario_harness.domain.diagnostics import Diagnostic
from scenario_harness.domain.outcome import Fail, StepOutcome


class ScenarioState(str, Enum):
    INIT = "init"
    SETTING_UP = "setting_up"
    SETUP_FAILED = "setup_failed"
    STEPS_RUNNING = "steps_running"
    STEPS_COMPLETE = "steps_complete"
    TEARING_DOWN = "tearing_down"
    DONE = "done"


_TRANSITIONS: dict[ScenarioState, set[ScenarioState]] = {
    ScenarioState.INIT: {ScenarioState.SETTING_UP},
    ScenarioState.SETTING_UP: {
        ScenarioState.STEPS_RUNNING,
        ScenarioState.SETUP_FAILED,
        ScenarioState.TEARING_DOWN,
    },
    ScenarioState.STEPS_RUNNING: {
        ScenarioState.STEPS_COMPLETE,
        ScenarioState.TEARING_DOWN,
    },
    ScenarioState.STEPS_COMPLETE: {ScenarioState.TEARING_DOWN},
    ScenarioState.SETUP_FAILED: {ScenarioState.TEARING_DOWN},
    ScenarioState.TEARING_DOWN: {ScenarioState.DONE},
    ScenarioState.DONE: set(),
}


@dataclass(frozen=True)
class StepReport:
    name: str
    command: str
    outcome: StepOutcome
    duration: float = 0.0

    @property
    def passed(self) -> bool:
        return self.outcome.passed

    @property
    def failure(self) -> Fail | None:
        return self.outcome if isinstance(self.outcome, Fail) else None


def _new_names() -> list[str]:
    return []


def _new_states() -> list[ScenarioState]:
    return [ScenarioState.INIT]


def _new_steps() -> list[StepReport]:
    return []


def _new_diagnostics() -> list[Diagnostic]:
    return []


@dataclass
class ScenarioReport:
    """Outcome of one scenario run: visited states, attempted steps, diagnostics."""

    name: str
    step_names: list[str] = field(default_factory=_new_names)
    states: list[ScenarioState] = field(default_factory=_new_states)
    steps: list[StepReport] = field(default_factory=_new_steps)
    diagnostics: list[Diagnostic] = field(default_factory=_new_diagnostics)
    teardown_attempted: bool = False

    @property
    def state(self) -> ScenarioState:
        return self.states[-1]

    def advance(self, state: ScenarioState) -> None:
        if state not in _TRANSITIONS[self.state]:
            raise RuntimeError(
                f"Invalid scenario transition {self.state.value} -> {state.value}"
            )
        self.states.append(state)

    @property
    def setup_failed(self) -> bool:
        return ScenarioState.SETUP_FAILED in self.states

    @property
    def completed(self) -> bool:
        return ScenarioState.STEPS_COMPLETE in self.states

    @property
    def passed(self) -> bool:
        return (
            self.completed
            and all(step.passed for step in self.steps)
            and not any(d.is_error for d in self.diagnostics)
        )

    @property
    def failed_step(self) -> StepReport | None:
        for step in self.steps:
            if not step.passed:
                return step
        return None

    def counts(self) -> tuple[int, int, int]:
        passed = sum(1 for step in self.steps if step.passed)
        return passed, len(self.steps), len(self.step_names)

    def skipped_steps(self) -> list[str]:
        return self.step_names[len(self.steps):]
