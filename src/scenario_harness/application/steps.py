from __future__ import annotations

from pathlib import Path
from typing import Mapping

from scenario_harness.adapters.errors import SpawnError, TimeoutExceeded
from scenario_harness.domain.command import Command
from scenario_harness.domain.outcome import (
    MATCHERS,
    Fail,
    FailureKind,
    Pass,
    StepOutcome,
    normalize_output,
)
from scenario_harness.domain.scenario import ScenarioStep, merge_params
from scenario_harness.ports.command_runner import CommandRunnerPort


def render_step_command(
    step: ScenarioStep,
    params: Mapping[str, str],
    overrides: Mapping[str, str] | None = None,
) -> Command:
    return step.command.render(merge_params(dict(params), step.params, dict(overrides or {})))


def evaluate_step(
    step: ScenarioStep,
    runner: CommandRunnerPort,
    params: Mapping[str, str] | None = None,
    timeout: float | None = None,
    cwd: Path | None = None,
    env: Mapping[str, str] | None = None,
    overrides: Mapping[str, str] | None = None,
) -> StepOutcome:
    """Run the step's command once and compare its stdout to the expectation.

    Every failure mode becomes a ``Fail`` carrying both the expected and the
    actual text. There are no retries.
    """
    expected = step.expected
    try:
        command = render_step_command(step, params or {}, overrides)
    except (KeyError, ValueError) as e:
        return Fail(
            kind=FailureKind.SPAWN_ERROR,
            expected=expected,
            actual="",
            message=f"Could not render command: {e}",
        )

    try:
        result = runner.run(
            command,
            timeout=command.timeout if command.timeout is not None else timeout,
            cwd=command.resolve_cwd(cwd),
            env=env,
        )
    except SpawnError as e:
        return Fail(
            kind=FailureKind.SPAWN_ERROR,
            expected=expected,
            actual="",
            message=str(e),
        )
    except TimeoutExceeded as e:
        return Fail(
            kind=FailureKind.TIMEOUT_EXCEEDED,
            expected=expected,
            actual=normalize_output(e.stdout),
            stderr=e.stderr,
            message=str(e),
        )

    actual = normalize_output(result.stdout)
    if result.exit_code != 0:
        return Fail(
            kind=FailureKind.NON_ZERO_EXIT,
            expected=expected,
            actual=actual,
            stderr=result.stderr,
            message=f"{command.program} exited with status {result.exit_code}",
            exit_code=result.exit_code,
        )
    if not MATCHERS[step.match](expected, actual):
        return Fail(
            kind=FailureKind.OUTPUT_MISMATCH,
            expected=expected,
            actual=actual,
            stderr=result.stderr,
            message="Output did not match",
            exit_code=result.exit_code,
        )
    return Pass(actual=actual)
