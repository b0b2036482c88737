from __future__ import annotations

import time
from typing import Mapping

from scenario_harness.adapters.errors import SpawnError, TimeoutExceeded
from scenario_harness.application.steps import evaluate_step, render_step_command
from scenario_harness.domain.command import Command
from scenario_harness.domain.diagnostics import (
    Category,
    Diagnostic,
    Severity,
    StepLocation,
)
from scenario_harness.domain.outcome import Fail
from scenario_harness.domain.report import ScenarioReport, ScenarioState, StepReport
from scenario_harness.domain.scenario import Scenario, merge_params, resolve_timeout
from scenario_harness.ports.command_runner import CommandRunnerPort
from scenario_harness.shared.logging import get_logger

logger = get_logger(__name__)


def _run_infra_command(
    scenario: Scenario,
    command: Command,
    runner: CommandRunnerPort,
    params: Mapping[str, str],
    timeout: float | None,
) -> dict[str, object] | None:
    """Run a setup/teardown command. Return failure details, or None on success."""
    try:
        rendered = command.render(params)
    except (KeyError, ValueError) as e:
        return {"command": command.display(), "reason": "render", "error": str(e)}
    details: dict[str, object] = {"command": rendered.display()}
    try:
        result = runner.run(
            rendered,
            timeout=resolve_timeout(rendered.timeout, timeout),
            cwd=rendered.resolve_cwd(scenario.workdir),
            env=scenario.env or None,
        )
    except SpawnError as e:
        return {**details, "reason": "spawn_error", "error": str(e)}
    except TimeoutExceeded as e:
        return {**details, "reason": "timeout_exceeded", "error": str(e), "stderr": e.stderr}
    if result.exit_code != 0:
        return {
            **details,
            "reason": "non_zero_exit",
            "exit_code": result.exit_code,
            "stderr": result.stderr,
        }
    return None


def _step_failure(scenario: Scenario, step_name: str, outcome: Fail) -> Diagnostic:
    return Diagnostic(
        code=outcome.kind.code,
        rule="scenario.step",
        severity=Severity.ERROR,
        message=f"Step '{step_name}' failed: {outcome.message or outcome.kind.value}",
        location=StepLocation(scenario.name, step_name),
        details={
            "expected": outcome.expected,
            "actual": outcome.actual,
            "stderr": outcome.stderr,
            "exit_code": outcome.exit_code,
        },
        category=Category.ASSERTION,
    )


def _setup(
    scenario: Scenario,
    runner: CommandRunnerPort,
    params: Mapping[str, str],
    timeout: float | None,
    report: ScenarioReport,
) -> bool:
    for index, command in enumerate(scenario.setup):
        failure = _run_infra_command(scenario, command, runner, params, timeout)
        if failure is None:
            continue
        logger.error("setup failed", scenario=scenario.name, **failure)
        report.diagnostics.append(
            Diagnostic(
                code="SETUP_FAILED",
                rule="scenario.setup",
                severity=Severity.ERROR,
                message=f"Setup command {index + 1} failed: {failure['command']}",
                location=StepLocation(scenario.name),
                details=failure,
                category=Category.ENVIRONMENT,
            )
        )
        return False
    return True


def _run_steps(
    scenario: Scenario,
    runner: CommandRunnerPort,
    params: Mapping[str, str],
    overrides: Mapping[str, str],
    timeout: float | None,
    report: ScenarioReport,
) -> None:
    for step in scenario.steps:
        try:
            display = render_step_command(step, params, overrides).display()
        except (KeyError, ValueError):
            display = step.command.display()
        started = time.monotonic()
        outcome = evaluate_step(
            step,
            runner,
            params=params,
            timeout=timeout,
            cwd=scenario.workdir,
            env=scenario.env or None,
            overrides=overrides,
        )
        report.steps.append(
            StepReport(
                name=step.name,
                command=display,
                outcome=outcome,
                duration=time.monotonic() - started,
            )
        )
        if isinstance(outcome, Fail):
            logger.info(
                "step failed",
                scenario=scenario.name,
                step=step.name,
                kind=outcome.kind.value,
            )
            report.diagnostics.append(_step_failure(scenario, step.name, outcome))
            # Later steps act on the state this one left behind.
            return
        logger.info("step passed", scenario=scenario.name, step=step.name)


def _teardown(
    scenario: Scenario,
    runner: CommandRunnerPort,
    params: Mapping[str, str],
    timeout: float | None,
    report: ScenarioReport,
) -> None:
    report.teardown_attempted = True
    for index, command in enumerate(scenario.teardown):
        failure = _run_infra_command(scenario, command, runner, params, timeout)
        if failure is None:
            continue
        logger.warning("teardown failed", scenario=scenario.name, **failure)
        report.diagnostics.append(
            Diagnostic(
                code="TEARDOWN_FAILED",
                rule="scenario.teardown",
                severity=Severity.WARN,
                message=f"Teardown command {index + 1} failed: {failure['command']}",
                location=StepLocation(scenario.name),
                details=failure,
                category=Category.ENVIRONMENT,
                upgradeable=True,
            )
        )


def run_scenario(
    scenario: Scenario,
    runner: CommandRunnerPort,
    *,
    params: Mapping[str, str] | None = None,
    overrides: Mapping[str, str] | None = None,
    timeout: float | None = None,
) -> ScenarioReport:
    """Set up, run steps fail-fast, and always tear down.

    Parameters layer as ``params`` (harness config), then the scenario's own,
    then each step's, with ``overrides`` (command line) winning over all.
    ``timeout`` is the harness default, used when neither the command nor the
    scenario sets one.
    """
    fixed = dict(overrides or {})
    merged = merge_params(dict(params or {}), scenario.params, fixed)
    effective_timeout = resolve_timeout(scenario.timeout, timeout)
    report = ScenarioReport(name=scenario.name, step_names=scenario.step_names())
    logger.info("scenario started", scenario=scenario.name, steps=len(scenario.steps))

    report.advance(ScenarioState.SETTING_UP)
    try:
        if _setup(scenario, runner, merged, effective_timeout, report):
            report.advance(ScenarioState.STEPS_RUNNING)
            _run_steps(scenario, runner, merged, fixed, effective_timeout, report)
            report.advance(ScenarioState.STEPS_COMPLETE)
        else:
            report.advance(ScenarioState.SETUP_FAILED)
    finally:
        report.advance(ScenarioState.TEARING_DOWN)
        _teardown(scenario, runner, merged, effective_timeout, report)
        report.advance(ScenarioState.DONE)

    logger.info("scenario finished", scenario=scenario.name, passed=report.passed)
    return report
