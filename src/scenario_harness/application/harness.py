from __future__ import annotations

from typing import Iterable, Mapping

from scenario_harness.application.scenario import run_scenario
from scenario_harness.domain.diagnostics import Diagnostic, Severity
from scenario_harness.domain.report import ScenarioReport
from scenario_harness.domain.result import Result
from scenario_harness.domain.scenario import Scenario
from scenario_harness.domain.strictness import apply_strictness
from scenario_harness.ports.command_runner import CommandRunnerPort
from scenario_harness.shared.logging import get_logger

logger = get_logger(__name__)


def select_scenarios(
    scenarios: list[Scenario], names: Iterable[str] | None
) -> Result[list[Scenario]]:
    wanted = list(names or [])
    if not wanted:
        return Result(value=list(scenarios))
    known = {scenario.name for scenario in scenarios}
    diagnostics = [
        Diagnostic(
            code="SCENARIO_UNKNOWN",
            rule="harness.select",
            severity=Severity.ERROR,
            message=f"No scenario named '{name}'",
            details={"known": sorted(known)},
        )
        for name in wanted
        if name not in known
    ]
    selected = [scenario for scenario in scenarios if scenario.name in set(wanted)]
    return Result(value=selected, diagnostics=diagnostics)


def run_harness(
    scenarios: Iterable[Scenario],
    runner: CommandRunnerPort,
    *,
    params: Mapping[str, str] | None = None,
    overrides: Mapping[str, str] | None = None,
    timeout: float | None = None,
    strict: bool = False,
) -> Result[list[ScenarioReport]]:
    """Run scenarios one after another, each with its own setup and teardown.

    Scenarios never overlap: each one owns the external runtime between its
    setup and teardown. An interrupt propagates once the scenario in flight
    has torn down; the remaining scenarios are skipped.
    """
    reports: list[ScenarioReport] = []
    diagnostics: list[Diagnostic] = []
    for scenario in scenarios:
        report = run_scenario(
            scenario, runner, params=params, overrides=overrides, timeout=timeout
        )
        report.diagnostics = apply_strictness(report.diagnostics, strict)
        reports.append(report)
        diagnostics.extend(report.diagnostics)
    passed = sum(1 for report in reports if report.passed)
    logger.info("harness finished", scenarios=len(reports), passed=passed)
    return Result(value=reports, diagnostics=diagnostics)
