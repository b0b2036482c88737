from __future__ import annotations

from dataclasses import asdict, is_dataclass
from datetime import datetime, timezone
from typing import Any

from scenario_harness.domain.determinism import is_deterministic
from scenario_harness.domain.diagnostics import Diagnostic, Location
from scenario_harness.domain.outcome import Fail
from scenario_harness.domain.report import ScenarioReport, StepReport
from scenario_harness.domain.result import Result

RESULT_SCHEMA_VERSION = 1
FIXED_TIMESTAMP = "1970-01-01T00:00:00+00:00"


def _serialize_location(location: Location | None) -> dict[str, Any] | None:
    if location is None:
        return None
    if is_dataclass(location):
        return asdict(location)
    return {"kind": str(getattr(location, "kind", "unknown"))}


def serialize_diagnostic(diag: Diagnostic) -> dict[str, Any]:
    return {
        "id": diag.id,
        "code": diag.code,
        "rule": diag.rule,
        "severity": diag.severity.value,
        "category": diag.category.value,
        "message": diag.message,
        "hint": diag.hint,
        "details": diag.details,
        "location": _serialize_location(diag.location),
    }


def serialize_step(step: StepReport) -> dict[str, Any]:
    payload: dict[str, Any] = {
        "name": step.name,
        "command": step.command,
        "passed": step.passed,
        "duration": 0.0 if is_deterministic() else round(step.duration, 3),
    }
    outcome = step.outcome
    if isinstance(outcome, Fail):
        payload.update(
            {
                "kind": outcome.kind.value,
                "expected": outcome.expected,
                "actual": outcome.actual,
                "stderr": outcome.stderr,
                "message": outcome.message,
            }
        )
    return payload


def serialize_scenario(report: ScenarioReport) -> dict[str, Any]:
    passed, attempted, declared = report.counts()
    return {
        "name": report.name,
        "passed": report.passed,
        "states": [state.value for state in report.states],
        "teardown_attempted": report.teardown_attempted,
        "counts": {"passed": passed, "attempted": attempted, "declared": declared},
        "steps": [serialize_step(step) for step in report.steps],
    }


def serialize_run(
    result: Result[list[ScenarioReport]],
    command: str,
    args: list[str],
) -> dict[str, Any]:
    timestamp = FIXED_TIMESTAMP if is_deterministic() else datetime.now(timezone.utc).isoformat()
    return {
        "result_schema_version": RESULT_SCHEMA_VERSION,
        "timestamp": timestamp,
        "command": command,
        "args": args,
        "exit_code": result.exit_code,
        "diagnostics": [serialize_diagnostic(d) for d in result.diagnostics],
        "scenarios": [serialize_scenario(report) for report in result.value or []],
    }
