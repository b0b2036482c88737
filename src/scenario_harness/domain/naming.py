from __future__ import annotations

import re
from collections import Counter

from scenario_harness.domain.diagnostics import Diagnostic, FileLocation, Severity

SCENARIO_PATTERN = re.compile(r"^[a-z](?:[a-z0-9]*(-[a-z0-9]+)*)$")
PARAM_PATTERN = re.compile(r"^[a-zA-Z_][a-zA-Z0-9_]*$")


def validate_scenario_name(name: str, source: str | None = None) -> list[Diagnostic]:
    if SCENARIO_PATTERN.match(name):
        return []
    return [
        Diagnostic(
            code="SCENARIO_NAME_INVALID",
            rule="naming.scenario.format",
            severity=Severity.ERROR,
            message=f"Invalid scenario name: {name}",
            location=FileLocation(source) if source else None,
            hint="Use lower-case kebab-case, e.g. 'chess-smoke'",
        )
    ]


def validate_param_name(name: str, source: str | None = None) -> list[Diagnostic]:
    if PARAM_PATTERN.match(name):
        return []
    return [
        Diagnostic(
            code="PARAM_NAME_INVALID",
            rule="naming.param.format",
            severity=Severity.ERROR,
            message=f"Invalid parameter name: {name}",
            location=FileLocation(source) if source else None,
        )
    ]


def validate_step_names(names: list[str], source: str | None = None) -> list[Diagnostic]:
    diagnostics: list[Diagnostic] = []
    for name, count in sorted(Counter(names).items()):
        if count > 1:
            diagnostics.append(
                Diagnostic(
                    code="STEP_NAME_DUPLICATE",
                    rule="naming.step.unique",
                    severity=Severity.ERROR,
                    message=f"Duplicate step name: {name}",
                    location=FileLocation(source) if source else None,
                )
            )
    return diagnostics
