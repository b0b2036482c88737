from __future__ import annotations

import json
from pathlib import Path
from typing import Any, Iterable

import jsonschema
import yaml

from scenario_harness.adapters.errors import ScenarioLoadError
from scenario_harness.domain.command import Command
from scenario_harness.domain.diagnostics import Diagnostic, FileLocation, Severity
from scenario_harness.domain.naming import (
    validate_param_name,
    validate_scenario_name,
    validate_step_names,
)
from scenario_harness.domain.outcome import DEFAULT_MATCH, MATCHERS
from scenario_harness.domain.result import Result
from scenario_harness.domain.scenario import Scenario, ScenarioStep, merge_params

SCHEMA_PATH = Path(__file__).resolve().parents[2] / "schemas" / "scenario.schema.v1.json"

ScenarioDocument = dict[str, Any]


def _schema() -> dict[str, Any]:
    return json.loads(SCHEMA_PATH.read_text(encoding="utf-8"))


def _stringify(value: object) -> str:
    # YAML turns `true` into a bool; arguments need the literal back.
    if isinstance(value, bool):
        return "true" if value else "false"
    return str(value)


def _string_map(raw: object) -> dict[str, str]:
    if not isinstance(raw, dict):
        return {}
    return {str(k): _stringify(v) for k, v in raw.items()}


def read_scenario_document(path: Path) -> ScenarioDocument:
    try:
        raw: object = yaml.safe_load(path.read_text(encoding="utf-8"))
    except FileNotFoundError as e:
        raise ScenarioLoadError(f"Scenario file not found: {path}", cause=e) from e
    except (OSError, UnicodeDecodeError) as e:
        raise ScenarioLoadError(f"Could not read {path}: {e}", cause=e) from e
    except yaml.YAMLError as e:
        mark = getattr(e, "problem_mark", None)
        raise ScenarioLoadError(
            f"Invalid YAML in {path}: {e}",
            details={"line": mark.line + 1 if mark else None},
            cause=e,
        ) from e
    if not isinstance(raw, dict):
        raise ScenarioLoadError(f"Scenario file must contain a mapping: {path}")
    return raw


def validate_scenario_schema(document: ScenarioDocument, source: str) -> list[Diagnostic]:
    schema = _schema()
    validator = jsonschema.validators.validator_for(schema)(schema)
    diagnostics: list[Diagnostic] = []
    for error in sorted(validator.iter_errors(document), key=lambda e: list(e.absolute_path)):
        pointer = "/".join(str(part) for part in error.absolute_path)
        diagnostics.append(
            Diagnostic(
                code="SCENARIO_SCHEMA_INVALID",
                rule="scenario.schema",
                severity=Severity.ERROR,
                message=f"{pointer or '<root>'}: {error.message}",
                location=FileLocation(source),
            )
        )
    return diagnostics


def _command(raw: object) -> Command:
    if isinstance(raw, dict):
        cwd = raw.get("cwd")
        timeout = raw.get("timeout")
        return Command(
            argv=tuple(_stringify(token) for token in raw["argv"]),
            cwd=Path(str(cwd)) if cwd else None,
            timeout=float(timeout) if timeout is not None else None,
        )
    tokens = raw if isinstance(raw, list) else [raw]
    return Command(argv=tuple(_stringify(token) for token in tokens))


def _undefined_placeholders(
    scenario: Scenario, available: set[str], source: str
) -> list[Diagnostic]:
    diagnostics: list[Diagnostic] = []
    base = set(scenario.params) | available
    checks: list[tuple[str, Command, set[str]]] = [
        ("setup", command, base) for command in scenario.setup
    ]
    checks.extend(
        (f"step '{step.name}'", step.command, base | set(step.params))
        for step in scenario.steps
    )
    checks.extend(("teardown", command, base) for command in scenario.teardown)
    for where, command, defined in checks:
        for name in sorted(command.placeholders() - defined):
            diagnostics.append(
                Diagnostic(
                    code="PARAM_UNDEFINED",
                    rule="scenario.params.defined",
                    severity=Severity.ERROR,
                    message=f"Undefined parameter ${name} in {where}",
                    location=FileLocation(source),
                    hint="Declare it under params or pass --param",
                )
            )
    return diagnostics


def _unknown_matchers(scenario: Scenario, source: str) -> list[Diagnostic]:
    return [
        Diagnostic(
            code="MATCH_MODE_UNKNOWN",
            rule="scenario.steps.match",
            severity=Severity.ERROR,
            message=f"Unknown match mode '{step.match}' in step '{step.name}'",
            location=FileLocation(source),
            details={"known": sorted(MATCHERS)},
        )
        for step in scenario.steps
        if step.match not in MATCHERS
    ]


def build_scenario(document: ScenarioDocument, path: Path) -> Scenario:
    base = path.parent
    workdir_raw = document.get("workdir")
    workdir = (base / str(workdir_raw)) if workdir_raw else base
    timeout = document.get("timeout")
    steps = tuple(
        ScenarioStep(
            name=str(raw["name"]),
            command=_command(raw["run"]),
            expected=str(raw["expect"]),
            match=str(raw.get("match", DEFAULT_MATCH)),
            params=_string_map(raw.get("params")),
        )
        for raw in document.get("steps", [])
    )
    return Scenario(
        name=str(document["name"]),
        steps=steps,
        setup=tuple(_command(raw) for raw in document.get("setup", [])),
        teardown=tuple(_command(raw) for raw in document.get("teardown", [])),
        params=_string_map(document.get("params")),
        env=_string_map(document.get("env")),
        workdir=workdir,
        timeout=float(timeout) if timeout is not None else None,
        source=path,
    )


def load_scenario(path: Path, external_params: Iterable[str] = ()) -> Result[Scenario]:
    """Read, schema-check and semantically check one scenario file."""
    source = str(path)
    try:
        document = read_scenario_document(path)
    except ScenarioLoadError as e:
        missing = isinstance(e.cause, FileNotFoundError)
        code = "SCENARIO_MISSING" if missing else "SCENARIO_PARSE_FAILED"
        return Result(
            diagnostics=[
                Diagnostic(
                    code=code,
                    rule="scenario.read",
                    severity=Severity.ERROR,
                    message=str(e),
                    location=FileLocation(source, (e.details or {}).get("line")),
                )
            ]
        )

    diagnostics = validate_scenario_schema(document, source)
    if diagnostics:
        return Result(diagnostics=diagnostics)

    scenario = build_scenario(document, path)
    diagnostics.extend(validate_scenario_name(scenario.name, source))
    diagnostics.extend(validate_step_names(scenario.step_names(), source))
    param_names = merge_params(scenario.params, *(step.params for step in scenario.steps))
    for name in sorted(param_names):
        diagnostics.extend(validate_param_name(name, source))
    diagnostics.extend(_undefined_placeholders(scenario, set(external_params), source))
    diagnostics.extend(_unknown_matchers(scenario, source))
    if any(d.is_error for d in diagnostics):
        return Result(diagnostics=diagnostics)
    return Result(value=scenario, diagnostics=diagnostics)


def load_scenarios(
    paths: Iterable[Path], external_params: Iterable[str] = ()
) -> Result[list[Scenario]]:
    external = set(external_params)
    scenarios: list[Scenario] = []
    diagnostics: list[Diagnostic] = []
    seen: dict[str, Path] = {}
    for path in paths:
        result = load_scenario(path, external)
        diagnostics.extend(result.diagnostics)
        scenario = result.value
        if scenario is None:
            continue
        if scenario.name in seen:
            diagnostics.append(
                Diagnostic(
                    code="SCENARIO_DUPLICATE",
                    rule="scenario.name.unique",
                    severity=Severity.ERROR,
                    message=(
                        f"Duplicate scenario name '{scenario.name}' "
                        f"(also in {seen[scenario.name]})"
                    ),
                    location=FileLocation(str(path)),
                )
            )
            continue
        seen[scenario.name] = path
        scenarios.append(scenario)
    return Result(value=scenarios, diagnostics=diagnostics)
