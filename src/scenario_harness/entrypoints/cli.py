from dataclasses import dataclass, field
import json as _json
from pathlib import Path
from typing import NoReturn

import typer

from scenario_harness.adapters.runner.subprocess_runner import SubprocessRunner
from scenario_harness.adapters.scenario_catalog.yaml_catalog import load_scenarios
from scenario_harness.application.harness import run_harness, select_scenarios
from scenario_harness.application.report_rendering import (
    render_diagnostics,
    render_failures,
    render_summary,
)
from scenario_harness.application.report_serialization import (
    serialize_diagnostic,
    serialize_run,
)
from scenario_harness.application.settings import (
    CONFIG_FILENAME,
    SettingsDict,
    configured_params,
    configured_scenarios,
    effective_strict,
    effective_timeout,
    parse_param_args,
    read_settings,
)
from scenario_harness.domain.determinism import is_deterministic
from scenario_harness.domain.diagnostics import Diagnostic, Severity
from scenario_harness.domain.result import Result
from scenario_harness.domain.scenario import Scenario
from scenario_harness.shared.logging import LOG_LEVELS, configure_logging, get_logger

EXIT_INTERRUPTED = 130

app = typer.Typer(add_completion=False, help="Run scripted integration scenarios.")
logger = get_logger(__name__)


def _new_scenarios() -> list[Scenario]:
    return []


def _new_strings() -> dict[str, str]:
    return {}


@dataclass
class LoadedRun:
    settings: SettingsDict = field(default_factory=dict)
    scenarios: list[Scenario] = field(default_factory=_new_scenarios)
    config_params: dict[str, str] = field(default_factory=_new_strings)
    cli_params: dict[str, str] = field(default_factory=_new_strings)


def _load(
    scenario_files: list[Path] | None,
    config: Path | None,
    params: list[str] | None,
    only: list[str] | None = None,
) -> Result[LoadedRun]:
    diagnostics: list[Diagnostic] = []
    settings_result = read_settings(
        config or Path(CONFIG_FILENAME), required=config is not None
    )
    diagnostics.extend(settings_result.diagnostics)
    param_result = parse_param_args(params or [])
    diagnostics.extend(param_result.diagnostics)
    if any(d.is_error for d in diagnostics):
        return Result(diagnostics=diagnostics)

    settings = settings_result.value or {}
    loaded = LoadedRun(
        settings=settings,
        config_params=configured_params(settings),
        cli_params=param_result.value or {},
    )
    paths = list(scenario_files or []) or configured_scenarios(settings)
    if not paths:
        diagnostics.append(
            Diagnostic(
                code="SCENARIO_NONE",
                rule="harness.select",
                severity=Severity.ERROR,
                message="No scenario files given",
                hint=(
                    "Pass scenario files or list them under [settings] scenarios "
                    f"in {CONFIG_FILENAME}"
                ),
            )
        )
        return Result(diagnostics=diagnostics)

    external = set(loaded.config_params) | set(loaded.cli_params)
    scenarios_result = load_scenarios(paths, external)
    diagnostics.extend(scenarios_result.diagnostics)
    selected = select_scenarios(scenarios_result.value or [], only)
    diagnostics.extend(selected.diagnostics)
    loaded.scenarios = selected.value or []
    return Result(value=loaded, diagnostics=diagnostics)


def _echo_lines(lines: list[str], err: bool = False) -> None:
    for line in lines:
        typer.echo(line, err=err)


def _dump(payload: dict[str, object]) -> None:
    typer.echo(_json.dumps(payload, sort_keys=is_deterministic()))


def _fail_loading(result: Result[LoadedRun], command: str, json_output: bool) -> NoReturn:
    if json_output:
        _dump(
            {
                "result_schema_version": 1,
                "command": command,
                "exit_code": result.exit_code,
                "diagnostics": [serialize_diagnostic(d) for d in result.diagnostics],
            }
        )
    else:
        _echo_lines(render_diagnostics(result.diagnostics), err=True)
    raise typer.Exit(result.exit_code)


@app.command()
def run(
    scenario_files: list[Path] = typer.Argument(None, help="Scenario YAML files"),
    config: Path | None = typer.Option(None, "--config", help="Harness TOML config"),
    only: list[str] = typer.Option(None, "--only", help="Run only these scenarios"),
    param: list[str] = typer.Option(None, "--param", "-p", help="NAME=VALUE"),
    timeout: float | None = typer.Option(
        None, "--timeout", min=0.001, help="Seconds per command"
    ),
    strict: bool | None = typer.Option(None, "--strict/--no-strict"),
    json_output: bool = typer.Option(False, "--json"),
    log_level: str = typer.Option("warning", "--log-level"),
):
    """Run scenarios and exit non-zero if any step, setup or check failed."""
    configure_logging(_checked_level(log_level), json_output=json_output)
    loaded_result = _load(scenario_files, config, param, only)
    loaded = loaded_result.value
    if loaded_result.has_errors or loaded is None:
        _fail_loading(loaded_result, "run", json_output)

    try:
        result = run_harness(
            loaded.scenarios,
            SubprocessRunner(),
            params=loaded.config_params,
            overrides=loaded.cli_params,
            timeout=effective_timeout(timeout, loaded.settings),
            strict=effective_strict(strict, loaded.settings),
        )
    except KeyboardInterrupt:
        logger.warning("interrupted")
        typer.echo("Interrupted; in-flight scenario was torn down", err=True)
        raise typer.Exit(EXIT_INTERRUPTED)

    result.diagnostics = [*loaded_result.diagnostics, *result.diagnostics]
    reports = result.value or []
    if json_output:
        _dump(serialize_run(result, command="run", args=[str(p) for p in scenario_files or []]))
    else:
        _echo_lines(render_summary(reports))
        _echo_lines(render_failures(reports), err=True)
    raise typer.Exit(result.exit_code)


@app.command()
def validate(
    scenario_files: list[Path] = typer.Argument(None, help="Scenario YAML files"),
    config: Path | None = typer.Option(None, "--config"),
    param: list[str] = typer.Option(None, "--param", "-p"),
    json_output: bool = typer.Option(False, "--json"),
):
    """Check scenario files and config without running anything."""
    configure_logging("warning", json_output=json_output)
    result = _load(scenario_files, config, param)
    if json_output:
        _dump(
            {
                "result_schema_version": 1,
                "command": "validate",
                "exit_code": result.exit_code,
                "diagnostics": [serialize_diagnostic(d) for d in result.diagnostics],
                "scenarios": [s.name for s in (result.value.scenarios if result.value else [])],
            }
        )
    else:
        _echo_lines(render_diagnostics(result.diagnostics), err=True)
        if result.value is not None and not result.has_errors:
            typer.echo(f"{len(result.value.scenarios)} scenario(s) valid")
    raise typer.Exit(result.exit_code)


@app.command("list")
def list_scenarios(
    scenario_files: list[Path] = typer.Argument(None, help="Scenario YAML files"),
    config: Path | None = typer.Option(None, "--config"),
):
    """Print scenario names and their steps in execution order."""
    configure_logging("warning")
    result = _load(scenario_files, config, [])
    loaded = result.value
    if loaded is None:
        _fail_loading(result, "list", json_output=False)
    _echo_lines(render_diagnostics(result.diagnostics), err=True)
    for scenario in loaded.scenarios:
        typer.echo(scenario.name)
        for step in scenario.steps:
            typer.echo(f"  {step.name}")
    raise typer.Exit(result.exit_code)


def _checked_level(level: str) -> str:
    if level.lower() not in LOG_LEVELS:
        raise typer.BadParameter(
            f"must be one of {', '.join(LOG_LEVELS)}", param_hint="--log-level"
        )
    return level.lower()
