from __future__ import annotations

import tomllib
from pathlib import Path
from typing import Any, Iterable

from scenario_harness.domain.diagnostics import Diagnostic, FileLocation, Severity
from scenario_harness.domain.naming import validate_param_name
from scenario_harness.domain.result import Result

CONFIG_FILENAME = "harness.toml"
DEFAULT_TIMEOUT = 300.0

SettingsDict = dict[str, Any]


def _config_error(code: str, message: str, path: Path) -> Result[SettingsDict]:
    return Result(
        diagnostics=[
            Diagnostic(
                code=code,
                rule="config",
                severity=Severity.ERROR,
                message=message,
                location=FileLocation(str(path)),
            )
        ]
    )


def _check_shape(raw: SettingsDict, path: Path) -> list[Diagnostic]:
    diagnostics: list[Diagnostic] = []

    def invalid(message: str) -> None:
        diagnostics.append(
            Diagnostic(
                code="CONFIG_INVALID",
                rule="config.shape",
                severity=Severity.ERROR,
                message=message,
                location=FileLocation(str(path)),
            )
        )

    settings = raw.get("settings", {})
    if not isinstance(settings, dict):
        invalid("[settings] must be a table")
        return diagnostics
    timeout = settings.get("timeout")
    if timeout is not None and (
        isinstance(timeout, bool) or not isinstance(timeout, (int, float)) or timeout <= 0
    ):
        invalid("settings.timeout must be a positive number of seconds")
    if "strict" in settings and not isinstance(settings["strict"], bool):
        invalid("settings.strict must be a boolean")
    scenarios = settings.get("scenarios")
    if scenarios is not None and (
        not isinstance(scenarios, list) or not all(isinstance(s, str) for s in scenarios)
    ):
        invalid("settings.scenarios must be a list of paths")
    params = raw.get("params", {})
    if not isinstance(params, dict):
        invalid("[params] must be a table")
    else:
        for name in sorted(params):
            diagnostics.extend(validate_param_name(str(name), str(path)))
    return diagnostics


def read_settings(path: Path, required: bool = False) -> Result[SettingsDict]:
    """Load the TOML config file.

    A missing file is only an error when the caller asked for it explicitly.
    The value records the file's directory under ``_base`` so relative
    scenario paths resolve against the config, not the working directory.
    """
    if not path.exists():
        if required:
            return _config_error("CONFIG_MISSING", f"Config file not found: {path}", path)
        return Result(value={})
    try:
        raw = tomllib.loads(path.read_text(encoding="utf-8"))
    except (tomllib.TOMLDecodeError, OSError, UnicodeDecodeError) as e:
        return _config_error("CONFIG_PARSE_FAILED", str(e), path)
    diagnostics = _check_shape(raw, path)
    if diagnostics:
        return Result(diagnostics=diagnostics)
    raw["_base"] = str(path.resolve().parent)
    return Result(value=raw)


def _settings_table(settings: SettingsDict | None) -> SettingsDict:
    if not settings:
        return {}
    table = settings.get("settings")
    return table if isinstance(table, dict) else {}


def effective_timeout(cli_timeout: float | None, settings: SettingsDict | None) -> float:
    if cli_timeout is not None:
        return cli_timeout
    timeout = _settings_table(settings).get("timeout")
    if timeout is None:
        return DEFAULT_TIMEOUT
    return float(timeout)


def effective_strict(cli_strict: bool | None, settings: SettingsDict | None) -> bool:
    if cli_strict is not None:
        return cli_strict
    return bool(_settings_table(settings).get("strict", False))


def configured_scenarios(settings: SettingsDict | None) -> list[Path]:
    entries = _settings_table(settings).get("scenarios") or []
    base = Path(str((settings or {}).get("_base", ".")))
    return [base / entry for entry in entries]


def configured_params(settings: SettingsDict | None) -> dict[str, str]:
    raw = (settings or {}).get("params") or {}
    params: dict[str, str] = {}
    for key, value in raw.items():
        if isinstance(value, bool):
            params[str(key)] = "true" if value else "false"
        else:
            params[str(key)] = str(value)
    return params


def parse_param_args(values: Iterable[str]) -> Result[dict[str, str]]:
    params: dict[str, str] = {}
    diagnostics: list[Diagnostic] = []
    for value in values:
        name, sep, text = value.partition("=")
        name = name.strip()
        if not sep or not name:
            diagnostics.append(
                Diagnostic(
                    code="PARAM_ARG_INVALID",
                    rule="cli.param",
                    severity=Severity.ERROR,
                    message=f"Expected NAME=VALUE, got '{value}'",
                )
            )
            continue
        name_diags = validate_param_name(name)
        if name_diags:
            diagnostics.extend(name_diags)
            continue
        params[name] = text
    return Result(value=params, diagnostics=diagnostics)
