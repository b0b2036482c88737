import json
from pathlib import Path
import sys

import pytest
import yaml
from typer.testing import CliRunner

from scenario_harness.adapters.runner.subprocess_runner import SubprocessRunner
from scenario_harness.entrypoints.cli import app


@pytest.fixture(autouse=True)
def _isolated_cwd(tmp_path, monkeypatch):
    # Keep the repository's own harness.toml out of these runs.
    monkeypatch.chdir(tmp_path)


def _py(code: str) -> list[str]:
    return [sys.executable, "-c", code]


def _touch(name: str) -> str:
    return f"import pathlib; pathlib.Path({name!r}).write_text('x')"


def _write_scenario(
    tmp_path: Path, *, second_expect: str = "(true)", setup_exit: int = 0
) -> Path:
    document = {
        "name": "demo",
        "params": {"game": "test"},
        "setup": [_py(f"import sys; sys.exit({setup_exit})")],
        "steps": [
            {"name": "create game", "run": _py("print('()')"), "expect": "()"},
            {
                "name": "move 1",
                "run": _py("import sys; print('(' + sys.argv[1] + ')')") + ["$game"],
                "expect": second_expect,
            },
            {
                "name": "read board",
                "run": _py(_touch("read-board") + "; print('done')"),
                "expect": "done",
            },
        ],
        "teardown": [_py(_touch("torn-down"))],
    }
    path = tmp_path / "demo.yaml"
    path.write_text(yaml.safe_dump(document), encoding="utf-8")
    return path


def test_run_passes_and_exits_zero(tmp_path):
    path = _write_scenario(tmp_path, second_expect="(test)")
    result = CliRunner().invoke(app, ["run", str(path)])
    assert result.exit_code == 0, result.output
    assert "PASS demo (3/3 steps passed)" in result.output
    assert (tmp_path / "torn-down").exists()


def test_failing_step_prints_detail_stops_and_tears_down(tmp_path):
    path = _write_scenario(tmp_path, second_expect="(true)")
    result = CliRunner().invoke(app, ["run", str(path)])
    assert result.exit_code == 1
    assert "FAIL move 1" in result.output
    assert "expected:" in result.output
    assert "(test)" in result.output
    assert not (tmp_path / "read-board").exists()
    assert (tmp_path / "torn-down").exists()


def test_param_override_from_command_line(tmp_path):
    path = _write_scenario(tmp_path, second_expect="(other)")
    result = CliRunner().invoke(app, ["run", str(path), "--param", "game=other"])
    assert result.exit_code == 0, result.output


def test_setup_failure_exits_with_environment_status(tmp_path):
    path = _write_scenario(tmp_path, setup_exit=4)
    result = CliRunner().invoke(app, ["run", str(path)])
    assert result.exit_code == 3
    assert "SETUP_FAILED" in result.output
    assert (tmp_path / "torn-down").exists()


def test_json_report(tmp_path, monkeypatch):
    monkeypatch.setenv("SCENARIO_HARNESS_DETERMINISTIC", "1")
    path = _write_scenario(tmp_path, second_expect="(test)")
    result = CliRunner().invoke(app, ["run", str(path), "--json"])
    assert result.exit_code == 0
    payload = json.loads(result.stdout)
    assert payload["command"] == "run"
    assert payload["exit_code"] == 0
    assert payload["scenarios"][0]["counts"]["passed"] == 3


def test_timeout_option_fails_slow_step(tmp_path):
    document = {
        "name": "slow",
        "steps": [{"name": "sleep", "run": _py("import time; time.sleep(30)"), "expect": ""}],
    }
    path = tmp_path / "slow.yaml"
    path.write_text(yaml.safe_dump(document), encoding="utf-8")
    result = CliRunner().invoke(app, ["run", str(path), "--timeout", "1"])
    assert result.exit_code == 1
    assert "timeout_exceeded" in result.output


def test_scenarios_from_config_file(tmp_path, monkeypatch):
    _write_scenario(tmp_path, second_expect="(test)")
    (tmp_path / "harness.toml").write_text(
        '[settings]\ntimeout = 60\nscenarios = ["demo.yaml"]\n', encoding="utf-8"
    )
    monkeypatch.chdir(tmp_path)
    result = CliRunner().invoke(app, ["run"])
    assert result.exit_code == 0, result.output


def test_only_unknown_scenario_is_rejected(tmp_path):
    path = _write_scenario(tmp_path)
    result = CliRunner().invoke(app, ["run", str(path), "--only", "nope"])
    assert result.exit_code == 2
    assert "SCENARIO_UNKNOWN" in result.output


def test_run_without_scenarios_is_a_usage_problem(tmp_path, monkeypatch):
    monkeypatch.chdir(tmp_path)
    result = CliRunner().invoke(app, ["run"])
    assert result.exit_code == 2
    assert "SCENARIO_NONE" in result.output


def test_bad_log_level_is_rejected(tmp_path):
    path = _write_scenario(tmp_path)
    result = CliRunner().invoke(app, ["run", str(path), "--log-level", "loud"])
    assert result.exit_code != 0


def test_interrupt_tears_down_and_exits_130(tmp_path, monkeypatch):
    path = _write_scenario(tmp_path, second_expect="(test)")
    real_run = SubprocessRunner.run

    def run(self, command, timeout=None, cwd=None, env=None):
        if command.argv[-1] == "test":
            raise KeyboardInterrupt
        return real_run(self, command, timeout=timeout, cwd=cwd, env=env)

    monkeypatch.setattr(SubprocessRunner, "run", run)
    result = CliRunner().invoke(app, ["run", str(path)])
    assert result.exit_code == 130
    assert "Interrupted" in result.output
    assert (tmp_path / "torn-down").exists()
    assert not (tmp_path / "read-board").exists()
