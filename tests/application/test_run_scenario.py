import sys

import pytest

from helpers.runners import FakeRunner, failed, ok
from helpers.scenarios import (
    DEPLOY,
    FEN,
    GET_FEN,
    MOVE_1,
    MOVE_2,
    NEW,
    START,
    STOP,
    chess_scenario,
    healthy_chess_responses,
)
from scenario_harness.adapters.errors import SpawnError, TimeoutExceeded
from scenario_harness.adapters.runner.subprocess_runner import SubprocessRunner
from scenario_harness.application.scenario import run_scenario
from scenario_harness.domain.command import Command
from scenario_harness.domain.diagnostics import Category, Severity
from scenario_harness.domain.outcome import FailureKind
from scenario_harness.domain.report import ScenarioState
from scenario_harness.domain.scenario import Scenario, ScenarioStep


def test_chess_end_to_end_all_steps_pass():
    runner = FakeRunner()
    healthy_chess_responses(runner)
    report = run_scenario(chess_scenario(), runner)
    assert report.passed
    assert report.counts() == (4, 4, 4)
    assert runner.argvs() == [START, DEPLOY, NEW, MOVE_1, MOVE_2, GET_FEN, STOP]
    assert report.states == [
        ScenarioState.INIT,
        ScenarioState.SETTING_UP,
        ScenarioState.STEPS_RUNNING,
        ScenarioState.STEPS_COMPLETE,
        ScenarioState.TEARING_DOWN,
        ScenarioState.DONE,
    ]
    assert report.steps[-1].outcome.actual == f'(opt "{FEN}")'


def test_failing_move_stops_scenario_and_still_tears_down():
    runner = FakeRunner()
    healthy_chess_responses(runner)
    runner.respond(MOVE_1, ok("(false)\n"))
    report = run_scenario(chess_scenario(), runner)

    assert not report.passed
    failing = [step for step in report.steps if not step.passed]
    assert [step.name for step in failing] == ["move 1"]
    assert MOVE_2 not in runner.argvs()
    assert GET_FEN not in runner.argvs()
    assert runner.count(*STOP) == 1
    assert report.skipped_steps() == ["move 2", "read board"]
    failure = failing[0].failure
    assert failure.kind == FailureKind.OUTPUT_MISMATCH
    assert (failure.expected, failure.actual) == ("(true)", "(false)")


def test_failure_diagnostic_carries_expected_and_actual():
    runner = FakeRunner()
    healthy_chess_responses(runner)
    runner.respond(GET_FEN, ok("(null)\n"))
    report = run_scenario(chess_scenario(), runner)
    [diag] = [d for d in report.diagnostics if d.is_error]
    assert diag.code == "OUTPUT_MISMATCH"
    assert diag.category == Category.ASSERTION
    assert diag.details["expected"] == f'(opt "{FEN}")'
    assert diag.details["actual"] == "(null)"


@pytest.mark.parametrize(
    "response",
    [failed(exit_code=1, stderr="replica busy"), SpawnError("no dfx"), TimeoutExceeded("slow")],
)
def test_setup_failure_skips_steps_and_tears_down(response):
    runner = FakeRunner()
    runner.respond(START, response)
    report = run_scenario(chess_scenario(), runner)

    assert report.setup_failed
    assert report.steps == []
    assert DEPLOY not in runner.argvs()
    assert runner.argvs()[-1] == STOP
    assert runner.count(*STOP) == 1
    assert ScenarioState.STEPS_RUNNING not in report.states
    [diag] = report.diagnostics
    assert diag.code == "SETUP_FAILED"
    assert diag.category == Category.ENVIRONMENT


def test_teardown_failure_is_a_warning_that_keeps_the_pass():
    runner = FakeRunner()
    healthy_chess_responses(runner)
    runner.respond(STOP, failed(stderr="replica already stopped"))
    report = run_scenario(chess_scenario(), runner)
    assert report.passed
    [diag] = report.diagnostics
    assert diag.code == "TEARDOWN_FAILED"
    assert diag.severity == Severity.WARN
    assert diag.upgradeable


def test_every_teardown_command_runs_even_if_one_fails():
    runner = FakeRunner()
    healthy_chess_responses(runner)
    runner.respond(STOP, SpawnError("gone"))
    cleanup = ("rm", "-rf", ".dfx")
    scenario = chess_scenario(teardown=(Command(STOP), Command(cleanup)))
    report = run_scenario(scenario, runner)
    assert runner.argvs()[-2:] == [STOP, cleanup]
    assert report.teardown_attempted


def test_teardown_runs_once_when_interrupted():
    runner = FakeRunner()
    healthy_chess_responses(runner)
    runner.respond(MOVE_1, KeyboardInterrupt())
    with pytest.raises(KeyboardInterrupt):
        run_scenario(chess_scenario(), runner)
    assert runner.argvs()[-1] == STOP
    assert runner.count(*STOP) == 1


def test_same_scenario_twice_gives_same_outcome():
    outcomes = []
    for _ in range(2):
        runner = FakeRunner()
        healthy_chess_responses(runner)
        runner.respond(MOVE_2, ok("(false)"))
        report = run_scenario(chess_scenario(), runner)
        outcomes.append((report.passed, [s.outcome for s in report.steps], report.states))
    assert outcomes[0] == outcomes[1]


def test_timeout_precedence_command_then_scenario_then_harness():
    runner = FakeRunner()
    healthy_chess_responses(runner)
    scenario = chess_scenario(
        setup=(Command(START, timeout=5.0), Command(DEPLOY)),
        timeout=30.0,
    )
    run_scenario(scenario, runner, timeout=300.0)
    assert runner.calls[0].timeout == 5.0
    assert runner.calls[1].timeout == 30.0
    run_scenario(chess_scenario(), runner, timeout=300.0)
    assert runner.calls[-1].timeout == 300.0


def test_workdir_and_env_reach_every_command(tmp_path):
    runner = FakeRunner()
    healthy_chess_responses(runner)
    run_scenario(chess_scenario(workdir=tmp_path, env={"DFX_NETWORK": "local"}), runner)
    assert {call.cwd for call in runner.calls} == {tmp_path}
    assert all(call.env == {"DFX_NETWORK": "local"} for call in runner.calls)


def test_harness_params_lose_to_scenario_params_and_overrides_win():
    runner = FakeRunner()
    run_scenario(chess_scenario(), runner, params={"game": "config"})
    assert NEW in runner.argvs()
    runner = FakeRunner()
    run_scenario(chess_scenario(), runner, overrides={"game": "cli"})
    assert ("dfx", "canister", "call", "chess_rs", "new", '("cli", true)') in runner.argvs()


def _unstartable_scenario(tmp_path, *, in_setup: bool) -> Scenario:
    program = tmp_path / "garbled"
    program.write_bytes(b"\x7fELF garbled\x00\x01")
    program.chmod(0o755)
    junk = Command((str(program),))
    touch = "import pathlib; pathlib.Path('torn-down').write_text('x')"
    return Scenario(
        name="unstartable",
        setup=(junk,) if in_setup else (),
        steps=(ScenarioStep("run garbled", junk, "()"),),
        teardown=(Command((sys.executable, "-c", touch)),),
        workdir=tmp_path,
    )


@pytest.mark.skipif(sys.platform == "win32", reason="exec format errors are POSIX")
def test_unexecutable_step_program_is_a_spawn_error_step_failure(tmp_path):
    scenario = _unstartable_scenario(tmp_path, in_setup=False)
    report = run_scenario(scenario, SubprocessRunner())
    assert not report.passed
    assert report.state == ScenarioState.DONE
    assert report.failed_step.failure.kind == FailureKind.SPAWN_ERROR
    assert [d.code for d in report.diagnostics] == ["SPAWN_ERROR"]
    assert (tmp_path / "torn-down").exists()


@pytest.mark.skipif(sys.platform == "win32", reason="exec format errors are POSIX")
def test_unexecutable_setup_program_fails_setup(tmp_path):
    scenario = _unstartable_scenario(tmp_path, in_setup=True)
    report = run_scenario(scenario, SubprocessRunner())
    assert report.setup_failed
    assert report.steps == []
    assert [d.code for d in report.diagnostics] == ["SETUP_FAILED"]
    assert report.diagnostics[0].details["reason"] == "spawn_error"
    assert (tmp_path / "torn-down").exists()
