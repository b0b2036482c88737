from scenario_harness.domain.naming import (
    validate_param_name,
    validate_scenario_name,
    validate_step_names,
)
from scenario_harness.domain.scenario import merge_params, resolve_timeout


def test_scenario_names_are_kebab_case():
    assert validate_scenario_name("chess") == []
    assert validate_scenario_name("chess-smoke-2") == []
    assert validate_scenario_name("Chess")[0].code == "SCENARIO_NAME_INVALID"
    assert validate_scenario_name("chess_smoke")[0].code == "SCENARIO_NAME_INVALID"


def test_param_names_are_identifiers():
    assert validate_param_name("game") == []
    assert validate_param_name("game-id")[0].code == "PARAM_NAME_INVALID"


def test_duplicate_step_names_are_reported_once():
    diags = validate_step_names(["move 1", "move 1", "move 1", "move 2"])
    assert [d.code for d in diags] == ["STEP_NAME_DUPLICATE"]


def test_merge_params_later_layers_win():
    assert merge_params({"a": "1", "b": "1"}, None, {"b": "2"}) == {"a": "1", "b": "2"}


def test_resolve_timeout_takes_first_configured():
    assert resolve_timeout(None, 5.0, 10.0) == 5.0
    assert resolve_timeout(None, None) is None
