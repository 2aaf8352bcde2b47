from __future__ import annotations

import json

import pytest

from recipe_optimizer import ConfigError, SolverOptions, load_options
from recipe_optimizer.engines import ENGINES
from recipe_optimizer.errors import ErrorCodes


def test_defaults():
    o = SolverOptions()
    assert o.engine == "trust-constr"
    assert o.balance == "cap"
    assert o.min_intensity > 0
    assert o.time_limit is None


def test_every_registered_engine_is_a_valid_option():
    for name in ENGINES:
        assert SolverOptions(engine=name).engine == name


def test_from_dict_ignores_unknown_keys():
    o = SolverOptions.from_dict({"balance": "inflow", "max_iter": 50, "colour": "blue"})
    assert o.balance == "inflow"
    assert o.max_iter == 50


def test_from_empty_dict():
    assert SolverOptions.from_dict(None) == SolverOptions()


@pytest.mark.parametrize(
    "kwargs",
    [
        {"engine": "simplex"},
        {"balance": "surplus"},
        {"max_iter": 0},
        {"tol": 0.0},
        {"time_limit": -1.0},
        {"bound_push": -0.1},
        {"min_intensity": float("nan")},
    ],
)
def test_invalid_options_raise_config_error(kwargs):
    with pytest.raises(ConfigError) as exc:
        SolverOptions(**kwargs)
    assert exc.value.code is ErrorCodes.CONFIG


def test_replace_revalidates():
    o = SolverOptions().replace(balance="inflow")
    assert o.balance == "inflow"
    with pytest.raises(ConfigError):
        o.replace(engine="nope")


def test_load_json(tmp_path):
    path = tmp_path / "options.json"
    path.write_text(json.dumps({"balance": "inflow", "tol": 1e-6}), encoding="utf-8")
    o = load_options(path)
    assert o.balance == "inflow"
    assert o.tol == 1e-6


def test_load_yaml_with_overrides(tmp_path):
    path = tmp_path / "options.yaml"
    path.write_text(
        "engine: trust-constr\nmax_iter: 100\nengine_options:\n  initial_tr_radius: 0.5\n",
        encoding="utf-8",
    )
    o = load_options(path, ["max_iter=250", "verbose=true", "time_limit=2.5", "balance=inflow"])
    assert o.max_iter == 250
    assert o.verbose is True
    assert o.time_limit == 2.5
    assert o.balance == "inflow"
    assert o.engine_options == {"initial_tr_radius": 0.5}


def test_overrides_without_file():
    o = load_options(None, ["min_intensity=1e-4", "time_limit=none"])
    assert o.min_intensity == 1e-4
    assert o.time_limit is None


def test_bad_override_raises():
    with pytest.raises(ConfigError):
        load_options(None, ["max_iter"])


def test_missing_file_raises(tmp_path):
    with pytest.raises(ConfigError):
        load_options(tmp_path / "absent.json")


def test_non_mapping_config_raises(tmp_path):
    path = tmp_path / "options.json"
    path.write_text("[1, 2, 3]", encoding="utf-8")
    with pytest.raises(ConfigError):
        load_options(path)
