from __future__ import annotations

import numpy as np
import pytest

from recipe_optimizer import SolveStatus, assemble_result, build_problem, resource_flow
from recipe_optimizer.engines import EngineOutcome


def _outcome(x, mult_g=None, mult_x=None, status=SolveStatus.CONVERGED):
    return EngineOutcome(
        status=status,
        x=np.array(x, dtype=float),
        objective=-1.5,
        constraint_multipliers=np.zeros(4) if mult_g is None else np.array(mult_g),
        bound_multipliers=np.zeros(4) if mult_x is None else np.array(mult_x),
        iterations=12,
        message="ok",
    )


def test_assemble_zips_by_position(garden):
    p = build_problem(garden)
    result = assemble_result(p, _outcome([0.1, 0.2, 0.3, 0.4]))
    assert [(s.recipe_name, s.intensity) for s in result.recipe_solutions] == [
        ("Freezing", 0.1),
        ("Ice Consumption", 0.2),
        ("Flower Growing", 0.3),
        ("Flower Consumption", 0.4),
    ]
    assert result.objective_value == -1.5
    assert result.iterations == 12
    assert result.status is SolveStatus.CONVERGED


def test_balances_carry_net_flow_bounds_and_multipliers(garden):
    p = build_problem(garden)
    result = assemble_result(p, _outcome([1.0, 1.0, 1.0, 1.0], mult_g=[0.5, 0.0, 2.0, 0.0]))
    water = result.balance("Water")
    assert water.net_flow == -3.0
    assert (water.lower, water.upper) == (0.0, 1.0)
    assert water.unit == "Cup"
    assert water.multiplier == 0.5
    assert not water.within_bounds()
    assert result.balance("Ice").net_flow == 2.0
    assert result.balance("Pot Time").multiplier == 2.0


def test_mismatched_multipliers_are_dropped(garden):
    p = build_problem(garden)
    result = assemble_result(p, _outcome([1.0] * 4, mult_g=[1.0]))
    assert all(b.multiplier == 0.0 for b in result.resource_balances)


def test_resource_flow_splits_sources_and_sinks(garden):
    p = build_problem(garden)
    result = assemble_result(p, _outcome([0.5, 1.0, 0.25, 0.25]))
    water = resource_flow(result, garden, "Water")
    assert water.inflow == 0.0
    assert water.sources == {}
    assert water.sinks == {"Freezing": 1.0, "Flower Growing": 0.25}
    assert list(water.sinks) == ["Freezing", "Flower Growing"]
    assert water.net == pytest.approx(-1.25)

    ice = resource_flow(result, garden, "Ice")
    assert ice.sources == {"Freezing": 1.5}
    assert ice.sinks == {"Ice Consumption": 1.0}
    assert ice.net == pytest.approx(0.5)


def test_bound_multipliers_land_on_their_recipes(garden):
    p = build_problem(garden)
    result = assemble_result(p, _outcome([1.0] * 4, mult_x=[0.0, 0.25, 0.0, -1.5]))
    assert [s.bound_multiplier for s in result.recipe_solutions] == [0.0, 0.25, 0.0, -1.5]

    result = assemble_result(p, _outcome([1.0] * 4, mult_x=[9.0]))
    assert all(s.bound_multiplier == 0.0 for s in result.recipe_solutions)
