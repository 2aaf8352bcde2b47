from __future__ import annotations

import math

import pytest

from recipe_optimizer import (
    Recipe,
    RecipeSolution,
    Resource,
    ResourceBalance,
    ResourceProduction,
    SolverResult,
    SolveStatus,
    ValidationError,
)


def test_resource_rejects_negative_natural_production():
    with pytest.raises(ValidationError):
        Resource(id=1, name="Water", unit="Cup", natural_production=-1)


@pytest.mark.parametrize("bad_id", [0, -3, 1.5, True])
def test_resource_rejects_non_positive_ids(bad_id):
    with pytest.raises(ValidationError):
        Resource(id=bad_id, name="Water", unit="Cup")


def test_production_rate_must_be_finite():
    water = Resource(id=1, name="Water", unit="Cup", natural_production=1)
    with pytest.raises(ValidationError):
        ResourceProduction(water, math.nan)
    with pytest.raises(ValidationError):
        ResourceProduction(water, math.inf)


def test_recipe_rejects_negative_utility():
    with pytest.raises(ValidationError):
        Recipe(id=1, name="Freezing", production=[], utility=-0.5)


def test_recipe_normalizes_production_to_tuple_and_sums_rate():
    water = Resource(id=1, name="Water", unit="Cup", natural_production=1)
    recipe = Recipe(
        id=1,
        name="Boiling",
        production=[ResourceProduction(water, -1), ResourceProduction(water, -0.5)],
    )
    assert isinstance(recipe.production, tuple)
    assert recipe.rate("Water") == -1.5
    assert recipe.rate("Ice") == 0


def test_validation_error_is_a_value_error():
    with pytest.raises(ValueError):
        Recipe(id=0, name="Broken")


def test_solver_result_accessors():
    result = SolverResult(
        objective_value=-1.0,
        recipe_solutions=(RecipeSolution("A", 1.0), RecipeSolution("B", 2.0)),
        status=SolveStatus.ACCEPTABLE,
        resource_balances=(ResourceBalance("Water", "Cup", 0.5, 0.0, 1.0),),
    )
    assert result.success
    assert result.as_dict() == {"A": 1.0, "B": 2.0}
    assert result.intensity("B") == 2.0
    assert result.balance("Water").within_bounds()
    with pytest.raises(KeyError):
        result.intensity("C")


def test_failed_statuses_are_not_success():
    result = SolverResult(0.0, (), status=SolveStatus.ITERATION_LIMIT)
    assert not result.success
