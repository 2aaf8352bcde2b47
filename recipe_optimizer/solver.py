from __future__ import annotations

import logging
from collections.abc import Mapping, Sequence

import numpy as np

from recipe_optimizer.callbacks import PlanCallbacks
from recipe_optimizer.engines import get_engine
from recipe_optimizer.errors import ValidationError
from recipe_optimizer.model import Recipe, SolverResult
from recipe_optimizer.problem import PlanProblem, build_problem
from recipe_optimizer.results import assemble_result
from recipe_optimizer.settings import SolverOptions

logger = logging.getLogger(__name__)


def starting_point(
    problem: PlanProblem,
    options: SolverOptions,
    initial: SolverResult | Mapping[str, float] | None = None,
) -> np.ndarray:
    """All ones, or a previous solution, moved inside the variable bounds."""
    x0 = np.ones(problem.n_variables)
    if initial is not None:
        values = initial.as_dict() if isinstance(initial, SolverResult) else dict(initial)
        unknown = sorted(set(values) - set(problem.recipe_names))
        if unknown:
            raise ValidationError(f"warm start names unknown recipes: {unknown}", {"recipes": unknown})
        for i, recipe in enumerate(problem.recipes):
            if recipe.name in values:
                v = float(values[recipe.name])
                if not np.isfinite(v):
                    raise ValidationError(f"warm start intensity of {recipe.name} is not finite")
                x0[i] = v
    lower = np.asarray(problem.x_lower)
    push = options.bound_push * np.maximum(1.0, np.abs(lower))
    x0 = np.maximum(x0, lower + push)
    return np.minimum(x0, problem.x_upper)


def solve(
    recipes: Sequence[Recipe],
    options: SolverOptions | None = None,
    *,
    initial: SolverResult | Mapping[str, float] | None = None,
) -> SolverResult:
    options = options or SolverOptions()
    problem = build_problem(recipes, options)
    x0 = starting_point(problem, options, initial)
    engine = get_engine(options.engine)
    callbacks = PlanCallbacks(problem)

    logger.info(
        "Solving plan: %d recipes, %d resources, engine=%s",
        problem.n_variables,
        problem.n_constraints,
        options.engine,
    )
    outcome = engine.run(problem, callbacks, x0, options)
    result = assemble_result(problem, outcome)
    if result.success:
        logger.info(
            "Status %s after %d iterations, objective %.7g",
            result.status.value,
            result.iterations,
            result.objective_value,
        )
    else:
        logger.warning("Solve ended with status %s: %s", result.status.value, result.message)
    return result


class Solver:
    def __init__(self, options: SolverOptions | None = None):
        self.options = options or SolverOptions()

    def solve(
        self,
        recipes: Sequence[Recipe],
        initial: SolverResult | Mapping[str, float] | None = None,
    ) -> SolverResult:
        return solve(recipes, self.options, initial=initial)
