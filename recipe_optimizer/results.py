from __future__ import annotations

from collections.abc import Sequence
from dataclasses import dataclass

import numpy as np

from recipe_optimizer.engines import EngineOutcome
from recipe_optimizer.model import (
    Recipe,
    RecipeSolution,
    ResourceBalance,
    SolverResult,
)
from recipe_optimizer.problem import PlanProblem


def assemble_result(problem: PlanProblem, outcome: EngineOutcome) -> SolverResult:
    """Map the engine's raw vector back onto the recipes, in input order."""
    x = np.asarray(outcome.x, dtype=float)
    bound_mult = np.asarray(outcome.bound_multipliers, dtype=float)
    if bound_mult.shape != (problem.n_variables,):
        bound_mult = np.zeros(problem.n_variables)
    solutions = tuple(
        RecipeSolution(
            recipe_name=recipe.name,
            intensity=float(x[recipe.id - 1]),
            bound_multiplier=float(bound_mult[recipe.id - 1]),
        )
        for recipe in problem.recipes
    )
    net = problem.constraint_matrix() @ x
    multipliers = np.asarray(outcome.constraint_multipliers, dtype=float)
    if multipliers.shape != (problem.n_constraints,):
        multipliers = np.zeros(problem.n_constraints)
    balances = tuple(
        ResourceBalance(
            resource_name=res.name,
            unit=res.unit,
            net_flow=float(net[i]),
            lower=float(problem.g_lower[i]),
            upper=float(problem.g_upper[i]),
            multiplier=float(multipliers[i]),
        )
        for i, res in enumerate(problem.resources)
    )
    return SolverResult(
        objective_value=float(outcome.objective),
        recipe_solutions=solutions,
        status=outcome.status,
        message=outcome.message,
        iterations=int(outcome.iterations),
        resource_balances=balances,
    )


@dataclass(frozen=True)
class ResourceFlow:
    inflow: float
    sources: dict[str, float]
    outflow: float
    sinks: dict[str, float]

    @property
    def net(self) -> float:
        return self.inflow - self.outflow


def resource_flow(
    result: SolverResult, recipes: Sequence[Recipe], resource_name: str
) -> ResourceFlow:
    """In- and outflow of one resource at a solution, split by recipe."""
    sources: dict[str, float] = {}
    sinks: dict[str, float] = {}
    for recipe in recipes:
        rate = recipe.rate(resource_name)
        amount = rate * result.intensity(recipe.name)
        if amount > 0.0:
            sources[recipe.name] = amount
        elif amount < 0.0:
            sinks[recipe.name] = -amount
    sources = dict(sorted(sources.items(), key=lambda x: x[1], reverse=True))
    sinks = dict(sorted(sinks.items(), key=lambda x: x[1], reverse=True))
    return ResourceFlow(
        inflow=sum(sources.values()),
        sources=sources,
        outflow=sum(sinks.values()),
        sinks=sinks,
    )
