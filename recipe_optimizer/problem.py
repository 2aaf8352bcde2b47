"""Translation of a recipe list into the arrays a constrained NLP engine needs.

Two index spaces are kept apart: variables are recipes (``recipe.id - 1``), constraint rows are resources
(``resource.id - 1``). The Jacobian layout enumerates one entry per
(recipe, distinct resource) pair and is computed once per solve.
"""
from __future__ import annotations

import logging
from collections.abc import Sequence
from dataclasses import dataclass

import numpy as np
from scipy.sparse import csr_matrix

from recipe_optimizer.errors import ValidationError
from recipe_optimizer.model import Recipe, Resource
from recipe_optimizer.settings import SolverOptions

logger = logging.getLogger(__name__)

# Explicit "no bound" marker. IPOPT treats anything >= nlp_upper_bound_inf
# (1e19) as infinite and scipy accepts inf directly.
INFINITY = np.inf


def _frozen(values, dtype) -> np.ndarray:
    arr = np.array(values, dtype=dtype)
    arr.setflags(write=False)
    return arr


@dataclass(frozen=True)
class PlanProblem:
    recipes: tuple[Recipe, ...]
    resources: tuple[Resource, ...]
    utilities: np.ndarray
    x_lower: np.ndarray
    x_upper: np.ndarray
    g_lower: np.ndarray
    g_upper: np.ndarray
    jac_rows: np.ndarray
    jac_cols: np.ndarray
    jac_values: np.ndarray
    hess_rows: np.ndarray
    hess_cols: np.ndarray

    @property
    def n_variables(self) -> int:
        return len(self.recipes)

    @property
    def n_constraints(self) -> int:
        return len(self.resources)

    @property
    def jacobian_nnz(self) -> int:
        return len(self.jac_values)

    @property
    def hessian_nnz(self) -> int:
        return len(self.hess_rows)

    @property
    def recipe_names(self) -> list[str]:
        return [r.name for r in self.recipes]

    def constraint_matrix(self) -> csr_matrix:
        return csr_matrix(
            (self.jac_values, (self.jac_rows, self.jac_cols)),
            shape=(self.n_constraints, self.n_variables),
        )


def _check_recipe_ids(recipes: Sequence[Recipe]) -> None:
    for pos, recipe in enumerate(recipes):
        if not isinstance(recipe, Recipe):
            raise ValidationError(f"expected a Recipe at position {pos}, got {type(recipe).__name__}")
        if recipe.id != pos + 1:
            raise ValidationError(
                f"recipe ids must be 1..N in input order: '{recipe.name}' at position {pos} has id {recipe.id}",
                {"recipe_id": recipe.id, "position": pos},
            )


def resource_table(recipes: Sequence[Recipe]) -> tuple[Resource, ...]:
    """Collect the resources referenced by ``recipes`` indexed by ``id - 1``."""
    by_id: dict[int, Resource] = {}
    for recipe in recipes:
        for rp in recipe.production:
            res = rp.resource
            known = by_id.get(res.id)
            if known is None:
                by_id[res.id] = res
            elif known != res:
                raise ValidationError(
                    f"resource id {res.id} is used by two different resources: {known!r} and {res!r}",
                    {"resource_id": res.id},
                )
    n = len(by_id)
    missing = sorted(set(range(1, n + 1)) - by_id.keys())
    if missing:
        raise ValidationError(
            f"resource ids must form the range 1..{n}, missing {missing}, found {sorted(by_id)}",
            {"missing": missing},
        )
    return tuple(by_id[i] for i in range(1, n + 1))


def _summed_rates(recipe: Recipe) -> dict[int, float]:
    rates: dict[int, float] = {}
    for rp in recipe.production:
        rid = rp.resource.id
        if rid in rates:
            logger.warning(
                "Recipe '%s' lists resource '%s' more than once, summing rates",
                recipe.name,
                rp.resource.name,
            )
            rates[rid] += rp.rate
        else:
            rates[rid] = rp.rate
    return rates


def build_problem(
    recipes: Sequence[Recipe], options: SolverOptions | None = None
) -> PlanProblem:
    options = options or SolverOptions()
    recipes = tuple(recipes)
    if not recipes:
        raise ValidationError("at least one recipe is required")
    _check_recipe_ids(recipes)
    resources = resource_table(recipes)
    if not resources:
        raise ValidationError("recipes must reference at least one resource")

    utilities = np.array([r.utility for r in recipes], dtype=float)
    if np.any(utilities > 0) and not options.min_intensity > 0:
        names = [r.name for r in recipes if r.utility > 0]
        raise ValidationError(
            f"recipes with positive utility need a positive lower bound, got {options.min_intensity}: {names}",
            {"recipes": names, "min_intensity": options.min_intensity},
        )
    x_lower = np.where(utilities > 0, options.min_intensity, 0.0)
    x_upper = np.full(len(recipes), INFINITY)

    natural = np.array([r.natural_production for r in resources], dtype=float)
    if options.balance == "inflow":
        g_lower = -natural
        g_upper = np.full(len(resources), INFINITY)
    else:
        g_lower = np.zeros(len(resources))
        g_upper = natural

    rows: list[int] = []
    cols: list[int] = []
    values: list[float] = []
    for recipe in recipes:
        for rid, rate in _summed_rates(recipe).items():
            rows.append(rid - 1)
            cols.append(recipe.id - 1)
            values.append(rate)

    diag = np.arange(len(recipes))
    problem = PlanProblem(
        recipes=recipes,
        resources=resources,
        utilities=_frozen(utilities, float),
        x_lower=_frozen(x_lower, float),
        x_upper=_frozen(x_upper, float),
        g_lower=_frozen(g_lower, float),
        g_upper=_frozen(g_upper, float),
        jac_rows=_frozen(rows, np.int64),
        jac_cols=_frozen(cols, np.int64),
        jac_values=_frozen(values, float),
        hess_rows=_frozen(diag, np.int64),
        hess_cols=_frozen(diag, np.int64),
    )
    logger.debug(
        "Built problem: %d variables, %d constraints, %d jacobian nonzeros, %d hessian nonzeros (balance=%s)",
        problem.n_variables,
        problem.n_constraints,
        problem.jacobian_nnz,
        problem.hessian_nnz,
        options.balance,
    )
    return problem
