"""Optimal production plans from recipe/resource graphs.

Requirements: numpy, scipy (cyipopt optional, for the IPOPT engine)

Usage: build Resource and Recipe records (ids 1..R and 1..N, recipes in id
order) and call solve(recipes). Returns a SolverResult holding one
RecipeSolution per recipe in input order, the objective value
sum(utility * ln(intensity)) and the per-resource balances at the solution.

Settings live in SolverOptions; load_options(path) reads them from JSON or
YAML.
"""

from recipe_optimizer.errors import (
    ConfigError,
    EngineError,
    ErrorCodes,
    EvaluationError,
    OptimizerError,
    ValidationError,
)
from recipe_optimizer.model import (
    Recipe,
    RecipeSolution,
    Resource,
    ResourceBalance,
    ResourceProduction,
    SolverResult,
    SolveStatus,
)
from recipe_optimizer.problem import PlanProblem, build_problem
from recipe_optimizer.callbacks import PlanCallbacks
from recipe_optimizer.results import ResourceFlow, assemble_result, resource_flow
from recipe_optimizer.settings import SolverOptions, load_options
from recipe_optimizer.solver import Solver, solve

__all__ = [
    "ConfigError",
    "EngineError",
    "ErrorCodes",
    "EvaluationError",
    "OptimizerError",
    "ValidationError",
    "Recipe",
    "RecipeSolution",
    "Resource",
    "ResourceBalance",
    "ResourceProduction",
    "SolverResult",
    "SolveStatus",
    "PlanProblem",
    "build_problem",
    "PlanCallbacks",
    "ResourceFlow",
    "assemble_result",
    "resource_flow",
    "SolverOptions",
    "load_options",
    "Solver",
    "solve",
]
