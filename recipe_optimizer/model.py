from __future__ import annotations

import math
from dataclasses import dataclass, field
from enum import Enum
from numbers import Integral, Real

from recipe_optimizer.errors import ValidationError


def _require_id(kind: str, value: object) -> None:
    if isinstance(value, bool) or not isinstance(value, Integral) or value < 1:
        raise ValidationError(f"{kind} id must be a positive integer, got {value!r}")


def _require_finite(what: str, value: object) -> None:
    if isinstance(value, bool) or not isinstance(value, Real) or not math.isfinite(value):
        raise ValidationError(f"{what} must be a finite number, got {value!r}")


@dataclass(frozen=True)
class Resource:
    id: int
    name: str
    unit: str
    natural_production: float = 0.0

    def __post_init__(self) -> None:
        _require_id("Resource", self.id)
        _require_finite(f"natural production of {self.name}", self.natural_production)
        if self.natural_production < 0:
            raise ValidationError(
                f"natural production of {self.name} must be non-negative, got {self.natural_production}",
                {"resource_id": self.id},
            )


@dataclass(frozen=True)
class ResourceProduction:
    """Signed flow of ``resource`` per unit of recipe intensity.

    Negative rates are consumption, positive rates production.
    """

    resource: Resource
    rate: float

    def __post_init__(self) -> None:
        if not isinstance(self.resource, Resource):
            raise ValidationError(f"expected a Resource, got {type(self.resource).__name__}")
        _require_finite(f"rate of {self.resource.name}", self.rate)


@dataclass(frozen=True)
class Recipe:
    id: int
    name: str
    production: tuple[ResourceProduction, ...] = ()
    utility: float = 0.0

    def __post_init__(self) -> None:
        _require_id("Recipe", self.id)
        object.__setattr__(self, "production", tuple(self.production))
        for rp in self.production:
            if not isinstance(rp, ResourceProduction):
                raise ValidationError(
                    f"production of recipe {self.name} must hold ResourceProduction entries"
                )
        _require_finite(f"utility of recipe {self.name}", self.utility)
        if self.utility < 0:
            raise ValidationError(
                f"utility of recipe {self.name} must be non-negative, got {self.utility}",
                {"recipe_id": self.id},
            )

    def rate(self, resource_name: str) -> float:
        return sum(rp.rate for rp in self.production if rp.resource.name == resource_name)


class SolveStatus(str, Enum):
    CONVERGED = "CONVERGED"
    ACCEPTABLE = "ACCEPTABLE"
    INFEASIBLE = "INFEASIBLE"
    ITERATION_LIMIT = "ITERATION_LIMIT"
    TIME_LIMIT = "TIME_LIMIT"
    EVALUATION_ERROR = "EVALUATION_ERROR"
    NUMERICAL_DIFFICULTY = "NUMERICAL_DIFFICULTY"
    USER_STOP = "USER_STOP"
    ENGINE_ERROR = "ENGINE_ERROR"


SUCCESS_STATUSES = (SolveStatus.CONVERGED, SolveStatus.ACCEPTABLE)


@dataclass(frozen=True)
class RecipeSolution:
    recipe_name: str
    intensity: float
    # multiplier of the intensity bounds, nonzero where a bound is active
    bound_multiplier: float = 0.0


@dataclass(frozen=True)
class ResourceBalance:
    resource_name: str
    unit: str
    net_flow: float
    lower: float
    upper: float
    multiplier: float = 0.0

    def within_bounds(self, tol: float = 1e-6) -> bool:
        return self.lower - tol <= self.net_flow <= self.upper + tol


@dataclass(frozen=True)
class SolverResult:
    objective_value: float
    recipe_solutions: tuple[RecipeSolution, ...]
    status: SolveStatus = SolveStatus.CONVERGED
    message: str = ""
    iterations: int = 0
    resource_balances: tuple[ResourceBalance, ...] = field(default=())

    @property
    def success(self) -> bool:
        return self.status in SUCCESS_STATUSES

    def as_dict(self) -> dict[str, float]:
        return {s.recipe_name: s.intensity for s in self.recipe_solutions}

    def intensity(self, recipe_name: str) -> float:
        for s in self.recipe_solutions:
            if s.recipe_name == recipe_name:
                return s.intensity
        raise KeyError(recipe_name)

    def balance(self, resource_name: str) -> ResourceBalance:
        for b in self.resource_balances:
            if b.resource_name == resource_name:
                return b
        raise KeyError(resource_name)
