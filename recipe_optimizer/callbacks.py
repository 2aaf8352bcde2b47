from __future__ import annotations

import numpy as np

from recipe_optimizer.errors import EvaluationError
from recipe_optimizer.problem import PlanProblem


class PlanCallbacks:
    """Objective, constraint and derivative evaluations for one problem.

    The objective is ``sum(u_i * ln(x_i))`` over recipes with positive
    utility; constraints are the linear resource balances of the layout.
    Every method returns a new array and raises ``EvaluationError`` instead
    of handing a non-finite value to the engine. ``new_x`` is accepted for
    engines that pass it; nothing is cached between calls.
    """

    def __init__(self, problem: PlanProblem):
        self.problem = problem
        self._active = problem.utilities > 0
        self._u = problem.utilities[self._active]

    # ----- helpers -----
    def _point(self, x, positive: bool) -> np.ndarray:
        x = np.asarray(x, dtype=float)
        n = self.problem.n_variables
        if x.shape != (n,):
            raise EvaluationError(f"expected {n} intensities, got shape {x.shape}", x if x.ndim == 1 else None)
        if not np.all(np.isfinite(x)):
            raise EvaluationError("non-finite intensity", x)
        if positive and np.any(x[self._active] <= 0.0):
            bad = [self.problem.recipes[i].name for i in np.flatnonzero(self._active & (x <= 0.0))]
            raise EvaluationError(
                f"ln(intensity) undefined for recipes with positive utility: {bad}",
                x,
                {"recipes": bad},
            )
        return x

    @staticmethod
    def _finite(what: str, values, x: np.ndarray):
        if not np.all(np.isfinite(values)):
            raise EvaluationError(f"{what} is not finite at the current point", x)
        return values

    # ----- objective -----
    def objective(self, x, new_x: bool = True) -> float:
        x = self._point(x, positive=True)
        with np.errstate(divide="ignore", over="ignore", invalid="ignore"):
            value = float(np.dot(self._u, np.log(x[self._active])))
        return self._finite("objective", value, x)

    def gradient(self, x, new_x: bool = True) -> np.ndarray:
        x = self._point(x, positive=True)
        grad = np.zeros(self.problem.n_variables)
        with np.errstate(divide="ignore", over="ignore", invalid="ignore"):
            grad[self._active] = self._u / x[self._active]
        return self._finite("gradient", grad, x)

    # ----- constraints -----
    def constraints(self, x, new_x: bool = True) -> np.ndarray:
        x = self._point(x, positive=False)
        p = self.problem
        with np.errstate(over="ignore", invalid="ignore"):
            g = np.bincount(
                p.jac_rows,
                weights=p.jac_values * x[p.jac_cols],
                minlength=p.n_constraints,
            )
        return self._finite("constraint vector", g, x)

    def jacobian(self, x, new_x: bool = True) -> np.ndarray:
        # linear constraints, values do not depend on x
        self._point(x, positive=False)
        return np.array(self.problem.jac_values, dtype=float)

    def jacobianstructure(self) -> tuple[np.ndarray, np.ndarray]:
        return np.array(self.problem.jac_rows), np.array(self.problem.jac_cols)

    # ----- hessian of the lagrangian -----
    def hessian(self, x, obj_factor: float, multipliers=None, new_x: bool = True) -> np.ndarray:
        """Diagonal values, one per recipe, in ``hessianstructure()`` order.

        Constraint multipliers do not contribute, every constraint is linear.
        """
        x = self._point(x, positive=True)
        h = np.zeros(self.problem.n_variables)
        with np.errstate(divide="ignore", over="ignore", invalid="ignore"):
            h[self._active] = obj_factor * (-self._u / x[self._active] ** 2)
        return self._finite("hessian", h, x)

    def hessianstructure(self) -> tuple[np.ndarray, np.ndarray]:
        return np.array(self.problem.hess_rows), np.array(self.problem.hess_cols)
