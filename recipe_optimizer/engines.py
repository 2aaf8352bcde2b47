"""Adapters between the plan callbacks and the external NLP engines.

Engines only marshal data: they get the problem layout, the callbacks and a
starting point, and hand back an ``EngineOutcome`` with the raw vectors and a
terminal status. Both engines minimize, so utility is maximized by flipping
the sign of the objective (scipy) or of the objective scaling (IPOPT).
"""
from __future__ import annotations

import logging
import math
import time
import warnings
from dataclasses import dataclass

import numpy as np
from scipy.optimize import Bounds, LinearConstraint, minimize
from scipy.sparse import coo_matrix, diags

from recipe_optimizer.callbacks import PlanCallbacks
from recipe_optimizer.errors import EngineError, EvaluationError
from recipe_optimizer.model import SolveStatus
from recipe_optimizer.problem import PlanProblem
from recipe_optimizer.settings import SolverOptions

logger = logging.getLogger(__name__)


@dataclass
class EngineOutcome:
    status: SolveStatus
    x: np.ndarray
    objective: float
    constraint_multipliers: np.ndarray
    bound_multipliers: np.ndarray
    iterations: int = 0
    message: str = ""
    raw_status: int | None = None


def _zero_multipliers(problem: PlanProblem) -> tuple[np.ndarray, np.ndarray]:
    return np.zeros(problem.n_constraints), np.zeros(problem.n_variables)


def _evaluation_failure(
    problem: PlanProblem, x0: np.ndarray, error: EvaluationError, iterations: int = 0
) -> EngineOutcome:
    x = error.x if error.x is not None and error.x.shape == x0.shape else x0
    mult_g, mult_x = _zero_multipliers(problem)
    return EngineOutcome(
        status=SolveStatus.EVALUATION_ERROR,
        x=np.array(x, dtype=float),
        objective=math.nan,
        constraint_multipliers=mult_g,
        bound_multipliers=mult_x,
        iterations=iterations,
        message=str(error),
    )


class ScipyEngine:
    """``scipy.optimize.minimize`` with the interior-point ``trust-constr`` method."""

    name = "trust-constr"

    def run(
        self,
        problem: PlanProblem,
        callbacks: PlanCallbacks,
        x0: np.ndarray,
        options: SolverOptions,
    ) -> EngineOutcome:
        n = problem.n_variables
        no_multipliers = np.zeros(problem.n_constraints)
        hess_rows, hess_cols = callbacks.hessianstructure()

        trials = {"ok": 0, "failed": 0}

        def fun(x):
            try:
                value = -callbacks.objective(x)
            except EvaluationError:
                if not trials["ok"]:
                    raise
                # infinite merit makes trust-constr reject the trial step and shrink the radius
                trials["failed"] += 1
                return np.inf
            trials["ok"] += 1
            return value

        def jac(x):
            return -callbacks.gradient(x)

        def hess(x):
            # scipy wants the full symmetric matrix, callbacks give the lower triangle
            values = callbacks.hessian(x, -1.0, no_multipliers)
            lower = coo_matrix((values, (hess_rows, hess_cols)), shape=(n, n))
            return (lower + lower.T - diags(lower.diagonal())).tocsr()

        start = time.monotonic()

        def stop(xk, state):
            return options.time_limit is not None and time.monotonic() - start > options.time_limit

        solver_options = {
            "maxiter": options.max_iter,
            "gtol": options.tol,
            "xtol": options.tol,
            "barrier_tol": options.tol,
            "verbose": 2 if options.verbose else 0,
        }
        solver_options.update(options.engine_options)
        logger.debug("trust-constr options: %s", solver_options)

        bounds = Bounds(np.array(problem.x_lower), np.array(problem.x_upper), keep_feasible=True)
        constraint = LinearConstraint(
            problem.constraint_matrix(), np.array(problem.g_lower), np.array(problem.g_upper)
        )
        try:
            with warnings.catch_warnings():
                warnings.simplefilter("ignore")
                res = minimize(
                    fun,
                    x0,
                    method="trust-constr",
                    jac=jac,
                    hess=hess,
                    bounds=bounds,
                    constraints=[constraint],
                    options=solver_options,
                    callback=stop,
                )
        except EvaluationError as e:
            logger.warning("Evaluation failed inside trust-constr: %s", e)
            return _evaluation_failure(problem, x0, e)
        except (ValueError, np.linalg.LinAlgError) as e:
            raise EngineError(f"trust-constr failed: {e}") from e

        violation = float(getattr(res, "constr_violation", 0.0))
        status = self._status(res.status, violation, options)
        logger.debug(
            "trust-constr status %s, constraint violation %.3g, %d rejected trial points",
            res.status,
            violation,
            trials["failed"],
        )
        multipliers = list(getattr(res, "v", []) or [])
        mult_g = np.zeros(problem.n_constraints)
        mult_x = np.zeros(n)
        if multipliers and np.shape(multipliers[0]) == (problem.n_constraints,):
            mult_g = np.asarray(multipliers[0], dtype=float)
        if len(multipliers) > 1 and np.shape(multipliers[-1]) == (n,):
            mult_x = np.asarray(multipliers[-1], dtype=float)
        return EngineOutcome(
            status=status,
            x=np.asarray(res.x, dtype=float),
            objective=-float(res.fun),
            constraint_multipliers=mult_g,
            bound_multipliers=mult_x,
            iterations=int(getattr(res, "nit", 0)),
            message=str(res.message),
            raw_status=int(res.status),
        )

    @staticmethod
    def _status(code: int, violation: float, options: SolverOptions) -> SolveStatus:
        if code == 0:
            return SolveStatus.ITERATION_LIMIT
        if code == 3:
            return SolveStatus.TIME_LIMIT
        if code in (1, 2, 4):
            # 4 is a stationary point whose violation exceeds gtol, judged by feasibility_tol here
            if violation > options.feasibility_tol:
                return SolveStatus.INFEASIBLE
            return SolveStatus.CONVERGED if code == 1 else SolveStatus.ACCEPTABLE
        return SolveStatus.ENGINE_ERROR


IPOPT_STATUS = {
    0: SolveStatus.CONVERGED,
    1: SolveStatus.ACCEPTABLE,
    2: SolveStatus.INFEASIBLE,
    3: SolveStatus.NUMERICAL_DIFFICULTY,
    4: SolveStatus.NUMERICAL_DIFFICULTY,
    5: SolveStatus.USER_STOP,
    6: SolveStatus.ACCEPTABLE,
    -1: SolveStatus.ITERATION_LIMIT,
    -2: SolveStatus.NUMERICAL_DIFFICULTY,
    -3: SolveStatus.NUMERICAL_DIFFICULTY,
    -4: SolveStatus.TIME_LIMIT,
    -5: SolveStatus.TIME_LIMIT,
    -13: SolveStatus.EVALUATION_ERROR,
}


class _IpoptProblem:
    """The problem object cyipopt calls back into."""

    def __init__(self, callbacks: PlanCallbacks, evaluation_error: type[Exception]):
        self.callbacks = callbacks
        self._evaluation_error = evaluation_error
        self.iterations = 0

    def _guard(self, fn, *args):
        try:
            return fn(*args)
        except EvaluationError as e:
            logger.debug("Evaluation failed, asking IPOPT to cut the step: %s", e)
            raise self._evaluation_error(str(e)) from e

    def objective(self, x):
        return self._guard(self.callbacks.objective, x)

    def gradient(self, x):
        return self._guard(self.callbacks.gradient, x)

    def constraints(self, x):
        return self._guard(self.callbacks.constraints, x)

    def jacobian(self, x):
        return self._guard(self.callbacks.jacobian, x)

    def jacobianstructure(self):
        return self.callbacks.jacobianstructure()

    def hessian(self, x, lagrange, obj_factor):
        return self._guard(self.callbacks.hessian, x, obj_factor, lagrange)

    def hessianstructure(self):
        return self.callbacks.hessianstructure()

    def intermediate(self, alg_mod, iter_count, obj_value, inf_pr, inf_du, mu,
                     d_norm, regularization_size, alpha_du, alpha_pr, ls_trials):
        self.iterations = int(iter_count)
        return True


class IpoptEngine:
    """IPOPT through ``cyipopt`` (``pip install recipe-optimizer[ipopt]``)."""

    name = "ipopt"

    def __init__(self):
        try:
            import cyipopt  # lazy
        except ImportError as e:
            raise EngineError(
                "IPOPT engine requested but cyipopt is not installed. Install with: pip install cyipopt"
            ) from e
        self._cyipopt = cyipopt

    def run(
        self,
        problem: PlanProblem,
        callbacks: PlanCallbacks,
        x0: np.ndarray,
        options: SolverOptions,
    ) -> EngineOutcome:
        cyipopt = self._cyipopt
        adapter = _IpoptProblem(callbacks, cyipopt.CyIpoptEvaluationError)
        nlp = cyipopt.Problem(
            n=problem.n_variables,
            m=problem.n_constraints,
            problem_obj=adapter,
            lb=np.array(problem.x_lower),
            ub=np.array(problem.x_upper),
            cl=np.array(problem.g_lower),
            cu=np.array(problem.g_upper),
        )
        # negative scaling turns IPOPT's minimization into maximization
        nlp.add_option("obj_scaling_factor", -1.0)
        nlp.add_option("jac_c_constant", "yes")
        nlp.add_option("jac_d_constant", "yes")
        nlp.add_option("max_iter", options.max_iter)
        nlp.add_option("tol", options.tol)
        nlp.add_option("constr_viol_tol", options.feasibility_tol)
        nlp.add_option("print_level", 5 if options.verbose else 0)
        nlp.add_option("sb", "yes")
        if options.time_limit is not None:
            nlp.add_option("max_wall_time", float(options.time_limit))
        for key, value in options.engine_options.items():
            nlp.add_option(key, value)

        try:
            x, info = nlp.solve(np.array(x0, dtype=float))
        except EvaluationError as e:
            return _evaluation_failure(problem, x0, e, adapter.iterations)
        except cyipopt.CyIpoptEvaluationError as e:
            return _evaluation_failure(problem, x0, EvaluationError(str(e)), adapter.iterations)

        code = int(info["status"])
        msg = info.get("status_msg", "")
        if isinstance(msg, bytes):
            msg = msg.decode("utf-8", errors="replace")
        return EngineOutcome(
            status=IPOPT_STATUS.get(code, SolveStatus.ENGINE_ERROR),
            x=np.asarray(x, dtype=float),
            objective=float(info["obj_val"]),
            constraint_multipliers=np.asarray(info["mult_g"], dtype=float),
            bound_multipliers=np.asarray(info["mult_x_L"], dtype=float)
            - np.asarray(info["mult_x_U"], dtype=float),
            iterations=adapter.iterations,
            message=str(msg),
            raw_status=code,
        )


ENGINES = {
    ScipyEngine.name: ScipyEngine,
    IpoptEngine.name: IpoptEngine,
}


def get_engine(name: str):
    if name not in ENGINES:
        raise EngineError(f"Unknown engine '{name}', expected one of {', '.join(ENGINES)}")
    return ENGINES[name]()
