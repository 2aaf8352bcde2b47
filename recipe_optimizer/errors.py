from __future__ import annotations

from enum import Enum
from typing import Any

import numpy as np


class ErrorCodes(str, Enum):
    VALIDATION = "VALIDATION"
    EVALUATION = "EVALUATION"
    ENGINE = "ENGINE"
    CONFIG = "CONFIG"


class OptimizerError(Exception):
    code = ErrorCodes.ENGINE

    def __init__(self, message: str, details: dict[str, Any] | None = None) -> None:
        super().__init__(message)
        self.message = message
        self.details = details or {}


class ValidationError(OptimizerError, ValueError):
    """Recipe or resource data that cannot be turned into a problem."""

    code = ErrorCodes.VALIDATION


class EvaluationError(OptimizerError, ArithmeticError):
    """A callback would have produced a non-finite value."""

    code = ErrorCodes.EVALUATION

    def __init__(
        self,
        message: str,
        x: np.ndarray | None = None,
        details: dict[str, Any] | None = None,
    ) -> None:
        super().__init__(message, details)
        self.x = None if x is None else np.array(x, dtype=float)


class EngineError(OptimizerError, RuntimeError):
    code = ErrorCodes.ENGINE


class ConfigError(OptimizerError, ValueError):
    code = ErrorCodes.CONFIG
