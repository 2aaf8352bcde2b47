from __future__ import annotations

import json
import math
from collections.abc import Mapping, Sequence
from dataclasses import asdict, dataclass, field, fields
from pathlib import Path
from typing import Any

from recipe_optimizer.errors import ConfigError

BALANCE_MODES = ("cap", "inflow")


@dataclass(frozen=True)
class SolverOptions:
    engine: str = "trust-constr"
    # "cap": net flow in [0, natural production]
    # "inflow": natural production is a baseline supply, net flow >= -natural production
    balance: str = "cap"
    # lower bound of every recipe with positive utility, ln(x) needs x > 0
    min_intensity: float = 1e-6
    # starting point is moved at least this far inside the lower bounds
    bound_push: float = 1e-2
    max_iter: int = 3000
    tol: float = 1e-8
    feasibility_tol: float = 1e-6
    time_limit: float | None = None
    verbose: bool = False
    engine_options: dict[str, Any] = field(default_factory=dict)

    def __post_init__(self) -> None:
        from recipe_optimizer.engines import ENGINES  # lazy, engines imports this module

        if self.engine not in ENGINES:
            raise ConfigError(
                f"Unknown engine '{self.engine}', expected one of {', '.join(ENGINES)}",
                {"engine": self.engine},
            )
        if self.balance not in BALANCE_MODES:
            raise ConfigError(
                f"Unknown balance mode '{self.balance}', expected one of {', '.join(BALANCE_MODES)}",
                {"balance": self.balance},
            )
        for name in ("min_intensity", "bound_push", "tol", "feasibility_tol"):
            if not math.isfinite(getattr(self, name)):
                raise ConfigError(f"{name} must be finite", {name: getattr(self, name)})
        if self.bound_push < 0:
            raise ConfigError("bound_push must be non-negative")
        if self.tol <= 0 or self.feasibility_tol <= 0:
            raise ConfigError("tolerances must be positive")
        if self.max_iter < 1:
            raise ConfigError("max_iter must be at least 1", {"max_iter": self.max_iter})
        if self.time_limit is not None and not self.time_limit > 0:
            raise ConfigError("time_limit must be positive", {"time_limit": self.time_limit})

    def to_dict(self) -> dict[str, Any]:
        return asdict(self)

    def replace(self, **changes: Any) -> SolverOptions:
        d = self.to_dict()
        d.update(changes)
        return SolverOptions.from_dict(d)

    @classmethod
    def from_dict(cls, d: Mapping[str, Any] | None) -> SolverOptions:
        if not d:
            return cls()
        known = {f.name for f in fields(cls)}
        kwargs = {k: v for k, v in d.items() if k in known}
        if "engine_options" in kwargs:
            kwargs["engine_options"] = dict(kwargs["engine_options"] or {})
        try:
            return cls(**kwargs)
        except TypeError as e:
            raise ConfigError(f"Invalid solver options: {e}") from e


def _coerce_scalar(val: str) -> int | float | bool | str | None:
    lower = val.lower()
    if lower in ("true", "false"):
        return lower == "true"
    if lower in ("none", "null"):
        return None
    try:
        if "." in val or "e" in lower:
            return float(val)
        return int(val)
    except ValueError:
        return val


def load_options(
    config_path: Path | str | None, overrides: Sequence[str] | None = None
) -> SolverOptions:
    """Read solver options from a JSON or YAML file plus ``key=value`` overrides."""
    cfg: dict[str, Any] = {}
    if config_path:
        path = Path(config_path)
        try:
            text = path.read_text(encoding="utf-8")
        except OSError as e:
            raise ConfigError(f"Cannot read config file {path}: {e}") from e
        if path.suffix.lower() in (".yaml", ".yml"):
            import yaml  # lazy

            try:
                loaded = yaml.safe_load(text)
            except yaml.YAMLError as e:
                raise ConfigError(f"Invalid YAML in {path}: {e}") from e
        else:
            try:
                loaded = json.loads(text)
            except json.JSONDecodeError as e:
                raise ConfigError(f"Invalid JSON in {path}: {e}") from e
        if loaded is None:
            loaded = {}
        if not isinstance(loaded, Mapping):
            raise ConfigError(f"Config file {path} must contain a mapping")
        cfg = dict(loaded)
    if overrides:
        for item in overrides:
            if "=" not in item:
                raise ConfigError(f"Override '{item}' is not of the form key=value")
            k, v = item.split("=", 1)
            cfg[k.strip()] = _coerce_scalar(v.strip())
    return SolverOptions.from_dict(cfg)
