# corot/config.py
"""
Run configuration and defaults.
"""

import json
from dataclasses import dataclass, fields
from pathlib import Path
from typing import Any, Dict, Mapping, Union

from .convergence import Tolerances
from .model import Algorithm, AnalysisMode, AnalysisType
from .streams import DEFAULT_FILE_NAMES


@dataclass
class AnalysisConfig:
    """Settings of one analysis run."""

    # Convergence tolerances (a value >= 1 disables the criterion)
    tol_displacement: float = 1e-3
    tol_force: float = 1e-3
    tol_energy: float = 1.0

    # Solution algorithm and kinematic theory
    algorithm: Algorithm = Algorithm.NEWTON_RAPHSON
    analysis: AnalysisType = AnalysisType.NONLINEAR

    # Output
    output_dir: str = "."
    file_names: Dict[str, str] = None

    # Checkpointing (explicit dynamic runs only)
    checkpoint_file: str = "checkpoint.txt"
    checkpoint_interval: int = 0  # time steps between saves; 0 = never
    checkpoint_float_format: str = "%e"

    def __post_init__(self):
        if self.file_names is None:
            self.file_names = dict(DEFAULT_FILE_NAMES)
        if not isinstance(self.algorithm, Algorithm):
            self.algorithm = _enum_value(Algorithm, self.algorithm)
        if not isinstance(self.analysis, AnalysisType):
            self.analysis = _enum_value(AnalysisType, self.analysis)
        if self.checkpoint_interval < 0:
            raise ValueError("checkpoint_interval must be >= 0")

    @property
    def mode(self) -> AnalysisMode:
        return AnalysisMode(self.algorithm, self.analysis)

    def tolerances(self) -> Tolerances:
        return Tolerances(self.tol_displacement, self.tol_force, self.tol_energy)

    @property
    def checkpoint_path(self) -> Path:
        return Path(self.output_dir) / self.checkpoint_file

    def should_checkpoint(self, time_step: int) -> bool:
        """True on every ``checkpoint_interval``-th step of an explicit dynamic run."""
        return (self.checkpoint_interval > 0
                and self.algorithm is Algorithm.EXPLICIT_DYNAMIC
                and time_step % self.checkpoint_interval == 0)

    @classmethod
    def from_dict(cls, data: Mapping[str, Any]) -> "AnalysisConfig":
        """
        Build a config from a plain mapping (e.g. parsed JSON).

        Enum fields accept either the member name ("EXPLICIT_DYNAMIC") or
        its integer code (5).
        """
        known = {f.name for f in fields(cls)}
        unknown = sorted(set(data) - known)
        if unknown:
            raise ValueError(f"Unknown configuration keys: {unknown}")
        return cls(**data)

    @classmethod
    def from_json(cls, path: Union[str, Path]) -> "AnalysisConfig":
        with open(path, "r") as f:
            return cls.from_dict(json.load(f))


def _enum_value(enum_cls, value):
    if isinstance(value, str):
        try:
            return enum_cls[value.upper()]
        except KeyError:
            raise ValueError(f"Unknown {enum_cls.__name__}: {value!r}") from None
    try:
        return enum_cls(value)
    except ValueError:
        raise ValueError(f"Unknown {enum_cls.__name__}: {value!r}") from None


# Default config instance
CONFIG = AnalysisConfig()
