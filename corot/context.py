# corot/context.py
"""Per-run bundle of topology, equation table, mode, config and open streams."""

from dataclasses import dataclass, field
from typing import Optional, TextIO

from .config import AnalysisConfig
from .kernel.equations import EquationNumbering
from .model import AnalysisMode, ModelTopology
from .streams import AnalysisStreams


@dataclass(eq=False)
class AnalysisContext:
    """
    Constructed once per run and handed to every component.

    Examples:
    ---------
    >>> ctx = AnalysisContext(topology, equations, config=AnalysisConfig())
    >>> ctx.neq
    """
    topology: ModelTopology
    equations: EquationNumbering
    config: AnalysisConfig = field(default_factory=AnalysisConfig)
    streams: Optional[AnalysisStreams] = None

    def __post_init__(self):
        if self.equations.n_joints != self.topology.n_joints:
            raise ValueError(
                f"equation table covers {self.equations.n_joints} joints, "
                f"topology has {self.topology.n_joints}"
            )

    @property
    def mode(self) -> AnalysisMode:
        return self.config.mode

    @property
    def neq(self) -> int:
        return self.equations.neq

    @property
    def log_stream(self) -> Optional[TextIO]:
        return self.streams.log if self.streams is not None else None

    def open_streams(self) -> AnalysisStreams:
        """Open the run's output streams in ``config.output_dir``."""
        self.streams = AnalysisStreams.open(self.config.output_dir, self.config.file_names)
        return self.streams

    def close(self, failed: bool = False) -> None:
        if self.streams is not None:
            self.streams.close(failed=failed)
