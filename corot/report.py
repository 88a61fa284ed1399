# corot/report.py
"""
INCREMENT REPORT: Per-Increment Result Rows
===========================================

PURPOSE:
--------
Writes the tab-separated result tables of a run, one row per converged
increment, and keeps the same rows in memory as pandas DataFrames for
plotting and CSV export.

    displacements   Lambda | Iterations | DOF 1 ... DOF NEQ
    truss           Lambda | Iterations | Element 1 ... (averaged axial force)
    frame           Lambda | Iterations | 7 components per element
    shell           Lambda | Iterations | 6 components per element

ELEMENT FORCE AVERAGING:
------------------------
Element force vectors hold one set of components per element end/vertex.
The report shows the mean magnitude over the ends:

    truss   (|f0| + |f1|) / 2
    frame   (|f[c]| + |f[7 + c]|) / 2                       c = 0..6
    shell   (|f[c]| + |f[6 + c]| + |f[12 + c]|) / 3         c = 0..5
"""

import logging
from pathlib import Path
from typing import Dict, List, Optional, Union

import numpy as np
import pandas as pd

from .context import AnalysisContext
from .model import AnalysisType
from .state import ElementForces

logger = logging.getLogger(__name__)

FRAME_COMPONENTS = ['X-Force', 'Y-Force', 'Z-Force', 'X-Moment', 'Y-Moment', 'Z-Moment', 'Bi-Moment']
SHELL_COMPONENTS = FRAME_COMPONENTS[:6]


def average_truss_forces(truss: np.ndarray) -> np.ndarray:
    """(NE_TR, 2) → (NE_TR,) mean end-force magnitude."""
    return np.abs(truss).mean(axis=1)


def average_frame_forces(frame: np.ndarray) -> np.ndarray:
    """(NE_FR, 14) → (NE_FR, 7) mean magnitude of each component over both ends."""
    return np.abs(frame).reshape(-1, 2, 7).mean(axis=1)


def average_shell_forces(shell: np.ndarray) -> np.ndarray:
    """(NE_SH, 18) → (NE_SH, 6) mean magnitude of each component over the vertices."""
    return np.abs(shell).reshape(-1, 3, 6).mean(axis=1)


class IncrementReport:
    """
    Result tables of one run.

    Parameters:
    -----------
    context : AnalysisContext
        Topology, mode and (optionally) the open streams. Without streams
        the rows are only kept in memory.

    Example:
    --------
    >>> report = IncrementReport(ctx)
    >>> report.write_headers()
    >>> for each converged increment:
    ...     report.record_increment(lpf, iterations, state.d, forces)
    >>> report.displacements_frame().tail()
    """

    def __init__(self, context: AnalysisContext):
        self.context = context
        self._rows: Dict[str, List[List[float]]] = {
            'displacements': [], 'truss': [], 'frame': [], 'shell': [],
        }

    # ------------------------------------------------------------------
    # Column labels
    # ------------------------------------------------------------------
    def columns(self, kind: str) -> List[str]:
        topo = self.context.topology
        base = ['lambda', 'iterations']
        if kind == 'displacements':
            return base + [f'DOF {i + 1}' for i in range(self.context.neq)]
        if kind == 'truss':
            return base + [f'Element {e + 1}' for e in range(topo.n_truss)]
        if kind == 'frame':
            return base + [f'Element {e + 1} {c}' for e in range(topo.n_frame)
                           for c in FRAME_COMPONENTS]
        if kind == 'shell':
            return base + [f'Element {e + 1} {c}' for e in range(topo.n_shell)
                           for c in SHELL_COMPONENTS]
        raise ValueError(f"Unknown report table {kind!r}")

    # ------------------------------------------------------------------
    # Stream output
    # ------------------------------------------------------------------
    def _stream(self, name: str):
        streams = self.context.streams
        return streams[name] if streams is not None else None

    def write_headers(self) -> None:
        """Write the layout lines that open each result table."""
        topo = self.context.topology

        out = self._stream('displacements')
        if out is not None:
            out.write("Model Displacements:\n\tLambda\t\tIterations")
            for i in range(self.context.neq):
                # wide DOF numbers already fill the tab stop
                out.write(f"\tDOF {i + 1}\t" if i + 1 <= 1000 else f"DOF {i + 1}\t")

        out = self._stream('truss')
        if out is not None and topo.n_truss > 0:
            out.write("Truss Element Forces (averaged):\n\tLambda\t\tIterations\t")
            for e in range(topo.n_truss):
                out.write(f"Element {e + 1}\t")

        out = self._stream('frame')
        if out is not None and topo.n_frame > 0:
            out.write("Frame Element Forces (averaged):\n\tLambda\t\tIterations\t")
            for e in range(topo.n_frame):
                out.write(f"Element {e + 1}" + "\t" * 13)
            out.write("\n\t\t\t\t\t")
            for e in range(topo.n_frame):
                out.write("X-Force\t\tY-Force\t\tZ-Force\t\tX-Moment\tY-Moment\t")
                out.write("Z-Moment\tBi-Moment\t")

        out = self._stream('shell')
        if out is not None and topo.n_shell > 0:
            out.write("Shell Element Forces (averaged):\n\tLambda\t\tIterations\t")
            for e in range(topo.n_shell):
                out.write(f"Element {e + 1}" + "\t" * 11)
            out.write("\n\t\t\t\t\t")
            for e in range(topo.n_shell):
                out.write("X-Force\t\tY-Force\t\tZ-Force\t\tX-Moment\tY-Moment\t")
                out.write("Z-Moment\t")

    def _write_row(self, name: str, lpf: float, iterations: int, values: np.ndarray) -> None:
        self._rows[name].append([lpf, iterations] + [float(v) for v in values])
        out = self._stream(name)
        if out is not None:
            out.write(f"\n\t{lpf:e}\t{iterations:d}\t")
            for v in values:
                out.write(f"\t{v:e}")

    def record_increment(
        self,
        lpf: float,
        iterations: int,
        d: np.ndarray,
        forces: ElementForces,
    ) -> int:
        """
        Append one converged increment to every table.

        Parameters:
        -----------
        lpf : float
            Load-proportionality factor, or time for dynamic algorithms
        iterations : int
            Iterations the increment took (reported as 0 for linear analysis)
        d : np.ndarray
            Total displacement vector, length NEQ
        forces : ElementForces
            Element forces of the converged state

        Returns:
        --------
        int
            The iteration count as reported
        """
        mode = self.context.mode
        if mode.analysis is AnalysisType.LINEAR:
            iterations = 0

        if mode.algorithm.is_dynamic:
            logger.info("Time = %e complete", lpf)
        elif mode.analysis is AnalysisType.LINEAR:
            logger.info("Analysis complete")
        else:
            logger.info("LPF = %e complete (%d)", lpf, iterations)

        topo = self.context.topology
        self._write_row('displacements', lpf, iterations, np.asarray(d, dtype=float))
        if topo.n_truss > 0:
            self._write_row('truss', lpf, iterations, average_truss_forces(forces.truss))
        if topo.n_frame > 0:
            self._write_row('frame', lpf, iterations, average_frame_forces(forces.frame).ravel())
        if topo.n_shell > 0:
            self._write_row('shell', lpf, iterations, average_shell_forces(forces.shell).ravel())
        return iterations

    # ------------------------------------------------------------------
    # Tabular access
    # ------------------------------------------------------------------
    def table(self, kind: str) -> pd.DataFrame:
        """Rows recorded so far for one table as a DataFrame."""
        df = pd.DataFrame(self._rows[kind], columns=self.columns(kind))
        df['iterations'] = df['iterations'].astype(int)
        return df

    def displacements_frame(self) -> pd.DataFrame:
        return self.table('displacements')

    def element_frame(self, kind: str) -> pd.DataFrame:
        if kind not in ('truss', 'frame', 'shell'):
            raise ValueError(f"Unknown element family {kind!r}")
        return self.table(kind)

    def to_csv(self, directory: Union[str, Path], prefix: Optional[str] = None) -> List[Path]:
        """
        Export every non-empty table as CSV.

        Returns:
        --------
        List[Path]
            Written files
        """
        directory = Path(directory)
        directory.mkdir(parents=True, exist_ok=True)
        written = []
        for kind, rows in self._rows.items():
            if not rows:
                continue
            path = directory / f"{prefix + '_' if prefix else ''}{kind}.csv"
            self.table(kind).to_csv(path, index=False)
            written.append(path)
        logger.info("Report tables saved to: %s", directory)
        return written
