# corot/viz.py
"""
EQUILIBRIUM PATH PLOT
=====================

Load factor (or time) against one displacement DOF, from the rows an
IncrementReport has recorded. Snap-through and limit points of a nonlinear
run show up here long before they are obvious in the tables.
"""

import logging
import os
from typing import Optional, Sequence, Union

import matplotlib.pyplot as plt

from .report import IncrementReport

logger = logging.getLogger(__name__)


def plot_equilibrium_path(
    report: IncrementReport,
    dofs: Union[int, Sequence[int]],
    outpath: str,
    title: Optional[str] = None,
) -> str:
    """
    Save a load-factor vs displacement plot.

    Parameters:
    -----------
    report : IncrementReport
        Report holding at least one recorded increment
    dofs : int or sequence of int
        1-based equation numbers to plot (one curve each)
    outpath : str
        Image file to write
    title : str, optional
        Plot title

    Returns:
    --------
    str
        outpath
    """
    if isinstance(dofs, int):
        dofs = [dofs]
    df = report.displacements_frame()
    if df.empty:
        raise ValueError("No increments recorded; nothing to plot")

    ylabel = "Time" if report.context.mode.algorithm.is_dynamic else "Load factor (λ)"

    fig, ax = plt.subplots(figsize=(8, 6))
    for dof in dofs:
        column = f"DOF {dof}"
        if column not in df.columns:
            plt.close(fig)
            raise ValueError(f"{column} is not in the report (NEQ={report.context.neq})")
        ax.plot(df[column], df['lambda'], marker='o', markersize=4, linewidth=2, label=column)

    ax.set_xlabel("Displacement", fontsize=12, fontweight='bold')
    ax.set_ylabel(ylabel, fontsize=12, fontweight='bold')
    ax.set_title(title or "Equilibrium Path", fontsize=14, fontweight='bold')
    ax.grid(True, alpha=0.3, linestyle='--')
    ax.legend(loc='best', fontsize=10)

    os.makedirs(os.path.dirname(outpath) if os.path.dirname(outpath) else '.', exist_ok=True)
    fig.tight_layout()
    fig.savefig(outpath, dpi=150, bbox_inches='tight')
    plt.close(fig)

    logger.info("Equilibrium path plot saved to: %s", outpath)
    return outpath
