"""Biomass time-series plots.

Every function:
  - Accepts a ScalarSimResult or GridSimResult
  - Returns a matplotlib Figure
  - Has an optional ``save_path`` parameter (saves PNG when given)

matplotlib backend is forced to Agg (no display) on import.
"""

from __future__ import annotations

import matplotlib
matplotlib.use('Agg')

from typing import Optional, TYPE_CHECKING

import matplotlib.pyplot as plt
import numpy as np

from benthic_sspm.viz.style import (
    ACCENT_COLORS,
    BIOMASS_COLOR,
    CAPACITY_COLOR,
    REMOVAL_COLOR,
    dark_figure,
    save_figure,
    style_legend,
)

if TYPE_CHECKING:
    from benthic_sspm.grid import GridSimResult
    from benthic_sspm.sspm import ScalarSimResult


def _mark_removals(ax, steps):
    for i, t in enumerate(steps):
        ax.axvline(t, color=REMOVAL_COLOR, linestyle=':', linewidth=1.0,
                   alpha=0.6, label='Removal event' if i == 0 else None)


# ═══════════════════════════════════════════════════════════════════════
# SCALAR TRAJECTORY
# ═══════════════════════════════════════════════════════════════════════

def plot_biomass_trajectory(
    result: 'ScalarSimResult',
    title: str = 'Biomass Trajectory',
    save_path: Optional[str] = None,
) -> plt.Figure:
    """Scalar biomass over time with K and removal events marked.

    Args:
        result: ScalarSimResult.
        title: Axes title.
        save_path: Optional path to save the figure.

    Returns:
        matplotlib Figure.
    """
    fig, ax = dark_figure()
    t = result.timesteps

    ax.plot(t, result.biomass, color=BIOMASS_COLOR, linewidth=2.0,
            label='Biomass', zorder=3)
    ax.axhline(result.carrying_capacity, color=CAPACITY_COLOR, linestyle='--',
               linewidth=1.5, alpha=0.7, label=f'K = {result.carrying_capacity:g}')
    # removals[t-1] produced state t
    _mark_removals(ax, np.flatnonzero(result.removals) + 1)

    ax.set_xlabel('Timestep', fontsize=12)
    ax.set_ylabel('Biomass', fontsize=12)
    ax.set_title(title, fontsize=14, fontweight='bold')
    ax.set_xlim(0, max(result.n_timesteps - 1, 1))
    style_legend(ax)

    if save_path:
        save_figure(fig, save_path)
    return fig


# ═══════════════════════════════════════════════════════════════════════
# SINGLE-CELL TRACE
# ═══════════════════════════════════════════════════════════════════════

def plot_cell_trace(
    result: 'GridSimResult',
    row: int,
    col: int,
    carrying_capacity: Optional[float] = None,
    show_mean: bool = True,
    save_path: Optional[str] = None,
) -> plt.Figure:
    """Biomass of one grid cell over time, optionally against the grid mean.

    Args:
        result: GridSimResult.
        row, col: Cell to trace.
        carrying_capacity: K of that cell (dashed line) if known.
        show_mean: Also plot the grid-mean biomass.
        save_path: Optional path to save the figure.
    """
    fig, ax = dark_figure()
    t = result.timesteps

    ax.plot(t, result.cell_trace(row, col), color=BIOMASS_COLOR, linewidth=2.0,
            label=f'Cell ({row}, {col})', zorder=3)
    if show_mean:
        ax.plot(t, result.mean_trace(), color=ACCENT_COLORS[3], linewidth=1.5,
                alpha=0.8, label='Grid mean')
    if carrying_capacity is not None:
        ax.axhline(carrying_capacity, color=CAPACITY_COLOR, linestyle='--',
                   linewidth=1.5, alpha=0.7, label=f'K = {carrying_capacity:.1f}')
    _mark_removals(ax, result.removal_steps)

    ax.set_xlabel('Timestep', fontsize=12)
    ax.set_ylabel('Biomass', fontsize=12)
    ax.set_title(f'Cell ({row}, {col}) Biomass', fontsize=14, fontweight='bold')
    ax.set_xlim(0, result.n_timesteps)
    style_legend(ax)

    if save_path:
        save_figure(fig, save_path)
    return fig
