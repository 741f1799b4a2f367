"""Spatial biomass maps: multi-panel snapshots and GIF animation.

All maps share one colour scale (min/max over the whole stack) so panels
and frames are directly comparable.

Usage:
    fig = plot_biomass_panels(result, timesteps=[0, 12, 24])
    animate_biomass_grid(result, Path("results/biomass.gif"), fps=6)
"""

from __future__ import annotations

import matplotlib
matplotlib.use('Agg')

import logging
from pathlib import Path
from typing import Optional, Sequence, TYPE_CHECKING

import matplotlib.colors as mcolors
import matplotlib.pyplot as plt
from matplotlib.animation import FuncAnimation, PillowWriter
import numpy as np

from benthic_sspm.viz.style import (
    BIOMASS_CMAP,
    TEXT_COLOR,
    dark_figure,
    save_figure,
    style_colorbar,
)

if TYPE_CHECKING:
    from benthic_sspm.grid import GridSimResult

logger = logging.getLogger(__name__)


def _stack_norm(layers: np.ndarray) -> mcolors.Normalize:
    vmin = float(layers.min())
    vmax = float(layers.max())
    if vmax <= vmin:
        vmax = vmin + 1.0
    return mcolors.Normalize(vmin=vmin, vmax=vmax)


# ═══════════════════════════════════════════════════════════════════════
# MULTI-PANEL SNAPSHOTS
# ═══════════════════════════════════════════════════════════════════════

def plot_biomass_panels(
    result: 'GridSimResult',
    timesteps: Optional[Sequence[int]] = None,
    ncols: int = 4,
    save_path: Optional[str] = None,
) -> plt.Figure:
    """Grid of biomass maps, one panel per selected timestep.

    Args:
        result: GridSimResult.
        timesteps: Layers to show (default: 8 evenly spaced, incl. first/last).
        ncols: Panels per row.
        save_path: Optional path to save the figure.

    Raises:
        IndexError: If a timestep is outside 0..n_timesteps.
    """
    if timesteps is None:
        timesteps = np.unique(np.linspace(0, result.n_timesteps, 8).astype(int))
    timesteps = [int(t) for t in timesteps]
    for t in timesteps:
        if not 0 <= t <= result.n_timesteps:
            raise IndexError(
                f"timestep {t} outside 0..{result.n_timesteps}"
            )

    n = len(timesteps)
    ncols = max(1, min(ncols, n))
    nrows = int(np.ceil(n / ncols))
    fig, axes = dark_figure(nrows, ncols, map_axes=True, squeeze=False)
    norm = _stack_norm(result.layers)
    removal_set = set(int(s) for s in result.removal_steps)

    im = None
    for ax, t in zip(axes.flat, timesteps):
        im = ax.imshow(result[t], cmap=BIOMASS_CMAP, norm=norm,
                       interpolation='nearest', origin='upper')
        label = f't = {t}' + (' (removal)' if t in removal_set else '')
        ax.set_title(label, fontsize=11)
    for ax in list(axes.flat)[n:]:
        ax.set_visible(False)

    cbar = fig.colorbar(im, ax=axes, shrink=0.8, pad=0.02)
    style_colorbar(cbar, 'Biomass')
    fig.suptitle('Biomass by Timestep', color=TEXT_COLOR, fontsize=14,
                 fontweight='bold')

    if save_path:
        save_figure(fig, save_path, tight=False)
    return fig


def plot_weight_grid(
    weights: np.ndarray,
    title: str = 'Disturbance Intensity',
    save_path: Optional[str] = None,
) -> plt.Figure:
    """Heatmap of a removal weight grid (fraction removed per event)."""
    fig, ax = dark_figure(figsize=(7, 6))
    im = ax.imshow(weights, cmap='magma', vmin=0.0, vmax=1.0,
                   interpolation='nearest')
    ax.grid(False)
    ax.set_xlabel('Column', fontsize=12)
    ax.set_ylabel('Row', fontsize=12)
    ax.set_title(title, fontsize=14, fontweight='bold')
    cbar = fig.colorbar(im, ax=ax, shrink=0.8, pad=0.02)
    style_colorbar(cbar, 'Fraction removed')

    if save_path:
        save_figure(fig, save_path)
    return fig


# ═══════════════════════════════════════════════════════════════════════
# ANIMATION
# ═══════════════════════════════════════════════════════════════════════

def animate_biomass_grid(
    result: 'GridSimResult',
    output_path: Path,
    fps: int = 6,
    dpi: int = 120,
) -> Path:
    """Animate the biomass stack, one frame per layer.

    Args:
        result: GridSimResult.
        output_path: GIF output path.
        fps: Frames per second.
        dpi: Resolution.

    Returns:
        Path to saved GIF.
    """
    output_path = Path(output_path)
    output_path.parent.mkdir(parents=True, exist_ok=True)
    removal_set = set(int(s) for s in result.removal_steps)

    fig, ax = dark_figure(figsize=(7, 6), map_axes=True)

    im = ax.imshow(result[0], cmap=BIOMASS_CMAP, norm=_stack_norm(result.layers),
                   interpolation='nearest')
    cbar = fig.colorbar(im, ax=ax, shrink=0.8, pad=0.02)
    style_colorbar(cbar, 'Biomass')
    title = ax.set_title("", fontsize=14, fontweight='bold', color=TEXT_COLOR)

    def update(frame):
        im.set_data(result[frame])
        suffix = ' (removal)' if frame in removal_set else ''
        title.set_text(f'Timestep {frame}{suffix}')
        return im, title

    anim = FuncAnimation(
        fig, update, frames=len(result), interval=1000 // fps, blit=False,
    )
    anim.save(str(output_path), writer=PillowWriter(fps=fps), dpi=dpi)
    plt.close(fig)
    logger.info("Biomass animation: %s (%d frames)", output_path, len(result))
    return output_path
