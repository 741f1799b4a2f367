"""Dark theme styling for Benthic-SSPM visualizations.

Provides consistent colors, a biomass colormap, and theme helpers
so every plot has the same look.
"""

import matplotlib.pyplot as plt
import numpy as np

# ═══════════════════════════════════════════════════════════════════════
# COLOR PALETTE
# ═══════════════════════════════════════════════════════════════════════

DARK_BG = '#1a1a2e'
DARK_PANEL = '#16213e'
TEXT_COLOR = '#e0e0e0'
GRID_COLOR = '#2a2a4a'

ACCENT_COLORS = [
    '#e94560',  # crimson
    '#48c9b0',  # teal
    '#f39c12',  # amber
    '#3498db',  # sky blue
    '#2ecc71',  # green
    '#533483',  # purple
]

BIOMASS_COLOR = ACCENT_COLORS[1]
CAPACITY_COLOR = ACCENT_COLORS[2]
REMOVAL_COLOR = ACCENT_COLORS[0]
BIOMASS_CMAP = 'viridis'


# ═══════════════════════════════════════════════════════════════════════
# THEME HELPERS
# ═══════════════════════════════════════════════════════════════════════

def apply_dark_theme(fig=None, ax=None, map_axes=False):
    """Dark background and text colours on a Figure and/or Axes.

    ``map_axes`` is for raster panels: no grid lines, no ticks.
    """
    if fig is not None:
        fig.patch.set_facecolor(DARK_BG)
    if ax is None:
        return
    ax.set_facecolor(DARK_PANEL)
    ax.tick_params(colors=TEXT_COLOR)
    for text in (ax.xaxis.label, ax.yaxis.label, ax.title):
        text.set_color(TEXT_COLOR)
    for spine in ax.spines.values():
        spine.set_color(GRID_COLOR)
    if map_axes:
        ax.grid(False)
        ax.set_xticks([])
        ax.set_yticks([])
    else:
        ax.grid(True, color=GRID_COLOR, alpha=0.3, linewidth=0.5)


def dark_figure(nrows=1, ncols=1, figsize=None, map_axes=False, **kwargs):
    """Themed ``plt.subplots``; returns (fig, axes) like subplots does.

    Multi-panel figures get roughly square panels sized for biomass maps.
    """
    if figsize is None:
        figsize = (10, 6) if (nrows == 1 and ncols == 1) else (3.5 * ncols, 3.2 * nrows)
    fig, axes = plt.subplots(nrows, ncols, figsize=figsize, **kwargs)
    apply_dark_theme(fig=fig)
    panels = axes.flat if isinstance(axes, np.ndarray) else [axes]
    for a in panels:
        apply_dark_theme(ax=a, map_axes=map_axes)
    return fig, axes


def style_legend(ax):
    ax.legend(facecolor=DARK_PANEL, edgecolor=GRID_COLOR,
              labelcolor=TEXT_COLOR, fontsize=10)


def style_colorbar(cbar, label):
    cbar.ax.tick_params(colors=TEXT_COLOR)
    cbar.set_label(label, color=TEXT_COLOR, fontsize=11)


def save_figure(fig, save_path, dpi=150, tight=True):
    """Write ``fig`` on its own background colour and close it.

    Pass ``tight=False`` when a colorbar is shared across several axes;
    tight_layout cannot place it.
    """
    if tight:
        fig.tight_layout()
    fig.savefig(save_path, dpi=dpi, facecolor=fig.get_facecolor(),
                edgecolor='none', bbox_inches='tight')
    plt.close(fig)
