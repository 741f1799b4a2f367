"""Benthic-SSPM visualization library.

Modules:
  - style: Dark theme colours and helpers
  - timeseries: Scalar trajectory and single-cell traces
  - maps: Multi-panel biomass maps, weight grids, GIF animation
"""

from benthic_sspm.viz.style import (  # noqa: F401
    ACCENT_COLORS,
    BIOMASS_CMAP,
    DARK_BG,
    DARK_PANEL,
    GRID_COLOR,
    TEXT_COLOR,
    apply_dark_theme,
    dark_figure,
    save_figure,
)

from benthic_sspm.viz.timeseries import (  # noqa: F401
    plot_biomass_trajectory,
    plot_cell_trace,
)

from benthic_sspm.viz.maps import (  # noqa: F401
    animate_biomass_grid,
    plot_biomass_panels,
    plot_weight_grid,
)
