"""Benthic-SSPM: Schaefer surplus production model for disturbed seafloor biomass.

Discrete-time biomass recovery/depletion under periodic removal events
(dredging, trawling, sediment burial):
  - Scalar recurrence for a single standing-biomass value
  - Grid recurrence over a raster of independent cells
  - Constant, stochastic or spatially patterned growth and removal
  - Time series, multi-panel maps and animated biomass grids
"""

__version__ = "0.1.0"
