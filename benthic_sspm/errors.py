"""Exception and warning types for Benthic-SSPM."""


class ConfigurationError(ValueError):
    """Invalid model inputs: lengths, shapes or non-positive sizes.

    Raised before any timestep is computed, so no partial sequence exists.
    """


class NumericDegeneracyWarning(UserWarning):
    """Biomass went negative during a run (removal exceeded biomass + growth)."""
