"""Configuration system for Benthic-SSPM.

Hierarchical YAML configuration with deep-merge support:
  base.yaml → scenario override → command-line overrides

Sections map 1:1 to YAML top-level keys; unknown keys are ignored.
Validation raises ConfigurationError (a ValueError).

Indexing convention used by both engines: a periodic removal with
interval N fires on the transitions that produce timesteps N, 2N, 3N, ...
"""

from __future__ import annotations

import dataclasses
import logging
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any, Dict, Optional, Union

import yaml

from benthic_sspm.errors import ConfigurationError

logger = logging.getLogger(__name__)

VALID_GROWTH_MODES = {"constant", "uniform"}
VALID_REMOVAL_MODES = {"none", "fixed", "fraction", "weighted"}


# ═══════════════════════════════════════════════════════════════════════
# CONFIGURATION DATACLASSES
# ═══════════════════════════════════════════════════════════════════════

@dataclass
class SimulationSection:
    """Run length and control."""
    n_timesteps: int = 120       # Transitions per run (months in the reference workflow)
    seed: int = 42
    parallel_workers: int = 1    # Threads per grid timestep (1 = serial)
    warn_negative: bool = False  # Warn if any biomass goes negative


@dataclass
class ScalarSection:
    """Single-value SSPM run (one benthic patch)."""
    initial_biomass: float = 1000.0
    carrying_capacity: float = 1000.0
    growth_mode: str = "constant"   # 'constant' or 'uniform'
    growth_rate: float = 0.75       # r (constant mode)
    growth_low: float = 0.5         # r bounds (uniform mode)
    growth_high: float = 1.0
    removal_amount: float = 450.0   # Absolute biomass removed per event
    removal_interval: int = 12      # Steps between events


@dataclass
class GridSection:
    """Raster SSPM run: independent cells, K = initial grid by default."""
    n_rows: int = 10
    n_cols: int = 10
    initial_low: float = 0.0        # Initial biomass ~ Uniform(low, high)
    initial_high: float = 1000.0
    carrying_capacity: Optional[float] = None  # None → K = initial grid
    growth_mode: str = "constant"
    growth_rate: float = 0.75
    growth_low: float = 0.5
    growth_high: float = 1.0
    removal_mode: str = "fraction"  # 'none', 'fixed', 'fraction', 'weighted'
    removal_interval: int = 12
    removal_amount: float = 100.0   # 'fixed' mode
    removal_fraction: float = 0.5   # 'fraction' mode
    disturbance_row: float = 4.5    # 'weighted' mode: Gaussian source (row, col)
    disturbance_col: float = 4.5
    disturbance_sigma: float = 2.0  # decay scale (cells)
    max_weight: float = 0.9         # removal fraction at the source


@dataclass
class OutputSection:
    """Output control."""
    directory: str = "results/"
    trace_row: int = 0              # Cell extracted for the time-series plot
    trace_col: int = 0
    panel_timesteps: list = field(default_factory=lambda: [0, 11, 12, 13, 24, 60, 119, 120])
    animation: bool = True
    fps: int = 6
    dpi: int = 120


@dataclass
class ModelConfig:
    """Complete model configuration.

    Load from YAML via `load_config()`.
    """
    simulation: SimulationSection = field(default_factory=SimulationSection)
    scalar: ScalarSection = field(default_factory=ScalarSection)
    grid: GridSection = field(default_factory=GridSection)
    output: OutputSection = field(default_factory=OutputSection)


SECTION_MAP = {
    'simulation': SimulationSection,
    'scalar': ScalarSection,
    'grid': GridSection,
    'output': OutputSection,
}


# ═══════════════════════════════════════════════════════════════════════
# YAML LOADING & MERGING
# ═══════════════════════════════════════════════════════════════════════

def deep_merge(base: Dict, override: Dict) -> Dict:
    """Recursively merge override into base. Modifies base in place.

    - Dict values are merged recursively
    - Non-dict values are replaced
    - Keys in override but not base are added

    Returns:
        The merged base dictionary.
    """
    for key, value in override.items():
        if (
            key in base
            and isinstance(base[key], dict)
            and isinstance(value, dict)
        ):
            deep_merge(base[key], value)
        else:
            base[key] = value
    return base


def _dict_to_section(section_cls, data: Dict) -> Any:
    """Convert a dict to a dataclass, ignoring unknown keys."""
    valid_fields = {f.name for f in dataclasses.fields(section_cls)}
    unknown = set(data) - valid_fields
    if unknown:
        logger.warning("Ignoring unknown %s keys: %s",
                       section_cls.__name__, sorted(unknown))
    filtered = {k: v for k, v in data.items() if k in valid_fields}
    return section_cls(**filtered)


def _yaml_to_config(data: Dict) -> ModelConfig:
    """Convert a merged YAML dict to a ModelConfig."""
    sections = {}
    for key, cls in SECTION_MAP.items():
        if key in data and isinstance(data[key], dict):
            sections[key] = _dict_to_section(cls, data[key])
        else:
            sections[key] = cls()
    return ModelConfig(**sections)


def config_to_dict(config: ModelConfig) -> Dict:
    """Plain-dict form of a config (for YAML dumps alongside results)."""
    return dataclasses.asdict(config)


def _check_growth(prefix: str, section) -> None:
    if section.growth_mode not in VALID_GROWTH_MODES:
        raise ConfigurationError(
            f"{prefix}.growth_mode must be one of {VALID_GROWTH_MODES}, "
            f"got '{section.growth_mode}'"
        )
    if section.growth_mode == "uniform" and section.growth_low > section.growth_high:
        raise ConfigurationError(
            f"{prefix}.growth_low ({section.growth_low}) must be <= "
            f"growth_high ({section.growth_high})"
        )


def validate_config(config: ModelConfig) -> None:
    """Validate configuration constraints. Raises ConfigurationError on failure."""
    sim = config.simulation
    if sim.n_timesteps < 1:
        raise ConfigurationError(
            f"simulation.n_timesteps must be >= 1, got {sim.n_timesteps}"
        )
    if sim.seed < 0:
        raise ConfigurationError("simulation.seed must be non-negative")
    if sim.parallel_workers < 1:
        raise ConfigurationError(
            f"simulation.parallel_workers must be >= 1, got {sim.parallel_workers}"
        )

    # Scalar
    sc = config.scalar
    if sc.carrying_capacity <= 0:
        raise ConfigurationError("scalar.carrying_capacity must be positive")
    if sc.initial_biomass < 0:
        raise ConfigurationError("scalar.initial_biomass must be >= 0")
    if sc.removal_interval < 1:
        raise ConfigurationError(
            f"scalar.removal_interval must be >= 1, got {sc.removal_interval}"
        )
    _check_growth("scalar", sc)

    # Grid
    g = config.grid
    if g.n_rows < 1 or g.n_cols < 1:
        raise ConfigurationError(
            f"grid dimensions must be positive, got {g.n_rows}×{g.n_cols}"
        )
    if g.initial_low > g.initial_high:
        raise ConfigurationError(
            f"grid.initial_low ({g.initial_low}) must be <= "
            f"initial_high ({g.initial_high})"
        )
    if g.carrying_capacity is None and (g.initial_low < 0 or g.initial_high <= 0):
        raise ConfigurationError(
            f"grid.initial_low ({g.initial_low}) must be >= 0 and "
            f"initial_high ({g.initial_high}) positive when K = initial grid"
        )
    if g.carrying_capacity is not None and g.carrying_capacity <= 0:
        raise ConfigurationError("grid.carrying_capacity must be positive")
    _check_growth("grid", g)
    if g.removal_mode not in VALID_REMOVAL_MODES:
        raise ConfigurationError(
            f"grid.removal_mode must be one of {VALID_REMOVAL_MODES}, "
            f"got '{g.removal_mode}'"
        )
    if g.removal_interval < 1:
        raise ConfigurationError(
            f"grid.removal_interval must be >= 1, got {g.removal_interval}"
        )
    if not 0.0 <= g.removal_fraction <= 1.0:
        raise ConfigurationError(
            f"grid.removal_fraction must be in [0, 1], got {g.removal_fraction}"
        )
    if g.disturbance_sigma <= 0:
        raise ConfigurationError("grid.disturbance_sigma must be positive")
    if not 0.0 < g.max_weight <= 1.0:
        raise ConfigurationError(
            f"grid.max_weight must be in (0, 1], got {g.max_weight}"
        )

    # Output
    out = config.output
    if not (0 <= out.trace_row < g.n_rows and 0 <= out.trace_col < g.n_cols):
        raise ConfigurationError(
            f"output trace cell ({out.trace_row}, {out.trace_col}) is outside "
            f"the {g.n_rows}×{g.n_cols} grid"
        )
    if out.fps < 1:
        raise ConfigurationError("output.fps must be >= 1")


def _read_yaml(path: Path) -> Dict:
    with open(path) as f:
        return yaml.safe_load(f) or {}


def load_config(
    base_path: Union[str, Path],
    scenario_path: Optional[Union[str, Path]] = None,
    overrides: Optional[Dict] = None,
) -> ModelConfig:
    """Load and merge hierarchical YAML configuration.

    Merge order: base → scenario → overrides.

    Raises:
        FileNotFoundError: If base_path or scenario_path doesn't exist.
        ConfigurationError: If validation fails.
    """
    base_path = Path(base_path)
    if not base_path.exists():
        raise FileNotFoundError(f"Config file not found: {base_path}")
    config_dict = _read_yaml(base_path)

    if scenario_path is not None:
        scenario_path = Path(scenario_path)
        if not scenario_path.exists():
            raise FileNotFoundError(f"Scenario file not found: {scenario_path}")
        deep_merge(config_dict, _read_yaml(scenario_path))

    if overrides is not None:
        deep_merge(config_dict, overrides)

    config = _yaml_to_config(config_dict)
    validate_config(config)
    return config


def default_config() -> ModelConfig:
    """Return a ModelConfig with all default values."""
    config = ModelConfig()
    validate_config(config)
    return config
