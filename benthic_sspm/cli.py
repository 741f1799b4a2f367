"""Run scalar and grid SSPM scenarios from YAML configuration files.

Loads a base config (plus optional scenario override), runs both engines,
and writes to the output directory:
  - scalar_trajectory.png, scalar_trajectory.csv
  - cell_trace.png, cell_trace.csv
  - biomass_panels.png, removal_weights.png ('weighted' mode)
  - biomass_stack.npz
  - biomass.gif (unless --no-animation)
  - config_used.yaml

Usage:
    benthic-sspm configs/base.yaml
    benthic-sspm configs/base.yaml --scenario configs/gaussian_disturbance.yaml
    benthic-sspm configs/base.yaml --seed 7 --output-dir results/seed7 --no-animation
"""

from __future__ import annotations

import argparse
import logging
from pathlib import Path
from typing import Dict, List, Optional

import pandas as pd
import yaml

from benthic_sspm.config import ModelConfig, config_to_dict, load_config
from benthic_sspm.errors import ConfigurationError
from benthic_sspm.logging_config import setup_logging
from benthic_sspm.rng import create_rng_hierarchy
from benthic_sspm.scenarios import grid_removal_rule, run_grid_scenario, run_scalar_scenario
from benthic_sspm.viz import (
    animate_biomass_grid,
    plot_biomass_panels,
    plot_biomass_trajectory,
    plot_cell_trace,
    plot_weight_grid,
)

logger = logging.getLogger(__name__)


def _cli_overrides(args: argparse.Namespace) -> Dict:
    overrides: Dict = {}
    if args.seed is not None:
        overrides.setdefault('simulation', {})['seed'] = args.seed
    if args.timesteps is not None:
        overrides.setdefault('simulation', {})['n_timesteps'] = args.timesteps
    if args.output_dir is not None:
        overrides.setdefault('output', {})['directory'] = args.output_dir
    if args.no_animation:
        overrides.setdefault('output', {})['animation'] = False
    return overrides


def run_and_save(config: ModelConfig) -> Dict[str, Path]:
    """Run both engines for ``config`` and write all outputs.

    Returns:
        Mapping of output name → written path.
    """
    out_dir = Path(config.output.directory)
    out_dir.mkdir(parents=True, exist_ok=True)
    written: Dict[str, Path] = {}

    rngs = create_rng_hierarchy(config.simulation.seed)
    scalar = run_scalar_scenario(config, rngs)
    grid = run_grid_scenario(config, rngs)

    # Scalar
    path = out_dir / 'scalar_trajectory.csv'
    scalar.to_frame().to_csv(path, index=False)
    written['scalar_csv'] = path
    path = out_dir / 'scalar_trajectory.png'
    plot_biomass_trajectory(scalar, save_path=str(path))
    written['scalar_plot'] = path

    # Single cell
    row, col = config.output.trace_row, config.output.trace_col
    trace = pd.DataFrame({
        'timestep': grid.timesteps,
        'biomass': grid.cell_trace(row, col),
        'grid_mean': grid.mean_trace(),
    })
    path = out_dir / 'cell_trace.csv'
    trace.to_csv(path, index=False)
    written['cell_csv'] = path
    # K = initial grid unless a scalar K is configured
    K = config.grid.carrying_capacity
    if K is None:
        K = float(grid[0][row, col])
    path = out_dir / 'cell_trace.png'
    plot_cell_trace(grid, row, col, carrying_capacity=K, save_path=str(path))
    written['cell_plot'] = path

    # Maps
    panels: List[int] = [t for t in config.output.panel_timesteps
                         if 0 <= t <= grid.n_timesteps]
    path = out_dir / 'biomass_panels.png'
    plot_biomass_panels(grid, timesteps=panels or None, save_path=str(path))
    written['panels'] = path
    if config.grid.removal_mode == 'weighted':
        path = out_dir / 'removal_weights.png'
        plot_weight_grid(grid_removal_rule(config.grid).weights, save_path=str(path))
        written['weights'] = path

    written['stack'] = grid.save(out_dir / 'biomass_stack.npz')

    if config.output.animation:
        written['animation'] = animate_biomass_grid(
            grid, out_dir / 'biomass.gif',
            fps=config.output.fps, dpi=config.output.dpi,
        )

    path = out_dir / 'config_used.yaml'
    with open(path, 'w') as f:
        yaml.safe_dump(config_to_dict(config), f, sort_keys=False)
    written['config'] = path

    for name, p in written.items():
        logger.info("  %-12s %s", name, p)
    return written


def main(argv: Optional[List[str]] = None) -> int:
    parser = argparse.ArgumentParser(
        description="Run scalar and grid SSPM scenarios from YAML config files.",
        epilog="Example: benthic-sspm configs/base.yaml --scenario configs/gaussian_disturbance.yaml",
    )
    parser.add_argument("config", help="Base config YAML")
    parser.add_argument(
        "--scenario", type=str, default=None,
        help="Scenario override YAML (merged over the base config)",
    )
    parser.add_argument("--seed", type=int, default=None, help="Override simulation.seed")
    parser.add_argument(
        "--timesteps", type=int, default=None,
        help="Override simulation.n_timesteps",
    )
    parser.add_argument(
        "--output-dir", type=str, default=None,
        help="Override output directory (default: from YAML)",
    )
    parser.add_argument(
        "--no-animation", action="store_true",
        help="Skip the GIF animation",
    )
    parser.add_argument(
        "--log-file", type=str, default=None,
        help="Also write the log to this file",
    )
    parser.add_argument("--verbose", action="store_true", help="Debug logging")
    args = parser.parse_args(argv)

    setup_logging(logging.DEBUG if args.verbose else logging.INFO, args.log_file)

    try:
        config = load_config(args.config, args.scenario, _cli_overrides(args))
    except (FileNotFoundError, ConfigurationError) as exc:
        logger.error("%s", exc)
        return 2

    logger.info("Running %d timesteps, seed %d → %s",
                config.simulation.n_timesteps, config.simulation.seed,
                config.output.directory)
    try:
        run_and_save(config)
    except ConfigurationError as exc:
        logger.error("%s", exc)
        return 2
    return 0


if __name__ == "__main__":
    raise SystemExit(main())
