"""Tests for benthic_sspm.scenarios — config-driven runs."""

import numpy as np
import pytest

from benthic_sspm.config import default_config
from benthic_sspm.grid import (
    FixedRemoval,
    NoRemoval,
    PeriodicFractionRemoval,
    PeriodicWeightedRemoval,
)
from benthic_sspm.rng import create_rng_hierarchy
from benthic_sspm.scenarios import (
    grid_removal_rule,
    run_grid_scenario,
    run_scalar_scenario,
)


class TestScalarScenario:
    def test_default_run(self):
        result = run_scalar_scenario()
        assert len(result) == 121
        np.testing.assert_array_equal(result.biomass[:12], np.full(12, 1000.0))
        assert result[12] == 550.0
        np.testing.assert_array_equal(np.flatnonzero(result.removals) + 1,
                                      np.arange(12, 121, 12))

    def test_uniform_growth_reproducible(self):
        config = default_config()
        config.scalar.growth_mode = 'uniform'
        a = run_scalar_scenario(config)
        b = run_scalar_scenario(config)
        np.testing.assert_array_equal(a.biomass, b.biomass)
        assert np.all((a.growth_rates >= 0.5) & (a.growth_rates < 1.0))

    def test_uniform_growth_depends_on_seed(self):
        config = default_config()
        config.scalar.growth_mode = 'uniform'
        a = run_scalar_scenario(config).growth_rates
        config.simulation.seed = 43
        b = run_scalar_scenario(config).growth_rates
        assert not np.array_equal(a, b)


class TestGridScenario:
    def test_default_run(self):
        config = default_config()
        result = run_grid_scenario(config)
        assert len(result) == 121
        assert result.shape == (10, 10)
        np.testing.assert_array_equal(result.removal_steps, np.arange(12, 121, 12))
        # K = initial grid → stationary until the first event
        np.testing.assert_array_equal(result[11], result[0])
        np.testing.assert_allclose(result[12], 0.5 * result[0])

    def test_initial_grid_bounds(self):
        result = run_grid_scenario(default_config())
        assert np.all((result[0] >= 0.0) & (result[0] < 1000.0))

    def test_reproducible(self):
        a = run_grid_scenario(default_config())
        b = run_grid_scenario(default_config())
        assert a.layers.tobytes() == b.layers.tobytes()

    def test_seed_changes_initial_grid(self):
        config = default_config()
        a = run_grid_scenario(config)
        config.simulation.seed = 7
        b = run_grid_scenario(config)
        assert not np.array_equal(a[0], b[0])

    def test_no_removal_stays_at_capacity(self):
        config = default_config()
        config.grid.removal_mode = 'none'
        result = run_grid_scenario(config)
        assert len(result.removal_steps) == 0
        np.testing.assert_array_equal(result[-1], result[0])

    def test_scalar_carrying_capacity(self):
        config = default_config()
        config.grid.carrying_capacity = 1000.0
        config.grid.removal_mode = 'none'
        result = run_grid_scenario(config)
        # every cell grows toward K = 1000
        assert np.all(result[-1] >= result[0])
        assert np.all(result[-1] <= 1000.0)

    def test_uniform_growth_mode(self):
        config = default_config()
        config.grid.growth_mode = 'uniform'
        result = run_grid_scenario(config)
        assert len(np.unique(result.growth_rates)) > 1
        assert np.all((result.growth_rates >= 0.5) & (result.growth_rates < 1.0))

    def test_parallel_config_matches_serial(self):
        config = default_config()
        config.grid.removal_mode = 'weighted'
        serial = run_grid_scenario(config)
        config.simulation.parallel_workers = 4
        parallel = run_grid_scenario(config)
        np.testing.assert_array_equal(serial.layers, parallel.layers)

    def test_shared_rngs(self):
        config = default_config()
        rngs = create_rng_hierarchy(config.simulation.seed)
        a = run_grid_scenario(config, rngs)
        b = run_grid_scenario(config)
        np.testing.assert_array_equal(a[0], b[0])


class TestGridRemovalRule:
    @pytest.mark.parametrize("mode,cls", [
        ('none', NoRemoval),
        ('fixed', FixedRemoval),
        ('fraction', PeriodicFractionRemoval),
        ('weighted', PeriodicWeightedRemoval),
    ])
    def test_mode_mapping(self, mode, cls):
        config = default_config()
        config.grid.removal_mode = mode
        assert isinstance(grid_removal_rule(config.grid), cls)

    def test_weighted_rule_matches_grid(self):
        config = default_config()
        config.grid.removal_mode = 'weighted'
        config.grid.n_rows = 6
        config.grid.n_cols = 8
        rule = grid_removal_rule(config.grid)
        assert rule.weights.shape == (6, 8)
        assert rule.weights.max() <= config.grid.max_weight
        assert rule.interval == 12
