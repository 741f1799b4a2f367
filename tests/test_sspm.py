"""Tests for benthic_sspm.sspm — scalar Schaefer recurrence.

Acceptance criteria:
  1. B = K with no removal is a fixed point
  2. 0 < B < K, 0 < r ≤ 1, no removal → B increases, never exceeds K
  3. Identical inputs → byte-identical output
  4. n_timesteps = N → exactly N states
  5. Removal every 12th step lands on state 12 (1000 → 550)
  6. No clamping: negative biomass is produced and propagated
"""

import warnings

import numpy as np
import pytest

from benthic_sspm.errors import ConfigurationError, NumericDegeneracyWarning
from benthic_sspm.sspm import (
    ScalarSimResult,
    equilibrium_biomass_fraction,
    periodic_removal_series,
    run_scalar,
    schaefer_step,
    surplus_production,
)


# ── Recurrence ────────────────────────────────────────────────────────

class TestSchaeferStep:
    @pytest.mark.parametrize("r", [0.0, 0.25, 0.75, 1.0, 2.5])
    @pytest.mark.parametrize("K", [1.0, 1000.0, 12345.6])
    def test_fixed_point_at_carrying_capacity(self, r, K):
        assert schaefer_step(K, r, K, 0.0) == K

    @pytest.mark.parametrize("r", [0.1, 0.5, 0.75, 1.0])
    def test_monotonic_approach_without_removal(self, r):
        K = 1000.0
        B = np.linspace(1.0, 999.0, 200)
        nxt = schaefer_step(B, r, K, 0.0)
        assert np.all(nxt > B)
        assert np.all(nxt <= K)

    def test_removal_subtracts(self):
        assert schaefer_step(1000.0, 0.75, 1000.0, 1000.0) == 0.0
        assert schaefer_step(1000.0, 0.75, 1000.0, 450.0) == 550.0

    def test_known_value(self):
        # 550 + 0.75 × 550 × 0.45
        assert schaefer_step(550.0, 0.75, 1000.0) == pytest.approx(735.625)

    def test_elementwise_on_arrays(self):
        B = np.array([[100.0, 500.0], [900.0, 1000.0]])
        K = np.array([[1000.0, 1000.0], [1000.0, 1000.0]])
        out = schaefer_step(B, 0.5, K, np.zeros_like(B))
        expected = B + 0.5 * B * (1 - B / K)
        np.testing.assert_allclose(out, expected)

    def test_surplus_production_peaks_at_half_k(self):
        B = np.linspace(0, 1000, 1001)
        sp = surplus_production(B, 0.75, 1000.0)
        assert B[np.argmax(sp)] == 500.0
        assert sp[0] == 0.0 and sp[-1] == 0.0


class TestEquilibriumFraction:
    def test_reference_values(self):
        # f = 1, d = 0.9, r = 0.75 exceeds recovery → negative B/K
        assert equilibrium_biomass_fraction(1, 0.9, 0.75) == pytest.approx(-0.2)
        assert equilibrium_biomass_fraction(0.5, 0.3, 0.75) == pytest.approx(0.8)

    def test_no_disturbance_is_k(self):
        assert equilibrium_biomass_fraction(0.0, 0.9, 0.75) == 1.0

    def test_nonpositive_recovery_rate_rejected(self):
        with pytest.raises(ConfigurationError):
            equilibrium_biomass_fraction(1.0, 0.5, 0.0)


class TestPeriodicRemovalSeries:
    def test_length_and_positions(self):
        s = periodic_removal_series(25, 450.0, 12)
        assert len(s) == 24
        np.testing.assert_array_equal(np.flatnonzero(s), [11, 23])
        assert s[11] == 450.0

    def test_interval_one_every_transition(self):
        s = periodic_removal_series(5, 2.0, 1)
        np.testing.assert_array_equal(s, [2.0, 2.0, 2.0, 2.0])

    def test_offset_shifts_schedule(self):
        s = periodic_removal_series(13, 1.0, 5, offset=2)
        # events at t = 2, 7, 12
        np.testing.assert_array_equal(np.flatnonzero(s) + 1, [2, 7, 12])

    def test_single_state_gives_empty_series(self):
        assert len(periodic_removal_series(1, 450.0, 12)) == 0

    def test_invalid_interval(self):
        with pytest.raises(ConfigurationError):
            periodic_removal_series(10, 1.0, 0)


# ── Engine ────────────────────────────────────────────────────────────

class TestRunScalar:
    def test_concrete_twelve_step_scenario(self):
        removals = periodic_removal_series(13, 450.0, 12)
        result = run_scalar(1000.0, 0.75, 1000.0, removals, 13)
        assert isinstance(result, ScalarSimResult)
        assert len(result) == 13
        np.testing.assert_array_equal(result.biomass[:12], np.full(12, 1000.0))
        assert result[12] == 550.0

    def test_recovery_after_event(self):
        removals = periodic_removal_series(37, 450.0, 12)
        result = run_scalar(1000.0, 0.75, 1000.0, removals, 37)
        assert result[13] == pytest.approx(735.625)
        # strictly increasing toward K between events
        between = result.biomass[12:24]
        assert np.all(np.diff(between) > 0)
        assert np.all(between < 1000.0)
        # second event removes 450 from the recovered value
        assert result[24] == pytest.approx(
            schaefer_step(result[23], 0.75, 1000.0) - 450.0
        )

    def test_matches_reference_loop(self):
        """Same as the scratch loop: 100 steps, 999 removed every 20th."""
        bt = 1000.0
        expected = [bt]
        for i in range(1, 101):
            ct = 999.0 if i % 20 == 0 else 0.0
            bt = bt + 0.75 * bt * (1 - bt / 1000.0) - ct
            expected.append(bt)
        result = run_scalar(1000.0, 0.75, 1000.0,
                            periodic_removal_series(101, 999.0, 20), 101)
        np.testing.assert_allclose(result.biomass, expected, rtol=1e-12)

    @pytest.mark.parametrize("n", [1, 2, 13, 120])
    def test_length_invariant(self, n):
        result = run_scalar(500.0, 0.5, 1000.0, np.zeros(n - 1), n)
        assert len(result) == n
        assert len(result.growth_rates) == n - 1
        assert len(result.removals) == n - 1

    def test_single_state_is_seed(self):
        result = run_scalar(321.0, 0.5, 1000.0, [], 1)
        np.testing.assert_array_equal(result.biomass, [321.0])

    def test_deterministic(self):
        rng = np.random.default_rng(3)
        rates = rng.uniform(0.5, 1.0, size=59)
        removals = rng.uniform(0, 50, size=59)
        a = run_scalar(800.0, rates, 1000.0, removals, 60)
        b = run_scalar(800.0, rates, 1000.0, removals, 60)
        assert a.biomass.tobytes() == b.biomass.tobytes()

    def test_time_varying_growth_rate(self):
        rates = [0.0, 1.0, 0.5]
        result = run_scalar(500.0, rates, 1000.0, [0, 0, 0], 4)
        assert result[1] == 500.0            # r = 0
        assert result[2] == 750.0            # 500 + 1.0 × 500 × 0.5
        assert result[3] == pytest.approx(750.0 + 0.5 * 750.0 * 0.25)

    def test_negative_biomass_propagates_unclamped(self):
        with warnings.catch_warnings():
            warnings.simplefilter("error", NumericDegeneracyWarning)
            result = run_scalar(1000.0, 0.75, 1000.0, [1500.0, 0.0], 3)
        assert result[1] == -500.0
        assert result[2] == pytest.approx(-500.0 - 0.75 * 500.0 * 1.5)
        np.testing.assert_array_equal(result.negative_timesteps(), [1, 2])

    def test_warn_negative_opt_in(self):
        with pytest.warns(NumericDegeneracyWarning, match="first at t=1"):
            run_scalar(1000.0, 0.75, 1000.0, [1500.0, 0.0], 3, warn_negative=True)

    def test_result_is_read_only(self):
        result = run_scalar(1000.0, 0.75, 1000.0, [0.0, 0.0], 3)
        with pytest.raises(ValueError):
            result.biomass[0] = 5.0

    def test_inputs_not_aliased(self):
        removals = np.zeros(4)
        result = run_scalar(1000.0, 0.75, 1000.0, removals, 5)
        removals[:] = 999.0
        assert np.all(result.removals == 0.0)

    def test_to_frame(self):
        result = run_scalar(1000.0, 0.75, 1000.0,
                            periodic_removal_series(13, 450.0, 12), 13)
        df = result.to_frame()
        assert list(df.columns) == ['timestep', 'biomass', 'growth_rate', 'removal']
        assert len(df) == 13
        assert np.isnan(df['removal'].iloc[0])
        assert df['removal'].iloc[12] == 450.0


class TestRunScalarValidation:
    def test_removal_length_mismatch(self):
        with pytest.raises(ConfigurationError, match="removal_series"):
            run_scalar(1000.0, 0.75, 1000.0, np.zeros(12), 12)

    def test_growth_length_mismatch(self):
        with pytest.raises(ConfigurationError, match="growth_rate"):
            run_scalar(1000.0, [0.75, 0.75], 1000.0, np.zeros(4), 5)

    def test_removal_must_be_sequence(self):
        with pytest.raises(ConfigurationError):
            run_scalar(1000.0, 0.75, 1000.0, 0.0, 5)

    @pytest.mark.parametrize("K", [0.0, -10.0, float('nan')])
    def test_nonpositive_carrying_capacity(self, K):
        with pytest.raises(ConfigurationError, match="carrying_capacity"):
            run_scalar(1000.0, 0.75, K, np.zeros(4), 5)

    @pytest.mark.parametrize("n", [0, -3])
    def test_nonpositive_timesteps(self, n):
        with pytest.raises(ConfigurationError, match="n_timesteps"):
            run_scalar(1000.0, 0.75, 1000.0, [], n)

    def test_negative_initial_biomass(self):
        with pytest.raises(ConfigurationError, match="initial_biomass"):
            run_scalar(-1.0, 0.75, 1000.0, np.zeros(4), 5)

    def test_nonfinite_removal(self):
        with pytest.raises(ConfigurationError):
            run_scalar(1000.0, 0.75, 1000.0, [0.0, np.inf], 3)

    def test_configuration_error_is_value_error(self):
        with pytest.raises(ValueError):
            run_scalar(1000.0, 0.75, 1000.0, np.zeros(3), 5)
