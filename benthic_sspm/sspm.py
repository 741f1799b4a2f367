"""Schaefer surplus production model: scalar recurrence.

    B[t] = B[t-1] + r_t × B[t-1] × (1 − B[t-1] / K) − C_t

No clamping is applied: removal larger than biomass + growth drives B
negative, and the logistic term then pushes it further away from K.
Callers that want to catch this pass ``warn_negative=True``.

Indexing: ``state[0]`` is the initial biomass; ``removal_series[t-1]``
and ``growth_rate[t-1]`` are used for the transition into ``state[t]``.
A periodic event "every N steps" therefore lands on the states whose
index is a multiple of N (see ``periodic_removal_series``).

References:
  - Haddon, Using R for Modelling and Quantitative Methods in Fisheries,
    ch. 7 (surplus production models)
  - Hiddink et al. 2017 PNAS: equilibrium biomass under chronic trawling
"""

from __future__ import annotations

import logging
import warnings
from dataclasses import dataclass
from typing import Sequence, Union

import numpy as np
import pandas as pd

from benthic_sspm.errors import ConfigurationError, NumericDegeneracyWarning

logger = logging.getLogger(__name__)

ArrayLike = Union[float, np.ndarray]


# ═══════════════════════════════════════════════════════════════════════
# RECURRENCE
# ═══════════════════════════════════════════════════════════════════════

def surplus_production(biomass: ArrayLike, growth_rate: ArrayLike,
                       carrying_capacity: ArrayLike) -> ArrayLike:
    """Logistic surplus production r × B × (1 − B/K)."""
    return growth_rate * biomass * (1.0 - biomass / carrying_capacity)


def schaefer_step(biomass: ArrayLike, growth_rate: ArrayLike,
                  carrying_capacity: ArrayLike,
                  removal: ArrayLike = 0.0) -> ArrayLike:
    """Advance biomass by one timestep.

    Works elementwise on floats or same-shaped numpy arrays (scalars
    broadcast), so the grid engine uses it unchanged.

    Args:
        biomass: Biomass at the start of the step (B_t).
        growth_rate: Intrinsic growth rate r.
        carrying_capacity: Carrying capacity K (> 0).
        removal: Biomass removed during the step (C_t).

    Returns:
        B_{t+1}.
    """
    return biomass + surplus_production(biomass, growth_rate, carrying_capacity) - removal


def equilibrium_biomass_fraction(frequency: float, depletion: float,
                                 recovery_rate: float) -> float:
    """Equilibrium B/K under chronic disturbance (Hiddink et al. 2017).

    B/K = 1 − f × d / r

    Args:
        frequency: Disturbance events per unit time (f).
        depletion: Proportion of biomass removed per event (d).
        recovery_rate: Logistic recovery rate (r, > 0).

    Returns:
        Equilibrium biomass as a fraction of K. Values ≤ 0 mean the
        disturbance regime outpaces recovery; they are returned as-is.
    """
    if recovery_rate <= 0:
        raise ConfigurationError(
            f"recovery_rate must be positive, got {recovery_rate}"
        )
    return 1.0 - frequency * (depletion / recovery_rate)


def periodic_removal_series(n_timesteps: int, amount: float, interval: int,
                            offset: int = 0) -> np.ndarray:
    """Removal series with ``amount`` on every ``interval``-th state.

    Entry ``t-1`` is the removal applied when producing ``state[t]``; it
    is ``amount`` when ``(t - offset) % interval == 0`` and 0 otherwise.

    Args:
        n_timesteps: Number of states in the run (series length is n − 1).
        amount: Absolute biomass removed per event.
        interval: Steps between events (≥ 1).
        offset: Shift of the event schedule (0 → events at N, 2N, ...).

    Returns:
        1-D array of length ``n_timesteps - 1``.
    """
    if n_timesteps < 1:
        raise ConfigurationError(f"n_timesteps must be >= 1, got {n_timesteps}")
    if interval < 1:
        raise ConfigurationError(f"interval must be >= 1, got {interval}")
    t = np.arange(1, n_timesteps)
    return np.where((t - offset) % interval == 0, float(amount), 0.0)


# ═══════════════════════════════════════════════════════════════════════
# RESULT
# ═══════════════════════════════════════════════════════════════════════

@dataclass(frozen=True, eq=False)
class ScalarSimResult:
    """Biomass sequence from a scalar run.

    ``biomass`` has length ``n_timesteps``; ``growth_rates`` and ``removals``
    have length ``n_timesteps - 1`` (one per transition). All arrays are
    read-only.
    """
    biomass: np.ndarray
    growth_rates: np.ndarray
    removals: np.ndarray
    carrying_capacity: float

    @property
    def n_timesteps(self) -> int:
        return len(self.biomass)

    @property
    def timesteps(self) -> np.ndarray:
        return np.arange(self.n_timesteps)

    def __len__(self) -> int:
        return self.n_timesteps

    def __getitem__(self, index):
        return self.biomass[index]

    def negative_timesteps(self) -> np.ndarray:
        """Indices of states with negative biomass."""
        return np.flatnonzero(self.biomass < 0)

    def to_frame(self) -> pd.DataFrame:
        """Tabulate the run: one row per timestep.

        Transition columns are NaN at timestep 0 (the seed state).
        """
        pad = np.array([np.nan])
        return pd.DataFrame({
            'timestep': self.timesteps,
            'biomass': self.biomass,
            'growth_rate': np.concatenate([pad, self.growth_rates]),
            'removal': np.concatenate([pad, self.removals]),
        })


# ═══════════════════════════════════════════════════════════════════════
# ENGINE
# ═══════════════════════════════════════════════════════════════════════

def _as_transition_series(value, n_transitions: int, name: str) -> np.ndarray:
    """Broadcast a scalar or validate a sequence of per-transition values."""
    arr = np.asarray(value, dtype=float)
    if arr.ndim == 0:
        return np.full(n_transitions, float(arr))
    if arr.ndim != 1 or len(arr) != n_transitions:
        raise ConfigurationError(
            f"{name} must have length n_timesteps - 1 = {n_transitions}, "
            f"got shape {arr.shape}"
        )
    if not np.all(np.isfinite(arr)):
        raise ConfigurationError(f"{name} contains non-finite values")
    return arr.copy()


def _readonly(arr: np.ndarray) -> np.ndarray:
    arr.setflags(write=False)
    return arr


def run_scalar(
    initial_biomass: float,
    growth_rate: Union[float, Sequence[float], np.ndarray],
    carrying_capacity: float,
    removal_series: Union[Sequence[float], np.ndarray],
    n_timesteps: int,
    warn_negative: bool = False,
) -> ScalarSimResult:
    """Iterate the SSPM for a single biomass value.

    Pure function: randomness (e.g. stochastic growth) must be pre-drawn
    by the caller and passed as a concrete sequence.

    Args:
        initial_biomass: B[0], finite and ≥ 0 (conventionally = K).
        growth_rate: Constant r, or a sequence of length n_timesteps − 1.
        carrying_capacity: K (> 0).
        removal_series: Removal per transition, length n_timesteps − 1.
        n_timesteps: Number of states to return (≥ 1).
        warn_negative: Emit NumericDegeneracyWarning if biomass goes negative.

    Returns:
        ScalarSimResult with exactly ``n_timesteps`` biomass values.

    Raises:
        ConfigurationError: On invalid sizes, lengths or values.
    """
    if isinstance(n_timesteps, bool) or int(n_timesteps) != n_timesteps or n_timesteps < 1:
        raise ConfigurationError(f"n_timesteps must be a positive integer, got {n_timesteps}")
    n_timesteps = int(n_timesteps)
    if not np.isfinite(carrying_capacity) or carrying_capacity <= 0:
        raise ConfigurationError(
            f"carrying_capacity must be positive, got {carrying_capacity}"
        )
    if not np.isfinite(initial_biomass) or initial_biomass < 0:
        raise ConfigurationError(
            f"initial_biomass must be finite and >= 0, got {initial_biomass}"
        )

    n_transitions = n_timesteps - 1
    rates = _as_transition_series(growth_rate, n_transitions, 'growth_rate')
    if np.ndim(removal_series) == 0:
        raise ConfigurationError(
            "removal_series must be a sequence of per-transition removals"
        )
    removals = _as_transition_series(removal_series, n_transitions, 'removal_series')

    biomass = np.empty(n_timesteps, dtype=float)
    biomass[0] = initial_biomass
    for t in range(1, n_timesteps):
        biomass[t] = schaefer_step(biomass[t - 1], rates[t - 1],
                                   carrying_capacity, removals[t - 1])

    result = ScalarSimResult(
        biomass=_readonly(biomass),
        growth_rates=_readonly(rates),
        removals=_readonly(removals),
        carrying_capacity=float(carrying_capacity),
    )
    logger.debug("Scalar run: %d timesteps, final biomass %.3f",
                 n_timesteps, biomass[-1])

    if warn_negative:
        neg = result.negative_timesteps()
        if len(neg) > 0:
            warnings.warn(
                f"Biomass negative at {len(neg)} timestep(s), first at t={neg[0]}",
                NumericDegeneracyWarning,
                stacklevel=2,
            )
    return result
