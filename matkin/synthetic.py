"""
synthetic.py - Synthetic Vital Rates

Parametric survival and fertility schedules for tests, examples and the
``matkin generate`` command:

- Mortality: Gompertz-Makeham hazard mu(x) = alpha + beta * exp(gamma * x),
  integrated over each one-year age interval.
- Fertility: Beta-shaped age-specific fertility over the reproductive ages,
  scaled to a target total fertility rate (TFR).
- Time variation: log-linear mortality improvement and a linear TFR path
  between a start and an end value, with optional year-level noise.
- Population: projected forward from the stable age structure of the first
  year with each year's Leslie matrix.

Example Usage:
-------------
    >>> from matkin.synthetic import SyntheticRates
    >>> rates = SyntheticRates(n_ages=101, start=1950, end=2020)
    >>> frames = rates.frames()
    >>> frames["survival"].shape
    (101, 71)
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import Dict, Optional

import numpy as np
import pandas as pd
from scipy import stats

from .errors import ConfigurationError
from .rates import leslie_matrix, stable_age_structure
from .types import AgeRateSchedule


def gompertz_makeham_survival(
    n_ages: int = 101,
    alpha: float = 5e-4,
    beta: float = 3e-5,
    gamma: float = 0.1,
    multiplier: float = 1.0,
) -> np.ndarray:
    """
    One-year survival probabilities under a Gompertz-Makeham hazard.

    Parameters
    ----------
    n_ages : int
        Number of age classes 0..omega.
    alpha : float
        Age-independent (Makeham) hazard.
    beta, gamma : float
        Level and slope of the Gompertz term.
    multiplier : float
        Scales the whole hazard; values below 1 give lower mortality.

    Returns
    -------
    np.ndarray
        s_x = exp(-integral of mu over [x, x+1]), shape (n_ages,).
    """
    if n_ages < 2:
        raise ConfigurationError(f"n_ages must be at least 2, got {n_ages}")
    if gamma <= 0:
        raise ConfigurationError(f"gamma must be positive, got {gamma}")
    x = np.arange(n_ages, dtype=float)
    cumulative = alpha + beta / gamma * (np.exp(gamma * (x + 1)) - np.exp(gamma * x))
    return np.clip(np.exp(-cumulative * multiplier), 0.0, 1.0)


def beta_fertility(
    tfr: float = 2.0,
    n_ages: int = 101,
    min_age: int = 15,
    max_age: int = 49,
    a: float = 2.0,
    b: float = 5.0,
) -> np.ndarray:
    """
    Age-specific fertility with a Beta(a, b) shape over [min_age, max_age].

    The rates sum to ``tfr``. Ages outside the reproductive window are zero.

    Examples
    --------
    >>> f = beta_fertility(tfr=1.8)
    >>> round(f.sum(), 6)
    1.8
    """
    if tfr < 0:
        raise ConfigurationError(f"tfr must be non-negative, got {tfr}")
    if not 0 <= min_age <= max_age < n_ages:
        raise ConfigurationError(
            f"Reproductive ages {min_age}..{max_age} do not fit in 0..{n_ages - 1}"
        )
    ages = np.arange(min_age, max_age + 1)
    # interval midpoints mapped onto (0, 1)
    t = (ages - min_age + 0.5) / (max_age - min_age + 1)
    weights = stats.beta.pdf(t, a, b)

    f = np.zeros(n_ages)
    f[min_age:max_age + 1] = tfr * weights / weights.sum()
    return f


@dataclass(frozen=True)
class SyntheticRates:
    """
    Time-varying survival, fertility and population for a range of years.

    Parameters
    ----------
    n_ages : int
        Number of age classes 0..omega.
    start, end : int
        First and last calendar year (inclusive).
    tfr_start, tfr_end : float
        Total fertility in the first and last year, interpolated linearly.
    improvement : float
        Annual rate of decline of the mortality hazard.
    hazard_multiplier : float
        Mortality level in the first year.
    birth_female_fraction : float
        Share of female births, used to project the population.
    initial_size : float
        Female population in the first year.
    noise : float
        Standard deviation of log-normal year noise on both rates.
    seed : int, optional
        Seed for the noise generator.

    Examples
    --------
    >>> rates = SyntheticRates(n_ages=60, start=1990, end=2000, tfr_start=2.5)
    >>> U, f, N = rates.schedules().values()
    >>> U.years[:2]
    (1990, 1991)
    """
    n_ages: int = 101
    start: int = 1950
    end: int = 2020
    tfr_start: float = 3.0
    tfr_end: float = 1.6
    improvement: float = 0.015
    hazard_multiplier: float = 1.0
    birth_female_fraction: float = 0.5
    initial_size: float = 1e6
    noise: float = 0.0
    seed: Optional[int] = None

    def __post_init__(self):
        if self.end < self.start:
            raise ConfigurationError(f"end ({self.end}) is before start ({self.start})")
        if self.noise < 0:
            raise ConfigurationError(f"noise must be non-negative, got {self.noise}")
        if self.n_ages < 50:
            raise ConfigurationError(
                f"n_ages must cover the reproductive ages (>= 50), got {self.n_ages}"
            )

    @property
    def years(self) -> np.ndarray:
        return np.arange(self.start, self.end + 1)

    def frames(self) -> Dict[str, pd.DataFrame]:
        """
        Survival, fertility and population as wide DataFrames.

        Returns
        -------
        dict
            ``{"survival", "fertility", "population"}`` frames with ages as
            index and years as columns.
        """
        rng = np.random.default_rng(self.seed)
        years = self.years
        span = max(len(years) - 1, 1)

        U = np.empty((self.n_ages, len(years)))
        f = np.empty((self.n_ages, len(years)))
        for j, year in enumerate(years):
            t = year - self.start
            shock = rng.normal(0.0, self.noise, size=2) if self.noise > 0 else np.zeros(2)
            multiplier = self.hazard_multiplier * np.exp(-self.improvement * t + shock[0])
            tfr = self.tfr_start + (self.tfr_end - self.tfr_start) * t / span
            U[:, j] = gompertz_makeham_survival(self.n_ages, multiplier=multiplier)
            f[:, j] = beta_fertility(tfr * np.exp(shock[1]), self.n_ages)

        N = self._project_population(U, f)
        index = pd.Index(np.arange(self.n_ages), name="age")
        return {
            "survival": pd.DataFrame(U, index=index, columns=years),
            "fertility": pd.DataFrame(f, index=index, columns=years),
            "population": pd.DataFrame(N, index=index, columns=years),
        }

    def schedules(self) -> Dict[str, AgeRateSchedule]:
        """The same rates as labeled AgeRateSchedules."""
        return {
            name: AgeRateSchedule.from_frame(frame, name=name)
            for name, frame in self.frames().items()
        }

    def _project_population(self, U: np.ndarray, f: np.ndarray) -> np.ndarray:
        N = np.empty_like(U)
        N[:, 0] = self.initial_size * stable_age_structure(
            U[:, 0], f[:, 0], self.birth_female_fraction
        )
        for j in range(1, U.shape[1]):
            A = leslie_matrix(U[:, j - 1], f[:, j - 1], self.birth_female_fraction)
            N[:, j] = A @ N[:, j - 1]
        return N
