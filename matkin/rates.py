"""
rates.py - Rate Provider: Validation and Projection Operators

Turns raw survival (U), fertility (f), birth-distribution (pi) and population
(N) schedules into the sparse operators consumed by the kin recursions.

Mathematical Background:
-----------------------
For survival probabilities s_0..s_omega the living block of the projection is

    U[a+1, a] = s_a        (a < omega)
    U[omega, omega] = s_omega   (open terminal age class)

Every column of U holds exactly one entry, so the probability of dying from
age class a is 1 - s_a. Deaths are tracked in a second block, giving the
augmented operators

    U~ = | U  0 |        F~ = | F  0 |
         | M  0 |             | 0  0 |

with M = diag(1 - s) and F[0, :] = f * birth_female_fraction. Applied to a
state [living; dead], U~ ages the living and moves this step's deaths into
the dead block (deaths are not carried over, so the dead block always holds
the deaths of the last step only).

Operators are built lazily, the first time a calendar year is touched, and
memoised per provider.
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import Dict, Iterable, Optional, Tuple

import numpy as np
import pandas as pd
import scipy.linalg
from scipy import sparse
from loguru import logger

from .errors import ConfigurationError, OutOfRangeYear
from .types import AgeRateSchedule, ComputationMode, ScheduleLike


# =============================================================================
# OPERATOR CONSTRUCTION
# =============================================================================

@dataclass(frozen=True)
class ProjectionOperators:
    """
    The operators for one calendar year (or the single stable reference).

    Parameters
    ----------
    year : int or None
        Year the rates were taken from. None for an unlabeled schedule.
    transition : sparse.csr_matrix
        Augmented survival operator U~ with shape (2n, 2n).
    fertility : sparse.csr_matrix
        Augmented fertility operator F~ with shape (2n, 2n).
    pi : np.ndarray
        Distribution of the mother's age at Focal's birth, shape (n,).
    """
    year: Optional[int]
    transition: sparse.csr_matrix
    fertility: sparse.csr_matrix
    pi: np.ndarray

    @property
    def n_ages(self) -> int:
        return self.pi.shape[0]


def build_transition(survival: np.ndarray) -> sparse.csr_matrix:
    """
    Build the augmented survival operator U~ from one survival column.

    Parameters
    ----------
    survival : np.ndarray
        Survival probabilities s_0..s_omega.

    Returns
    -------
    sparse.csr_matrix
        Shape (2n, 2n). Survivors move one age class up (the terminal class
        loops on itself); deaths land in the lower block at the age they
        were when the step began.
    """
    s = np.asarray(survival, dtype=float)
    n = s.size
    rows = np.append(np.arange(1, n), n - 1)
    cols = np.append(np.arange(0, n - 1), n - 1)
    U = sparse.csr_matrix((s, (rows, cols)), shape=(n, n))
    M = sparse.diags(1.0 - s, format="csr")
    Z = sparse.csr_matrix((n, n))
    return sparse.bmat([[U, Z], [M, Z]], format="csr")


def build_fertility(fertility: np.ndarray, birth_female_fraction: float) -> sparse.csr_matrix:
    """
    Build the augmented fertility operator F~ from one fertility column.

    Only the first row is non-zero: births enter kin age 0, and only living
    relatives give birth.
    """
    f = np.asarray(fertility, dtype=float) * birth_female_fraction
    n = f.size
    F = sparse.csr_matrix((f, (np.zeros(n, dtype=int), np.arange(n))), shape=(n, n))
    Z = sparse.csr_matrix((n, n))
    return sparse.bmat([[F, Z], [Z, Z]], format="csr")


def leslie_matrix(
    survival: np.ndarray, fertility: np.ndarray, birth_female_fraction: float
) -> np.ndarray:
    """Dense one-sex Leslie matrix with an open terminal age class."""
    s = np.asarray(survival, dtype=float)
    n = s.size
    A = np.zeros((n, n))
    A[np.arange(1, n), np.arange(0, n - 1)] = s[:-1]
    A[n - 1, n - 1] = s[-1]
    A[0, :] += np.asarray(fertility, dtype=float) * birth_female_fraction
    return A


def _normalise_births(weights: np.ndarray, what: str) -> np.ndarray:
    total = weights.sum()
    if total <= 0:
        logger.warning(f"Zero total fertility ({what}); mother's age distribution set to 0")
        return np.zeros_like(weights)
    return weights / total


def stable_age_structure(
    survival: np.ndarray, fertility: np.ndarray, birth_female_fraction: float
) -> np.ndarray:
    """
    Stable age distribution w of the Leslie matrix, summing to one.

    The growth rate lambda and w on ages 0..last fertile age come from the
    dominant eigenpair of that (irreducible) block. Older ages only age and
    die: w[x] = s[x-1] w[x-1] / lambda. A terminal self-loop s_omega
    larger than lambda is never taken as the dominant root.
    """
    s = np.asarray(survival, dtype=float)
    f = np.asarray(fertility, dtype=float)
    n = s.size
    A = leslie_matrix(s, f, birth_female_fraction)
    fertile = np.flatnonzero(f > 0)
    k = int(fertile[-1]) + 1 if fertile.size else n

    vals, vecs = scipy.linalg.eig(A[:k, :k])
    idx = int(np.argmax(vals.real))
    lam = vals[idx].real
    w = np.zeros(n)
    w[:k] = np.abs(vecs[:, idx].real)
    if k < n and lam > 0:
        for x in range(k, n):
            w[x] = s[x - 1] * w[x - 1] / lam
        if lam > s[-1]:
            w[-1] = s[-2] * w[-2] / (lam - s[-1])
    logger.debug(f"Stable population growth rate lambda={lam:.5f}")
    return w / w.sum() if w.sum() > 0 else w


def stable_birth_distribution(
    survival: np.ndarray, fertility: np.ndarray, birth_female_fraction: float
) -> np.ndarray:
    """
    Age distribution of mothers at childbirth in the stable population.

    pi_a is proportional to w_a * f_a, where w is the stable age structure.
    """
    w = stable_age_structure(survival, fertility, birth_female_fraction)
    return _normalise_births(w * np.asarray(fertility, dtype=float), "stable population")


def population_birth_distribution(population: np.ndarray, fertility: np.ndarray) -> np.ndarray:
    """pi proportional to N_a * f_a for one calendar year."""
    weights = np.asarray(population, dtype=float) * np.asarray(fertility, dtype=float)
    return _normalise_births(weights, "population")


# =============================================================================
# RATE PROVIDER
# =============================================================================

class RateProvider:
    """
    Validated access to the vital rates of one computation.

    Parameters
    ----------
    survival : ScheduleLike
        Survival probabilities by age (rows) and year (columns).
    fertility : ScheduleLike
        Female-and-male births per woman by age and year. Scaled by
        ``birth_female_fraction`` when operators are built.
    birth_distribution : ScheduleLike, optional
        Distribution of mothers' ages at childbirth (pi). Derived when absent.
    population : ScheduleLike, optional
        Female population by age and year. Used to derive pi in
        time-varying mode when pi is not given.
    mode : ComputationMode
        Stable or time-varying.
    birth_female_fraction : float
        Share of births that are female.

    Examples
    --------
    >>> provider = RateProvider(U, f, population=N, mode=ComputationMode.TIME_VARYING)
    >>> ops = provider.operators(1990)
    >>> ops.transition.shape
    (202, 202)

    Notes
    -----
    All validation happens in the constructor and in ``check_years``, before
    any recursion runs.
    """

    def __init__(
        self,
        survival: ScheduleLike,
        fertility: ScheduleLike,
        birth_distribution: Optional[ScheduleLike] = None,
        population: Optional[ScheduleLike] = None,
        mode: ComputationMode = ComputationMode.STABLE,
        birth_female_fraction: float = 0.5,
    ):
        self.survival = AgeRateSchedule.coerce(survival, name="survival")
        self.fertility = AgeRateSchedule.coerce(fertility, name="fertility")
        self.birth_distribution = (
            None if birth_distribution is None
            else AgeRateSchedule.coerce(birth_distribution, name="birth_distribution")
        )
        self.population = (
            None if population is None
            else AgeRateSchedule.coerce(population, name="population")
        )
        self.mode = ComputationMode(mode)
        self.birth_female_fraction = float(birth_female_fraction)
        self._operators: Dict[Optional[int], ProjectionOperators] = {}

        self.validate()
        logger.debug(
            f"RateProvider ready: mode={self.mode.value}, ages=0..{self.omega}, "
            f"years={self._describe_years()}"
        )

    @property
    def n_ages(self) -> int:
        return self.survival.n_ages

    @property
    def omega(self) -> int:
        return self.survival.omega

    @property
    def schedules(self) -> Tuple[AgeRateSchedule, ...]:
        return tuple(
            s for s in (self.survival, self.fertility, self.birth_distribution, self.population)
            if s is not None
        )

    @property
    def years(self) -> Optional[Tuple[int, ...]]:
        """Years covered by survival and fertility (None if unlabeled)."""
        if self.survival.is_labeled:
            return self.survival.years
        return self.fertility.years

    @property
    def first_year(self) -> Optional[int]:
        return self.years[0] if self.years else None

    @property
    def last_year(self) -> Optional[int]:
        return self.years[-1] if self.years else None

    def _describe_years(self) -> str:
        if not self.years:
            return "constant"
        return f"{self.first_year}..{self.last_year}"

    # -------------------------------------------------------------------------
    # Validation
    # -------------------------------------------------------------------------

    def validate(self) -> None:
        """
        Validate the schedules against each other.

        Raises
        ------
        ConfigurationError
            On mismatched age dimensions, survival above one, a bad
            ``birth_female_fraction``, or (time-varying) mismatched or
            non-contiguous years, or no way to derive pi.
        """
        if not 0.0 < self.birth_female_fraction <= 1.0:
            raise ConfigurationError(
                f"birth_female_fraction must be in (0, 1], got {self.birth_female_fraction}"
            )

        for schedule in self.schedules[1:]:
            if schedule.n_ages != self.n_ages:
                raise ConfigurationError(
                    f"Age dimension mismatch: survival has {self.n_ages} ages, "
                    f"{schedule.name} has {schedule.n_ages}"
                )

        if np.any(self.survival.values > 1.0):
            raise ConfigurationError("survival probabilities must not exceed 1")

        if self.mode == ComputationMode.TIME_VARYING:
            self._validate_time_varying()

    def _validate_time_varying(self) -> None:
        for schedule in (self.survival, self.fertility):
            if not schedule.is_labeled:
                raise ConfigurationError(
                    f"Time-varying mode needs year labels on {schedule.name}"
                )
            if not schedule.is_contiguous:
                raise ConfigurationError(
                    f"{schedule.name} years must be contiguous, got {schedule.years}"
                )

        if self.survival.years != self.fertility.years:
            raise ConfigurationError(
                f"survival years {self.survival.first_year}..{self.survival.last_year} "
                f"do not match fertility years "
                f"{self.fertility.first_year}..{self.fertility.last_year}"
            )

        for schedule in (self.birth_distribution, self.population):
            if schedule is None:
                continue
            missing = [y for y in self.years if not schedule.has_year(y)]
            if missing:
                raise ConfigurationError(
                    f"{schedule.name} is missing years {missing[:5]}"
                    + ("..." if len(missing) > 5 else "")
                )

        if self.birth_distribution is None and self.population is None:
            raise ConfigurationError(
                "Time-varying mode needs either birth_distribution (pi) or "
                "population (N) to derive the mother's age at childbirth"
            )

    def check_years(self, labels: Iterable[int], what: str = "year") -> None:
        """
        Ensure every requested year or cohort can be served.

        Raises
        ------
        OutOfRangeYear
            If a label falls outside the range of a labeled schedule.
        ConfigurationError
            In stable mode, if a label is within range but has no column.
        """
        if self.mode == ComputationMode.TIME_VARYING:
            for label in labels:
                if not self.first_year <= label <= self.last_year:
                    raise OutOfRangeYear(label, self.first_year, self.last_year, what)
            return

        relevant = [self.survival, self.fertility]
        if self.birth_distribution is not None:
            relevant.append(self.birth_distribution)
        for label in labels:
            for schedule in relevant:
                if schedule.has_year(label):
                    continue
                if not schedule.first_year <= label <= schedule.last_year:
                    raise OutOfRangeYear(label, schedule.first_year, schedule.last_year, what)
                raise ConfigurationError(f"{what} {label} has no column in {schedule.name}")

    def default_reference(self) -> Optional[int]:
        """
        The stable reference year when none is requested.

        Raises
        ------
        ConfigurationError
            If survival or fertility hold more than one year.
        """
        for schedule in (self.survival, self.fertility):
            if schedule.n_years > 1:
                raise ConfigurationError(
                    f"{schedule.name} holds {schedule.n_years} years; pass focal_year "
                    "or focal_cohort to select the stable reference year"
                )
        return self.survival.first_year if self.survival.is_labeled else self.fertility.first_year

    # -------------------------------------------------------------------------
    # Rates and operators
    # -------------------------------------------------------------------------

    def survival_at(self, year: Optional[int]) -> np.ndarray:
        return self.survival.column(year)

    def fertility_at(self, year: Optional[int]) -> np.ndarray:
        return self.fertility.column(year)

    def pi_at(self, year: Optional[int]) -> np.ndarray:
        """
        Distribution of the mother's age at Focal's birth in ``year``.

        Uses the supplied pi if any; otherwise N * f (time-varying) or the
        stable population (stable).
        """
        if self.birth_distribution is not None:
            pi = np.array(self.birth_distribution.column(year))
            total = pi.sum()
            if total > 0 and abs(total - 1.0) > 1e-6:
                logger.warning(f"birth_distribution for {year} sums to {total:.6f}, not 1")
            return pi
        if self.mode == ComputationMode.TIME_VARYING:
            return population_birth_distribution(
                self.population.column(year), self.fertility_at(year)
            )
        return stable_birth_distribution(
            self.survival_at(year), self.fertility_at(year), self.birth_female_fraction
        )

    def operators(self, year: Optional[int] = None) -> ProjectionOperators:
        """
        Projection operators for one calendar year, built on first use.

        Parameters
        ----------
        year : int, optional
            Calendar year. None selects the single column of an unlabeled
            stable schedule.
        """
        if year not in self._operators:
            logger.debug(f"Building projection operators for year={year}")
            self._operators[year] = ProjectionOperators(
                year=year,
                transition=build_transition(self.survival_at(year)),
                fertility=build_fertility(self.fertility_at(year), self.birth_female_fraction),
                pi=self.pi_at(year),
            )
        return self._operators[year]

    @property
    def n_built(self) -> int:
        """Number of calendar years whose operators have been built."""
        return len(self._operators)


# =============================================================================
# LIFE TABLE HELPERS
# =============================================================================

def survival_from_lx(lx: np.ndarray) -> np.ndarray:
    """
    Survival ratios from person-years lived.

    Parameters
    ----------
    lx : np.ndarray
        Person-years lived L_x, ages along axis 0 (1D, or 2D ages x years).

    Returns
    -------
    np.ndarray
        U[a] = L[a+1] / L[a] for a < omega and
        U[omega] = L[omega] / (L[omega-1] + L[omega]). Undefined ratios are 0.
    """
    L = np.asarray(lx, dtype=float)
    if L.shape[0] < 2:
        raise ConfigurationError("A life table needs at least two ages")
    U = np.empty_like(L)
    with np.errstate(divide="ignore", invalid="ignore"):
        U[:-1] = L[1:] / L[:-1]
        U[-1] = L[-1] / (L[-2] + L[-1])
    U[~np.isfinite(U)] = 0.0
    return U


def survival_from_life_table(
    frame: pd.DataFrame,
    lx: str = "Lx",
    age: str = "age",
    year: str = "year",
) -> AgeRateSchedule:
    """
    Survival schedule from a long life table with ``age``, ``year`` and ``Lx``.

    Without a year column the result is a single unlabeled column.

    Examples
    --------
    >>> lt = pd.DataFrame({"age": [0, 1, 2], "year": 2000, "Lx": [0.99, 0.97, 0.5]})
    >>> survival_from_life_table(lt).column(2000)
    array([0.97979798, 0.51546392, 0.34013605])
    """
    if year not in frame.columns:
        ordered = frame.sort_values(age)
        series = pd.Series(survival_from_lx(ordered[lx].to_numpy()),
                           index=ordered[age].to_numpy())
        return AgeRateSchedule.from_series(series, name="survival")

    wide = AgeRateSchedule.from_long(frame, value=lx, age=age, year=year, name="Lx")
    return AgeRateSchedule(
        values=survival_from_lx(wide.values), years=wide.years, name="survival"
    )


def schedule_from_long(
    frame: pd.DataFrame, value: str, age: str = "age", year: str = "year"
) -> AgeRateSchedule:
    """Pivot a long (age, year, value) table into an AgeRateSchedule."""
    return AgeRateSchedule.from_long(frame, value=value, age=age, year=year)
