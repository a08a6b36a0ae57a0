"""
engine.py - Entry Point of the Kinship Computation

``compute_kinship`` wires the components together:

    RateProvider -> controller (stable | time-varying) -> kin recursions
                 -> FullResultTable -> deaths -> SummaryResultTable

Every run builds fresh objects and shares nothing with other runs. All input
validation happens before the first recursion step.

Example Usage:
-------------
    >>> from matkin import compute_kinship
    >>> result = compute_kinship(U, f, stable=True, focal_year=2000)
    >>> result.summary.query("kin == 'gm' and age_focal == 0")
    >>>
    >>> # Time-varying, cohort 1960, with deaths
    >>> result = compute_kinship(
    ...     U, f, population=N, stable=False, focal_cohort=1960, living_only=False
    ... )
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import FrozenSet, Iterable, Optional, Sequence, Tuple, Union

import pandas as pd
from loguru import logger

from .errors import ConfigurationError
from .modes import make_controller
from .network import KIN_ORDER, parse_kin
from .rates import RateProvider
from .summary import summarize, verify_summary
from .types import ComputationMode, KinType, KinshipResult, ScheduleLike

YearSelector = Optional[Union[int, Sequence[int]]]


def _as_labels(value: YearSelector, name: str) -> Optional[Tuple[int, ...]]:
    if value is None:
        return None
    if isinstance(value, str) or not hasattr(value, "__iter__"):
        values = [value]
    else:
        values = list(value)
    try:
        labels = [int(v) for v in values]
    except (TypeError, ValueError):
        raise ConfigurationError(f"{name} must be integers, got {value!r}") from None
    if not labels:
        return None
    return tuple(dict.fromkeys(labels))


# =============================================================================
# CONFIGURATION
# =============================================================================

@dataclass(frozen=True)
class KinshipConfig:
    """
    Options of one kinship computation.

    Parameters
    ----------
    stable : bool
        True for a time-invariant (stable) regime, False for time-varying.
    focal_year : int or sequence of int, optional
        Calendar year(s) to report (period view).
    focal_cohort : int or sequence of int, optional
        Focal birth cohort(s) to report (cohort view).
    birth_female_fraction : float
        Share of births that are female.
    selected_kin : iterable of KinType or str, optional
        Kin types to report. None means all 14.
    living_only : bool
        If False, also report deaths of kin.
    verify : bool
        Re-derive the summary from the full table and fail on mismatch.

    Raises
    ------
    ConfigurationError
        If both focal_year and focal_cohort are given, if a time-varying
        run has neither, or if birth_female_fraction is out of range.
    InvalidKinCode
        If selected_kin contains an unknown code.
    """
    stable: bool = True
    focal_year: YearSelector = None
    focal_cohort: YearSelector = None
    birth_female_fraction: float = 0.5
    selected_kin: Optional[Iterable[Union[KinType, str]]] = None
    living_only: bool = True
    verify: bool = True

    def __post_init__(self):
        object.__setattr__(self, "focal_year", _as_labels(self.focal_year, "focal_year"))
        object.__setattr__(self, "focal_cohort", _as_labels(self.focal_cohort, "focal_cohort"))
        object.__setattr__(self, "selected_kin", parse_kin(self.selected_kin))
        self.validate()

    def validate(self) -> None:
        if self.focal_year is not None and self.focal_cohort is not None:
            raise ConfigurationError("Pass either focal_year or focal_cohort, not both")
        if not self.stable and self.focal_year is None and self.focal_cohort is None:
            raise ConfigurationError(
                "Time-varying runs need focal_year or focal_cohort"
            )
        if not 0.0 < self.birth_female_fraction <= 1.0:
            raise ConfigurationError(
                f"birth_female_fraction must be in (0, 1], got {self.birth_female_fraction}"
            )

    @property
    def mode(self) -> ComputationMode:
        return ComputationMode.STABLE if self.stable else ComputationMode.TIME_VARYING

    @property
    def time_unit(self) -> str:
        return "cohort" if self.focal_cohort is not None else "year"

    @property
    def labels(self) -> Tuple[Optional[int], ...]:
        """Requested years or cohorts; (None,) for an unlabeled stable run."""
        if self.focal_cohort is not None:
            return self.focal_cohort
        if self.focal_year is not None:
            return self.focal_year
        return (None,)

    @property
    def kin(self) -> Tuple[KinType, ...]:
        selected: FrozenSet[KinType] = self.selected_kin
        return tuple(k for k in KIN_ORDER if k in selected)


# =============================================================================
# ENTRY POINTS
# =============================================================================

def run_kinship(
    config: KinshipConfig,
    survival: ScheduleLike,
    fertility: ScheduleLike,
    population: Optional[ScheduleLike] = None,
    birth_distribution: Optional[ScheduleLike] = None,
) -> KinshipResult:
    """
    Run a kinship computation with a prepared configuration.

    See ``compute_kinship`` for the meaning of the schedules.
    """
    provider = RateProvider(
        survival,
        fertility,
        birth_distribution=birth_distribution,
        population=population,
        mode=config.mode,
        birth_female_fraction=config.birth_female_fraction,
    )
    labels = config.labels
    if labels != (None,):
        provider.check_years(labels, config.time_unit)

    logger.info(
        f"Computing kinship: mode={config.mode.value}, ages=0..{provider.omega}, "
        f"{config.time_unit}s={list(labels)}, kin={len(config.kin)}"
    )

    controller = make_controller(provider, config.selected_kin)
    blocks = controller.run(labels, config.time_unit)

    include_dead = not config.living_only
    full = pd.concat([b.to_frame(include_dead) for b in blocks], ignore_index=True)
    summary = summarize(full, config.time_unit, living_only=config.living_only)
    if config.verify:
        verify_summary(full, summary)

    logger.success(
        f"Kinship complete: {len(full)} rows, {len(summary)} summary rows, "
        f"{provider.n_built} rate years built"
    )
    return KinshipResult(
        full=full,
        summary=summary,
        mode=config.mode,
        time_unit=config.time_unit,
        labels=labels,
        kin=config.kin,
    )


def compute_kinship(
    survival: ScheduleLike,
    fertility: ScheduleLike,
    population: Optional[ScheduleLike] = None,
    birth_distribution: Optional[ScheduleLike] = None,
    *,
    stable: bool = True,
    focal_year: YearSelector = None,
    focal_cohort: YearSelector = None,
    birth_female_fraction: float = 0.5,
    selected_kin: Optional[Iterable[Union[KinType, str]]] = None,
    living_only: bool = True,
    verify: bool = True,
) -> KinshipResult:
    """
    Expected numbers of living (and dead) kin of Focal at every age.

    Parameters
    ----------
    survival : ScheduleLike
        Survival probabilities, ages 0..omega as rows, years as columns
        (AgeRateSchedule, ndarray, DataFrame or Series).
    fertility : ScheduleLike
        Age-specific fertility rates, same layout as survival.
    population : ScheduleLike, optional
        Female population by age and year. In time-varying mode, used to
        derive the mother's age distribution when ``birth_distribution`` is
        not given.
    birth_distribution : ScheduleLike, optional
        Distribution of mothers' ages at childbirth (pi).
    stable : bool
        Stable (time-invariant) or time-varying rates.
    focal_year, focal_cohort : int or sequence of int, optional
        Period or cohort to report. Mutually exclusive. In stable mode each
        label selects its own reference column.
    birth_female_fraction : float
        Share of births that are female.
    selected_kin : iterable, optional
        Kin codes to report; None means all 14.
    living_only : bool
        If False, add deaths (``dead`` in full, death counts in summary).
    verify : bool
        Check that the summary matches the full table exactly.

    Returns
    -------
    KinshipResult
        ``full`` and ``summary`` tables plus run metadata.

    Raises
    ------
    ConfigurationError
        Malformed or mismatched schedules, conflicting options.
    OutOfRangeYear
        A requested year or cohort is outside the schedules.
    InvalidKinCode
        Unknown entry in ``selected_kin``.

    Examples
    --------
    >>> result = compute_kinship(U, f, stable=True, selected_kin={"m"})
    >>> result.summary[["age_focal", "count_living", "mean_age"]].head()
    """
    config = KinshipConfig(
        stable=stable,
        focal_year=focal_year,
        focal_cohort=focal_cohort,
        birth_female_fraction=birth_female_fraction,
        selected_kin=selected_kin,
        living_only=living_only,
        verify=verify,
    )
    return run_kinship(
        config, survival, fertility, population=population, birth_distribution=birth_distribution
    )
