"""
types.py - Core Data Structures and Type Definitions for matkin

This module defines the fundamental data structures used throughout matkin:
- KinType / KinSpec: The 14 kin categories and how each one is generated
- AgeRateSchedule: An age-by-year table of vital rates
- KinshipResult: The full and summary tables returned by a computation

Design Principles:
-----------------
1. Immutability where practical (frozen dataclasses for value objects)
2. Validation at construction time (fail-fast)
3. Ages are always 0..omega, with omega the open terminal age class
4. Numpy-style docstrings throughout

Example Usage:
-------------
    >>> import numpy as np
    >>> from matkin.types import AgeRateSchedule, KinType
    >>>
    >>> # Constant survival of 0.99 up to age 100
    >>> U = AgeRateSchedule(np.full(101, 0.99), name="survival")
    >>> print(f"Schedule: {U.n_ages} ages, omega={U.omega}")
    Schedule: 101 ages, omega=100
    >>> KinType("gm").label
    'grandmother'
"""

from __future__ import annotations

import numpy as np
import pandas as pd
from dataclasses import dataclass, field
from typing import Dict, Optional, Tuple, Union, Any
from enum import Enum

from .errors import ConfigurationError


# =============================================================================
# TYPE ALIASES
# =============================================================================

# Anything that can be coerced into an AgeRateSchedule.
ScheduleLike = Union["AgeRateSchedule", np.ndarray, pd.DataFrame, pd.Series]

# Focal herself drives the daughter recursion. She is not a kin type.
FOCAL = "focal"


# =============================================================================
# KIN TYPES
# =============================================================================

class KinType(str, Enum):
    """
    The 14 kin categories of the one-sex (female) kinship model.

    Values are the canonical short codes used in the output tables.
    """
    DAUGHTER = "d"
    GRANDDAUGHTER = "gd"
    GREAT_GRANDDAUGHTER = "ggd"
    MOTHER = "m"
    GRANDMOTHER = "gm"
    GREAT_GRANDMOTHER = "ggm"
    OLDER_SISTER = "os"
    YOUNGER_SISTER = "ys"
    NIECE_OLDER_SISTER = "nos"
    NIECE_YOUNGER_SISTER = "nys"
    AUNT_OLDER = "oa"
    AUNT_YOUNGER = "ya"
    COUSIN_OLDER_AUNT = "coa"
    COUSIN_YOUNGER_AUNT = "cya"

    @property
    def spec(self) -> "KinSpec":
        return KIN_SPECS[self]

    @property
    def label(self) -> str:
        return KIN_SPECS[self].label


class Lineage(str, Enum):
    """Which side of the family a kin type sits on, relative to Focal."""
    DESCENDANT = "descendant"
    ASCENDANT = "ascendant"
    COLLATERAL = "collateral"


@dataclass(frozen=True)
class KinSpec:
    """
    How one kin type is generated.

    Parameters
    ----------
    kin : KinType
        The kin type described.
    label : str
        Human-readable name.
    generation : int
        Generational distance from Focal. Positive for ascendants
        (mother = 1), negative for descendants (daughter = -1).
    lineage : Lineage
        Descendant, ascendant or collateral.
    driver : KinType or "focal" or None
        The relative whose fertility produces new members of this kin type
        while Focal ages. None if no new members appear after Focal's birth.
    initial_parent : KinType or None
        The kin type of Focal's *mother* whose distribution, weighted by the
        age of the mother at Focal's birth, gives the count at Focal age 0.
        None with ``starts_from_pi=False`` means the count starts at zero.
    starts_from_pi : bool
        True only for the mother, whose age at Focal's birth is pi itself.

    Examples
    --------
    >>> spec = KinType.YOUNGER_SISTER.spec
    >>> spec.driver
    <KinType.MOTHER: 'm'>
    """
    kin: KinType
    label: str
    generation: int
    lineage: Lineage
    driver: Optional[Union[KinType, str]] = None
    initial_parent: Optional[KinType] = None
    starts_from_pi: bool = False

    @property
    def depends_on(self) -> Tuple[KinType, ...]:
        """Kin types that must be computed before this one."""
        deps = []
        if isinstance(self.driver, KinType):
            deps.append(self.driver)
        if self.initial_parent is not None and self.initial_parent not in deps:
            deps.append(self.initial_parent)
        return tuple(deps)


def _spec(kin, label, generation, lineage, driver=None, parent=None, from_pi=False):
    return KinSpec(kin, label, generation, lineage, driver, parent, from_pi)


_K = KinType
_D, _A, _C = Lineage.DESCENDANT, Lineage.ASCENDANT, Lineage.COLLATERAL

KIN_SPECS: Dict[KinType, KinSpec] = {
    s.kin: s for s in (
        _spec(_K.DAUGHTER, "daughter", -1, _D, driver=FOCAL),
        _spec(_K.GRANDDAUGHTER, "grand-daughter", -2, _D, driver=_K.DAUGHTER),
        _spec(_K.GREAT_GRANDDAUGHTER, "great-grand-daughter", -3, _D,
              driver=_K.GRANDDAUGHTER),
        _spec(_K.MOTHER, "mother", 1, _A, from_pi=True),
        _spec(_K.GRANDMOTHER, "grandmother", 2, _A, parent=_K.MOTHER),
        _spec(_K.GREAT_GRANDMOTHER, "great-grandmother", 3, _A,
              parent=_K.GRANDMOTHER),
        _spec(_K.OLDER_SISTER, "older sister", 0, _C, parent=_K.DAUGHTER),
        _spec(_K.YOUNGER_SISTER, "younger sister", 0, _C, driver=_K.MOTHER),
        _spec(_K.NIECE_OLDER_SISTER, "niece via older sister", -1, _C,
              driver=_K.OLDER_SISTER, parent=_K.GRANDDAUGHTER),
        _spec(_K.NIECE_YOUNGER_SISTER, "niece via younger sister", -1, _C,
              driver=_K.YOUNGER_SISTER),
        _spec(_K.AUNT_OLDER, "aunt older than mother", 1, _C,
              parent=_K.OLDER_SISTER),
        _spec(_K.AUNT_YOUNGER, "aunt younger than mother", 1, _C,
              driver=_K.GRANDMOTHER, parent=_K.YOUNGER_SISTER),
        _spec(_K.COUSIN_OLDER_AUNT, "cousin via older aunt", 0, _C,
              driver=_K.AUNT_OLDER, parent=_K.NIECE_OLDER_SISTER),
        _spec(_K.COUSIN_YOUNGER_AUNT, "cousin via younger aunt", 0, _C,
              driver=_K.AUNT_YOUNGER, parent=_K.NIECE_YOUNGER_SISTER),
    )
}


# =============================================================================
# COMPUTATION MODE
# =============================================================================

class ComputationMode(str, Enum):
    """
    How rates are consumed by the recursion.

    STABLE: One reference year's rates, iterated over Focal's age only.
    TIME_VARYING: Rates change by calendar year; age and year advance together.
    """
    STABLE = "stable"
    TIME_VARYING = "time_varying"


# =============================================================================
# RATE SCHEDULES
# =============================================================================

@dataclass(frozen=True)
class AgeRateSchedule:
    """
    Age-by-year table of one vital rate.

    Rows are ages 0..omega (the last row is the open terminal age class),
    columns are calendar years.

    Parameters
    ----------
    values : np.ndarray
        Rate values with shape (n_ages, n_years). A 1D array is read as a
        single (unlabeled) column.
    years : tuple of int, optional
        Year label of each column. May be omitted only for single-column
        schedules, which then serve as a constant schedule for any year.
    name : str
        Role of the schedule ("survival", "fertility", ...), used in messages.

    Examples
    --------
    >>> U = AgeRateSchedule(
    ...     np.array([[0.9, 0.95], [0.5, 0.6]]), years=(2000, 2001), name="survival"
    ... )
    >>> U.column(2001)
    array([0.95, 0.6 ])

    Notes
    -----
    Values are copied and made read-only on construction. Role-specific
    bounds (survival must not exceed 1) are checked by the RateProvider.
    """
    values: np.ndarray
    years: Optional[Tuple[int, ...]] = None
    name: str = "rate"

    def __post_init__(self):
        """Normalise the array and validate on construction."""
        values = np.array(self.values, dtype=float)
        if values.ndim == 1:
            values = values.reshape(-1, 1)
        values.setflags(write=False)
        object.__setattr__(self, "values", values)

        if self.years is not None:
            try:
                years = tuple(int(y) for y in self.years)
            except (TypeError, ValueError):
                raise ConfigurationError(
                    f"{self.name} year labels must be integers, got {list(self.years)}"
                ) from None
            object.__setattr__(self, "years", years)

        self.validate()

    @property
    def n_ages(self) -> int:
        """Number of age classes (omega + 1)."""
        return self.values.shape[0]

    @property
    def omega(self) -> int:
        """Terminal (open) age class."""
        return self.n_ages - 1

    @property
    def ages(self) -> np.ndarray:
        return np.arange(self.n_ages)

    @property
    def n_years(self) -> int:
        return self.values.shape[1]

    @property
    def is_labeled(self) -> bool:
        return self.years is not None

    @property
    def first_year(self) -> Optional[int]:
        return self.years[0] if self.is_labeled else None

    @property
    def last_year(self) -> Optional[int]:
        return self.years[-1] if self.is_labeled else None

    @property
    def is_contiguous(self) -> bool:
        """True if the year labels are consecutive integers."""
        if not self.is_labeled:
            return True
        return all(b - a == 1 for a, b in zip(self.years, self.years[1:]))

    def validate(self) -> None:
        """
        Validate internal consistency of the schedule.

        Raises
        ------
        ConfigurationError
            If the array is not 2D, empty, non-finite or negative, or if the
            year labels do not match the columns.
        """
        if self.values.ndim != 2:
            raise ConfigurationError(
                f"{self.name} must be 1D or 2D, got shape {self.values.shape}"
            )

        n_ages, n_years = self.values.shape
        if n_ages == 0 or n_years == 0:
            raise ConfigurationError(
                f"{self.name} must have positive dimensions, got ({n_ages}, {n_years})"
            )

        if not np.all(np.isfinite(self.values)):
            raise ConfigurationError(f"{self.name} contains NaN or infinite values")

        if np.any(self.values < 0):
            raise ConfigurationError(f"{self.name} contains negative values")

        if self.years is None:
            if n_years > 1:
                raise ConfigurationError(
                    f"{self.name} has {n_years} columns but no year labels; "
                    "pass a DataFrame with year columns or set `years`"
                )
            return

        if len(self.years) != n_years:
            raise ConfigurationError(
                f"{self.name} year labels mismatch: {len(self.years)} labels "
                f"for {n_years} columns"
            )
        if len(set(self.years)) != n_years:
            raise ConfigurationError(f"{self.name} has duplicate year labels")
        if list(self.years) != sorted(self.years):
            raise ConfigurationError(f"{self.name} year labels must be increasing")

    def has_year(self, year: int) -> bool:
        return not self.is_labeled or int(year) in self.years

    def column(self, year: Optional[int] = None) -> np.ndarray:
        """
        Rates of one calendar year.

        Parameters
        ----------
        year : int, optional
            Year label. May be None for single-column schedules.

        Returns
        -------
        np.ndarray
            Read-only vector of length n_ages.

        Raises
        ------
        ConfigurationError
            If the year is not a column of this schedule.
        """
        if not self.is_labeled:
            return self.values[:, 0]
        if year is None:
            if self.n_years == 1:
                return self.values[:, 0]
            raise ConfigurationError(
                f"{self.name} has {self.n_years} years; a year must be selected"
            )
        try:
            idx = self.years.index(int(year))
        except ValueError:
            raise ConfigurationError(
                f"Year {year} is not a column of {self.name}"
            ) from None
        return self.values[:, idx]

    def to_frame(self) -> pd.DataFrame:
        """Wide DataFrame with ages as index and years as columns."""
        columns = list(self.years) if self.is_labeled else [self.name]
        frame = pd.DataFrame(np.array(self.values), index=self.ages, columns=columns)
        frame.index.name = "age"
        return frame

    # -------------------------------------------------------------------------
    # Constructors
    # -------------------------------------------------------------------------

    @classmethod
    def from_frame(cls, frame: pd.DataFrame, name: str = "rate") -> "AgeRateSchedule":
        """
        Build a schedule from a wide DataFrame (ages as index, years as columns).

        An ``age`` column, if present, is used as the index.
        """
        if "age" in frame.columns:
            frame = frame.set_index("age")
        frame = frame.sort_index()
        _check_age_index(frame.index, name)

        try:
            years = [int(c) for c in frame.columns]
        except (TypeError, ValueError):
            raise ConfigurationError(
                f"{name} columns must be year labels, got {list(frame.columns)}"
            ) from None
        order = np.argsort(years)
        values = frame.to_numpy(dtype=float)[:, order]
        return cls(values=values, years=tuple(np.asarray(years)[order]), name=name)

    @classmethod
    def from_series(cls, series: pd.Series, name: str = "rate") -> "AgeRateSchedule":
        """Build a single unlabeled column from a Series indexed by age."""
        series = series.sort_index()
        _check_age_index(series.index, name)
        return cls(values=series.to_numpy(dtype=float), years=None, name=name)

    @classmethod
    def from_long(
        cls,
        frame: pd.DataFrame,
        value: str,
        age: str = "age",
        year: str = "year",
        name: Optional[str] = None,
    ) -> "AgeRateSchedule":
        """
        Build a schedule from long format (one row per age and year).

        Parameters
        ----------
        frame : pd.DataFrame
            Long table with age, year and value columns.
        value : str
            Column holding the rate.
        age, year : str
            Names of the age and year columns.
        """
        name = name or value
        missing = {age, year, value} - set(frame.columns)
        if missing:
            raise ConfigurationError(f"{name} frame is missing columns: {sorted(missing)}")
        if frame.duplicated([age, year]).any():
            raise ConfigurationError(f"{name} frame has duplicate (age, year) rows")

        wide = frame.pivot(index=age, columns=year, values=value)
        if wide.isna().any().any():
            raise ConfigurationError(f"{name} frame has missing (age, year) cells")
        return cls.from_frame(wide, name=name)

    @classmethod
    def coerce(cls, obj: Any, name: str = "rate") -> "AgeRateSchedule":
        """Accept an AgeRateSchedule, ndarray, DataFrame or Series."""
        if isinstance(obj, AgeRateSchedule):
            if obj.name == name:
                return obj
            return cls(values=obj.values, years=obj.years, name=name)
        if isinstance(obj, pd.DataFrame):
            return cls.from_frame(obj, name=name)
        if isinstance(obj, pd.Series):
            return cls.from_series(obj, name=name)
        return cls(values=np.asarray(obj, dtype=float), name=name)


def _check_age_index(index: pd.Index, name: str) -> None:
    """Ages must be the integers 0..omega with no gaps."""
    try:
        ages = np.asarray(index, dtype=float)
    except (TypeError, ValueError):
        raise ConfigurationError(f"{name} ages must be numeric") from None
    if len(ages) == 0 or not np.array_equal(ages, np.arange(len(ages))):
        raise ConfigurationError(
            f"{name} ages must be contiguous integers starting at 0"
        )


# =============================================================================
# RESULT TYPES
# =============================================================================

# One summary row per combination of these FullResultTable columns.
SUMMARY_KEYS = ["kin", "year", "cohort", "age_focal"]

@dataclass(frozen=True)
class KinshipResult:
    """
    Result container for one kinship computation.

    Parameters
    ----------
    full : pd.DataFrame
        One row per (kin, year, cohort, age_focal, age_kin) with expected
        ``living`` (and ``dead``) counts.
    summary : pd.DataFrame
        One row per (kin, year, cohort, age_focal): counts, mean and standard
        deviation of kin age (and death counts).
    mode : ComputationMode
        Stable or time-varying.
    time_unit : str
        ``"year"`` for period output, ``"cohort"`` for cohort output.
    labels : tuple
        The requested years or cohorts (None for an unlabeled stable run).
    kin : tuple of KinType
        Kin types present in the tables.

    Examples
    --------
    >>> result = compute_kinship(U, f, stable=True)
    >>> result.summary.query("kin == 'm' and age_focal == 30")
    >>> full, summary = result["full"], result["summary"]
    """
    full: pd.DataFrame
    summary: pd.DataFrame
    mode: ComputationMode
    time_unit: str
    labels: Tuple[Optional[int], ...] = ()
    kin: Tuple[KinType, ...] = field(default_factory=tuple)

    @property
    def includes_deaths(self) -> bool:
        return "dead" in self.full.columns

    def as_dict(self) -> Dict[str, pd.DataFrame]:
        return {"full": self.full, "summary": self.summary}

    def __getitem__(self, key: str) -> pd.DataFrame:
        return self.as_dict()[key]

    def for_kin(self, kin: Union[KinType, str]) -> pd.DataFrame:
        """Summary rows of one kin type."""
        code = KinType(kin).value
        return self.summary[self.summary["kin"] == code]

    def __repr__(self) -> str:
        return (
            f"KinshipResult(mode={self.mode.value}, {self.time_unit}s={list(self.labels)}, "
            f"kin={[k.value for k in self.kin]}, rows={len(self.full)})"
        )
