"""
modes.py - Mode Controller: Stable vs Time-Varying Kinship

Two controllers share the recursion kernels in ``recursion.py``:

- StableController: one reference year per requested label, one pass over
  Focal's age with fixed rates. A requested year and a requested cohort give
  the same numbers; only the labels on the output differ.
- TimeVaryingController: Focal's age and the calendar year advance together.
  A cohort is a diagonal of the age x year grid, a period is a column. Cells
  are served by a KinGrid that sweeps only as far as the latest request.

Both return KinBlocks: the states of one kin type for one requested label,
which know how to flatten themselves into FullResultTable rows.
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import Dict, FrozenSet, List, Optional, Sequence, Union

import numpy as np
import pandas as pd
from loguru import logger

from .deaths import split_state
from .grid import KinGrid
from .network import KIN_ORDER
from .rates import RateProvider
from .recursion import KinStates, project_stable
from .types import ComputationMode, KinType


# =============================================================================
# RESULT BLOCKS
# =============================================================================

@dataclass(frozen=True)
class KinBlock:
    """
    States of one kin type along one requested year or cohort.

    Parameters
    ----------
    kin : KinType
        Kin type.
    age_focal : np.ndarray
        Focal ages covered, shape (m,).
    year, cohort : np.ndarray or None
        Calendar year and Focal's birth cohort for each Focal age, shape
        (m,). None for an unlabeled stable run.
    states : np.ndarray
        [living; dead] state vectors, shape (2n, m).
    """
    kin: KinType
    age_focal: np.ndarray
    year: Optional[np.ndarray]
    cohort: Optional[np.ndarray]
    states: np.ndarray

    @property
    def n_ages(self) -> int:
        return self.states.shape[0] // 2

    def to_frame(self, include_dead: bool = False) -> pd.DataFrame:
        """Flatten into FullResultTable rows: Focal age major, kin age minor."""
        n, m = self.n_ages, len(self.age_focal)
        living, dead = split_state(self.states)

        frame = pd.DataFrame({
            "kin": np.full(n * m, self.kin.value, dtype=object),
            "year": _label_column(self.year, n, m),
            "cohort": _label_column(self.cohort, n, m),
            "age_focal": np.repeat(self.age_focal, n),
            "age_kin": np.tile(np.arange(n), m),
            "living": living.T.ravel(),
        })
        if include_dead:
            frame["dead"] = dead.T.ravel()
        return frame


def _label_column(values: Optional[np.ndarray], n: int, m: int) -> pd.arrays.IntegerArray:
    if values is None:
        return pd.array([pd.NA] * (n * m), dtype="Int64")
    return pd.array(np.repeat(values, n), dtype="Int64")


def _labels_for(label: Optional[int], ages: np.ndarray, time_unit: str):
    """(year, cohort) arrays for a period or cohort label."""
    if label is None:
        return None, None
    if time_unit == "cohort":
        return label + ages, np.full(ages.shape, label)
    return np.full(ages.shape, label), label - ages


# =============================================================================
# CONTROLLERS
# =============================================================================

class StableController:
    """
    Stable-population kinship, one reference year per label.

    Parameters
    ----------
    provider : RateProvider
        Rates in stable mode.
    selected : frozenset of KinType
        Kin types to output.

    Examples
    --------
    >>> controller = StableController(provider, frozenset({KinType.MOTHER}))
    >>> blocks = controller.run([2000, 2010], time_unit="year")
    """

    def __init__(self, provider: RateProvider, selected: FrozenSet[KinType]):
        self.provider = provider
        self.selected = [k for k in KIN_ORDER if k in selected]
        self._projections: Dict[Optional[int], KinStates] = {}

    def reference_year(self, label: Optional[int]) -> Optional[int]:
        """The rate column a label reads from."""
        if label is None:
            return self.provider.default_reference()
        labeled = self.provider.survival.is_labeled or self.provider.fertility.is_labeled
        return label if labeled else None

    def projection(self, reference: Optional[int]) -> KinStates:
        if reference not in self._projections:
            logger.info(
                f"Stable projection with {'constant' if reference is None else reference} rates"
            )
            self._projections[reference] = project_stable(
                self.provider.operators(reference), self.selected
            )
        return self._projections[reference]

    def run(self, labels: Sequence[Optional[int]], time_unit: str = "year") -> List[KinBlock]:
        references = [self.reference_year(label) for label in labels]
        ages = np.arange(self.provider.n_ages)

        blocks = []
        for label, reference in zip(labels, references):
            states = self.projection(reference)
            year, cohort = _labels_for(label, ages, time_unit)
            for kin in self.selected:
                blocks.append(KinBlock(kin, ages, year, cohort, states[kin]))
        return blocks


class TimeVaryingController:
    """
    Time-varying kinship along requested cohorts or calendar years.

    Parameters
    ----------
    provider : RateProvider
        Rates in time-varying mode.
    selected : frozenset of KinType
        Kin types to output.

    Examples
    --------
    >>> controller = TimeVaryingController(provider, frozenset(KinType))
    >>> blocks = controller.run([1960], time_unit="cohort")
    """

    def __init__(self, provider: RateProvider, selected: FrozenSet[KinType]):
        self.provider = provider
        self.selected = [k for k in KIN_ORDER if k in selected]
        self.grid = KinGrid(provider, self.selected)

    def _cells(self, label: int, time_unit: str):
        """(ages, [(age, year), ...]) for one cohort diagonal or period column."""
        if time_unit == "cohort":
            top = min(self.provider.omega, self.provider.last_year - label)
            ages = np.arange(top + 1)
            return ages, [(int(a), label + int(a)) for a in ages]
        ages = np.arange(self.provider.n_ages)
        return ages, [(int(a), label) for a in ages]

    def run(self, labels: Sequence[int], time_unit: str = "year") -> List[KinBlock]:
        for label in labels:
            if time_unit == "cohort":
                self.grid.pin(self.grid.cohort_cells(label))
            else:
                self.grid.pin(self.grid.period_cells(label))

        until = max(labels) if time_unit == "year" else self._last_needed(labels)
        logger.info(
            f"Time-varying sweep {self.provider.first_year}..{until} "
            f"for {len(self.selected)} kin types"
        )
        self.grid.sweep(until=until)

        blocks = []
        for label in labels:
            ages, cells = self._cells(label, time_unit)
            year, cohort = _labels_for(label, ages, time_unit)
            for kin in self.selected:
                blocks.append(KinBlock(kin, ages, year, cohort, self.grid.block(kin, cells)))
        return blocks

    def _last_needed(self, cohorts: Sequence[int]) -> int:
        return min(self.provider.last_year, max(cohorts) + self.provider.omega)


Controller = Union[StableController, TimeVaryingController]


def make_controller(provider: RateProvider, selected: FrozenSet[KinType]) -> Controller:
    """Pick the controller matching the provider's mode."""
    if provider.mode == ComputationMode.TIME_VARYING:
        return TimeVaryingController(provider, selected)
    return StableController(provider, selected)
