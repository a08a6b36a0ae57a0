"""
grid.py - Lazy Age x Year Grid for Time-Varying Kinship
=======================================================

In the time-varying model, the kin of a Focal of age a in year t depend on
the kin of a Focal of age a-1 in year t-1 (same cohort, one step earlier)
and, at age 0, on every age of the previous year. The whole grid therefore
only ever needs to be swept forward one calendar year at a time.

KinGrid keeps two things:

- a working slab: the state matrices of every needed kin type for the one
  calendar year the sweep has reached (the frontier);
- a memo cache keyed by (kin type, Focal age, year) holding only the cells
  a caller asked for (pinned cells).

Sweeping is an explicit loop, never recursion. Rates are built only for the
years the sweep crosses, and the sweep stops at the latest pinned year, so a
request for early cohorts never touches late years. Slabs are discarded as
soon as the sweep moves past them.

Example Usage:
-------------
    >>> grid = KinGrid(provider, {KinType.MOTHER, KinType.DAUGHTER})
    >>> grid.pin(grid.cohort_cells(1960))
    >>> grid.sweep()
    >>> grid.get(KinType.MOTHER, 30, 1990)[:5]
"""

from __future__ import annotations

from typing import Dict, Iterable, List, Optional, Set, Tuple

import numpy as np
from loguru import logger

from .errors import ConfigurationError, OutOfRangeYear
from .network import evaluation_order
from .rates import RateProvider
from .recursion import KinStates, advance_year, project_stable
from .types import ComputationMode, KinType

Cell = Tuple[KinType, int, int]


class KinGrid:
    """
    Memoising (kin, age, year) cache over a forward year sweep.

    Parameters
    ----------
    provider : RateProvider
        Time-varying rates. The first schedule year is the base year,
        computed under stability with its own rates.
    kins : iterable of KinType
        Kin types that may be requested. Their dependencies are swept too.

    Examples
    --------
    >>> grid = KinGrid(provider, [KinType.GRANDMOTHER])
    >>> grid.get(KinType.GRANDMOTHER, 0, 1975).sum()  # pins, sweeps, returns

    Notes
    -----
    Asking for a cell in a year the sweep has already passed, without having
    pinned it first, restarts the sweep from the base year.
    """

    def __init__(self, provider: RateProvider, kins: Iterable[KinType]):
        if provider.mode != ComputationMode.TIME_VARYING:
            raise ConfigurationError("KinGrid needs a time-varying RateProvider")
        self.provider = provider
        self.requested = frozenset(kins)
        self.kins = evaluation_order(self.requested)
        self._cache: Dict[Cell, np.ndarray] = {}
        # year -> (kin, age) pairs to keep when the sweep reaches that year
        self._pinned: Dict[int, Set[Tuple[KinType, int]]] = {}
        self._slab: Optional[KinStates] = None
        self._slab_year: Optional[int] = None
        self.years_swept = 0

    @property
    def first_year(self) -> int:
        return self.provider.first_year

    @property
    def last_year(self) -> int:
        return self.provider.last_year

    @property
    def omega(self) -> int:
        return self.provider.omega

    @property
    def frontier_year(self) -> Optional[int]:
        """The calendar year currently held in the working slab."""
        return self._slab_year

    @property
    def n_cached(self) -> int:
        return len(self._cache)

    def cached_cells(self) -> List[Cell]:
        return sorted(self._cache, key=lambda c: (c[2], c[1], c[0].value))

    # -------------------------------------------------------------------------
    # Requests
    # -------------------------------------------------------------------------

    def cohort_cells(self, cohort: int, kins: Optional[Iterable[KinType]] = None) -> List[Cell]:
        """Cells on the diagonal of one birth cohort, up to the last year."""
        self._check_year(cohort, "cohort")
        top = min(self.omega, self.last_year - cohort)
        kins = self.requested if kins is None else kins
        return [(k, a, cohort + a) for k in kins for a in range(top + 1)]

    def period_cells(self, year: int, kins: Optional[Iterable[KinType]] = None) -> List[Cell]:
        """Cells of every Focal age in one calendar year."""
        self._check_year(year, "year")
        kins = self.requested if kins is None else kins
        return [(k, a, year) for k in kins for a in range(self.omega + 1)]

    def pin(self, cells: Iterable[Cell]) -> None:
        """Mark cells to be kept when the sweep passes their year."""
        for kin, age, year in cells:
            if kin not in self.kins:
                raise ConfigurationError(f"Kin type {kin.value!r} is not part of this grid")
            self._check_year(year, "year")
            if not 0 <= age <= self.omega:
                raise ConfigurationError(f"Focal age {age} is outside 0..{self.omega}")
            cell = (kin, int(age), int(year))
            self._pinned.setdefault(cell[2], set()).add((kin, cell[1]))
            if self._slab_year == cell[2] and cell not in self._cache:
                self._cache[cell] = self._slab[kin][:, cell[1]].copy()

    def get(self, kin: KinType, age: int, year: int) -> np.ndarray:
        """
        State vector [living; dead] of one kin type for a Focal of ``age``
        in ``year``.
        """
        cell = (kin, int(age), int(year))
        if cell in self._cache:
            return self._cache[cell]

        if self._slab_year is not None and year < self._slab_year:
            logger.debug(f"Cell {cell[0].value, cell[1], cell[2]} already swept; restarting")
            self._reset()
        self.pin([cell])
        self.sweep(until=year)
        return self._cache[cell]

    def block(self, kin: KinType, cells: Iterable[Tuple[int, int]]) -> np.ndarray:
        """Stack cached states of ``kin`` for (age, year) pairs into (2n, m)."""
        return np.column_stack([self.get(kin, a, y) for a, y in cells])

    # -------------------------------------------------------------------------
    # Sweep
    # -------------------------------------------------------------------------

    def sweep(self, until: Optional[int] = None) -> None:
        """
        Advance the working slab year by year until ``until`` (default: the
        latest pinned year), storing pinned cells on the way.
        """
        if until is None:
            if not self._pinned:
                return
            until = max(self._pinned)
        self._check_year(until, "year")

        if self._slab is None:
            base = self.first_year
            logger.debug(f"Base year {base}: stable projection with {base} rates")
            self._slab = project_stable(self.provider.operators(base), self.kins)
            self._slab_year = base
            self._store()

        while self._slab_year < until:
            ops = self.provider.operators(self._slab_year)
            self._slab = advance_year(self._slab, ops, self.kins)
            self._slab_year += 1
            self.years_swept += 1
            self._store()

    def _store(self) -> None:
        year = self._slab_year
        kept = 0
        for kin, age in self._pinned.get(year, ()):
            if (kin, age, year) not in self._cache:
                self._cache[(kin, age, year)] = self._slab[kin][:, age].copy()
                kept += 1
        logger.debug(f"Swept year {year}: kept {kept} cells, cache holds {len(self._cache)}")

    def _reset(self) -> None:
        self._slab = None
        self._slab_year = None

    def _check_year(self, year: int, what: str) -> None:
        if not self.first_year <= year <= self.last_year:
            raise OutOfRangeYear(year, self.first_year, self.last_year, what)
