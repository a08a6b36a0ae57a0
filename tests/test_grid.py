"""
test_grid.py - Tests for the Lazy Age x Year Grid

Tests cover:
- Sweep stops at the latest pinned year (rates built lazily)
- Memo cache holds only pinned cells
- Cohort diagonals and period columns
- Restart when an unpinned past cell is requested
- Agreement with the stable projection under constant rates
"""

import pytest
import numpy as np

from matkin import (
    ComputationMode,
    ConfigurationError,
    KinType,
    OutOfRangeYear,
    RateProvider,
)
from matkin.grid import KinGrid
from matkin.recursion import project_stable

K = KinType


@pytest.fixture
def grid(time_varying_provider):
    return KinGrid(time_varying_provider, [K.MOTHER, K.DAUGHTER])


class TestLaziness:
    """The sweep only goes as far as needed."""

    def test_nothing_before_request(self, grid):
        assert grid.frontier_year is None
        assert grid.provider.n_built == 0
        grid.sweep()
        assert grid.frontier_year is None

    def test_sweep_stops_at_pinned_year(self, grid):
        grid.pin([(K.MOTHER, 3, 2003)])
        grid.sweep()
        assert grid.frontier_year == 2003
        assert grid.years_swept == 3
        assert grid.provider.n_built == 3
        assert grid.provider.last_year == 2015

    def test_get_sweeps_to_cell(self, grid):
        state = grid.get(K.DAUGHTER, 30, 2004)
        assert state.shape == (120,)
        assert grid.frontier_year == 2004

    def test_only_pinned_cells_cached(self, grid):
        grid.pin(grid.cohort_cells(2010, [K.MOTHER]))
        grid.sweep()
        assert grid.n_cached == 6
        assert all(kin == K.MOTHER for kin, _, _ in grid.cached_cells())
        assert [year - age for _, age, year in grid.cached_cells()] == [2010] * 6

    def test_dependencies_swept_but_not_cached(self, time_varying_provider):
        grid = KinGrid(time_varying_provider, [K.YOUNGER_SISTER])
        assert grid.kins == (K.MOTHER, K.YOUNGER_SISTER)
        grid.get(K.YOUNGER_SISTER, 5, 2005)
        assert grid.n_cached == 1


class TestRequests:
    """Cohort and period requests."""

    def test_cohort_cells_truncated(self, grid):
        cells = grid.cohort_cells(2012, [K.MOTHER])
        assert [(a, y) for _, a, y in cells] == [(0, 2012), (1, 2013), (2, 2014), (3, 2015)]

    def test_period_cells(self, grid):
        cells = grid.period_cells(2005, [K.MOTHER])
        assert len(cells) == 60
        assert {y for _, _, y in cells} == {2005}

    def test_year_out_of_range(self, grid):
        with pytest.raises(OutOfRangeYear):
            grid.cohort_cells(1990)
        with pytest.raises(OutOfRangeYear):
            grid.get(K.MOTHER, 0, 2016)

    def test_pin_unknown_kin(self, grid):
        with pytest.raises(ConfigurationError, match="not part of this grid"):
            grid.pin([(K.GRANDMOTHER, 0, 2000)])

    def test_pin_bad_age(self, grid):
        with pytest.raises(ConfigurationError, match="outside"):
            grid.pin([(K.MOTHER, 60, 2000)])

    def test_restart_for_passed_year(self, grid):
        grid.get(K.MOTHER, 0, 2008)
        early = grid.get(K.MOTHER, 2, 2002)
        assert grid.frontier_year == 2002
        assert early.shape == (120,)

    def test_needs_time_varying_provider(self, stable_rates):
        provider = RateProvider(*stable_rates)
        with pytest.raises(ConfigurationError, match="time-varying"):
            KinGrid(provider, [K.MOTHER])


class TestValues:
    """Numbers served by the grid."""

    def test_base_year_is_stable_projection(self, grid, time_varying_provider):
        stable = project_stable(time_varying_provider.operators(2000), [K.MOTHER])
        for age in (0, 10, 40):
            np.testing.assert_allclose(grid.get(K.MOTHER, age, 2000), stable[K.MOTHER][:, age])

    def test_constant_rates_match_stable(self, constant_rates):
        provider = RateProvider(
            constant_rates["survival"], constant_rates["fertility"],
            birth_distribution=constant_rates["birth_distribution"],
            mode=ComputationMode.TIME_VARYING,
        )
        grid = KinGrid(provider, list(KinType))
        stable = project_stable(provider.operators(2000), list(KinType))
        for kin in (K.DAUGHTER, K.GRANDMOTHER, K.COUSIN_YOUNGER_AUNT):
            np.testing.assert_allclose(
                grid.get(kin, 25, 2010), stable[kin][:, 25], atol=1e-12, err_msg=kin.value
            )

    def test_mother_at_birth_uses_year_pi(self, grid, time_varying_provider):
        state = grid.get(K.MOTHER, 0, 2006)
        np.testing.assert_allclose(state[:60], time_varying_provider.operators(2005).pi)

    def test_non_negative(self, grid):
        grid.pin(grid.period_cells(2010))
        grid.sweep()
        for kin, age, year in grid.cached_cells():
            assert (grid.get(kin, age, year) >= 0).all()
