"""
conftest.py - Pytest Configuration and Shared Fixtures

This file contains fixtures used across all test modules. Fixtures are
organized by category:
- Tiny hand-checkable schedules (three ages)
- Synthetic stable and time-varying rates
- Providers and results built from them
"""

import pytest
import numpy as np
import pandas as pd

from matkin import (
    AgeRateSchedule,
    ComputationMode,
    RateProvider,
    SyntheticRates,
    compute_kinship,
)
from matkin.rates import stable_birth_distribution


# =============================================================================
# TINY SCHEDULES
# =============================================================================

@pytest.fixture
def tiny_survival():
    """
    Survival for ages 0, 1, 2 (omega = 2).

    s_2 is the probability of staying in the open terminal class.
    """
    return np.array([0.9, 0.8, 0.5])


@pytest.fixture
def tiny_fertility():
    """Fertility for ages 0, 1, 2, non-zero at every age."""
    return np.array([0.3, 0.6, 0.1])


@pytest.fixture
def tiny_pi():
    """A fixed distribution of the mother's age at childbirth."""
    return np.array([0.2, 0.5, 0.3])


# =============================================================================
# SYNTHETIC RATES
# =============================================================================

@pytest.fixture(scope="session")
def synthetic_rates():
    """
    Time-varying rates for 60 ages (omega = 59) over 2000-2015.

    Mortality improves and fertility falls, so every year differs.
    """
    return SyntheticRates(
        n_ages=60, start=2000, end=2015, tfr_start=2.5, tfr_end=1.5, improvement=0.02
    ).frames()


@pytest.fixture(scope="session")
def stable_rates():
    """A single unlabeled year of realistic rates (60 ages)."""
    frames = SyntheticRates(n_ages=60, start=2000, end=2000, tfr_start=2.0).frames()
    return frames["survival"][2000].to_numpy(), frames["fertility"][2000].to_numpy()


@pytest.fixture
def constant_rates(stable_rates):
    """
    The same stable rates repeated over 2000-2010 as labeled frames, with the
    stable pi for every year.
    """
    U, f = stable_rates
    years = list(range(2000, 2011))
    pi = stable_birth_distribution(U, f, 0.5)

    def repeat(column):
        return pd.DataFrame(np.tile(column[:, None], (1, len(years))), columns=years)

    return {"survival": repeat(U), "fertility": repeat(f), "birth_distribution": repeat(pi)}


# =============================================================================
# PROVIDERS AND RESULTS
# =============================================================================

@pytest.fixture
def time_varying_provider(synthetic_rates):
    """RateProvider over the synthetic time-varying rates, pi from N."""
    return RateProvider(
        synthetic_rates["survival"],
        synthetic_rates["fertility"],
        population=synthetic_rates["population"],
        mode=ComputationMode.TIME_VARYING,
    )


@pytest.fixture(scope="session")
def stable_result(stable_rates):
    """All 14 kin types under stable rates, with deaths."""
    U, f = stable_rates
    return compute_kinship(U, f, stable=True, living_only=False)


@pytest.fixture(scope="session")
def cohort_result(synthetic_rates):
    """All kin types for cohorts 2000 and 2005, time-varying, with deaths."""
    return compute_kinship(
        synthetic_rates["survival"],
        synthetic_rates["fertility"],
        population=synthetic_rates["population"],
        stable=False,
        focal_cohort=[2000, 2005],
        living_only=False,
    )


@pytest.fixture(scope="session")
def period_result(synthetic_rates):
    """All kin types for calendar year 2012, time-varying, with deaths."""
    return compute_kinship(
        synthetic_rates["survival"],
        synthetic_rates["fertility"],
        population=synthetic_rates["population"],
        stable=False,
        focal_year=2012,
        living_only=False,
    )


@pytest.fixture
def tiny_schedule(tiny_survival):
    """A labeled two-year schedule built from the tiny survival."""
    values = np.column_stack([tiny_survival, tiny_survival * 0.9])
    return AgeRateSchedule(values, years=(2000, 2001), name="survival")
