"""
summary.py - Aggregation of Kin Distributions
=============================================

Collapses the FullResultTable over kin age. For each (kin, year, cohort,
Focal age) the summary carries the expected number of living kin and the
count-weighted mean and standard deviation of their ages:

    count    = sum_x k(x)
    mean_age = sum_x x k(x) / count
    sd_age   = sqrt(sum_x x^2 k(x) / count - mean_age^2)

With deaths requested, the same moments over the dead block give
``count_dead``, ``mean_age_lost`` and ``sd_age_lost``. Mean and standard
deviation are undefined (NaN) when the count is zero.

The summary is a projection of the full table and must agree with it
exactly; ``verify_summary`` is the regression check that enforces this.
"""

from __future__ import annotations

from typing import Tuple

import numpy as np
import pandas as pd
from loguru import logger

from .deaths import accumulate_deaths
from .errors import ConsistencyError
from .types import SUMMARY_KEYS

DEATH_COLUMNS = ("count_dead", "count_cum_dead", "mean_age_lost", "sd_age_lost")


def weighted_age_moments(
    count: np.ndarray, age_sum: np.ndarray, age_sq_sum: np.ndarray
) -> Tuple[np.ndarray, np.ndarray]:
    """
    Mean and standard deviation from weighted first and second moments.

    Returns NaN where ``count`` is zero. Tiny negative variances from
    floating-point cancellation are clipped to zero.
    """
    count = np.asarray(count, dtype=float)
    with np.errstate(divide="ignore", invalid="ignore"):
        mean = np.where(count > 0, age_sum / count, np.nan)
        var = np.where(count > 0, age_sq_sum / count - mean ** 2, np.nan)
    return mean, np.sqrt(np.clip(var, 0.0, None))


def summarize(full: pd.DataFrame, time_unit: str = "year", living_only: bool = True) -> pd.DataFrame:
    """
    Build the SummaryResultTable from a FullResultTable.

    Parameters
    ----------
    full : pd.DataFrame
        Output of the kin recursions, one row per kin age.
    time_unit : str
        ``"year"`` or ``"cohort"``; the axis cumulative deaths run along.
    living_only : bool
        If False, add ``count_dead``, ``count_cum_dead``, ``mean_age_lost`` and
        ``sd_age_lost``.

    Returns
    -------
    pd.DataFrame
        One row per (kin, year, cohort, age_focal), in the order the groups
        first appear in ``full``.
    """
    age = full["age_kin"].to_numpy(dtype=float)
    living = full["living"].to_numpy()
    work = full[SUMMARY_KEYS].assign(
        living=living, _age=living * age, _age_sq=living * age ** 2
    )
    agg = (
        work.groupby(SUMMARY_KEYS, sort=False, dropna=False)
        .agg(count_living=("living", "sum"), _age=("_age", "sum"), _age_sq=("_age_sq", "sum"))
        .reset_index()
    )

    mean, sd = weighted_age_moments(
        agg["count_living"].to_numpy(), agg["_age"].to_numpy(), agg["_age_sq"].to_numpy()
    )
    summary = agg[SUMMARY_KEYS + ["count_living"]].assign(mean_age=mean, sd_age=sd)

    if not living_only:
        deaths = accumulate_deaths(full, time_unit)
        for column in DEATH_COLUMNS:
            summary[column] = deaths[column].to_numpy()

    logger.debug(f"Summarised {len(full)} rows into {len(summary)} groups")
    return summary


def verify_summary(full: pd.DataFrame, summary: pd.DataFrame) -> None:
    """
    Re-derive the summary counts from ``full`` and compare them exactly.

    Raises
    ------
    ConsistencyError
        If the group structure or any count differs.
    """
    expected = full.groupby(SUMMARY_KEYS, sort=False, dropna=False)["living"].sum()
    if len(expected) != len(summary):
        raise ConsistencyError(
            f"Summary has {len(summary)} groups, full table has {len(expected)}"
        )

    keys = expected.index.to_frame(index=False)
    for column in ("kin", "age_focal"):
        if not np.array_equal(keys[column].to_numpy(), summary[column].to_numpy()):
            raise ConsistencyError(f"Summary group order differs in column {column!r}")

    if not np.array_equal(expected.to_numpy(), summary["count_living"].to_numpy()):
        diff = np.abs(expected.to_numpy() - summary["count_living"].to_numpy()).max()
        raise ConsistencyError(f"count_living differs from the full table (max diff {diff:g})")

    if "dead" in full.columns and "count_dead" in summary.columns:
        dead = full.groupby(SUMMARY_KEYS, sort=False, dropna=False)["dead"].sum()
        if not np.array_equal(dead.to_numpy(), summary["count_dead"].to_numpy()):
            raise ConsistencyError("count_dead differs from the full table")
