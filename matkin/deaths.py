"""
deaths.py - Mortality/Loss Accumulator

The lower block of every state vector holds the relatives who died during
the last one-year step, by the age they had when the step began. This
module reads that block back out and turns it into the experience of loss
from Focal's point of view: how many relatives of each type Focal loses at
each of her ages, and how many she has lost in total so far.
"""

from __future__ import annotations

from typing import Tuple

import numpy as np
import pandas as pd

from .types import SUMMARY_KEYS


def split_state(states: np.ndarray) -> Tuple[np.ndarray, np.ndarray]:
    """
    Split state vectors or matrices into (living, dead) halves.

    Parameters
    ----------
    states : np.ndarray
        Shape (2n,) or (2n, m).
    """
    n = states.shape[0] // 2
    return states[:n], states[n:]


def _running_sum(values: np.ndarray, codes: np.ndarray) -> np.ndarray:
    """np.cumsum of ``values`` within each group code, in row order."""
    out = np.empty_like(values)
    for code in np.unique(codes):
        rows = np.flatnonzero(codes == code)
        out[rows] = np.cumsum(values[rows])
    return out


def accumulate_deaths(full: pd.DataFrame, time_unit: str = "year") -> pd.DataFrame:
    """
    Deaths experienced by Focal, per kin type, time unit and Focal age.

    Parameters
    ----------
    full : pd.DataFrame
        FullResultTable with a ``dead`` column.
    time_unit : str
        ``"year"`` or ``"cohort"``: the column the running sum is taken
        within. For period output this follows the synthetic cohort of one
        calendar year; for cohort output it follows the real cohort.

    Returns
    -------
    pd.DataFrame
        SUMMARY_KEYS plus ``count_dead`` (deaths at that Focal age),
        ``count_cum_dead`` (running sum over Focal age), ``mean_age_lost``
        and ``sd_age_lost`` (mean and standard deviation of kin age at
        death, NaN when nobody died).
    """
    from .summary import weighted_age_moments

    if "dead" not in full.columns:
        raise KeyError("FullResultTable has no 'dead' column; run with living_only=False")

    age = full["age_kin"].to_numpy(dtype=float)
    dead = full["dead"].to_numpy()
    work = full[SUMMARY_KEYS].assign(dead=dead, _age=dead * age, _age_sq=dead * age ** 2)
    agg = (
        work.groupby(SUMMARY_KEYS, sort=False, dropna=False)
        .agg(count_dead=("dead", "sum"), _age=("_age", "sum"), _age_sq=("_age_sq", "sum"))
        .reset_index()
    )

    # groups must be walked in increasing Focal age for the running sum
    order = np.argsort(agg["age_focal"].to_numpy(), kind="stable")
    walked = agg.iloc[order]
    codes = walked.groupby(["kin", time_unit], sort=False, dropna=False).ngroup().to_numpy()
    cum = np.empty(len(agg))
    cum[order] = _running_sum(walked["count_dead"].to_numpy(dtype=float), codes)
    agg["count_cum_dead"] = cum

    mean, sd = weighted_age_moments(
        agg["count_dead"].to_numpy(), agg["_age"].to_numpy(), agg["_age_sq"].to_numpy()
    )
    agg["mean_age_lost"] = mean
    agg["sd_age_lost"] = sd
    return agg.drop(columns=["_age", "_age_sq"])


def lifetime_death_burden(summary: pd.DataFrame, time_unit: str = "year") -> pd.Series:
    """
    Total relatives lost by the oldest Focal age, summed over kin types.

    Returns a Series indexed by the time unit (year or cohort).
    """
    if "count_cum_dead" not in summary.columns:
        raise KeyError("summary has no death columns; run with living_only=False")

    last = summary.loc[
        summary.groupby(["kin", time_unit], sort=False, dropna=False)["age_focal"].idxmax()
    ]
    return last.groupby(time_unit, sort=False, dropna=False)["count_cum_dead"].sum()
