"""
io.py - Reading Rate Schedules and Writing Kinship Results

Rate schedules are exchanged as CSV in one of two layouts:
- Wide: an ``age`` column followed by one column per calendar year
- Long: ``age``, ``year`` and a value column, one row per cell

Results are written as two CSV tables (``<stem>_full.csv`` and
``<stem>_summary.csv``) or as a single JSON document.

Example Usage:
-------------
    >>> from matkin.io import load_schedule, save_result
    >>>
    >>> U = load_schedule("survival.csv", name="survival")
    >>> f = load_schedule("fertility.csv", name="fertility")
    >>> result = compute_kinship(U, f, stable=True)
    >>> save_result(result, "out/kin")
    [PosixPath('out/kin_full.csv'), PosixPath('out/kin_summary.csv')]
"""

from __future__ import annotations

import json
from enum import Enum
from pathlib import Path
from typing import Dict, List, Optional, Union

import pandas as pd
from loguru import logger

from .errors import ConfigurationError
from .types import AgeRateSchedule, KinshipResult

LABEL_COLUMNS = ("year", "cohort")


class ResultFormat(str, Enum):
    """Supported result file formats."""
    CSV = "csv"
    JSON = "json"


# =============================================================================
# RATE SCHEDULES
# =============================================================================

def load_schedule(
    path: Union[str, Path],
    name: str = "rate",
    value: Optional[str] = None,
) -> AgeRateSchedule:
    """
    Load an age-by-year schedule from CSV.

    Parameters
    ----------
    path : str or Path
        CSV file. Wide files have an ``age`` column plus one column per
        year. Long files have ``age``, ``year`` and a value column.
    name : str
        Role of the schedule, used in messages.
    value : str, optional
        Value column of a long file. Defaults to the only column that is
        neither ``age`` nor ``year``.

    Returns
    -------
    AgeRateSchedule

    Raises
    ------
    FileNotFoundError
        If the file does not exist.
    ConfigurationError
        If the layout cannot be read as a schedule.
    """
    path = Path(path)
    if not path.exists():
        raise FileNotFoundError(f"Schedule file not found: {path}")

    frame = pd.read_csv(path)
    if "age" not in frame.columns:
        raise ConfigurationError(f"{path.name} has no 'age' column")

    if "year" in frame.columns:
        if value is None:
            candidates = [c for c in frame.columns if c not in ("age", "year")]
            if len(candidates) != 1:
                raise ConfigurationError(
                    f"{path.name}: cannot tell the value column among {candidates}"
                )
            value = candidates[0]
        schedule = AgeRateSchedule.from_long(frame, value=value, name=name)
    elif frame.shape[1] == 2 and not _is_year(frame.columns[1]):
        # age plus one unnamed-year column is a constant schedule
        schedule = AgeRateSchedule.from_series(
            frame.set_index("age").iloc[:, 0], name=name
        )
    else:
        schedule = AgeRateSchedule.from_frame(frame, name=name)

    logger.debug(
        f"Loaded {name} from {path.name}: {schedule.n_ages} ages, {schedule.n_years} year(s)"
    )
    return schedule


def save_schedule(
    schedule: AgeRateSchedule, path: Union[str, Path], long: bool = False
) -> Path:
    """
    Save a schedule as CSV (wide by default).

    Examples
    --------
    >>> save_schedule(U, "survival.csv")
    >>> save_schedule(U, "survival_long.csv", long=True)
    """
    path = Path(path)
    path.parent.mkdir(parents=True, exist_ok=True)
    frame = schedule.to_frame()

    if long:
        if not schedule.is_labeled:
            raise ConfigurationError("Long format needs year labels")
        frame = frame.reset_index().melt(
            id_vars="age", var_name="year", value_name=schedule.name
        )
        frame.to_csv(path, index=False)
    else:
        frame.to_csv(path)
    return path


def _is_year(column) -> bool:
    try:
        int(column)
    except (TypeError, ValueError):
        return False
    return True


# =============================================================================
# RESULTS
# =============================================================================

def save_result(
    result: KinshipResult,
    path: Union[str, Path],
    format: ResultFormat = ResultFormat.CSV,
) -> List[Path]:
    """
    Save a kinship result to disk.

    Parameters
    ----------
    result : KinshipResult
        Output of ``compute_kinship``.
    path : str or Path
        Destination. For CSV the suffix is dropped and two files
        ``<stem>_full.csv`` and ``<stem>_summary.csv`` are written next to it.
    format : ResultFormat, default=ResultFormat.CSV
        Output format. JSON also records the run metadata.

    Returns
    -------
    list of Path
        The files written.
    """
    path = Path(path)
    path.parent.mkdir(parents=True, exist_ok=True)
    format = ResultFormat(format)

    if format == ResultFormat.CSV:
        written = _save_csv(result, path)
    elif format == ResultFormat.JSON:
        written = [_save_json(result, path)]
    else:
        raise ValueError(f"Unsupported format: {format}")

    logger.info(f"Saved result to {', '.join(str(p) for p in written)}")
    return written


def load_result(path: Union[str, Path]) -> Dict[str, pd.DataFrame]:
    """
    Load the full and summary tables written by ``save_result``.

    Parameters
    ----------
    path : str or Path
        A ``.json`` file, or the stem (or either table) of a CSV result.

    Returns
    -------
    dict
        ``{"full": DataFrame, "summary": DataFrame}`` with nullable integer
        ``year`` and ``cohort`` columns.
    """
    path = Path(path)
    if path.suffix == ".json":
        if not path.exists():
            raise FileNotFoundError(f"Result file not found: {path}")
        return _load_json(path)

    full_path, summary_path = _csv_paths(path)
    for p in (full_path, summary_path):
        if not p.exists():
            raise FileNotFoundError(f"Result file not found: {p}")
    return {
        "full": _restore_labels(pd.read_csv(full_path)),
        "summary": _restore_labels(pd.read_csv(summary_path)),
    }


def _csv_paths(path: Path):
    stem = path.with_suffix("") if path.suffix == ".csv" else path
    name = stem.name
    for suffix in ("_full", "_summary"):
        if name.endswith(suffix):
            name = name[: -len(suffix)]
    stem = stem.with_name(name)
    return (
        stem.with_name(f"{name}_full.csv"),
        stem.with_name(f"{name}_summary.csv"),
    )


def _save_csv(result: KinshipResult, path: Path) -> List[Path]:
    full_path, summary_path = _csv_paths(path)
    result.full.to_csv(full_path, index=False)
    result.summary.to_csv(summary_path, index=False)
    return [full_path, summary_path]


def _records(frame: pd.DataFrame) -> List[dict]:
    """Rows as plain Python values; missing labels and moments become null."""
    plain = frame.astype(object)
    return plain.where(frame.notna(), None).to_dict(orient="records")


def _save_json(result: KinshipResult, path: Path) -> Path:
    """Save both tables plus run metadata in one JSON document."""
    path = path.with_suffix(".json")
    data = {
        "mode": result.mode.value,
        "time_unit": result.time_unit,
        "labels": list(result.labels),
        "kin": [k.value for k in result.kin],
        # json writes floats with repr, so values round-trip exactly
        "full": _records(result.full),
        "summary": _records(result.summary),
    }
    with open(path, "w") as f:
        json.dump(data, f, indent=2)
    return path


def _load_json(path: Path) -> Dict[str, pd.DataFrame]:
    with open(path, "r") as f:
        data = json.load(f)
    return {
        "full": _restore_labels(pd.DataFrame.from_records(data["full"])),
        "summary": _restore_labels(pd.DataFrame.from_records(data["summary"])),
    }


def _restore_labels(frame: pd.DataFrame) -> pd.DataFrame:
    for column in LABEL_COLUMNS:
        if column in frame.columns:
            frame[column] = pd.to_numeric(frame[column]).astype("Int64")
    return frame
