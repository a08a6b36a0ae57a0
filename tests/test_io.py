"""
test_io.py - Tests for Schedule and Result Files

Tests cover:
- Wide and long schedule CSVs
- CSV and JSON result files
- Error handling
"""

import pytest
import numpy as np
import pandas as pd
import json
from pathlib import Path

from matkin import AgeRateSchedule, ConfigurationError
from matkin.io import (
    ResultFormat,
    load_result,
    load_schedule,
    save_result,
    save_schedule,
)


class TestSchedules:
    """Reading and writing rate schedules."""

    def test_wide(self, tmp_path, tiny_schedule):
        path = save_schedule(tiny_schedule, tmp_path / "U.csv")
        header = path.read_text().splitlines()[0]
        assert header == "age,2000,2001"
        loaded = load_schedule(path, name="survival")
        assert loaded.years == (2000, 2001)
        np.testing.assert_allclose(loaded.values, tiny_schedule.values)

    def test_long(self, tmp_path, tiny_schedule):
        path = save_schedule(tiny_schedule, tmp_path / "U_long.csv", long=True)
        frame = pd.read_csv(path)
        assert list(frame.columns) == ["age", "year", "survival"]
        loaded = load_schedule(path)
        np.testing.assert_allclose(loaded.column(2001), tiny_schedule.column(2001))

    def test_unlabeled(self, tmp_path, tiny_survival):
        schedule = AgeRateSchedule(tiny_survival, name="survival")
        path = save_schedule(schedule, tmp_path / "U.csv")
        loaded = load_schedule(path)
        assert not loaded.is_labeled
        np.testing.assert_allclose(loaded.column(), tiny_survival)

    def test_long_needs_labels(self, tmp_path, tiny_survival):
        with pytest.raises(ConfigurationError, match="year labels"):
            save_schedule(AgeRateSchedule(tiny_survival), tmp_path / "x.csv", long=True)

    def test_missing_file(self, tmp_path):
        with pytest.raises(FileNotFoundError):
            load_schedule(tmp_path / "nope.csv")

    def test_no_age_column(self, tmp_path):
        path = tmp_path / "bad.csv"
        path.write_text("x,2000\n0,0.9\n")
        with pytest.raises(ConfigurationError, match="'age'"):
            load_schedule(path)

    def test_ambiguous_long(self, tmp_path):
        path = tmp_path / "long.csv"
        path.write_text("age,year,px,qx\n0,2000,0.9,0.1\n")
        with pytest.raises(ConfigurationError, match="value column"):
            load_schedule(path)

    def test_long_with_named_value(self, tmp_path):
        path = tmp_path / "long.csv"
        path.write_text("age,year,px,qx\n0,2000,0.9,0.1\n1,2000,0.5,0.5\n")
        loaded = load_schedule(path, value="px")
        np.testing.assert_allclose(loaded.column(2000), [0.9, 0.5])


class TestResults:
    """Saving and loading kinship results."""

    def test_csv(self, tmp_path, cohort_result):
        written = save_result(cohort_result, tmp_path / "out" / "kin")
        assert [p.name for p in written] == ["kin_full.csv", "kin_summary.csv"]
        tables = load_result(tmp_path / "out" / "kin")
        assert len(tables["full"]) == len(cohort_result.full)
        assert str(tables["summary"]["cohort"].dtype) == "Int64"
        np.testing.assert_allclose(
            tables["summary"]["count_cum_dead"], cohort_result.summary["count_cum_dead"]
        )

    def test_csv_stem_from_table_name(self, tmp_path, cohort_result):
        save_result(cohort_result, tmp_path / "kin.csv")
        tables = load_result(tmp_path / "kin_summary.csv")
        assert set(tables) == {"full", "summary"}

    def test_json(self, tmp_path, stable_result):
        written = save_result(stable_result, tmp_path / "kin.json", format=ResultFormat.JSON)
        assert written == [tmp_path / "kin.json"]
        with open(written[0]) as f:
            data = json.load(f)
        assert data["mode"] == "stable"
        assert data["labels"] == [None]
        assert len(data["kin"]) == 14

        tables = load_result(written[0])
        assert tables["summary"]["year"].isna().all()
        np.testing.assert_array_equal(
            tables["summary"]["count_living"].to_numpy(),
            stable_result.summary["count_living"].to_numpy(),
        )
        np.testing.assert_array_equal(
            tables["full"]["living"].to_numpy(), stable_result.full["living"].to_numpy()
        )
        np.testing.assert_array_equal(
            tables["summary"]["count_cum_dead"].to_numpy(),
            stable_result.summary["count_cum_dead"].to_numpy(),
        )

    def test_json_keeps_tiny_counts(self, tmp_path, stable_result):
        living = stable_result.full["living"].to_numpy()
        tiny = (living > 0) & (living < 1e-10)
        assert tiny.any()
        tables = load_result(save_result(stable_result, tmp_path / "kin", format="json")[0])
        np.testing.assert_array_equal(tables["full"]["living"].to_numpy()[tiny], living[tiny])

    def test_format_from_string(self, tmp_path, cohort_result):
        written = save_result(cohort_result, tmp_path / "kin", format="json")
        assert written[0].suffix == ".json"

    def test_missing_result(self, tmp_path):
        with pytest.raises(FileNotFoundError):
            load_result(tmp_path / "nothing")
