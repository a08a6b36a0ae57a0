"""
test_cli.py - Tests for the Command Line Interface

Tests cover:
- Informational commands (kin-types, version)
- Synthetic rate generation
- Running a computation end-to-end from CSV files
- Survival from a life table
- Error exits
"""

import sys

import pytest
import numpy as np
import pandas as pd
from loguru import logger
from typer.testing import CliRunner

from matkin import load_schedule
from matkin.cli import app


runner = CliRunner()


@pytest.fixture(autouse=True)
def restore_logger():
    """The CLI callback replaces loguru sinks; put the default back."""
    yield
    logger.remove()
    logger.add(sys.stderr)


@pytest.fixture
def rate_dir(tmp_path):
    result = runner.invoke(
        app, ["generate", "--ages", "55", "--start", "2000", "--end", "2010",
              "--output-dir", str(tmp_path)],
    )
    assert result.exit_code == 0, result.output
    return tmp_path


class TestInfo:
    def test_kin_types(self):
        result = runner.invoke(app, ["kin-types"])
        assert result.exit_code == 0
        assert "grandmother" in result.output
        assert "cya" in result.output

    def test_version(self):
        from matkin import __version__

        result = runner.invoke(app, ["version"])
        assert result.exit_code == 0
        assert __version__ in result.output


class TestGenerate:
    def test_writes_three_schedules(self, rate_dir):
        for name in ("survival", "fertility", "population"):
            schedule = load_schedule(rate_dir / f"{name}.csv")
            assert schedule.n_ages == 55
            assert schedule.years == tuple(range(2000, 2011))

    def test_bad_range(self, tmp_path):
        result = runner.invoke(
            app, ["generate", "--start", "2010", "--end", "2000", "--output-dir", str(tmp_path)]
        )
        assert result.exit_code == 1
        assert "Error" in result.output


class TestRun:
    def test_stable_year(self, rate_dir, tmp_path):
        stem = tmp_path / "out" / "kin"
        result = runner.invoke(app, [
            "run", str(rate_dir / "survival.csv"), str(rate_dir / "fertility.csv"),
            "--year", "2005", "--kin", "m", "--kin", "d", "--output", str(stem),
        ])
        assert result.exit_code == 0, result.output
        assert "Kin Summary" in result.output

        summary = pd.read_csv(tmp_path / "out" / "kin_summary.csv")
        assert set(summary["kin"]) == {"m", "d"}
        assert (summary["year"] == 2005).all()

    def test_time_varying_cohort_with_deaths(self, rate_dir, tmp_path):
        stem = tmp_path / "tv"
        result = runner.invoke(app, [
            "-q", "run", str(rate_dir / "survival.csv"), str(rate_dir / "fertility.csv"),
            "--population", str(rate_dir / "population.csv"), "--time-varying",
            "--cohort", "2002", "--deaths", "--output", str(stem), "--format", "json",
        ])
        assert result.exit_code == 0, result.output
        assert (tmp_path / "tv.json").exists()
        assert "Cum. Dead" in result.output

    def test_out_of_range(self, rate_dir):
        result = runner.invoke(app, [
            "run", str(rate_dir / "survival.csv"), str(rate_dir / "fertility.csv"),
            "--year", "1990",
        ])
        assert result.exit_code == 1
        assert "1990" in result.output

    def test_unknown_kin(self, rate_dir):
        result = runner.invoke(app, [
            "run", str(rate_dir / "survival.csv"), str(rate_dir / "fertility.csv"),
            "--year", "2001", "--kin", "uncle",
        ])
        assert result.exit_code == 1
        assert "uncle" in result.output

    def test_missing_file(self, tmp_path):
        result = runner.invoke(app, ["run", str(tmp_path / "U.csv"), str(tmp_path / "f.csv")])
        assert result.exit_code == 1
        assert "not found" in result.output


class TestLifeTable:
    def test_survival_from_lx(self, tmp_path):
        lt = tmp_path / "lt.csv"
        pd.DataFrame({"age": [0, 1, 2], "Lx": [0.99, 0.97, 0.5]}).to_csv(lt, index=False)
        out = tmp_path / "U.csv"

        result = runner.invoke(app, ["life-table", str(lt), "--output", str(out)])
        assert result.exit_code == 0, result.output
        schedule = load_schedule(out)
        np.testing.assert_allclose(schedule.column(), [0.97 / 0.99, 0.5 / 0.97, 0.5 / 1.47])

    def test_missing_column(self, tmp_path):
        lt = tmp_path / "lt.csv"
        pd.DataFrame({"age": [0, 1], "lx": [1.0, 0.9]}).to_csv(lt, index=False)
        result = runner.invoke(app, ["life-table", str(lt)])
        assert result.exit_code == 1
        assert "Lx" in result.output
