"""
test_examples.py - Tests for the Examples Package
=================================================
"""

import pytest
import sys
from pathlib import Path

# =============================================================================
# PATH SETUP
# =============================================================================
project_root = Path(__file__).resolve().parent.parent
if str(project_root) not in sys.path:
    sys.path.insert(0, str(project_root))

from examples import list_examples, run_example

from matkin import KinshipResult

SMALL = {"n_ages": 60, "start": 2000, "end": 2012}


class TestRunExample:
    """Test that examples run end-to-end via the wrapper."""

    def test_stable_kinship(self):
        result = run_example("stable_kinship", **SMALL)
        assert isinstance(result, KinshipResult)
        assert set(result.summary["year"].dropna()) == {2000, 2012}

    def test_time_varying_kinship(self):
        by_cohort, by_year = run_example("time_varying_kinship", **SMALL)
        assert by_cohort.time_unit == "cohort"
        assert by_year.time_unit == "year"
        assert set(by_cohort.summary["kin"]) == {"m", "gm", "d", "os", "ys"}

    def test_kin_loss(self):
        result, burden = run_example("kin_loss", cohorts=[2000, 2005], **SMALL)
        assert result.includes_deaths
        assert (burden > 0).all()

    def test_unknown_example(self):
        with pytest.raises(ValueError, match="Unknown example"):
            run_example("does_not_exist")

    def test_list_matches_modules(self):
        assert set(list_examples()) == {"stable_kinship", "time_varying_kinship", "kin_loss"}
