"""
test_synthetic.py - Tests for Synthetic Vital Rates

Tests cover:
- Gompertz-Makeham survival
- Beta-shaped fertility
- Time-varying rate generation
"""

import pytest
import numpy as np

from matkin import ConfigurationError, SyntheticRates, beta_fertility, gompertz_makeham_survival


class TestGompertzMakeham:
    def test_probabilities(self):
        s = gompertz_makeham_survival(101)
        assert s.shape == (101,)
        assert ((s > 0) & (s <= 1)).all()

    def test_decreasing_with_age_after_childhood(self):
        s = gompertz_makeham_survival(101)
        assert (np.diff(s[10:]) < 0).all()

    def test_multiplier_lowers_mortality(self):
        assert (gompertz_makeham_survival(50, multiplier=0.5) > gompertz_makeham_survival(50)).all()

    def test_bad_gamma(self):
        with pytest.raises(ConfigurationError):
            gompertz_makeham_survival(10, gamma=0.0)


class TestBetaFertility:
    def test_sums_to_tfr(self):
        f = beta_fertility(tfr=1.8)
        assert f.sum() == pytest.approx(1.8)

    def test_reproductive_window(self):
        f = beta_fertility(tfr=2.0, n_ages=60)
        assert f[:15].sum() == 0
        assert f[50:].sum() == 0
        assert (f[15:50] > 0).all()

    def test_peak_in_twenties(self):
        f = beta_fertility()
        assert 20 <= int(np.argmax(f)) <= 30

    def test_shape_is_beta_density(self):
        from scipy import stats

        f = beta_fertility(tfr=1.0, n_ages=60, min_age=20, max_age=39, a=3.0, b=4.0)
        t = (np.arange(20) + 0.5) / 20
        expected = stats.beta.pdf(t, 3.0, 4.0)
        np.testing.assert_allclose(f[20:40], expected / expected.sum())

    def test_window_must_fit(self):
        with pytest.raises(ConfigurationError, match="do not fit"):
            beta_fertility(n_ages=40)

    def test_negative_tfr(self):
        with pytest.raises(ConfigurationError):
            beta_fertility(tfr=-1.0)


class TestSyntheticRates:
    @pytest.fixture
    def frames(self):
        return SyntheticRates(n_ages=60, start=1990, end=2000, tfr_start=3.0, tfr_end=2.0).frames()

    def test_shapes(self, frames):
        for frame in frames.values():
            assert frame.shape == (60, 11)
            assert list(frame.columns) == list(range(1990, 2001))

    def test_tfr_path(self, frames):
        tfr = frames["fertility"].sum()
        assert tfr[1990] == pytest.approx(3.0)
        assert tfr[2000] == pytest.approx(2.0)
        assert tfr[1995] == pytest.approx(2.5)

    def test_mortality_improves(self, frames):
        U = frames["survival"]
        assert (U[2000] > U[1990]).all()

    def test_population_positive(self, frames):
        assert (frames["population"].to_numpy() > 0).all()
        assert frames["population"][1990].sum() == pytest.approx(1e6)

    def test_seeded_noise_reproducible(self):
        a = SyntheticRates(n_ages=60, start=2000, end=2003, noise=0.05, seed=7).frames()
        b = SyntheticRates(n_ages=60, start=2000, end=2003, noise=0.05, seed=7).frames()
        np.testing.assert_array_equal(a["fertility"].to_numpy(), b["fertility"].to_numpy())

    def test_schedules(self):
        schedules = SyntheticRates(n_ages=60, start=2000, end=2002).schedules()
        assert schedules["survival"].years == (2000, 2001, 2002)
        assert schedules["population"].name == "population"

    def test_bad_range(self):
        with pytest.raises(ConfigurationError, match="before start"):
            SyntheticRates(start=2000, end=1990)
