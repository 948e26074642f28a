import numpy as np
import pytest

from brownianmc.analytics import arcsine_cdf
from brownianmc.config import ArcsineConfig, ConfigurationError
from brownianmc.core import ARCSINE_STATISTICS, ArcsineResult
from brownianmc.histogram import EmptyInputWarning
from brownianmc.sims import ArcsineSimulation, arcsine_statistics, run_arcsine_laws


@pytest.fixture(scope="module")
def large_run():
    """10,000 paths at dt = 0.001, shared by the distribution checks."""
    return run_arcsine_laws(10_000, step_size=0.001, horizon=1.0, seed=1234, backend="sequential")


class TestArcsineStatistics:
    """Test per-path statistics on hand-built paths"""

    def test_mixed_path(self):
        """Test occupation, last crossing and argmax on a short path"""
        assert arcsine_statistics(np.array([1.0, -1.0, 2.0, 2.0]), 0.25, 1.0) == pytest.approx((0.75, 0.75, 0.75))

    def test_always_negative(self):
        """Test a path that never goes above zero"""
        occ, last, tmax = arcsine_statistics(np.array([-1.0, -2.0, -3.0]), 1.0, 3.0)
        assert occ == 0.0
        # X_0 * X_1 = 0 counts as the crossing at step 1
        assert last == pytest.approx(1 / 3)
        assert tmax == 0.0

    def test_always_positive(self):
        """Test a path that stays above zero"""
        occ, last, tmax = arcsine_statistics(np.array([1.0, 2.0, 3.0]), 1.0, 3.0)
        assert occ == pytest.approx(1.0)
        assert last == pytest.approx(1 / 3)
        assert tmax == pytest.approx(1.0)

    def test_ties_keep_earliest_maximum(self):
        """Test the first step attaining the maximum wins"""
        occ, last, tmax = arcsine_statistics(np.array([1.0, 3.0, 3.0, -1.0]), 1.0, 4.0)
        assert occ == pytest.approx(0.75)
        assert last == pytest.approx(1.0)
        assert tmax == pytest.approx(0.5)

    def test_touching_zero_counts_as_crossing(self):
        """Test x_{i-1} * x_i == 0 is a crossing"""
        occ, last, _ = arcsine_statistics(np.array([1.0, 0.0, 1.0]), 1.0, 3.0)
        assert occ == pytest.approx(2 / 3)
        assert last == pytest.approx(1.0)

    def test_fractions_capped_at_one(self):
        """Test rounding in step_count * step_size never pushes a fraction above 1"""
        occ, last, tmax = arcsine_statistics(np.array([1.0, 1.0, 2.0]), 0.1, 0.3)
        assert max(occ, last, tmax) <= 1.0

    def test_empty_path(self):
        """Test zero steps"""
        assert arcsine_statistics(np.array([]), 0.1, 1.0) == (0.0, 0.0, 0.0)


class TestArcsineRun:
    """Test complete arcsine runs"""

    def test_result_shapes(self, arcsine_simulation, small_arcsine_config):
        """Test one entry per path for each statistic"""
        res = arcsine_simulation.run(small_arcsine_config, backend="sequential")
        assert isinstance(res, ArcsineResult)
        for name in ARCSINE_STATISTICS:
            arr = getattr(res, name)
            assert arr.shape == (200,)
            assert np.all((arr >= 0.0) & (arr <= 1.0))
        assert res.metadata["step_count"] == 100
        assert res.step_size == 0.01

    def test_arrays_read_only(self, arcsine_simulation, small_arcsine_config):
        """Test results cannot be mutated"""
        res = arcsine_simulation.run(small_arcsine_config, backend="sequential")
        with pytest.raises(ValueError):
            res.occupation_fraction[0] = 0.5

    def test_statistics_on_grid(self, arcsine_simulation, small_arcsine_config):
        """Test every statistic is a multiple of step_size / horizon"""
        res = arcsine_simulation.run(small_arcsine_config, backend="sequential")
        for arr in res.statistics.values():
            np.testing.assert_allclose(arr * 100, np.round(arr * 100), atol=1e-6)

    def test_last_zero_at_least_one_step(self, arcsine_simulation, small_arcsine_config):
        """Test the origin always provides a crossing at step 1"""
        res = arcsine_simulation.run(small_arcsine_config, backend="sequential")
        assert np.all(res.last_zero_fraction >= 0.01 - 1e-12)

    def test_zero_paths(self):
        """Test an empty run returns empty sequences"""
        res = run_arcsine_laws(0)
        assert res.path_count == 0
        for arr in res.statistics.values():
            assert arr.size == 0

    def test_zero_paths_histograms_warn(self):
        """Test histograms of an empty run warn and are all zero"""
        res = run_arcsine_laws(0)
        with pytest.warns(EmptyInputWarning):
            hists = res.histograms()
        assert set(hists) == set(ARCSINE_STATISTICS)
        assert all(b.empirical_density == 0.0 for bins in hists.values() for b in bins)

    def test_zero_paths_goodness_of_fit(self):
        """Test goodness-of-fit entries are empty for an empty run"""
        gof = run_arcsine_laws(0).goodness_of_fit()
        for metrics in gof.values():
            assert metrics["ks_arcsine"] == {}
            assert metrics["arcsine_cdf_gaps"] == {}

    def test_negative_path_count(self):
        """Test negative path counts are configuration errors"""
        with pytest.raises(ConfigurationError):
            run_arcsine_laws(-1)

    def test_int_and_mapping_configs(self, arcsine_simulation):
        """Test an int is a path count and mappings accept camelCase"""
        assert arcsine_simulation.run(5, backend="sequential").path_count == 5
        res = arcsine_simulation.run({"pathCount": 3, "stepSize": 0.01}, backend="sequential")
        assert res.occupation_fraction.shape == (3,)

    def test_whole_number_float_path_count_runs(self, arcsine_simulation):
        """Test path_count 20.0 runs like 20"""
        res = arcsine_simulation.run(ArcsineConfig(path_count=20.0, step_size=0.01), backend="sequential")
        assert res.path_count == 20
        assert res.max_time_fraction.shape == (20,)

    def test_bad_config_type(self, arcsine_simulation):
        """Test unsupported config types"""
        with pytest.raises(ConfigurationError):
            arcsine_simulation.run("many")

    def test_seeded_determinism(self):
        """Test the same seed reproduces a run"""
        a = run_arcsine_laws(50, step_size=0.01, seed=9, backend="sequential")
        b = run_arcsine_laws(50, step_size=0.01, seed=9, backend="sequential")
        np.testing.assert_array_equal(a.occupation_fraction, b.occupation_fraction)

    def test_recorded_path(self):
        """Test a recorded path spans the horizon from the origin"""
        (_, _, _), path = ArcsineSimulation().simulate_path(
            np.random.default_rng(0), record=True, step_size=0.01, step_count=100, horizon=1.0
        )
        assert len(path) == 101
        assert path.times[-1] == pytest.approx(1.0)
        assert path.values[0] == 0.0

    def test_result_to_string(self, arcsine_simulation, small_arcsine_config):
        """Test the summary names every statistic"""
        text = arcsine_simulation.run(small_arcsine_config, backend="sequential").result_to_string()
        for name in ARCSINE_STATISTICS:
            assert name in text
        assert "KS" in text

    def test_threaded_run(self, arcsine_simulation):
        """Test the thread backend"""
        res = arcsine_simulation.run(ArcsineConfig(path_count=400, step_size=0.01), backend="thread", n_workers=4)
        assert res.occupation_fraction.shape == (400,)
        assert res.metadata["backend"] == "thread"


class TestArcsineLaws:
    """Test the empirical distributions against the arcsine law"""

    @pytest.mark.parametrize("name", ARCSINE_STATISTICS)
    @pytest.mark.parametrize("x", [0.1, 0.5, 0.9])
    def test_cdf_matches_arcsine(self, large_run, name, x):
        """Test empirical CDF at 0.1, 0.5, 0.9 against (2/pi) arcsin(sqrt(x))"""
        values = getattr(large_run, name)
        assert np.mean(values <= x) == pytest.approx(arcsine_cdf(x), abs=0.03)

    @pytest.mark.parametrize("name", ARCSINE_STATISTICS)
    def test_mean_is_one_half(self, large_run, name):
        """Test every statistic has mean 1/2"""
        assert np.mean(getattr(large_run, name)) == pytest.approx(0.5, abs=0.02)

    def test_occupation_histogram_is_u_shaped(self, large_run):
        """Test edge bins are much denser than central bins"""
        bins = large_run.histograms(40)["occupation_fraction"]
        centre = np.mean([b.empirical_density for b in bins[18:22]])
        assert bins[0].empirical_density > 3 * centre
        assert bins[-1].empirical_density > 3 * centre
        assert centre == pytest.approx(bins[20].theoretical_density, rel=0.3)

    def test_goodness_of_fit_small_cdf_gaps(self, large_run):
        """Test the arcsine engine reports small CDF gaps"""
        gof = large_run.goodness_of_fit()
        for metrics in gof.values():
            assert metrics["ks_arcsine"]["statistic"] < 0.05
            assert all(abs(g) < 0.03 for g in metrics["arcsine_cdf_gaps"].values())
