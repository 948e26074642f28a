import math

import numpy as np
import pytest

from brownianmc.integrator import PathIntegrator, euler_maruyama_step
from brownianmc.sampling import GaussianSampler, make_generator


class TestMakeGenerator:
    """Test per-block generator creation"""

    def test_philox_bit_generator(self):
        """Test the generator is backed by Philox"""
        rng = make_generator(np.random.SeedSequence(1))
        assert isinstance(rng.bit_generator, np.random.Philox)

    def test_same_seed_same_stream(self):
        """Test equal seed sequences give equal streams"""
        a = make_generator(np.random.SeedSequence(7)).random(5)
        b = make_generator(np.random.SeedSequence(7)).random(5)
        np.testing.assert_array_equal(a, b)

    def test_spawned_children_independent(self):
        """Test spawned children give different streams"""
        c1, c2 = np.random.SeedSequence(7).spawn(2)
        assert not np.array_equal(make_generator(c1).random(5), make_generator(c2).random(5))

    def test_unseeded(self):
        """Test None draws OS entropy"""
        assert isinstance(make_generator(None), np.random.Generator)


class TestGaussianSampler:
    """Test the Box-Muller sampler"""

    def test_sample_returns_float(self):
        """Test one draw is a finite float"""
        z = GaussianSampler(np.random.default_rng(0)).sample()
        assert isinstance(z, float)
        assert math.isfinite(z)

    def test_scalar_and_vector_agree(self):
        """Test sample_array consumes the stream like repeated sample()"""
        scalar = GaussianSampler(np.random.default_rng(11))
        vector = GaussianSampler(np.random.default_rng(11))
        a = [scalar.sample() for _ in range(50)]
        b = vector.sample_array(50)
        np.testing.assert_allclose(a, b, rtol=1e-12, atol=1e-12)

    def test_moments(self):
        """Test mean 0 and variance 1 on a large sample"""
        z = GaussianSampler(np.random.default_rng(3)).sample_array(200_000)
        assert abs(z.mean()) < 0.01
        assert z.var() == pytest.approx(1.0, abs=0.02)

    def test_tails(self):
        """Test P(|Z| > 1.96) is about 5%"""
        z = GaussianSampler(np.random.default_rng(4)).sample_array(200_000)
        assert np.mean(np.abs(z) > 1.96) == pytest.approx(0.05, abs=0.003)

    def test_uniform_zero_is_finite(self):
        """Test a zero uniform does not produce an infinite draw"""

        class ZeroRng:
            def random(self, size):
                return np.zeros(size)

        assert math.isfinite(GaussianSampler(ZeroRng()).sample())
        assert np.all(np.isfinite(GaussianSampler(ZeroRng()).sample_array(3)))


class TestEulerMaruyama:
    """Test the integrator"""

    def test_single_step_formula(self):
        """Test x + mu dt + sigma sqrt(dt) z"""
        assert euler_maruyama_step(1.0, 0.5, 2.0, 0.25, 1.0) == pytest.approx(2.125)

    def test_zero_noise_is_pure_drift(self):
        """Test z = 0 gives a deterministic drift step"""
        assert euler_maruyama_step(0.0, 0.3, 1.0, 0.1, 0.0) == pytest.approx(0.03)

    def test_advance_matches_repeated_step(self):
        """Test advance agrees with n calls of step from the same state"""
        stepper = PathIntegrator(0.1, 0.7, 0.01, GaussianSampler(np.random.default_rng(5)))
        vector = PathIntegrator(0.1, 0.7, 0.01, GaussianSampler(np.random.default_rng(5)))
        x = 0.5
        expected = []
        for _ in range(100):
            x = stepper.step(x)
            expected.append(x)
        np.testing.assert_allclose(vector.advance(0.5, 100), expected, rtol=1e-10, atol=1e-12)

    def test_advance_length(self):
        """Test advance returns exactly n values"""
        integ = PathIntegrator(0.0, 1.0, 0.01, GaussianSampler(np.random.default_rng(0)))
        assert integ.advance(0.0, 37).shape == (37,)

    def test_terminal_distribution(self):
        """Test X_T ~ N(mu T, sigma^2 T)"""
        rng = np.random.default_rng(9)
        integ = PathIntegrator(0.2, 1.5, 0.05, GaussianSampler(rng))
        ends = np.array([integ.advance(0.0, 20)[-1] for _ in range(20_000)])
        assert ends.mean() == pytest.approx(0.2, abs=0.03)
        assert ends.var() == pytest.approx(1.5**2, rel=0.05)
