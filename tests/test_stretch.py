"""
Test the decorrelation stretch itself
"""
import numpy as np
import pytest

from ochre_eigen import decompose, identity_result
from ochre_errors import InvalidInput
from ochre_statistics import compute_stats
from ochre_stretch import decorrelation_stretch, stretch_gains, stretch_matrix


@pytest.fixture
def correlated_data():
    """Elongated colour cloud: most variance along the grey axis"""
    rng = np.random.default_rng(2024)
    latent = rng.normal(size=(5000, 3)) * np.array([30.0, 4.0, 1.5])
    basis = np.array([[0.577, 0.577, 0.577],
                      [0.707, 0.0, -0.707],
                      [0.408, -0.816, 0.408]])
    return latent @ basis + np.array([120.0, 100.0, 80.0])


class TestStretchMatrix:
    """Test gain and composite matrix construction"""

    def test_gains(self):
        eigen = decompose(np.diag([400.0, 25.0, 4.0]))
        assert stretch_gains(eigen, 10.0) == pytest.approx([0.5, 2.0, 5.0])

    def test_degenerate_is_identity(self):
        eigen = identity_result()
        assert np.array_equal(stretch_gains(eigen, 50.0), np.ones(3))
        assert np.array_equal(stretch_matrix(eigen, 50.0), np.eye(3))

    def test_matrix_symmetric(self, correlated_data):
        stats = compute_stats(correlated_data)
        t = stretch_matrix(decompose(stats.covariance), 25.0)
        assert np.allclose(t, t.T)


class TestDecorrelationStretch:
    """Test the per-pixel stretch"""

    def test_output_covariance_is_spherical(self, correlated_data):
        stats = compute_stats(correlated_data)
        out = decorrelation_stretch(correlated_data, stats.mean,
                                    decompose(stats.covariance), 10.0)
        assert np.allclose(np.cov(out.T, ddof=1), 100.0 * np.eye(3), atol=1e-6)

    def test_mean_preserved(self, correlated_data):
        stats = compute_stats(correlated_data)
        out = decorrelation_stretch(correlated_data, stats.mean,
                                    decompose(stats.covariance), 40.0)
        assert np.allclose(out.mean(axis=0), stats.mean)

    def test_matches_explicit_projection(self, correlated_data):
        data = correlated_data[:50]
        stats = compute_stats(correlated_data)
        eigen = decompose(stats.covariance)
        s = 30.0
        centred = data - stats.mean
        projected = centred @ eigen.vectors
        projected *= s / np.sqrt(eigen.values)
        expected = projected @ eigen.vectors.T + stats.mean
        out = decorrelation_stretch(data, stats.mean, eigen, s)
        assert np.allclose(out, expected)

    def test_degenerate_eigen_is_noop(self, correlated_data):
        stats = compute_stats(correlated_data)
        out = decorrelation_stretch(correlated_data, stats.mean, identity_result(), 50.0)
        assert np.allclose(out, correlated_data)

    def test_zero_amount_collapses_to_mean(self, correlated_data):
        stats = compute_stats(correlated_data)
        out = decorrelation_stretch(correlated_data, stats.mean,
                                    decompose(stats.covariance), 0.0)
        assert np.allclose(out, np.broadcast_to(stats.mean, out.shape))

    def test_negative_amount_mirrors(self, correlated_data):
        stats = compute_stats(correlated_data)
        eigen = decompose(stats.covariance)
        pos = decorrelation_stretch(correlated_data, stats.mean, eigen, 20.0)
        neg = decorrelation_stretch(correlated_data, stats.mean, eigen, -20.0)
        assert np.all(np.isfinite(neg))
        assert np.allclose(neg - stats.mean, -(pos - stats.mean))

    def test_returns_new_array(self, correlated_data):
        original = correlated_data.copy()
        stats = compute_stats(correlated_data)
        out = decorrelation_stretch(correlated_data, stats.mean,
                                    decompose(stats.covariance), 10.0)
        assert out is not correlated_data
        assert np.array_equal(correlated_data, original)

    def test_bad_shape_raises(self):
        with pytest.raises(InvalidInput):
            decorrelation_stretch(np.zeros((4, 2)), np.zeros(3), identity_result(), 1.0)
