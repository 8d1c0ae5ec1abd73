from dataclasses import dataclass

import numpy as np
import pytest

from stereoreg.ransac import RigidFitter, RigidTransform, ransac_single_model
from stereoreg.ransac.core import _soft_iter_limit

from conftest import make_scene


def test_recovers_transform_with_planted_outliers(scene):
    T, x, p, is_inlier = scene
    fitter = RigidFitter(x, p, error_threshold=0.05)

    res = ransac_single_model(fitter, fitness_threshold=0.05, kernel_size=3, hard_iter_limit=1000, seed=1)

    assert res is not None
    np.testing.assert_array_equal(res.inliers, np.flatnonzero(is_inlier))
    assert res.num_inliers == int(is_inlier.sum())
    assert res.threshold == 0.05
    assert np.allclose(res.model.rotation_matrix, T.rotation_matrix, atol=1e-2)
    assert np.allclose(res.model.translation, T.translation, atol=2e-2)


def test_inliers_are_sorted_and_include_the_population_only(scene):
    _, x, p, _ = scene
    res = ransac_single_model(RigidFitter(x, p, 0.05), fitness_threshold=0.05, seed=3)

    assert res is not None
    assert np.all(np.diff(res.inliers) > 0)
    assert res.inliers.min() >= 0 and res.inliers.max() < x.shape[0]


def test_same_seed_is_reproducible(scene):
    _, x, p, _ = scene
    fitter = RigidFitter(x, p, 0.05)

    a = ransac_single_model(fitter, fitness_threshold=0.05, seed=11)
    b = ransac_single_model(fitter, fitness_threshold=0.05, rng=np.random.default_rng(11))

    assert a is not None and b is not None
    np.testing.assert_array_equal(a.inliers, b.inliers)
    np.testing.assert_array_equal(a.model.rotation, b.model.rotation)
    assert a.iterations == b.iterations


def test_outlier_free_data_stops_after_one_iteration():
    rng = np.random.default_rng(0)
    T = RigidTransform.from_rvec_tvec([0.2, 0.0, 0.1], [1.0, 1.0, 1.0])
    p = rng.uniform(-1.0, 1.0, size=(30, 3))
    x = T.apply(p)

    res = ransac_single_model(RigidFitter(x, p, 1e-6), fitness_threshold=1e-6, hard_iter_limit=50)

    assert res is not None
    assert res.iterations == 1
    assert res.num_inliers == 30


def test_fails_when_no_kernel_is_self_consistent():
    # collinearity alone is not enough: a line a rigid motion can explain still fits exactly
    # every triple lies on one line, and x stretches the line, so no rigid fit explains it
    t = np.arange(20, dtype=np.float64)
    p = np.stack([t, np.zeros_like(t), np.zeros_like(t)], axis=1)
    x = 3.0 * p

    res = ransac_single_model(RigidFitter(x, p, 0.1), fitness_threshold=0.1, hard_iter_limit=50)
    assert res is None


def test_population_smaller_than_kernel_fails():
    x = np.zeros((2, 3))
    assert ransac_single_model(RigidFitter(x, x), fitness_threshold=0.1) is None


def test_invalid_arguments_raise(scene):
    _, x, p, _ = scene
    fitter = RigidFitter(x, p)
    with pytest.raises(ValueError):
        ransac_single_model(fitter, fitness_threshold=0.1, confidence=1.0)
    with pytest.raises(ValueError):
        ransac_single_model(fitter, fitness_threshold=0.1, kernel_size=0)


def test_soft_iter_limit():
    assert _soft_iter_limit(confidence=0.99, inlier_ratio=1.0, kernel_size=3) == 1
    assert _soft_iter_limit(confidence=0.99, inlier_ratio=0.5, kernel_size=3) == 35
    assert _soft_iter_limit(confidence=0.99, inlier_ratio=0.0, kernel_size=3) > 10**6
    # better inlier ratio never needs more iterations
    limits = [_soft_iter_limit(confidence=0.99, inlier_ratio=w, kernel_size=3) for w in (0.2, 0.4, 0.6, 0.8)]
    assert limits == sorted(limits, reverse=True)


@dataclass(frozen=True)
class _MeanFitter:
    """1D location model: any fitter with the same three operations works with the engine."""
    values: np.ndarray

    @property
    def sample_count(self) -> int:
        return int(self.values.shape[0])

    def fit_model(self, indices):
        return float(np.mean(self.values[np.asarray(indices)]))

    def test_sample(self, index, model):
        return abs(float(self.values[index]) - model)

    def test_samples(self, model):
        return np.abs(self.values - model)


def test_engine_is_generic_over_fitters():
    rng = np.random.default_rng(0)
    values = np.concatenate([rng.normal(5.0, 0.01, size=40), rng.uniform(50.0, 100.0, size=10)])

    res = ransac_single_model(_MeanFitter(values), fitness_threshold=0.1, kernel_size=1, seed=2)

    assert res is not None
    assert res.num_inliers == 40
    assert res.model == pytest.approx(5.0, abs=0.05)


def test_scene_helper_plants_outliers_far_away():
    T, x, p, is_inlier = make_scene(np.random.default_rng(0))
    err = np.linalg.norm(T.apply(p) - x, axis=1)
    assert err[~is_inlier].min() >= 1.0
    assert err[is_inlier].max() < 0.01


def test_hard_limit_caps_iterations():
    rng = np.random.default_rng(1)
    values = np.concatenate([rng.normal(0.0, 0.01, size=10), rng.uniform(10.0, 20.0, size=10)])

    # half the population are outliers, so the adaptive limit alone would allow 7 iterations
    res = ransac_single_model(_MeanFitter(values), fitness_threshold=0.1, kernel_size=1, hard_iter_limit=2)

    assert res is not None
    assert res.iterations == 2


@dataclass(frozen=True)
class _ScalarOnlyFitter:
    """Only sample_count / fit_model / test_sample, no vectorised scoring."""
    values: np.ndarray

    @property
    def sample_count(self) -> int:
        return int(self.values.shape[0])

    def fit_model(self, indices):
        return float(np.mean(self.values[np.asarray(indices)]))

    def test_sample(self, index, model):
        return abs(float(self.values[index]) - model)


def test_engine_scores_with_test_sample_when_fitter_has_no_batch_scoring():
    rng = np.random.default_rng(0)
    values = np.concatenate([rng.normal(5.0, 0.01, size=40), rng.uniform(50.0, 100.0, size=10)])
    fitter = _ScalarOnlyFitter(values)
    assert not hasattr(fitter, "test_samples")

    res = ransac_single_model(fitter, fitness_threshold=0.1, kernel_size=1, seed=2)
    batch = ransac_single_model(_MeanFitter(values), fitness_threshold=0.1, kernel_size=1, seed=2)

    assert res is not None and batch is not None
    np.testing.assert_array_equal(res.inliers, np.arange(40))
    np.testing.assert_array_equal(res.inliers, batch.inliers)
    assert res.model == pytest.approx(batch.model)
