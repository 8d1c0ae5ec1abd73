import numpy as np
import pytest

from stereoreg.ransac import RigidTransform


def make_scene(
        rng: np.random.Generator,
        *,
        n_in: int = 70,
        n_out: int = 30,
        noise: float = 0.001,
):
    """
    Synthetic stereo-frame pair: p in a 2x2x2 box, x = T(p) + noise for the
    inliers, and x pushed 1..3 units away from T(p) for the planted outliers.
    """
    T = RigidTransform.from_rvec_tvec([0.1, -0.3, 0.2], [0.5, -0.2, 1.0])
    n = n_in + n_out

    p = rng.uniform(-1.0, 1.0, size=(n, 3))
    x = T.apply(p)
    x[:n_in] += rng.normal(0.0, noise, size=(n_in, 3))

    directions = rng.normal(size=(n_out, 3))
    directions /= np.linalg.norm(directions, axis=1, keepdims=True)
    x[n_in:] += directions * rng.uniform(1.0, 3.0, size=(n_out, 1))

    # Shuffle so inliers are not a prefix
    order = rng.permutation(n)
    is_inlier = np.zeros((n,), dtype=bool)
    is_inlier[:n_in] = True
    return T, x[order], p[order], is_inlier[order]


@pytest.fixture
def scene():
    return make_scene(np.random.default_rng(7))
