import numpy as np
import pytest

from stereoreg.registration import clean_points3d


def test_drops_non_finite_pairs():
    x = np.array([[0, 0, 0], [np.nan, 0, 0], [1, 1, 1], [2, 2, 2]], dtype=np.float64)
    p = np.array([[0, 0, 0], [1, 0, 0], [1, 1, np.inf], [2, 2, 2]], dtype=np.float64)

    x2, p2, mask = clean_points3d(x, p)

    np.testing.assert_array_equal(mask, [True, False, False, True])
    np.testing.assert_array_equal(x2, x[[0, 3]])
    np.testing.assert_array_equal(p2, p[[0, 3]])


def test_prunes_large_motion():
    x = np.array([[0, 0, 0], [0, 0, 0], [0, 0, 0]], dtype=np.float64)
    p = np.array([[0.5, 0, 0], [0, 3.0, 0], [0, 0, 1.0]], dtype=np.float64)

    _, _, mask = clean_points3d(x, p, max_motion=1.0)
    np.testing.assert_array_equal(mask, [True, False, True])


def test_drops_invalid_uncertainties():
    x = np.zeros((4, 3))
    p = np.zeros((4, 3))
    x_e = np.array([0.1, 0.0, 0.1, np.nan])
    p_e = np.array([0.1, 0.1, -1.0, 0.1])

    _, _, mask = clean_points3d(x, p, x_e=x_e, p_e=p_e)
    np.testing.assert_array_equal(mask, [True, False, False, False])


def test_shape_errors():
    with pytest.raises(ValueError):
        clean_points3d(np.zeros((3, 3)), np.zeros((4, 3)))
    with pytest.raises(ValueError):
        clean_points3d(np.zeros((3, 2)), np.zeros((3, 2)))
    with pytest.raises(ValueError):
        clean_points3d(np.zeros((3, 3)), np.zeros((3, 3)), x_e=np.ones(2))
