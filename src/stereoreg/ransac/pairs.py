# Andy Zhao
"""
Closed-form rigid registration of 3D point pairs (absolute orientation).

Given pairs (x_i, p_i), find the rotation R and translation t that minimize

    sum_i || x_i - (R @ p_i + t) ||^2

Solved with the quaternion method (Horn / Besl-McKay):
- Cross-covariance of the centered sets:
    sigma = E[p x^T] - mu_p mu_x^T
- Antisymmetric part A = sigma - sigma^T gives the vector
    delta = (A[1,2], A[2,0], A[0,1])
- Symmetric 4x4 key matrix:
    Q = [[ tr(sigma),  delta^T                            ],
         [ delta,      sigma + sigma^T - tr(sigma) * I3   ]]
- The eigenvector of Q with the largest eigenvalue is the optimal unit
  quaternion (w, x, y, z).
- t = mu_x - R @ mu_p
"""

from __future__ import annotations

import math
from typing import NamedTuple

import numpy as np

from .types import RigidTransform, InsufficientDataError, Vec3, quat_to_matrix


class PointPair(NamedTuple):
    index: int          # position in PointPairSet.x / PointPairSet.p
    distance: float     # scalar attached at add() time, used for ordering and mse


def _by_distance(pair: PointPair) -> float:
    return pair.distance


class PointPairSet:
    """
    Growable set of 3D point pairs with a closed-form rigid fit.

    x: target / reference points
    p: source points (the transform maps p onto x)

    Invariant: len(pairs) <= len(x) == len(p). trim() drops entries from
    `pairs` only; the point arrays are never shrunk except by clear().
    """

    MIN_PAIRS = 3

    def __init__(self) -> None:
        self.x: list[Vec3] = []
        self.p: list[Vec3] = []
        self.pairs: list[PointPair] = []
        self.mse: float = float("nan")

    def add(self, a, b, dist: float) -> None:
        """
        Add a single pair (x=a, p=b) together with the distance between a and b.
        """
        index = len(self.x)
        self.x.append(np.asarray(a, dtype=np.float64).reshape(3))
        self.p.append(np.asarray(b, dtype=np.float64).reshape(3))
        self.pairs.append(PointPair(index=index, distance=float(dist)))

    def trim(self, n: int) -> float:
        """
        Keep only the `n` pairs with the lowest distance.

        Returns the largest distance among the survivors, or NaN if no pair is left.
        """
        self.pairs.sort(key=_by_distance)

        if n < len(self.pairs):
            del self.pairs[max(int(n), 0):]

        if self.pairs:
            return self.pairs[-1].distance
        return math.nan

    def get_transform(self) -> RigidTransform:
        """
        Transform that has to be applied to p so that the squared error to the
        corresponding x is minimized.

        Side effect: sets `mse` to the mean of the squared pair distances.
        """
        if self.size() < self.MIN_PAIRS:
            raise InsufficientDataError(
                f"not enough pairs to get transform: {self.size()} < {self.MIN_PAIRS}"
            )

        idx = np.fromiter((pair.index for pair in self.pairs), dtype=np.int64, count=len(self.pairs))
        d = np.fromiter((pair.distance for pair in self.pairs), dtype=np.float64, count=len(self.pairs))
        X = np.stack(self.x)[idx]   # (n,3)
        P = np.stack(self.p)[idx]   # (n,3)

        # Means and cross-covariance
        mu_x = X.mean(axis=0)
        mu_p = P.mean(axis=0)
        mu_d = float(np.mean(d * d))
        sigma_px = (P.T @ X) / X.shape[0] - np.outer(mu_p, mu_x)

        # Symmetric 4x4 key matrix
        A = sigma_px - sigma_px.T
        delta = np.array([A[1, 2], A[2, 0], A[0, 1]], dtype=np.float64)
        tr = float(np.trace(sigma_px))

        Q = np.empty((4, 4), dtype=np.float64)
        Q[0, 0] = tr
        Q[0, 1:] = delta
        Q[1:, 0] = delta
        Q[1:, 1:] = sigma_px + sigma_px.T - tr * np.eye(3)

        # eigh returns eigenvalues in ascending order
        _, eigvecs = np.linalg.eigh(Q)
        q_R = eigvecs[:, -1]

        q_T = mu_x - quat_to_matrix(q_R) @ mu_p
        t = RigidTransform(q_R, q_T)

        self.mse = mu_d
        return t

    def get_mean_square_error(self) -> float:
        return self.mse

    def size(self) -> int:
        """Number of pairs (after any trim)."""
        return len(self.pairs)

    def __len__(self) -> int:
        return self.size()

    def clear(self) -> None:
        """Remove all pairs."""
        self.pairs.clear()
        self.x.clear()
        self.p.clear()
