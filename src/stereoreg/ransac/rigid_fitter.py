# Andy Zhao
"""
Adapters: make the closed-form rigid solver conform to the ModelFitter Protocol.

Both fitters are read-only views over the caller's correspondence arrays:
    x: (N,3) target / reference points
    p: (N,3) source points, mapped onto x by the model

RigidFitter scores a correspondence by its Euclidean residual.
UncertainRigidFitter divides that residual by the combined per-point
uncertainty, so correspondences from detectors with different accuracy can
share one threshold.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import Optional, Sequence

import numpy as np

from .types import FloatArray, Points3D, RigidTransform, ModelFitter, as_points3d
from .pairs import PointPairSet


@dataclass(frozen=True, eq=False)
class RigidFitter(ModelFitter[RigidTransform]):
    x: Points3D
    p: Points3D
    error_threshold: float = 0.1
    min_samples: int = field(default=PointPairSet.MIN_PAIRS, init=False)

    def __post_init__(self) -> None:
        x = as_points3d(self.x, "x")
        p = as_points3d(self.p, "p")
        if x.shape != p.shape:
            raise ValueError(f"x and p must have same shape, got {x.shape} vs {p.shape}")
        object.__setattr__(self, "x", x)
        object.__setattr__(self, "p", p)

    @property
    def sample_count(self) -> int:
        return int(self.x.shape[0])

    def fit_model(self, indices: Sequence[int]) -> Optional[RigidTransform]:
        """
        Fit a rigid transform to the correspondences at `indices`.

        The fit must explain its own sample: if any member's residual under the
        fitted model exceeds error_threshold, the sample is rejected.
        """
        if len(indices) < self.min_samples:
            return None

        pairs = PointPairSet()
        for index in indices:
            v1 = self.x[index]
            v2 = self.p[index]
            pairs.add(v1, v2, float(np.linalg.norm(v2 - v1)))

        m = pairs.get_transform()

        for index in indices:
            if self.test_sample(index, m) > self.error_threshold:
                return None
        return m

    def test_sample(self, index: int, model: RigidTransform) -> float:
        v2 = model.apply(self.p[index])
        return float(np.linalg.norm(v2 - self.x[index]))

    def test_samples(self, model: RigidTransform) -> FloatArray:
        predicted = model.apply(self.p)
        return np.linalg.norm(predicted - self.x, axis=1).astype(np.float64)


@dataclass(frozen=True, eq=False)
class UncertainRigidFitter(RigidFitter):
    """
    x_e, p_e: (N,) per-point uncertainties of x and p.

    residual_i = || model(p_i) - x_i || / sqrt(x_e_i^2 + p_e_i^2)
    """
    x_e: FloatArray = field(default=None, kw_only=True)
    p_e: FloatArray = field(default=None, kw_only=True)

    def __post_init__(self) -> None:
        super().__post_init__()
        if self.x_e is None or self.p_e is None:
            raise ValueError("UncertainRigidFitter requires both x_e and p_e")

        x_e = np.asarray(self.x_e, dtype=np.float64).reshape(-1)
        p_e = np.asarray(self.p_e, dtype=np.float64).reshape(-1)
        n = self.sample_count
        if x_e.shape[0] != n or p_e.shape[0] != n:
            raise ValueError(
                f"x_e and p_e must have length N={n}; got {x_e.shape[0]} and {p_e.shape[0]}"
            )
        object.__setattr__(self, "x_e", x_e)
        object.__setattr__(self, "p_e", p_e)

    def _scale(self, index=slice(None)):
        # TODO crude normalization; a full covariance per point would weight each axis separately
        return np.sqrt(self.x_e[index] ** 2 + self.p_e[index] ** 2)

    def test_sample(self, index: int, model: RigidTransform) -> float:
        return float(super().test_sample(index, model) / self._scale(index))

    def test_samples(self, model: RigidTransform) -> FloatArray:
        return super().test_samples(model) / self._scale()
