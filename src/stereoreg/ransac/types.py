# Andy Zhao

"""
Shared typed primitives for the 3D registration / RANSAC pipeline.

Defines:
- Typed NumPy aliases for geometry
    - Points are (N,3) float arrays
    - Rotations are unit quaternions (w, x, y, z)
- The rigid transform model (rotation + translation)
- Generic model-fitter protocol for RANSAC
- Structured RANSAC result container (model + inliers + stats)
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import Protocol, TypeVar, Generic, Optional, Sequence, TypeAlias

import cv2
import numpy as np
import numpy.typing as npt

# ---------- Numpy typing aliases ----------
FloatArray: TypeAlias = npt.NDArray[np.float64]
IndexArray: TypeAlias = npt.NDArray[np.int64]
BoolArray: TypeAlias = npt.NDArray[np.bool_]

Vec3: TypeAlias = FloatArray          # shape: (3,)
Points3D: TypeAlias = FloatArray      # shape: (N, 3)
Quat: TypeAlias = FloatArray          # shape: (4,), order (w, x, y, z)
Mat3x3: TypeAlias = FloatArray        # shape: (3, 3)
Mat4x4: TypeAlias = FloatArray        # shape: (4, 4)

M = TypeVar("M")


class InsufficientDataError(ValueError):
    """Raised when a closed-form fit is requested with fewer pairs than it needs."""


# ---------- Quaternion helpers ----------
def quat_to_matrix(q: Quat) -> Mat3x3:
    """
    Convert a quaternion (w, x, y, z) into a 3x3 rotation matrix.

    The quaternion is normalized first, so any non-zero scaling of a unit
    quaternion yields the same rotation.
    """
    q = np.asarray(q, dtype=np.float64)
    if q.shape != (4,):
        raise ValueError(f"Expected quaternion shape (4,), got {q.shape}")
    n = np.linalg.norm(q)
    if n == 0.0 or not np.isfinite(n):
        raise ValueError("Quaternion must be finite and non-zero")
    w, x, y, z = q / n

    return np.array(
        [
            [1 - 2 * (y * y + z * z), 2 * (x * y - w * z), 2 * (x * z + w * y)],
            [2 * (x * y + w * z), 1 - 2 * (x * x + z * z), 2 * (y * z - w * x)],
            [2 * (x * z - w * y), 2 * (y * z + w * x), 1 - 2 * (x * x + y * y)],
        ],
        dtype=np.float64,
    )


def matrix_to_quat(R: Mat3x3) -> Quat:
    """
    Convert a 3x3 rotation matrix into a unit quaternion (w, x, y, z) with w >= 0.

    Uses the largest-diagonal branch to stay well conditioned near 180 degree rotations.
    """
    R = np.asarray(R, dtype=np.float64)
    if R.shape != (3, 3):
        raise ValueError(f"Expected R shape (3,3), got {R.shape}")

    tr = float(np.trace(R))
    if tr > 0.0:
        s = 2.0 * np.sqrt(tr + 1.0)
        q = np.array([0.25 * s,
                      (R[2, 1] - R[1, 2]) / s,
                      (R[0, 2] - R[2, 0]) / s,
                      (R[1, 0] - R[0, 1]) / s])
    elif R[0, 0] > R[1, 1] and R[0, 0] > R[2, 2]:
        s = 2.0 * np.sqrt(1.0 + R[0, 0] - R[1, 1] - R[2, 2])
        q = np.array([(R[2, 1] - R[1, 2]) / s,
                      0.25 * s,
                      (R[0, 1] + R[1, 0]) / s,
                      (R[0, 2] + R[2, 0]) / s])
    elif R[1, 1] > R[2, 2]:
        s = 2.0 * np.sqrt(1.0 + R[1, 1] - R[0, 0] - R[2, 2])
        q = np.array([(R[0, 2] - R[2, 0]) / s,
                      (R[0, 1] + R[1, 0]) / s,
                      0.25 * s,
                      (R[1, 2] + R[2, 1]) / s])
    else:
        s = 2.0 * np.sqrt(1.0 + R[2, 2] - R[0, 0] - R[1, 1])
        q = np.array([(R[1, 0] - R[0, 1]) / s,
                      (R[0, 2] + R[2, 0]) / s,
                      (R[1, 2] + R[2, 1]) / s,
                      0.25 * s])

    return _canonical_quat(q)


def _canonical_quat(q: np.ndarray) -> Quat:
    # q and -q are the same rotation; keep w >= 0
    q = np.asarray(q, dtype=np.float64)
    q = q / np.linalg.norm(q)
    if q[0] < 0.0:
        q = -q
    return q


# ---------- Rigid transform model ----------
@dataclass(frozen=True, eq=False)
class RigidTransform:
    """
    Rigid transform = translate(translation) o rotate(rotation).

    Applied to a point p:

        p' = R(q) @ p + t

    rotation:    unit quaternion (w, x, y, z), stored with w >= 0
    translation: (3,) vector
    """
    rotation: Quat
    translation: Vec3

    def __post_init__(self) -> None:
        q = np.asarray(self.rotation, dtype=np.float64).reshape(-1)
        t = np.asarray(self.translation, dtype=np.float64).reshape(-1)
        if q.shape != (4,):
            raise ValueError(f"Expected rotation quaternion shape (4,), got {q.shape}")
        if t.shape != (3,):
            raise ValueError(f"Expected translation shape (3,), got {t.shape}")
        if not (np.isfinite(q).all() and np.isfinite(t).all()):
            raise ValueError("RigidTransform requires finite rotation and translation")
        if not np.any(q):
            raise ValueError("RigidTransform rotation quaternion must be non-zero")

        q = _canonical_quat(q)
        q.setflags(write=False)
        t = t.copy()
        t.setflags(write=False)

        # frozen dataclass: bypass __setattr__ to store the normalized arrays
        object.__setattr__(self, "rotation", q)
        object.__setattr__(self, "translation", t)

    # ----- constructors -----
    @classmethod
    def identity(cls) -> "RigidTransform":
        return cls(np.array([1.0, 0.0, 0.0, 0.0]), np.zeros(3))

    @classmethod
    def from_matrix(cls, R: Mat3x3, t: Sequence[float] | Vec3) -> "RigidTransform":
        return cls(matrix_to_quat(R), np.asarray(t, dtype=np.float64))

    @classmethod
    def from_rvec_tvec(cls, rvec, tvec) -> "RigidTransform":
        """Build from an OpenCV rotation vector (axis * angle) and translation."""
        rvec = np.asarray(rvec, dtype=np.float64).reshape(3, 1)
        R, _ = cv2.Rodrigues(rvec)
        return cls.from_matrix(R, np.asarray(tvec, dtype=np.float64).reshape(3))

    # ----- views -----
    @property
    def rotation_matrix(self) -> Mat3x3:
        return quat_to_matrix(self.rotation)

    @property
    def matrix(self) -> Mat4x4:
        """4x4 homogeneous matrix [[R, t], [0, 0, 0, 1]]."""
        T = np.eye(4, dtype=np.float64)
        T[:3, :3] = self.rotation_matrix
        T[:3, 3] = self.translation
        return T

    def to_rvec_tvec(self) -> tuple[Vec3, Vec3]:
        """Return (rvec, tvec) as used by OpenCV pose functions."""
        rvec, _ = cv2.Rodrigues(self.rotation_matrix)
        return rvec.reshape(3).astype(np.float64), self.translation.copy()

    # ----- algebra -----
    def apply(self, pts: Vec3 | Points3D) -> Vec3 | Points3D:
        """
        Apply the transform to a single point (3,) or a batch (N,3).
        """
        pts = np.asarray(pts, dtype=np.float64)
        if pts.shape == (3,):
            return self.rotation_matrix @ pts + self.translation
        if pts.ndim != 2 or pts.shape[1] != 3:
            raise ValueError(f"Expected point shape (3,) or (N,3), got {pts.shape}")
        # Each point is a row, so multiply by R^T
        return pts @ self.rotation_matrix.T + self.translation

    __call__ = apply

    def inverse(self) -> "RigidTransform":
        R_inv = self.rotation_matrix.T
        return RigidTransform.from_matrix(R_inv, -R_inv @ self.translation)

    def compose(self, other: "RigidTransform") -> "RigidTransform":
        """Return self o other, i.e. apply `other` first."""
        R = self.rotation_matrix @ other.rotation_matrix
        t = self.rotation_matrix @ other.translation + self.translation
        return RigidTransform.from_matrix(R, t)

    def is_close(self, other: "RigidTransform", *, atol: float = 1e-6) -> bool:
        """Compare rotation matrices and translations within an absolute tolerance."""
        return bool(
            np.allclose(self.rotation_matrix, other.rotation_matrix, atol=atol)
            and np.allclose(self.translation, other.translation, atol=atol)
        )


# ---------- Generic model fitter protocol ----------
class ModelFitter(Protocol[M]):
    """
    Interface that a fitter must implement to be usable by the generic RANSAC engine.

    The fitter is a read-only view over the full population of correspondences.
    RANSAC only ever talks to it through indices:
    1) Fit a model from a subset of indices (usually a minimal sample)
    2) Score single correspondences

    A fitter may also define `test_samples(model) -> FloatArray`, the residuals
    of the whole population as one (N,) array. The engine uses it as a fast
    path when present and falls back to calling test_sample per index.
    """

    @property
    def sample_count(self) -> int:
        """Size of the population (number of correspondences)."""
        ...

    def fit_model(self, indices: Sequence[int]) -> Optional[M]:
        """
        Fit a model from the correspondences at `indices`.
        Return None if the sample is degenerate or fails its own consistency check.
        """
        ...

    def test_sample(self, index: int, model: M) -> float:
        """Residual of a single correspondence under `model`. Smaller = better."""
        ...



# ---------- RANSAC output container ----------
@dataclass(frozen=True)
class RansacResult(Generic[M]):
    model: M                # best model found
    inliers: IndexArray     # ascending indices with residual < threshold under model
    num_inliers: int        # len(inliers)
    iterations: int         # how many RANSAC iterations were actually run
    threshold: float        # the fitness threshold used

    def inlier_mask(self, n: int) -> BoolArray:
        """Boolean mask of length n, True at inlier indices."""
        mask = np.zeros((n,), dtype=bool)
        mask[self.inliers] = True
        return mask


# ---------- Helper Function ----------
def as_points3d(pts, name: str = "points") -> Points3D:
    """
    Convert input into a (N,3) float64 array, raising on any other shape.
    """
    arr = np.asarray(pts, dtype=np.float64)
    if arr.ndim != 2 or arr.shape[1] != 3:
        raise ValueError(f"Expected {name} shape (N, 3) but got {arr.shape}")
    return arr
