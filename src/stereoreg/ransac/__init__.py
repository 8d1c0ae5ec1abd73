# Andy Zhao
"""
RANSAC package

This module provides:
- A reusable generic RANSAC implementation
- Typed geometry primitives and the rigid transform model
- Model interface definitions
- Closed-form rigid registration of 3D point pairs
- Plain and uncertainty-weighted rigid fitters
"""

from .types import (
    FloatArray, IndexArray, BoolArray, Vec3, Points3D, Quat, Mat3x3, Mat4x4,
    InsufficientDataError, RigidTransform, ModelFitter, RansacResult,
    quat_to_matrix, matrix_to_quat, as_points3d,
)

from .sampler import pick_random_index

from .pairs import PointPair, PointPairSet

from .rigid_fitter import RigidFitter, UncertainRigidFitter

from .core import ransac_single_model

__all__ = [
    "FloatArray", "IndexArray", "BoolArray", "Vec3", "Points3D", "Quat", "Mat3x3", "Mat4x4",
    "InsufficientDataError", "RigidTransform", "ModelFitter", "RansacResult",
    "quat_to_matrix", "matrix_to_quat", "as_points3d",
    "pick_random_index",
    "PointPair", "PointPairSet",
    "RigidFitter", "UncertainRigidFitter",
    "ransac_single_model",
]
