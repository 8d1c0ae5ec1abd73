from .clean_points import clean_points3d
from .isometry import IsometryFilterConfig, IsometryFilterResult, isometry_filter

__all__ = [
    "clean_points3d",
    "IsometryFilterConfig", "IsometryFilterResult", "isometry_filter",
]
