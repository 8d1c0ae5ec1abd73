# Andy Zhao
"""
Utilities for cleaning 3D correspondence sets before robust estimation.

Remove:
- NaNs/Infs (failed triangulations, invalid disparities)
- invalid uncertainties (non-finite or non-positive)
- extreme displacement outliers (helps stability and speed)
"""

from __future__ import annotations

import numpy as np

from ..ransac.types import Points3D, BoolArray, FloatArray, as_points3d


def clean_points3d(
    x: Points3D,
    p: Points3D,
    *,
    x_e: FloatArray | None = None,
    p_e: FloatArray | None = None,
    max_motion: float | None = None,
) -> tuple[Points3D, Points3D, BoolArray]:
    x = as_points3d(x, "x")
    p = as_points3d(p, "p")

    if x.shape != p.shape:
        raise ValueError(f"Expected x/p shape (N,3) matching; got {x.shape} vs {p.shape}")

    mask = np.ones((x.shape[0],), dtype=bool)

    # Check if points are finite
    mask &= np.isfinite(x).all(axis=1)
    mask &= np.isfinite(p).all(axis=1)

    # Uncertainties are used as divisors
    for name, e in (("x_e", x_e), ("p_e", p_e)):
        if e is None:
            continue
        e = np.asarray(e, dtype=np.float64).reshape(-1)
        if e.shape[0] != x.shape[0]:
            raise ValueError(f"{name} must have length N; got {e.shape[0]} vs {x.shape[0]}")
        mask &= np.isfinite(e) & (e > 0.0)

    # big-jump pruning
    if max_motion is not None:
        with np.errstate(invalid="ignore"):
            motion = np.linalg.norm(p - x, axis=1)
            mask &= motion <= float(max_motion)

    return x[mask], p[mask], mask
