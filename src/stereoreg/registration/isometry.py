# Andy Zhao
"""
Isometry filter for 3D stereo feature correspondences.

Between two stereo frames the scene is static, so true correspondences are
related by one rigid motion (an isometry). This filter:

1) builds a rigid fitter over the correspondences (uncertainty-weighted
   when per-point uncertainties are given)
2) runs RANSAC to find the largest set consistent with one rigid transform
3) optionally refits the transform on all inliers (closed form, least squares)

Usage:
    res = isometry_filter(x, p, IsometryFilterConfig(threshold=0.05))
    if res is not None:
        x_in, p_in = x[res.inlier_mask], p[res.inlier_mask]
"""

from __future__ import annotations

from dataclasses import dataclass
import logging
from typing import Optional

import numpy as np

from ..ransac.core import ransac_single_model
from ..ransac.pairs import PointPairSet
from ..ransac.rigid_fitter import RigidFitter, UncertainRigidFitter
from ..ransac.types import BoolArray, FloatArray, IndexArray, Points3D, RigidTransform

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class IsometryFilterConfig:
    """
    max_steps:
      hard RANSAC iteration cap (also bounds consecutive degenerate draws)

    threshold:
      residual below which a correspondence counts as an inlier. Used both
      for the kernel self-consistency check and for scoring. In scene units
      for the plain fitter, in multiples of the combined uncertainty when
      x_e / p_e are given.

    kernel_size / confidence / seed:
      RANSAC minimal sample size, stopping confidence and RNG seed

    refit:
      refit the final transform on all inliers instead of returning the
      best kernel model
    """
    max_steps: int = 1000
    threshold: float = 0.1
    kernel_size: int = 3
    confidence: float = 0.99
    seed: int = 0
    refit: bool = True


@dataclass(frozen=True)
class IsometryFilterResult:
    model: RigidTransform       # transform mapping p onto x
    inliers: IndexArray         # inlier indices (ascending)
    inlier_mask: BoolArray      # same, as (N,) mask
    rms_error: float            # RMS residual of the inliers under `model`
    iterations: int             # RANSAC iterations run
    refit: bool                 # True if `model` was refit on all inliers


def isometry_filter(
        x: Points3D,
        p: Points3D,
        config: Optional[IsometryFilterConfig] = None,
        *,
        x_e: Optional[FloatArray] = None,
        p_e: Optional[FloatArray] = None,
        rng: Optional[np.random.Generator] = None,
) -> Optional[IsometryFilterResult]:
    """
    Robustly estimate the rigid transform p -> x and flag inlier correspondences.

    Returns None if RANSAC could not find a valid model.
    """
    if config is None:
        config = IsometryFilterConfig()
    if (x_e is None) != (p_e is None):
        raise ValueError("x_e and p_e must be given together")

    if x_e is not None:
        fitter = UncertainRigidFitter(x, p, config.threshold, x_e=x_e, p_e=p_e)
    else:
        fitter = RigidFitter(x, p, config.threshold)

    res = ransac_single_model(
        fitter,
        fitness_threshold=config.threshold,
        kernel_size=config.kernel_size,
        hard_iter_limit=config.max_steps,
        confidence=config.confidence,
        rng=rng,
        seed=config.seed,
    )
    if res is None:
        logger.info("isometry filter: no rigid model found among %d correspondences", fitter.sample_count)
        return None

    model = res.model
    refit = False
    if config.refit and res.num_inliers >= PointPairSet.MIN_PAIRS:
        pairs = PointPairSet()
        for i in res.inliers:
            pairs.add(fitter.x[i], fitter.p[i], fitter.test_sample(i, res.model))
        model = pairs.get_transform()
        refit = True

    # Recompute RMS on inliers for the final model
    err = fitter.test_samples(model)[res.inliers]
    rms = float(np.sqrt(np.mean(err * err))) if err.size else float("nan")

    logger.debug(
        "isometry filter: inliers=%d/%d, rms=%.4g, iterations=%d",
        res.num_inliers, fitter.sample_count, rms, res.iterations,
    )

    return IsometryFilterResult(
        model=model,
        inliers=res.inliers,
        inlier_mask=res.inlier_mask(fitter.sample_count),
        rms_error=rms,
        iterations=res.iterations,
        refit=refit,
    )
