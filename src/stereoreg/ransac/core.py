# Andy Zhao
"""
Generic RANSAC loop (model-agnostic).

RANSAC overview:
- Randomly sample a *minimal* subset of correspondences (kernel)
- Fit a candidate model from that subset; resample while the fit is degenerate
- Score all correspondences by computing residual errors
- Mark inliers where error < fitness_threshold
- Keep the model with the most inliers
- Shrink the iteration budget as the best inlier ratio improves

Uses the ModelFitter Protocol from types.py, so the same loop drives the
plain and the uncertainty-weighted rigid fitters.
"""
from __future__ import annotations

import logging
import os
from typing import Optional, TypeVar

import numpy as np

from .types import IndexArray, ModelFitter, RansacResult
from .sampler import pick_random_index

M = TypeVar("M")

logger = logging.getLogger(__name__)
_RANSAC_DEBUG = os.environ.get("STEREOREG_RANSAC_DEBUG", "0") == "1"

# Clamp for the all-outlier-trial probability, keeps both logs finite
_EPS = float(np.finfo(np.float32).eps)


def _soft_iter_limit(
        *,
        confidence: float,
        inlier_ratio: float,
        kernel_size: int,
) -> int:
    """
    Number of iterations after which, with probability `confidence`, at least
    one all-inlier kernel has been drawn.

    inlier ratio w = (# inliers) / N, kernel size s:
    - P(kernel is all inliers)      = w^s
    - P(trial has an outlier)       = 1 - w^s
    - P(k trials all have outliers) = (1 - w^s)^k <= 1 - confidence

    Formula:
       k = log(1 - confidence) / log(1 - w^s)
    """
    if kernel_size <= 0:
        raise ValueError("kernel_size must be >= 1")

    p_fail = 1.0 - float(inlier_ratio) ** int(kernel_size)
    p_fail = min(max(p_fail, _EPS), 1.0 - _EPS)

    k = np.log(1.0 - confidence) / np.log(p_fail)
    return max(1, int(np.ceil(k)))


def ransac_single_model(
        model_fitter: ModelFitter[M],
        *,
        fitness_threshold: float,
        kernel_size: int = 3,
        hard_iter_limit: int = 100,
        confidence: float = 0.99,
        rng: Optional[np.random.Generator] = None,
        seed: int = 0,
) -> Optional[RansacResult[M]]:
    """
    Run RANSAC over the population held by `model_fitter`.

    Inputs:
    - model_fitter: provides sample_count, fit_model, test_sample
      (and optionally the vectorised test_samples)
    - fitness_threshold: a correspondence is an inlier if its residual is below this
    - kernel_size: minimal number of correspondences per hypothesis (rigid = 3)
    - hard_iter_limit: upper bound on iterations, and on consecutive degenerate draws
    - confidence: desired probability of drawing at least one all-inlier kernel
    - rng: generator used for sampling; if None, np.random.default_rng(seed)

    Returns:
    - RansacResult with best model + inlier indices, or None if no valid
      model could be fitted within hard_iter_limit.
    """
    if not 0.0 < confidence < 1.0:
        raise ValueError(f"confidence must be in (0, 1), got {confidence}")
    if kernel_size <= 0:
        raise ValueError(f"kernel_size must be >= 1, got {kernel_size}")

    n_samples = int(model_fitter.sample_count)
    if n_samples < kernel_size:
        logger.debug("RANSAC: %d samples, cannot draw a kernel of %d", n_samples, kernel_size)
        return None

    if rng is None:
        rng = np.random.default_rng(seed)

    test_samples = getattr(model_fitter, "test_samples", None)

    best_score = 0
    best_model: Optional[M] = None
    best_inliers: Optional[IndexArray] = None

    iteration = 0
    soft_iter_limit = 1  # updated from the size of the best inlier set

    # ---------- Main RANSAC Loop ----------
    while iteration < soft_iter_limit and iteration < hard_iter_limit:

        # Sample and fit until the kernel gives a valid model
        current_model: Optional[M] = None
        draws = 0
        while current_model is None:
            ind = pick_random_index(n_samples, kernel_size, rng)
            current_model = model_fitter.fit_model(ind)
            draws += 1
            if current_model is None and draws > hard_iter_limit:
                logger.debug(
                    "RANSAC: %d consecutive degenerate samples, giving up after %d iterations",
                    draws, iteration,
                )
                return None

        # Score every correspondence
        if test_samples is not None:
            err = np.asarray(test_samples(current_model), dtype=np.float64)
        else:
            err = np.fromiter(
                (model_fitter.test_sample(i, current_model) for i in range(n_samples)),
                dtype=np.float64,
                count=n_samples,
            )
        inliers: IndexArray = np.flatnonzero(err < fitness_threshold).astype(np.int64)
        n_inliers = int(inliers.shape[0])

        if n_inliers > best_score:
            best_score = n_inliers
            best_model = current_model
            best_inliers = inliers

            w = best_score / float(n_samples)
            soft_iter_limit = _soft_iter_limit(
                confidence=confidence,
                inlier_ratio=w,
                kernel_size=kernel_size,
            )
            if _RANSAC_DEBUG:
                logger.debug(
                    "RANSAC better model: inliers=%d/%d, w=%.3f, soft_iter_limit=%d",
                    best_score, n_samples, w, soft_iter_limit,
                )

        iteration += 1

    # A kernel member may sit exactly on the threshold, leaving no strict inlier
    if best_model is None or best_inliers is None:
        logger.debug("RANSAC: no model with inliers after %d iterations", iteration)
        return None

    return RansacResult(
        model=best_model,
        inliers=best_inliers,
        num_inliers=best_score,
        iterations=iteration,
        threshold=float(fitness_threshold),
    )
