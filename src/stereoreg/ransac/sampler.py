# Andy Zhao
"""
Random minimal-sample selection for RANSAC.

The generator is always passed in explicitly, so a seeded
np.random.Generator gives reproducible sample sequences.
"""

from __future__ import annotations

import numpy as np

from .types import IndexArray


def pick_random_index(
        population_size: int,
        sample_size: int,
        rng: np.random.Generator,
) -> IndexArray:
    """
    Draw `sample_size` distinct indices uniformly from [0, population_size).

    Shuffles the full index range and keeps the first `sample_size` entries,
    so every subset (and every ordering) is equally likely.
    """
    population_size = int(population_size)
    sample_size = int(sample_size)

    if sample_size < 0:
        raise ValueError(f"sample_size must be >= 0, got {sample_size}")
    if population_size < sample_size:
        raise ValueError(
            f"Cannot draw {sample_size} distinct indices from a population of {population_size}"
        )

    a = rng.permutation(population_size)
    return a[:sample_size].astype(np.int64)
