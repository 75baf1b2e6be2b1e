"""
Random draws used while building and running the model.

All draws go through a ``numpy.random.Generator`` handed in by the caller,
so a model is reproducible from its seed alone.
"""

import math
from typing import Tuple

import numpy as np

from gridattack.core.errors import ParamError


def spawn_generators(seed: int, n: int = 2) -> Tuple[np.random.Generator, ...]:
    """
    Derive ``n`` independent generators from one seed.

    The first stream is used for construction, the second for the attack
    rolls, so adding households never shifts the infection sequence of a
    different run with the same topology.
    """
    children = np.random.SeedSequence(seed).spawn(n)
    return tuple(np.random.default_rng(child) for child in children)


def norm_dist(rng: np.random.Generator, mean: float, std: float) -> float:
    """Draw from Normal(mean, std); a degenerate distribution is a ParamError."""
    if not math.isfinite(mean) or not math.isfinite(std) or std <= 0:
        raise ParamError(f"invalid normal distribution N({mean}, {std})", "norm_dist")
    return float(rng.normal(mean, std))


def uniform_int(rng: np.random.Generator, bounds: Tuple[int, int]) -> int:
    """Draw an integer from the half-open range ``[low, high)``."""
    low, high = bounds
    if low >= high:
        raise ParamError(f"empty range [{low}, {high})", "uniform_int")
    return int(rng.integers(low, high))


def random_percentage(rng: np.random.Generator) -> float:
    """Uniform draw from ``[0, 1)``."""
    return float(rng.random())
