# connectedness/utils/statistics.py

import logging
from typing import Dict, Sequence, Tuple

import numpy as np

from connectedness.utils.grid import check_seed

logger = logging.getLogger(__name__)


def seed_region(shape: Sequence[int], seed: Sequence[int], radius: int) -> np.ndarray:
    """
    Boolean box of the given radius around a seed, clipped to the grid.

    Args:
        shape: Spatial shape of the grid
        seed: Seed coordinate
        radius: Half-width of the box in pixels

    Returns:
        Boolean array of the given shape
    """
    seed = check_seed(seed, shape)
    radius = int(radius)
    if radius < 0:
        raise ValueError(f"Radius must be non-negative, got {radius}")

    region = np.zeros(tuple(shape), dtype=bool)
    box = tuple(
        slice(max(0, c - radius), min(size, c + radius + 1))
        for c, size in zip(seed, shape)
    )
    region[box] = True
    return region


def neighbor_pairs(grid: np.ndarray, region: np.ndarray) -> Tuple[np.ndarray, np.ndarray]:
    """
    Collect every direct neighbour pair with both pixels inside a region.

    Args:
        grid: Sample grid with a trailing channel axis
        region: Boolean array matching the grid's spatial shape

    Returns:
        Tuple of (first, second) arrays of shape (n_pairs, channels)
    """
    channels = grid.shape[-1]
    firsts, seconds = [], []

    for axis in range(grid.ndim - 1):
        lower = [slice(None)] * region.ndim
        upper = [slice(None)] * region.ndim
        lower[axis] = slice(0, -1)
        upper[axis] = slice(1, None)
        lower, upper = tuple(lower), tuple(upper)

        inside = region[lower] & region[upper]
        firsts.append(grid[lower][inside])
        seconds.append(grid[upper][inside])

    return np.concatenate(firsts).reshape(-1, channels), np.concatenate(seconds).reshape(-1, channels)


def estimate_profiles(grid: np.ndarray,
                      region: np.ndarray,
                      regularization: float = 1e-3) -> Dict[str, Dict[str, np.ndarray]]:
    """
    Estimate homogeneity and difference profiles from a sample region.

    The homogeneity profile is fitted to the mean of each neighbour pair and
    the difference profile to the absolute difference of each pair, matching
    what VectorAffinityModel evaluates.

    Args:
        grid: Sample grid with a trailing channel axis
        region: Boolean mask of pixels assumed to lie inside the object
        regularization: Value added to each covariance diagonal so that
                        flat regions still give invertible matrices

    Returns:
        Dictionary with 'homogeneity' and 'difference' entries, each holding
        'mean' and 'covariance' arrays
    """
    region = np.asarray(region, dtype=bool)
    if region.shape != grid.shape[:-1]:
        raise ValueError(
            f"Region shape {region.shape} does not match grid shape {grid.shape[:-1]}"
        )

    first, second = neighbor_pairs(grid, region)
    if len(first) < 2:
        raise ValueError(f"Need at least 2 neighbour pairs in the region, found {len(first)}")

    pair_means = 0.5 * (first + second)
    pair_differences = np.abs(first - second)
    identity = np.eye(grid.shape[-1])

    profiles = {}
    for name, samples in (('homogeneity', pair_means), ('difference', pair_differences)):
        covariance = np.atleast_2d(np.cov(samples, rowvar=False))
        profiles[name] = {
            'mean': samples.mean(axis=0),
            'covariance': covariance + regularization * identity,
        }

    logger.info(f"Estimated profiles from {len(first)} neighbour pairs "
                f"(homogeneity mean {np.round(profiles['homogeneity']['mean'], 3).tolist()})")

    return profiles
