# connectedness/utils/grid.py

import operator

import numpy as np
from typing import Iterator, Sequence, Tuple

from connectedness.errors import SeedOutOfBounds

# Connectedness scores are stored as unsigned 16-bit integers
MAX_SCORE = 65535
SCORE_DTYPE = np.uint16

Coordinate = Tuple[int, ...]


def to_sample_grid(image: np.ndarray, channels: int) -> np.ndarray:
    """
    Convert an image into a grid of per-pixel samples.

    Args:
        image: Array shaped (rows, cols, channels) or (slices, rows, cols, channels).
               Single-channel images may omit the channel axis.
        channels: Number of components each sample must have

    Returns:
        Float64 array with a trailing channel axis
    """
    grid = np.array(image, dtype=np.float64)

    # Scalar images get a trailing channel axis; a 3D array whose last axis
    # has length 1 is read as an image that already has one
    if channels == 1 and (grid.ndim == 2 or (grid.ndim == 3 and grid.shape[-1] != 1)):
        grid = grid[..., np.newaxis]

    spatial_dims = grid.ndim - 1
    if spatial_dims not in (2, 3):
        raise ValueError(
            f"Expected a 2D or 3D grid of samples, got array of shape {grid.shape}"
        )
    if grid.shape[-1] != channels:
        raise ValueError(
            f"Samples have {grid.shape[-1]} components, affinity model expects {channels}"
        )
    if min(grid.shape[:-1]) == 0:
        raise ValueError(f"Grid has an empty axis: {grid.shape[:-1]}")

    return grid


def check_seed(seed: Sequence[int], shape: Sequence[int]) -> Coordinate:
    """
    Validate a seed coordinate against a spatial shape.

    Returns:
        The seed as a tuple of ints
    """
    try:
        # Fractional coordinates are rejected, not truncated
        coord = tuple(operator.index(c) for c in seed)
    except (TypeError, ValueError):
        raise SeedOutOfBounds(f"Seed {seed!r} is not a coordinate") from None

    if len(coord) != len(shape):
        raise SeedOutOfBounds(
            f"Seed {coord} has {len(coord)} coordinates, grid has {len(shape)} dimensions"
        )
    for c, size in zip(coord, shape):
        if c < 0 or c >= size:
            raise SeedOutOfBounds(f"Seed {coord} lies outside grid of shape {tuple(shape)}")

    return coord


def face_offsets(ndim: int) -> Tuple[Coordinate, ...]:
    """Offsets of the direct (4-connected in 2D, 6-connected in 3D) neighbours."""
    offsets = []
    for axis in range(ndim):
        for step in (-1, 1):
            offset = [0] * ndim
            offset[axis] = step
            offsets.append(tuple(offset))
    return tuple(offsets)


def face_neighbors(coord: Coordinate, shape: Sequence[int]) -> Iterator[Tuple[Coordinate, int, int]]:
    """
    Yield the in-bounds direct neighbours of a coordinate.

    Yields:
        Tuple of (neighbour, axis, step) where step is -1 or +1 along axis
    """
    for axis, size in enumerate(shape):
        c = coord[axis]
        if c > 0:
            yield coord[:axis] + (c - 1,) + coord[axis + 1:], axis, -1
        if c < size - 1:
            yield coord[:axis] + (c + 1,) + coord[axis + 1:], axis, 1


def quantize(values) -> np.ndarray:
    """Map affinities in [0, 1] onto the integer score range."""
    scaled = np.rint(np.asarray(values, dtype=np.float64) * MAX_SCORE)
    return np.clip(scaled, 0, MAX_SCORE).astype(SCORE_DTYPE)
