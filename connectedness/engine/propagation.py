# connectedness/engine/propagation.py

import heapq
import logging
import threading
import time
from concurrent.futures import ThreadPoolExecutor
from typing import Dict, List, Optional, Sequence

import numpy as np

from connectedness.affinity.affinity import PairwiseAffinity
from connectedness.errors import SegmentationCancelled
from connectedness.utils.grid import (
    MAX_SCORE, SCORE_DTYPE, Coordinate, check_seed, face_neighbors, to_sample_grid
)

logger = logging.getLogger(__name__)

# Per-pixel propagation states
UNVISITED = 0
QUEUED = 1
FINALIZED = 2

# Heaps smaller than this are never pruned
MIN_PRUNE_SIZE = 64


class ConnectednessEngine:
    """
    Best-first fuzzy connectedness propagation.

    Computes, for every pixel, the strength of the strongest path to the seed,
    where the strength of a path is its weakest affinity. This is Dijkstra's
    algorithm with (min, max) in place of (+, min): the queued pixel with the
    highest tentative strength is always finalized next.

    The priority queue has no decrease-key. Improved tentative strengths are
    pushed as new entries and a side table records the current best for each
    pixel; popped entries that disagree with it are stale and skipped.
    """

    def __init__(self, config: Dict = None):
        """
        Initialize the engine.

        Args:
            config: Configuration with keys:
                - precompute: Compute all neighbour affinities before propagating
                - workers: Threads used for precomputation (default: one per axis)
                - prune_factor: Rebuild the heap once it holds this many entries
                                per live queued pixel
        """
        self.config = {
            'precompute': True,
            'workers': None,
            'prune_factor': 4,
            **(config or {})
        }
        if self.config['prune_factor'] < 1:
            raise ValueError(f"prune_factor must be at least 1, got {self.config['prune_factor']}")

        self.last_run_stats: Dict = {}

    def run(self,
            image: np.ndarray,
            affinity: PairwiseAffinity,
            seed: Sequence[int],
            cancel_event: Optional[threading.Event] = None) -> np.ndarray:
        """
        Compute the connectedness grid for one seed.

        Args:
            image: Input grid of samples (see to_sample_grid)
            affinity: Configured affinity model
            seed: Seed coordinate, one index per spatial axis
            cancel_event: Optional event checked after each finalized pixel

        Returns:
            uint16 array of connectedness scores, same spatial shape as the input

        Raises:
            InvalidModel: If the affinity model is not configured
            SeedOutOfBounds: If the seed lies outside the grid
            SegmentationCancelled: If cancel_event was set during the run
        """
        self.last_run_stats = {}
        affinity.validate()
        grid = to_sample_grid(image, affinity.channels)
        shape = grid.shape[:-1]
        seed = check_seed(seed, shape)

        start_time = time.time()

        if self.config['precompute']:
            edges = self.precompute_affinities(grid, affinity)

            def edge_affinity(coord: Coordinate, axis: int, step: int) -> int:
                # Edge along an axis is stored at the lower of its two endpoints
                if step < 0:
                    coord = coord[:axis] + (coord[axis] - 1,) + coord[axis + 1:]
                return int(edges[axis][coord])
        else:
            def edge_affinity(coord: Coordinate, axis: int, step: int) -> int:
                neighbor = coord[:axis] + (coord[axis] + step,) + coord[axis + 1:]
                return affinity.affinity(grid[coord], grid[neighbor])

        connectedness = np.zeros(shape, dtype=SCORE_DTYPE)
        state = np.full(shape, UNVISITED, dtype=np.uint8)
        tentative = np.zeros(shape, dtype=np.int32)

        heap: List = []
        live = 0
        pops = stale = finalized = pruned = 0

        def finalize(coord: Coordinate, strength: int) -> None:
            nonlocal live
            state[coord] = FINALIZED
            connectedness[coord] = strength

            for neighbor, axis, step in face_neighbors(coord, shape):
                if state[neighbor] == FINALIZED:
                    continue
                candidate = min(strength, edge_affinity(coord, axis, step))
                # Zero-strength links do not connect anything
                if candidate <= tentative[neighbor]:
                    continue
                if state[neighbor] == UNVISITED:
                    state[neighbor] = QUEUED
                    live += 1
                tentative[neighbor] = candidate
                heapq.heappush(heap, (-candidate, neighbor))

        # The seed is certain to belong to its own object
        tentative[seed] = MAX_SCORE
        finalize(seed, MAX_SCORE)
        finalized = 1

        while heap:
            if cancel_event is not None and cancel_event.is_set():
                logger.info(f"Propagation cancelled after {finalized} finalized pixels")
                raise SegmentationCancelled(f"Run cancelled after {finalized} finalized pixels")

            negative_strength, coord = heapq.heappop(heap)
            pops += 1
            strength = -negative_strength

            if state[coord] == FINALIZED or strength != tentative[coord]:
                stale += 1
                continue

            live -= 1
            finalize(coord, strength)
            finalized += 1

            if len(heap) > self.config['prune_factor'] * live + MIN_PRUNE_SIZE:
                heap = self._prune(heap, state, tentative)
                pruned += 1

        elapsed = time.time() - start_time
        self.last_run_stats = {
            'finalized': finalized,
            'pops': pops,
            'stale_pops': stale,
            'heap_rebuilds': pruned,
            'elapsed': elapsed,
        }
        logger.debug(f"Propagation finished: {self.last_run_stats}")

        return connectedness

    def precompute_affinities(self, grid: np.ndarray, affinity: PairwiseAffinity) -> List[np.ndarray]:
        """
        Compute affinities between every pixel and its successor along each axis.

        Axes are scored concurrently; the model and grid are only read.

        Args:
            grid: Sample grid with a trailing channel axis
            affinity: Configured affinity model

        Returns:
            One uint16 array per spatial axis; entry [p] along axis k is the
            affinity between p and p + 1 along k, so that array is one shorter
            than the grid along k
        """
        ndim = grid.ndim - 1

        def score_axis(axis: int) -> np.ndarray:
            lower = [slice(None)] * grid.ndim
            upper = [slice(None)] * grid.ndim
            lower[axis] = slice(0, -1)
            upper[axis] = slice(1, None)
            return affinity.affinity_map(grid[tuple(lower)], grid[tuple(upper)])

        workers = self.config['workers'] or ndim
        with ThreadPoolExecutor(max_workers=workers) as executor:
            edges = list(executor.map(score_axis, range(ndim)))

        return edges

    @staticmethod
    def _prune(heap: List, state: np.ndarray, tentative: np.ndarray) -> List:
        """Drop stale entries and restore the heap invariant."""
        kept = [
            (negative_strength, coord) for negative_strength, coord in heap
            if state[coord] == QUEUED and -negative_strength == tentative[coord]
        ]
        heapq.heapify(kept)
        return kept
