# tests/test_engine.py

import heapq
import threading

import numpy as np
import pytest

from connectedness.affinity import PairwiseAffinity, ScalarAffinityModel, VectorAffinityModel
from connectedness.engine import ConnectednessEngine
from connectedness.engine.propagation import FINALIZED, QUEUED, UNVISITED
from connectedness.errors import InvalidModel, SeedOutOfBounds, SegmentationCancelled
from connectedness.utils.grid import MAX_SCORE, face_neighbors, to_sample_grid

from conftest import make_model


class BarrierAffinity(PairwiseAffinity):
    """Full affinity between dark pixels, none across anything bright."""

    @property
    def channels(self):
        return 1

    @property
    def is_configured(self):
        return True

    def configure(self, **params):
        pass

    def fuzzy_affinity(self, first, second):
        dark = (first[..., 0] < 500) & (second[..., 0] < 500)
        return dark.astype(np.float64)


def brute_force_connectedness(grid, affinity, seed):
    """Max over all simple paths of the weakest link, by exhaustive search."""
    shape = grid.shape[:-1]
    best = np.zeros(shape, dtype=np.int64)

    def visit(coord, strength, seen):
        best[coord] = max(best[coord], strength)
        for neighbor, _, _ in face_neighbors(coord, shape):
            if neighbor in seen:
                continue
            link = affinity.affinity(grid[coord], grid[neighbor])
            visit(neighbor, min(strength, link), seen | {neighbor})

    visit(seed, MAX_SCORE, {seed})
    return best


class TestConnectednessEngine:
    """Test the ConnectednessEngine class."""

    def test_default_config(self):
        engine = ConnectednessEngine()

        assert engine.config['precompute'] is True
        assert engine.config['prune_factor'] == 4
        assert engine.last_run_stats == {}

    def test_invalid_prune_factor(self):
        with pytest.raises(ValueError):
            ConnectednessEngine({'prune_factor': 0})

    def test_uniform_grid(self, uniform_grid, model):
        """Every cell of a uniform grid is fully connected to the seed."""
        connectedness = ConnectednessEngine().run(uniform_grid, model, (0, 0))

        assert connectedness.shape == (4, 4)
        assert connectedness.dtype == np.uint16
        assert np.all(connectedness == MAX_SCORE)

    def test_outlier_is_weaker(self, outlier_grid, model):
        connectedness = ConnectednessEngine().run(outlier_grid, model, (0, 0))

        outlier = int(connectedness[2, 2])
        for neighbor, _, _ in face_neighbors((2, 2), (4, 4)):
            assert outlier < connectedness[neighbor]
        assert 0 < outlier < MAX_SCORE

        # The only path into the outlier crosses one of its own links
        assert outlier == model.affinity(outlier_grid[2, 2], outlier_grid[2, 1])

    def test_seed_has_max_score(self, outlier_grid, model):
        connectedness = ConnectednessEngine().run(outlier_grid, model, (2, 2))

        assert connectedness[2, 2] == MAX_SCORE
        assert np.all(connectedness <= MAX_SCORE)

    @pytest.mark.parametrize("rng_seed", [0, 1, 2, 3, 4])
    @pytest.mark.parametrize("seed", [(0, 0), (1, 1), (2, 1)])
    def test_matches_brute_force(self, rng_seed, seed):
        """Scores equal the max-min path strength found by exhaustive search."""
        rng = np.random.default_rng(rng_seed)
        grid = rng.uniform(0.0, 60.0, size=(3, 3, 3))
        model = make_model(mean=(30.0, 30.0, 30.0), variance=200.0, difference_variance=150.0)

        expected = brute_force_connectedness(grid, model, seed)
        connectedness = ConnectednessEngine({'precompute': False}).run(grid, model, seed)

        np.testing.assert_array_equal(connectedness, expected)

    def test_precompute_matches_on_demand(self):
        rng = np.random.default_rng(7)
        grid = rng.uniform(0.0, 60.0, size=(6, 5, 3))
        model = make_model(mean=(30.0, 30.0, 30.0), variance=200.0, difference_variance=150.0)

        precomputed = ConnectednessEngine({'precompute': True}).run(grid, model, (3, 2))
        on_demand = ConnectednessEngine({'precompute': False}).run(grid, model, (3, 2))

        np.testing.assert_array_equal(precomputed, on_demand)

    def test_precompute_affinities_shapes(self, uniform_grid, model):
        engine = ConnectednessEngine()
        edges = engine.precompute_affinities(to_sample_grid(uniform_grid, 3), model)

        assert [e.shape for e in edges] == [(3, 4), (4, 3)]
        assert all(np.all(e == MAX_SCORE) for e in edges)

    def test_volume(self):
        volume = np.full((3, 3, 3), 10.0)
        model = ScalarAffinityModel()
        model.configure(homogeneity_mean=10.0, homogeneity_variance=4.0,
                        difference_mean=0.0, difference_variance=4.0)

        connectedness = ConnectednessEngine().run(volume, model, (1, 1, 1))

        assert connectedness.shape == (3, 3, 3)
        assert np.all(connectedness == MAX_SCORE)

    def test_zero_affinity_disconnects(self):
        """Pixels behind a zero-affinity barrier keep a score of 0."""
        grid = np.zeros((3, 5))
        grid[:, 2] = 1000.0

        engine = ConnectednessEngine()
        connectedness = engine.run(grid, BarrierAffinity(), (0, 0))

        assert np.all(connectedness[:, :2] == MAX_SCORE)
        assert np.all(connectedness[:, 2:] == 0)
        assert engine.last_run_stats['finalized'] == 6

    def test_run_stats(self, outlier_grid, model):
        engine = ConnectednessEngine()
        connectedness = engine.run(outlier_grid, model, (0, 0))

        stats = engine.last_run_stats
        assert stats['finalized'] == np.count_nonzero(connectedness)
        assert stats['pops'] == stats['finalized'] - 1 + stats['stale_pops']
        assert stats['elapsed'] >= 0.0

    @pytest.mark.parametrize("seed", [(4, 0), (0, 4), (-1, 0), (0,), (0, 0, 0)])
    def test_seed_out_of_bounds(self, uniform_grid, model, seed):
        with pytest.raises(SeedOutOfBounds):
            ConnectednessEngine().run(uniform_grid, model, seed)

    @pytest.mark.parametrize("seed", [(0.9, 0.9), (1.0, 0), ("0", "0")])
    def test_non_integer_seed(self, uniform_grid, model, seed):
        """Fractional seeds are rejected instead of being truncated."""
        with pytest.raises(SeedOutOfBounds, match="is not a coordinate"):
            ConnectednessEngine().run(uniform_grid, model, seed)

    def test_numpy_integer_seed(self, uniform_grid, model):
        seed = np.array([1, 2])
        connectedness = ConnectednessEngine().run(uniform_grid, model, (seed[0], seed[1]))
        assert connectedness[1, 2] == MAX_SCORE

    @pytest.mark.parametrize("shape", [(4, 1), (1, 4), (1, 1)])
    def test_scalar_grid_with_single_row_or_column(self, shape):
        model = ScalarAffinityModel()
        model.configure(homogeneity_mean=10.0, homogeneity_variance=4.0,
                        difference_mean=0.0, difference_variance=4.0)

        connectedness = ConnectednessEngine().run(np.full(shape, 10.0), model, (0, 0))

        assert connectedness.shape == shape
        assert np.all(connectedness == MAX_SCORE)

    def test_unconfigured_model(self, uniform_grid):
        with pytest.raises(InvalidModel):
            ConnectednessEngine().run(uniform_grid, VectorAffinityModel(), (0, 0))

    def test_channel_mismatch(self, model):
        with pytest.raises(ValueError):
            ConnectednessEngine().run(np.zeros((4, 4, 2)), model, (0, 0))

    def test_cancellation(self, uniform_grid, model):
        cancel_event = threading.Event()
        cancel_event.set()

        engine = ConnectednessEngine()
        with pytest.raises(SegmentationCancelled):
            engine.run(uniform_grid, model, (0, 0), cancel_event=cancel_event)
        assert engine.last_run_stats == {}

    def test_unset_cancel_event(self, uniform_grid, model):
        connectedness = ConnectednessEngine().run(uniform_grid, model, (0, 0),
                                                  cancel_event=threading.Event())
        assert np.all(connectedness == MAX_SCORE)

    def test_prune_drops_stale_entries(self):
        state = np.array([QUEUED, QUEUED, FINALIZED, UNVISITED], dtype=np.uint8)
        tentative = np.array([500, 300, 900, 0], dtype=np.int32)
        heap = [(-500, (0,)), (-200, (1,)), (-300, (1,)), (-900, (2,)), (-100, (0,))]
        heapq.heapify(heap)

        pruned = ConnectednessEngine._prune(heap, state, tentative)

        assert sorted(pruned) == [(-500, (0,)), (-300, (1,))]
        assert heapq.heappop(pruned) == (-500, (0,))
