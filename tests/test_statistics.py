# tests/test_statistics.py

import numpy as np
import pytest

from connectedness.affinity import VectorAffinityModel
from connectedness.errors import SeedOutOfBounds
from connectedness.utils.grid import MAX_SCORE, to_sample_grid
from connectedness.utils.statistics import estimate_profiles, neighbor_pairs, seed_region


class TestSeedRegion:
    """Test seed_region."""

    def test_box_around_seed(self):
        region = seed_region((6, 6), (3, 3), 1)

        assert region.sum() == 9
        assert region[2:5, 2:5].all()

    def test_clipped_at_border(self):
        region = seed_region((6, 6), (0, 0), 2)

        assert region.sum() == 9
        assert region[:3, :3].all()

    def test_volume(self):
        assert seed_region((4, 4, 4), (1, 1, 1), 1).sum() == 27

    def test_zero_radius(self):
        region = seed_region((3, 3), (1, 2), 0)
        assert region.sum() == 1
        assert region[1, 2]

    def test_negative_radius(self):
        with pytest.raises(ValueError):
            seed_region((3, 3), (1, 1), -1)

    def test_seed_out_of_bounds(self):
        with pytest.raises(SeedOutOfBounds):
            seed_region((3, 3), (3, 0), 1)


class TestEstimateProfiles:
    """Test neighbour pair collection and profile estimation."""

    def test_neighbor_pairs(self):
        grid = np.arange(9, dtype=np.float64).reshape(3, 3, 1)
        region = np.zeros((3, 3), dtype=bool)
        region[:2, :2] = True

        first, second = neighbor_pairs(grid, region)

        # Two vertical and two horizontal pairs inside the 2x2 block
        pairs = sorted(zip(first[:, 0], second[:, 0]))
        assert pairs == [(0.0, 1.0), (0.0, 3.0), (1.0, 4.0), (3.0, 4.0)]

    def test_constant_region(self):
        grid = np.full((5, 5, 3), 42.0)
        region = seed_region((5, 5), (2, 2), 1)

        profiles = estimate_profiles(grid, region, regularization=0.5)

        np.testing.assert_allclose(profiles['homogeneity']['mean'], [42.0, 42.0, 42.0])
        np.testing.assert_allclose(profiles['difference']['mean'], [0.0, 0.0, 0.0])
        np.testing.assert_allclose(profiles['homogeneity']['covariance'], np.eye(3) * 0.5)

    def test_profiles_configure_a_model(self):
        rng = np.random.default_rng(3)
        grid = rng.normal(80.0, 3.0, size=(10, 10, 3))
        region = seed_region((10, 10), (5, 5), 3)

        profiles = estimate_profiles(grid, region)
        model = VectorAffinityModel()
        model.configure(
            homogeneity_mean=profiles['homogeneity']['mean'],
            homogeneity_covariance=profiles['homogeneity']['covariance'],
            difference_mean=profiles['difference']['mean'],
            difference_covariance=profiles['difference']['covariance'],
        )

        assert model.is_configured
        assert model.affinity(grid[5, 5], grid[5, 5]) > model.affinity(grid[5, 5], [200.0, 0.0, 0.0])

    def test_scalar_grid(self):
        grid = to_sample_grid(np.linspace(0.0, 1.0, 25).reshape(5, 5), 1)
        profiles = estimate_profiles(grid, np.ones((5, 5), dtype=bool))

        assert profiles['homogeneity']['covariance'].shape == (1, 1)
        assert profiles['difference']['mean'].shape == (1,)

    def test_region_shape_mismatch(self):
        with pytest.raises(ValueError):
            estimate_profiles(np.zeros((4, 4, 3)), np.ones((3, 3), dtype=bool))

    def test_too_few_pairs(self):
        region = seed_region((4, 4), (1, 1), 0)
        with pytest.raises(ValueError):
            estimate_profiles(np.zeros((4, 4, 3)), region)


class TestGrid:
    """Test the sample grid conversion."""

    def test_scalar_image_gets_channel_axis(self):
        assert to_sample_grid(np.zeros((4, 5)), 1).shape == (4, 5, 1)

    @pytest.mark.parametrize("shape", [(4, 1), (1, 1)])
    def test_single_column_scalar_image(self, shape):
        assert to_sample_grid(np.zeros(shape), 1).shape == shape + (1,)

    def test_scalar_image_with_channel_axis(self):
        assert to_sample_grid(np.zeros((4, 5, 1)), 1).shape == (4, 5, 1)

    def test_scalar_volume_gets_channel_axis(self):
        assert to_sample_grid(np.zeros((2, 4, 5)), 1).shape == (2, 4, 5, 1)

    def test_input_is_copied(self):
        image = np.zeros((3, 3, 3))
        grid = to_sample_grid(image, 3)
        grid[0, 0, 0] = MAX_SCORE

        assert image[0, 0, 0] == 0.0

    @pytest.mark.parametrize("shape,channels", [
        ((4,), 1),
        ((4, 4, 4, 4, 3), 3),
        ((4, 4, 2), 3),
        ((0, 4, 3), 3),
    ])
    def test_invalid_grid(self, shape, channels):
        with pytest.raises(ValueError):
            to_sample_grid(np.zeros(shape), channels)
