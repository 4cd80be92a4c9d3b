# tests/conftest.py
"""Shared fixtures for the fuzzy connectedness tests."""

import os
import sys

import numpy as np
import pytest

# Add the project root directory to the Python path
sys.path.insert(0, os.path.abspath(os.path.join(os.path.dirname(__file__), '..')))

from connectedness.affinity import VectorAffinityModel

SAMPLE_VALUE = (100.0, 100.0, 100.0)


def make_model(mean=SAMPLE_VALUE, variance=25.0, difference_variance=25.0, **config):
    """Vector affinity model centred on a sample value with isotropic variances."""
    model = VectorAffinityModel(config or None)
    model.configure_homogeneity(mean, np.eye(3) * variance)
    model.configure_difference([0.0, 0.0, 0.0], np.eye(3) * difference_variance)
    return model


@pytest.fixture
def uniform_grid():
    """A 4x4 RGB grid filled with one sample value."""
    return np.tile(np.array(SAMPLE_VALUE), (4, 4, 1))


@pytest.fixture
def outlier_grid(uniform_grid):
    """The uniform grid with one moderately brighter pixel at (2, 2)."""
    grid = uniform_grid.copy()
    grid[2, 2] = (110.0, 110.0, 110.0)
    return grid


@pytest.fixture
def model():
    """Affinity model matching the uniform grid."""
    return make_model()
