# connectedness/utils/__init__.py
"""
Grid helpers, profile estimation and visualization utilities.
"""

from connectedness.utils.grid import MAX_SCORE, to_sample_grid, check_seed
from connectedness.utils.statistics import estimate_profiles, seed_region
from connectedness.utils.visualization import SegmentationVisualizer

__all__ = ['MAX_SCORE', 'to_sample_grid', 'check_seed', 'estimate_profiles', 'seed_region',
           'SegmentationVisualizer']
