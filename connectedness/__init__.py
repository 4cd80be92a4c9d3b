# connectedness/__init__.py
"""
Fuzzy connectedness segmentation of multi-channel images.

A seed pixel is connected to every other pixel through its strongest path,
the strength of a path being its weakest pairwise affinity. Thresholding the
resulting scores yields a binary object mask.
"""

from connectedness.errors import (
    ConnectednessError, InvalidModel, SeedOutOfBounds, NoResultAvailable, SegmentationCancelled
)
from connectedness.utils.grid import MAX_SCORE
from connectedness.affinity import (
    PairwiseAffinity, StatisticalProfile, VectorAffinityModel, ScalarAffinityModel,
    VectorAngleAffinity
)
from connectedness.engine import ConnectednessEngine

__version__ = "0.1.0"
__all__ = ['ConnectednessError', 'InvalidModel', 'SeedOutOfBounds', 'NoResultAvailable',
           'SegmentationCancelled', 'MAX_SCORE', 'PairwiseAffinity', 'StatisticalProfile',
           'VectorAffinityModel', 'ScalarAffinityModel', 'VectorAngleAffinity',
           'ConnectednessEngine']
