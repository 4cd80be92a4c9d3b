# connectedness/affinity/__init__.py
"""
Pairwise fuzzy affinity models scoring the similarity of neighbouring samples.
"""

from connectedness.affinity.affinity import PairwiseAffinity, COMBINATIONS
from connectedness.affinity.profile import StatisticalProfile
from connectedness.affinity.vector_affinity import VectorAffinityModel
from connectedness.affinity.scalar_affinity import ScalarAffinityModel
from connectedness.affinity.angle_affinity import VectorAngleAffinity

__all__ = ['PairwiseAffinity', 'COMBINATIONS', 'StatisticalProfile', 'VectorAffinityModel',
           'ScalarAffinityModel', 'VectorAngleAffinity']
