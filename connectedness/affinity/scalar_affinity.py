# connectedness/affinity/scalar_affinity.py

from typing import Any, Dict, Optional

import numpy as np

from connectedness.affinity.affinity import PairwiseAffinity
from connectedness.affinity.vector_affinity import VectorAffinityModel
from connectedness.errors import InvalidModel


class ScalarAffinityModel(PairwiseAffinity):
    """
    Affinity between single-channel (intensity) samples.

    Configured with a scalar mean and variance for each profile; scoring is
    delegated to a one-channel VectorAffinityModel.
    """

    def __init__(self, config: Dict = None):
        super().__init__(config)
        self.config = {
            'combination': 'weighted_sum',
            'weight': 0.5,
            **(config or {})
        }
        self._model = VectorAffinityModel({**self.config, 'channels': 1})

    @property
    def channels(self) -> int:
        return 1

    @property
    def is_configured(self) -> bool:
        return self._model.is_configured

    @property
    def combination(self) -> str:
        return self._model.combination

    @property
    def weight(self) -> float:
        return self._model.weight

    def configure_homogeneity(self, mean: float, variance: float) -> None:
        self._model.configure_homogeneity([mean], self._as_covariance(variance))

    def configure_difference(self, mean: float, variance: float) -> None:
        self._model.configure_difference([mean], self._as_covariance(variance))

    def configure(self,
                  homogeneity_mean: Optional[float] = None,
                  homogeneity_variance: Optional[float] = None,
                  difference_mean: Optional[float] = None,
                  difference_variance: Optional[float] = None,
                  combination: Optional[str] = None,
                  weight: Optional[float] = None,
                  **params: Any) -> None:
        if params:
            raise TypeError(f"Unknown affinity parameters: {sorted(params)}")

        self._model.configure(
            homogeneity_mean=None if homogeneity_mean is None else [homogeneity_mean],
            homogeneity_covariance=self._as_covariance(homogeneity_variance),
            difference_mean=None if difference_mean is None else [difference_mean],
            difference_covariance=self._as_covariance(difference_variance),
            combination=combination,
            weight=weight,
        )

    def fuzzy_affinity(self, first: np.ndarray, second: np.ndarray) -> np.ndarray:
        return self._model.fuzzy_affinity(first, second)

    @staticmethod
    def _as_covariance(variance: Optional[float]):
        if variance is None:
            return None
        variance = float(variance)
        if not np.isfinite(variance) or variance <= 0:
            raise InvalidModel(f"Variance must be positive, got {variance}")
        return [[variance]]

    def __repr__(self):
        return (f"ScalarAffinityModel(combination='{self.combination}', "
                f"weight={self.weight}, configured={self.is_configured})")
