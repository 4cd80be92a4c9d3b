# connectedness/affinity/vector_affinity.py

import logging
from typing import Any, Dict, Optional, Sequence

import numpy as np

from connectedness.affinity.affinity import COMBINATIONS, PairwiseAffinity
from connectedness.affinity.profile import DEFAULT_EPSILON, StatisticalProfile

logger = logging.getLogger(__name__)


class VectorAffinityModel(PairwiseAffinity):
    """
    Affinity between colour (vector-valued) samples.

    Two statistical profiles drive the score:

    - the homogeneity profile models the mean value of a pixel pair inside
      the object, and is evaluated on ``(a + b) / 2``;
    - the difference profile models the component-wise absolute difference
      ``|a - b|`` between neighbouring pixels.

    Each profile yields a Gaussian likelihood normalised to 1 at its mean.
    The two likelihoods are merged by the configured combination rule.
    """

    def __init__(self, config: Dict = None):
        """
        Initialize the vector affinity model.

        Args:
            config: Configuration with keys:
                - channels: Number of sample components (default 3)
                - combination: 'weighted_sum', 'product' or 'transition'
                - weight: Homogeneity weight for 'weighted_sum' (0-1)
                - epsilon: Smallest accepted covariance determinant
        """
        super().__init__(config)
        self.config = {
            'channels': 3,
            'combination': 'weighted_sum',
            'weight': 0.5,
            'epsilon': DEFAULT_EPSILON,
            **(config or {})
        }

        self._channels = int(self.config['channels'])
        if self._channels < 1:
            raise ValueError(f"Channel count must be positive, got {self._channels}")

        self._homogeneity: Optional[StatisticalProfile] = None
        self._difference: Optional[StatisticalProfile] = None
        self._combination = 'weighted_sum'
        self._weight = 0.5
        self.set_combination(self.config['combination'], self.config['weight'])

    @property
    def channels(self) -> int:
        return self._channels

    @property
    def is_configured(self) -> bool:
        return self._homogeneity is not None and self._difference is not None

    @property
    def homogeneity(self) -> Optional[StatisticalProfile]:
        return self._homogeneity

    @property
    def difference(self) -> Optional[StatisticalProfile]:
        return self._difference

    @property
    def combination(self) -> str:
        return self._combination

    @property
    def weight(self) -> float:
        return self._weight

    def configure_homogeneity(self, mean: Sequence[float], covariance) -> None:
        """
        Set the profile of same-material pixel pairs.

        Raises:
            InvalidModel: If the covariance is singular; the previous profile is kept
        """
        self._homogeneity = self._build_profile(mean, covariance)
        logger.debug(f"Homogeneity profile set: {self._homogeneity}")

    def configure_difference(self, mean: Sequence[float], covariance) -> None:
        """
        Set the profile of neighbour differences.

        Raises:
            InvalidModel: If the covariance is singular; the previous profile is kept
        """
        self._difference = self._build_profile(mean, covariance)
        logger.debug(f"Difference profile set: {self._difference}")

    def set_combination(self, combination: str, weight: Optional[float] = None) -> None:
        """
        Choose how the homogeneity and difference likelihoods are merged.

        Args:
            combination: Name of the rule ('weighted_sum', 'product', 'transition')
            weight: Homogeneity weight used by 'weighted_sum'
        """
        if combination not in COMBINATIONS:
            raise ValueError(
                f"Unknown combination '{combination}', expected one of {sorted(COMBINATIONS)}"
            )
        if weight is not None:
            weight = float(weight)
            if not 0.0 <= weight <= 1.0:
                raise ValueError(f"Weight must lie in [0, 1], got {weight}")
            self._weight = weight
        self._combination = combination

    def configure(self,
                  homogeneity_mean: Optional[Sequence[float]] = None,
                  homogeneity_covariance=None,
                  difference_mean: Optional[Sequence[float]] = None,
                  difference_covariance=None,
                  combination: Optional[str] = None,
                  weight: Optional[float] = None,
                  **params: Any) -> None:
        """
        Update any subset of the model parameters at once.

        A mean without a covariance (or the reverse) reuses the counterpart of
        the current profile. All new values are validated before any of them
        is applied.
        """
        if params:
            raise TypeError(f"Unknown affinity parameters: {sorted(params)}")

        homogeneity = self._merge_profile(self._homogeneity, homogeneity_mean,
                                          homogeneity_covariance, 'homogeneity')
        difference = self._merge_profile(self._difference, difference_mean,
                                         difference_covariance, 'difference')
        if combination is not None or weight is not None:
            self.set_combination(combination or self._combination, weight)

        self._homogeneity = homogeneity
        self._difference = difference

    def fuzzy_affinity(self, first: np.ndarray, second: np.ndarray) -> np.ndarray:
        first = np.asarray(first, dtype=np.float64)
        second = np.asarray(second, dtype=np.float64)

        h = self._homogeneity.likelihood(0.5 * (first + second))
        d = self._difference.likelihood(np.abs(first - second))

        combine = COMBINATIONS[self._combination]
        return np.clip(combine(h, d, self._weight), 0.0, 1.0)

    def _build_profile(self, mean, covariance) -> StatisticalProfile:
        profile = StatisticalProfile(mean, covariance, epsilon=self.config['epsilon'])
        if profile.dimension != self._channels:
            raise ValueError(
                f"Profile has {profile.dimension} components, model expects {self._channels}"
            )
        return profile

    def _merge_profile(self, current: Optional[StatisticalProfile], mean, covariance,
                       name: str) -> Optional[StatisticalProfile]:
        if mean is None and covariance is None:
            return current
        if current is None and (mean is None or covariance is None):
            raise ValueError(f"Both mean and covariance are needed for the {name} profile")
        if mean is None:
            mean = current.mean
        if covariance is None:
            covariance = current.covariance
        return self._build_profile(mean, covariance)

    def __repr__(self):
        return (f"VectorAffinityModel(channels={self._channels}, "
                f"combination='{self._combination}', weight={self._weight}, "
                f"configured={self.is_configured})")
