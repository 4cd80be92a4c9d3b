# connectedness/affinity/affinity.py

from abc import ABC, abstractmethod
from typing import Any, Dict, Sequence

import numpy as np

from connectedness.errors import InvalidModel
from connectedness.utils.grid import quantize


class PairwiseAffinity(ABC):
    """
    Abstract base class for pairwise fuzzy affinity models.

    An affinity model scores how likely two neighbouring samples are to belong
    to the same object. Implementations provide a vectorised
    ``fuzzy_affinity`` returning values in [0, 1]; this class turns those into
    integer scores. Scores must depend only on the two samples and the current
    configuration, and must not depend on argument order.
    """

    def __init__(self, config: Dict = None):
        """
        Initialize the affinity model with configuration.

        Args:
            config: Configuration dictionary
        """
        self.config = config or {}

    @property
    @abstractmethod
    def channels(self) -> int:
        """Number of components in each sample."""
        pass

    @property
    @abstractmethod
    def is_configured(self) -> bool:
        """Whether the model has everything it needs to score pairs."""
        pass

    @abstractmethod
    def configure(self, **params: Any) -> None:
        """
        Update model parameters.

        Raises:
            InvalidModel: If the parameters describe an unusable model.
                          The previous configuration is kept in that case.
        """
        pass

    @abstractmethod
    def fuzzy_affinity(self, first: np.ndarray, second: np.ndarray) -> np.ndarray:
        """
        Compute affinities between paired samples.

        Args:
            first: Array of samples, last axis holds the components
            second: Array of samples with the same shape as first

        Returns:
            Float array of affinities in [0, 1], one per sample pair
        """
        pass

    def validate(self) -> None:
        """Raise InvalidModel unless the model is ready for use."""
        if not self.is_configured:
            raise InvalidModel(f"{type(self).__name__} has not been configured")

    def affinity(self, a: Sequence[float], b: Sequence[float]) -> int:
        """
        Score a single pair of samples.

        Args:
            a: First sample
            b: Second sample

        Returns:
            Integer affinity score in [0, MAX_SCORE]
        """
        self.validate()
        first = self._as_sample(a)
        second = self._as_sample(b)
        return int(quantize(self.fuzzy_affinity(first[np.newaxis], second[np.newaxis]))[0])

    def affinity_map(self, first: np.ndarray, second: np.ndarray) -> np.ndarray:
        """
        Score every pair of corresponding samples in two arrays.

        Returns:
            uint16 array of scores shaped like the arrays without their channel axis
        """
        self.validate()
        first = np.asarray(first, dtype=np.float64)
        second = np.asarray(second, dtype=np.float64)
        if first.shape != second.shape:
            raise ValueError(f"Sample arrays differ in shape: {first.shape} vs {second.shape}")
        if first.shape[-1] != self.channels:
            raise ValueError(
                f"Samples have {first.shape[-1]} components, expected {self.channels}"
            )
        return quantize(self.fuzzy_affinity(first, second))

    def _as_sample(self, value: Sequence[float]) -> np.ndarray:
        sample = np.atleast_1d(np.asarray(value, dtype=np.float64))
        if sample.shape != (self.channels,):
            raise ValueError(
                f"Sample must have {self.channels} components, got shape {sample.shape}"
            )
        return sample


def weighted_sum(homogeneity: np.ndarray, difference: np.ndarray, weight: float) -> np.ndarray:
    return weight * homogeneity + (1.0 - weight) * difference


def product(homogeneity: np.ndarray, difference: np.ndarray, weight: float) -> np.ndarray:
    return homogeneity * difference


def transition(homogeneity: np.ndarray, difference: np.ndarray, weight: float) -> np.ndarray:
    # Difference profile describes boundary crossings: penalise likely transitions
    return homogeneity * (1.0 - difference)


# Rules combining the homogeneity and difference likelihoods
COMBINATIONS = {
    'weighted_sum': weighted_sum,
    'product': product,
    'transition': transition,
}
