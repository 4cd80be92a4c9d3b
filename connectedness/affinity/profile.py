# connectedness/affinity/profile.py

import numpy as np
from scipy import linalg
from typing import Sequence

from connectedness.errors import InvalidModel

# Determinants below this magnitude are treated as singular
DEFAULT_EPSILON = 1e-12


class StatisticalProfile:
    """
    Mean vector and covariance matrix describing a class of pixel pairs.

    The inverse and determinant of the covariance are computed once, when the
    profile is built, and reused for every likelihood evaluation. Profiles are
    immutable: reconfiguring a model means building a new profile.
    """

    def __init__(self, mean: Sequence[float], covariance, epsilon: float = DEFAULT_EPSILON):
        """
        Build a profile and its derived values.

        Args:
            mean: Mean vector (n components)
            covariance: n x n covariance matrix
            epsilon: Smallest accepted determinant magnitude

        Raises:
            InvalidModel: If the covariance is malformed, (near-)singular or
                          not positive definite
        """
        mean = np.array(mean, dtype=np.float64, ndmin=1)
        covariance = np.array(covariance, dtype=np.float64, ndmin=2)

        if mean.ndim != 1:
            raise InvalidModel(f"Mean must be a vector, got shape {mean.shape}")
        n = mean.shape[0]
        if covariance.shape != (n, n):
            raise InvalidModel(
                f"Covariance must be {n}x{n} to match the mean, got shape {covariance.shape}"
            )
        if not (np.all(np.isfinite(mean)) and np.all(np.isfinite(covariance))):
            raise InvalidModel("Mean and covariance must be finite")

        determinant = float(linalg.det(covariance))
        if not np.isfinite(determinant) or abs(determinant) < epsilon:
            raise InvalidModel(f"Covariance matrix is singular (determinant={determinant:g})")

        # The quadratic form is positive only if the symmetric part is positive definite
        try:
            linalg.cholesky(0.5 * (covariance + covariance.T))
        except linalg.LinAlgError:
            raise InvalidModel("Covariance matrix is not positive definite") from None

        self._mean = mean
        self._covariance = covariance
        self._inverse = linalg.inv(covariance)
        self._determinant = determinant

        for array in (self._mean, self._covariance, self._inverse):
            array.setflags(write=False)

    @property
    def mean(self) -> np.ndarray:
        return self._mean

    @property
    def covariance(self) -> np.ndarray:
        return self._covariance

    @property
    def inverse(self) -> np.ndarray:
        return self._inverse

    @property
    def determinant(self) -> float:
        return self._determinant

    @property
    def dimension(self) -> int:
        return self._mean.shape[0]

    def likelihood(self, values: np.ndarray) -> np.ndarray:
        """
        Gaussian density of the values relative to the density at the mean.

        Args:
            values: Array whose last axis holds the vector components

        Returns:
            Array of likelihoods in [0, 1], one per vector
        """
        centered = np.asarray(values, dtype=np.float64) - self._mean
        quadratic = np.einsum('...i,ij,...j->...', centered, self._inverse, centered)
        # Rounding can leave the form slightly below zero at the mean
        return np.exp(-0.5 * np.maximum(quadratic, 0.0))

    def __repr__(self):
        return (f"StatisticalProfile(mean={self._mean.tolist()}, "
                f"determinant={self._determinant:.4g})")
