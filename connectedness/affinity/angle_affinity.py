# connectedness/affinity/angle_affinity.py

from typing import Any, Dict, Optional

import numpy as np

from connectedness.affinity.affinity import PairwiseAffinity
from connectedness.errors import InvalidModel


class VectorAngleAffinity(PairwiseAffinity):
    """
    Affinity from the angle between two colour vectors.

    Insensitive to brightness changes along a colour direction, which suits
    shaded objects. The affinity is exp(-0.5 * (angle / sigma)^2).
    """

    def __init__(self, config: Dict = None):
        """
        Initialize the angle affinity model.

        Args:
            config: Configuration with keys:
                - channels: Number of sample components (default 3)
                - sigma: Angular spread in radians (optional, may be configured later)
        """
        super().__init__(config)
        self.config = {
            'channels': 3,
            'sigma': None,
            **(config or {})
        }
        self._channels = int(self.config['channels'])
        self._sigma: Optional[float] = None
        if self.config['sigma'] is not None:
            self.configure(sigma=self.config['sigma'])

    @property
    def channels(self) -> int:
        return self._channels

    @property
    def is_configured(self) -> bool:
        return self._sigma is not None

    @property
    def sigma(self) -> Optional[float]:
        return self._sigma

    def configure(self, sigma: Optional[float] = None, **params: Any) -> None:
        if params:
            raise TypeError(f"Unknown affinity parameters: {sorted(params)}")
        if sigma is None:
            return
        sigma = float(sigma)
        if not np.isfinite(sigma) or sigma <= 0:
            raise InvalidModel(f"Angular sigma must be positive, got {sigma}")
        self._sigma = sigma

    def fuzzy_affinity(self, first: np.ndarray, second: np.ndarray) -> np.ndarray:
        first = np.asarray(first, dtype=np.float64)
        second = np.asarray(second, dtype=np.float64)

        norms = np.linalg.norm(first, axis=-1) * np.linalg.norm(second, axis=-1)
        dot = np.sum(first * second, axis=-1)

        with np.errstate(invalid='ignore', divide='ignore'):
            cosine = np.clip(dot / norms, -1.0, 1.0)
        angle = np.arccos(cosine)

        # Zero vectors have no direction: equal if both are zero, orthogonal otherwise
        zero_first = ~np.any(first, axis=-1)
        zero_second = ~np.any(second, axis=-1)
        angle = np.where(zero_first & zero_second, 0.0, angle)
        angle = np.where(zero_first ^ zero_second, np.pi / 2, angle)

        return np.exp(-0.5 * (angle / self._sigma) ** 2)

    def __repr__(self):
        return f"VectorAngleAffinity(channels={self._channels}, sigma={self._sigma})"
