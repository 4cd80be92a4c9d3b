# pipeline/segmentation_pipeline.py

import logging
import numbers
import threading
import time
from typing import Any, Dict, Optional, Sequence, Tuple

import numpy as np

from connectedness.affinity import (
    PairwiseAffinity, ScalarAffinityModel, VectorAffinityModel, VectorAngleAffinity
)
from connectedness.engine import ConnectednessEngine
from connectedness.errors import NoResultAvailable, SeedOutOfBounds
from connectedness.utils.grid import MAX_SCORE, check_seed, to_sample_grid
from connectedness.utils.statistics import estimate_profiles, seed_region
from connectedness.utils.visualization import SegmentationVisualizer, select_slice

logger = logging.getLogger(__name__)

AFFINITY_MODELS = {
    'vector': VectorAffinityModel,
    'scalar': ScalarAffinityModel,
    'angle': VectorAngleAffinity,
}


class SegmentationResult:
    """Container for the outcome of one connectedness run."""

    def __init__(self):
        self.connectedness: Optional[np.ndarray] = None  # Read-only uint16 scores
        self.seed: Optional[Tuple[int, ...]] = None
        self.processing_time: float = 0.0  # Processing time in seconds
        self.stats: Dict = {}  # Engine statistics for the run

    @property
    def reached(self) -> int:
        """Number of pixels with a non-zero connectedness."""
        if self.connectedness is None:
            return 0
        return int(np.count_nonzero(self.connectedness))

    def __repr__(self):
        shape = None if self.connectedness is None else self.connectedness.shape
        return (f"SegmentationResult(seed={self.seed}, shape={shape}, "
                f"reached={self.reached}, "
                f"processing_time={self.processing_time:.3f}s)")


class SegmentationController:
    """
    Fuzzy connectedness segmentation of one input grid.

    Owns the input grid, seed, affinity model, threshold and the latest
    connectedness grid. Setters never compute anything; execute() runs the
    propagation once and the binary mask is derived from the stored scores
    on every request, so changing the threshold never triggers a re-run.

    Calls to execute() must not overlap. Results may be read from several
    threads while no execute() is in progress.
    """

    def __init__(
        self,
        affinity: Optional[PairwiseAffinity] = None,
        engine: Optional[ConnectednessEngine] = None,
        config: Dict = None
    ):
        """
        Initialize the controller.

        Args:
            affinity: Affinity model (default: unconfigured VectorAffinityModel)
            engine: Propagation engine (default: ConnectednessEngine with config['engine'])
            config: Configuration with keys:
                - threshold: Initial threshold (default: MAX_SCORE // 2)
                - seed: Initial seed coordinate (optional)
                - engine: Engine configuration
                - visualization: Visualizer configuration
        """
        self.config = {
            'threshold': MAX_SCORE // 2,
            'seed': None,
            'engine': None,
            'visualization': None,
            **(config or {})
        }

        self.affinity = affinity or VectorAffinityModel()
        self.engine = engine or ConnectednessEngine(self.config['engine'])
        self.visualizer = SegmentationVisualizer(self.config['visualization'])

        # Internal state
        self._image: Optional[np.ndarray] = None
        self._seed: Optional[Tuple] = None
        self._threshold: float = 0
        self._result: Optional[SegmentationResult] = None
        self._dirty = True

        self.set_threshold(self.config['threshold'])
        if self.config['seed'] is not None:
            self.set_seed(self.config['seed'])

        # Performance metrics
        self.timing = {
            'execute': [],
            'mask': []
        }

    @property
    def input(self) -> Optional[np.ndarray]:
        return self._image

    @property
    def seed(self) -> Optional[Tuple]:
        return self._seed

    @property
    def threshold(self) -> float:
        return self._threshold

    @property
    def result(self) -> Optional[SegmentationResult]:
        return self._result

    def set_input(self, image: np.ndarray) -> None:
        """Store a private, read-only copy of the input grid."""
        image = np.array(image, copy=True)
        image.setflags(write=False)
        self._image = image
        self._dirty = True

    def set_seed(self, seed: Sequence[int]) -> None:
        """Store the seed coordinate; bounds are checked by execute()."""
        self._seed = tuple(seed)
        self._dirty = True

    def set_affinity(self, affinity: PairwiseAffinity) -> None:
        """Replace the affinity model, e.g. to switch to another variant."""
        if not isinstance(affinity, PairwiseAffinity):
            raise TypeError(f"Expected a PairwiseAffinity, got {type(affinity).__name__}")
        self.affinity = affinity
        self._dirty = True

    def configure_affinity(self, **params: Any) -> None:
        """Forward parameters to the affinity model's configure()."""
        self.affinity.configure(**params)
        self._dirty = True

    def estimate_affinity(self, radius: int = 3, regularization: float = 1e-3) -> Dict:
        """
        Fit the affinity profiles to a box of pixels around the seed.

        Args:
            radius: Half-width of the sample box in pixels
            regularization: Value added to each covariance diagonal

        Returns:
            The estimated profiles (see estimate_profiles)
        """
        if self._image is None:
            raise ValueError("No input grid set")
        if self._seed is None:
            raise SeedOutOfBounds("No seed set")

        grid = to_sample_grid(self._image, self.affinity.channels)
        region = seed_region(grid.shape[:-1], self._seed, radius)
        profiles = estimate_profiles(grid, region, regularization)
        homogeneity, difference = profiles['homogeneity'], profiles['difference']

        if isinstance(self.affinity, VectorAffinityModel):
            self.affinity.configure(
                homogeneity_mean=homogeneity['mean'],
                homogeneity_covariance=homogeneity['covariance'],
                difference_mean=difference['mean'],
                difference_covariance=difference['covariance'],
            )
        elif isinstance(self.affinity, ScalarAffinityModel):
            self.affinity.configure(
                homogeneity_mean=float(homogeneity['mean'][0]),
                homogeneity_variance=float(homogeneity['covariance'][0, 0]),
                difference_mean=float(difference['mean'][0]),
                difference_variance=float(difference['covariance'][0, 0]),
            )
        else:
            raise TypeError(
                f"Profile estimation is not supported for {type(self.affinity).__name__}"
            )

        self._dirty = True
        return profiles

    def execute(self, cancel_event: Optional[threading.Event] = None) -> SegmentationResult:
        """
        Compute the connectedness grid for the current configuration.

        Re-running with an unchanged configuration returns the stored result.
        A failed or cancelled run leaves the previous result in place.

        Args:
            cancel_event: Optional event that aborts the propagation when set

        Returns:
            SegmentationResult for the run

        Raises:
            ValueError: If no input grid is set or it does not fit the model
            SeedOutOfBounds: If the seed is missing or outside the grid
            InvalidModel: If the affinity model is not configured
            SegmentationCancelled: If cancel_event was set during the run
        """
        if self._image is None:
            raise ValueError("No input grid set")
        if self._seed is None:
            raise SeedOutOfBounds("No seed set")

        grid = to_sample_grid(self._image, self.affinity.channels)
        seed = check_seed(self._seed, grid.shape[:-1])
        self.affinity.validate()

        if not self._dirty and self._result is not None:
            logger.debug("Configuration unchanged, reusing previous result")
            return self._result

        logger.info(f"Running fuzzy connectedness on grid {grid.shape[:-1]} from seed {seed}")
        start_time = time.time()

        connectedness = self.engine.run(grid, self.affinity, seed, cancel_event=cancel_event)
        connectedness.setflags(write=False)

        result = SegmentationResult()
        result.connectedness = connectedness
        result.seed = seed
        result.stats = dict(self.engine.last_run_stats)
        result.processing_time = time.time() - start_time
        self.timing['execute'].append(result.processing_time)

        self._result = result
        self._dirty = False
        logger.info(f"Segmentation finished: {result}")

        return result

    def set_threshold(self, value: float) -> None:
        """Set the mask threshold; the stored scores are left untouched."""
        if isinstance(value, bool) or not isinstance(value, numbers.Real):
            raise ValueError(f"Threshold must be a number, got {value!r}")
        if not 0 <= value <= MAX_SCORE:
            raise ValueError(f"Threshold must lie in [0, {MAX_SCORE}], got {value}")
        self._threshold = value

    def get_binary_mask(self) -> np.ndarray:
        """
        Threshold the stored connectedness grid.

        Returns:
            Boolean array, True where connectedness >= threshold

        Raises:
            NoResultAvailable: If execute() has not succeeded yet
        """
        connectedness = self.get_connectedness_grid()

        t0 = time.time()
        mask = connectedness >= self._threshold
        self.timing['mask'].append(time.time() - t0)

        return mask

    def get_connectedness_grid(self) -> np.ndarray:
        """
        Read-only view of the raw connectedness scores.

        Raises:
            NoResultAvailable: If execute() has not succeeded yet
        """
        if self._result is None:
            raise NoResultAvailable("No segmentation result available, call execute() first")
        return self._result.connectedness

    def visualize(self, slice_index: Optional[int] = None) -> np.ndarray:
        """
        Render the input with the current scores, mask and seed overlaid.

        Args:
            slice_index: Slice shown for 3D grids (default: the seed's slice)

        Returns:
            RGB uint8 image
        """
        connectedness = self.get_connectedness_grid()
        mask = self.get_binary_mask()
        image = self._image
        seed = self._result.seed

        if connectedness.ndim == 3:
            if slice_index is None:
                slice_index = seed[0]
            image, _ = select_slice(image, slice_index)
            connectedness, _ = select_slice(connectedness, slice_index)
            mask, _ = select_slice(mask, slice_index)
            seed = seed[1:] if seed[0] == slice_index else None

        return self.visualizer.visualize_result(image, connectedness, mask, seed)

    def report_performance(self) -> Dict[str, float]:
        """
        Report performance metrics for the controller.

        Returns:
            Dict with average and maximum timing for each step
        """
        performance = {}
        for key, times in self.timing.items():
            if times:
                performance[f"avg_{key}_time"] = sum(times) / len(times)
                performance[f"max_{key}_time"] = max(times)

        return performance

    def reset(self):
        """Drop the stored result and timing statistics."""
        self._result = None
        self._dirty = True

        # Clear timing statistics
        for key in self.timing:
            self.timing[key] = []


def create_affinity_model(config: Dict) -> PairwiseAffinity:
    """
    Create an affinity model from configuration.

    Args:
        config: Configuration with keys:
            - model: 'vector' (default), 'scalar' or 'angle'
            - homogeneity / difference: dicts with 'mean' and 'covariance'
              ('variance' for the scalar model)
            - sigma: Angular spread for the angle model
            - any model option (channels, combination, weight, epsilon)

    Returns:
        The affinity model, configured where parameters were given
    """
    config = dict(config or {})
    name = config.pop('model', 'vector')
    if name not in AFFINITY_MODELS:
        raise ValueError(f"Unknown affinity model '{name}', expected one of {sorted(AFFINITY_MODELS)}")

    homogeneity = config.pop('homogeneity', None) or {}
    difference = config.pop('difference', None) or {}
    sigma = config.pop('sigma', None)

    model = AFFINITY_MODELS[name](config)

    if name == 'vector':
        model.configure(
            homogeneity_mean=homogeneity.get('mean'),
            homogeneity_covariance=homogeneity.get('covariance'),
            difference_mean=difference.get('mean'),
            difference_covariance=difference.get('covariance'),
        )
    elif name == 'scalar':
        model.configure(
            homogeneity_mean=homogeneity.get('mean'),
            homogeneity_variance=homogeneity.get('variance'),
            difference_mean=difference.get('mean'),
            difference_variance=difference.get('variance'),
        )
    else:
        model.configure(sigma=sigma)

    logger.debug(f"Created affinity model {model}")
    return model


def create_controller(config: Dict) -> SegmentationController:
    """Create a segmentation controller from a full configuration dictionary."""
    affinity = create_affinity_model(config.get('affinity', {}))
    engine = ConnectednessEngine(config.get('engine', {}))

    controller_config = {
        key: config[key] for key in ('threshold', 'seed', 'visualization')
        if config.get(key) is not None
    }
    return SegmentationController(affinity=affinity, engine=engine, config=controller_config)
