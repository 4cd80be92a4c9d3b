# pipeline/data_sources.py

import os
import cv2
import numpy as np
import logging
from abc import ABC, abstractmethod
from typing import Iterator, Tuple, Optional, Dict

logger = logging.getLogger(__name__)

IMAGE_EXTENSIONS = ['.jpg', '.jpeg', '.png', '.bmp', '.tif', '.tiff']
ARRAY_EXTENSIONS = ['.npy', '.npz']


class DataSource(ABC):
    """
    Abstract base class for input grid sources.

    All data source implementations should inherit from this class and
    implement the required methods.
    """

    def __init__(self, config: Dict = None):
        """
        Initialize the data source.

        Args:
            config: Configuration dictionary
        """
        self.config = config or {}
        self.is_initialized = False

    @abstractmethod
    def initialize(self) -> None:
        """Initialize the data source."""
        pass

    @abstractmethod
    def get_frame(self) -> Tuple[bool, Optional[np.ndarray], Optional[str]]:
        """
        Get the next input grid.

        Returns:
            Tuple of (success, grid, source path)
        """
        pass

    def release(self) -> None:
        """Release resources."""
        pass

    def __iter__(self) -> Iterator[Tuple[np.ndarray, str]]:
        """
        Create an iterator that yields grids and their source paths.

        Yields:
            Tuple of (grid, path)
        """
        while True:
            success, grid, path = self.get_frame()
            if not success:
                break
            yield grid, path

    def __enter__(self):
        """Context manager entry."""
        if not self.is_initialized:
            self.initialize()
        return self

    def __exit__(self, exc_type, exc_val, exc_tb):
        """Context manager exit."""
        self.release()


def _list_files(path: str, extensions) -> list:
    """Return the path itself, or the sorted matching files of a directory."""
    if os.path.isdir(path):
        return sorted(
            os.path.join(path, f) for f in os.listdir(path)
            if os.path.splitext(f)[1].lower() in extensions
        )
    if not os.path.exists(path):
        raise FileNotFoundError(f"Input file not found: {path}")
    return [path]


class ImageSource(DataSource):
    """
    Data source for single images or directories of images.
    """

    def __init__(self, path: str, config: Dict = None):
        """
        Initialize the image source.

        Args:
            path: Path to an image or directory of images
            config: Configuration dictionary with keys:
                - color_order: 'rgb' (default) or 'bgr'
                - grayscale: Load single-channel intensity images (default: False)
        """
        super().__init__(config)
        self.path = path
        self.color_order = self.config.get('color_order', 'rgb')
        self.grayscale = self.config.get('grayscale', False)
        self.image_paths = []
        self.current_idx = 0

        if self.color_order not in ('rgb', 'bgr'):
            raise ValueError(f"color_order must be 'rgb' or 'bgr', got '{self.color_order}'")

    def initialize(self) -> None:
        """Initialize the image source."""
        self.image_paths = _list_files(self.path, IMAGE_EXTENSIONS)
        logger.info(f"Found {len(self.image_paths)} image(s) at: {self.path}")

        self.current_idx = 0
        self.is_initialized = True

    def get_frame(self) -> Tuple[bool, Optional[np.ndarray], Optional[str]]:
        """
        Get the next image.

        Returns:
            Tuple of (success, image, path)
        """
        if not self.is_initialized:
            self.initialize()

        while self.current_idx < len(self.image_paths):
            image_path = self.image_paths[self.current_idx]
            self.current_idx += 1

            # Keep the full bit depth of 16-bit images
            flags = cv2.IMREAD_ANYDEPTH | (cv2.IMREAD_GRAYSCALE if self.grayscale else cv2.IMREAD_COLOR)
            image = cv2.imread(image_path, flags)

            if image is None:
                logger.warning(f"Failed to load image: {image_path}")
                continue

            # OpenCV loads color images as BGR
            if image.ndim == 3 and self.color_order == 'rgb':
                image = cv2.cvtColor(image, cv2.COLOR_BGR2RGB)

            return True, image, image_path

        return False, None, None

    def reset(self) -> None:
        """Reset to the first image."""
        self.current_idx = 0


class ArraySource(DataSource):
    """
    Data source for numpy arrays stored as .npy or .npz files.

    Used for volumes and pre-computed feature grids that image formats
    cannot hold.
    """

    def __init__(self, path: str, config: Dict = None):
        """
        Initialize the array source.

        Args:
            path: Path to an array file or directory of array files
            config: Configuration dictionary with keys:
                - key: Array name inside .npz archives (default: first array)
        """
        super().__init__(config)
        self.path = path
        self.key = self.config.get('key')
        self.array_paths = []
        self.current_idx = 0

    def initialize(self) -> None:
        """Initialize the array source."""
        self.array_paths = _list_files(self.path, ARRAY_EXTENSIONS)
        logger.info(f"Found {len(self.array_paths)} array file(s) at: {self.path}")

        self.current_idx = 0
        self.is_initialized = True

    def get_frame(self) -> Tuple[bool, Optional[np.ndarray], Optional[str]]:
        """
        Get the next array.

        Returns:
            Tuple of (success, array, path)
        """
        if not self.is_initialized:
            self.initialize()

        if self.current_idx >= len(self.array_paths):
            return False, None, None

        array_path = self.array_paths[self.current_idx]
        self.current_idx += 1

        if array_path.lower().endswith('.npz'):
            with np.load(array_path) as archive:
                key = self.key or archive.files[0]
                array = archive[key]
        else:
            array = np.load(array_path)

        logger.debug(f"Loaded array {array.shape} {array.dtype} from {array_path}")
        return True, array, array_path


def open_source(path: str, config: Dict = None) -> DataSource:
    """Pick the data source matching a path's file extension."""
    extension = os.path.splitext(path)[1].lower()
    if extension in ARRAY_EXTENSIONS:
        return ArraySource(path, config)
    return ImageSource(path, config)


def load_grid(path: str, config: Dict = None) -> np.ndarray:
    """Load the first grid available at a path."""
    with open_source(path, config) as source:
        success, grid, _ = source.get_frame()
    if not success:
        raise RuntimeError(f"No readable input found at: {path}")
    return grid


def save_mask(path: str, mask: np.ndarray) -> None:
    """
    Save a binary mask.

    2D masks are written as 8-bit images (0 / 255); anything else, or a
    path ending in .npy, is saved as a boolean numpy array.
    """
    mask = np.asarray(mask, dtype=bool)
    if mask.ndim != 2 or path.lower().endswith('.npy'):
        np.save(path, mask)
    elif not cv2.imwrite(path, mask.astype(np.uint8) * 255):
        raise IOError(f"Failed to write mask: {path}")
    logger.info(f"Saved mask ({int(np.count_nonzero(mask))} pixels) to {path}")


def save_connectedness(path: str, connectedness: np.ndarray) -> None:
    """
    Save connectedness scores.

    2D grids are written as 16-bit images, which keeps the full score
    range; anything else, or a path ending in .npy, is saved as a numpy array.
    """
    connectedness = np.asarray(connectedness, dtype=np.uint16)
    if connectedness.ndim != 2 or path.lower().endswith('.npy'):
        np.save(path, connectedness)
    elif not cv2.imwrite(path, connectedness):
        raise IOError(f"Failed to write connectedness grid: {path}")
    logger.info(f"Saved connectedness grid to {path}")
