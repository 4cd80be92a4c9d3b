# connectedness/utils/visualization.py

import logging
from typing import Dict, Optional, Sequence, Tuple

import cv2
import numpy as np
from matplotlib.figure import Figure

from connectedness.utils.grid import MAX_SCORE

logger = logging.getLogger(__name__)


class SegmentationVisualizer:
    """
    Visualization utilities for fuzzy connectedness results.

    All images handled here are 2D and in RGB channel order. Volumes are
    shown one slice at a time (see select_slice).
    """

    def __init__(self, config: Dict = None):
        """
        Initialize the visualizer.

        Args:
            config: Configuration dictionary with visualization parameters
        """
        self.config = {
            'mask_color': (0, 255, 0),  # RGB green
            'contour_color': (255, 255, 0),  # RGB yellow
            'seed_color': (255, 0, 0),  # RGB red
            'mask_alpha': 0.4,  # Alpha for mask fill
            'scores_alpha': 0.6,  # Alpha for connectedness overlay
            'contour_thickness': 1,
            'seed_radius': 3,
            'colormap': cv2.COLORMAP_TURBO,
            **(config or {})
        }

    def visualize_result(self,
                         image: np.ndarray,
                         connectedness: Optional[np.ndarray] = None,
                         mask: Optional[np.ndarray] = None,
                         seed: Optional[Sequence[int]] = None) -> np.ndarray:
        """
        Visualize segmentation results on the input image.

        Args:
            image: Original 2D input image
            connectedness: Connectedness scores (optional)
            mask: Binary mask (optional)
            seed: Seed coordinate as (row, col) (optional)

        Returns:
            RGB uint8 image with the results overlaid
        """
        vis_image = self.to_display_image(image)

        # 1. Show connectedness scores
        if connectedness is not None:
            colored = self.colorize_connectedness(connectedness)
            alpha = self.config['scores_alpha']
            vis_image = cv2.addWeighted(vis_image, 1 - alpha, colored, alpha, 0)

        # 2. Show the object mask
        if mask is not None:
            vis_image = self.overlay_mask(vis_image, mask)

        # 3. Mark the seed
        if seed is not None:
            vis_image = self.draw_seed(vis_image, seed)

        return vis_image

    def to_display_image(self, image: np.ndarray) -> np.ndarray:
        """
        Convert a 2D sample grid into an RGB uint8 image.

        Non-uint8 images are stretched to the full 0-255 range; single-channel
        images are replicated into gray.
        """
        image = np.asarray(image)
        if image.ndim == 3 and image.shape[-1] == 1:
            image = image[..., 0]

        if image.dtype != np.uint8:
            image = image.astype(np.float64)
            low, high = float(image.min()), float(image.max())
            if high > low:
                image = (image - low) / (high - low) * 255.0
            else:
                image = np.zeros_like(image)
            image = image.astype(np.uint8)

        if image.ndim == 2:
            image = cv2.cvtColor(image, cv2.COLOR_GRAY2RGB)
        elif image.ndim != 3 or image.shape[-1] != 3:
            raise ValueError(f"Cannot display image of shape {image.shape}")

        return np.array(image, order="C", copy=True)

    def colorize_connectedness(self, connectedness: np.ndarray) -> np.ndarray:
        """
        Map connectedness scores onto a color scale.

        Args:
            connectedness: 2D array of scores in [0, MAX_SCORE]

        Returns:
            RGB uint8 image
        """
        scaled = (np.asarray(connectedness, dtype=np.float64) * (255.0 / MAX_SCORE)).astype(np.uint8)
        colored = cv2.applyColorMap(scaled, self.config['colormap'])

        # OpenCV colormaps are BGR
        return cv2.cvtColor(colored, cv2.COLOR_BGR2RGB)

    def overlay_mask(self, image: np.ndarray, mask: np.ndarray) -> np.ndarray:
        """
        Fill the mask region with a translucent color and outline it.

        Args:
            image: RGB uint8 image
            mask: Boolean mask with the image's height and width

        Returns:
            Image with the mask overlaid
        """
        mask = np.asarray(mask, dtype=bool)
        if mask.shape != image.shape[:2]:
            raise ValueError(f"Mask shape {mask.shape} does not match image shape {image.shape[:2]}")

        fill = image.copy()
        fill[mask] = self.config['mask_color']
        alpha = self.config['mask_alpha']
        blended = cv2.addWeighted(image, 1 - alpha, fill, alpha, 0)

        # Draw mask boundary
        contours, _ = cv2.findContours(mask.astype(np.uint8), cv2.RETR_EXTERNAL, cv2.CHAIN_APPROX_SIMPLE)
        cv2.drawContours(blended, contours, -1, self.config['contour_color'],
                         self.config['contour_thickness'])

        return blended

    def draw_seed(self, image: np.ndarray, seed: Sequence[int]) -> np.ndarray:
        """Mark a (row, col) seed with a filled circle."""
        row, col = int(seed[0]), int(seed[1])
        cv2.circle(image, (col, row), self.config['seed_radius'], self.config['seed_color'], -1)
        return image

    def save_summary_figure(self,
                            path: str,
                            image: np.ndarray,
                            connectedness: np.ndarray,
                            mask: np.ndarray,
                            threshold: Optional[float] = None,
                            seed: Optional[Sequence[int]] = None) -> None:
        """
        Save a four-panel figure: input, connectedness, mask and score histogram.

        Args:
            path: Output image path
            image: Original 2D input image
            connectedness: 2D connectedness scores
            mask: 2D binary mask
            threshold: Threshold marked on the histogram (optional)
            seed: Seed coordinate as (row, col) (optional)
        """
        fig = Figure(figsize=(16, 4))
        axes = fig.subplots(1, 4)

        display = self.to_display_image(image)
        if seed is not None:
            display = self.draw_seed(display.copy(), seed)

        axes[0].imshow(display)
        axes[0].set_title("Input")

        scores_plot = axes[1].imshow(connectedness, cmap='turbo', vmin=0, vmax=MAX_SCORE)
        axes[1].set_title("Connectedness")
        fig.colorbar(scores_plot, ax=axes[1], fraction=0.046, pad=0.04)

        axes[2].imshow(self.overlay_mask(self.to_display_image(image), mask))
        axes[2].set_title(f"Mask ({int(np.count_nonzero(mask))} px)")

        for ax in axes[:3]:
            ax.axis('off')

        axes[3].hist(np.asarray(connectedness).ravel(), bins=64, range=(0, MAX_SCORE), color='gray')
        if threshold is not None:
            axes[3].axvline(threshold, color='red', linestyle='--', label=f"threshold={threshold:g}")
            axes[3].legend()
        axes[3].set_title("Score histogram")
        axes[3].set_xlabel("Connectedness")

        fig.tight_layout()
        fig.savefig(path, dpi=100)
        logger.info(f"Saved summary figure to {path}")


def select_slice(volume: np.ndarray, index: Optional[int] = None) -> Tuple[np.ndarray, int]:
    """
    Pick one slice of a 3D grid for display.

    Args:
        volume: Array whose first axis indexes slices
        index: Slice index (default: middle slice)

    Returns:
        Tuple of (slice, index)
    """
    if index is None:
        index = volume.shape[0] // 2
    return volume[index], index
