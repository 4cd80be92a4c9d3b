# pipeline/__init__.py
"""
Pipeline integration modules for fuzzy connectedness segmentation.
"""

from pipeline.segmentation_pipeline import (
    SegmentationController, SegmentationResult, create_affinity_model, create_controller
)
from pipeline.data_sources import DataSource, ImageSource, ArraySource, load_grid, save_mask, save_connectedness

__all__ = ['SegmentationController', 'SegmentationResult', 'create_affinity_model', 'create_controller',
           'DataSource', 'ImageSource', 'ArraySource', 'load_grid', 'save_mask', 'save_connectedness']
