# connectedness/errors.py

"""
Error types raised by the fuzzy connectedness segmentation core.
"""


class ConnectednessError(Exception):
    """Base class for all segmentation errors."""


class InvalidModel(ConnectednessError, ValueError):
    """
    An affinity model is unusable.

    Raised when a covariance matrix is (near-)singular or malformed, or when
    a model is used before it has been configured.
    """


class SeedOutOfBounds(ConnectednessError, IndexError):
    """The seed coordinate lies outside the input grid."""


class NoResultAvailable(ConnectednessError, RuntimeError):
    """A result was requested before a successful run."""


class SegmentationCancelled(ConnectednessError):
    """A propagation run was aborted through its cancel event."""
