# connectedness/engine/__init__.py
"""
Seeded propagation computing fuzzy connectedness scores over a pixel grid.
"""

from connectedness.engine.propagation import ConnectednessEngine

__all__ = ['ConnectednessEngine']
