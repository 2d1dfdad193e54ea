"""
Metric distance output: distance images and the grids they are exported to.
"""

from .distance_image import DistanceImage
from .grid import DistanceGrid

__all__ = ['DistanceImage', 'DistanceGrid']
