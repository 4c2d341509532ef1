"""
PointSSIM Package

A Python package for structural similarity assessment between point clouds.
Local neighborhoods of a reference and a distorted cloud are summarized
per attribute (geometry, normals, curvatures, color luminance) by
statistical dispersion estimators; the relative difference between
associated feature maps is pooled into similarity scores.
Normals and curvatures can be estimated by local quadric fitting when the
input clouds do not carry them.
"""

__version__ = "0.1.0"

from .point_cloud import PointCloud
from .preprocessing import *
from .estimation import *
from .similarity import *
from .pipeline import *
from .utils import *

__all__ = [
    "PointCloud",
    "preprocessing",
    "estimation",
    "similarity",
    "pipeline",
    "utils",
]
