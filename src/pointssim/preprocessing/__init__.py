"""
Point Cloud Preprocessing Module

This module prepares point clouds before structural similarity scoring:
- Loading from LAS/LAZ, NumPy and text files
- Geometry sorting and point fusion of duplicated coordinates
- Voxel-grid rescaling to a target bit depth
- RGB to YUV conversion (luminance)
"""

from .loader import PointCloudLoader
from .fusion import sort_geometry, fuse_points, merge_duplicates
from .voxelization import voxelize, estimate_bit_depth
from .color import rgb_to_yuv, luminance, round_half_away

__all__ = [
    "PointCloudLoader",
    "sort_geometry",
    "fuse_points",
    "merge_duplicates",
    "voxelize",
    "estimate_bit_depth",
    "rgb_to_yuv",
    "luminance",
    "round_half_away",
]
