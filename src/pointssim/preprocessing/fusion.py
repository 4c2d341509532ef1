"""
Geometry sorting and point fusion.

Duplicated coordinates are merged into a single point; when the cloud has
colors, the merged point takes the rounded mean color of its duplicates.
"""

from __future__ import annotations

from typing import Optional, Tuple

import numpy as np

from ..point_cloud import PointCloud
from ..utils.logging import setup_logger
from .color import round_half_away

logger = setup_logger(__name__)


def sort_geometry(cloud: PointCloud) -> PointCloud:
    """Sort points lexicographically by (x, y, z); attributes follow their points."""
    g = cloud.geometry
    order = np.lexsort((g[:, 2], g[:, 1], g[:, 0]))
    return cloud.take(order)


def merge_duplicates(
    geometry: np.ndarray,
    color: Optional[np.ndarray] = None,
) -> Tuple[np.ndarray, Optional[np.ndarray], np.ndarray, np.ndarray]:
    """
    Merge rows with identical coordinates.

    Args:
        geometry: Coordinates (N x 3)
        color: Optional colors (N x 3), averaged per merged point and rounded

    Returns:
        (unique geometry sorted lexicographically, blended colors or None,
        index of the first occurrence of each unique point, group id of every input point)
    """
    unique, first, inverse = np.unique(geometry, axis=0, return_index=True, return_inverse=True)
    inverse = inverse.reshape(-1)

    blended = None
    if color is not None:
        counts = np.bincount(inverse, minlength=len(unique)).astype(np.float64)
        sums = np.zeros((len(unique), 3), dtype=np.float64)
        np.add.at(sums, inverse, np.asarray(color, dtype=np.float64))
        blended = round_half_away(sums / counts[:, None])
    return unique, blended, first, inverse


def fuse_points(cloud: PointCloud) -> PointCloud:
    """
    Remove duplicated points, blending their colors.

    Normals and curvatures, when present, are taken from the first occurrence
    of each coordinate. The output is sorted lexicographically.
    """
    unique, blended, first, _ = merge_duplicates(cloud.geometry, cloud.color)

    n_removed = len(cloud) - len(unique)
    if n_removed:
        logger.warning("Duplicated points found: %d merged", n_removed)
        if cloud.color is not None:
            logger.warning("Color blending is applied.")
    else:
        logger.debug("No duplicated points found")

    return PointCloud(
        geometry=unique,
        normal=None if cloud.normal is None else cloud.normal[first],
        curvature=None if cloud.curvature is None else cloud.curvature[first],
        color=blended,
    )
