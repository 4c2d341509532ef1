"""
Neighborhood formation and cross-cloud association.

NeighborIndex wraps a scikit-learn KDTree built once per cloud; it answers
k-nearest and radius queries and is never mutated after construction, so
it can be shared freely between readers.
"""

from __future__ import annotations

import logging
from typing import Tuple, Union

import numpy as np
from sklearn.neighbors import KDTree

from ..point_cloud import PointCloud
from ..utils.exceptions import InputError

logger = logging.getLogger(__name__)

PointsLike = Union[PointCloud, np.ndarray]


def _as_points(points: PointsLike) -> np.ndarray:
    if isinstance(points, PointCloud):
        return points.geometry
    arr = np.asarray(points, dtype=np.float64)
    if arr.ndim != 2 or arr.shape[1] != 3:
        raise InputError(f"Expected an N x 3 point array, got shape {arr.shape}")
    if arr.shape[0] == 0:
        raise InputError("Input point array must be non-empty.")
    return arr


class NeighborIndex:
    """
    Euclidean spatial index over a point cloud's geometry.

    Example:
        index = NeighborIndex(cloud)
        idx, dist = index.self_knn(12)
        nearest = index.knn(other.geometry, 1)[0][:, 0]
    """

    def __init__(self, points: PointsLike, leaf_size: int = 40):
        self.points = _as_points(points)
        if not np.all(np.isfinite(self.points)):
            raise InputError("Cannot index non-finite coordinates.")
        self._tree = KDTree(self.points, leaf_size=leaf_size)

    def __len__(self) -> int:
        return int(self.points.shape[0])

    def knn(self, queries: PointsLike, k: int) -> Tuple[np.ndarray, np.ndarray]:
        """
        K nearest indexed points of every query point.

        Returns:
            (indices, distances), both of shape (M, k), sorted by increasing distance
        """
        k = int(k)
        if k < 1:
            raise InputError(f"Number of neighbors must be positive, got {k}")
        if k > len(self):
            raise InputError(f"Neighborhood size {k} exceeds the number of points ({len(self)})")
        dists, indices = self._tree.query(_as_points(queries), k=k, return_distance=True, sort_results=True)
        return indices, dists

    def radius(self, queries: PointsLike, radius: float) -> Tuple[np.ndarray, np.ndarray]:
        """
        Indexed points within ``radius`` of every query point.

        Returns:
            (indices, distances) as object arrays of per-query arrays, sorted by distance
        """
        if radius <= 0:
            raise InputError(f"Search radius must be positive, got {radius}")
        indices, dists = self._tree.query_radius(
            _as_points(queries), r=radius, return_distance=True, sort_results=True
        )
        return indices, dists

    def self_knn(self, k: int) -> Tuple[np.ndarray, np.ndarray]:
        """
        K nearest neighbors of every indexed point, the point itself first.

        Ties at distance zero (duplicated coordinates) may come back from the
        tree in any order; rows are fixed up so that column 0 is always the
        query point's own index.
        """
        indices, dists = self.knn(self.points, k)
        own = np.arange(len(self))
        misplaced = np.flatnonzero(indices[:, 0] != own)
        for i in misplaced:
            row = indices[i]
            hits = np.flatnonzero(row == i)
            if hits.size:
                j = hits[0]
                row[0], row[j] = row[j], row[0]
            else:
                row[0] = i
            dists[i, 0] = 0.0
        if misplaced.size:
            logger.debug("Reordered %d neighborhoods with duplicated coordinates", misplaced.size)
        return indices, dists

    def self_radius(self, radius: float) -> Tuple[np.ndarray, np.ndarray]:
        """Radius neighborhoods of every indexed point (each includes the point itself)."""
        return self.radius(self.points, radius)


def associate(source: Union[PointsLike, NeighborIndex], query: PointsLike) -> np.ndarray:
    """
    Map every query point to its nearest point in ``source``.

    Args:
        source: Cloud (or prebuilt index) searched for nearest points
        query: Cloud whose points are associated

    Returns:
        Integer array of length len(query) holding indices into ``source``
    """
    index = source if isinstance(source, NeighborIndex) else NeighborIndex(source)
    indices, _ = index.knn(query, 1)
    return indices[:, 0]
