"""
Per-attribute local quantities.

For every point and every point of its neighborhood, a scalar quantity is
derived from one attribute. The resulting N x K' matrix is what the
dispersion estimators summarize.

- geometry: distance to each neighbor (self excluded)
- normal: angular similarity with each neighbor's normal (self excluded)
- curvature: curvature of each neighbor (self included)
- color: luminance of each neighbor (self included)
"""

from __future__ import annotations

from typing import Callable, Dict, Optional, Sequence

import numpy as np

from ..point_cloud import PointCloud
from ..preprocessing.color import luminance
from ..utils.exceptions import ConfigurationError


def geometry_quantities(cloud: PointCloud, neighbor_idx: np.ndarray, neighbor_dist: np.ndarray) -> np.ndarray:
    """Distances from each point to its neighbors, dropping the self column."""
    return np.asarray(neighbor_dist, dtype=np.float64)[:, 1:]


def normal_similarity(normals: np.ndarray, neighbor_idx: np.ndarray) -> np.ndarray:
    """
    Angular similarity between every normal and the normals of its neighbors.

    Computes ``1 - (2/pi) * acos(|n_i . n_k| / (|n_i| |n_k|))``. The acos argument
    is clipped to [-1, 1] to absorb rounding noise. Rows and columns follow
    ``neighbor_idx`` (N x K), including the self column.
    """
    normals = np.asarray(normals, dtype=np.float64)
    center = normals[:, None, :]
    neighbors = normals[neighbor_idx]
    dots = np.abs(np.sum(center * neighbors, axis=2))
    norms = np.linalg.norm(center, axis=2) * np.linalg.norm(neighbors, axis=2)
    with np.errstate(divide="ignore", invalid="ignore"):
        cosine = np.clip(dots / norms, -1.0, 1.0)
        return 1.0 - 2.0 * np.arccos(cosine) / np.pi


def normal_quantities(cloud: PointCloud, neighbor_idx: np.ndarray, neighbor_dist: np.ndarray) -> np.ndarray:
    # The self pair is always 1 and carries no information
    return normal_similarity(cloud.normal, neighbor_idx)[:, 1:]


def curvature_quantities(cloud: PointCloud, neighbor_idx: np.ndarray, neighbor_dist: np.ndarray) -> np.ndarray:
    return np.asarray(cloud.curvature, dtype=np.float64)[neighbor_idx]


def color_quantities(cloud: PointCloud, neighbor_idx: np.ndarray, neighbor_dist: np.ndarray) -> np.ndarray:
    return luminance(cloud.color)[neighbor_idx]


QUANTIZERS: Dict[str, Callable[[PointCloud, np.ndarray, np.ndarray], np.ndarray]] = {
    "geometry": geometry_quantities,
    "normal": normal_quantities,
    "curvature": curvature_quantities,
    "color": color_quantities,
}


def check_attributes(
    attributes: Sequence[str],
    *clouds: PointCloud,
    labels: Optional[Sequence[str]] = None,
) -> None:
    """
    Fail fast when a requested attribute is unknown or missing from any cloud.

    ``labels`` name the clouds in error messages and default to "A", "B" in
    argument order. An empty label leaves the cloud unnamed.

    Raises:
        ConfigurationError: naming the attribute and the offending cloud
    """
    for attribute in attributes:
        if attribute not in QUANTIZERS:
            raise ConfigurationError(f"Unsupported attribute: {attribute!r}")
        for label, cloud in zip(labels if labels is not None else "AB", clouds):
            if not cloud.has(attribute):
                where = f"point cloud {label}" if label else "point cloud"
                raise ConfigurationError(f"No {attribute} found in {where}.")


def local_quantities(
    attribute: str,
    cloud: PointCloud,
    neighbor_idx: np.ndarray,
    neighbor_dist: np.ndarray,
    label: Optional[str] = None,
) -> np.ndarray:
    """
    Build the local-quantity matrix of ``cloud`` for one attribute.

    Args:
        attribute: One of 'geometry', 'normal', 'curvature', 'color'
        cloud: Point cloud providing the attribute
        neighbor_idx: Self-neighborhood indices (N x K), self in column 0
        neighbor_dist: Matching distances (N x K)
        label: Name of ``cloud`` in error messages (e.g. "A" or "B")

    Returns:
        N x (K-1) matrix for geometry/normal, N x K for curvature/color
    """
    check_attributes([attribute], cloud, labels=[label or ""])
    return QUANTIZERS[attribute](cloud, neighbor_idx, neighbor_dist)
