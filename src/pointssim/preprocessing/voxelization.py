"""
Voxel-grid rescaling of point cloud geometry.

Coordinates are normalized by the source bit depth, quantized to a grid of
``2^target_bit_depth`` levels and merged per voxel, with color blending.
"""

from __future__ import annotations

import math
from typing import Optional

import numpy as np

from ..point_cloud import PointCloud
from ..utils.exceptions import ConfigurationError, InputError
from ..utils.logging import setup_logger
from .fusion import merge_duplicates

logger = setup_logger(__name__)

# Subtracted from the coordinate range before estimating the source bit depth,
# so that clouds slightly exceeding a power-of-two grid (e.g. 1026 for 1023) map back to it
_RANGE_OFFSET = 10.0


def estimate_bit_depth(geometry: np.ndarray) -> int:
    """Bit depth of the voxel grid the coordinates most likely come from."""
    extent = float(np.max(np.max(geometry, axis=0) - np.min(geometry, axis=0)))
    if extent - _RANGE_OFFSET < 1.0:
        raise InputError(
            f"Cannot estimate a source bit depth from a coordinate range of {extent:g}; "
            "pass source_bit_depth explicitly"
        )
    return int(math.ceil(math.log2(extent - _RANGE_OFFSET)))


def voxelize(
    cloud: PointCloud,
    target_bit_depth: int,
    source_bit_depth: Optional[int] = None,
) -> PointCloud:
    """
    Rescale a cloud to a voxel grid of the given bit depth.

    Args:
        cloud: Input point cloud
        target_bit_depth: Bit depth of the output grid
        source_bit_depth: Bit depth of the input coordinates (estimated when None)

    Returns:
        New PointCloud with integer grid coordinates, one point per occupied
        voxel and blended colors. Normals and curvatures are dropped since
        they no longer match the resampled geometry.
    """
    if target_bit_depth < 1:
        raise ConfigurationError(f"Target bit depth must be positive, got {target_bit_depth}")
    if source_bit_depth is None:
        source_bit_depth = estimate_bit_depth(cloud.geometry)
    elif source_bit_depth < 1:
        raise ConfigurationError(f"Source bit depth must be positive, got {source_bit_depth}")

    step = 1.0 / (2 ** target_bit_depth - 1)
    normalized = cloud.geometry / (2 ** source_bit_depth - 1)
    quantized = np.floor(normalized / step + 0.5)

    unique, blended, _, _ = merge_duplicates(quantized, cloud.color)
    logger.info(
        "Voxelization %d -> %d bits: %d points -> %d voxels",
        source_bit_depth, target_bit_depth, len(cloud), len(unique),
    )
    if cloud.normal is not None or cloud.curvature is not None:
        logger.info("Normals/curvatures dropped by voxelization; re-estimate them on the new geometry")
    return PointCloud(geometry=unique, color=blended)
