"""
End-to-end structural similarity workflow.

Prepares a reference and a distorted cloud the same way (sorting, point
fusion, optional voxelization), estimates normals/curvatures when enabled
attributes need them and the clouds lack them, then scores the pair.
"""

from __future__ import annotations

from typing import Optional, Tuple

from ..estimation import QuadricFitEstimator
from ..point_cloud import PointCloud
from ..preprocessing import fuse_points, sort_geometry, voxelize
from ..similarity import SimilarityResult, compute_pointssim
from ..utils.config import AppConfig
from ..utils.logging import setup_logger

logger = setup_logger(__name__)


def prepare_cloud(cloud: PointCloud, config: AppConfig) -> PointCloud:
    """Apply the configured sorting, fusion and voxelization steps."""
    pre = config.preprocessing
    if pre.sort_geometry:
        cloud = sort_geometry(cloud)
    if pre.fuse_points:
        cloud = fuse_points(cloud)
    if pre.voxelize:
        cloud = voxelize(cloud, pre.target_bit_depth)
    return cloud


def estimate_missing_attributes(
    cloud_a: PointCloud,
    cloud_b: PointCloud,
    config: AppConfig,
) -> Tuple[PointCloud, PointCloud]:
    """
    Estimate normals/curvatures for both clouds when scoring needs them.

    The search size is resolved once on the reference cloud and reused for
    the distorted cloud, so both are fitted with identical neighborhoods.
    """
    attrs = config.similarity.attributes
    needs_estimation = (attrs.normal and (cloud_a.normal is None or cloud_b.normal is None)) or (
        attrs.curvature and (cloud_a.curvature is None or cloud_b.curvature is None)
    )
    if not needs_estimation:
        return cloud_a, cloud_b
    if not config.estimation.enabled:
        logger.warning("Normals/curvatures are missing and estimation is disabled")
        return cloud_a, cloud_b

    estimator = QuadricFitEstimator.from_config(config)
    estimator.search_size = estimator.resolve_search_size(cloud_a)
    return estimator.apply(cloud_a), estimator.apply(cloud_b)


def run_pointssim(
    cloud_a: PointCloud,
    cloud_b: PointCloud,
    config: Optional[AppConfig] = None,
) -> SimilarityResult:
    """
    Prepare both clouds, estimate missing attributes and compute the scores.

    Args:
        cloud_a: Reference (original) point cloud
        cloud_b: Distorted point cloud
        config: Application configuration (defaults when None)

    Returns:
        SimilarityResult for the attributes enabled in ``config.similarity``
    """
    config = config or AppConfig()
    cloud_a = prepare_cloud(cloud_a, config)
    cloud_b = prepare_cloud(cloud_b, config)
    cloud_a, cloud_b = estimate_missing_attributes(cloud_a, cloud_b, config)
    return compute_pointssim(cloud_a, cloud_b, config.similarity)
