"""
Structural similarity scores between two point clouds.

Neighborhoods are formed in A and B, and every point is associated with
its nearest point in the other cloud. Per attribute, local quantities are
summarized into feature maps by statistical estimators; the relative
difference between associated feature values gives an error map, and
pooling over ``1 - error`` gives a similarity score. Scores are reported
with A as reference (BA), with B as reference (AB), and symmetrically as
the minimum of the two.
"""

from __future__ import annotations

import time
from dataclasses import dataclass, field
from typing import Any, Dict, List, Optional, Tuple

import numpy as np

from ..point_cloud import PointCloud
from ..utils.config import SimilarityConfig, build_similarity_config
from ..utils.exceptions import InputError
from ..utils.logging import setup_logger, log_duration
from .error_map import similarity_map
from .feature_map import feature_map
from .neighbors import NeighborIndex, associate
from .pooling import pool
from .quantities import check_attributes, local_quantities

logger = setup_logger(__name__)


@dataclass
class ScoreTable:
    """
    Similarity scores of one attribute.

    Attributes:
        estimators: Row labels (E)
        pooling: Column labels (P)
        ba: Scores of B with A as reference (E x P), or None
        ab: Scores of A with B as reference (E x P), or None
        sym: Symmetric scores, element-wise min(ba, ab) (E x P), or None
    """

    estimators: List[str]
    pooling: List[str]
    ba: Optional[np.ndarray] = None
    ab: Optional[np.ndarray] = None
    sym: Optional[np.ndarray] = None

    def get(self, direction: str, estimator: str, pooling: str) -> float:
        """Single score lookup, e.g. ``table.get('sym', 'Variance', 'Mean')``."""
        matrix = getattr(self, direction.lower())
        if matrix is None:
            raise KeyError(f"No {direction} scores were computed")
        return float(matrix[self.estimators.index(estimator), self.pooling.index(pooling)])


@dataclass
class SimilarityResult:
    """
    Result of a structural similarity comparison.

    Attributes:
        scores: Score table per enabled attribute ('geometry', 'normal', 'curvature', 'color')
        params: Parameters the scores were computed with
        metadata: Point counts and timing
    """

    scores: Dict[str, ScoreTable]
    params: SimilarityConfig
    metadata: Dict[str, Any] = field(default_factory=dict)

    def __getitem__(self, attribute: str) -> ScoreTable:
        return self.scores[attribute]

    def __contains__(self, attribute: str) -> bool:
        return attribute in self.scores

    def to_records(self) -> List[Dict[str, Any]]:
        """Flatten the scores into one record per (attribute, direction, estimator, pooling)."""
        records = []
        for attribute, table in self.scores.items():
            for direction in ("ba", "ab", "sym"):
                matrix = getattr(table, direction)
                if matrix is None:
                    continue
                for i, estimator in enumerate(table.estimators):
                    for j, method in enumerate(table.pooling):
                        records.append({
                            "attribute": attribute,
                            "direction": direction.upper(),
                            "estimator": estimator,
                            "pooling": method,
                            "score": float(matrix[i, j]),
                        })
        return records

    def to_dataframe(self):
        """Scores as a long-format pandas DataFrame."""
        import pandas as pd

        return pd.DataFrame.from_records(
            self.to_records(), columns=["attribute", "direction", "estimator", "pooling", "score"]
        )


def _directional_scores(
    feat_query: np.ndarray,
    feat_ref: np.ndarray,
    association: np.ndarray,
    params: SimilarityConfig,
) -> np.ndarray:
    scores = np.empty((len(params.estimators), len(params.pooling)), dtype=np.float64)
    for i in range(len(params.estimators)):
        sim_map = similarity_map(feat_query[:, i], feat_ref[:, i], association, params.const)
        scores[i, :] = pool(sim_map, params.pooling)
    return scores


def ssim_score(
    quant_a: np.ndarray,
    quant_b: np.ndarray,
    id_ba: np.ndarray,
    id_ab: np.ndarray,
    params: SimilarityConfig,
) -> ScoreTable:
    """
    Scores of one attribute from its local quantities and the associations.

    Args:
        quant_a: Local quantities of A (N x K')
        quant_b: Local quantities of B (M x K')
        id_ba: Nearest point in A of every point of B (M,)
        id_ab: Nearest point in B of every point of A (N,)
        params: Validated similarity parameters

    Returns:
        ScoreTable holding BA, AB and symmetric scores as configured
    """
    feat_a = feature_map(quant_a, params.estimators)
    feat_b = feature_map(quant_b, params.estimators)

    table = ScoreTable(estimators=list(params.estimators), pooling=list(params.pooling))
    if params.reference in ("both", "a"):
        table.ba = _directional_scores(feat_b, feat_a, id_ba, params)
    if params.reference in ("both", "b"):
        table.ab = _directional_scores(feat_a, feat_b, id_ab, params)
    if table.ba is not None and table.ab is not None:
        # Maximum error, i.e. minimum similarity
        table.sym = np.minimum(table.ba, table.ab)
    return table


def _neighborhoods(index: NeighborIndex, k: int) -> Tuple[np.ndarray, np.ndarray]:
    if k > len(index):
        raise InputError(
            f"Neighborhood size {k} exceeds the number of points ({len(index)})"
        )
    return index.self_knn(k)


def compute_pointssim(
    cloud_a: PointCloud,
    cloud_b: PointCloud,
    params: Optional[SimilarityConfig | Dict[str, Any]] = None,
    **overrides: Any,
) -> SimilarityResult:
    """
    Structural similarity scores between point clouds A and B.

    Both clouds are expected to be free of duplicated coordinates (see
    ``preprocessing.fuse_points``); duplicates make neighborhoods and
    associations ambiguous, so even a cloud compared with itself may score
    below 1.

    Args:
        cloud_a: Reference point cloud
        cloud_b: Test (distorted) point cloud
        params: SimilarityConfig or mapping of its fields (defaults when None)
        **overrides: Individual SimilarityConfig fields, e.g. ``estimators=['Variance']``

    Returns:
        SimilarityResult with one ScoreTable per enabled attribute

    Raises:
        ConfigurationError: Invalid parameters, or an enabled attribute missing on either cloud
        InputError: Neighborhood size larger than either cloud
    """
    cfg = build_similarity_config(params, **overrides)
    attributes = cfg.attributes.enabled()
    check_attributes(attributes, cloud_a, cloud_b)
    if not attributes:
        logger.warning("No attribute enabled; nothing to score")

    k = cfg.neighborhood_size
    start = time.time()

    with log_duration(logger, "Neighborhood formation"):
        index_a = NeighborIndex(cloud_a)
        index_b = NeighborIndex(cloud_b)
        idx_a, dist_a = _neighborhoods(index_a, k)
        idx_b, dist_b = _neighborhoods(index_b, k)

    with log_duration(logger, "Association"):
        # B against A (A as reference), and A against B (B as reference)
        id_ba = associate(index_a, cloud_b)
        id_ab = associate(index_b, cloud_a)

    scores: Dict[str, ScoreTable] = {}
    for attribute in attributes:
        with log_duration(logger, f"{attribute} scores"):
            quant_a = local_quantities(attribute, cloud_a, idx_a, dist_a, label="A")
            quant_b = local_quantities(attribute, cloud_b, idx_b, dist_b, label="B")
            scores[attribute] = ssim_score(quant_a, quant_b, id_ba, id_ab, cfg)
        logger.info("Structural similarity scores based on %s-related features", attribute)

    elapsed = time.time() - start
    logger.info(
        "PointSSIM completed: |A|=%d, |B|=%d, K=%d, attributes=%s in %.2fs",
        len(cloud_a), len(cloud_b), k, attributes, elapsed,
    )
    return SimilarityResult(
        scores=scores,
        params=cfg,
        metadata={
            "n_points_a": len(cloud_a),
            "n_points_b": len(cloud_b),
            "neighborhood_size": k,
            "elapsed_s": elapsed,
        },
    )
