"""
Structural Similarity Module

Exports the scoring pipeline and its building blocks:
- neighbors.py: spatial index, neighborhoods and cross-cloud association
- quantities.py: per-attribute local quantities
- feature_map.py: statistical estimators over local quantities
- error_map.py: relative-difference error and similarity maps
- pooling.py: NaN-ignoring pooling of maps into scores
- pointssim.py: orchestration into per-attribute score tables
"""

from .neighbors import NeighborIndex, associate
from .quantities import local_quantities, normal_similarity
from .feature_map import ESTIMATORS, canonical_estimator, feature_map
from .error_map import error_map, similarity_map
from .pooling import POOLING, canonical_pooling, pool
from .pointssim import ScoreTable, SimilarityResult, compute_pointssim, ssim_score

__all__ = [
    "NeighborIndex",
    "associate",
    "local_quantities",
    "normal_similarity",
    "ESTIMATORS",
    "canonical_estimator",
    "feature_map",
    "error_map",
    "similarity_map",
    "POOLING",
    "canonical_pooling",
    "pool",
    "ScoreTable",
    "SimilarityResult",
    "compute_pointssim",
    "ssim_score",
]
