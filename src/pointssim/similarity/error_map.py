"""Relative-difference error maps between associated feature maps."""

from __future__ import annotations

import numpy as np

from ..utils.exceptions import ConfigurationError


def error_map(
    feature_query: np.ndarray,
    feature_reference: np.ndarray,
    association: np.ndarray,
    const: float,
) -> np.ndarray:
    """
    Error map of the query cloud, using the other cloud as reference.

    ``e[i] = |f_ref[a[i]] - f_query[i]| / (max(|f_ref[a[i]]|, |f_query[i]|) + const)``

    Args:
        feature_query: Feature values of the query cloud (M,)
        feature_reference: Feature values of the reference cloud (N,)
        association: Index of the nearest reference point for every query point (M,)
        const: Small non-negative constant; a positive value avoids 0/0

    Returns:
        Error values (M,); NaN where either feature is NaN
    """
    if const < 0 or np.isnan(const):
        raise ConfigurationError(f"const must be non-negative, got {const}")
    f_query = np.asarray(feature_query, dtype=np.float64).reshape(-1)
    f_ref = np.asarray(feature_reference, dtype=np.float64).reshape(-1)[np.asarray(association)]
    if f_ref.shape != f_query.shape:
        raise ValueError(
            f"Association has {f_ref.shape[0]} entries but the query feature map has {f_query.shape[0]}"
        )
    with np.errstate(invalid="ignore"):
        return np.abs(f_ref - f_query) / (np.maximum(np.abs(f_ref), np.abs(f_query)) + const)


def similarity_map(
    feature_query: np.ndarray,
    feature_reference: np.ndarray,
    association: np.ndarray,
    const: float,
) -> np.ndarray:
    """Similarity map, ``1 - error_map``."""
    return 1.0 - error_map(feature_query, feature_reference, association, const)
