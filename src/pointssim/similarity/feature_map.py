"""
Feature maps from local quantities.

Each row of a local-quantity matrix is reduced to one scalar with a
statistical estimator (mostly dispersion estimators). Several estimators
can be requested at once; each yields one column of the feature map.
"""

from __future__ import annotations

from typing import Callable, Dict, Sequence

import numpy as np

from ..utils.exceptions import ConfigurationError


def _variance(q: np.ndarray) -> np.ndarray:
    return np.var(q, axis=1)


def _median(q: np.ndarray) -> np.ndarray:
    return np.median(q, axis=1)


def _mean_ad(q: np.ndarray) -> np.ndarray:
    return np.mean(np.abs(q - np.mean(q, axis=1, keepdims=True)), axis=1)


def _median_ad(q: np.ndarray) -> np.ndarray:
    return np.median(np.abs(q - np.median(q, axis=1, keepdims=True)), axis=1)


def _cov(q: np.ndarray) -> np.ndarray:
    return np.std(q, axis=1) / np.mean(q, axis=1)


def _qcd(q: np.ndarray) -> np.ndarray:
    # Quartiles at ranks (i - 0.5) / n, linearly interpolated
    q1, q3 = np.quantile(q, [0.25, 0.75], axis=1, method="hazen")
    return (q3 - q1) / (q3 + q1)


def _mean(q: np.ndarray) -> np.ndarray:
    return np.mean(q, axis=1)


ESTIMATORS: Dict[str, Callable[[np.ndarray], np.ndarray]] = {
    "Variance": _variance,
    "Median": _median,
    "MeanAD": _mean_ad,
    "MedianAD": _median_ad,
    "COV": _cov,
    "QCD": _qcd,
    "Mean": _mean,
}

_ALIASES = {name.lower(): name for name in ESTIMATORS}
_ALIASES["var"] = "Variance"


def canonical_estimator(name: str) -> str:
    """
    Resolve an estimator name (case-insensitive, 'VAR' accepted) to its canonical form.

    Raises:
        ConfigurationError: If the estimator is not supported
    """
    try:
        return _ALIASES[str(name).strip().lower()]
    except KeyError:
        raise ConfigurationError(
            f"Unsupported estimator {name!r}; expected one of {sorted(ESTIMATORS)}"
        ) from None


def feature_map(quantities: np.ndarray, estimators: Sequence[str]) -> np.ndarray:
    """
    Reduce every row of a local-quantity matrix with each estimator.

    Args:
        quantities: N x K matrix of local quantities
        estimators: Estimator names, e.g. ['Variance', 'Mean']

    Returns:
        N x E feature map, one column per estimator (NaN rows stay NaN)
    """
    names = [canonical_estimator(e) for e in estimators]
    q = np.asarray(quantities, dtype=np.float64)
    if q.ndim != 2:
        raise ValueError(f"Local quantities must be a 2-D matrix, got shape {q.shape}")

    fmap = np.empty((q.shape[0], len(names)), dtype=np.float64)
    with np.errstate(divide="ignore", invalid="ignore"):
        for k, name in enumerate(names):
            fmap[:, k] = ESTIMATORS[name](q)
    return fmap
