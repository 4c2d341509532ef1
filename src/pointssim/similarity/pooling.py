"""
Pooling of per-point maps into scores.

NaN entries (points whose feature could not be computed) are ignored by
every reduction. A map made only of NaNs pools to NaN.
"""

from __future__ import annotations

from typing import Callable, Dict, Sequence

import numpy as np

from ..utils.exceptions import ConfigurationError


POOLING: Dict[str, Callable[[np.ndarray], float]] = {
    "Mean": np.nanmean,
    "Min": np.nanmin,
    "Max": np.nanmax,
    "Median": np.nanmedian,
    "RMS": lambda x: np.sqrt(np.nanmean(np.square(x))),
    "MSE": lambda x: np.nanmean(np.square(x)),
}

_ALIASES = {name.lower(): name for name in POOLING}
_ALIASES["rmse"] = "RMS"


def canonical_pooling(name: str) -> str:
    """
    Resolve a pooling name (case-insensitive, 'RMSE' accepted) to its canonical form.

    Raises:
        ConfigurationError: If the pooling method is not supported
    """
    try:
        return _ALIASES[str(name).strip().lower()]
    except KeyError:
        raise ConfigurationError(
            f"Unsupported pooling method {name!r}; expected one of {sorted(POOLING)}"
        ) from None


def pool(values: np.ndarray, methods: Sequence[str]) -> np.ndarray:
    """
    Pool a map with each requested method.

    Args:
        values: Per-point values (error or similarity map)
        methods: Pooling method names, e.g. ['Mean', 'RMS']

    Returns:
        Array of length P with one score per method
    """
    names = [canonical_pooling(m) for m in methods]
    x = np.asarray(values, dtype=np.float64).reshape(-1)

    scores = np.full(len(names), np.nan, dtype=np.float64)
    if np.all(np.isnan(x)):
        return scores
    for k, name in enumerate(names):
        scores[k] = float(POOLING[name](x))
    return scores
