"""
Normal and curvature estimation by local quadric fitting.

For every point, the neighborhood (k-NN or radius search, the point itself
included) is expressed in its principal-axes frame, translated so the point
sits at the origin, and a second-order surface

    z = p20*x^2 + p11*x*y + p10*x + p02*y^2 + p01*y + p00

is fitted by least squares. The normal follows from the gradient at the
origin and the curvature from the quadratic form. Points whose neighborhood
is too small or degenerate get NaN normal and curvature; the rest of the
cloud is unaffected.
"""

from __future__ import annotations

from typing import Literal, Optional, Sequence, Tuple, Union

import numpy as np

from ..acceleration import ChunkParallelExecutor, split_indices
from ..point_cloud import PointCloud
from ..preprocessing.color import round_half_away
from ..similarity.neighbors import NeighborIndex
from ..utils.config import AppConfig
from ..utils.exceptions import ConfigurationError
from ..utils.logging import setup_logger, log_duration

logger = setup_logger(__name__)

# Number of coefficients of the quadric
_N_COEFFS = 6

_NAN_NORMAL = np.full(3, np.nan)


def principal_axes(neighborhood: np.ndarray) -> Optional[np.ndarray]:
    """
    Orthonormal principal axes of a neighborhood, as columns sorted by decreasing variance.

    Each column is signed so that its largest-magnitude component is positive.
    Returns None when the covariance is undefined or cannot be decomposed.
    """
    centered = neighborhood - neighborhood.mean(axis=0)
    cov = centered.T @ centered / neighborhood.shape[0]
    if np.count_nonzero(np.isnan(cov)) > 1:
        return None
    try:
        eigvals, eigvecs = np.linalg.eigh(cov)
    except np.linalg.LinAlgError:
        return None
    if eigvecs.shape != (3, 3) or not np.all(np.isfinite(eigvecs)):
        return None

    eigvecs = eigvecs[:, np.argsort(eigvals)[::-1]]
    pivots = np.argmax(np.abs(eigvecs), axis=0)
    signs = np.sign(eigvecs[pivots, np.arange(3)])
    signs[signs == 0] = 1.0
    return eigvecs * signs


def fit_quadric(xyz: np.ndarray) -> Optional[np.ndarray]:
    """
    Least-squares quadric coefficients (p20, p11, p10, p02, p01, p00) of z over (x, y).

    Returns None when fewer than six points are given or the design matrix is rank deficient.
    """
    if xyz.shape[0] < _N_COEFFS:
        return None
    x, y, z = xyz[:, 0], xyz[:, 1], xyz[:, 2]
    design = np.column_stack([x * x, x * y, x, y * y, y, np.ones_like(x)])
    coeffs, _, rank, _ = np.linalg.lstsq(design, z, rcond=None)
    if rank < _N_COEFFS or not np.all(np.isfinite(coeffs)):
        return None
    return coeffs


def fit_point_quadric(point: np.ndarray, neighborhood: np.ndarray) -> Tuple[np.ndarray, float]:
    """
    Normal and curvature of one point from its neighborhood.

    Args:
        point: Query point (3,)
        neighborhood: Neighborhood coordinates (K x 3), the point itself included

    Returns:
        (normal, curvature); NaN-filled when the neighborhood is degenerate
    """
    neighborhood = np.asarray(neighborhood, dtype=np.float64)
    if neighborhood.ndim != 2 or neighborhood.shape[0] == 0:
        return _NAN_NORMAL.copy(), np.nan

    axes = principal_axes(neighborhood)
    if axes is None:
        return _NAN_NORMAL.copy(), np.nan

    centroid = neighborhood.mean(axis=0)
    local = (neighborhood - centroid) @ axes
    origin = (np.asarray(point, dtype=np.float64) - centroid) @ axes
    coeffs = fit_quadric(local - origin)
    if coeffs is None:
        return _NAN_NORMAL.copy(), np.nan

    p20, p11, p10, p02, p01, _ = coeffs
    normal = np.array([-p10, -p01, 1.0])
    normal /= np.linalg.norm(normal)
    normal = axes @ normal
    normal /= np.linalg.norm(normal)

    curvature = ((1 + p10 ** 2) * p20 + (1 + p01 ** 2) * p02 - 4 * p20 * p02 * p11) / (
        1 + p01 ** 2 + p10 ** 2
    ) ** 1.5
    return normal, float(curvature)


def fit_quadrics(payload: Tuple[np.ndarray, np.ndarray, Sequence[np.ndarray]]) -> Tuple[np.ndarray, np.ndarray]:
    """
    Fit every point of one chunk.

    Module-level so it can be shipped to worker processes.

    Args:
        payload: (query points (C x 3), local coordinates, per-query neighbor
            indices into the local coordinates)

    Returns:
        (normals (C x 3), curvatures (C,))
    """
    queries, coords, neighborhoods = payload
    normals = np.full((len(queries), 3), np.nan)
    curvatures = np.full(len(queries), np.nan)
    for i, (point, nbrs) in enumerate(zip(queries, neighborhoods)):
        normals[i], curvatures[i] = fit_point_quadric(point, coords[nbrs])
    return normals, curvatures


def _chunk_payload(
    points: np.ndarray,
    chunk: np.ndarray,
    neighborhoods: Union[np.ndarray, Sequence[np.ndarray]],
) -> Tuple[np.ndarray, np.ndarray, list]:
    """Coordinates a chunk needs, with its neighborhoods re-indexed into them."""
    rows = [np.asarray(neighborhoods[i], dtype=np.int64) for i in chunk]
    lengths = [len(r) for r in rows]
    flat = np.concatenate(rows) if rows else np.empty(0, dtype=np.int64)
    used, inverse = np.unique(flat, return_inverse=True)
    local = np.split(inverse.reshape(-1), np.cumsum(lengths)[:-1])
    return points[chunk], points[used], local


class QuadricFitEstimator:
    """
    Estimate per-point normals and curvatures by quadric fitting.

    Example:
        estimator = QuadricFitEstimator(search_method="knn", search_size=12)
        normals, curvatures = estimator.estimate(cloud)
        cloud = estimator.apply(cloud)
    """

    def __init__(
        self,
        search_method: Literal["knn", "rs"] = "rs",
        search_size: Optional[float] = None,
        *,
        radius_ratio: float = 0.01,
        knn: int = 12,
        chunk_size: int = 20_000,
        n_workers: Optional[int] = 1,
    ):
        """
        Args:
            search_method: 'knn' (k nearest neighbors) or 'rs' (radius search)
            search_size: k for 'knn' or the radius for 'rs'; None derives it
                (knn default, or radius_ratio times the largest bounding-box extent)
            radius_ratio: Fraction of the bounding-box extent used as default radius
            knn: Default k
            chunk_size: Points per worker task
            n_workers: Worker processes (None = cpu_count - 1, 1 = in-process)
        """
        if search_method not in ("knn", "rs"):
            raise ConfigurationError(f"Search method {search_method!r} is not supported; use 'knn' or 'rs'")
        if search_size is not None and not search_size > 0:
            raise ConfigurationError(f"Search size should be positive, got {search_size}")
        if search_method == "knn" and search_size is not None and int(search_size) != search_size:
            raise ConfigurationError(f"k must be an integer for k-NN search, got {search_size}")

        self.search_method = search_method
        self.search_size = search_size
        self.radius_ratio = radius_ratio
        self.knn = int(knn)
        self.chunk_size = int(chunk_size)
        self.n_workers = n_workers

    @classmethod
    def from_config(cls, config: AppConfig) -> "QuadricFitEstimator":
        est = config.estimation
        n_workers = config.parallel.n_workers if config.parallel.enabled else 1
        return cls(
            search_method=est.search_method,
            search_size=est.search_size,
            radius_ratio=est.radius_ratio,
            knn=est.knn,
            chunk_size=est.chunk_size,
            n_workers=n_workers,
        )

    def resolve_search_size(self, points: Union[PointCloud, np.ndarray]) -> float:
        """Search size to use for ``points`` (explicit value or derived default)."""
        if self.search_size is not None:
            return self.search_size
        if self.search_method == "knn":
            return self.knn
        geometry = points.geometry if isinstance(points, PointCloud) else np.asarray(points)
        extent = float(np.max(geometry.max(axis=0) - geometry.min(axis=0)))
        radius = float(round_half_away(self.radius_ratio * extent))
        if radius <= 0:
            radius = self.radius_ratio * extent
        if radius <= 0:
            raise ConfigurationError("Cannot derive a search radius from a zero-extent cloud")
        return radius

    def estimate(self, points: Union[PointCloud, np.ndarray]) -> Tuple[np.ndarray, np.ndarray]:
        """
        Normals (N x 3) and curvatures (N,) of every point, NaN where the fit failed.
        """
        index = NeighborIndex(points)
        geometry = index.points
        n = len(index)
        size = self.resolve_search_size(points)

        logger.info(
            "Normals and curvatures estimation: %d points, %s search, size=%g",
            n, self.search_method, size,
        )
        with log_duration(logger, "Neighborhoods formulation"):
            if self.search_method == "knn":
                neighborhoods, _ = index.self_knn(min(int(size), n))
            else:
                neighborhoods, _ = index.self_radius(size)

        chunks = split_indices(n, self.chunk_size)
        payloads = [_chunk_payload(geometry, chunk, neighborhoods) for chunk in chunks]
        executor = ChunkParallelExecutor(n_workers=self.n_workers)
        with log_duration(logger, "Quadric fitting"):
            results = executor.map_chunks(payloads, worker_fn=fit_quadrics, worker_kwargs={})

        normals = np.concatenate([r[0] for r in results], axis=0)
        curvatures = np.concatenate([r[1] for r in results], axis=0)

        n_failed = int(np.count_nonzero(np.isnan(curvatures)))
        if n_failed:
            logger.info("Quadric fitting failed for %d of %d points (NaN recorded)", n_failed, n)
        return normals, curvatures

    def apply(self, cloud: PointCloud, overwrite: bool = False) -> PointCloud:
        """
        Return ``cloud`` with estimated normals and curvatures.

        Existing attributes are kept unless ``overwrite`` is set.
        """
        if not overwrite and cloud.normal is not None and cloud.curvature is not None:
            return cloud
        normals, curvatures = self.estimate(cloud)
        return cloud.with_attributes(
            normal=normals if overwrite or cloud.normal is None else cloud.normal,
            curvature=curvatures if overwrite or cloud.curvature is None else cloud.curvature,
        )


def estimate_normals_curvatures(
    points: Union[PointCloud, np.ndarray],
    search_method: Literal["knn", "rs"] = "rs",
    search_size: Optional[float] = None,
    n_workers: Optional[int] = 1,
) -> Tuple[np.ndarray, np.ndarray]:
    """Convenience wrapper around QuadricFitEstimator.estimate."""
    return QuadricFitEstimator(search_method, search_size, n_workers=n_workers).estimate(points)
