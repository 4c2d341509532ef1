"""
Point cloud container used throughout the pipeline.

A PointCloud holds mandatory geometry and optional per-point normals,
curvatures and RGB colors, all index-aligned with the geometry rows.
"""

from __future__ import annotations

from dataclasses import dataclass, replace
from typing import Optional

import numpy as np

from .utils.exceptions import ConfigurationError, InputError

ATTRIBUTES = ("geometry", "normal", "curvature", "color")


def _as_readonly(array: np.ndarray) -> np.ndarray:
    array.setflags(write=False)
    return array


@dataclass(frozen=True)
class PointCloud:
    """
    Immutable point cloud.

    Attributes:
        geometry: Coordinates (N x 3)
        normal: Optional normal vectors (N x 3)
        curvature: Optional curvature values (N,)
        color: Optional RGB colors in the 0-255 range (N x 3)
    """

    geometry: np.ndarray
    normal: Optional[np.ndarray] = None
    curvature: Optional[np.ndarray] = None
    color: Optional[np.ndarray] = None

    def __post_init__(self) -> None:
        if self.geometry is None:
            raise ConfigurationError("Point cloud geometry is mandatory.")
        geometry = np.array(self.geometry, dtype=np.float64)
        if geometry.ndim != 2 or geometry.shape[1] != 3:
            raise InputError(f"Geometry must be an N x 3 array, got shape {geometry.shape}")
        if geometry.shape[0] == 0:
            raise InputError("Point cloud is empty.")
        if not np.all(np.isfinite(geometry)):
            raise InputError("Geometry contains non-finite coordinates.")
        object.__setattr__(self, "geometry", _as_readonly(geometry))

        n = geometry.shape[0]
        for name, width in (("normal", 3), ("curvature", None), ("color", 3)):
            value = getattr(self, name)
            if value is None:
                continue
            arr = np.array(value, dtype=np.float64)
            if width is None:
                arr = arr.reshape(-1)
                if arr.shape[0] != n:
                    raise InputError(f"{name} has {arr.shape[0]} rows, expected {n}")
            elif arr.ndim != 2 or arr.shape != (n, width):
                raise InputError(f"{name} must have shape ({n}, {width}), got {arr.shape}")
            object.__setattr__(self, name, _as_readonly(arr))

    def __len__(self) -> int:
        return int(self.geometry.shape[0])

    @property
    def n_points(self) -> int:
        return len(self)

    def has(self, attribute: str) -> bool:
        """True when the data needed to score ``attribute`` is present."""
        if attribute not in ATTRIBUTES:
            raise KeyError(f"Unknown attribute: {attribute}")
        return getattr(self, attribute) is not None

    def with_attributes(self, **attributes: Optional[np.ndarray]) -> "PointCloud":
        """Return a new cloud with the given attributes replaced."""
        return replace(self, **attributes)

    def take(self, indices: np.ndarray) -> "PointCloud":
        """Return a new cloud made of the given rows, in the given order."""
        indices = np.asarray(indices)
        return PointCloud(
            geometry=self.geometry[indices],
            normal=None if self.normal is None else self.normal[indices],
            curvature=None if self.curvature is None else self.curvature[indices],
            color=None if self.color is None else self.color[indices],
        )

    def bounding_box_extent(self) -> float:
        """Largest side of the axis-aligned bounding box."""
        return float(np.max(self.geometry.max(axis=0) - self.geometry.min(axis=0)))
