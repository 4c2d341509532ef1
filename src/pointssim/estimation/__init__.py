"""
Attribute Estimation Module

Normals and curvatures by local quadric fitting, for clouds that do not
carry them.
"""

from .quadric_fit import (
    QuadricFitEstimator,
    estimate_normals_curvatures,
    fit_point_quadric,
    fit_quadric,
    principal_axes,
)

__all__ = [
    "QuadricFitEstimator",
    "estimate_normals_curvatures",
    "fit_point_quadric",
    "fit_quadric",
    "principal_axes",
]
