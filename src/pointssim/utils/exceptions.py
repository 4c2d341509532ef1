"""
Exception types raised by pointssim.

Configuration and input problems are fatal and surface before any
computation starts. Numeric degeneracies in the normal/curvature estimator
are not exceptions: they are recorded as NaN for the affected point.
"""


class PointSSIMError(Exception):
    """Base class for all pointssim errors."""


class ConfigurationError(PointSSIMError, ValueError):
    """Unsupported or inconsistent parameters, or a requested attribute is missing."""


class InputError(PointSSIMError, ValueError):
    """Empty or malformed point set, or a neighborhood larger than the cloud."""
