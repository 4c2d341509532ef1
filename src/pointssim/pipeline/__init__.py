"""
Pipeline Module

Glue between preprocessing, attribute estimation and scoring.
"""

from .workflow import prepare_cloud, estimate_missing_attributes, run_pointssim

__all__ = [
    "prepare_cloud",
    "estimate_missing_attributes",
    "run_pointssim",
]
