"""
Utility Functions Module

This module provides common utilities used across the pointssim package.
- Logging setup and stage timing
- Typed configuration loaded from YAML
- Exception taxonomy
"""

from .logging import setup_logger, log_duration
from .exceptions import PointSSIMError, ConfigurationError, InputError
from .config import (
    AppConfig,
    AttributesConfig,
    SimilarityConfig,
    EstimationConfig,
    build_similarity_config,
    load_config,
)

__all__ = [
    "setup_logger",
    "log_duration",
    "PointSSIMError",
    "ConfigurationError",
    "InputError",
    "AppConfig",
    "AttributesConfig",
    "SimilarityConfig",
    "EstimationConfig",
    "build_similarity_config",
    "load_config",
]
