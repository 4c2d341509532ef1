"""
Configuration management for pointssim.

Provides a typed pydantic model and YAML loader with sensible defaults.
"""

from __future__ import annotations

from pathlib import Path
from typing import Optional, Literal, List, Any, Dict

import numpy as np
from pydantic import BaseModel, ConfigDict, Field, ValidationError, field_validator
import yaml

from .exceptions import ConfigurationError


# -----------------------
# Typed config structures
# -----------------------


class AttributesConfig(BaseModel):
    model_config = ConfigDict(frozen=True, extra="forbid")

    geometry: bool = Field(default=True, description="Score geometry-related features (neighbor distances)")
    normal: bool = Field(default=False, description="Score normal-related features (angular similarities)")
    curvature: bool = Field(default=False, description="Score curvature-related features")
    color: bool = Field(default=False, description="Score color-related features (luminance)")

    def enabled(self) -> List[str]:
        """Names of the enabled attributes, in scoring order."""
        return [name for name in ("geometry", "normal", "curvature", "color") if getattr(self, name)]


class SimilarityConfig(BaseModel):
    model_config = ConfigDict(frozen=True)

    attributes: AttributesConfig = Field(default_factory=AttributesConfig)
    estimators: List[str] = Field(
        default_factory=lambda: ["Variance"],
        description="Dispersion estimators: Variance, Median, MeanAD, MedianAD, COV, QCD, Mean",
    )
    pooling: List[str] = Field(
        default_factory=lambda: ["Mean"],
        description="Pooling methods: Mean, Min, Max, Median, RMS, MSE",
    )
    neighborhood_size: int = Field(default=12, ge=2, description="Number of nearest neighbors (self included)")
    const: float = Field(
        default=float(np.finfo(np.float64).eps),
        gt=0.0,
        description="Constant added to the relative difference denominator",
    )
    # 'both': BA, AB and symmetric scores; 'a': A is the reference (BA only);
    # 'b': B is the reference (AB only)
    reference: Literal["both", "a", "b"] = Field(default="both")

    @field_validator("estimators")
    @classmethod
    def _check_estimators(cls, value: List[str]) -> List[str]:
        from ..similarity.feature_map import canonical_estimator

        if not value:
            raise ValueError("At least one estimator is required")
        return [canonical_estimator(v) for v in value]

    @field_validator("pooling")
    @classmethod
    def _check_pooling(cls, value: List[str]) -> List[str]:
        from ..similarity.pooling import canonical_pooling

        if not value:
            raise ValueError("At least one pooling method is required")
        return [canonical_pooling(v) for v in value]


class EstimationConfig(BaseModel):
    enabled: bool = Field(default=True, description="Estimate normals/curvatures when they are missing")
    search_method: Literal["knn", "rs"] = Field(default="rs", description="'knn' for k-NN, 'rs' for radius search")
    search_size: Optional[float] = Field(
        default=None,
        description="Radius (rs) or k (knn). None derives it from the reference cloud",
    )
    radius_ratio: float = Field(default=0.01, gt=0.0, description="Radius as a fraction of the largest bounding box extent")
    knn: int = Field(default=12, ge=6, description="Default k when search_method is 'knn'")
    chunk_size: int = Field(default=20_000, ge=1, description="Points per worker task")


class PreprocessingConfig(BaseModel):
    sort_geometry: bool = Field(default=True)
    fuse_points: bool = Field(default=True, description="Merge duplicated coordinates, blending colors")
    voxelize: bool = Field(default=False)
    target_bit_depth: int = Field(default=9, ge=1)


class LoggingConfig(BaseModel):
    level: Literal["DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL"] = Field(default="INFO")
    file: Optional[str] = Field(default=None)


class ParallelConfig(BaseModel):
    enabled: bool = Field(default=True, description="Enable CPU parallelization of per-point estimation")
    n_workers: Optional[int] = Field(default=None, description="Number of worker processes (None = auto-detect: cpu_count - 1)")


class AppConfig(BaseModel):
    similarity: SimilarityConfig = Field(default_factory=SimilarityConfig)
    estimation: EstimationConfig = Field(default_factory=EstimationConfig)
    preprocessing: PreprocessingConfig = Field(default_factory=PreprocessingConfig)
    logging: LoggingConfig = Field(default_factory=LoggingConfig)
    parallel: ParallelConfig = Field(default_factory=ParallelConfig)


# -----------------------
# Loader
# -----------------------


def _project_root() -> Path:
    """
    Resolve the repository root directory.

    File is at: repo_root/src/pointssim/utils/config.py
    """
    return Path(__file__).resolve().parents[3]


def build_similarity_config(params: Optional[SimilarityConfig | Dict[str, Any]] = None, **overrides: Any) -> SimilarityConfig:
    """
    Build a validated SimilarityConfig from a model, a mapping and/or keyword overrides.

    Raises:
        ConfigurationError: If any value is invalid (unknown estimator, non-positive const, ...)
    """
    if isinstance(params, SimilarityConfig):
        raw: Dict[str, Any] = params.model_dump()
    else:
        raw = dict(params or {})
    raw.update(overrides)

    try:
        return SimilarityConfig.model_validate(raw)
    except ValidationError as e:
        raise ConfigurationError(f"Invalid similarity parameters: {e}") from e


def load_config(path: Optional[str | Path] = None, *, allow_missing: bool = True) -> AppConfig:
    """
    Load configuration from YAML into a typed AppConfig.

    Search order when path is None:
    1) repo_root/config/default.yaml
    2) if missing and allow_missing=True: return default AppConfig()

    Args:
        path: Explicit YAML file path.
        allow_missing: If True, returns defaults when file missing; otherwise raises.

    Returns:
        AppConfig instance
    """
    cfg_path: Path
    if path is None:
        cfg_path = _project_root() / "config" / "default.yaml"
    else:
        cfg_path = Path(path)

    if not cfg_path.exists():
        if allow_missing:
            return AppConfig()
        raise FileNotFoundError(f"Config file not found: {cfg_path}")

    with cfg_path.open("r", encoding="utf-8") as f:
        raw: Dict[str, Any] = yaml.safe_load(f) or {}

    try:
        return AppConfig.model_validate(raw)
    except ValidationError as e:
        # Re-raise with context to help users fix the YAML
        raise ConfigurationError(f"Invalid configuration in {cfg_path}: {e}") from e
