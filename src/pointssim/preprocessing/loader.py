"""
Point Cloud Data Loader

This module handles loading and initial validation of point cloud files
into PointCloud objects.
"""

import laspy
import numpy as np
from pathlib import Path
from typing import Optional
from ..point_cloud import PointCloud
from ..utils.exceptions import InputError
from ..utils.logging import setup_logger

logger = setup_logger(__name__)

LAS_SUFFIXES = ['.las', '.laz']
NUMPY_SUFFIXES = ['.npy', '.npz']
TEXT_SUFFIXES = ['.txt', '.xyz', '.csv']


def _colors_to_8bit(colors: np.ndarray) -> np.ndarray:
    """LAS stores RGB as 16-bit; bring anything above 255 back to the 0-255 range."""
    colors = np.asarray(colors, dtype=np.float64)
    if colors.size and colors.max() > 255:
        colors = np.round(colors / 257.0)
    return colors


class PointCloudLoader:
    """
    A class for loading point clouds from LAS/LAZ, NumPy and text files.

    Features:
    - LAS/LAZ via laspy, with RGB colors when present
    - .npy arrays (N x 3 geometry, or N x 6 geometry + RGB)
    - .npz archives with 'geometry' and optional 'normal', 'curvature', 'color'
    - whitespace or comma separated text (x y z [r g b])
    """

    def __init__(self, *, load_color: bool = True):
        """
        Initialize the point cloud loader.

        Args:
            load_color: If False, colors are never attached to the loaded cloud
        """
        self.load_color = load_color

    def load(self, file_path: str) -> PointCloud:
        """
        Load a point cloud file.

        Args:
            file_path: Path to the point cloud file

        Returns:
            PointCloud with geometry and whatever attributes the file carries

        Raises:
            FileNotFoundError: If the file does not exist
            InputError: If the file format is unsupported or its content is invalid
        """
        file_path = Path(file_path)

        if not file_path.exists():
            raise FileNotFoundError(f"File not found: {file_path}")

        suffix = file_path.suffix.lower()
        logger.info(f"Loading point cloud data from {file_path}")

        try:
            if suffix in LAS_SUFFIXES:
                cloud = self._load_las(file_path)
            elif suffix in NUMPY_SUFFIXES:
                cloud = self._load_numpy(file_path)
            elif suffix in TEXT_SUFFIXES:
                cloud = self._load_text(file_path)
            else:
                raise InputError(f"Unsupported file format: {file_path.suffix}")
        except InputError:
            raise
        except Exception as e:
            logger.error(f"Error loading point cloud data from {file_path}: {e}")
            raise InputError(f"Could not read point cloud {file_path}: {e}") from e

        logger.info(
            f"Loaded {len(cloud)} points from {file_path.name} "
            f"(color: {cloud.color is not None}, normal: {cloud.normal is not None}, "
            f"curvature: {cloud.curvature is not None})"
        )
        return cloud

    def _load_las(self, file_path: Path) -> PointCloud:
        las = laspy.read(file_path)
        geometry = np.column_stack([
            np.array(las.x, dtype=np.float64),
            np.array(las.y, dtype=np.float64),
            np.array(las.z, dtype=np.float64),
        ])

        color = None
        if self.load_color and all(hasattr(las, c) for c in ('red', 'green', 'blue')):
            color = _colors_to_8bit(np.column_stack([
                np.array(las.red), np.array(las.green), np.array(las.blue)
            ]))
        return PointCloud(geometry=geometry, color=color)

    def _load_numpy(self, file_path: Path) -> PointCloud:
        if file_path.suffix.lower() == '.npz':
            with np.load(file_path) as data:
                if 'geometry' not in data:
                    raise InputError(f"No 'geometry' array found in {file_path}")
                return PointCloud(
                    geometry=data['geometry'],
                    normal=data['normal'] if 'normal' in data else None,
                    curvature=data['curvature'] if 'curvature' in data else None,
                    color=data['color'] if (self.load_color and 'color' in data) else None,
                )
        return self._from_columns(np.load(file_path), file_path)

    def _load_text(self, file_path: Path) -> PointCloud:
        delimiter = ',' if file_path.suffix.lower() == '.csv' else None
        return self._from_columns(np.loadtxt(file_path, delimiter=delimiter, ndmin=2), file_path)

    def _from_columns(self, data: np.ndarray, file_path: Path) -> PointCloud:
        data = np.asarray(data, dtype=np.float64)
        if data.ndim != 2 or data.shape[1] not in (3, 6):
            raise InputError(
                f"Expected 3 (x y z) or 6 (x y z r g b) columns in {file_path}, got shape {data.shape}"
            )
        color: Optional[np.ndarray] = None
        if data.shape[1] == 6 and self.load_color:
            color = _colors_to_8bit(data[:, 3:6])
        return PointCloud(geometry=data[:, :3], color=color)

    def get_metadata(self, file_path: str) -> dict:
        """
        Header-level metadata of a LAS/LAZ file.

        Args:
            file_path: Path to the LAS/LAZ file

        Returns:
            Dictionary containing metadata information
        """
        file_path = Path(file_path)

        if not file_path.exists():
            raise FileNotFoundError(f"File not found: {file_path}")
        if file_path.suffix.lower() not in LAS_SUFFIXES:
            raise InputError(f"Metadata is only available for LAS/LAZ files, got {file_path.suffix}")

        with laspy.open(file_path) as reader:
            header = reader.header
            return {
                'filename': file_path.name,
                'file_size_mb': file_path.stat().st_size / (1024 * 1024),
                'num_points': int(header.point_count),
                'version': f"{header.version}",
                'bounds': {
                    'min_x': float(header.x_min),
                    'max_x': float(header.x_max),
                    'min_y': float(header.y_min),
                    'max_y': float(header.y_max),
                    'min_z': float(header.z_min),
                    'max_z': float(header.z_max),
                },
                'scales': [float(header.x_scale), float(header.y_scale), float(header.z_scale)],
                'offsets': [float(header.x_offset), float(header.y_offset), float(header.z_offset)],
            }
