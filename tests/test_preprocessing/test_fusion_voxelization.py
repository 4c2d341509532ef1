"""Tests for sorting, point fusion, voxelization and color conversion."""

import numpy as np
import pytest

from pointssim import PointCloud
from pointssim.preprocessing import (
    estimate_bit_depth,
    fuse_points,
    luminance,
    merge_duplicates,
    rgb_to_yuv,
    round_half_away,
    sort_geometry,
    voxelize,
)
from pointssim.utils.exceptions import ConfigurationError, InputError


class TestColor:

    def test_round_half_away_from_zero(self):
        np.testing.assert_array_equal(
            round_half_away(np.array([0.5, 1.5, 2.5, -0.5, -2.5, 2.4, -2.6])),
            [1, 2, 3, -1, -3, 2, -3],
        )

    @pytest.mark.parametrize(
        "rgb, yuv",
        [
            ((255, 255, 255), (255, 128, 128)),
            ((0, 0, 0), (0, 128, 128)),
            ((255, 0, 0), (54, 99, 255)),
            ((0, 255, 0), (182, 30, 12)),
            ((0, 0, 255), (18, 255, 116)),
        ],
    )
    def test_bt709_conversion(self, rgb, yuv):
        y, u, v = rgb_to_yuv(*(np.array([c]) for c in rgb))
        assert (int(y[0]), int(u[0]), int(v[0])) == yuv
        assert y.dtype == np.uint8

    def test_luminance_is_float(self):
        y = luminance(np.array([[255, 255, 255], [255, 0, 0]]))
        assert y.dtype == np.float64
        np.testing.assert_array_equal(y, [255.0, 54.0])


def test_sort_geometry_is_lexicographic():
    geometry = np.array([[1.0, 0, 0], [0.0, 2, 1], [0.0, 2, 0], [0.0, 1, 5]])
    cloud = PointCloud(geometry=geometry, curvature=np.arange(4.0))
    sorted_cloud = sort_geometry(cloud)
    np.testing.assert_array_equal(
        sorted_cloud.geometry, [[0, 1, 5], [0, 2, 0], [0, 2, 1], [1, 0, 0]]
    )
    np.testing.assert_array_equal(sorted_cloud.curvature, [3, 2, 1, 0])


class TestFusion:

    def test_merge_duplicates_blends_colors(self):
        geometry = np.array([[0.0, 0, 0], [1.0, 1, 1], [0.0, 0, 0]])
        color = np.array([[10.0, 20, 30], [0, 0, 0], [21, 40, 60]])
        unique, blended, first, inverse = merge_duplicates(geometry, color)
        np.testing.assert_array_equal(unique, [[0, 0, 0], [1, 1, 1]])
        # (10 + 21) / 2 = 15.5 rounds up
        np.testing.assert_array_equal(blended, [[16, 30, 45], [0, 0, 0]])
        np.testing.assert_array_equal(first, [0, 1])
        np.testing.assert_array_equal(inverse, [0, 1, 0])

    def test_fuse_points_removes_duplicates(self):
        geometry = np.array([[2.0, 0, 0], [0.0, 0, 0], [2.0, 0, 0], [2.0, 0, 0]])
        color = np.array([[0.0, 0, 0], [5, 5, 5], [3, 3, 3], [3, 3, 4]])
        normal = np.array([[0.0, 0, 1], [0, 1, 0], [1, 0, 0], [1, 0, 0]])
        fused = fuse_points(PointCloud(geometry=geometry, color=color, normal=normal))
        assert len(fused) == 2
        np.testing.assert_array_equal(fused.geometry, [[0, 0, 0], [2, 0, 0]])
        np.testing.assert_array_equal(fused.color, [[5, 5, 5], [2, 2, 2]])
        # Normal of the first occurrence
        np.testing.assert_array_equal(fused.normal, [[0, 1, 0], [0, 0, 1]])

    def test_fuse_points_without_duplicates(self):
        cloud = PointCloud(geometry=np.array([[1.0, 0, 0], [0.0, 0, 0]]))
        fused = fuse_points(cloud)
        assert len(fused) == 2
        assert fused.color is None


class TestVoxelization:

    def test_estimate_bit_depth(self):
        geometry = np.array([[0.0, 0, 0], [1023.0, 10, 10]])
        assert estimate_bit_depth(geometry) == 10
        geometry = np.array([[0.0, 0, 0], [1030.0, 0, 0]])
        assert estimate_bit_depth(geometry) == 10

    def test_estimate_bit_depth_small_range(self):
        with pytest.raises(InputError):
            estimate_bit_depth(np.array([[0.0, 0, 0], [5.0, 5, 5]]))

    def test_voxelize_merges_points_per_voxel(self):
        geometry = np.array([[0.0, 0, 0], [1.0, 1, 1], [1023.0, 1023, 1023]])
        color = np.array([[0.0, 0, 0], [11, 11, 11], [100, 100, 100]])
        voxelized = voxelize(PointCloud(geometry=geometry, color=color), target_bit_depth=9, source_bit_depth=10)
        np.testing.assert_array_equal(voxelized.geometry, [[0, 0, 0], [511, 511, 511]])
        np.testing.assert_array_equal(voxelized.color, [[6, 6, 6], [100, 100, 100]])

    def test_voxelize_estimates_source_depth(self):
        rng = np.random.default_rng(0)
        geometry = np.vstack([rng.integers(0, 1024, size=(200, 3)), [[0, 0, 0], [1023, 1023, 1023]]])
        voxelized = voxelize(PointCloud(geometry=geometry), target_bit_depth=4)
        assert voxelized.geometry.min() >= 0
        assert voxelized.geometry.max() <= 15
        assert len(voxelized) <= 16 ** 3

    def test_voxelize_drops_normals_and_curvatures(self):
        geometry = np.array([[0.0, 0, 0], [1023.0, 1023, 1023]])
        cloud = PointCloud(geometry=geometry, normal=np.ones((2, 3)), curvature=np.zeros(2))
        voxelized = voxelize(cloud, target_bit_depth=8, source_bit_depth=10)
        assert voxelized.normal is None
        assert voxelized.curvature is None

    def test_invalid_bit_depths(self):
        cloud = PointCloud(geometry=np.array([[0.0, 0, 0], [1023.0, 1023, 1023]]))
        with pytest.raises(ConfigurationError):
            voxelize(cloud, target_bit_depth=0)
        with pytest.raises(ConfigurationError):
            voxelize(cloud, target_bit_depth=8, source_bit_depth=0)
