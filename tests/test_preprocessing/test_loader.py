"""
Test suite for the point cloud loader
"""

import unittest
import tempfile
import numpy as np
from pathlib import Path
import sys

import laspy

# Import the loader module
sys.path.append(str(Path(__file__).parent.parent.parent / "src"))
from pointssim.preprocessing.loader import PointCloudLoader
from pointssim.utils.exceptions import InputError


def _write_las(path, points, rgb16=None):
    header = laspy.LasHeader(point_format=2 if rgb16 is not None else 0, version="1.2")
    header.scales = np.array([0.001, 0.001, 0.001])
    header.offsets = points.min(axis=0)
    las = laspy.LasData(header)
    las.x = points[:, 0]
    las.y = points[:, 1]
    las.z = points[:, 2]
    if rgb16 is not None:
        las.red = rgb16[:, 0]
        las.green = rgb16[:, 1]
        las.blue = rgb16[:, 2]
    las.write(str(path))


class TestPointCloudLoader(unittest.TestCase):
    """Test cases for the PointCloudLoader class."""

    def setUp(self):
        """Create a temporary directory and a small random cloud."""
        self._tmp = tempfile.TemporaryDirectory()
        self.tmp_dir = Path(self._tmp.name)
        self.loader = PointCloudLoader()

        rng = np.random.default_rng(0)
        self.points = np.round(rng.uniform(0, 100, size=(50, 3)), 3)
        self.colors = rng.integers(0, 256, size=(50, 3)).astype(np.float64)

    def tearDown(self):
        self._tmp.cleanup()

    def test_load_las_with_colors(self):
        """16-bit LAS colors are brought back to 0-255."""
        path = self.tmp_dir / "cloud.las"
        _write_las(path, self.points, (self.colors * 257).astype(np.uint16))

        cloud = self.loader.load(str(path))
        self.assertEqual(len(cloud), 50)
        np.testing.assert_allclose(cloud.geometry, self.points, atol=1e-6)
        np.testing.assert_array_equal(cloud.color, self.colors)
        self.assertIsNone(cloud.normal)

    def test_load_las_without_colors(self):
        path = self.tmp_dir / "plain.las"
        _write_las(path, self.points)

        cloud = self.loader.load(str(path))
        self.assertEqual(len(cloud), 50)
        self.assertIsNone(cloud.color)

    def test_load_color_disabled(self):
        path = self.tmp_dir / "cloud.las"
        _write_las(path, self.points, (self.colors * 257).astype(np.uint16))

        cloud = PointCloudLoader(load_color=False).load(str(path))
        self.assertIsNone(cloud.color)

    def test_get_metadata(self):
        path = self.tmp_dir / "cloud.las"
        _write_las(path, self.points)

        meta = self.loader.get_metadata(str(path))
        self.assertEqual(meta['num_points'], 50)
        self.assertEqual(meta['filename'], "cloud.las")
        self.assertAlmostEqual(meta['bounds']['min_x'], self.points[:, 0].min(), places=3)
        self.assertAlmostEqual(meta['bounds']['max_z'], self.points[:, 2].max(), places=3)

    def test_get_metadata_requires_las(self):
        path = self.tmp_dir / "cloud.npy"
        np.save(path, self.points)
        with self.assertRaises(InputError):
            self.loader.get_metadata(str(path))

    def test_load_npy(self):
        path = self.tmp_dir / "cloud.npy"
        np.save(path, np.hstack([self.points, self.colors]))

        cloud = self.loader.load(str(path))
        np.testing.assert_array_equal(cloud.geometry, self.points)
        np.testing.assert_array_equal(cloud.color, self.colors)

    def test_load_npz_with_attributes(self):
        path = self.tmp_dir / "cloud.npz"
        normals = np.tile([0.0, 0.0, 1.0], (50, 1))
        curvature = np.linspace(-1, 1, 50)
        np.savez(path, geometry=self.points, normal=normals, curvature=curvature)

        cloud = self.loader.load(str(path))
        np.testing.assert_array_equal(cloud.normal, normals)
        np.testing.assert_array_equal(cloud.curvature, curvature)
        self.assertIsNone(cloud.color)

    def test_load_npz_without_geometry(self):
        path = self.tmp_dir / "cloud.npz"
        np.savez(path, points=self.points)
        with self.assertRaises(InputError):
            self.loader.load(str(path))

    def test_load_text_files(self):
        txt = self.tmp_dir / "cloud.xyz"
        np.savetxt(txt, self.points)
        csv = self.tmp_dir / "cloud.csv"
        np.savetxt(csv, np.hstack([self.points, self.colors]), delimiter=",")

        cloud = self.loader.load(str(txt))
        np.testing.assert_allclose(cloud.geometry, self.points)
        self.assertIsNone(cloud.color)

        cloud = self.loader.load(str(csv))
        np.testing.assert_allclose(cloud.color, self.colors)

    def test_wrong_column_count(self):
        path = self.tmp_dir / "cloud.txt"
        np.savetxt(path, self.points[:, :2])
        with self.assertRaises(InputError):
            self.loader.load(str(path))

    def test_nonexistent_file(self):
        with self.assertRaises(FileNotFoundError):
            self.loader.load(str(self.tmp_dir / "missing.las"))

    def test_unsupported_format(self):
        path = self.tmp_dir / "cloud.ply"
        path.write_text("ply\n")
        with self.assertRaises(InputError):
            self.loader.load(str(path))


if __name__ == '__main__':
    unittest.main()
