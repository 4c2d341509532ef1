"""
Generate a synthetic reference/distorted point cloud pair (LAS) for quick runs.

- Creates a colored surface with gentle hills.
- The reference is a random subsample of the surface.
- The distorted version adds coordinate noise, a color shift and a coarser sampling,
  mimicking a lossy encode/decode cycle.
- Writes to data/synthetic/{reference,distorted}.las by default.

Requires: laspy. Plain .las output needs no compression backend.
"""
from __future__ import annotations

import argparse
from pathlib import Path

import laspy
import numpy as np


def make_surface(nx=200, ny=200, spacing=1.0, seed=42):
    rng = np.random.default_rng(seed)
    x = (np.arange(nx) - nx / 2) * spacing
    y = (np.arange(ny) - ny / 2) * spacing
    X, Y = np.meshgrid(x, y)
    Z = 8.0 * np.sin(0.04 * X) * np.cos(0.03 * Y) + 2.0 * np.sin(0.1 * X + 0.3)
    Z += 0.02 * rng.standard_normal(size=Z.shape)
    return X, Y, Z


def surface_colors(Z):
    """Height-driven RGB ramp in the 0-255 range."""
    t = (Z - Z.min()) / max(np.ptp(Z), 1e-9)
    r = 255 * t
    g = 255 * (1 - np.abs(2 * t - 1))
    b = 255 * (1 - t)
    return np.stack([r, g, b], axis=-1)


def to_points(X, Y, Z, C, keep_ratio=0.5, seed=123):
    rng = np.random.default_rng(seed)
    H, W = Z.shape
    idx = rng.choice(H * W, size=int(keep_ratio * H * W), replace=False)
    xi = idx % W
    yi = idx // W
    pts = np.column_stack([X[yi, xi], Y[yi, xi], Z[yi, xi]])
    return pts, C[yi, xi]


def distort(points, colors, noise=0.15, color_shift=12.0, seed=7):
    rng = np.random.default_rng(seed)
    noisy = points + noise * rng.standard_normal(size=points.shape)
    shifted = np.clip(colors + color_shift * rng.standard_normal(size=colors.shape), 0, 255)
    return noisy, shifted


def write_las(path: Path, points: np.ndarray, colors: np.ndarray):
    path.parent.mkdir(parents=True, exist_ok=True)
    # Point format 2 carries RGB
    hdr = laspy.LasHeader(point_format=2, version="1.2")
    hdr.scales = np.array([0.001, 0.001, 0.001])
    hdr.offsets = points.min(axis=0)
    las = laspy.LasData(hdr)
    las.x = points[:, 0]
    las.y = points[:, 1]
    las.z = points[:, 2]
    # LAS colors are 16-bit
    rgb16 = np.round(colors * 257).astype(np.uint16)
    las.red = rgb16[:, 0]
    las.green = rgb16[:, 1]
    las.blue = rgb16[:, 2]
    las.write(str(path))


def main():
    parser = argparse.ArgumentParser(description="Generate a synthetic reference/distorted point cloud pair")
    parser.add_argument("--out-dir", type=str, default=None, help="Output directory (default: data/synthetic)")
    parser.add_argument("--seed", type=int, default=1)
    args = parser.parse_args()

    out = Path(args.out_dir) if args.out_dir else Path(__file__).parent.parent / "data" / "synthetic"

    X, Y, Z = make_surface(seed=args.seed)
    C = surface_colors(Z)
    ref_pts, ref_cols = to_points(X, Y, Z, C, keep_ratio=0.5, seed=args.seed + 1)
    dis_pts, dis_cols = to_points(X, Y, Z, C, keep_ratio=0.35, seed=args.seed + 2)
    dis_pts, dis_cols = distort(dis_pts, dis_cols, seed=args.seed + 3)

    write_las(out / "reference.las", ref_pts, ref_cols)
    write_las(out / "distorted.las", dis_pts, dis_cols)

    print(f"Wrote: {out / 'reference.las'} ({len(ref_pts)} points)")
    print(f"Wrote: {out / 'distorted.las'} ({len(dis_pts)} points)")


if __name__ == "__main__":
    main()
