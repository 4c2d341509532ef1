"""
Color space conversion.

RGB to YUV with ITU-R BT.709 coefficients, producing 8-bit channels.
"""

from typing import Tuple

import numpy as np

# Rows: Y, U, V
_BT709 = np.array([
    [0.2126, 0.7152, 0.0722],
    [-0.1146, -0.3854, 0.5000],
    [0.5000, -0.4542, -0.0468],
])
_OFFSET = np.array([0.0, 128.0, 128.0])


def round_half_away(values: np.ndarray) -> np.ndarray:
    """Round to the nearest integer, halves away from zero (2.5 -> 3, -2.5 -> -3)."""
    values = np.asarray(values, dtype=np.float64)
    return np.trunc(values + np.copysign(0.5, values))


def rgb_to_yuv(r: np.ndarray, g: np.ndarray, b: np.ndarray) -> Tuple[np.ndarray, np.ndarray, np.ndarray]:
    """
    Convert RGB channels (0-255) to Y, U and V.

    Values are rounded to the nearest integer (halves away from zero) and saturated to uint8.

    Examples:
        >>> y, u, v = rgb_to_yuv(np.array([255]), np.array([255]), np.array([255]))
        >>> int(y[0]), int(u[0]), int(v[0])
        (255, 128, 128)
    """
    rgb = np.stack([np.asarray(c, dtype=np.float64).reshape(-1) for c in (r, g, b)], axis=1)
    yuv = round_half_away(rgb @ _BT709.T + _OFFSET)
    yuv = np.clip(yuv, 0, 255).astype(np.uint8)
    return yuv[:, 0], yuv[:, 1], yuv[:, 2]


def luminance(color: np.ndarray) -> np.ndarray:
    """Y channel of an N x 3 RGB array, as float64."""
    color = np.asarray(color)
    y, _, _ = rgb_to_yuv(color[:, 0], color[:, 1], color[:, 2])
    return y.astype(np.float64)
