# services/color_space.py
"""
RGB → HSV in the half-range hue convention (H 0..180, S 0..255, V 0..255).

Every ColorRange threshold is calibrated against this exact formula,
including the round-half-up step. The scalar and array versions must
agree bit for bit.
"""
from __future__ import annotations
import math
from typing import Tuple

import numpy as np


def rgb_to_hsv(r: int, g: int, b: int) -> Tuple[int, int, int]:
    rf, gf, bf = r / 255.0, g / 255.0, b / 255.0
    mx = max(rf, gf, bf)
    mn = min(rf, gf, bf)
    diff = mx - mn

    h = 0.0
    s = 0.0
    if diff != 0:
        s = diff / mx
        if mx == rf:
            h = 60.0 * (((gf - bf) / diff) % 6)
        elif mx == gf:
            h = 60.0 * ((bf - rf) / diff + 2)
        else:
            h = 60.0 * ((rf - gf) / diff + 4)

    return (
        int(math.floor(h / 2 + 0.5)),
        int(math.floor(s * 255 + 0.5)),
        int(math.floor(mx * 255 + 0.5)),
    )


def rgb_to_hsv_array(pixels: np.ndarray) -> np.ndarray:
    """(H, W, 3) uint8 RGB → (H, W, 3) uint8 HSV."""
    rgb = np.asarray(pixels, dtype=np.float64) / 255.0
    r, g, b = rgb[..., 0], rgb[..., 1], rgb[..., 2]
    mx = rgb.max(axis=-1)
    mn = rgb.min(axis=-1)
    diff = mx - mn
    chroma = diff != 0

    with np.errstate(divide="ignore", invalid="ignore"):
        s = np.where(chroma, diff / mx, 0.0)
        h_r = 60.0 * (((g - b) / diff) % 6)
        h_g = 60.0 * ((b - r) / diff + 2)
        h_b = 60.0 * ((r - g) / diff + 4)

    # same precedence as the scalar branch: r, then g, then b
    h = np.where(mx == r, h_r, np.where(mx == g, h_g, h_b))
    h = np.where(chroma, h, 0.0)

    out = np.empty(rgb.shape, dtype=np.uint8)
    out[..., 0] = np.floor(h / 2 + 0.5)
    out[..., 1] = np.floor(s * 255 + 0.5)
    out[..., 2] = np.floor(mx * 255 + 0.5)
    return out
