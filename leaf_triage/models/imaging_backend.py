# models/imaging_backend.py
"""
Capability interface for the few imaging operations the engine needs.

• in_range   – binarize an HSV image against an inclusive box
• dilate / erode / close / open – disc-shaped binary morphology
• regions    – 4-connected components with pixel membership

Masks are (H, W) uint8 arrays with values in {0, 255}. PureBackend
implements everything with numpy and a flood fill, so the engine runs
with no native library at all.
"""
from __future__ import annotations
from abc import ABC, abstractmethod
from collections import deque
import logging
from typing import List, Sequence

import numpy as np

from .errors import AcceleratorUnavailable
from .segmentation_result import Region

logger = logging.getLogger(__name__)


def disc_kernel(radius: int) -> np.ndarray:
    """(2r+1, 2r+1) uint8 disc. radius 1 gives the 3x3 cross."""
    r = max(int(radius), 0)
    yy, xx = np.ogrid[-r:r + 1, -r:r + 1]
    return (xx * xx + yy * yy <= r * r).astype(np.uint8)


def to_mask(values: np.ndarray) -> np.ndarray:
    return np.where(values, 255, 0).astype(np.uint8)


class ImagingBackend(ABC):
    name: str = "abstract"

    @abstractmethod
    def in_range(self, hsv: np.ndarray, lower: Sequence[int], upper: Sequence[int]) -> np.ndarray:
        ...

    @abstractmethod
    def dilate(self, mask: np.ndarray, radius: int) -> np.ndarray:
        ...

    @abstractmethod
    def erode(self, mask: np.ndarray, radius: int) -> np.ndarray:
        ...

    @abstractmethod
    def regions(self, mask: np.ndarray) -> List[Region]:
        """Components in raster order of their first pixel."""

    def close(self, mask: np.ndarray, radius: int) -> np.ndarray:
        return self.erode(self.dilate(mask, radius), radius)

    def open(self, mask: np.ndarray, radius: int) -> np.ndarray:
        return self.dilate(self.erode(mask, radius), radius)


class PureBackend(ImagingBackend):
    """numpy + flood fill. Always available."""

    name = "pure"

    def in_range(self, hsv, lower, upper):
        hsv = np.asarray(hsv)
        hit = np.ones(hsv.shape[:2], dtype=bool)
        for c in range(3):
            hit &= (hsv[..., c] >= lower[c]) & (hsv[..., c] <= upper[c])
        return to_mask(hit)

    # ---------- morphology ----------
    @staticmethod
    def _shift_reduce(mask: np.ndarray, radius: int, pad_value: bool, dilate: bool) -> np.ndarray:
        src = np.asarray(mask) > 0
        if radius <= 0:
            return to_mask(src)
        h, w = src.shape
        padded = np.pad(src, radius, mode="constant", constant_values=pad_value)
        out = np.zeros_like(src) if dilate else np.ones_like(src)
        kernel = disc_kernel(radius)
        for dy, dx in zip(*np.nonzero(kernel)):
            window = padded[dy:dy + h, dx:dx + w]
            if dilate:
                out |= window
            else:
                out &= window
        return to_mask(out)

    def dilate(self, mask, radius):
        # Outside the frame never adds foreground.
        return self._shift_reduce(mask, radius, pad_value=False, dilate=True)

    def erode(self, mask, radius):
        # Outside the frame never removes foreground.
        return self._shift_reduce(mask, radius, pad_value=True, dilate=False)

    # ---------- connected components ----------
    def regions(self, mask):
        src = np.asarray(mask) > 0
        h, w = src.shape
        flat = src.ravel()
        visited = np.zeros(flat.size, dtype=bool)
        found: List[Region] = []

        for start in np.flatnonzero(flat):
            if visited[start]:
                continue
            visited[start] = True
            members = [int(start)]
            queue = deque(members)
            while queue:
                i = queue.popleft()
                x = i % w
                for n, ok in ((i - w, i >= w), (i + w, i < flat.size - w),
                              (i - 1, x > 0), (i + 1, x < w - 1)):
                    if ok and flat[n] and not visited[n]:
                        visited[n] = True
                        members.append(n)
                        queue.append(n)
            found.append(Region.from_indices(np.sort(np.array(members)), w))
        return found


class ResilientBackend(ImagingBackend):
    """
    Runs every operation on ``primary`` and re-runs it on ``fallback``
    when the primary raises AcceleratorUnavailable.
    """

    def __init__(self, primary: ImagingBackend, fallback: ImagingBackend | None = None) -> None:
        self.primary = primary
        self.fallback = fallback or PureBackend()
        self.name = primary.name

    def _call(self, op: str, *args):
        try:
            return getattr(self.primary, op)(*args)
        except AcceleratorUnavailable as err:
            logger.warning(f"{self.primary.name}.{op} unavailable ({err}); using {self.fallback.name} backend")
            return getattr(self.fallback, op)(*args)

    def in_range(self, hsv, lower, upper):
        return self._call("in_range", hsv, lower, upper)

    def dilate(self, mask, radius):
        return self._call("dilate", mask, radius)

    def erode(self, mask, radius):
        return self._call("erode", mask, radius)

    def close(self, mask, radius):
        return self._call("close", mask, radius)

    def open(self, mask, radius):
        return self._call("open", mask, radius)

    def regions(self, mask):
        return self._call("regions", mask)
