from __future__ import annotations
from dataclasses import dataclass
from typing import Tuple

import numpy as np

from ..models.segmentation_result import Percentages, PixelCounts

RUST_MARKER: Tuple[int, int, int] = (255, 165, 0)   # orange
SCAB_MARKER: Tuple[int, int, int] = (139, 69, 19)   # brown
MARKER_ALPHA = 0.5
OUTSIDE_LEAF_FACTOR = 0.3


@dataclass(frozen=True)
class MaskSet:
    """Final {0, 255} masks. healthy, rust and scab are disjoint and inside leaf."""
    leaf: np.ndarray
    healthy: np.ndarray
    rust: np.ndarray
    scab: np.ndarray


@dataclass(frozen=True)
class Composite:
    overlay: np.ndarray  # (H, W, 3) uint8 RGB
    percentages: Percentages
    counts: PixelCounts


class Compositor:

    @staticmethod
    def _blend(pixels: np.ndarray, color: Tuple[int, int, int]) -> np.ndarray:
        marker = np.array(color, dtype=np.float64)
        out = pixels * (1 - MARKER_ALPHA) + marker * MARKER_ALPHA
        return np.minimum(np.floor(out + 0.5), 255)

    def overlay(self, pixels: np.ndarray, masks: MaskSet) -> np.ndarray:
        src = np.asarray(pixels, dtype=np.float64)
        out = src.copy()
        outside = masks.leaf == 0
        rust = (masks.rust > 0) & ~outside
        scab = (masks.scab > 0) & ~outside & ~rust

        out[outside] = np.floor(src[outside] * OUTSIDE_LEAF_FACTOR + 0.5)
        out[rust] = self._blend(src[rust], RUST_MARKER)
        out[scab] = self._blend(src[scab], SCAB_MARKER)
        return out.astype(np.uint8)

    @staticmethod
    def count(masks: MaskSet) -> PixelCounts:
        total = int(masks.leaf.size)
        leaf = int(np.count_nonzero(masks.leaf))
        return PixelCounts(
            healthy=int(np.count_nonzero(masks.healthy)),
            rust=int(np.count_nonzero(masks.rust)),
            scab=int(np.count_nonzero(masks.scab)),
            background=total - leaf,
        )

    @staticmethod
    def percentages(counts: PixelCounts) -> Percentages:
        """Disease shares use the leaf as denominator; background uses the frame."""
        total = counts.total
        background = counts.background / total * 100 if total else 100.0
        leaf = counts.leaf
        if leaf == 0:
            return Percentages(0.0, 0.0, 0.0, background)
        return Percentages(
            healthy=counts.healthy / leaf * 100,
            rust=counts.rust / leaf * 100,
            scab=counts.scab / leaf * 100,
            background=background,
        )

    def composite(self, pixels: np.ndarray, masks: MaskSet) -> Composite:
        counts = self.count(masks)
        return Composite(self.overlay(pixels, masks), self.percentages(counts), counts)
