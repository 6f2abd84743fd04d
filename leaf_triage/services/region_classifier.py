from __future__ import annotations
from typing import Dict, Tuple

import numpy as np

from ..models.color_range import ColorProfile, ColorRange, PixelLabel, SHARED_BOX
from ..models.imaging_backend import ImagingBackend, PureBackend
from .color_space import rgb_to_hsv

# Checked in this order; the first match wins.
PRIORITY: Tuple[PixelLabel, ...] = (PixelLabel.SCAB, PixelLabel.RUST, PixelLabel.HEALTHY)


class RegionClassifier:
    """
    Per-pixel rule engine: healthy / rust / scab / background.

    Overlapping ranges resolve as scab > rust > healthy > background.
    """

    def __init__(self, profile: ColorProfile = SHARED_BOX, backend: ImagingBackend | None = None) -> None:
        self.profile = profile
        self.backend = backend or PureBackend()

    # ---------- single pixel ----------
    def classify_pixel(self, h: int, s: int, v: int) -> PixelLabel:
        if s < self.profile.saturation_floor:
            return PixelLabel.BACKGROUND
        for label in PRIORITY:
            if any(r.contains(h, s, v) for r in self.profile.buckets(label)):
                return label
        return PixelLabel.BACKGROUND

    def classify_rgb(self, r: int, g: int, b: int) -> PixelLabel:
        return self.classify_pixel(*rgb_to_hsv(r, g, b))

    # ---------- whole image ----------
    def _match(self, hsv: np.ndarray, ranges: Tuple[ColorRange, ...]) -> np.ndarray:
        hit = np.zeros(hsv.shape[:2], dtype=bool)
        for r in ranges:
            hit |= self.backend.in_range(hsv, r.lower, r.upper) > 0
        return hit

    def classify(self, hsv: np.ndarray) -> np.ndarray:
        """(H, W, 3) HSV → (H, W) uint8 array of PixelLabel values."""
        labels = np.full(hsv.shape[:2], PixelLabel.BACKGROUND, dtype=np.uint8)
        remaining = np.ones(hsv.shape[:2], dtype=bool)
        if self.profile.saturation_floor > 0:
            floor = self.profile.saturation_floor
            remaining &= self.backend.in_range(hsv, (0, floor, 0), (255, 255, 255)) > 0

        for label in PRIORITY:
            hit = remaining & self._match(hsv, self.profile.buckets(label))
            labels[hit] = label
            remaining &= ~hit
        return labels

    @staticmethod
    def split_masks(labels: np.ndarray) -> Dict[PixelLabel, np.ndarray]:
        """One {0, 255} mask per label; the masks are mutually exclusive."""
        return {
            label: np.where(labels == label, 255, 0).astype(np.uint8)
            for label in (PixelLabel.HEALTHY, PixelLabel.RUST, PixelLabel.SCAB)
        }
