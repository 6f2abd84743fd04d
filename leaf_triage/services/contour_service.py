from __future__ import annotations
import math
import os
from typing import List

from dotenv import load_dotenv
import numpy as np

from ..models.color_range import STANDARD_SEVERITY, SeverityThresholds
from ..models.imaging_backend import ImagingBackend, PureBackend
from ..models.segmentation_result import Contour, Region, Severity

load_dotenv()
# Noise floor in pixels at the engine's working resolution. Re-derive it
# if WORKING_MAX_DIM changes.
MIN_CONTOUR_AREA = int(os.getenv("MIN_CONTOUR_AREA", "10"))
MAX_CONTOURS = int(os.getenv("MAX_CONTOURS", "50"))


def _round_half_up(value: float) -> float:
    return float(math.floor(value + 0.5))


class ContourAnalyzer:
    """Lesion extraction + severity scoring for one disease mask."""

    def __init__(
        self,
        backend: ImagingBackend | None = None,
        thresholds: SeverityThresholds = STANDARD_SEVERITY,
        min_area: int = MIN_CONTOUR_AREA,
        max_contours: int = MAX_CONTOURS,
    ) -> None:
        self.backend = backend or PureBackend()
        self.thresholds = thresholds
        self.min_area = min_area
        self.max_contours = max_contours

    def classify_severity(self, area: int, total_leaf_pixels: int) -> Severity:
        if total_leaf_pixels <= 0:
            return Severity.HIGH
        pct = area / total_leaf_pixels * 100
        if pct < self.thresholds.low_below:
            return Severity.LOW
        if pct > self.thresholds.high_above:
            return Severity.HIGH
        return Severity.MEDIUM

    def to_contour(self, region: Region, total_leaf_pixels: int) -> Contour:
        cx, cy = region.centroid
        return Contour(
            area=region.area,
            centroid=(_round_half_up(cx), _round_half_up(cy)),
            bounding_box=region.bounding_box,
            severity=self.classify_severity(region.area, total_leaf_pixels),
        )

    def find_contours(self, mask: np.ndarray, total_leaf_pixels: int) -> List[Contour]:
        """
        Returns
        -------
        Contours sorted by descending area (scan order on ties), at most
        ``max_contours`` of them, each at least ``min_area`` pixels.
        """
        kept = [r for r in self.backend.regions(mask) if r.area >= self.min_area]
        kept.sort(key=lambda r: r.area, reverse=True)
        return [self.to_contour(r, total_leaf_pixels) for r in kept[:self.max_contours]]
