# pipeline/disease_segmenter.py
"""
The segmentation engine, end to end:

    pixels → HSV → per-pixel labels → leaf mask → cleaned masks
           → contours + severity → percentages + overlay → PNG data URIs

One instance can serve many requests: every call allocates fresh
buffers and shares no mutable state with other calls.
"""
from __future__ import annotations
from dataclasses import dataclass
import logging
import os
import time
from typing import Dict, List

from dotenv import load_dotenv
import numpy as np

from ..models.color_range import (
    ColorProfile,
    PixelLabel,
    SeverityThresholds,
    get_color_profile,
    get_severity_thresholds,
)
from ..models.imaging_backend import ImagingBackend, PureBackend
from ..models.pixel_buffer import PixelBuffer
from ..models.segmentation_result import Contour, SegmentationResult
from ..services.color_space import rgb_to_hsv_array
from ..services.compositor import Composite, Compositor, MaskSet
from ..services.contour_service import MIN_CONTOUR_AREA, MAX_CONTOURS, ContourAnalyzer
from ..services.image_service import ImageService
from ..services.leaf_locator import LEAF_MIN_FRACTION, LeafLocator
from ..services.morphology_service import LEAF_KERNEL_RADIUS, LESION_KERNEL_RADIUS, MorphologicalRefiner
from ..services.region_classifier import RegionClassifier

# ------------------------------------------------------------------
# env‑vars
load_dotenv()
COLOR_PROFILE = os.getenv("COLOR_PROFILE", "shared_box")
SEVERITY_PROFILE = os.getenv("SEVERITY_PROFILE", "standard")

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class SegmentationAnalysis:
    """Raw arrays behind a SegmentationResult, before encoding."""
    width: int
    height: int
    masks: MaskSet
    composite: Composite
    contours: Dict[str, List[Contour]]


def _elapsed_ms(start: float) -> int:
    return int(round((time.perf_counter() - start) * 1000))


class DiseaseSegmenter:

    def __init__(
        self,
        backend: ImagingBackend | None = None,
        *,
        profile: ColorProfile | None = None,
        severity: SeverityThresholds | None = None,
        image_service: ImageService | None = None,
        leaf_min_fraction: float = LEAF_MIN_FRACTION,
        leaf_kernel_radius: int = LEAF_KERNEL_RADIUS,
        lesion_kernel_radius: int = LESION_KERNEL_RADIUS,
        min_contour_area: int = MIN_CONTOUR_AREA,
        max_contours: int = MAX_CONTOURS,
    ) -> None:
        self.backend = backend or PureBackend()
        self.profile = profile or get_color_profile(COLOR_PROFILE)
        self.severity = severity or get_severity_thresholds(SEVERITY_PROFILE)
        self.image_service = image_service or ImageService()

        self.classifier = RegionClassifier(self.profile, self.backend)
        self.locator = LeafLocator(self.backend, min_fraction=leaf_min_fraction)
        self.refiner = MorphologicalRefiner(self.backend, leaf_kernel_radius, lesion_kernel_radius)
        self.contour_analyzer = ContourAnalyzer(self.backend, self.severity, min_contour_area, max_contours)
        self.compositor = Compositor()

        logger.info(
            f"Segmenter ready: backend={self.backend.name}, profile={self.profile.name}, "
            f"severity={self.severity.name}"
        )

    # --------------------------------------------------
    def analyze(self, buffer: PixelBuffer) -> SegmentationAnalysis:
        pixels = buffer.pixels
        hsv = rgb_to_hsv_array(pixels)

        # 1. per-pixel labels
        raw = self.classifier.split_masks(self.classifier.classify(hsv))

        # 2. the leaf, with its boundary closed and holes filled
        leaf = self.refiner.refine_leaf(self.locator.locate(hsv))

        # 3. lesion masks clipped to the leaf; scab keeps priority over rust
        scab = self.refiner.refine_lesions(raw[PixelLabel.SCAB], leaf)
        rust = self.refiner.refine_lesions(raw[PixelLabel.RUST], leaf)
        rust[scab > 0] = 0
        healthy = np.where((leaf > 0) & (rust == 0) & (scab == 0), 255, 0).astype(np.uint8)
        masks = MaskSet(leaf=leaf, healthy=healthy, rust=rust, scab=scab)

        # 4. lesions + severity, relative to the leaf area
        leaf_pixels = int(np.count_nonzero(leaf))
        contours = {
            "rust": self.contour_analyzer.find_contours(rust, leaf_pixels),
            "scab": self.contour_analyzer.find_contours(scab, leaf_pixels),
        }

        # 5. overlay + percentages
        composite = self.compositor.composite(pixels, masks)
        logger.info(
            f"Segmented {buffer.width}x{buffer.height}: leaf={leaf_pixels}px, "
            f"rust={len(contours['rust'])} lesions, scab={len(contours['scab'])} lesions"
        )
        return SegmentationAnalysis(buffer.width, buffer.height, masks, composite, contours)

    def _run(self, buffer: PixelBuffer, start: float) -> SegmentationResult:
        try:
            analysis = self.analyze(buffer)
            masks = analysis.masks
            return SegmentationResult(
                success=True,
                masks={
                    "rust": self.image_service.encode(masks.rust, "rust mask"),
                    "scab": self.image_service.encode(masks.scab, "scab mask"),
                    "healthy": self.image_service.encode(masks.healthy, "healthy mask"),
                },
                overlay_image=self.image_service.encode(analysis.composite.overlay, "overlay"),
                percentages=analysis.composite.percentages,
                contours=analysis.contours,
                processing_time=_elapsed_ms(start),
                pixel_counts=analysis.composite.counts,
            )
        except Exception as err:
            logger.exception(f"Segmentation failed: {err}")
            return SegmentationResult.failure(str(err) or type(err).__name__, _elapsed_ms(start))

    def segment(self, buffer: PixelBuffer) -> SegmentationResult:
        """In-process entry point: a pre-decoded buffer, downscaled to the working size."""
        start = time.perf_counter()
        return self._run(self.image_service.to_working_size(buffer), start)

    def segment_data_uri(self, image: object) -> SegmentationResult:
        """
        Transport entry point.

        Raises InputError / DecodeError before the pipeline starts; every
        later failure comes back as an unsuccessful SegmentationResult.
        """
        start = time.perf_counter()
        buffer = self.image_service.decode_request(image)
        return self._run(buffer, start)
