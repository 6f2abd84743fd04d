from __future__ import annotations
import logging
import os
from typing import Sequence, Tuple, Union

from dotenv import load_dotenv
import numpy as np

from ..models.color_range import ColorRange, FOREGROUND_RANGES
from ..models.imaging_backend import ImagingBackend, PureBackend
from ..models.pixel_buffer import PixelBuffer
from .color_space import rgb_to_hsv_array

load_dotenv()
LEAF_MIN_FRACTION = float(os.getenv("LEAF_MIN_FRACTION", "0.05"))

logger = logging.getLogger(__name__)


class LeafLocator:
    """
    Finds the one leaf the photo is about.

    1) coarse vegetation mask from wide color tolerances
    2) 4-connected components over that mask
    3) keep the largest one if it covers more than ``min_fraction`` of
       the frame, otherwise keep the whole coarse mask
    """

    def __init__(
        self,
        backend: ImagingBackend | None = None,
        min_fraction: float = LEAF_MIN_FRACTION,
        foreground: Tuple[ColorRange, ...] = FOREGROUND_RANGES,
    ) -> None:
        self.backend = backend or PureBackend()
        self.min_fraction = min_fraction
        self.foreground = foreground

    def coarse_mask(self, hsv: np.ndarray) -> np.ndarray:
        mask = np.zeros(hsv.shape[:2], dtype=np.uint8)
        for r in self.foreground:
            mask |= self.backend.in_range(hsv, r.lower, r.upper)
        return mask

    def select_main_region(self, coarse: np.ndarray) -> np.ndarray:
        total = coarse.size
        largest = None
        for region in self.backend.regions(coarse):
            # strict '>' keeps the first one found on ties
            if largest is None or region.area > largest.area:
                largest = region

        if largest is None or largest.area <= total * self.min_fraction:
            logger.info(
                f"No region above {self.min_fraction:.0%} of the frame "
                f"(largest={0 if largest is None else largest.area}px); using coarse mask"
            )
            return coarse.copy()

        leaf = np.zeros(total, dtype=np.uint8)
        leaf[largest.pixel_indices] = 255
        return leaf.reshape(coarse.shape)

    def locate(self, hsv: np.ndarray) -> np.ndarray:
        return self.select_main_region(self.coarse_mask(hsv))

    def locate_main_leaf(
        self,
        pixels: Union[PixelBuffer, bytes, Sequence[int], np.ndarray],
        width: int | None = None,
        height: int | None = None,
    ) -> np.ndarray:
        """
        Args
        ----
        pixels : PixelBuffer, or a flat RGB sequence together with width/height

        Returns
        -------
        mask : np.ndarray  (H, W)  uint8  {0, 255}
        """
        if isinstance(pixels, np.ndarray) and pixels.ndim == 3:
            pixels = PixelBuffer(pixels)
        elif not isinstance(pixels, PixelBuffer):
            if width is None or height is None:
                raise ValueError("width and height are required for flat pixel data")
            pixels = PixelBuffer.from_flat(pixels, width, height)
        return self.locate(rgb_to_hsv_array(pixels.pixels))


def locate_main_leaf(pixels, width: int, height: int, backend: ImagingBackend | None = None) -> np.ndarray:
    return LeafLocator(backend).locate_main_leaf(pixels, width, height)
