# models/opencv_backend.py
"""
OpenCV implementation of the imaging capability interface.

Optional accelerator: anything cv2 raises is re-raised as
AcceleratorUnavailable so the caller can redo the stage on PureBackend.
Working buffers are acquired per call and released on every exit path.
"""
from __future__ import annotations
from contextlib import contextmanager
from typing import Iterator, List

import cv2
import numpy as np

from .errors import AcceleratorUnavailable
from .imaging_backend import ImagingBackend, disc_kernel
from .segmentation_result import Region


class OpenCVBackend(ImagingBackend):
    name = "opencv"

    def __init__(self) -> None:
        self.version = cv2.__version__

    @contextmanager
    def _scoped(self, op: str) -> Iterator[list]:
        buffers: list = []
        try:
            yield buffers
        except AcceleratorUnavailable:
            raise
        except Exception as err:
            raise AcceleratorUnavailable(f"cv2 {op} failed: {err}") from err
        finally:
            buffers.clear()

    def smoke_test(self) -> None:
        """One tiny call through every code path used later."""
        probe = np.zeros((4, 4), dtype=np.uint8)
        probe[1:3, 1:3] = 255
        self.close(probe, 1)
        self.regions(probe)

    # --------------------------------------------------
    def in_range(self, hsv, lower, upper):
        with self._scoped("inRange") as buffers:
            src = np.ascontiguousarray(hsv, dtype=np.uint8)
            lo = np.array(lower, dtype=np.uint8)
            hi = np.array(upper, dtype=np.uint8)
            buffers.extend((src, lo, hi))
            return cv2.inRange(src, lo, hi)

    def _morph(self, op_name: str, op: int, mask: np.ndarray, radius: int) -> np.ndarray:
        with self._scoped(op_name) as buffers:
            src = np.ascontiguousarray(mask, dtype=np.uint8)
            if radius <= 0:
                return src.copy()
            kernel = disc_kernel(radius)
            buffers.extend((src, kernel))
            return cv2.morphologyEx(src, op, kernel)

    def dilate(self, mask, radius):
        return self._morph("dilate", cv2.MORPH_DILATE, mask, radius)

    def erode(self, mask, radius):
        return self._morph("erode", cv2.MORPH_ERODE, mask, radius)

    def close(self, mask, radius):
        return self._morph("close", cv2.MORPH_CLOSE, mask, radius)

    def open(self, mask, radius):
        return self._morph("open", cv2.MORPH_OPEN, mask, radius)

    # --------------------------------------------------
    def regions(self, mask) -> List[Region]:
        with self._scoped("connectedComponents") as buffers:
            src = np.ascontiguousarray(mask, dtype=np.uint8)
            h, w = src.shape
            count, labels = cv2.connectedComponents(src, connectivity=4, ltype=cv2.CV_32S)
            buffers.extend((src, labels))
            if count <= 1:
                return []

            flat = labels.ravel()
            order = np.argsort(flat, kind="stable")  # keeps raster order inside a label
            sizes = np.bincount(flat, minlength=count)
            groups = np.split(order, np.cumsum(sizes)[:-1])[1:]  # drop label 0

            found = [Region.from_indices(g, w) for g in groups if g.size]
            found.sort(key=lambda r: int(r.pixel_indices[0]))
            return found
