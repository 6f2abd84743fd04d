from __future__ import annotations
from dataclasses import dataclass, field
from enum import Enum
from typing import Any, Dict, List, Optional, Tuple
import numpy as np


class Severity(str, Enum):
    LOW = "low"
    MEDIUM = "medium"
    HIGH = "high"


@dataclass(frozen=True)
class BoundingBox:
    x: int
    y: int
    width: int
    height: int

    def to_dict(self) -> Dict[str, int]:
        return {"x": self.x, "y": self.y, "width": self.width, "height": self.height}


@dataclass(frozen=True)
class Region:
    """
    One connected component, as found by a flood fill / labelling pass.
    Transient: folded into a Contour and dropped.
    """
    pixel_indices: np.ndarray  # flat indices (y * width + x), ascending
    centroid: Tuple[float, float]  # unrounded mean (x, y)
    bounding_box: BoundingBox

    @property
    def area(self) -> int:
        return int(self.pixel_indices.size)

    @classmethod
    def from_indices(cls, indices: np.ndarray, width: int) -> "Region":
        indices = np.asarray(indices, dtype=np.int64)
        xs = indices % width
        ys = indices // width
        x0, y0 = int(xs.min()), int(ys.min())
        box = BoundingBox(x0, y0, int(xs.max()) - x0 + 1, int(ys.max()) - y0 + 1)
        return cls(indices, (float(xs.mean()), float(ys.mean())), box)


@dataclass(frozen=True)
class Contour:
    area: int
    centroid: Tuple[float, float]
    bounding_box: BoundingBox
    severity: Severity

    def to_dict(self) -> Dict[str, Any]:
        return {
            "area": self.area,
            "centroid": {"x": self.centroid[0], "y": self.centroid[1]},
            "boundingBox": self.bounding_box.to_dict(),
            "severity": self.severity.value,
        }


@dataclass(frozen=True)
class PixelCounts:
    healthy: int
    rust: int
    scab: int
    background: int

    @property
    def leaf(self) -> int:
        return self.healthy + self.rust + self.scab

    @property
    def total(self) -> int:
        return self.leaf + self.background


@dataclass(frozen=True)
class Percentages:
    """healthy/rust/scab are shares of the leaf; background is a share of the frame."""
    healthy: float = 0.0
    rust: float = 0.0
    scab: float = 0.0
    background: float = 100.0

    def to_dict(self) -> Dict[str, float]:
        return {
            "healthy": self.healthy,
            "rust": self.rust,
            "scab": self.scab,
            "background": self.background,
        }


def _empty_masks() -> Dict[str, Optional[str]]:
    return {"rust": None, "scab": None, "healthy": None}


def _empty_contours() -> Dict[str, List[Contour]]:
    return {"rust": [], "scab": []}


@dataclass(frozen=True)
class SegmentationResult:
    """
    The engine's only externally visible output. Built once per call.

    ``masks`` and ``overlay_image`` hold PNG data URIs (or None when the
    codec failed for that field).
    """
    success: bool
    masks: Dict[str, Optional[str]] = field(default_factory=_empty_masks)
    overlay_image: Optional[str] = None
    percentages: Percentages = field(default_factory=Percentages)
    contours: Dict[str, List[Contour]] = field(default_factory=_empty_contours)
    processing_time: int = 0
    error: Optional[str] = None
    pixel_counts: Optional[PixelCounts] = field(default=None, compare=False)

    @classmethod
    def failure(cls, error: str, processing_time: int) -> "SegmentationResult":
        """Safe empty state: zero percentages, full background, no contours."""
        return cls(success=False, error=error, processing_time=processing_time)

    def to_dict(self) -> Dict[str, Any]:
        out: Dict[str, Any] = {
            "success": self.success,
            "masks": dict(self.masks),
            "overlayImage": self.overlay_image,
            "percentages": self.percentages.to_dict(),
            "contours": {k: [c.to_dict() for c in v] for k, v in self.contours.items()},
            "processingTime": self.processing_time,
        }
        if self.error is not None:
            out["error"] = self.error
        return out
