from __future__ import annotations
import os

from dotenv import load_dotenv
import numpy as np

from ..models.imaging_backend import ImagingBackend, PureBackend

load_dotenv()
LEAF_KERNEL_RADIUS = int(os.getenv("LEAF_KERNEL_RADIUS", "15"))
LESION_KERNEL_RADIUS = int(os.getenv("LESION_KERNEL_RADIUS", "1"))


class MorphologicalRefiner:
    """
    Mask cleanup before contour extraction.

    • leaf mask   → close with the large disc (frame edge counts as
                    background), then fill enclosed holes
    • lesion mask → close then open with the small disc, clipped to the leaf
    """

    def __init__(
        self,
        backend: ImagingBackend | None = None,
        leaf_radius: int = LEAF_KERNEL_RADIUS,
        lesion_radius: int = LESION_KERNEL_RADIUS,
    ) -> None:
        self.backend = backend or PureBackend()
        self.leaf_radius = leaf_radius
        self.lesion_radius = lesion_radius

    def fill_holes(self, mask: np.ndarray) -> np.ndarray:
        """Set every background component that does not touch the frame edge."""
        h, w = mask.shape
        filled = mask.copy().ravel()
        for region in self.backend.regions(np.where(mask > 0, 0, 255).astype(np.uint8)):
            box = region.bounding_box
            touches_edge = (box.x == 0 or box.y == 0
                            or box.x + box.width == w or box.y + box.height == h)
            if not touches_edge:
                filled[region.pixel_indices] = 255
        return filled.reshape(h, w)

    def refine_leaf(self, leaf_mask: np.ndarray) -> np.ndarray:
        if not leaf_mask.any():
            return leaf_mask.copy()
        # outside the frame is background for the leaf closing
        r = max(int(self.leaf_radius), 0)
        padded = np.pad(leaf_mask, r, mode="constant", constant_values=0)
        closed = self.backend.close(padded, r)
        h, w = leaf_mask.shape
        return self.fill_holes(np.ascontiguousarray(closed[r:r + h, r:r + w]))

    def refine_lesions(self, mask: np.ndarray, leaf_mask: np.ndarray) -> np.ndarray:
        if not mask.any():
            return mask.copy()
        cleaned = self.backend.close(mask, self.lesion_radius)
        cleaned = self.backend.open(cleaned, self.lesion_radius)
        return np.where((cleaned > 0) & (leaf_mask > 0), 255, 0).astype(np.uint8)
