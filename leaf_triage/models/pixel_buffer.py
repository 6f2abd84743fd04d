from __future__ import annotations
from dataclasses import dataclass, field
from pathlib import Path
from typing import Sequence, Union
import numpy as np


@dataclass
class PixelBuffer:
    """
    Simple data object: RGB pixels (no alpha) + optional source path.

    The pixel array is copied and frozen on construction, so a stage
    that wants to modify pixels has to work on its own copy.
    """
    pixels: np.ndarray  # Shape (H, W, 3), dtype uint8, RGB order.
    path: Path | None = field(default=None, compare=False)

    def __post_init__(self) -> None:
        arr = np.asarray(self.pixels)
        if arr.ndim != 3 or arr.shape[2] != 3:
            raise ValueError(f"expected (H, W, 3) RGB pixels, got shape {arr.shape}")
        if arr.shape[0] == 0 or arr.shape[1] == 0:
            raise ValueError("pixel buffer must not be empty")
        arr = np.array(arr, dtype=np.uint8, copy=True, order="C")
        arr.flags.writeable = False
        self.pixels = arr

    @classmethod
    def from_flat(
        cls,
        data: Union[bytes, bytearray, Sequence[int], np.ndarray],
        width: int,
        height: int,
    ) -> "PixelBuffer":
        """Build a buffer from a flat r,g,b,r,g,b,... sequence."""
        flat = np.frombuffer(bytes(data), dtype=np.uint8) if isinstance(data, (bytes, bytearray)) \
            else np.asarray(data, dtype=np.uint8).ravel()
        if flat.size != width * height * 3:
            raise ValueError(
                f"flat buffer has {flat.size} values, expected {width * height * 3} "
                f"for {width}x{height} RGB"
            )
        return cls(flat.reshape(height, width, 3))

    @property
    def width(self) -> int:
        return int(self.pixels.shape[1])

    @property
    def height(self) -> int:
        return int(self.pixels.shape[0])

    @property
    def total_pixels(self) -> int:
        return self.width * self.height
