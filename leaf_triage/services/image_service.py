from __future__ import annotations
import logging
import os
from pathlib import Path
from typing import Iterable, Iterator, Optional, Union

from dotenv import load_dotenv
import numpy as np

from ..models.errors import EncodeError
from ..models.pixel_buffer import PixelBuffer
from ..repositories.image_repository import ImageRepository

load_dotenv()
WORKING_MAX_DIM = int(os.getenv("WORKING_MAX_DIM", "300"))

logger = logging.getLogger(__name__)


class ImageService:
    """Codec helpers for the engine boundary. No segmentation logic."""

    def __init__(self, working_max_dim: int = WORKING_MAX_DIM):
        self.working_max_dim = working_max_dim
        self.image_repository = ImageRepository()

    def decode_request(self, image: object) -> PixelBuffer:
        """
        Data URI (or bare base64) → PixelBuffer at the working resolution.

        Raises InputError for a missing/malformed payload and DecodeError
        when the bytes are not a readable image.
        """
        raw = self.image_repository.parse_data_uri(image)
        buffer = self.image_repository.decode(raw)
        logger.info(f"Decoded image {buffer.width}x{buffer.height}")
        return self.to_working_size(buffer)

    def to_working_size(self, buffer: PixelBuffer) -> PixelBuffer:
        resized = self.image_repository.resize_to_fit(buffer, self.working_max_dim)
        if resized is not buffer:
            logger.info(f"Resized {buffer.width}x{buffer.height} → {resized.width}x{resized.height}")
        return resized

    def load(self, path: Union[str, Path]) -> PixelBuffer:
        return self.image_repository.load(path)

    def stream_folder(
        self,
        folder: Union[str, Path],
        *,
        recursive: bool = False,
        exts: Iterable[str] | None = None,
    ) -> Iterator[PixelBuffer]:
        """Yield images lazily instead of returning a gigantic list."""
        return self.image_repository.iter_dir(folder, recursive=recursive, exts=exts)

    def encode(self, array: np.ndarray, label: str) -> Optional[str]:
        """
        PNG data URI, or None when the codec fails. A failed field never
        fails the whole response.
        """
        try:
            png = self.image_repository.encode_png(array)
        except EncodeError as err:
            logger.warning(f"Could not encode {label}: {err}")
            return None
        return self.image_repository.to_data_uri(png)

    def codec_available(self) -> bool:
        try:
            self.image_repository.encode_png(np.zeros((1, 1, 3), dtype=np.uint8))
        except EncodeError:
            return False
        return True
