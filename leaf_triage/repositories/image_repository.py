from __future__ import annotations
import base64
import binascii
from io import BytesIO
import logging
import os
from pathlib import Path
import re
from typing import Iterable, Iterator, Union

from dotenv import load_dotenv
import numpy as np
from PIL import Image as PILImage, ImageOps, UnidentifiedImageError

from ..models.errors import DecodeError, EncodeError, InputError
from ..models.pixel_buffer import PixelBuffer

load_dotenv()

DATA_URI_PREFIX = re.compile(r"^data:image/[\w.+-]+;base64,", re.IGNORECASE)

logger = logging.getLogger(__name__)


class ImageRepository:
    """
    Codec I/O for PixelBuffer entities: data URIs, raster bytes, folders.
    No segmentation logic here.
    """

    def __init__(self):
        exts = os.getenv("VALID_IMAGE_EXTENSIONS", ".jpg,.jpeg,.png,.bmp,.webp")
        self.VALID_EXTS = {e.strip().lower() for e in exts.split(",") if e.strip()}

    # ---------- payloads ----------
    @staticmethod
    def parse_data_uri(image: object) -> bytes:
        """
        Accepts ``data:image/<fmt>;base64,<payload>`` or a bare base64 payload.
        Raises InputError for anything else.
        """
        if not isinstance(image, str) or not image.strip():
            raise InputError("No image provided")
        payload = image.strip()
        match = DATA_URI_PREFIX.match(payload)
        if match:
            payload = payload[match.end():]
        elif payload.startswith("data:"):
            raise InputError("Malformed data URI: expected data:image/<fmt>;base64,<payload>")

        try:
            raw = base64.b64decode(payload, validate=True)
        except (binascii.Error, ValueError) as err:
            raise InputError(f"Image payload is not valid base64: {err}") from err
        if not raw:
            raise InputError("Image payload is empty")
        return raw

    @staticmethod
    def decode(data: bytes) -> PixelBuffer:
        """Raster bytes → RGB PixelBuffer (alpha dropped, EXIF orientation applied)."""
        try:
            with PILImage.open(BytesIO(data)) as pil_image:
                pil_image.load()
                rgb = ImageOps.exif_transpose(pil_image).convert("RGB")
        except (UnidentifiedImageError, PILImage.DecompressionBombError, OSError, ValueError, SyntaxError) as err:
            raise DecodeError(f"Could not decode image: {err}") from err
        return PixelBuffer(np.asarray(rgb, dtype=np.uint8))

    @staticmethod
    def resize_to_fit(buffer: PixelBuffer, max_dim: int) -> PixelBuffer:
        """Downscale so the longest side is at most ``max_dim``. Never enlarges."""
        longest = max(buffer.width, buffer.height)
        if max_dim <= 0 or longest <= max_dim:
            return buffer
        scale = max_dim / longest
        size = (max(1, round(buffer.width * scale)), max(1, round(buffer.height * scale)))
        resized = PILImage.fromarray(buffer.pixels).resize(size, PILImage.BOX)
        return PixelBuffer(np.asarray(resized, dtype=np.uint8), path=buffer.path)

    # ---------- encoding ----------
    @staticmethod
    def encode_png(array: np.ndarray) -> bytes:
        """(H, W) → 1-channel PNG, (H, W, 3) → RGB PNG."""
        try:
            arr = np.ascontiguousarray(array, dtype=np.uint8)
            buffer = BytesIO()
            PILImage.fromarray(arr).save(buffer, format="PNG", compress_level=9)
        except (ValueError, TypeError, OSError) as err:
            raise EncodeError(f"Could not encode PNG: {err}") from err
        return buffer.getvalue()

    @staticmethod
    def to_data_uri(data: bytes, mime: str = "image/png") -> str:
        return f"data:{mime};base64,{base64.b64encode(data).decode('ascii')}"

    # ---------- files ----------
    def load(self, path: Union[str, Path]) -> PixelBuffer:
        path = Path(path)
        if not path.is_file():
            raise FileNotFoundError(f"Image not found or unreadable: {path}")
        buffer = self.decode(path.read_bytes())
        return PixelBuffer(buffer.pixels, path=path)

    def iter_dir(
        self,
        folder: Union[str, Path],
        *,
        recursive: bool = False,
        exts: Iterable[str] | None = None,
    ) -> Iterator[PixelBuffer]:
        """
        Yield PixelBuffer objects one at a time. Nothing accumulates in memory.
        Unreadable files are logged and skipped.
        """
        folder = Path(folder)
        if not folder.is_dir():
            raise NotADirectoryError(folder)

        allowed = {e.lower() for e in (exts or self.VALID_EXTS)}
        pattern = "**/*" if recursive else "*"

        for p in sorted(folder.glob(pattern)):
            if not p.is_file() or p.suffix.lower() not in allowed:
                continue
            try:
                yield self.load(p)
            except (DecodeError, OSError) as err:
                logger.warning(f"Skipping {p.name}: {err}")
