import base64
from io import BytesIO

import numpy as np
import pytest
from PIL import Image as PILImage

from leaf_triage.models.errors import AcceleratorUnavailable
from leaf_triage.models.imaging_backend import ImagingBackend, PureBackend
from leaf_triage.models.pixel_buffer import PixelBuffer
from leaf_triage.pipeline.disease_segmenter import DiseaseSegmenter

GREEN = (40, 160, 40)
ORANGE = (230, 140, 20)
OLIVE_DARK = (70, 70, 50)
WHITE = (255, 255, 255)
BLACK = (0, 0, 0)


class FailingBackend(ImagingBackend):
    """Accelerator stand-in that breaks on every call."""

    name = "failing"

    def in_range(self, hsv, lower, upper):
        raise AcceleratorUnavailable("in_range exploded")

    def dilate(self, mask, radius):
        raise AcceleratorUnavailable("dilate exploded")

    def erode(self, mask, radius):
        raise AcceleratorUnavailable("erode exploded")

    def regions(self, mask):
        raise AcceleratorUnavailable("regions exploded")


def _solid(width, height, rgb):
    img = np.zeros((height, width, 3), dtype=np.uint8)
    img[:, :] = rgb
    return img


def _disc(img, cx, cy, radius, rgb):
    yy, xx = np.ogrid[:img.shape[0], :img.shape[1]]
    img[(xx - cx) ** 2 + (yy - cy) ** 2 <= radius ** 2] = rgb
    return img


def _data_uri(pixels, fmt="PNG"):
    buffer = BytesIO()
    PILImage.fromarray(np.asarray(pixels, dtype=np.uint8)).save(buffer, format=fmt)
    mime = "jpeg" if fmt.upper() == "JPEG" else fmt.lower()
    return f"data:image/{mime};base64,{base64.b64encode(buffer.getvalue()).decode('ascii')}"


@pytest.fixture
def solid():
    return _solid


@pytest.fixture
def disc():
    return _disc


@pytest.fixture
def data_uri():
    return _data_uri


@pytest.fixture
def backend():
    return PureBackend()


@pytest.fixture
def segmenter(backend):
    return DiseaseSegmenter(backend=backend)


@pytest.fixture
def green_leaf():
    return PixelBuffer(_solid(100, 100, GREEN))


@pytest.fixture
def split_leaf():
    """Orange block on the left 60 columns, green on the right 40."""
    img = _solid(100, 100, GREEN)
    img[:, :60] = ORANGE
    return PixelBuffer(img)


@pytest.fixture
def spotted_leaf():
    """Green disc on white with one rust spot and one scab spot."""
    img = _solid(120, 120, WHITE)
    _disc(img, 60, 60, 45, GREEN)
    _disc(img, 45, 50, 8, ORANGE)
    _disc(img, 75, 72, 7, OLIVE_DARK)
    return PixelBuffer(img)


@pytest.fixture
def failing_backend():
    return FailingBackend()
