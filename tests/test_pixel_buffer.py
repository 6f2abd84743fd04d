import numpy as np
import pytest

from leaf_triage.models.pixel_buffer import PixelBuffer


def test_from_flat():
    buffer = PixelBuffer.from_flat(bytes(range(18)), width=3, height=2)

    assert (buffer.width, buffer.height, buffer.total_pixels) == (3, 2, 6)
    assert tuple(buffer.pixels[1, 0]) == (9, 10, 11)


def test_from_flat_size_mismatch():
    with pytest.raises(ValueError):
        PixelBuffer.from_flat([0] * 10, width=2, height=2)


@pytest.mark.parametrize("shape", [(4, 4), (4, 4, 4), (0, 4, 3)])
def test_rejects_bad_shapes(shape):
    with pytest.raises(ValueError):
        PixelBuffer(np.zeros(shape, dtype=np.uint8))


def test_pixels_are_a_frozen_copy():
    src = np.zeros((2, 2, 3), dtype=np.uint8)
    buffer = PixelBuffer(src)
    src[0, 0] = 255

    assert buffer.pixels[0, 0, 0] == 0
    with pytest.raises(ValueError):
        buffer.pixels[0, 0] = 1
