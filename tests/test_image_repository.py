import base64

import numpy as np
import pytest
from PIL import Image as PILImage

from leaf_triage.models.errors import DecodeError, EncodeError, InputError
from leaf_triage.models.pixel_buffer import PixelBuffer
from leaf_triage.repositories.image_repository import ImageRepository
from leaf_triage.services.image_service import ImageService


def test_parse_data_uri_and_bare_base64():
    raw = b"\x89PNG fake"
    encoded = base64.b64encode(raw).decode("ascii")

    assert ImageRepository.parse_data_uri(f"data:image/png;base64,{encoded}") == raw
    assert ImageRepository.parse_data_uri(f"DATA:image/jpeg;base64,{encoded}") == raw
    assert ImageRepository.parse_data_uri(encoded) == raw


@pytest.mark.parametrize("payload", [None, "   ", "data:image/png,abc", "data:image/png;base64,"])
def test_parse_data_uri_rejects(payload):
    with pytest.raises(InputError):
        ImageRepository.parse_data_uri(payload)


def test_decode_drops_alpha(data_uri):
    rgba = np.zeros((5, 6, 4), dtype=np.uint8)
    rgba[..., 1] = 200
    rgba[..., 3] = 128
    raw = ImageRepository.parse_data_uri(data_uri(rgba))

    buffer = ImageRepository.decode(raw)

    assert buffer.pixels.shape == (5, 6, 3)
    assert tuple(buffer.pixels[0, 0]) == (0, 200, 0)


def test_decode_jpeg(data_uri, solid):
    buffer = ImageRepository.decode(ImageRepository.parse_data_uri(data_uri(solid(16, 8, (40, 160, 40)), "JPEG")))
    assert (buffer.width, buffer.height) == (16, 8)


def test_decode_garbage():
    with pytest.raises(DecodeError):
        ImageRepository.decode(b"definitely not an image")


def test_resize_never_enlarges(solid):
    small = PixelBuffer(solid(30, 20, (1, 2, 3)))
    assert ImageRepository.resize_to_fit(small, 300) is small


def test_resize_keeps_aspect_ratio(solid):
    big = PixelBuffer(solid(900, 300, (40, 160, 40)))
    resized = ImageRepository.resize_to_fit(big, 300)

    assert (resized.width, resized.height) == (300, 100)
    assert tuple(resized.pixels[50, 150]) == (40, 160, 40)


def test_encode_mask_and_overlay():
    mask = np.zeros((4, 5), dtype=np.uint8)
    mask[1, 1] = 255
    uri = ImageRepository.to_data_uri(ImageRepository.encode_png(mask))
    assert uri.startswith("data:image/png;base64,")

    decoded = ImageRepository.decode(ImageRepository.parse_data_uri(uri))
    assert decoded.pixels.shape == (4, 5, 3)
    assert tuple(decoded.pixels[1, 1]) == (255, 255, 255)


def test_encode_rejects_unsupported_shape():
    with pytest.raises(EncodeError):
        ImageRepository.encode_png(np.zeros((2, 2, 7), dtype=np.uint8))


def test_iter_dir_skips_unreadable(tmp_path, solid):
    PILImage.fromarray(solid(4, 4, (40, 160, 40))).save(tmp_path / "b.png")
    PILImage.fromarray(solid(3, 3, (230, 140, 20))).save(tmp_path / "a.jpg")
    (tmp_path / "broken.png").write_bytes(b"nope")
    (tmp_path / "notes.txt").write_text("ignore me")

    names = [b.path.name for b in ImageRepository().iter_dir(tmp_path)]

    assert names == ["a.jpg", "b.png"]


def test_iter_dir_requires_folder(tmp_path):
    with pytest.raises(NotADirectoryError):
        list(ImageRepository().iter_dir(tmp_path / "missing"))


def test_service_codec_checks():
    service = ImageService(working_max_dim=50)
    assert service.codec_available()
    assert service.encode(np.zeros((2, 2, 7), dtype=np.uint8), "junk") is None
