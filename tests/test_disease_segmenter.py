import base64
from concurrent.futures import ThreadPoolExecutor
from io import BytesIO

import numpy as np
import pytest
from PIL import Image as PILImage

from leaf_triage.models.color_range import DUAL_BUCKET
from leaf_triage.models.errors import DecodeError, EncodeError, InputError
from leaf_triage.models.imaging_backend import ResilientBackend
from leaf_triage.models.pixel_buffer import PixelBuffer
from leaf_triage.models.segmentation_result import Percentages, Severity
from leaf_triage.pipeline.disease_segmenter import DiseaseSegmenter


def _png(data_uri):
    raw = base64.b64decode(data_uri.split(",", 1)[1])
    return PILImage.open(BytesIO(raw))


def test_all_green_leaf_is_healthy(segmenter, green_leaf):
    result = segmenter.segment(green_leaf)

    assert result.success
    assert result.percentages == Percentages(100.0, 0.0, 0.0, 0.0)
    assert result.contours == {"rust": [], "scab": []}
    assert result.error is None


def test_rust_block(segmenter, split_leaf):
    result = segmenter.segment(split_leaf)

    p = result.percentages
    assert p.rust == pytest.approx(60.0)
    assert p.healthy == pytest.approx(40.0)
    assert p.scab == 0.0
    assert p.background == 0.0

    (rust,) = result.contours["rust"]
    assert rust.area == 6000
    assert (rust.bounding_box.width, rust.bounding_box.height) == (60, 100)
    assert rust.centroid == (30.0, 50.0)
    assert rust.severity is Severity.HIGH
    assert result.contours["scab"] == []


def test_masks_and_overlay_are_png_data_uris(segmenter, split_leaf):
    result = segmenter.segment(split_leaf)
    payload = result.to_dict()

    assert set(payload) == {"success", "masks", "overlayImage", "percentages", "contours", "processingTime"}
    for name in ("rust", "scab", "healthy"):
        uri = payload["masks"][name]
        assert uri.startswith("data:image/png;base64,")
        mask = np.asarray(_png(uri))
        assert mask.shape == (100, 100)
        assert set(np.unique(mask)) <= {0, 255}

    overlay = _png(payload["overlayImage"])
    assert overlay.mode == "RGB"
    assert overlay.size == (100, 100)
    assert np.asarray(_png(payload["masks"]["rust"]))[50, 10] == 255


def test_pixel_conservation(segmenter, spotted_leaf):
    result = segmenter.segment(spotted_leaf)
    counts = result.pixel_counts

    assert counts.total == spotted_leaf.total_pixels
    assert counts.healthy + counts.rust + counts.scab == counts.leaf
    assert counts.background == spotted_leaf.total_pixels - counts.leaf
    p = result.percentages
    assert p.healthy + p.rust + p.scab == pytest.approx(100.0)
    assert p.background == pytest.approx(counts.background / counts.total * 100)


def test_spots_become_contours(segmenter, spotted_leaf):
    result = segmenter.segment(spotted_leaf)

    (rust,) = result.contours["rust"]
    (scab,) = result.contours["scab"]
    assert rust.centroid == (45.0, 50.0)
    assert scab.centroid == (75.0, 72.0)
    assert rust.area > scab.area > 100
    assert rust.severity is Severity.MEDIUM
    assert scab.severity is Severity.MEDIUM


def test_degraded_mode_matches_pure(failing_backend, segmenter, split_leaf):
    degraded = DiseaseSegmenter(backend=ResilientBackend(failing_backend))

    expected = segmenter.segment(split_leaf)
    result = degraded.segment(split_leaf)

    assert result.success
    assert result.percentages == expected.percentages
    assert result.contours == expected.contours


def test_raw_failing_backend_returns_failure_result(failing_backend, split_leaf):
    result = DiseaseSegmenter(backend=failing_backend).segment(split_leaf)

    assert not result.success
    assert "exploded" in result.error
    assert result.percentages == Percentages()


@pytest.mark.parametrize("payload", [None, "", 42, "data:text/plain;base64,aGVsbG8=", "data:image/png;base64,***"])
def test_bad_input(segmenter, payload):
    with pytest.raises(InputError):
        segmenter.segment_data_uri(payload)


def test_not_an_image(segmenter):
    payload = "data:image/png;base64," + base64.b64encode(b"hello world").decode("ascii")
    with pytest.raises(DecodeError):
        segmenter.segment_data_uri(payload)


def test_data_uri_round_trip(segmenter, split_leaf, data_uri):
    result = segmenter.segment_data_uri(data_uri(split_leaf.pixels))

    assert result.success
    assert result.percentages.rust == pytest.approx(60.0)
    assert result.processing_time >= 0


def test_large_upload_is_downscaled(segmenter, solid, data_uri):
    result = segmenter.segment_data_uri(data_uri(solid(600, 400, (40, 160, 40))))

    assert result.pixel_counts.total == 300 * 200
    assert _png(result.overlay_image).size == (300, 200)


def test_in_process_buffer_is_downscaled(segmenter, solid):
    result = segmenter.segment(PixelBuffer(solid(600, 400, (40, 160, 40))))

    assert result.pixel_counts.total == 300 * 200
    assert _png(result.overlay_image).size == (300, 200)


def test_noise_floor_applies_at_working_size(segmenter, solid):
    img = solid(1200, 1200, (40, 160, 40))
    img[600:612, 600:612] = (230, 140, 20)   # 144 px here, 9 px once downscaled

    result = segmenter.segment(PixelBuffer(img))

    assert result.pixel_counts.total == 300 * 300
    assert result.contours["rust"] == []


@pytest.mark.parametrize("background", [(0, 0, 0), (255, 255, 255)])
def test_leaf_near_frame_edge_keeps_its_background(segmenter, solid, background):
    img = solid(100, 100, background)
    img[5:95, 5:95] = (40, 160, 40)

    result = segmenter.segment(PixelBuffer(img))

    p = result.percentages
    assert result.pixel_counts.leaf == 90 * 90
    assert (p.healthy, p.rust, p.scab) == (100.0, 0.0, 0.0)
    assert p.background == pytest.approx(19.0)
    assert result.contours == {"rust": [], "scab": []}


def test_partial_leaf_percentages(segmenter, spotted_leaf):
    p = segmenter.segment(spotted_leaf).percentages
    values = p.to_dict().values()

    assert all(0.0 <= v <= 100.0 for v in values)
    assert p.healthy + p.rust + p.scab == pytest.approx(100.0)
    # background is a share of the frame, so the four add up to more than 100
    assert sum(values) == pytest.approx(100.0 + p.background)
    assert p.background > 0


def test_internal_failure_returns_safe_defaults(segmenter, green_leaf, monkeypatch):
    def boom(hsv):
        raise RuntimeError("boom")

    monkeypatch.setattr(segmenter.classifier, "classify", boom)
    result = segmenter.segment(green_leaf)

    assert not result.success
    assert result.error == "boom"
    assert result.percentages == Percentages(0.0, 0.0, 0.0, 100.0)
    assert result.contours == {"rust": [], "scab": []}
    assert result.masks == {"rust": None, "scab": None, "healthy": None}
    assert result.overlay_image is None
    assert result.to_dict()["error"] == "boom"


def test_encode_failure_nulls_the_field_only(segmenter, split_leaf, monkeypatch):
    def broken(array):
        raise EncodeError("codec gone")

    monkeypatch.setattr(segmenter.image_service.image_repository, "encode_png", broken)
    result = segmenter.segment(split_leaf)

    assert result.success
    assert result.masks == {"rust": None, "scab": None, "healthy": None}
    assert result.overlay_image is None
    assert result.percentages.rust == pytest.approx(60.0)


def test_dual_bucket_profile(backend, split_leaf):
    result = DiseaseSegmenter(backend=backend, profile=DUAL_BUCKET).segment(split_leaf)
    assert result.percentages.rust == pytest.approx(60.0)


def test_concurrent_calls_do_not_interfere(segmenter, split_leaf, green_leaf):
    expected = {id(b): segmenter.segment(b).percentages for b in (split_leaf, green_leaf)}

    with ThreadPoolExecutor(max_workers=4) as pool:
        buffers = [split_leaf, green_leaf] * 4
        results = list(pool.map(segmenter.segment, buffers))

    for buffer, result in zip(buffers, results):
        assert result.percentages == expected[id(buffer)]


def test_input_buffer_is_not_modified(segmenter, split_leaf):
    before = split_leaf.pixels.copy()
    segmenter.segment(split_leaf)
    np.testing.assert_array_equal(split_leaf.pixels, before)
