"""Tests for ImageRedactor."""

from __future__ import annotations

import io

import pytest
from PIL import Image

from tarja.app.adapters.image_redactor import ImageRedactor, estimate_box
from tarja.app.ports.pii import BoundingBox, Detection, DetectionType, RiskLevel
from tarja.app.ports.redaction import InvalidDocumentError, UnsupportedDocumentTypeError


def _approved(box: BoundingBox | None, start: int = 0) -> Detection:
    return Detection(
        type=DetectionType.EMAIL,
        risk_level=RiskLevel.MEDIUM,
        confidence=90,
        text="teste@exemplo.com",
        start_index=start,
        end_index=start + 17,
        page_number=1,
        bounding_box=box,
        is_approved=True,
    )


def _open(data: bytes) -> Image.Image:
    image = Image.open(io.BytesIO(data))
    image.load()
    return image


def test_box_is_painted_black(make_image):
    source = make_image((200, 100))
    rendered = ImageRedactor().redact(
        source, [_approved(BoundingBox(x=10, y=20, width=30, height=10))]
    )

    assert rendered.applied == 1
    assert rendered.skipped == 0
    assert rendered.extension == "png"
    assert rendered.mime_type == "image/png"

    image = _open(rendered.data)
    assert image.size == (200, 100)
    assert image.getpixel((10, 20)) == (0, 0, 0)
    assert image.getpixel((39, 29)) == (0, 0, 0)
    assert image.getpixel((40, 30)) == (255, 255, 255)
    assert image.getpixel((9, 20)) == (255, 255, 255)


def test_fractional_box_is_fully_covered(make_image):
    source = make_image((50, 50))
    rendered = ImageRedactor().redact(
        source, [_approved(BoundingBox(x=4.6, y=4.6, width=2.0, height=2.0))]
    )
    image = _open(rendered.data)

    for x in (4, 5, 6):
        for y in (4, 5, 6):
            assert image.getpixel((x, y)) == (0, 0, 0)


def test_box_is_clamped_to_image(make_image):
    source = make_image((100, 50))
    rendered = ImageRedactor().redact(
        source, [_approved(BoundingBox(x=90, y=40, width=500, height=500))]
    )
    image = _open(rendered.data)

    assert rendered.applied == 1
    assert image.size == (100, 50)
    assert image.getpixel((99, 49)) == (0, 0, 0)
    assert image.getpixel((89, 39)) == (255, 255, 255)


def test_box_outside_image_is_skipped(make_image):
    source = make_image((100, 50))
    rendered = ImageRedactor().redact(
        source, [_approved(BoundingBox(x=150, y=10, width=20, height=10))]
    )
    assert rendered.applied == 0
    assert rendered.skipped == 1


def test_missing_box_is_skipped_by_default(make_image):
    source = make_image((100, 50))
    rendered = ImageRedactor().redact(source, [_approved(None)])

    assert rendered.applied == 0
    assert rendered.skipped == 1
    image = _open(rendered.data)
    assert image.getcolors() == [(100 * 50, (255, 255, 255))]


def test_estimate_policy_paints_heuristic_band(make_image):
    source = make_image((400, 400))
    detection = _approved(None, start=40)
    rendered = ImageRedactor(missing_box_policy="estimate").redact(source, [detection])

    assert estimate_box(detection) == BoundingBox(x=50, y=20, width=200, height=20)
    assert rendered.applied == 1
    image = _open(rendered.data)
    assert image.getpixel((50, 20)) == (0, 0, 0)
    assert image.getpixel((249, 39)) == (0, 0, 0)


def test_jpeg_stays_jpeg(make_image):
    source = make_image((64, 64), image_format="JPEG")
    rendered = ImageRedactor().redact(
        source, [_approved(BoundingBox(x=0, y=0, width=32, height=32))]
    )

    assert rendered.extension == "jpg"
    assert rendered.mime_type == "image/jpeg"
    assert _open(rendered.data).format == "JPEG"


def test_grayscale_image_keeps_mode():
    image = Image.new("L", (40, 40), 255)
    buffer = io.BytesIO()
    image.save(buffer, format="PNG")

    rendered = ImageRedactor().redact(
        buffer.getvalue(), [_approved(BoundingBox(x=0, y=0, width=10, height=10))]
    )
    result = _open(rendered.data)
    assert result.mode == "L"
    assert result.getpixel((5, 5)) == 0


def test_rendering_is_deterministic(make_image):
    source = make_image((120, 80))
    detections = [_approved(BoundingBox(x=5, y=5, width=20, height=20))]

    first = ImageRedactor().redact(source, detections)
    second = ImageRedactor().redact(source, detections)
    assert first.data == second.data


def test_corrupt_image_raises():
    with pytest.raises(InvalidDocumentError):
        ImageRedactor().redact(b"definitely not an image", [])


def test_multi_frame_image_is_rejected():
    frames = [Image.new("RGB", (10, 10), color) for color in ("red", "blue")]
    buffer = io.BytesIO()
    frames[0].save(buffer, format="GIF", save_all=True, append_images=frames[1:])

    with pytest.raises(UnsupportedDocumentTypeError):
        ImageRedactor().redact(buffer.getvalue(), [])
