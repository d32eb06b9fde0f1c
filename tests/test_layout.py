"""Tests for mapping text spans to word-layout bounding boxes."""

import pytest

from tarja.app.ports.extraction import ExtractedPage, WordBox
from tarja.app.ports.pii import BoundingBox, Detection, DetectionType, RiskLevel
from tarja.utils.layout import attach_bounding_boxes, map_span_to_box

TEXT = "CPF 529.982.247-25 email\nteste@exemplo.com"
WORDS = [
    WordBox(start=0, end=3, x0=72, y0=90, x1=95, y1=104),
    WordBox(start=4, end=18, x0=98, y0=90, x1=180, y1=104),
    WordBox(start=19, end=24, x0=183, y0=90, x1=212, y1=104),
    WordBox(start=25, end=42, x0=72, y0=110, x1=170, y1=124),
]


def _detection(start: int, end: int, page: int | None = 1, **extra) -> Detection:
    return Detection(
        type=DetectionType.CPF,
        risk_level=RiskLevel.HIGH,
        confidence=95,
        text=TEXT[start:end],
        start_index=start,
        end_index=end,
        page_number=page,
        **extra,
    )


def test_single_word_span():
    box = map_span_to_box(4, 18, WORDS, TEXT)
    assert box == BoundingBox(x=98, y=90, width=82, height=14)


def test_multi_word_span_on_one_line_is_unioned():
    box = map_span_to_box(0, 18, WORDS, TEXT)
    assert box is not None
    assert (box.x, box.y, box.x1, box.y1) == (72, 90, 180, 104)


def test_span_across_lines_is_rejected():
    assert map_span_to_box(19, 42, WORDS, TEXT) is None


def test_span_without_layout_is_rejected():
    assert map_span_to_box(4, 18, [], TEXT) is None


def test_partially_covered_span_is_rejected():
    # Only the first word has a box; the CPF itself has no layout.
    assert map_span_to_box(0, 18, WORDS[:1], TEXT) is None


def test_degenerate_word_box_is_rejected():
    words = [WordBox(start=4, end=18, x0=98, y0=90, x1=98, y1=104)]
    assert map_span_to_box(4, 18, words, TEXT) is None


def test_attach_bounding_boxes():
    pages = [ExtractedPage(page_number=1, text=TEXT, words=WORDS)]
    located, unlocated, unpaged = attach_bounding_boxes(
        [_detection(4, 18), _detection(19, 42), _detection(4, 18, page=None)],
        pages,
        TEXT,
    )

    assert located.bounding_box == BoundingBox(x=98, y=90, width=82, height=14)
    assert unlocated.bounding_box is None
    assert unpaged.bounding_box is None


def test_existing_box_is_kept():
    existing = BoundingBox(x=1, y=2, width=3, height=4)
    pages = [ExtractedPage(page_number=1, text=TEXT, words=WORDS)]
    (detection,) = attach_bounding_boxes([_detection(4, 18, bounding_box=existing)], pages, TEXT)
    assert detection.bounding_box == existing


class TestBoundingBoxCoercion:
    def test_from_raw_mapping(self):
        box = BoundingBox.from_raw({"x": 1, "y": 2.5, "width": 10, "height": 4})
        assert box == BoundingBox(x=1, y=2.5, width=10, height=4)

    @pytest.mark.parametrize(
        "raw",
        [
            None,
            [1, 2, 3, 4],
            {"x": 1, "y": 2, "width": 3},
            {"x": "1", "y": 2, "width": 3, "height": 4},
            {"x": True, "y": 2, "width": 3, "height": 4},
        ],
    )
    def test_from_raw_rejects_invalid_shapes(self, raw):
        assert BoundingBox.from_raw(raw) is None

    def test_well_formed(self):
        assert BoundingBox(x=0, y=0, width=1, height=1).is_well_formed()
        assert not BoundingBox(x=-1, y=0, width=1, height=1).is_well_formed()
        assert not BoundingBox(x=0, y=0, width=0, height=1).is_well_formed()
        assert not BoundingBox(x=0, y=0, width=float("inf"), height=1).is_well_formed()
