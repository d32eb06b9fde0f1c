"""Tests for page boundary computation and page attribution."""

import pytest

from tarja.app.ports.pii import Detection, DetectionType, RiskLevel
from tarja.utils.pagination import (
    attribute_pages,
    compute_page_boundaries,
    locate_page,
    split_text_into_pages,
)


def _detection(start: int, end: int | None = None) -> Detection:
    return Detection(
        type=DetectionType.EMAIL,
        risk_level=RiskLevel.MEDIUM,
        confidence=90,
        text="x" * ((end or start + 1) - start),
        start_index=start,
        end_index=end or start + 1,
    )


def test_boundaries_are_cumulative():
    assert compute_page_boundaries(["abc", "de", "fghi"]) == [0, 3, 5, 9]


def test_last_boundary_forced_to_total_length():
    # Chunks drifted: they sum to 9 but the full text has 11 characters.
    assert compute_page_boundaries(["abc", "de", "fghi"], 11) == [0, 3, 5, 11]
    # Chunks overshoot: intermediate offsets are clamped.
    assert compute_page_boundaries(["abcdef", "gh", "ij"], 4) == [0, 4, 4, 4]


def test_no_pages_is_a_single_page():
    assert compute_page_boundaries([], 7) == [0, 7]


@pytest.mark.parametrize(
    ("offset", "page"),
    [(0, 1), (2, 1), (3, 2), (4, 2), (5, 3), (8, 3), (9, 3), (500, 3), (-1, 1)],
)
def test_locate_page(offset, page):
    assert locate_page(offset, [0, 3, 5, 9]) == page


def test_locate_page_skips_empty_pages():
    # Page 2 is empty; offset 5 starts page 3.
    assert locate_page(5, [0, 5, 5, 10]) == 3


def test_attribute_pages_is_monotonic():
    pages = ["page one text\n\n", "page two text\n\n", "page three"]
    total = sum(len(page) for page in pages)
    detections = [_detection(start) for start in range(0, total, 3)]

    attributed = attribute_pages(detections, pages)
    ordered = sorted(attributed, key=lambda d: d.start_index)
    numbers = [d.page_number for d in ordered]

    assert numbers == sorted(numbers)
    assert numbers[0] == 1
    assert numbers[-1] == 3


def test_attribute_pages_past_end_lands_on_last_page():
    detections = [_detection(40, 45)]
    attributed = attribute_pages(detections, ["abc", "def"], 10)
    assert attributed[0].page_number == 2


def test_attribute_pages_returns_copies():
    original = _detection(0)
    attributed = attribute_pages([original], ["abc"])
    assert original.page_number is None
    assert attributed[0].page_number == 1


class TestSplitTextIntoPages:
    def test_single_page(self):
        assert split_text_into_pages("hello", 1) == ["hello"]

    def test_chunks_concatenate_back(self):
        text = "a" * 95 + "\n\n\n" + "b" * 102
        chunks = split_text_into_pages(text, 2)
        assert len(chunks) == 2
        assert "".join(chunks) == text

    def test_snaps_to_paragraph_gap(self):
        text = "a" * 95 + "\n\n\n" + "b" * 102
        chunks = split_text_into_pages(text, 2)
        assert chunks[0] == "a" * 95 + "\n\n\n"
        assert chunks[1] == "b" * 102

    def test_even_split_without_gaps(self):
        chunks = split_text_into_pages("x" * 100, 4)
        assert [len(chunk) for chunk in chunks] == [25, 25, 25, 25]
