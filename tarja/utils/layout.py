"""Helpers for mapping text offsets to bounding boxes using word-level layout."""

from __future__ import annotations

from collections.abc import Iterable, Sequence

from tarja.app.ports.extraction import ExtractedPage, WordBox
from tarja.app.ports.pii import BoundingBox, Detection


def _covers_span(start: int, end: int, words: Sequence[WordBox], full_text: str) -> bool:
    """True when every non-whitespace character of the span lies inside a word."""
    for offset in range(start, min(end, len(full_text))):
        if full_text[offset].isspace():
            continue
        if not any(word.start <= offset < word.end for word in words):
            return False
    return True


def _single_line(words: Sequence[WordBox]) -> bool:
    # Words share a line when their vertical extents have a common band.
    return max(word.y0 for word in words) < min(word.y1 for word in words)


def map_span_to_box(
    start: int,
    end: int,
    words: Iterable[WordBox],
    full_text: str,
) -> BoundingBox | None:
    """Map the ``[start, end)`` text span to one rectangle.

    The union of the overlapping word boxes is returned only when those words
    account for every non-whitespace character in the span and sit on a single
    visual line. Spans that wrap lines, fall between words, or reach text with
    no layout return ``None`` so the caller skips them instead of guessing.
    """
    if end <= start:
        return None

    overlapping = [word for word in words if word.start < end and word.end > start]
    if not overlapping:
        return None
    if not _covers_span(start, end, overlapping, full_text):
        return None
    if not _single_line(overlapping):
        return None

    x0 = min(word.x0 for word in overlapping)
    y0 = min(word.y0 for word in overlapping)
    x1 = max(word.x1 for word in overlapping)
    y1 = max(word.y1 for word in overlapping)

    box = BoundingBox(x=x0, y=y0, width=x1 - x0, height=y1 - y0)
    return box if box.is_well_formed() else None


def attach_bounding_boxes(
    detections: Iterable[Detection],
    pages: Sequence[ExtractedPage],
    full_text: str,
) -> list[Detection]:
    """Return copies of page-attributed detections with boxes from page layout.

    Detections that already carry a box keep it. Detections without a page or
    whose page has no word layout are returned unchanged.
    """
    words_by_page = {page.page_number: page.words for page in pages}
    result: list[Detection] = []

    for detection in detections:
        if detection.bounding_box is not None or detection.page_number is None:
            result.append(detection)
            continue

        words = words_by_page.get(detection.page_number) or []
        box = map_span_to_box(detection.start_index, detection.end_index, words, full_text)
        if box is None:
            result.append(detection)
        else:
            result.append(detection.model_copy(update={"bounding_box": box}))

    return result


__all__ = ["attach_bounding_boxes", "map_span_to_box"]
