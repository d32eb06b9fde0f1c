"""Page attribution from flat text offsets.

Extraction produces one concatenated string plus per-page chunks. The helpers
here turn chunk lengths into cumulative boundaries and map detection offsets
back to 1-based page numbers.
"""

from __future__ import annotations

import re
from bisect import bisect_right
from collections.abc import Iterable, Sequence

from tarja.app.ports.pii import Detection

_PAGE_BREAK = re.compile(r"\n{3,}")


def compute_page_boundaries(
    page_texts: Sequence[str],
    total_length: int | None = None,
) -> list[int]:
    """Return cumulative page boundary offsets.

    ``boundaries[0] == 0`` and ``boundaries[-1] == total_length``; page ``p``
    covers ``[boundaries[p - 1], boundaries[p])``. When the chunk lengths do
    not sum to ``total_length`` the intermediate offsets are clamped and the
    last one is forced, so the sequence stays non-decreasing. Zero pages is
    treated as a single page spanning the whole text.
    """
    if total_length is None:
        total_length = sum(len(chunk) for chunk in page_texts)
    total_length = max(0, total_length)

    if not page_texts:
        return [0, total_length]

    boundaries = [0]
    cursor = 0
    for chunk in page_texts[:-1]:
        cursor += len(chunk)
        boundaries.append(min(cursor, total_length))
    boundaries.append(total_length)
    return boundaries


def locate_page(offset: int, boundaries: Sequence[int]) -> int:
    """Return the 1-based page containing ``offset``.

    Offsets past the end land on the last page; negative offsets on page 1.
    Empty pages are never selected for an offset inside a later page.
    """
    page_count = max(1, len(boundaries) - 1)
    if offset < 0:
        return 1
    page = bisect_right(boundaries, offset)
    return min(max(page, 1), page_count)


def attribute_pages(
    detections: Iterable[Detection],
    page_texts: Sequence[str],
    total_length: int | None = None,
) -> list[Detection]:
    """Return copies of ``detections`` with ``page_number`` assigned."""
    boundaries = compute_page_boundaries(page_texts, total_length)
    return [
        detection.model_copy(
            update={"page_number": locate_page(detection.start_index, boundaries)}
        )
        for detection in detections
    ]


def split_text_into_pages(full_text: str, page_count: int) -> list[str]:
    """Split whole-document text into ``page_count`` chunks.

    Used when an extractor only yields one string for a multi-page document.
    Each cut aims at an even share of the text and snaps to the nearest run of
    three or more newlines within 30% of the target, provided that run is
    closer than 20% of the average page length. The chunks always concatenate
    back to ``full_text``; page attribution on top of this split is only as
    precise as the split itself.
    """
    if page_count <= 1:
        return [full_text]

    length = len(full_text)
    average = length / page_count
    pages: list[str] = []
    current = 0

    for index in range(page_count):
        if index == page_count - 1:
            end = length
        else:
            target = int((index + 1) * average)
            window_start = int(max(current, target - average * 0.3))
            window_end = int(min(length, target + average * 0.3))

            closest = target
            min_distance = float("inf")
            breaks = _PAGE_BREAK.finditer(full_text, window_start, max(window_start, window_end))
            for match in breaks:
                distance = abs(match.end() - target)
                if distance < min_distance:
                    min_distance = distance
                    closest = match.end()

            end = closest if min_distance < average * 0.2 else target
            end = max(current, min(end, length))

        pages.append(full_text[current:end])
        current = end

    return pages


__all__ = [
    "attribute_pages",
    "compute_page_boundaries",
    "locate_page",
    "split_text_into_pages",
]
