"""PDF redaction backed by PyMuPDF redaction annotations."""

from __future__ import annotations

import logging
from collections import defaultdict
from collections.abc import Sequence

import fitz  # type: ignore[import]

from tarja.app.ports.pii import BoundingBox, Detection
from tarja.app.ports.redaction import InvalidDocumentError, RenderedDocument


class PDFRedactor:
    """Irreversibly remove content under approved detection boxes.

    Boxes are top-left-origin rectangles in page points, relative to the
    visible (crop) area exactly as text extraction reports words. Each one is
    clamped to that area and added as a redaction annotation;
    ``apply_redactions`` then deletes the text, line art and image pixels
    underneath and paints the area black, so nothing remains to be recovered
    from the output file.

    Detections without a usable box are skipped, never approximated.
    """

    _LOG = logging.getLogger(__name__)

    def redact(self, source: bytes, detections: Sequence[Detection]) -> RenderedDocument:
        doc = self._open(source)
        applied = 0
        skipped = 0

        try:
            by_page: dict[int, list[Detection]] = defaultdict(list)
            for detection in detections:
                by_page[detection.page_number or 1].append(detection)

            for page_number in sorted(by_page):
                page_detections = by_page[page_number]
                if page_number < 1 or page_number > doc.page_count:
                    self._LOG.warning(
                        "Skipping %d redaction(s) targeting page %s (document has %s pages)",
                        len(page_detections),
                        page_number,
                        doc.page_count,
                    )
                    skipped += len(page_detections)
                    continue

                page = doc[page_number - 1]
                if int(page.rotation or 0) % 360 != 0:
                    self._LOG.warning(
                        "Page %s is rotated %s degrees; boxes are interpreted in unrotated space",
                        page_number,
                        page.rotation,
                    )

                rects: list[fitz.Rect] = []
                for detection in page_detections:
                    rect = self._to_page_rect(page, detection.bounding_box)
                    if rect is None:
                        skipped += 1
                        continue
                    rects.append(rect)

                if not rects:
                    continue

                for rect in rects:
                    page.add_redact_annot(rect, fill=(0, 0, 0))
                page.apply_redactions(images=fitz.PDF_REDACT_IMAGE_PIXELS)
                applied += len(rects)

            data = doc.tobytes(garbage=3, deflate=True, no_new_id=True)
        finally:
            doc.close()

        if skipped:
            self._LOG.warning(
                "Skipped %d PDF redaction(s) without a valid bounding box", skipped
            )

        return RenderedDocument(
            data=data,
            extension="pdf",
            mime_type="application/pdf",
            applied=applied,
            skipped=skipped,
        )

    # ------------------------------------------------------------------
    # Internal helpers
    # ------------------------------------------------------------------

    @staticmethod
    def _open(source: bytes) -> fitz.Document:
        try:
            doc = fitz.open(stream=source, filetype="pdf")
        except (RuntimeError, ValueError) as exc:
            raise InvalidDocumentError(f"Unreadable PDF: {exc}") from exc

        if doc.needs_pass or doc.page_count == 0:
            doc.close()
            raise InvalidDocumentError("PDF is encrypted or has no pages")
        return doc

    def _to_page_rect(self, page: fitz.Page, box: BoundingBox | None) -> fitz.Rect | None:
        """Return the page-space rectangle for ``box`` or None when it must be skipped."""
        if box is None or not box.is_well_formed():
            return None

        # Unrotated page space, origin at the cropbox corner (as get_text reports it).
        bounds = fitz.Rect(0, 0, page.cropbox.width, page.cropbox.height)
        if box.x >= bounds.width or box.y >= bounds.height:
            return None

        rect = fitz.Rect(box.x, box.y, box.x1, box.y1) & bounds
        if rect.is_empty:
            return None
        return rect
