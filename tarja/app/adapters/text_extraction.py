"""Text extraction adapter: PyMuPDF text layer with Tesseract OCR fallback."""

from __future__ import annotations

import io
import logging
from dataclasses import dataclass
from typing import Literal

import fitz  # type: ignore[import]
import pytesseract
from PIL import Image, ImageFilter, ImageOps, UnidentifiedImageError  # type: ignore[import]
from pydantic import BaseModel

from tarja.app.ports.extraction import ExtractedPage, ExtractedText, TextExtractionPort, WordBox
from tarja.app.ports.redaction import InvalidDocumentError, UnsupportedDocumentTypeError
from tarja.utils.pagination import split_text_into_pages

logger = logging.getLogger(__name__)

PAGE_SEPARATOR = "\n\n"


@dataclass(slots=True)
class _WordInfo:
    """Word offsets relative to its own page text and box in page space."""

    start: int
    end: int
    bbox: tuple[float, float, float, float]  # (x0, y0, x1, y1)

    def shifted(self, offset: int) -> WordBox:
        x0, y0, x1, y1 = self.bbox
        return WordBox(
            start=self.start + offset, end=self.end + offset, x0=x0, y0=y0, x1=x1, y1=y1
        )


class PageAnalysis(BaseModel):
    """Preflight analysis result for a single PDF page."""

    page: int
    has_text_layer: bool
    text_length: int
    needs_ocr: bool


class DocumentTextExtractor(TextExtractionPort):
    """Extract text plus word layout from PDFs and images.

    PDF pages with a text layer are read directly; pages whose text layer is
    shorter than ``min_text_threshold`` are rasterized and OCRed. Images are
    greyscaled, contrast-stretched and sharpened before OCR. Every page chunk
    except the last ends with a blank-line separator, so the chunks
    concatenate exactly to the full text.
    """

    def __init__(
        self,
        *,
        lang: str = "por",
        dpi_scale: int = 2,
        min_text_threshold: int = 10,
        ocr_enabled: bool = True,
        page_split: Literal["native", "proportional"] = "native",
    ) -> None:
        self.lang = lang
        self.dpi_scale = dpi_scale
        self.min_text_threshold = min_text_threshold
        self.ocr_enabled = ocr_enabled
        self.page_split = page_split
        self._tesseract_checked = False

    def extract(self, data: bytes, mime_type: str) -> ExtractedText:
        normalized = mime_type.split(";", 1)[0].strip().lower()
        if normalized == "application/pdf":
            return self._extract_pdf(data)
        if normalized.startswith("image/"):
            return self._extract_image(data)
        raise UnsupportedDocumentTypeError(f"Unsupported file type for extraction: {mime_type}")

    # ------------------------------------------------------------------
    # Internal helpers
    # ------------------------------------------------------------------

    def _extract_pdf(self, data: bytes) -> ExtractedText:
        try:
            doc = fitz.open(stream=data, filetype="pdf")
        except (RuntimeError, ValueError) as exc:
            raise InvalidDocumentError(f"Unreadable PDF: {exc}") from exc

        try:
            if doc.needs_pass:
                raise InvalidDocumentError("PDF is encrypted")

            page_count = doc.page_count
            pages: list[ExtractedPage] = []
            ocr_pages: list[int] = []
            cursor = 0

            for index in range(page_count):
                page = doc.load_page(index)
                rect = page.rect
                analysis = self._analyse_page(page, index)

                if analysis.needs_ocr and self.ocr_enabled:
                    text, words = self._ocr_page(page)
                    ocr_pages.append(index + 1)
                else:
                    text = page.get_text()
                    words = self._pdf_words(page, text)

                chunk = text if index == page_count - 1 else text + PAGE_SEPARATOR
                pages.append(
                    ExtractedPage(
                        page_number=index + 1,
                        text=chunk,
                        width=float(rect.width),
                        height=float(rect.height),
                        words=[word.shifted(cursor) for word in words],
                    )
                )
                cursor += len(chunk)
        finally:
            doc.close()

        full_text = "".join(page.text for page in pages)
        logger.info(
            "Extracted text from %d pages (%d OCR), total length: %d chars",
            len(pages),
            len(ocr_pages),
            len(full_text),
        )

        if self.page_split == "proportional":
            pages = self._proportional_pages(full_text, pages)

        return ExtractedText(text=full_text, pages=pages, ocr_pages=ocr_pages)

    def _extract_image(self, data: bytes) -> ExtractedText:
        try:
            with Image.open(io.BytesIO(data)) as image:
                image.load()
                prepared = self._preprocess(image)
        except (UnidentifiedImageError, OSError, SyntaxError) as exc:
            raise InvalidDocumentError(f"Unreadable image: {exc}") from exc

        try:
            text, words = self._ocr_image(prepared)
            width, height = prepared.size
        finally:
            prepared.close()

        page = ExtractedPage(
            page_number=1,
            text=text,
            width=float(width),
            height=float(height),
            words=[word.shifted(0) for word in words],
        )
        return ExtractedText(text=text, pages=[page], ocr_pages=[1])

    def _proportional_pages(
        self, full_text: str, native_pages: list[ExtractedPage]
    ) -> list[ExtractedPage]:
        """Re-segment the full text by proportional splitting; layout is dropped."""
        chunks = split_text_into_pages(full_text, len(native_pages))
        return [
            ExtractedPage(
                page_number=index + 1,
                text=chunk,
                width=native.width,
                height=native.height,
            )
            for index, (chunk, native) in enumerate(zip(chunks, native_pages))
        ]

    def _analyse_page(self, page: fitz.Page, index: int) -> PageAnalysis:
        text_length = len(page.get_text().strip())
        has_text_layer = text_length > self.min_text_threshold
        return PageAnalysis(
            page=index,
            has_text_layer=has_text_layer,
            text_length=text_length,
            needs_ocr=not has_text_layer,
        )

    @staticmethod
    def _pdf_words(page: fitz.Page, text: str) -> list[_WordInfo]:
        """Locate PyMuPDF words inside the page text, in reading order."""
        words: list[_WordInfo] = []
        cursor = 0
        for x0, y0, x1, y1, word, *_ in page.get_text("words"):
            start = text.find(word, cursor)
            if start == -1:
                continue
            end = start + len(word)
            words.append(
                _WordInfo(start=start, end=end, bbox=(float(x0), float(y0), float(x1), float(y1)))
            )
            cursor = end
        return words

    def _ocr_page(self, page: fitz.Page) -> tuple[str, list[_WordInfo]]:
        """OCR a rasterized PDF page and scale word boxes back to points."""
        matrix = fitz.Matrix(self.dpi_scale, self.dpi_scale)
        pix = page.get_pixmap(matrix=matrix)
        mode = "RGBA" if pix.alpha else "RGB"
        image = Image.frombytes(mode, [pix.width, pix.height], pix.samples)
        if pix.alpha:
            image = image.convert("RGB")

        text, words = self._ocr_image(image)

        rect = page.rect
        scale_x = rect.width / pix.width
        scale_y = rect.height / pix.height
        scaled = [
            _WordInfo(
                start=word.start,
                end=word.end,
                bbox=(
                    word.bbox[0] * scale_x,
                    word.bbox[1] * scale_y,
                    word.bbox[2] * scale_x,
                    word.bbox[3] * scale_y,
                ),
            )
            for word in words
        ]
        return text, scaled

    @staticmethod
    def _preprocess(image: Image.Image) -> Image.Image:
        grey = ImageOps.grayscale(image)
        stretched = ImageOps.autocontrast(grey)
        return stretched.filter(ImageFilter.SHARPEN)

    def _ocr_image(self, image: Image.Image) -> tuple[str, list[_WordInfo]]:
        """OCR an image and extract word-level bounding boxes for layout."""
        self._ensure_tesseract()
        text = pytesseract.image_to_string(image, lang=self.lang)
        data = pytesseract.image_to_data(
            image,
            lang=self.lang,
            output_type=pytesseract.Output.DICT,
        )

        words: list[_WordInfo] = []
        cursor = 0
        tokens = data.get("text", [])
        lefts = data.get("left", [])
        tops = data.get("top", [])
        widths = data.get("width", [])
        heights = data.get("height", [])
        confs = data.get("conf", [])

        for i, token in enumerate(tokens):
            word = str(token).strip()
            if not word or str(confs[i]) in {"-1", "-1.0"}:
                continue

            start = text.find(word, cursor)
            if start == -1:
                continue
            end = start + len(word)

            x0 = float(lefts[i])
            y0 = float(tops[i])
            words.append(
                _WordInfo(
                    start=start,
                    end=end,
                    bbox=(x0, y0, x0 + float(widths[i]), y0 + float(heights[i])),
                )
            )
            cursor = end

        return text, words

    def _ensure_tesseract(self) -> None:
        if self._tesseract_checked:
            return
        try:
            version = str(pytesseract.get_tesseract_version())
        except pytesseract.TesseractNotFoundError as exc:  # type: ignore[attr-defined]
            raise RuntimeError(
                "Tesseract not installed. Install with:\n"
                "  macOS: brew install tesseract tesseract-lang\n"
                "  Ubuntu: apt-get install tesseract-ocr tesseract-ocr-por",
            ) from exc

        major = _extract_major_version(version)
        if major is not None and major < 4:
            raise RuntimeError(f"Tesseract 4.0+ required (found {version}).")
        self._tesseract_checked = True


def _extract_major_version(version: str) -> int | None:
    parts = str(version).split(".", 1)
    try:
        return int(parts[0])
    except (ValueError, TypeError):
        return None
