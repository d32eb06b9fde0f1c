"""Text extraction port interface."""

from typing import Protocol

from pydantic import BaseModel, Field


class WordBox(BaseModel):
    """A word located both in the full text and on the page."""

    start: int = Field(..., ge=0, description="Offset of the word in the full text")
    end: int = Field(..., ge=0, description="Exclusive end offset in the full text")
    x0: float
    y0: float
    x1: float
    y1: float


class ExtractedPage(BaseModel):
    """Per-page text chunk with optional word-level layout."""

    page_number: int = Field(..., ge=1)
    text: str
    width: float | None = None
    height: float | None = None
    words: list[WordBox] = Field(default_factory=list)


class ExtractedText(BaseModel):
    """Full concatenated text plus its page segmentation.

    The page chunks concatenate exactly to ``text``.
    """

    text: str
    pages: list[ExtractedPage] = Field(default_factory=list)
    ocr_pages: list[int] = Field(
        default_factory=list, description="Page numbers whose text came from OCR"
    )

    @property
    def page_texts(self) -> list[str]:
        return [page.text for page in self.pages]


class TextExtractionPort(Protocol):
    """Port interface for turning document bytes into text and layout.

    Adapters: PyMuPDF text layer with Tesseract fallback.

    Side effects: None (CPU-bound; OCR may be slow).
    """

    def extract(self, data: bytes, mime_type: str) -> ExtractedText:
        """Extract text from ``data``.

        Raises:
            UnsupportedDocumentTypeError: For mime types other than PDF and images
            InvalidDocumentError: When the bytes cannot be parsed
        """
        ...
