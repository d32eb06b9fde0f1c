"""Tests for DocumentTextExtractor."""

from __future__ import annotations

import pytest
from PIL import Image

from tarja.app.adapters import text_extraction
from tarja.app.adapters.text_extraction import PAGE_SEPARATOR, DocumentTextExtractor
from tarja.app.ports.redaction import InvalidDocumentError, UnsupportedDocumentTypeError


@pytest.fixture
def two_page_pdf(make_pdf) -> bytes:
    return make_pdf(
        [
            ["Meu CPF: 529.982.247-25", "Contato por email"],
            ["Email: teste@exemplo.com confirmado"],
        ]
    )


class TestPdfExtraction:
    def test_page_chunks_concatenate_to_full_text(self, two_page_pdf):
        extracted = DocumentTextExtractor().extract(two_page_pdf, "application/pdf")

        assert len(extracted.pages) == 2
        assert "".join(extracted.page_texts) == extracted.text
        assert extracted.pages[0].text.endswith(PAGE_SEPARATOR)
        assert not extracted.pages[1].text.endswith(PAGE_SEPARATOR)
        assert extracted.ocr_pages == []

    def test_word_offsets_point_into_full_text(self, two_page_pdf):
        extracted = DocumentTextExtractor().extract(two_page_pdf, "application/pdf")

        for page in extracted.pages:
            assert page.words
            for word in page.words:
                assert not extracted.text[word.start : word.end].isspace()
                assert word.x1 > word.x0 and word.y1 > word.y0

        second = extracted.pages[1]
        email_start = extracted.text.index("teste@exemplo.com")
        assert any(word.start == email_start for word in second.words)

    def test_page_dimensions_are_reported(self, two_page_pdf):
        extracted = DocumentTextExtractor().extract(two_page_pdf, "application/pdf")
        assert extracted.pages[0].width == pytest.approx(595, abs=1)
        assert extracted.pages[0].height == pytest.approx(842, abs=1)

    def test_proportional_split_drops_layout(self, two_page_pdf):
        extractor = DocumentTextExtractor(page_split="proportional")
        extracted = extractor.extract(two_page_pdf, "application/pdf")

        assert len(extracted.pages) == 2
        assert "".join(extracted.page_texts) == extracted.text
        assert all(not page.words for page in extracted.pages)

    def test_scanned_page_without_ocr_yields_empty_text(self, make_pdf):
        blank = make_pdf([[]])
        extracted = DocumentTextExtractor(ocr_enabled=False).extract(blank, "application/pdf")

        assert extracted.text == ""
        assert extracted.ocr_pages == []

    def test_scanned_page_is_ocred(self, make_pdf, monkeypatch):
        blank = make_pdf([[]])
        _fake_tesseract(monkeypatch, text="CPF 529.982.247-25\n")

        extracted = DocumentTextExtractor(dpi_scale=2).extract(blank, "application/pdf")

        assert extracted.ocr_pages == [1]
        assert extracted.text == "CPF 529.982.247-25\n"
        cpf_word = extracted.pages[0].words[1]
        # OCR boxes are in pixels at 2x and get scaled back to points.
        assert cpf_word.x0 == pytest.approx(30.0)
        assert cpf_word.y0 == pytest.approx(5.0)

    def test_corrupt_pdf(self):
        with pytest.raises(InvalidDocumentError):
            DocumentTextExtractor().extract(b"not a pdf", "application/pdf")


class TestImageExtraction:
    def test_image_is_ocred_with_word_boxes(self, make_image, monkeypatch):
        calls = _fake_tesseract(monkeypatch, text="CPF 529.982.247-25\n")

        extracted = DocumentTextExtractor(lang="por").extract(make_image((300, 80)), "image/png")

        assert extracted.text == "CPF 529.982.247-25\n"
        assert extracted.ocr_pages == [1]
        assert len(extracted.pages) == 1
        page = extracted.pages[0]
        assert (page.width, page.height) == (300, 80)
        assert [(w.start, w.end) for w in page.words] == [(0, 3), (4, 18)]
        assert page.words[1].x0 == 60 and page.words[1].x1 == 200
        assert calls["lang"] == "por"
        assert calls["mode"] == "L"

    def test_unsupported_type(self):
        with pytest.raises(UnsupportedDocumentTypeError):
            DocumentTextExtractor().extract(b"hello", "text/plain")

    def test_corrupt_image(self):
        with pytest.raises(InvalidDocumentError):
            DocumentTextExtractor().extract(b"not an image", "image/png")

    def test_missing_tesseract_is_reported(self, make_image, monkeypatch):
        def missing():
            raise text_extraction.pytesseract.TesseractNotFoundError()

        monkeypatch.setattr(text_extraction.pytesseract, "get_tesseract_version", missing)

        with pytest.raises(RuntimeError, match="Tesseract not installed"):
            DocumentTextExtractor().extract(make_image(), "image/png")


def _fake_tesseract(monkeypatch, *, text: str) -> dict:
    """Replace pytesseract calls with a fixed two-word result."""
    calls: dict = {}

    def image_to_string(image: Image.Image, lang: str) -> str:
        calls["lang"] = lang
        calls["mode"] = image.mode
        return text

    def image_to_data(image: Image.Image, lang: str, output_type) -> dict:
        return {
            "text": ["", "CPF", "529.982.247-25"],
            "left": [0, 10, 60],
            "top": [0, 10, 10],
            "width": [300, 40, 140],
            "height": [80, 20, 20],
            "conf": ["-1", "96", "91"],
        }

    monkeypatch.setattr(text_extraction.pytesseract, "get_tesseract_version", lambda: "5.3.0")
    monkeypatch.setattr(text_extraction.pytesseract, "image_to_string", image_to_string)
    monkeypatch.setattr(text_extraction.pytesseract, "image_to_data", image_to_data)
    return calls
