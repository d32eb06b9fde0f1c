"""Concrete adapters wiring application ports to built-in implementations."""

from __future__ import annotations

from .detection_store import EncryptedDetectionStore
from .image_redactor import ImageRedactor
from .pdf_redactor import PDFRedactor
from .pii_regex import BrazilianPIIRegexAdapter
from .renderer import DocumentRedactionRenderer
from .storage import FileSystemStorageAdapter
from .text_extraction import DocumentTextExtractor

__all__ = [
    "BrazilianPIIRegexAdapter",
    "DocumentRedactionRenderer",
    "DocumentTextExtractor",
    "EncryptedDetectionStore",
    "FileSystemStorageAdapter",
    "ImageRedactor",
    "PDFRedactor",
]
